from brewcore import create_app

app = create_app()
