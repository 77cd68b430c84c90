# backend/brewcore/config.py
from __future__ import annotations
import os


class Config:
    # SQLite DB stored next to the working directory unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///brewcore.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Deductions and adjustments retry on lock/optimistic conflicts only
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "5"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.05"))

    LEDGER_HISTORY_DEFAULT_LIMIT = 100
    LEDGER_HISTORY_MAX_LIMIT = 500
