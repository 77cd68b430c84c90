"""
Pytest fixtures for brewcore backend tests.

Provides test database setup, two isolated tenants, and factories for
inventory items, tanks, batches and blended lots.
"""

import pytest
from brewcore import create_app
from brewcore.extensions import db
from brewcore.models import Tenant
from brewcore.services import inventory_service, lot_service, production_service
from brewcore.services.tenant_service import TenantContext


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema (Core deletes bypass the ledger's ORM guards)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first brewery)."""
    tenant = Tenant(name="Tenant A - Hop House", code="HOPS", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second brewery)."""
    tenant = Tenant(name="Tenant B - Malt Works", code="MALT", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def ctx_a(tenant_a):
    return TenantContext(tenant_id=tenant_a.id, user_id="brewer_a")


@pytest.fixture(scope='function')
def ctx_b(tenant_b):
    return TenantContext(tenant_id=tenant_b.id, user_id="brewer_b")


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: inventory item with an opening balance booked through the ledger."""
    counter = {"n": 0}

    def _make(ctx, sku=None, *, balance=0, name=None, category="PACKAGING", unit="pcs"):
        counter["n"] += 1
        sku = sku or f"ITEM-{counter['n']}"
        return inventory_service.create_inventory_item(
            ctx,
            sku,
            name or sku,
            category,
            unit,
            opening_balance=balance,
        )

    return _make


@pytest.fixture(scope='function')
def make_batch(db_session):
    """Factory: batch created through the service, then forced into `status`."""
    counter = {"n": 0}

    def _make(ctx, *, volume=1000, status="PLANNED", number=None):
        counter["n"] += 1
        batch = production_service.create_batch(
            ctx,
            number or f"B-{counter['n']:03d}",
            volume=volume,
        )
        if status != "PLANNED":
            batch.status = status
            db_session.commit()
        return batch

    return _make


@pytest.fixture(scope='function')
def make_tank(db_session):
    counter = {"n": 0}

    def _make(ctx, *, capacity=2000, name=None):
        counter["n"] += 1
        return lot_service.create_equipment(
            ctx,
            name or f"FV-{counter['n']:02d}",
            kind="UNITANK",
            capacity=capacity,
        )

    return _make


@pytest.fixture(scope='function')
def blend(db_session, ctx_a, make_batch, make_tank):
    """
    Lot L-1 in a 2000 l tank blending B1 (800 l) and B2 (700 l), both READY.

    Returns a dict of ids so tests re-query instead of holding stale rows.
    """
    b1 = make_batch(ctx_a, volume=800, status="READY")
    b2 = make_batch(ctx_a, volume=700, status="READY")
    tank = make_tank(ctx_a, capacity=2000)
    lot = lot_service.create_lot(
        ctx_a,
        "L-1",
        phase="BRIGHT",
        members=[(b1.id, 800), (b2.id, 700)],
        equipment_id=tank.id,
    )
    return {"b1": b1.id, "b2": b2.id, "lot": lot.id, "tank": tank.id}


@pytest.fixture(scope='function')
def fresh(db_session):
    """Reload a row by id, bypassing anything cached in the session."""
    def _fresh(model, entity_id):
        db_session.expire_all()
        return db_session.get(model, entity_id)

    return _fresh
