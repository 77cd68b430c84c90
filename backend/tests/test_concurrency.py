# Overview: Threaded deductions against a file-backed database.

"""
Concurrency Tests

Ten workers deduct 150 from an item holding 1000 at the same moment. The
guarded balance UPDATE must let exactly six through, refuse the rest with
InsufficientStockError, and leave the cache equal to the ledger sum.

These run against a temp-file SQLite database (not the shared in-memory one)
so each thread gets its own connection.
"""

import threading
from decimal import Decimal

import pytest

from brewcore import create_app
from brewcore.errors import InsufficientStockError
from brewcore.extensions import db
from brewcore.models import LedgerEntry, Tenant
from brewcore.services import inventory_service, ledger_service, lot_service, production_service
from brewcore.services.tenant_service import TenantContext


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.db"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 30}},
        'LEDGER_RETRY_ATTEMPTS': 15,
        'LEDGER_RETRY_BACKOFF': 0.005,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def file_ctx(file_app):
    with file_app.app_context():
        tenant = Tenant(name="Concurrency Brewery", code="CONC", is_active=True)
        db.session.add(tenant)
        db.session.commit()
        return TenantContext(tenant_id=tenant.id, user_id="line_operator")


def _run_parallel(app, count, work):
    """Start `count` workers behind a barrier; collect results or exceptions."""
    barrier = threading.Barrier(count)
    results = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            try:
                barrier.wait()
                outcome = work()
            except Exception as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestConcurrentDeductions:
    def test_ten_deductions_of_150_from_1000(self, file_app, file_ctx):
        with file_app.app_context():
            item = inventory_service.create_inventory_item(
                file_ctx, "CAPS", "Crown caps", "PACKAGING", opening_balance=1000
            )
            item_id = item.id

        results = _run_parallel(
            file_app, 10, lambda: inventory_service.deduct_inventory(file_ctx, 150, item_id=item_id)
        )

        refused = [r for r in results if isinstance(r, InsufficientStockError)]
        unexpected = [r for r in results if isinstance(r, Exception) and not isinstance(r, InsufficientStockError)]
        assert unexpected == []
        assert len(results) - len(refused) == 6
        assert len(refused) == 4

        with file_app.app_context():
            assert ledger_service.get_balance(file_ctx, item_id) == Decimal("100")
            assert ledger_service.compute_ledger_balance(file_ctx, item_id) == Decimal("100")
            consumption = db.session.query(LedgerEntry).filter_by(item_id=item_id, type="CONSUMPTION").count()
            assert consumption == 6

    def test_balance_never_negative_under_mixed_load(self, file_app, file_ctx):
        with file_app.app_context():
            item = inventory_service.create_inventory_item(
                file_ctx, "HOPS", "Citra", "RAW_MATERIAL", "kg", opening_balance="10"
            )
            item_id = item.id

        counter = {"n": 0}
        lock = threading.Lock()

        def work():
            with lock:
                counter["n"] += 1
                n = counter["n"]
            if n % 2:
                return inventory_service.deduct_inventory(file_ctx, "3.5", item_id=item_id)
            return inventory_service.adjust_inventory(file_ctx, item_id, 1, "ADJUSTMENT_ADD")

        results = _run_parallel(file_app, 8, work)

        unexpected = [r for r in results if isinstance(r, Exception) and not isinstance(r, InsufficientStockError)]
        assert unexpected == []

        with file_app.app_context():
            balance = ledger_service.get_balance(file_ctx, item_id)
            assert balance >= 0
            assert balance == ledger_service.compute_ledger_balance(file_ctx, item_id)


class TestConcurrentTransitions:
    def test_same_blend_packaged_twice(self, file_app, file_ctx):
        """Two callers start packaging the same blend; exactly one wins."""
        with file_app.app_context():
            b1 = production_service.create_batch(file_ctx, "B-1", volume=800)
            b2 = production_service.create_batch(file_ctx, "B-2", volume=700)
            tank = lot_service.create_equipment(file_ctx, "BT-1", kind="BRITE", capacity=2000)
            lot_service.create_lot(
                file_ctx, "L-1", members=[(b1.id, 800), (b2.id, 700)], equipment_id=tank.id
            )
            production_service.start_fermentation(file_ctx, b1.id)
            production_service.mark_ready(file_ctx, b1.id)
            ids = (b1.id, b2.id)

        results = _run_parallel(
            file_app, 2, lambda: production_service.start_packaging(file_ctx, ids[0])
        )

        wins = [r for r in results if not isinstance(r, Exception)]
        assert len(wins) == 1

        with file_app.app_context():
            for batch_id in ids:
                assert production_service.get_batch(file_ctx, batch_id).status == "PACKAGING"
