# Overview: Pytest coverage for batch lifecycle transitions across blended lots.

"""
Production Transition Tests

Covers:
- start_packaging on a two-batch blend moves both batches, the lot and its
  tank assignment together
- precondition failures write nothing
- a failure part-way through the transaction leaves every row untouched
- completed/cancelled siblings, and siblings at or past the target, are left
  out of the transition set
- cancel_batch returns consumed stock through the ledger
"""

import json
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from brewcore.errors import InvalidStateError, NotFoundError, TransitionFailure, ValidationError
from brewcore.models import Batch, BatchTimelineEvent, LedgerEntry, Lot, TankAssignment
from brewcore.services import inventory_service, ledger_service, lot_service, production_service


def _events(db_session, batch_id, event_type):
    return (
        db_session.query(BatchTimelineEvent)
        .filter_by(batch_id=batch_id, type=event_type)
        .all()
    )


def _assignment(db_session, lot_id):
    return db_session.query(TankAssignment).filter_by(lot_id=lot_id).one()


class TestStartPackaging:
    def test_blend_moves_together(self, db_session, ctx_a, blend, fresh):
        """B1 (800 l) + B2 (700 l) READY in lot L: packaging B1 moves both."""
        result = production_service.start_packaging(
            ctx_a, blend["b1"], package_type="keg_50", quantity=30, notes="Line 2"
        )

        assert result.blended_batches_updated == 2
        assert result.batch.id == blend["b1"]
        assert fresh(Batch, blend["b1"]).status == "PACKAGING"
        assert fresh(Batch, blend["b2"]).status == "PACKAGING"
        assert fresh(Batch, blend["b1"]).packaging_started_at is not None

        lot = fresh(Lot, blend["lot"])
        assert lot.phase == "PACKAGING"
        assert lot.status == "ACTIVE"

        assignment = _assignment(db_session, blend["lot"])
        assert assignment.phase == "PACKAGING"
        assert assignment.status == "ACTIVE"

        for batch_id in (blend["b1"], blend["b2"]):
            events = _events(db_session, batch_id, "PACKAGING_STARTED")
            assert len(events) == 1
            payload = json.loads(events[0].payload)
            assert payload == {"package_type": "KEG_50", "quantity": 30, "volume_total": "1500"}
            assert events[0].description == "Line 2"

    def test_result_shape(self, db_session, ctx_a, blend):
        data = production_service.start_packaging(ctx_a, blend["b2"]).to_dict()
        assert data["batch_id"] == blend["b2"]
        assert data["batch"]["status"] == "PACKAGING"
        assert data["blended_batches_updated"] == 2
        assert data["lot"]["phase"] == "PACKAGING"

    def test_unblended_batch(self, db_session, ctx_a, make_batch, fresh):
        batch = make_batch(ctx_a, status="READY")
        result = production_service.start_packaging(ctx_a, batch.id)
        assert result.blended_batches_updated == 1
        assert result.lot is None
        assert fresh(Batch, batch.id).status == "PACKAGING"

    def test_wrong_status_changes_nothing(self, db_session, ctx_a, make_batch, fresh):
        """A FERMENTING batch cannot start packaging."""
        batch = make_batch(ctx_a, status="FERMENTING")

        with pytest.raises(InvalidStateError):
            production_service.start_packaging(ctx_a, batch.id)

        assert fresh(Batch, batch.id).status == "FERMENTING"
        assert _events(db_session, batch.id, "PACKAGING_STARTED") == []

    def test_wrong_status_on_blend_changes_nothing(self, db_session, ctx_a, blend, fresh):
        batch = fresh(Batch, blend["b1"])
        batch.status = "CONDITIONING"
        db_session.commit()

        with pytest.raises(InvalidStateError):
            production_service.start_packaging(ctx_a, blend["b1"])

        assert fresh(Batch, blend["b2"]).status == "READY"
        assert fresh(Lot, blend["lot"]).phase == "BRIGHT"

    def test_missing_and_foreign_batch(self, db_session, ctx_a, ctx_b, make_batch):
        with pytest.raises(NotFoundError):
            production_service.start_packaging(ctx_a, 99999)

        foreign = make_batch(ctx_b, status="READY")
        with pytest.raises(NotFoundError):
            production_service.start_packaging(ctx_a, foreign.id)

    def test_rejects_unknown_package_type(self, db_session, ctx_a, blend, fresh):
        with pytest.raises(ValidationError):
            production_service.start_packaging(ctx_a, blend["b1"], package_type="GROWLER_2000")
        with pytest.raises(ValidationError):
            production_service.start_packaging(ctx_a, blend["b1"], package_type="KEG_50", quantity=0)
        assert fresh(Batch, blend["b1"]).status == "READY"

    def test_failure_mid_transaction_rolls_back_everything(self, db_session, ctx_a, blend, fresh, monkeypatch):
        """The second timeline write fails after both batches were flushed."""
        real_append = production_service.append_timeline_event
        calls = {"n": 0}

        def flaky_append(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise SQLAlchemyError("disk I/O error")
            return real_append(*args, **kwargs)

        monkeypatch.setattr(production_service, "append_timeline_event", flaky_append)

        with pytest.raises(TransitionFailure):
            production_service.start_packaging(ctx_a, blend["b1"], package_type="BOTTLE_500", quantity=100)

        assert calls["n"] == 2
        assert fresh(Batch, blend["b1"]).status == "READY"
        assert fresh(Batch, blend["b2"]).status == "READY"
        assert fresh(Batch, blend["b1"]).packaging_started_at is None
        assert fresh(Lot, blend["lot"]).phase == "BRIGHT"
        assert _assignment(db_session, blend["lot"]).phase == "BRIGHT"
        assert _events(db_session, blend["b1"], "PACKAGING_STARTED") == []

    def test_completed_sibling_is_left_out(self, db_session, ctx_a, blend, fresh):
        sibling = fresh(Batch, blend["b2"])
        sibling.status = "COMPLETED"
        db_session.commit()

        result = production_service.start_packaging(ctx_a, blend["b1"])

        assert result.blended_batches_updated == 1
        assert fresh(Batch, blend["b2"]).status == "COMPLETED"
        assert _events(db_session, blend["b2"], "PACKAGING_STARTED") == []

    def test_cancelled_sibling_is_left_out(self, db_session, ctx_a, blend, fresh):
        production_service.cancel_batch(ctx_a, blend["b2"], reason="Infected")

        result = production_service.start_packaging(ctx_a, blend["b1"])

        assert result.blended_batches_updated == 1
        assert fresh(Batch, blend["b2"]).status == "CANCELLED"

    def test_sibling_past_target_does_not_regress(self, db_session, ctx_a, blend, fresh):
        behind = fresh(Batch, blend["b1"])
        behind.status = "CONDITIONING"
        db_session.commit()
        ahead = fresh(Batch, blend["b2"])
        ahead.status = "PACKAGING"
        db_session.commit()
        lot = fresh(Lot, blend["lot"])
        lot.phase = "PACKAGING"
        db_session.commit()

        result = production_service.mark_ready(ctx_a, blend["b1"])

        assert result.blended_batches_updated == 1
        assert fresh(Batch, blend["b1"]).status == "READY"
        assert fresh(Batch, blend["b2"]).status == "PACKAGING"
        assert fresh(Lot, blend["lot"]).phase == "PACKAGING"
        assert _events(db_session, blend["b2"], "READY_FOR_PACKAGING") == []

    def test_sibling_at_target_is_left_alone(self, db_session, ctx_a, blend, fresh):
        behind = fresh(Batch, blend["b1"])
        behind.status = "FERMENTING"
        db_session.commit()
        ready_at = fresh(Batch, blend["b2"]).ready_at

        result = production_service.mark_ready(ctx_a, blend["b1"])

        assert result.blended_batches_updated == 1
        assert fresh(Batch, blend["b2"]).ready_at == ready_at
        assert fresh(Lot, blend["lot"]).phase == "BRIGHT"


class TestLifecycle:
    def test_full_walk(self, db_session, ctx_a, make_batch, make_tank, fresh):
        b1 = make_batch(ctx_a, volume=500)
        b2 = make_batch(ctx_a, volume=400)
        tank = make_tank(ctx_a, capacity=1000)
        lot = lot_service.create_lot(
            ctx_a, "L-WALK", members=[(b1.id, 500), (b2.id, 400)], equipment_id=tank.id
        )

        steps = [
            (production_service.start_fermentation, "FERMENTING", "FERMENTATION"),
            (production_service.transfer_to_conditioning, "CONDITIONING", "CONDITIONING"),
            (production_service.mark_ready, "READY", "BRIGHT"),
            (production_service.start_packaging, "PACKAGING", "PACKAGING"),
        ]
        for transition, status, phase in steps:
            result = transition(ctx_a, b1.id)
            assert result.blended_batches_updated == 2
            assert fresh(Batch, b2.id).status == status
            assert fresh(Lot, lot.id).phase == phase
            assert _assignment(db_session, lot.id).phase == phase

        production_service.complete_batch(ctx_a, b2.id)

        assert fresh(Batch, b1.id).status == "COMPLETED"
        assert fresh(Batch, b1.id).completed_at is not None
        finished = fresh(Lot, lot.id)
        assert finished.status == "COMPLETED"
        assert finished.completed_at is not None
        assignment = _assignment(db_session, lot.id)
        assert assignment.status == "COMPLETED"
        assert assignment.ended_at is not None

    def test_ready_directly_from_fermenting(self, db_session, ctx_a, make_batch, fresh):
        batch = make_batch(ctx_a, status="FERMENTING")
        production_service.mark_ready(ctx_a, batch.id)
        assert fresh(Batch, batch.id).status == "READY"

    def test_no_skipping(self, db_session, ctx_a, make_batch):
        batch = make_batch(ctx_a)
        with pytest.raises(InvalidStateError):
            production_service.mark_ready(ctx_a, batch.id)
        with pytest.raises(InvalidStateError):
            production_service.complete_batch(ctx_a, batch.id)

    def test_create_batch_records_timeline(self, db_session, ctx_a):
        batch = production_service.create_batch(ctx_a, "IPA-01", volume="1000.5")
        assert batch.status == "PLANNED"
        assert len(_events(db_session, batch.id, "BATCH_CREATED")) == 1

    def test_duplicate_batch_number(self, db_session, ctx_a):
        production_service.create_batch(ctx_a, "IPA-01", volume=1000)
        with pytest.raises(ValidationError):
            production_service.create_batch(ctx_a, "IPA-01", volume=1000)


class TestCancel:
    def test_cancel_returns_consumed_stock(self, db_session, ctx_a, make_batch, make_item, fresh):
        batch = make_batch(ctx_a, status="FERMENTING")
        malt = make_item(ctx_a, "MALT", balance=500, category="RAW_MATERIAL")
        hops = make_item(ctx_a, "HOPS", balance=20, category="RAW_MATERIAL")
        inventory_service.deduct_inventory(ctx_a, 200, item_id=malt.id, batch_id=batch.id)
        inventory_service.deduct_inventory(ctx_a, "2.5", item_id=hops.id, batch_id=batch.id)

        result = production_service.cancel_batch(ctx_a, batch.id, reason="Stuck fermentation")

        assert fresh(Batch, batch.id).status == "CANCELLED"
        assert len(result.ledger_entries) == 2
        assert ledger_service.get_balance(ctx_a, malt.id) == Decimal("500")
        assert ledger_service.get_balance(ctx_a, hops.id) == Decimal("20")
        assert ledger_service.compute_ledger_balance(ctx_a, hops.id) == Decimal("20")

        returns = db_session.query(LedgerEntry).filter_by(batch_id=batch.id, type="RETURN").all()
        assert sorted(e.quantity for e in returns) == [Decimal("2.5"), Decimal("200")]

        events = _events(db_session, batch.id, "CANCELLED")
        assert len(events) == 1
        assert events[0].description == "Stuck fermentation"

    def test_cancel_reports_no_blend_count(self, db_session, ctx_a, blend, fresh):
        data = production_service.cancel_batch(ctx_a, blend["b2"]).to_dict()

        assert "blended_batches_updated" not in data
        assert data["batch"]["status"] == "CANCELLED"
        assert fresh(Batch, blend["b1"]).status == "READY"

    def test_cancel_twice_is_rejected(self, db_session, ctx_a, make_batch):
        batch = make_batch(ctx_a)
        production_service.cancel_batch(ctx_a, batch.id)
        with pytest.raises(InvalidStateError):
            production_service.cancel_batch(ctx_a, batch.id)

    def test_completed_batch_cannot_be_cancelled(self, db_session, ctx_a, make_batch):
        batch = make_batch(ctx_a, status="COMPLETED")
        with pytest.raises(InvalidStateError):
            production_service.cancel_batch(ctx_a, batch.id)
