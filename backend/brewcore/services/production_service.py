# Overview: Production transition engine; moves batches, their lot and its tank assignments together.

"""
brewcore Production Lifecycle

================================================================================
PURPOSE: All-or-nothing status transitions across blended batches
================================================================================

STATE MACHINE (Batch):
    PLANNED -> FERMENTING -> CONDITIONING -> READY -> PACKAGING -> COMPLETED
    FERMENTING -> READY is allowed (no conditioning step)
    CANCELLED is reachable from any non-terminal status

TRANSITION SET:
    The requested batch plus, when it belongs to a non-completed lot, every
    other member of that lot (a blend advances as one). Members already in a
    terminal status (COMPLETED, CANCELLED) are left out rather than failing the
    whole call, and so are members already at or past the target status: a
    batch never regresses, and neither does the lot phase.

RULES (NON-NEGOTIABLE):
1. Batch statuses, the lot's phase/status, the lot's non-completed tank
   assignments and the timeline events are written in ONE transaction
2. Any persistence failure rolls everything back and surfaces as
   TransitionFailure; transitions are never retried automatically
3. NotFoundError / InvalidStateError are raised before anything is written
4. Batch and Lot rows are versioned, so two concurrent transitions of the same
   blend cannot both commit

================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..extensions import db
from ..errors import InvalidStateError, TransitionFailure, ValidationError
from ..models import (
    Batch,
    BATCH_STATUSES,
    Equipment,
    LedgerEntry,
    Lot,
    LOT_PHASES,
    LotBatch,
    TERMINAL_BATCH_STATUSES,
)
from ..models.inventory import decimal_str
from ..time_utils import utcnow
from ..validation import PACKAGE_TYPES, coerce_choice, coerce_int, coerce_quantity, coerce_text
from .concurrency import run_atomic
from .ledger_service import append_entry
from .tenant_service import TenantContext, get_owned, tenant_scoped
from .timeline_service import append_timeline_event


# Batch column stamped when a batch enters each status
STATUS_TIMESTAMPS = {
    "FERMENTING": "fermentation_started_at",
    "CONDITIONING": "conditioning_started_at",
    "READY": "ready_at",
    "PACKAGING": "packaging_started_at",
    "COMPLETED": "completed_at",
    "CANCELLED": "cancelled_at",
}


@dataclass(frozen=True)
class TransitionResult:
    batch: Batch
    blended_batches_updated: int | None = None
    lot: Lot | None = None
    ledger_entries: tuple[LedgerEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        data = {
            "batch_id": self.batch.id,
            "batch": self.batch.to_dict(),
            "lot": self.lot.to_dict() if self.lot is not None else None,
        }
        if self.blended_batches_updated is not None:
            data["blended_batches_updated"] = self.blended_batches_updated
        if self.ledger_entries:
            data["ledger_entries"] = [entry.to_dict() for entry in self.ledger_entries]
        return data


def get_batch(ctx: TenantContext, batch_id: int) -> Batch:
    return get_owned(ctx, Batch, batch_id, label="Batch")


def list_batches(ctx: TenantContext, *, status: str | None = None) -> list[Batch]:
    query = tenant_scoped(ctx, Batch)
    if status:
        query = query.filter(Batch.status == coerce_choice(status, BATCH_STATUSES, "status"))
    return query.order_by(Batch.id).all()


def create_batch(
    ctx: TenantContext,
    batch_number: str,
    *,
    volume,
    recipe_id: int | None = None,
    tank_id: int | None = None,
    notes: str | None = None,
) -> Batch:
    """Log a new brew in PLANNED status with a BATCH_CREATED timeline event."""
    batch_number = coerce_text(batch_number, "batch_number", max_length=64)
    if not batch_number:
        raise ValidationError("batch_number is required")
    volume = coerce_quantity(volume, "volume", positive=True)
    recipe_id = coerce_int(recipe_id, "recipe_id", required=False)
    notes = coerce_text(notes, "notes", max_length=2000)

    if tenant_scoped(ctx, Batch).filter(Batch.batch_number == batch_number).first():
        raise ValidationError(f"Batch number {batch_number} already exists")

    def _op():
        if tank_id is not None:
            get_owned(ctx, Equipment, tank_id, label="Tank")
        batch = Batch(
            tenant_id=ctx.tenant_id,
            batch_number=batch_number,
            recipe_id=recipe_id,
            tank_id=tank_id,
            status="PLANNED",
            volume=volume,
            notes=notes,
        )
        db.session.add(batch)
        db.session.flush()
        append_timeline_event(
            ctx,
            batch.id,
            "BATCH_CREATED",
            "Batch created",
            payload={"batch_number": batch_number, "volume": decimal_str(volume)},
        )
        return batch

    return run_atomic(_op)


def find_active_lot(ctx: TenantContext, batch_id: int) -> Lot | None:
    """The non-completed lot a batch belongs to, if any."""
    return (
        tenant_scoped(ctx, Lot)
        .join(LotBatch, LotBatch.lot_id == Lot.id)
        .filter(LotBatch.batch_id == batch_id, Lot.status != "COMPLETED")
        .order_by(Lot.id.desc())
        .first()
    )


def _transition_set(batch: Batch, lot: Lot | None, target: str) -> list[Batch]:
    batches = [batch]
    if lot is None:
        return batches
    for member in lot.members:
        sibling = member.batch
        if sibling is None or sibling.id == batch.id:
            continue
        if sibling.status in TERMINAL_BATCH_STATUSES:
            continue
        if BATCH_STATUSES.index(sibling.status) >= BATCH_STATUSES.index(target):
            continue
        batches.append(sibling)
    return batches


def _forward_phase(current: str | None, requested: str) -> str:
    if current in LOT_PHASES and LOT_PHASES.index(current) > LOT_PHASES.index(requested):
        return current
    return requested


def _sync_lot(lot: Lot, target: str, lot_phase: str | None, now) -> None:
    if target == "COMPLETED":
        lot.status = "COMPLETED"
        lot.completed_at = now
    else:
        lot_phase = _forward_phase(lot.phase, lot_phase)
        lot.phase = lot_phase
        lot.status = "ACTIVE"

    for assignment in lot.tank_assignments:
        if assignment.status == "COMPLETED":
            continue
        if target == "COMPLETED":
            assignment.status = "COMPLETED"
            assignment.ended_at = now
        else:
            assignment.phase = lot_phase
            assignment.status = "ACTIVE"
            if assignment.started_at is None:
                assignment.started_at = now


def _apply_transition(
    ctx: TenantContext,
    batch_id: int,
    *,
    required: tuple[str, ...],
    target: str,
    lot_phase: str | None,
    event_type: str,
    title: str,
    description: str | None = None,
    payload: dict | None = None,
) -> TransitionResult:
    def _op():
        batch = get_owned(ctx, Batch, batch_id, label="Batch", lock=True)
        if batch.status not in required:
            raise InvalidStateError(
                f"Batch {batch.batch_number} is {batch.status}; "
                f"expected {' or '.join(required)}"
            )

        lot = find_active_lot(ctx, batch.id)
        batches = _transition_set(batch, lot, target)

        now = utcnow()
        for member in batches:
            member.status = target
            setattr(member, STATUS_TIMESTAMPS[target], now)
        if lot is not None:
            _sync_lot(lot, target, lot_phase, now)
        db.session.flush()

        for member in batches:
            append_timeline_event(
                ctx,
                member.id,
                event_type,
                title,
                description=description,
                payload=payload,
            )

        return TransitionResult(batch=batch, blended_batches_updated=len(batches), lot=lot)

    return run_atomic(_op, retry=False, failure=TransitionFailure)


def start_fermentation(ctx: TenantContext, batch_id: int, *, notes: str | None = None) -> TransitionResult:
    return _apply_transition(
        ctx, batch_id,
        required=("PLANNED",),
        target="FERMENTING",
        lot_phase="FERMENTATION",
        event_type="FERMENTATION_STARTED",
        title="Fermentation started",
        description=coerce_text(notes, "notes"),
    )


def transfer_to_conditioning(ctx: TenantContext, batch_id: int, *, notes: str | None = None) -> TransitionResult:
    return _apply_transition(
        ctx, batch_id,
        required=("FERMENTING",),
        target="CONDITIONING",
        lot_phase="CONDITIONING",
        event_type="CONDITIONING_STARTED",
        title="Transferred to conditioning",
        description=coerce_text(notes, "notes"),
    )


def mark_ready(ctx: TenantContext, batch_id: int, *, notes: str | None = None) -> TransitionResult:
    return _apply_transition(
        ctx, batch_id,
        required=("FERMENTING", "CONDITIONING"),
        target="READY",
        lot_phase="BRIGHT",
        event_type="READY_FOR_PACKAGING",
        title="Ready for packaging",
        description=coerce_text(notes, "notes"),
    )


def start_packaging(
    ctx: TenantContext,
    batch_id: int,
    *,
    package_type: str | None = None,
    quantity: int | None = None,
    notes: str | None = None,
) -> TransitionResult:
    """
    READY -> PACKAGING for the batch and every blended sibling.

    The timeline payload carries package_type, quantity and, when both are
    known, volume_total in litres.
    """
    package_type = coerce_choice(package_type, PACKAGE_TYPES, "package_type", required=False)
    quantity = coerce_int(quantity, "quantity", required=False)
    if quantity is not None and quantity <= 0:
        raise ValidationError("quantity must be > 0")

    volume_total = None
    if package_type is not None and quantity is not None:
        volume_total = PACKAGE_TYPES[package_type] * Decimal(quantity)

    description = coerce_text(notes, "notes")
    if description is None and package_type is not None:
        description = f"Packaging into {package_type}" + (f" x {quantity}" if quantity else "")

    return _apply_transition(
        ctx, batch_id,
        required=("READY",),
        target="PACKAGING",
        lot_phase="PACKAGING",
        event_type="PACKAGING_STARTED",
        title="Packaging started",
        description=description,
        payload={
            "package_type": package_type,
            "quantity": quantity,
            "volume_total": decimal_str(volume_total),
        },
    )


def complete_batch(ctx: TenantContext, batch_id: int, *, notes: str | None = None) -> TransitionResult:
    """PACKAGING -> COMPLETED; closes the lot and its tank assignments."""
    return _apply_transition(
        ctx, batch_id,
        required=("PACKAGING",),
        target="COMPLETED",
        lot_phase=None,
        event_type="COMPLETED",
        title="Batch completed",
        description=coerce_text(notes, "notes"),
    )


def cancel_batch(ctx: TenantContext, batch_id: int, *, reason: str | None = None) -> TransitionResult:
    """
    Cancel a non-terminal batch.

    Every CONSUMPTION entry booked against the batch gets an offsetting RETURN
    entry through the ledger writer, so stock comes back and caches stay
    reconciled. Only the requested batch is cancelled; lot membership is left
    as it is.
    """
    reason = coerce_text(reason, "reason")

    def _op():
        batch = get_owned(ctx, Batch, batch_id, label="Batch", lock=True)
        if batch.status in TERMINAL_BATCH_STATUSES:
            raise InvalidStateError(f"Batch {batch.batch_number} is already {batch.status}")

        consumptions = (
            tenant_scoped(ctx, LedgerEntry)
            .filter(LedgerEntry.batch_id == batch.id, LedgerEntry.type == "CONSUMPTION")
            .order_by(LedgerEntry.id)
            .all()
        )
        returned = []
        for entry in consumptions:
            change = append_entry(
                ctx,
                entry.item_id,
                -Decimal(entry.quantity),
                "RETURN",
                batch_id=batch.id,
                notes=f"Reversal of ledger entry {entry.id} (batch cancelled)",
            )
            returned.append(change.ledger_entry)

        batch.status = "CANCELLED"
        batch.cancelled_at = utcnow()
        db.session.flush()

        append_timeline_event(
            ctx,
            batch.id,
            "CANCELLED",
            "Batch cancelled",
            description=reason,
            payload={"returned_entry_ids": [entry.id for entry in returned]},
        )
        return TransitionResult(batch=batch, ledger_entries=tuple(returned))

    return run_atomic(_op, retry=False, failure=TransitionFailure)
