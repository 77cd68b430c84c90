# Overview: Lots, blends and tank occupancy, plus the blend-target listing.

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..extensions import db
from ..errors import InvalidStateError, ValidationError
from ..models import (
    Batch,
    Equipment,
    Lot,
    LotBatch,
    TankAssignment,
    EQUIPMENT_KINDS,
    LOT_PHASES,
    TERMINAL_BATCH_STATUSES,
)
from ..models.inventory import decimal_str
from ..time_utils import utcnow
from ..validation import coerce_choice, coerce_int, coerce_quantity, coerce_text
from .concurrency import run_atomic
from .tenant_service import TenantContext, get_owned, tenant_scoped
from .timeline_service import append_timeline_event
"""
brewcore Lot Invariants (authoritative)

- A batch belongs to at most one non-completed lot.
- volume_contribution is fixed when the batch joins and is > 0.
- SUM(volume_contribution) over the non-terminal members of a lot never
  exceeds its tank's capacity (when the capacity is known).
- A lot occupies at most one tank through a non-completed TankAssignment.
- list_active_lots only returns lots that are safe blend targets: top-level,
  with valid member batches, positive volume and an active tank assignment.
"""

OPEN_LOT_STATUSES = ("PLANNED", "ACTIVE")


@dataclass(frozen=True)
class LotSummary:
    lot: Lot
    batches: list[Batch]
    total_volume: Decimal
    tank_assignment: TankAssignment
    remaining_capacity: Decimal | None
    member_volumes: dict[int, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict:
        tank = self.tank_assignment.equipment
        return {
            **self.lot.to_dict(),
            "total_volume": decimal_str(self.total_volume),
            "remaining_capacity": decimal_str(self.remaining_capacity),
            "batches": [
                {
                    "id": b.id,
                    "batch_number": b.batch_number,
                    "status": b.status,
                    "volume_contribution": decimal_str(self.member_volumes.get(b.id)),
                }
                for b in self.batches
            ],
            "tank_assignment": self.tank_assignment.to_dict(),
            "tank": tank.to_dict() if tank is not None else None,
        }


def create_equipment(
    ctx: TenantContext,
    name: str,
    *,
    kind: str = "FERMENTER",
    capacity=None,
) -> Equipment:
    name = coerce_text(name, "name", max_length=128)
    if not name:
        raise ValidationError("name is required")
    kind = coerce_choice(kind, EQUIPMENT_KINDS, "kind")
    if capacity is not None:
        capacity = coerce_quantity(capacity, "capacity", positive=True)

    if tenant_scoped(ctx, Equipment).filter(Equipment.name == name).first():
        raise ValidationError(f"Equipment {name} already exists")

    def _op():
        tank = Equipment(tenant_id=ctx.tenant_id, name=name, kind=kind, capacity=capacity)
        db.session.add(tank)
        db.session.flush()
        return tank

    return run_atomic(_op)


def _open_lot_of(ctx: TenantContext, batch_id: int) -> Lot | None:
    return (
        tenant_scoped(ctx, Lot)
        .join(LotBatch, LotBatch.lot_id == Lot.id)
        .filter(LotBatch.batch_id == batch_id, Lot.status != "COMPLETED")
        .first()
    )


def _blendable_batch(ctx: TenantContext, batch_id) -> Batch:
    batch = get_owned(ctx, Batch, coerce_int(batch_id, "batch_id"), label="Batch")
    if batch.status in TERMINAL_BATCH_STATUSES:
        raise InvalidStateError(f"Batch {batch.batch_number} is {batch.status}")
    existing = _open_lot_of(ctx, batch.id)
    if existing is not None:
        raise InvalidStateError(
            f"Batch {batch.batch_number} already belongs to lot {existing.lot_code}"
        )
    return batch


def _active_assignment(lot: Lot) -> TankAssignment | None:
    """Most recent non-completed assignment of a lot."""
    open_assignments = [a for a in lot.tank_assignments if a.status != "COMPLETED"]
    if not open_assignments:
        return None
    return max(open_assignments, key=lambda a: (a.created_at, a.id))


def _check_capacity(tank: Equipment | None, current: Decimal, adding: Decimal) -> None:
    if tank is None or tank.capacity is None:
        return
    capacity = Decimal(tank.capacity)
    if current + adding > capacity:
        raise ValidationError(
            f"Tank {tank.name} capacity exceeded: capacity {decimal_str(capacity)}, "
            f"in tank {decimal_str(current)}, adding {decimal_str(adding)}"
        )


def create_lot(
    ctx: TenantContext,
    lot_code: str,
    *,
    phase: str = "FERMENTATION",
    members=(),
    equipment_id: int | None = None,
    parent_lot_id: int | None = None,
) -> Lot:
    """
    Create a lot from (batch_id, volume_contribution) pairs.

    With an equipment_id the lot is placed in that tank through an ACTIVE
    assignment and the contributions must fit its capacity. More than one
    member makes the lot a blend.
    """
    lot_code = coerce_text(lot_code, "lot_code", max_length=64)
    if not lot_code:
        raise ValidationError("lot_code is required")
    phase = coerce_choice(phase, LOT_PHASES, "phase")
    contributions = [
        (coerce_int(batch_id, "batch_id"), coerce_quantity(volume, "volume_contribution", positive=True))
        for batch_id, volume in members
    ]
    batch_ids = [batch_id for batch_id, _ in contributions]
    if len(set(batch_ids)) != len(batch_ids):
        raise ValidationError("A batch can only be listed once per lot")

    if tenant_scoped(ctx, Lot).filter(Lot.lot_code == lot_code).first():
        raise ValidationError(f"Lot {lot_code} already exists")

    def _op():
        tank = None
        if equipment_id is not None:
            tank = get_owned(ctx, Equipment, equipment_id, label="Tank")
        if parent_lot_id is not None:
            get_owned(ctx, Lot, parent_lot_id, label="Lot")

        total = sum((volume for _, volume in contributions), Decimal("0"))
        _check_capacity(tank, Decimal("0"), total)

        lot = Lot(
            tenant_id=ctx.tenant_id,
            lot_code=lot_code,
            phase=phase,
            status="ACTIVE" if contributions else "PLANNED",
            parent_lot_id=parent_lot_id,
        )
        db.session.add(lot)
        db.session.flush()

        for batch_id, volume in contributions:
            batch = _blendable_batch(ctx, batch_id)
            db.session.add(LotBatch(
                tenant_id=ctx.tenant_id,
                lot_id=lot.id,
                batch_id=batch.id,
                volume_contribution=volume,
            ))

        if tank is not None:
            db.session.add(TankAssignment(
                tenant_id=ctx.tenant_id,
                lot_id=lot.id,
                equipment_id=tank.id,
                phase=phase,
                status="ACTIVE",
                started_at=utcnow(),
            ))
        db.session.flush()
        return lot

    return run_atomic(_op)


def add_batch_to_lot(ctx: TenantContext, lot_id: int, batch_id: int, volume_contribution) -> Lot:
    """
    Blend one more batch into an open lot.

    Rejected when the lot is completed, the batch already sits in another open
    lot, or the lot's tank has no room for the contribution.
    """
    volume = coerce_quantity(volume_contribution, "volume_contribution", positive=True)

    def _op():
        lot = get_owned(ctx, Lot, lot_id, label="Lot", lock=True)
        if lot.status not in OPEN_LOT_STATUSES:
            raise InvalidStateError(f"Lot {lot.lot_code} is {lot.status}")
        batch = _blendable_batch(ctx, batch_id)

        assignment = _active_assignment(lot)
        current = sum(
            (Decimal(m.volume_contribution) for m in lot.members
             if m.batch is not None and m.batch.status not in TERMINAL_BATCH_STATUSES),
            Decimal("0"),
        )
        _check_capacity(assignment.equipment if assignment else None, current, volume)

        db.session.add(LotBatch(
            tenant_id=ctx.tenant_id,
            lot_id=lot.id,
            batch_id=batch.id,
            volume_contribution=volume,
        ))
        lot.status = "ACTIVE"
        db.session.flush()

        append_timeline_event(
            ctx,
            batch.id,
            "BLENDED",
            f"Blended into lot {lot.lot_code}",
            payload={"lot_id": lot.id, "volume_contribution": decimal_str(volume)},
        )
        return lot

    return run_atomic(_op)


def list_active_lots(ctx: TenantContext, phase: str | None = None) -> list[LotSummary]:
    """
    Blend-target candidates.

    Candidates are top-level lots in PLANNED/ACTIVE status with at least one
    member (optionally restricted to one phase). Members whose batch is missing
    or terminal (COMPLETED or CANCELLED) are dropped, then a lot is skipped when nothing is left, when
    its total volume is not positive, or when it has no open tank assignment.
    """
    query = (
        tenant_scoped(ctx, Lot)
        .filter(
            Lot.parent_lot_id.is_(None),
            Lot.status.in_(OPEN_LOT_STATUSES),
            Lot.members.any(),
        )
    )
    if phase:
        query = query.filter(Lot.phase == coerce_choice(phase, LOT_PHASES, "phase"))

    summaries = []
    for lot in query.order_by(Lot.created_at.desc(), Lot.id.desc()).all():
        batches = []
        volumes: dict[int, Decimal] = {}
        for member in lot.members:
            batch = member.batch
            if batch is None or batch.tenant_id != ctx.tenant_id or batch.status in TERMINAL_BATCH_STATUSES:
                continue
            batches.append(batch)
            volumes[batch.id] = Decimal(member.volume_contribution)

        total = sum(volumes.values(), Decimal("0"))
        if not batches or total <= 0:
            continue

        assignment = _active_assignment(lot)
        if assignment is None:
            continue

        remaining = None
        tank = assignment.equipment
        if tank is not None and tank.capacity is not None:
            remaining = Decimal(tank.capacity) - total

        summaries.append(LotSummary(
            lot=lot,
            batches=batches,
            total_volume=total,
            tank_assignment=assignment,
            remaining_capacity=remaining,
            member_volumes=volumes,
        ))
    return summaries
