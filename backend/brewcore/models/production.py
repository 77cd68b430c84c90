from __future__ import annotations

import json

from ..extensions import db
from .inventory import QUANTITY_SCALE, decimal_str
from ..time_utils import to_utc_z, utcnow


# Batch lifecycle (see production_service for the allowed transitions)
BATCH_STATUSES = (
    "PLANNED",
    "FERMENTING",
    "CONDITIONING",
    "READY",
    "PACKAGING",
    "COMPLETED",
    "CANCELLED",
)
TERMINAL_BATCH_STATUSES = ("COMPLETED", "CANCELLED")

LOT_PHASES = ("FERMENTATION", "CONDITIONING", "BRIGHT", "PACKAGING")
LOT_STATUSES = ("PLANNED", "ACTIVE", "COMPLETED")
ASSIGNMENT_STATUSES = ("PLANNED", "ACTIVE", "COMPLETED")

EQUIPMENT_KINDS = ("FERMENTER", "UNITANK", "BRITE", "KETTLE")

TIMELINE_EVENT_TYPES = (
    "BATCH_CREATED",
    "FERMENTATION_STARTED",
    "CONDITIONING_STARTED",
    "READY_FOR_PACKAGING",
    "PACKAGING_STARTED",
    "COMPLETED",
    "CANCELLED",
    "BLENDED",
)


class Equipment(db.Model):
    """Physical vessel a lot can occupy (fermenter, unitank, brite tank)."""
    __tablename__ = "equipment"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_equipment_tenant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    kind = db.Column(db.String(32), nullable=False, default="FERMENTER")

    # Litres; NULL means unknown, in which case remaining capacity is not computed
    capacity = db.Column(db.Numeric(18, QUANTITY_SCALE), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Equipment id={self.id} name={self.name!r} capacity={self.capacity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "capacity": decimal_str(self.capacity),
            "is_active": self.is_active,
        }


class Batch(db.Model):
    """
    One brewing run.

    LIFECYCLE:
        PLANNED -> FERMENTING -> CONDITIONING -> READY -> PACKAGING -> COMPLETED
        CANCELLED is reachable from any non-terminal status.

    status is written only by production_service. version_id gives optimistic
    locking so two concurrent transitions of the same batch cannot both commit.
    """
    __tablename__ = "batches"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "batch_number", name="uq_batches_tenant_number"),
        db.Index("ix_batches_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    batch_number = db.Column(db.String(64), nullable=False)
    recipe_id = db.Column(db.Integer, nullable=True, index=True)
    tank_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PLANNED")
    volume = db.Column(db.Numeric(18, QUANTITY_SCALE), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    fermentation_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    conditioning_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ready_at = db.Column(db.DateTime(timezone=True), nullable=True)
    packaging_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    tank = db.relationship("Equipment")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Batch id={self.id} number={self.batch_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_number": self.batch_number,
            "recipe_id": self.recipe_id,
            "tank_id": self.tank_id,
            "status": self.status,
            "volume": decimal_str(self.volume),
            "notes": self.notes,
            "fermentation_started_at": to_utc_z(self.fermentation_started_at),
            "conditioning_started_at": to_utc_z(self.conditioning_started_at),
            "ready_at": to_utc_z(self.ready_at),
            "packaging_started_at": to_utc_z(self.packaging_started_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Lot(db.Model):
    """
    Blending / grouping container for one or more batches.

    A lot with more than one member batch is a BLEND: every member advances
    together. phase mirrors the batches it represents; status is
    PLANNED / ACTIVE / COMPLETED. parent_lot_id links split or blended lots
    to the lot they came from.
    """
    __tablename__ = "lots"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "lot_code", name="uq_lots_tenant_code"),
        db.Index("ix_lots_tenant_status_phase", "tenant_id", "status", "phase"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    lot_code = db.Column(db.String(64), nullable=False)
    phase = db.Column(db.String(16), nullable=False, default="FERMENTATION")
    status = db.Column(db.String(16), nullable=False, default="PLANNED")
    parent_lot_id = db.Column(db.Integer, db.ForeignKey("lots.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    members = db.relationship(
        "LotBatch",
        backref="lot",
        lazy=True,
        order_by="LotBatch.id",
    )
    tank_assignments = db.relationship(
        "TankAssignment",
        backref="lot",
        lazy=True,
        order_by="TankAssignment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Lot id={self.id} code={self.lot_code!r} phase={self.phase} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lot_code": self.lot_code,
            "phase": self.phase,
            "status": self.status,
            "parent_lot_id": self.parent_lot_id,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
        }


class LotBatch(db.Model):
    """Join row: one batch's fixed volume contribution to one lot."""
    __tablename__ = "lot_batches"
    __table_args__ = (
        db.UniqueConstraint("lot_id", "batch_id", name="uq_lot_batches_lot_batch"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    lot_id = db.Column(db.Integer, db.ForeignKey("lots.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=False, index=True)

    volume_contribution = db.Column(db.Numeric(18, QUANTITY_SCALE), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    batch = db.relationship("Batch")

    def to_dict(self) -> dict:
        return {
            "lot_id": self.lot_id,
            "batch_id": self.batch_id,
            "volume_contribution": decimal_str(self.volume_contribution),
        }


class TankAssignment(db.Model):
    """
    Which vessel a lot occupies, and in which phase.

    Exactly one non-completed assignment is expected per active lot; completed
    assignments are kept for audit.
    """
    __tablename__ = "tank_assignments"
    __table_args__ = (
        db.Index("ix_tank_assignments_lot_status", "lot_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    lot_id = db.Column(db.Integer, db.ForeignKey("lots.id"), nullable=False)
    equipment_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=False, index=True)

    phase = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="PLANNED")

    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    equipment = db.relationship("Equipment")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lot_id": self.lot_id,
            "equipment_id": self.equipment_id,
            "phase": self.phase,
            "status": self.status,
            "started_at": to_utc_z(self.started_at),
            "ended_at": to_utc_z(self.ended_at),
        }


class BatchTimelineEvent(db.Model):
    """Append-only audit trail of lifecycle events for a batch."""
    __tablename__ = "batch_timeline_events"
    __table_args__ = (
        db.Index("ix_batch_timeline_batch_created", "batch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=False)

    type = db.Column(db.String(32), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # JSON-encoded structured payload
    payload = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "payload": json.loads(self.payload) if self.payload else None,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
