from __future__ import annotations

from decimal import Decimal

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from ..errors import InvalidStateError
from ..time_utils import to_utc_z, utcnow


ITEM_CATEGORIES = ("RAW_MATERIAL", "PACKAGING", "CONSUMABLE", "FINISHED_GOOD")

LEDGER_TYPES = (
    "PURCHASE",
    "CONSUMPTION",
    "ADJUSTMENT_ADD",
    "ADJUSTMENT_REMOVE",
    "RETURN",
    "PRODUCTION",
)

# Quantities and balances are stored with three decimal places (ml / g precision)
QUANTITY_SCALE = 3


def decimal_str(value) -> str | None:
    if value is None:
        return None
    return format(Decimal(value).normalize(), "f")


class InventoryItem(db.Model):
    """
    Stock-keeping item (malt, hops, bottles, caps, labels, finished beer...).

    BALANCE CACHE:
    cached_balance is a materialized SUM(ledger_entries.quantity) for this item.
    It is written ONLY by ledger_service in the same transaction that inserts
    the ledger entry, through a single guarded UPDATE statement.
    Never assign cached_balance from application code.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sku", name="uq_inventory_items_tenant_sku"),
        db.Index("ix_inventory_items_tenant_category", "tenant_id", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="pcs")

    cached_balance = db.Column(db.Numeric(18, QUANTITY_SCALE), nullable=False, default=0)
    balance_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    reorder_point = db.Column(db.Numeric(18, QUANTITY_SCALE), nullable=True)
    cost_per_unit = db.Column(db.Numeric(18, 4), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    tenant = db.relationship("Tenant")

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} balance={self.cached_balance}>"

    @property
    def is_below_reorder_point(self) -> bool:
        if self.reorder_point is None:
            return False
        return Decimal(self.cached_balance or 0) <= Decimal(self.reorder_point)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "cached_balance": decimal_str(self.cached_balance),
            "balance_updated_at": to_utc_z(self.balance_updated_at),
            "reorder_point": decimal_str(self.reorder_point),
            "cost_per_unit": decimal_str(self.cost_per_unit),
            "supplier": self.supplier,
            "is_active": self.is_active,
            "is_below_reorder_point": self.is_below_reorder_point,
        }


class LedgerEntry(db.Model):
    """
    Immutable signed quantity movement for one inventory item.

    APPEND-ONLY:
    - positive quantity increases stock, negative decreases it
    - rows are never updated or deleted (enforced by the mapper events below);
      corrections are made by appending an offsetting entry
    - batch_id is a weak back-reference used for traceability and reversals
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.Index("ix_ledger_entries_item_created", "item_id", "created_at", "id"),
        db.Index("ix_ledger_entries_tenant_batch", "tenant_id", "batch_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)

    quantity = db.Column(db.Numeric(18, QUANTITY_SCALE), nullable=False)
    type = db.Column(db.String(32), nullable=False, index=True)

    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    item = db.relationship("InventoryItem", backref=db.backref("ledger_entries", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<LedgerEntry id={self.id} item_id={self.item_id} {self.type} {self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "quantity": decimal_str(self.quantity),
            "type": self.type,
            "batch_id": self.batch_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(LedgerEntry, "before_update")
def _reject_ledger_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise InvalidStateError(f"Ledger entry {target.id} is immutable; append an offsetting entry instead")


@event.listens_for(LedgerEntry, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise InvalidStateError(f"Ledger entry {target.id} cannot be deleted; the ledger is append-only")
