# Overview: Deduction/adjustment engine and item provisioning; the only caller of the ledger writer.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..errors import ValidationError
from ..models import InventoryItem, ITEM_CATEGORIES
from ..validation import ADJUSTMENT_TYPES, coerce_choice, coerce_quantity, coerce_text
from .concurrency import run_atomic
from .inventory_resolver import resolve_item
from .ledger_service import BalanceChange, append_entry
from .tenant_service import TenantContext, tenant_scoped
"""
brewcore Inventory Invariants (authoritative)

- Callers pass magnitudes; this module applies the sign.
- CONSUMPTION and ADJUSTMENT_REMOVE never drive a balance below zero. The
  check is the floor on the guarded UPDATE in ledger_service, so two concurrent
  deductions cannot both pass against the same stale balance.
- Resolution and the balance write run in the same transaction.
- A rejected movement writes no ledger entry.
- Add-type movements (ADJUSTMENT_ADD, RETURN, PURCHASE) have no upper bound.
"""

ZERO = Decimal("0")

REMOVE_TYPES = ("ADJUSTMENT_REMOVE",)


def list_items(ctx: TenantContext, *, category: str | None = None, include_inactive: bool = False):
    query = tenant_scoped(ctx, InventoryItem)
    if category:
        query = query.filter(InventoryItem.category == coerce_choice(category, ITEM_CATEGORIES, "category"))
    if not include_inactive:
        query = query.filter(InventoryItem.is_active.is_(True))
    return query.order_by(InventoryItem.sku).all()


def create_inventory_item(
    ctx: TenantContext,
    sku: str,
    name: str,
    category: str,
    unit: str = "pcs",
    *,
    reorder_point=None,
    cost_per_unit=None,
    supplier: str | None = None,
    opening_balance=None,
) -> InventoryItem:
    """
    Provision a stock item.

    A positive opening balance is booked as a PURCHASE entry rather than
    written into the cache, so the item starts out reconciled.
    """
    sku = coerce_text(sku, "sku", max_length=64)
    name = coerce_text(name, "name", max_length=255)
    if not sku or not name:
        raise ValidationError("sku and name are required")
    category = coerce_choice(category, ITEM_CATEGORIES, "category")
    unit = coerce_text(unit, "unit", max_length=16) or "pcs"
    if reorder_point is not None:
        reorder_point = coerce_quantity(reorder_point, "reorder_point", positive=True)
    if cost_per_unit is not None:
        cost_per_unit = coerce_quantity(cost_per_unit, "cost_per_unit", positive=True)
    if opening_balance not in (None, 0, "0"):
        opening_balance = coerce_quantity(opening_balance, "opening_balance", positive=True)
    else:
        opening_balance = None

    if tenant_scoped(ctx, InventoryItem).filter(InventoryItem.sku == sku).first():
        raise ValidationError(f"SKU {sku} already exists")

    def _op():
        item = InventoryItem(
            tenant_id=ctx.tenant_id,
            sku=sku,
            name=name,
            category=category,
            unit=unit,
            cached_balance=ZERO,
            reorder_point=reorder_point,
            cost_per_unit=cost_per_unit,
            supplier=coerce_text(supplier, "supplier", max_length=255),
        )
        db.session.add(item)
        db.session.flush()
        if opening_balance is not None:
            append_entry(ctx, item.id, opening_balance, "PURCHASE", notes="Opening balance")
        return item

    return run_atomic(_op)


def deduct_inventory(
    ctx: TenantContext,
    quantity,
    *,
    item_id: int | None = None,
    category: str | None = None,
    type_hint: str | None = None,
    batch_id: int | None = None,
    notes: str | None = None,
) -> BalanceChange:
    """
    Consume stock for production or packaging.

    The target is resolved (explicit id, size token, keyword, category
    default) inside the same transaction as the guarded balance write.

    Raises:
        ValidationError: quantity not a positive decimal, or no target given
        NotFoundError: nothing resolves for this tenant
        InsufficientStockError: balance would drop below zero (nothing written)
    """
    quantity = coerce_quantity(quantity, positive=True)
    if category is not None:
        category = coerce_choice(category, ITEM_CATEGORIES, "category")
    if item_id is None and category is None:
        raise ValidationError("Either item_id or category is required")
    notes = coerce_text(notes, "notes")

    def _op():
        item = resolve_item(ctx, item_id=item_id, category=category, type_hint=type_hint)
        return append_entry(
            ctx,
            item.id,
            -quantity,
            "CONSUMPTION",
            batch_id=batch_id,
            notes=notes,
            floor=ZERO,
        )

    return run_atomic(_op)


def adjust_inventory(
    ctx: TenantContext,
    item_id: int,
    delta,
    entry_type: str,
    *,
    notes: str | None = None,
) -> BalanceChange:
    """
    Manual stock correction.

    ADJUSTMENT_REMOVE accepts either sign and always removes abs(delta),
    checked against the available balance. The add-type movements require a
    positive delta and are never rejected for balance reasons.
    """
    entry_type = coerce_choice(entry_type, ADJUSTMENT_TYPES, "type")
    delta = coerce_quantity(delta, "delta")
    notes = coerce_text(notes, "notes")

    if entry_type in REMOVE_TYPES:
        signed, floor = -abs(delta), ZERO
    else:
        if delta < 0:
            raise ValidationError(f"delta must be > 0 for {entry_type}")
        signed, floor = delta, None

    return run_atomic(
        lambda: append_entry(ctx, item_id, signed, entry_type, notes=notes, floor=floor)
    )


def purchase_inventory(
    ctx: TenantContext,
    item_id: int,
    quantity,
    *,
    unit_cost=None,
    notes: str | None = None,
) -> BalanceChange:
    """PURCHASE receipt; a given unit_cost becomes the item's cost_per_unit."""
    quantity = coerce_quantity(quantity, positive=True)
    if unit_cost is not None:
        unit_cost = coerce_quantity(unit_cost, "unit_cost", positive=True)
    notes = coerce_text(notes, "notes")

    def _op():
        change = append_entry(ctx, item_id, quantity, "PURCHASE", notes=notes)
        if unit_cost is not None:
            change.item.cost_per_unit = unit_cost
            db.session.flush()
        return change

    return run_atomic(_op)
