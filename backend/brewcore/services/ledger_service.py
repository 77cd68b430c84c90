# Overview: Service-layer operations for the inventory ledger and its balance cache.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import and_, func, or_, update

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Batch, InventoryItem, LedgerEntry, LEDGER_TYPES
from ..models.inventory import QUANTITY_SCALE, decimal_str
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import coerce_choice, coerce_quantity, coerce_text
from .concurrency import run_atomic
from .tenant_service import TenantContext, get_owned, tenant_scoped

"""
brewcore Ledger Invariants (authoritative)

- ledger_entries is append-only: rows are inserted here and nowhere else.
- inventory_items.cached_balance == SUM(ledger_entries.quantity) per item after
  every commit. The entry insert and the cache UPDATE share one transaction.
- The cache is moved by a single guarded UPDATE statement
  (cached_balance = round(cached_balance + delta) [AND that sum >= floor]);
  the floor check and the write can never interleave with another writer.
- This module does not decide sign policy; callers pass `floor` when a movement
  must not overdraw the item.
"""


@dataclass(frozen=True)
class BalanceChange:
    """Outcome of one ledger append: the entry plus the balance it moved."""
    item: InventoryItem
    previous_balance: Decimal
    new_balance: Decimal
    ledger_entry: LedgerEntry

    def to_dict(self) -> dict:
        return {
            "item": self.item.to_dict(),
            "previous_balance": decimal_str(self.previous_balance),
            "new_balance": decimal_str(self.new_balance),
            "ledger_entry": self.ledger_entry.to_dict(),
        }


def append_entry(
    ctx: TenantContext,
    item_id: int,
    quantity: Decimal,
    entry_type: str,
    *,
    batch_id: int | None = None,
    notes: str | None = None,
    floor: Decimal | None = None,
) -> BalanceChange:
    """
    Insert one entry and move the cache, inside the caller's transaction.

    Does not commit. Callers run it through run_atomic (or their own unit of
    work) so that a later failure rolls the entry and the cache back together.

    Raises:
        NotFoundError: item (or referenced batch) missing or another tenant's
        InsufficientStockError: floor given and the movement would cross it
    """
    item = get_owned(ctx, InventoryItem, item_id, label="Item")
    if batch_id is not None:
        get_owned(ctx, Batch, batch_id, label="Batch")

    # Rounded in SQL: SQLite binds Numeric as float, so 0.3 - 0.1 - 0.2 would
    # land just below zero without it.
    moved = func.round(
        InventoryItem.cached_balance + quantity,
        QUANTITY_SCALE,
        type_=InventoryItem.cached_balance.type,
    )
    stmt = (
        update(InventoryItem)
        .where(InventoryItem.id == item.id, InventoryItem.tenant_id == ctx.tenant_id)
        .values(
            cached_balance=moved,
            balance_updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if floor is not None:
        stmt = stmt.where(moved >= floor)

    result = db.session.execute(stmt)
    db.session.refresh(item)

    if result.rowcount != 1:
        raise InsufficientStockError(
            item_id=item.id,
            current_balance=Decimal(item.cached_balance),
            requested=abs(quantity),
        )

    entry = LedgerEntry(
        tenant_id=ctx.tenant_id,
        item_id=item.id,
        quantity=quantity,
        type=entry_type,
        batch_id=batch_id,
        notes=notes,
        created_by=ctx.actor,
    )
    db.session.add(entry)
    db.session.flush()

    new_balance = Decimal(item.cached_balance)
    return BalanceChange(
        item=item,
        previous_balance=new_balance - quantity,
        new_balance=new_balance,
        ledger_entry=entry,
    )


def append_ledger_entry(
    ctx: TenantContext,
    item_id: int,
    quantity,
    entry_type: str,
    *,
    batch_id: int | None = None,
    notes: str | None = None,
) -> BalanceChange:
    """Validated, committed append. Any non-zero signed quantity is accepted."""
    quantity = coerce_quantity(quantity)
    entry_type = coerce_choice(entry_type, LEDGER_TYPES, "type")
    notes = coerce_text(notes, "notes")

    return run_atomic(
        lambda: append_entry(ctx, item_id, quantity, entry_type, batch_id=batch_id, notes=notes)
    )


def get_balance(ctx: TenantContext, item_id: int) -> Decimal:
    """Cached balance for one item (single-row read, no aggregation)."""
    balance = (
        db.session.query(InventoryItem.cached_balance)
        .filter(InventoryItem.id == item_id, InventoryItem.tenant_id == ctx.tenant_id)
        .scalar()
    )
    if balance is None:
        raise NotFoundError(f"Item {item_id} not found")
    return Decimal(balance)


def get_item(ctx: TenantContext, id_or_sku) -> InventoryItem:
    """Look an item up by numeric id first, then by SKU."""
    ref = str(id_or_sku).strip()
    if not ref:
        raise ValidationError("Item reference is required")

    item = None
    if ref.isdigit():
        item = tenant_scoped(ctx, InventoryItem).filter(InventoryItem.id == int(ref)).first()
    if item is None:
        item = tenant_scoped(ctx, InventoryItem).filter(InventoryItem.sku == ref).first()
    if item is None:
        raise NotFoundError(f"Item {ref} not found")
    return item


def _encode_cursor(entry: LedgerEntry) -> str:
    return f"{entry.created_at.isoformat()}|{entry.id}"


def _decode_cursor(cursor: str):
    created_raw, sep, id_raw = cursor.rpartition("|")
    if not sep or not id_raw.isdigit():
        raise ValidationError("Invalid cursor")
    try:
        created_at = parse_iso_datetime(created_raw)
    except ValueError:
        raise ValidationError("Invalid cursor")
    if created_at is None:
        raise ValidationError("Invalid cursor")
    return created_at, int(id_raw)


def _resolve_limit(limit) -> int:
    default = current_app.config.get("LEDGER_HISTORY_DEFAULT_LIMIT", 100)
    maximum = current_app.config.get("LEDGER_HISTORY_MAX_LIMIT", 500)
    if limit is None or limit == "":
        return default
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        raise ValidationError("limit must be an integer")
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    return min(limit, maximum)


def get_ledger_history(ctx: TenantContext, id_or_sku, limit=None, cursor: str | None = None):
    """
    Most-recent-first page of an item's ledger.

    Returns (entries, next_cursor). next_cursor is None on the last page; pass
    it back unchanged to continue. Ordering is (created_at DESC, id DESC) so
    entries sharing a timestamp are still paged deterministically.
    """
    item = get_item(ctx, id_or_sku)
    limit = _resolve_limit(limit)

    query = tenant_scoped(ctx, LedgerEntry).filter(LedgerEntry.item_id == item.id)
    if cursor:
        created_at, entry_id = _decode_cursor(cursor)
        query = query.filter(
            or_(
                LedgerEntry.created_at < created_at,
                and_(LedgerEntry.created_at == created_at, LedgerEntry.id < entry_id),
            )
        )

    rows = (
        query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .limit(limit + 1)
        .all()
    )
    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        next_cursor = _encode_cursor(rows[-1])
    return rows, next_cursor


def compute_ledger_balance(ctx: TenantContext, item_id: int) -> Decimal:
    """Source-of-truth balance: SUM of the item's ledger entries."""
    get_owned(ctx, InventoryItem, item_id, label="Item")
    total = (
        db.session.query(func.coalesce(func.sum(LedgerEntry.quantity), 0))
        .filter(LedgerEntry.tenant_id == ctx.tenant_id, LedgerEntry.item_id == item_id)
        .scalar()
    )
    return Decimal(str(total)).quantize(Decimal("0.001"))


def reconcile_balances(ctx: TenantContext, *, fix: bool = False) -> list[dict]:
    """
    Compare every item's cache with its ledger sum.

    Returns one dict per drifted item. With fix=True the cache is rewritten
    from the ledger in one transaction; ledger rows are never touched.
    """
    sums = dict(
        db.session.query(LedgerEntry.item_id, func.sum(LedgerEntry.quantity))
        .filter(LedgerEntry.tenant_id == ctx.tenant_id)
        .group_by(LedgerEntry.item_id)
        .all()
    )

    drifted = []
    for item in tenant_scoped(ctx, InventoryItem).order_by(InventoryItem.id).all():
        ledger_total = Decimal(str(sums.get(item.id) or 0)).quantize(Decimal("0.001"))
        cached = Decimal(item.cached_balance or 0).quantize(Decimal("0.001"))
        if cached != ledger_total:
            drifted.append({
                "item_id": item.id,
                "sku": item.sku,
                "cached_balance": decimal_str(cached),
                "ledger_balance": decimal_str(ledger_total),
            })

    if fix and drifted:
        def _rewrite():
            for row in drifted:
                db.session.execute(
                    update(InventoryItem)
                    .where(InventoryItem.id == row["item_id"], InventoryItem.tenant_id == ctx.tenant_id)
                    .values(cached_balance=Decimal(row["ledger_balance"]), balance_updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )

        run_atomic(_rewrite)
        current_app.logger.warning(
            "Rewrote cached balance for %s item(s) in tenant %s", len(drifted), ctx.tenant_id
        )

    return drifted
