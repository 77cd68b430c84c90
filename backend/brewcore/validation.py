"""
Boundary validation: typed request structs built from loosely-typed payloads.

Every JSON body accepted by the HTTP adapter is turned into one of the frozen
request dataclasses below before it reaches a service. Unknown fields and
unknown enum variants are rejected here rather than passed through. The
coercion helpers are also used by services so non-HTTP callers get the same
checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .models.inventory import ITEM_CATEGORIES, LEDGER_TYPES, QUANTITY_SCALE
from .models.production import LOT_PHASES

__all__ = [
    "ValidationError",
    "PACKAGE_TYPES",
    "ADJUSTMENT_TYPES",
    "coerce_quantity",
    "coerce_int",
    "coerce_choice",
    "coerce_text",
    "LedgerAppendRequest",
    "DeductRequest",
    "AdjustRequest",
    "PurchaseRequest",
    "StartPackagingRequest",
    "NotesRequest",
    "CreateBatchRequest",
    "CreateLotRequest",
    "BlendRequest",
]

# Litres per package unit
PACKAGE_TYPES: dict[str, Decimal] = {
    "KEG_50": Decimal("50"),
    "KEG_30": Decimal("30"),
    "KEG_20": Decimal("20"),
    "BOTTLE_750": Decimal("0.75"),
    "BOTTLE_500": Decimal("0.5"),
    "BOTTLE_330": Decimal("0.33"),
    "CAN_500": Decimal("0.5"),
    "CAN_330": Decimal("0.33"),
}

ADJUSTMENT_TYPES = ("ADJUSTMENT_ADD", "ADJUSTMENT_REMOVE", "RETURN", "PURCHASE")

# Upper bound for a single movement; guards against unit mix-ups (ml sent as l)
MAX_QUANTITY = Decimal("1000000000")

_QUANTUM = Decimal(1).scaleb(-QUANTITY_SCALE)


def coerce_quantity(value: Any, field: str = "quantity", *, positive: bool = False) -> Decimal:
    """
    Normalize a quantity to Decimal with at most QUANTITY_SCALE places.

    - bool is rejected even though it is an int subclass
    - strings must be plain decimals (no exponent, no thousands separators)
    - zero is always rejected; negatives are rejected when positive=True
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, (int, Decimal)):
        qty = Decimal(value)
    elif isinstance(value, float):
        qty = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain decimal number")
        try:
            qty = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not qty.is_finite():
        raise ValidationError(f"{field} must be finite")
    if qty != qty.quantize(_QUANTUM):
        raise ValidationError(f"{field} supports at most {QUANTITY_SCALE} decimal places")
    if qty == 0:
        raise ValidationError(f"{field} must be non-zero")
    if positive and qty < 0:
        raise ValidationError(f"{field} must be > 0")
    if abs(qty) > MAX_QUANTITY:
        raise ValidationError(f"{field} exceeds {MAX_QUANTITY}")
    return qty.quantize(_QUANTUM)


def coerce_int(value: Any, field: str, *, required: bool = True) -> int | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def coerce_choice(value: Any, choices, field: str, *, required: bool = True) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    normalized = value.strip().upper()
    if normalized not in choices:
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {', '.join(choices)}")
    return normalized


def coerce_text(value: Any, field: str, *, max_length: int = 500) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def _check_fields(payload, *, allowed: set[str], required: set[str] = frozenset()) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(k for k in payload if k not in allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    missing = sorted(f for f in required if payload.get(f) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload


@dataclass(frozen=True)
class LedgerAppendRequest:
    quantity: Decimal
    type: str
    batch_id: int | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "LedgerAppendRequest":
        data = _check_fields(
            payload,
            allowed={"quantity", "type", "batch_id", "notes"},
            required={"quantity", "type"},
        )
        return cls(
            quantity=coerce_quantity(data["quantity"]),
            type=coerce_choice(data["type"], LEDGER_TYPES, "type"),
            batch_id=coerce_int(data.get("batch_id"), "batch_id", required=False),
            notes=coerce_text(data.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class DeductRequest:
    """
    Deduction with a loosely-typed target.

    item_id is optional; category + type (free-text hint such as "bottle 500")
    let the resolver pick an item when no id is supplied.
    """
    quantity: Decimal
    item_id: int | None = None
    category: str | None = None
    type_hint: str | None = None
    batch_id: int | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "DeductRequest":
        data = _check_fields(
            payload,
            allowed={"item_id", "category", "type", "quantity", "batch_id", "notes"},
            required={"quantity"},
        )
        item_id = coerce_int(data.get("item_id"), "item_id", required=False)
        category = coerce_choice(data.get("category"), ITEM_CATEGORIES, "category", required=False)
        if item_id is None and category is None:
            raise ValidationError("Either item_id or category is required")
        return cls(
            quantity=coerce_quantity(data["quantity"], positive=True),
            item_id=item_id,
            category=category,
            type_hint=coerce_text(data.get("type"), "type", max_length=64),
            batch_id=coerce_int(data.get("batch_id"), "batch_id", required=False),
            notes=coerce_text(data.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class AdjustRequest:
    delta: Decimal
    type: str
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "AdjustRequest":
        data = _check_fields(
            payload,
            allowed={"delta", "type", "notes"},
            required={"delta", "type"},
        )
        return cls(
            delta=coerce_quantity(data["delta"], "delta"),
            type=coerce_choice(data["type"], ADJUSTMENT_TYPES, "type"),
            notes=coerce_text(data.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class PurchaseRequest:
    quantity: Decimal
    unit_cost: Decimal | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "PurchaseRequest":
        data = _check_fields(
            payload,
            allowed={"quantity", "unit_cost", "notes"},
            required={"quantity"},
        )
        unit_cost = None
        if data.get("unit_cost") is not None:
            unit_cost = coerce_quantity(data["unit_cost"], "unit_cost", positive=True)
        return cls(
            quantity=coerce_quantity(data["quantity"], positive=True),
            unit_cost=unit_cost,
            notes=coerce_text(data.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class StartPackagingRequest:
    package_type: str | None = None
    quantity: int | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "StartPackagingRequest":
        data = _check_fields(payload, allowed={"package_type", "quantity", "notes"})
        quantity = coerce_int(data.get("quantity"), "quantity", required=False)
        if quantity is not None and quantity <= 0:
            raise ValidationError("quantity must be > 0")
        return cls(
            package_type=coerce_choice(data.get("package_type"), PACKAGE_TYPES, "package_type", required=False),
            quantity=quantity,
            notes=coerce_text(data.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class NotesRequest:
    """Body of the simple lifecycle verbs (start-fermentation, complete, cancel...)."""
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "NotesRequest":
        data = _check_fields(payload, allowed={"notes", "reason"})
        return cls(notes=coerce_text(data.get("notes") or data.get("reason"), "notes"))


@dataclass(frozen=True)
class CreateBatchRequest:
    batch_number: str
    volume: Decimal
    recipe_id: int | None = None
    tank_id: int | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "CreateBatchRequest":
        data = _check_fields(
            payload,
            allowed={"batch_number", "volume", "recipe_id", "tank_id", "notes"},
            required={"batch_number", "volume"},
        )
        return cls(
            batch_number=coerce_text(data["batch_number"], "batch_number", max_length=64),
            volume=coerce_quantity(data["volume"], "volume", positive=True),
            recipe_id=coerce_int(data.get("recipe_id"), "recipe_id", required=False),
            tank_id=coerce_int(data.get("tank_id"), "tank_id", required=False),
            notes=coerce_text(data.get("notes"), "notes", max_length=2000),
        )


@dataclass(frozen=True)
class LotMember:
    batch_id: int
    volume_contribution: Decimal


def _parse_member(raw) -> LotMember:
    data = _check_fields(
        raw,
        allowed={"batch_id", "volume_contribution"},
        required={"batch_id", "volume_contribution"},
    )
    return LotMember(
        batch_id=coerce_int(data["batch_id"], "batch_id"),
        volume_contribution=coerce_quantity(data["volume_contribution"], "volume_contribution", positive=True),
    )


@dataclass(frozen=True)
class CreateLotRequest:
    lot_code: str
    phase: str
    members: tuple[LotMember, ...]
    equipment_id: int | None = None
    parent_lot_id: int | None = None

    @classmethod
    def from_payload(cls, payload) -> "CreateLotRequest":
        data = _check_fields(
            payload,
            allowed={"lot_code", "phase", "members", "equipment_id", "parent_lot_id"},
            required={"lot_code"},
        )
        members = data.get("members") or []
        if not isinstance(members, list):
            raise ValidationError("members must be a list")
        return cls(
            lot_code=coerce_text(data["lot_code"], "lot_code", max_length=64),
            phase=coerce_choice(data.get("phase") or "FERMENTATION", LOT_PHASES, "phase"),
            members=tuple(_parse_member(m) for m in members),
            equipment_id=coerce_int(data.get("equipment_id"), "equipment_id", required=False),
            parent_lot_id=coerce_int(data.get("parent_lot_id"), "parent_lot_id", required=False),
        )


@dataclass(frozen=True)
class BlendRequest:
    batch_id: int
    volume_contribution: Decimal

    @classmethod
    def from_payload(cls, payload) -> "BlendRequest":
        member = _parse_member(payload)
        return cls(batch_id=member.batch_id, volume_contribution=member.volume_contribution)
