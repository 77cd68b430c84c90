"""
Inventory resolver: turn a loosely-typed deduction target into one item.

Packaging requests often arrive without an item id, carrying only a category
and a free-text hint such as "bottle 500" or "ქილა 330". Resolution walks an
ordered tuple of strategies and returns the first hit:

1. explicit_id       tenant-owned item with the given id
2. size_token        item in the category whose name is the hint's size token
                     ("500", "500ml", "500 ml")
3. keyword           item in the category with a name word starting with a
                     keyword for the package kind the hint names (bottle /
                     can / label / cap / keg, in English, Georgian and
                     Russian); the last-named kind wins
4. category_default  first active item of the category (lowest id)

Each strategy is a plain function (ctx, request) -> InventoryItem | None so it
can be tested alone. Every query filters on tenant and is_active, and every
multi-row query has a total order, so the same data always resolves the same way.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..errors import NotFoundError
from ..models import InventoryItem
from .tenant_service import TenantContext, tenant_scoped


# Word prefixes identifying a package kind, per language. Stems are used where
# the word inflects (ბოთლი / ბოთლის, бутылка / бутылки). A stem only matches at
# the start of a word, so "can" does not fire on "scan".
KIND_KEYWORDS: dict[str, tuple[str, ...]] = {
    "bottle": ("bottle", "ბოთლ", "бутыл"),
    "can": ("can", "ქილა", "банк"),
    "label": ("label", "ეტიკეტ", "этикет"),
    "cap": ("cap", "crown", "თავსახურ", "крышк"),
    "keg": ("keg", "კასრ", "кег"),
}

_SIZE_TOKEN_RE = re.compile(r"(\d+(?:[.,]\d+)?)")
_WORD_RE = re.compile(r"\w+")


@dataclass(frozen=True)
class ResolveRequest:
    item_id: int | None = None
    category: str | None = None
    type_hint: str | None = None


def extract_size_token(hint: str | None) -> str | None:
    """First number in the hint ("Bottle 0,5 / 500ml" -> "0.5")."""
    if not hint:
        return None
    match = _SIZE_TOKEN_RE.search(hint)
    if not match:
        return None
    return match.group(1).replace(",", ".")


def _words(text: str) -> list[str]:
    return _WORD_RE.findall(text.lower())


def _names_kind(word: str, stems: tuple[str, ...]) -> bool:
    return any(word.startswith(stem) for stem in stems)


def hinted_kinds(hint: str | None) -> list[str]:
    """
    Package kinds named by the hint, the last-named kind first.

    The head noun of a compound hint comes last ("bottle cap" is a cap), so
    kinds are ordered by the position of their last word in the hint,
    rightmost first.
    """
    if not hint:
        return []
    last_seen: dict[str, int] = {}
    for position, word in enumerate(_words(hint)):
        for kind, stems in KIND_KEYWORDS.items():
            if _names_kind(word, stems):
                last_seen[kind] = position
    return sorted(last_seen, key=lambda kind: -last_seen[kind])


def _active_in_category(ctx: TenantContext, category: str):
    return tenant_scoped(ctx, InventoryItem).filter(
        InventoryItem.category == category,
        InventoryItem.is_active.is_(True),
    )


def explicit_id(ctx: TenantContext, request: ResolveRequest) -> InventoryItem | None:
    if request.item_id is None:
        return None
    return tenant_scoped(ctx, InventoryItem).filter(InventoryItem.id == request.item_id).first()


def size_token(ctx: TenantContext, request: ResolveRequest) -> InventoryItem | None:
    if not request.category:
        return None
    token = extract_size_token(request.type_hint)
    if token is None:
        return None

    names = {token, f"{token}ml", f"{token} ml"}
    for item in _active_in_category(ctx, request.category).order_by(InventoryItem.id):
        if item.name.strip().lower() in names:
            return item
    return None


def keyword(ctx: TenantContext, request: ResolveRequest) -> InventoryItem | None:
    if not request.category:
        return None
    kinds = hinted_kinds(request.type_hint)
    if not kinds:
        return None

    # Matched in Python: SQLite's lower() only folds ASCII
    candidates = (
        _active_in_category(ctx, request.category)
        .order_by(InventoryItem.name, InventoryItem.id)
        .all()
    )
    for kind in kinds:
        stems = KIND_KEYWORDS[kind]
        for item in candidates:
            if any(_names_kind(word, stems) for word in _words(item.name)):
                return item
    return None


def category_default(ctx: TenantContext, request: ResolveRequest) -> InventoryItem | None:
    if not request.category:
        return None
    return _active_in_category(ctx, request.category).order_by(InventoryItem.id).first()


STRATEGIES = (explicit_id, size_token, keyword, category_default)


def resolve_item(
    ctx: TenantContext,
    *,
    item_id: int | None = None,
    category: str | None = None,
    type_hint: str | None = None,
) -> InventoryItem:
    """
    Resolve a deduction target or raise NotFoundError.

    An explicit id that does not resolve is final when no category was given;
    with a category the remaining strategies still run.
    """
    request = ResolveRequest(item_id=item_id, category=category, type_hint=type_hint)
    for strategy in STRATEGIES:
        item = strategy(ctx, request)
        if item is not None:
            return item
        if strategy is explicit_id and item_id is not None and not category:
            raise NotFoundError(f"Item {item_id} not found")

    raise NotFoundError(
        f"No inventory item matches category={category!r} type={type_hint!r}"
    )
