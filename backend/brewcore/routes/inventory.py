# backend/brewcore/routes/inventory.py
"""
Inventory ledger routes.

All routes require X-Tenant-Id. Request bodies are parsed into the typed
request structs in validation.py; core errors come back as
{"error": ...} with the error's status code.

Quantities are serialized as decimal strings ("400", "0.5").
"""
from flask import Blueprint, request, jsonify, g

from ..models.inventory import decimal_str
from ..validation import (
    AdjustRequest,
    DeductRequest,
    LedgerAppendRequest,
    PurchaseRequest,
)
from ..decorators import json_errors, require_tenant
from ..services import inventory_service, ledger_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@json_errors
@require_tenant
def list_items_route():
    items = inventory_service.list_items(
        g.tenant_context,
        category=request.args.get("category"),
        include_inactive=request.args.get("include_inactive") == "true",
    )
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@inventory_bp.get("/<item_ref>/ledger")
@json_errors
@require_tenant
def ledger_history_route(item_ref):
    """
    Most-recent-first ledger page for an item (id or SKU).

    Query params: limit (clamped to LEDGER_HISTORY_MAX_LIMIT), cursor
    (the next_cursor of the previous page).
    """
    entries, next_cursor = ledger_service.get_ledger_history(
        g.tenant_context,
        item_ref,
        limit=request.args.get("limit"),
        cursor=request.args.get("cursor"),
    )
    return jsonify({
        "items": [entry.to_dict() for entry in entries],
        "next_cursor": next_cursor,
    }), 200


@inventory_bp.post("/<int:item_id>/ledger")
@json_errors
@require_tenant
def append_ledger_route(item_id):
    req = LedgerAppendRequest.from_payload(request.get_json(silent=True))
    change = ledger_service.append_ledger_entry(
        g.tenant_context,
        item_id,
        req.quantity,
        req.type,
        batch_id=req.batch_id,
        notes=req.notes,
    )
    return jsonify(change.to_dict()), 201


@inventory_bp.get("/<int:item_id>/balance")
@json_errors
@require_tenant
def balance_route(item_id):
    balance = ledger_service.get_balance(g.tenant_context, item_id)
    return jsonify({"item_id": item_id, "balance": decimal_str(balance)}), 200


@inventory_bp.post("/deduct")
@json_errors
@require_tenant
def deduct_route():
    """
    Consume stock. Body: item_id or category (+ optional free-text type),
    quantity > 0, optional batch_id and notes.

    409 with current_balance / requested when the balance is insufficient.
    """
    req = DeductRequest.from_payload(request.get_json(silent=True))
    change = inventory_service.deduct_inventory(
        g.tenant_context,
        req.quantity,
        item_id=req.item_id,
        category=req.category,
        type_hint=req.type_hint,
        batch_id=req.batch_id,
        notes=req.notes,
    )
    return jsonify(change.to_dict()), 200


@inventory_bp.post("/<int:item_id>/adjust")
@json_errors
@require_tenant
def adjust_route(item_id):
    req = AdjustRequest.from_payload(request.get_json(silent=True))
    change = inventory_service.adjust_inventory(
        g.tenant_context,
        item_id,
        req.delta,
        req.type,
        notes=req.notes,
    )
    return jsonify(change.to_dict()), 201


@inventory_bp.post("/<int:item_id>/purchase")
@json_errors
@require_tenant
def purchase_route(item_id):
    req = PurchaseRequest.from_payload(request.get_json(silent=True))
    change = inventory_service.purchase_inventory(
        g.tenant_context,
        item_id,
        req.quantity,
        unit_cost=req.unit_cost,
        notes=req.notes,
    )
    return jsonify(change.to_dict()), 201
