# backend/brewcore/routes/production.py
"""
Batch lifecycle and lot routes.

Every lifecycle verb returns {batch_id, batch, blended_batches_updated, lot};
cancel returns {batch_id, batch, lot, ledger_entries}.
InvalidState is 409, a failed commit is 503 (nothing applied, retry is safe).
"""
from flask import Blueprint, request, jsonify, g

from ..validation import (
    BlendRequest,
    CreateBatchRequest,
    CreateLotRequest,
    NotesRequest,
    StartPackagingRequest,
)
from ..decorators import json_errors, require_tenant
from ..services import lot_service, production_service, timeline_service


batches_bp = Blueprint("batches", __name__, url_prefix="/api/batches")
lots_bp = Blueprint("lots", __name__, url_prefix="/api/lots")


@batches_bp.get("")
@json_errors
@require_tenant
def list_batches_route():
    batches = production_service.list_batches(g.tenant_context, status=request.args.get("status"))
    return jsonify({"items": [b.to_dict() for b in batches]}), 200


@batches_bp.post("")
@json_errors
@require_tenant
def create_batch_route():
    req = CreateBatchRequest.from_payload(request.get_json(silent=True))
    batch = production_service.create_batch(
        g.tenant_context,
        req.batch_number,
        volume=req.volume,
        recipe_id=req.recipe_id,
        tank_id=req.tank_id,
        notes=req.notes,
    )
    return jsonify(batch.to_dict()), 201


@batches_bp.get("/<int:batch_id>")
@json_errors
@require_tenant
def get_batch_route(batch_id):
    batch = production_service.get_batch(g.tenant_context, batch_id)
    return jsonify(batch.to_dict()), 200


@batches_bp.get("/<int:batch_id>/timeline")
@json_errors
@require_tenant
def batch_timeline_route(batch_id):
    events = timeline_service.list_timeline(g.tenant_context, batch_id)
    return jsonify({"items": [e.to_dict() for e in events]}), 200


def _simple_transition(transition, batch_id):
    req = NotesRequest.from_payload(request.get_json(silent=True))
    result = transition(g.tenant_context, batch_id, notes=req.notes)
    return jsonify(result.to_dict()), 200


@batches_bp.post("/<int:batch_id>/start-fermentation")
@json_errors
@require_tenant
def start_fermentation_route(batch_id):
    return _simple_transition(production_service.start_fermentation, batch_id)


@batches_bp.post("/<int:batch_id>/transfer-to-conditioning")
@json_errors
@require_tenant
def transfer_to_conditioning_route(batch_id):
    return _simple_transition(production_service.transfer_to_conditioning, batch_id)


@batches_bp.post("/<int:batch_id>/mark-ready")
@json_errors
@require_tenant
def mark_ready_route(batch_id):
    return _simple_transition(production_service.mark_ready, batch_id)


@batches_bp.post("/<int:batch_id>/complete")
@json_errors
@require_tenant
def complete_batch_route(batch_id):
    return _simple_transition(production_service.complete_batch, batch_id)


@batches_bp.post("/<int:batch_id>/start-packaging")
@json_errors
@require_tenant
def start_packaging_route(batch_id):
    """
    READY -> PACKAGING for the batch and its blend siblings.

    Body (all optional): package_type (KEG_50, BOTTLE_500, ...), quantity, notes.
    """
    req = StartPackagingRequest.from_payload(request.get_json(silent=True))
    result = production_service.start_packaging(
        g.tenant_context,
        batch_id,
        package_type=req.package_type,
        quantity=req.quantity,
        notes=req.notes,
    )
    return jsonify(result.to_dict()), 200


@batches_bp.post("/<int:batch_id>/cancel")
@json_errors
@require_tenant
def cancel_batch_route(batch_id):
    req = NotesRequest.from_payload(request.get_json(silent=True))
    result = production_service.cancel_batch(g.tenant_context, batch_id, reason=req.notes)
    return jsonify(result.to_dict()), 200


@lots_bp.get("/active")
@json_errors
@require_tenant
def active_lots_route():
    """Blend-target candidates; ?phase= restricts to one lot phase."""
    lots = lot_service.list_active_lots(g.tenant_context, phase=request.args.get("phase"))
    return jsonify({"items": [summary.to_dict() for summary in lots]}), 200


@lots_bp.post("")
@json_errors
@require_tenant
def create_lot_route():
    req = CreateLotRequest.from_payload(request.get_json(silent=True))
    lot = lot_service.create_lot(
        g.tenant_context,
        req.lot_code,
        phase=req.phase,
        members=[(m.batch_id, m.volume_contribution) for m in req.members],
        equipment_id=req.equipment_id,
        parent_lot_id=req.parent_lot_id,
    )
    return jsonify(lot.to_dict()), 201


@lots_bp.post("/<int:lot_id>/batches")
@json_errors
@require_tenant
def blend_batch_route(lot_id):
    req = BlendRequest.from_payload(request.get_json(silent=True))
    lot = lot_service.add_batch_to_lot(
        g.tenant_context,
        lot_id,
        req.batch_id,
        req.volume_contribution,
    )
    return jsonify(lot.to_dict()), 201
