from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from moveit.exceptions import ValidationError
from moveit.schemas import AssignRequest, MaterialRecord, ReturnRequest
from moveit.security import operation_required, request_username
from moveit.services import collections as collection_service
from moveit.services import inventory as inventory_service
from moveit.services.users import resolve_actor
from moveit.store import current_store

bp = Blueprint("inventory", __name__, url_prefix="/inventory")


@bp.get("")
@bp.get("/")
def inventory_home():
    state = current_store().read()
    return jsonify(inventory_service.inventory_document(state))


@bp.get("/materials")
def list_materials():
    state = current_store().read()
    return jsonify(inventory_service.inventory_document(state)["materials"])


@bp.put("/materials")
def replace_materials():
    payload = request.get_json(silent=True)
    if not isinstance(payload, list):
        raise ValidationError("Request body must be a list of materials")
    records = [MaterialRecord.from_payload(item) for item in payload]

    with current_store().transaction() as state:
        actor = resolve_actor(state, request.args.get("username"))
        materials = inventory_service.replace_materials(state, records, actor)
    return jsonify({"success": True, "materials": materials})


@bp.post("/assign")
def assign_materials():
    assignment = AssignRequest.from_payload(request.get_json(silent=True))
    with current_store().transaction() as state:
        actor = resolve_actor(state, assignment.username)
        result = inventory_service.assign_to_job(
            state, assignment.project_id, assignment.lines, actor
        )
    return jsonify(result.to_dict())


@bp.post("/return")
def return_materials():
    returned = ReturnRequest.from_payload(request.get_json(silent=True))
    with current_store().transaction() as state:
        actor = resolve_actor(state, returned.username)
        result = inventory_service.return_materials(
            state, returned.project_id, returned.lines, actor, notes=returned.notes
        )
    return jsonify(result.to_dict())


@bp.get("/pending-collections")
@operation_required("inventory.collections")
def pending_collections():
    collections = collection_service.list_collections(
        g.state, g.actor, status=request.args.get("status") or None
    )
    return jsonify(collections)


@bp.post("/collections/<collection_id>/receive")
def receive_collection(collection_id: str):
    with current_store().transaction() as state:
        actor = resolve_actor(state, request_username())
        collection, materials = collection_service.receive(state, collection_id, actor)
    return jsonify({"success": True, "collection": collection, "materials": materials})


@bp.get("/transactions")
@operation_required("inventory.transactions")
def list_transactions():
    transactions = inventory_service.list_transactions(
        g.state,
        g.actor,
        material_id=request.args.get("materialId") or None,
        project_id=request.args.get("projectId") or None,
        type=request.args.get("type") or None,
    )
    return jsonify(transactions)
