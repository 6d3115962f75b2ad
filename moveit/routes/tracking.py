from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from moveit.schemas import LocationPing
from moveit.security import operation_required
from moveit.services import tracking as tracking_service
from moveit.store import current_store

bp = Blueprint("tracking", __name__, url_prefix="/tracking")


@bp.post("/update")
def update_location():
    ping = LocationPing.from_payload(request.get_json(silent=True))
    with current_store().transaction() as state:
        tracking_service.record_ping(state, ping)
    return jsonify({"success": True, "message": "Location updated successfully"})


@bp.get("")
@bp.get("/")
@operation_required("tracking.view")
def team_positions():
    return jsonify(tracking_service.team_positions(g.state, g.actor))
