from __future__ import annotations

from flask import Blueprint, jsonify, request

from moveit.schemas import Credentials
from moveit.services import users as user_service
from moveit.store import current_store

bp = Blueprint("auth", __name__, url_prefix="/auth")


@bp.post("/login")
def login():
    credentials = Credentials.from_payload(request.get_json(silent=True))
    state = current_store().read()
    user = user_service.authenticate(state, credentials)
    return jsonify({"user": user})
