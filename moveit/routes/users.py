from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from moveit.exceptions import NotFound
from moveit.schemas import NewUser, ProfileUpdate
from moveit.security import operation_required, request_username
from moveit.services import users as user_service
from moveit.store import current_store

bp = Blueprint("users", __name__, url_prefix="/users")


@bp.get("")
@bp.get("/")
@operation_required("users.manage")
def list_users():
    return jsonify(user_service.list_users(g.state, role=request.args.get("role") or None))


@bp.get("/<username>")
def get_user(username: str):
    state = current_store().read()
    user = user_service.find_user(state, username)
    if user is None:
        raise NotFound("User", username)
    return jsonify(user_service.public_user(user))


@bp.post("")
@bp.post("/")
def create_user():
    new_user = NewUser.from_payload(request.get_json(silent=True))
    with current_store().transaction() as state:
        actor = user_service.resolve_actor(state, request.args.get("username"))
        user = user_service.create_user(state, new_user, actor)
    return jsonify(user), 201


@bp.put("/<username>")
def update_user(username: str):
    update = ProfileUpdate.from_payload(request.get_json(silent=True))
    with current_store().transaction() as state:
        actor = user_service.resolve_actor(state, request_username())
        user = user_service.update_profile(state, username, update, actor)
    return jsonify(user)


@bp.delete("/<username>")
def delete_user(username: str):
    with current_store().transaction() as state:
        actor = user_service.resolve_actor(state, request_username())
        user_service.delete_user(state, username, actor)
    return "", 204
