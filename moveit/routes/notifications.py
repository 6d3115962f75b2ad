from __future__ import annotations

from flask import Blueprint, jsonify, request

from moveit.schemas import NotificationRequest
from moveit.security import request_username
from moveit.services.notifications import NotificationService
from moveit.store import current_store

bp = Blueprint("notifications", __name__, url_prefix="/notifications")


@bp.get("")
@bp.get("/")
def list_notifications():
    state = current_store().read()
    return jsonify(NotificationService(state).list(request.args.get("username") or None))


@bp.post("")
@bp.post("/")
def create_notification():
    message = NotificationRequest.from_payload(request.get_json(silent=True))
    with current_store().transaction() as state:
        service = NotificationService(state)
        if message.recipient == "all":
            sent = service.broadcast(
                message.title,
                message.message,
                type=message.type,
                created_by=message.created_by,
            )
            return jsonify(
                {
                    "success": True,
                    "count": len(sent),
                    "message": f"Notification sent to {len(sent)} people",
                }
            )
        notification = service.notify(
            message.recipient,
            message.title,
            message.message,
            type=message.type,
            created_by=message.created_by,
        )
    return jsonify(notification), 201


@bp.post("/<notification_id>/read")
def mark_read(notification_id: str):
    with current_store().transaction() as state:
        NotificationService(state).mark_read(notification_id, request_username())
    return jsonify({"success": True})
