"""In-store notifications and the fire-and-forget fan-out helpers."""

from __future__ import annotations

import logging
from typing import Any, Callable

from moveit.exceptions import NotFound, ValidationError
from moveit.permissions import Role
from moveit.services import users as user_service
from moveit.utils.clock import new_id, utcnow_iso

logger = logging.getLogger(__name__)

BROADCAST_ROLES = (Role.SUPERVISOR, Role.TEAM_LEADER, Role.STAFF)


class NotificationService:
    def __init__(self, state: dict[str, Any]) -> None:
        self.state = state
        self.entries: list[dict[str, Any]] = state.setdefault("notifications", [])

    def notify(
        self,
        recipient: str,
        title: str,
        message: str,
        *,
        type: str = "system",
        created_by: str = "system",
        recipient_name: str | None = None,
    ) -> dict[str, Any]:
        if not recipient:
            raise ValidationError("recipient is required", field="recipient")
        if recipient_name is None:
            user = user_service.find_user(self.state, recipient)
            recipient_name = (user or {}).get("name") or recipient

        notification = {
            "id": new_id(),
            "recipient": recipient,
            "recipientName": recipient_name,
            "title": title,
            "message": message,
            "type": type,
            "createdBy": created_by,
            "createdAt": utcnow_iso(),
            "readBy": [],
        }
        self.entries.append(notification)
        return notification

    def notify_role(self, role: Role, title: str, message: str, **kwargs: Any) -> list[dict[str, Any]]:
        sent = []
        for user in user_service.users_with_role(self.state, role):
            sent.append(
                self.notify(
                    user["username"],
                    title,
                    message,
                    recipient_name=user.get("name"),
                    **kwargs,
                )
            )
        return sent

    def broadcast(self, title: str, message: str, **kwargs: Any) -> list[dict[str, Any]]:
        sent = []
        for role in BROADCAST_ROLES:
            sent.extend(self.notify_role(role, title, message, **kwargs))
        return sent

    def list(self, recipient: str | None = None) -> list[dict[str, Any]]:
        if not recipient:
            return list(self.entries)
        return [entry for entry in self.entries if entry.get("recipient") == recipient]

    def mark_read(self, notification_id: Any, username: str) -> dict[str, Any]:
        if not username:
            raise ValidationError("Username is required", field="username")
        for entry in self.entries:
            if str(entry.get("id")) == str(notification_id):
                read_by = entry.setdefault("readBy", [])
                if username not in read_by:
                    read_by.append(username)
                return entry
        raise NotFound("Notification", notification_id)


def send_quietly(send: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a notification call; failures are logged and never reach the caller."""

    try:
        return send(*args, **kwargs)
    except Exception:
        logger.exception("Notification delivery failed")
        return None
