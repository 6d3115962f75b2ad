from __future__ import annotations

from typing import Any

from moveit.permissions import Role
from moveit.schemas import LocationPing
from moveit.services import users as user_service
from moveit.services.jobs import active_job_for
from moveit.services.ledger import Actor
from moveit.utils.clock import utcnow_iso

TRACKED_ROLES = (Role.TEAM_LEADER, Role.SUPERVISOR)


def record_ping(state: dict[str, Any], ping: LocationPing) -> dict[str, Any]:
    tracking = state.setdefault("tracking", {})
    entry = {
        "latitude": ping.latitude,
        "longitude": ping.longitude,
        "lastUpdate": ping.timestamp or utcnow_iso(),
    }
    tracking[ping.username] = entry
    return entry


def team_positions(state: dict[str, Any], actor: Actor) -> list[dict[str, Any]]:
    user_service.ensure_allowed("tracking.view", actor)
    tracking = state.get("tracking") or {}

    positions = []
    for role in TRACKED_ROLES:
        for user in user_service.users_with_role(state, role):
            location = tracking.get(user["username"]) or {}
            active_job = active_job_for(state, user) if role is Role.TEAM_LEADER else None
            positions.append(
                {
                    "username": user["username"],
                    "name": user.get("name"),
                    "type": role.value,
                    "latitude": location.get("latitude"),
                    "longitude": location.get("longitude"),
                    "lastUpdate": location.get("lastUpdate"),
                    "currentJob": active_job.get("id") if active_job else None,
                }
            )
    return positions
