from __future__ import annotations

import logging
from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from moveit.exceptions import (
    AccessDenied,
    Conflict,
    InvalidCredentials,
    NotFound,
    ValidationError,
)
from moveit.permissions import Role, resolve_allowed_roles, role_allowed, role_values
from moveit.schemas import Credentials, NewUser, ProfileUpdate
from moveit.services.ledger import Actor

logger = logging.getLogger(__name__)

PUBLIC_FIELDS = ("username", "name", "role", "email", "phone", "profileImage")


def _users(state: dict[str, Any]) -> dict[str, dict[str, Any]]:
    users = state.setdefault("users", {})
    if not isinstance(users, dict):
        raise ValueError("users collection must be keyed by username")
    return users


def find_user(state: dict[str, Any], username: str | None) -> dict[str, Any] | None:
    """Case-insensitive lookup by username."""

    if not username:
        return None
    users = _users(state)
    if username in users:
        return users[username]
    lowered = username.lower()
    for key, user in users.items():
        if key.lower() == lowered:
            return user
    return None


def public_user(user: dict[str, Any]) -> dict[str, Any]:
    return {field: user.get(field, "") for field in PUBLIC_FIELDS}


def resolve_actor(state: dict[str, Any], username: str | None) -> Actor:
    """Turn the ``username`` a caller sent into an :class:`Actor`.

    Unknown usernames still get an actor (with no role) so the audit trail
    records who asked.
    """

    user = find_user(state, username)
    if user is None:
        return Actor(username=username or "system", name="System", role=None)
    return Actor(
        username=user.get("username"),
        name=user.get("name") or user.get("username"),
        role=Role.parse(user.get("role")),
    )


def ensure_allowed(operation: str, actor: Actor) -> None:
    if not role_allowed(operation, actor.role):
        raise AccessDenied(actor.username, role_values(resolve_allowed_roles(operation)))


def authenticate(state: dict[str, Any], credentials: Credentials) -> dict[str, Any]:
    user = find_user(state, credentials.username)
    password_hash = user.get("passwordHash") if user else None
    if not password_hash or not check_password_hash(password_hash, credentials.password):
        logger.info("Failed login for %s", credentials.username)
        raise InvalidCredentials()
    logger.info("User %s logged in", user.get("username"))
    return public_user(user)


def create_user(state: dict[str, Any], request: NewUser, actor: Actor) -> dict[str, Any]:
    ensure_allowed("users.manage", actor)

    role = Role.parse(request.role)
    if role is None:
        raise ValidationError(
            "role must be one of " + ", ".join(r.value for r in Role), field="role"
        )
    if find_user(state, request.username) is not None:
        raise Conflict("Username already exists", username=request.username)

    user = {
        "username": request.username,
        "name": request.name,
        "role": role.value,
        "email": request.email,
        "phone": request.phone,
        "passwordHash": generate_password_hash(request.password),
    }
    _users(state)[request.username] = user
    logger.info("Created %s user %s", role.value, request.username)
    return public_user(user)


def update_profile(
    state: dict[str, Any], username: str, update: ProfileUpdate, actor: Actor
) -> dict[str, Any]:
    """Apply a profile edit. Users edit themselves; admins edit anyone and set roles."""

    user = find_user(state, username)
    if user is None:
        raise NotFound("User", username)
    is_self = actor.username is not None and actor.username == user.get("username")
    if not is_self or update.role is not None:
        ensure_allowed("users.manage", actor)

    if update.role is not None:
        role = Role.parse(update.role)
        if role is None:
            raise ValidationError(
                "role must be one of " + ", ".join(r.value for r in Role), field="role"
            )
        user["role"] = role.value
    user.update(update.changes)
    if update.password is not None:
        user["passwordHash"] = generate_password_hash(update.password)
    logger.info("%s updated the profile of %s", actor.username, user.get("username"))
    return public_user(user)


def delete_user(state: dict[str, Any], username: str, actor: Actor) -> None:
    ensure_allowed("users.manage", actor)
    user = find_user(state, username)
    if user is None:
        raise NotFound("User", username)
    if user.get("username") == actor.username:
        raise Conflict("You cannot delete your own account", username=username)
    del _users(state)[user["username"]]
    logger.info("Deleted user %s", username)


def users_with_role(state: dict[str, Any], role: Role) -> list[dict[str, Any]]:
    return [
        user
        for user in _users(state).values()
        if Role.parse(user.get("role")) is role
    ]


def list_users(state: dict[str, Any], role: str | None = None) -> list[dict[str, Any]]:
    wanted = Role.parse(role) if role else None
    users = sorted(_users(state).values(), key=lambda user: str(user.get("username")).lower())
    return [
        public_user(user)
        for user in users
        if wanted is None or Role.parse(user.get("role")) is wanted
    ]


def ensure_admin_account(
    state: dict[str, Any], username: str, password: str, name: str = "Admin User"
) -> None:
    """Create the configured administrator if no such user exists yet."""

    if not username:
        return
    users = _users(state)
    if find_user(state, username) is not None:
        return
    users[username] = {
        "username": username,
        "name": name,
        "role": Role.ADMIN.value,
        "email": "",
        "phone": "",
        "passwordHash": generate_password_hash(password),
    }
    logger.info("Created administrator account %s", username)
