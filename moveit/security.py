"""Caller identification and role guards for API views."""

from __future__ import annotations

from functools import wraps

from flask import g, request

from moveit.services.users import ensure_allowed, resolve_actor
from moveit.store import current_store


def request_username() -> str | None:
    """The ``username`` a caller identified as, from the query string or JSON body."""

    username = request.args.get("username")
    if not username:
        payload = request.get_json(silent=True)
        if isinstance(payload, dict):
            username = payload.get("username")
    if not isinstance(username, str):
        return None
    return username.strip() or None


def operation_required(operation: str):
    """Decorator for read-only views gated by the access policy.

    Loads one snapshot of the store, resolves the caller against it and
    exposes both as ``g.state`` and ``g.actor``.
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapped(*args, **kwargs):
            state = current_store().read()
            actor = resolve_actor(state, request_username())
            ensure_allowed(operation, actor)
            g.state = state
            g.actor = actor
            return view_func(*args, **kwargs)

        return wrapped

    return decorator
