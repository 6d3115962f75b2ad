from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from moveit.store import current_store

bp = Blueprint("health", __name__, url_prefix="/health")


@bp.get("")
@bp.get("/")
def store_status():
    store = current_store()
    try:
        state = store.read()
    except Exception as exc:
        current_app.logger.exception("Health check could not load the store")
        return (
            jsonify(
                {
                    "status": "UNAVAILABLE",
                    "store": store.backend,
                    "error": f"Unable to load store: {exc}",
                }
            ),
            503,
        )

    return jsonify(
        {
            "status": "OK",
            "store": store.backend,
            "collections": sorted(state),
        }
    )
