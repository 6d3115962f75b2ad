from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from moveit.exceptions import MoveItError

bp = Blueprint("errors", __name__)


@bp.app_errorhandler(MoveItError)
def handle_domain_error(error: MoveItError):
    current_app.logger.info(
        "%s %s rejected: %s (%s)", request.method, request.path, error.message, error.code
    )
    return jsonify(error.to_dict()), error.status_code


@bp.app_errorhandler(HTTPException)
def handle_http_error(error: HTTPException):
    return (
        jsonify({"error": error.description or error.name, "code": error.name.upper().replace(" ", "_")}),
        error.code or 500,
    )


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    root_error = getattr(error, "original_exception", None) or error
    current_app.logger.exception("Unhandled exception", exc_info=root_error)
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500
