from __future__ import annotations

import os
import uuid

from flask import Blueprint, current_app, jsonify, request, send_from_directory
from werkzeug.utils import secure_filename

from moveit.exceptions import NotFound, ValidationError

bp = Blueprint("files", __name__)


def _upload_folder() -> str:
    return current_app.config["UPLOAD_FOLDER"]


@bp.post("/upload")
def upload_file():
    file = request.files.get("file")
    if file is None or not file.filename:
        raise ValidationError("No file uploaded", field="file")

    filename = secure_filename(file.filename) or "upload.bin"
    unique_name = f"{uuid.uuid4().hex}_{filename}"
    upload_folder = _upload_folder()
    os.makedirs(upload_folder, exist_ok=True)
    file.save(os.path.join(upload_folder, unique_name))

    current_app.logger.info("Stored upload %s", unique_name)
    return jsonify({"url": f"/files/{unique_name}", "filename": unique_name}), 201


@bp.get("/files/<path:filename>")
def serve_file(filename: str):
    safe_name = secure_filename(filename)
    if not safe_name or safe_name != filename:
        raise NotFound("File", filename)
    if not os.path.isfile(os.path.join(_upload_folder(), safe_name)):
        raise NotFound("File", filename)
    return send_from_directory(_upload_folder(), safe_name)
