"""Download of stored attachments and logos (signed-in users only)."""

from __future__ import annotations

from flask import Blueprint, abort, send_from_directory
from flask_login import login_required

from ...errors import StorageError
from ...storage import resolve_path, upload_root

files_bp = Blueprint("files", __name__, url_prefix="/files")


@files_bp.route("/<path:path>")
@login_required
def serve(path):
    try:
        target = resolve_path(path)
    except StorageError:
        abort(404)
    if not target.is_file():
        abort(404)
    return send_from_directory(upload_root(), path)
