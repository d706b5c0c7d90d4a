"""
File storage for letter attachments and village logos.

Files are written below UPLOAD_FOLDER and addressed by a relative storage path
(e.g. "letters/3/1718000000000_surat.pdf"). The public reference is the URL of
the authenticated /files/<path> route.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from flask import current_app, url_for
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

LOGO_TYPES = ("village_logo", "regency_logo")
LOGO_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "svg", "webp"}


def _timestamp() -> int:
    """Milliseconds since epoch, used to keep stored names unique."""
    return int(time.time() * 1000)


def upload_root() -> Path:
    return Path(current_app.config["UPLOAD_FOLDER"])


def resolve_path(storage_path: str) -> Path:
    """Absolute path of a stored file; rejects paths escaping the upload folder."""
    root = upload_root().resolve()
    target = (root / storage_path).resolve()
    if root != target and root not in target.parents:
        raise StorageError("Lokasi berkas tidak valid.")
    return target


def file_size(file: FileStorage) -> int:
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def upload_file(file: FileStorage, storage_path: str) -> str:
    """Store an uploaded file at storage_path and return its download URL."""
    target = resolve_path(storage_path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        file.save(target)
    except OSError as exc:
        logger.exception("Storing %s failed", storage_path)
        raise StorageError() from exc

    logger.info("Stored file %s", storage_path)
    return url_for("files.serve", path=storage_path)


def attachment_path(user_id: int, filename: str) -> str:
    """letters/{user}/{timestamp}_{name}"""
    safe_name = secure_filename(filename or "")
    if not safe_name:
        raise ValidationError("Nama berkas lampiran tidak valid.")
    return f"letters/{user_id}/{_timestamp()}_{safe_name}"


def logo_path(logo_type: str, filename: str) -> str:
    """village/{logoType}_{timestamp}_{name}"""
    if logo_type not in LOGO_TYPES:
        raise ValidationError("Jenis logo tidak dikenal.")
    safe_name = secure_filename(filename or "")
    ext = safe_name.rsplit(".", 1)[-1].lower() if "." in safe_name else ""
    if not safe_name or ext not in LOGO_EXTENSIONS:
        raise ValidationError("Logo harus berupa berkas gambar.")
    return f"village/{logo_type}_{_timestamp()}_{safe_name}"
