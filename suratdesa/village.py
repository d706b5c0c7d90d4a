"""
Village profile (singleton) access.

The profile is created with built-in defaults the first time it is read. Saving
is a whole-document write: the submitted values are merged over the stored
ones, so a field missing from the payload keeps its stored value, and then
every field is written.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError

from .audit import log_action, serialize_model
from .errors import SuratError, ValidationError
from .extensions import db
from .models import VillageProfile

logger = logging.getLogger(__name__)

PROFILE_ID = 1

DEFAULT_PROFILE = {
    "name": "Desa Sukamaju",
    "code": "DESA",
    "address": "Jl. Raya Sukamaju No. 123",
    "district": "Telukjambe Timur",
    "regency": "Karawang",
    "province": "Jawa Barat",
    "postal_code": "41361",
    "phone": "(0267) 123456",
    "email": "desa.sukamaju@gmail.com",
    "website": "www.desasukamaju.desa.id",
    "village_logo": "",
    "regency_logo": "",
    "head_name": "H. Sumarna, S.Sos",
    "head_position": "Kepala Desa",
    "head_signature": "",
    "letterhead": "",
    "footer": "",
}

PROFILE_FIELDS = tuple(DEFAULT_PROFILE)
REQUIRED_PROFILE_FIELDS = ("name", "code", "head_name", "head_position")


def get_village_profile() -> VillageProfile:
    """Return the singleton profile, creating it with defaults when absent."""
    profile = db.session.get(VillageProfile, PROFILE_ID)
    if profile is not None:
        return profile

    profile = VillageProfile(id=PROFILE_ID, **DEFAULT_PROFILE)
    db.session.add(profile)
    db.session.commit()
    logger.info("Village profile created with default values")
    return profile


def profile_values(profile: VillageProfile) -> dict[str, Any]:
    return {name: getattr(profile, name) or "" for name in PROFILE_FIELDS}


def save_village_profile(data: Mapping[str, Any], actor: Any = None) -> VillageProfile:
    """Merge data over the stored profile and write the whole document."""
    profile = get_village_profile()
    before = serialize_model(profile)

    merged = profile_values(profile)
    for name in PROFILE_FIELDS:
        if name in data and data[name] is not None:
            merged[name] = str(data[name]).strip()

    missing = [name for name in REQUIRED_PROFILE_FIELDS if not merged[name]]
    if missing:
        raise ValidationError("Nama desa, kode desa, dan nama/jabatan kepala desa harus diisi")

    try:
        for name, value in merged.items():
            setattr(profile, name, value)
        db.session.flush()
        log_action(profile, "UPDATE", before=before, after=serialize_model(profile), actor=actor)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Saving village profile failed")
        raise SuratError("Gagal menyimpan data desa") from exc

    logger.info("Village profile saved")
    return profile
