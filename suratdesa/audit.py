"""
Audit trail for letters, user roles and the village profile.

Each entry records the acting user (id plus an email snapshot, so the entry
stays readable after the account changes), the entity, an action name and
JSON snapshots of the row before and after the change.

log_action() only adds the entry to the session; it is committed or rolled
back together with the change it describes.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog

# Never copied into snapshots
EXCLUDED_COLUMNS = {"password_hash"}

Snapshot = Dict[str, Optional[str]]


def _column_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def serialize_model(instance: Any) -> Snapshot:
    """Column name -> text value for every column of the row (relationships excluded)."""
    return {
        column.name: _column_text(getattr(instance, column.name))
        for column in instance.__table__.columns
        if column.name not in EXCLUDED_COLUMNS
    }


def _snapshot_json(snapshot: Optional[Snapshot]) -> Optional[str]:
    return json.dumps(snapshot, ensure_ascii=False) if snapshot else None


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Snapshot] = None,
    after: Optional[Snapshot] = None,
    actor: Any = None,
) -> AuditLog:
    """
    Stage an AuditLog row for `entity` (which must already have an id).

    `action` is an upper-case verb such as CREATE, UPDATE, SUBMIT or APPROVE.
    Without an explicit actor the signed-in user of the current request is
    recorded; outside a request (CLI, tests) the actor may be None.
    """
    if getattr(entity, "id", None) is None:
        raise ValueError(f"Cannot audit unsaved {entity.__class__.__name__}; flush the session first.")

    in_request = has_request_context()
    if actor is None and in_request and current_user.is_authenticated:
        actor = current_user

    entry = AuditLog(
        user_id=getattr(actor, "id", None),
        email_snapshot=getattr(actor, "email", None),
        entity_type=entity.__class__.__name__,
        entity_id=int(entity.id),
        action=action,
        before_data=_snapshot_json(before),
        after_data=_snapshot_json(after),
        ip_address=request.remote_addr if in_request else None,
    )
    db.session.add(entry)
    return entry
