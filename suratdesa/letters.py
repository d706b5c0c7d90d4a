"""
Letter data access: create, read, list/filter, draft edits and status transitions.

Status transitions:

    submit   draft                     -> pending    creator or letters.edit_any
    approve  pending                   -> approved   letters.review
    reject   pending                   -> rejected   letters.review
    revise   rejected                  -> draft      creator or letters.edit_any
    send     approved                  -> sent       letters.send
    archive  approved, rejected, sent  -> archived   letters.archive

All writes commit in one transaction together with their audit entry; on
failure the session is rolled back and a SuratError subclass is raised.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .audit import log_action, serialize_model
from .errors import LetterError, PermissionDenied, SuratError, TransitionError
from .extensions import db
from .letter_form import LetterDraft
from .models import LETTER_STATUSES, LETTER_TYPES, Attachment, Letter
from .numbering import format_letter_number, reserve_sequence
from .security import (
    CAP_LETTER_ARCHIVE,
    CAP_LETTER_REVIEW,
    CAP_LETTER_SEND,
    can_edit_letter,
    has_capability,
)
from .storage import attachment_path, file_size, resolve_path, upload_file

logger = logging.getLogger(__name__)

# Letters missing any of these are left out of listings
REQUIRED_FIELDS = ("letter_number", "number", "year", "month", "type", "subject", "content", "recipients")

SORT_OPTIONS = {
    "newest": "Terbaru",
    "oldest": "Terlama",
    "alphabetical": "Abjad (Perihal)",
}

TRANSITIONS = {
    "submit": {"sources": ("draft",), "target": "pending", "capability": None, "label": "Ajukan"},
    "approve": {"sources": ("pending",), "target": "approved", "capability": CAP_LETTER_REVIEW, "label": "Setujui"},
    "reject": {"sources": ("pending",), "target": "rejected", "capability": CAP_LETTER_REVIEW, "label": "Tolak"},
    "revise": {"sources": ("rejected",), "target": "draft", "capability": None, "label": "Perbaiki"},
    "send": {"sources": ("approved",), "target": "sent", "capability": CAP_LETTER_SEND, "label": "Kirim"},
    "archive": {
        "sources": ("approved", "rejected", "sent"),
        "target": "archived",
        "capability": CAP_LETTER_ARCHIVE,
        "label": "Arsipkan",
    },
}


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
def get_letter(letter_id: int) -> Letter | None:
    """Letter by id, or None when it does not exist."""
    return db.session.get(Letter, letter_id)


def is_complete(letter: Letter) -> bool:
    """False when a required field is missing (None) or the identifying text is blank."""
    for name in REQUIRED_FIELDS:
        if getattr(letter, name) is None:
            return False
    return bool(letter.letter_number.strip() and letter.subject.strip())


def _matches(letter: Letter, term: str) -> bool:
    return (
        term in (letter.subject or "").lower()
        or term in (letter.letter_number or "").lower()
        or term in (letter.content or "").lower()
    )


def _created_key(letter: Letter) -> datetime:
    return letter.created_at or datetime.min


def filter_letters(letters: Iterable[Letter], search: str = "", sort: str = "newest") -> list[Letter]:
    """Drop incomplete letters, apply the free-text search and sort."""
    result = [letter for letter in letters if is_complete(letter)]

    term = (search or "").strip().lower()
    if term:
        result = [letter for letter in result if _matches(letter, term)]

    if sort == "oldest":
        result.sort(key=_created_key)
    elif sort == "alphabetical":
        result.sort(key=lambda letter: letter.subject.casefold())
    else:
        result.sort(key=_created_key, reverse=True)
    return result


def list_letters(
    status: str | None = None,
    letter_type: str | None = None,
    search: str = "",
    sort: str = "newest",
) -> list[Letter]:
    """
    Letters matching the filters.

    Status and type are equality filters in the query (unknown values are
    ignored); search and sort run on the fetched rows.
    """
    q = Letter.query
    if status in LETTER_STATUSES:
        q = q.filter(Letter.status == status)
    if letter_type in LETTER_TYPES:
        q = q.filter(Letter.type == letter_type)

    letters = q.order_by(Letter.created_at.desc()).all()
    return filter_letters(letters, search=search, sort=sort)


def count_by_status(letters: Iterable[Letter]) -> dict[str, int]:
    counts = {status: 0 for status in LETTER_STATUSES}
    for letter in letters:
        if letter.status in counts:
            counts[letter.status] += 1
    return counts


# ---------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------
def _store_attachments(draft: LetterDraft, user: Any, stored_paths: list[str]) -> list[Attachment]:
    attachments = []
    for upload in draft.files:
        path = attachment_path(user.id, upload.filename)
        size = file_size(upload)
        url = upload_file(upload, path)
        stored_paths.append(path)
        attachments.append(
            Attachment(
                name=upload.filename,
                url=url,
                media_type=upload.mimetype,
                size=size,
            )
        )
    return attachments


def _discard_files(stored_paths: list[str]) -> None:
    for path in stored_paths:
        try:
            resolve_path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove orphaned upload %s", path)


def create_letter(draft: LetterDraft, status: str, user: Any, now: datetime | None = None) -> Letter:
    """
    Create a letter with the next reference number of the year.

    status is "draft" (save) or "pending" (submit for approval).
    """
    draft.validate_for(status)

    now = now or datetime.now()
    village_code = user.village_code or current_app.config["DEFAULT_VILLAGE_CODE"]
    stored_paths: list[str] = []

    try:
        number = reserve_sequence(now.year)
        letter = Letter(
            letter_number=format_letter_number(number, draft.type, village_code, now),
            number=number,
            year=now.year,
            month=f"{now.month:02d}",
            type=draft.type,
            subject=draft.subject,
            content=draft.content,
            recipients=draft.recipients,
            priority=draft.priority,
            notes=draft.notes or None,
            status=status,
            created_by=user.id,
        )
        letter.attachments.extend(_store_attachments(draft, user, stored_paths))

        db.session.add(letter)
        db.session.flush()
        log_action(letter, "CREATE", after=serialize_model(letter), actor=user)
        db.session.commit()
    except SuratError:
        db.session.rollback()
        _discard_files(stored_paths)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        _discard_files(stored_paths)
        logger.exception("Creating letter failed")
        raise LetterError() from exc

    logger.info("Letter %s created by user %s (%s)", letter.letter_number, user.id, status)
    return letter


def update_draft(letter: Letter, draft: LetterDraft, user: Any, submit: bool = False) -> Letter:
    """
    Edit a draft. Type and number stay as issued.

    With submit=True the draft must pass the submission check before anything
    is written; the caller then runs the "submit" transition.
    """
    if not can_edit_letter(letter, user):
        raise PermissionDenied()
    if letter.status != "draft":
        raise TransitionError("Hanya surat berstatus draf yang dapat diubah.")

    draft.type = letter.type
    draft.validate_for("pending" if submit else "draft")

    before = serialize_model(letter)
    stored_paths: list[str] = []
    try:
        letter.subject = draft.subject
        letter.content = draft.content
        letter.recipients = draft.recipients
        letter.priority = draft.priority
        letter.notes = draft.notes or None
        letter.attachments.extend(_store_attachments(draft, user, stored_paths))

        db.session.flush()
        log_action(letter, "UPDATE", before=before, after=serialize_model(letter), actor=user)
        db.session.commit()
    except SuratError:
        db.session.rollback()
        _discard_files(stored_paths)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        _discard_files(stored_paths)
        logger.exception("Updating letter %s failed", letter.id)
        raise LetterError() from exc

    return letter


def may_transition(letter: Letter, action: str, user: Any) -> bool:
    rule = TRANSITIONS.get(action)
    if rule is None or letter.status not in rule["sources"]:
        return False
    if rule["capability"] is None:
        return can_edit_letter(letter, user)
    return has_capability(rule["capability"], user)


def available_transitions(letter: Letter, user: Any) -> list[tuple[str, str]]:
    """(action, label) pairs the user may run on the letter right now."""
    return [
        (action, rule["label"])
        for action, rule in TRANSITIONS.items()
        if may_transition(letter, action, user)
    ]


def transition_letter(letter: Letter, action: str, user: Any, now: datetime | None = None) -> Letter:
    rule = TRANSITIONS.get(action)
    if rule is None:
        raise TransitionError("Tindakan tidak dikenal.")
    if letter.status not in rule["sources"]:
        raise TransitionError(
            f"Surat berstatus {letter.status_label} tidak dapat di-{rule['label'].lower()}."
        )
    if not may_transition(letter, action, user):
        raise PermissionDenied()

    if action == "submit":
        LetterDraft.from_letter(letter).validate_for("pending")

    now = now or datetime.utcnow()
    before = serialize_model(letter)
    try:
        letter.status = rule["target"]
        if action == "approve":
            letter.approved_by = user.id
            letter.approved_at = now
        elif action == "reject":
            letter.approved_by = user.id
            letter.rejected_at = now
        elif action == "revise":
            letter.approved_by = None
            letter.rejected_at = None
        elif action == "send":
            letter.sent_at = now
        elif action == "archive":
            letter.archived_at = now

        log_action(letter, action.upper(), before=before, after=serialize_model(letter), actor=user)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Transition %s on letter %s failed", action, letter.id)
        raise LetterError() from exc

    logger.info("Letter %s: %s -> %s by user %s", letter.letter_number, before["status"], letter.status, user.id)
    return letter
