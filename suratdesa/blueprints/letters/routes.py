"""
suratdesa/blueprints/letters/routes.py

Letter routes.

Includes:
- List with status/type filters, free-text search and sort
- Pending-approval and archive lists (same list, status preset)
- Compose (save as draft / submit for approval)
- Detail / print view with letterhead
- Draft edit and guarded status transitions

IMPORTANT:
- UI is never trusted. Capabilities and transitions are checked in letters.py
  and security.py, not just hidden in templates.
"""

from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from ...accounts import list_users
from ...errors import PermissionDenied, SuratError
from ...letter_form import STEPS, LetterDraft
from ...letters import (
    SORT_OPTIONS,
    available_transitions,
    count_by_status,
    create_letter as create_letter_record,
    get_letter,
    list_letters as query_letters,
    transition_letter,
    update_draft,
)
from ...models import LETTER_STATUSES, LETTER_TYPES, PRIORITIES
from ...security import CAP_LETTER_CREATE, can_edit_letter, capability_required
from ...village import get_village_profile

letters_bp = Blueprint("letters", __name__, url_prefix="/letters")


def _not_found():
    return render_template("letters/not_found.html"), 404


def _render_list(preset_status: str | None, page_title: str, page_subtitle: str):
    status = preset_status or (request.args.get("status") or "").strip()
    letter_type = (request.args.get("type") or "").strip()
    search = (request.args.get("search") or "").strip()
    sort = (request.args.get("sort") or "newest").strip()
    if sort not in SORT_OPTIONS:
        sort = "newest"

    letters = query_letters(status=status or None, letter_type=letter_type or None, search=search, sort=sort)

    return render_template(
        "letters/list.html",
        letters=letters,
        count=len(letters),
        status_counts=count_by_status(letters),
        page_title=page_title,
        page_subtitle=page_subtitle,
        preset_status=preset_status,
        filters={"status": status, "type": letter_type, "search": search, "sort": sort},
        statuses=LETTER_STATUSES,
        letter_types=LETTER_TYPES,
        sort_options=SORT_OPTIONS,
    )


def _render_form(draft: LetterDraft, letter=None, active_step: str = "general"):
    return render_template(
        "letters/form.html",
        draft=draft,
        letter=letter,
        steps=STEPS,
        active_step=active_step,
        letter_types=LETTER_TYPES,
        priorities=PRIORITIES,
        recipients=list_users(active_only=True),
    )


def _first_invalid_step(draft: LetterDraft, status: str) -> str:
    checked = ("general",) if status == "draft" else ("general", "content", "recipients")
    for step in checked:
        if draft.step_errors(step):
            return step
    return "general"


# ---------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------
@letters_bp.route("/")
@login_required
def list_letters():
    return _render_list(None, "Daftar Surat", "Kelola semua surat desa")


@letters_bp.route("/pending")
@login_required
def pending_letters():
    return _render_list("pending", "Menunggu Persetujuan", "Surat yang diajukan dan menunggu keputusan")


@letters_bp.route("/archived")
@login_required
def archived_letters():
    return _render_list("archived", "Arsip Surat", "Surat yang telah diarsipkan")


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
@letters_bp.route("/new", methods=["GET", "POST"])
@login_required
@capability_required(CAP_LETTER_CREATE)
def create_letter():
    if request.method == "POST":
        draft = LetterDraft.from_form(request.form, request.files)
        status = "pending" if request.form.get("action") == "submit" else "draft"

        try:
            letter = create_letter_record(draft, status, current_user)
        except SuratError as exc:
            flash(exc.message, "danger")
            return _render_form(draft, active_step=_first_invalid_step(draft, status))

        flash(f"Surat telah disimpan dengan nomor: {letter.letter_number}", "success")
        return redirect(url_for("letters.detail", letter_id=letter.id))

    return _render_form(LetterDraft())


# ---------------------------------------------------------------------
# Detail / print
# ---------------------------------------------------------------------
@letters_bp.route("/<int:letter_id>")
@login_required
def detail(letter_id):
    letter = get_letter(letter_id)
    if letter is None:
        return _not_found()

    return render_template(
        "letters/detail.html",
        letter=letter,
        village=get_village_profile(),
        transitions=available_transitions(letter, current_user),
        can_edit=letter.status == "draft" and can_edit_letter(letter),
    )


# ---------------------------------------------------------------------
# Draft edit
# ---------------------------------------------------------------------
@letters_bp.route("/<int:letter_id>/edit", methods=["GET", "POST"])
@login_required
def edit(letter_id):
    letter = get_letter(letter_id)
    if letter is None:
        return _not_found()

    if not can_edit_letter(letter):
        return render_template("errors/403.html"), 403

    if letter.status != "draft":
        flash("Hanya surat berstatus draf yang dapat diubah.", "warning")
        return redirect(url_for("letters.detail", letter_id=letter.id))

    if request.method == "POST":
        draft = LetterDraft.from_form(request.form, request.files)
        submit = request.form.get("action") == "submit"
        try:
            update_draft(letter, draft, current_user, submit=submit)
            if submit:
                transition_letter(letter, "submit", current_user)
        except SuratError as exc:
            flash(exc.message, "danger")
            status = "pending" if submit else "draft"
            return _render_form(draft, letter=letter, active_step=_first_invalid_step(draft, status))

        flash("Surat berhasil diperbarui.", "success")
        return redirect(url_for("letters.detail", letter_id=letter.id))

    return _render_form(LetterDraft.from_letter(letter), letter=letter)


# ---------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------
@letters_bp.route("/<int:letter_id>/transition", methods=["POST"])
@login_required
def transition(letter_id):
    letter = get_letter(letter_id)
    if letter is None:
        return _not_found()

    action = (request.form.get("action") or "").strip()
    try:
        transition_letter(letter, action, current_user)
    except PermissionDenied as exc:
        current_app.logger.warning(
            "User %s denied transition %s on letter %s", current_user.id, action, letter.id
        )
        flash(exc.message, "danger")
        return redirect(url_for("letters.detail", letter_id=letter.id))
    except SuratError as exc:
        flash(exc.message, "danger")
        return redirect(url_for("letters.detail", letter_id=letter.id))

    flash(f"Status surat sekarang: {letter.status_label}", "success")
    return redirect(url_for("letters.detail", letter_id=letter.id))
