"""
Village profile routes.

- GET  /village/       profile form + letterhead preview (all signed-in users)
- POST /village/       whole-document save (village.edit)
- POST /village/logo   store a logo and return its URL as JSON; the page puts
                       the URL into the form, nothing is saved until the form is
"""

from __future__ import annotations

from flask import Blueprint, current_app, flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from ...errors import SuratError
from ...security import CAP_VILLAGE_EDIT, capability_required, has_capability
from ...storage import LOGO_TYPES, logo_path, upload_file
from ...village import PROFILE_FIELDS, get_village_profile, profile_values, save_village_profile

village_bp = Blueprint("village", __name__, url_prefix="/village")


@village_bp.route("/", methods=["GET"])
@login_required
def profile():
    village = get_village_profile()
    return render_template(
        "village/profile.html",
        village=village,
        values=profile_values(village),
        can_edit=has_capability(CAP_VILLAGE_EDIT),
    )


@village_bp.route("/", methods=["POST"])
@login_required
@capability_required(CAP_VILLAGE_EDIT)
def save():
    data = {name: request.form[name] for name in PROFILE_FIELDS if name in request.form}

    try:
        save_village_profile(data, actor=current_user)
    except SuratError as exc:
        flash(exc.message, "danger")
        village = get_village_profile()
        values = {**profile_values(village), **data}
        return render_template("village/profile.html", village=village, values=values, can_edit=True)

    flash("Data desa berhasil disimpan", "success")
    return redirect(url_for("village.profile"))


@village_bp.route("/logo", methods=["POST"])
@login_required
@capability_required(CAP_VILLAGE_EDIT)
def upload_logo():
    logo_type = (request.form.get("logo_type") or "").strip()
    upload = request.files.get("file")

    if logo_type not in LOGO_TYPES or upload is None or not upload.filename:
        return jsonify({"error": "Pilih berkas logo terlebih dahulu"}), 400

    try:
        url = upload_file(upload, logo_path(logo_type, upload.filename))
    except SuratError as exc:
        current_app.logger.warning("Logo upload rejected: %s", exc.message)
        return jsonify({"error": exc.message}), 400

    return jsonify({"logo_type": logo_type, "url": url})
