"""
Account settings (all signed-in users, own account only).

- Profile: display name, department, position, phone, village code/name
  (the village code is used in the letter numbers the user issues)
- Password change
"""

from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from ...accounts import change_password as change_account_password, update_account
from ...errors import SuratError
from ...security import ROLES

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")


@settings_bp.route("/", methods=["GET", "POST"])
@login_required
def account():
    if request.method == "POST":
        try:
            update_account(current_user, request.form)
        except SuratError as exc:
            flash(exc.message, "danger")
            return render_template("settings/account.html", roles=ROLES, form=request.form)

        flash("Profil berhasil disimpan.", "success")
        return redirect(url_for("settings.account"))

    return render_template("settings/account.html", roles=ROLES, form=None)


@settings_bp.route("/password", methods=["POST"])
@login_required
def change_password():
    try:
        change_account_password(
            current_user,
            request.form.get("current_password", ""),
            request.form.get("new_password", ""),
            request.form.get("confirm_password", ""),
        )
    except SuratError as exc:
        flash(exc.message, "danger")
        return redirect(url_for("settings.account"))

    flash("Password berhasil diubah.", "success")
    return redirect(url_for("settings.account"))
