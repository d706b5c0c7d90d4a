"""
User Management (Admin Only).

- List users, optionally filtered by role
- Change a user's role (closed role set, validated server-side)

Audit:
- Role changes are logged via accounts.update_user_role
"""

from flask import (
    Blueprint,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required

from ...accounts import list_users as query_users, update_user_role
from ...errors import SuratError
from ...extensions import db
from ...models import User
from ...security import CAP_USERS_MANAGE, ROLES, capability_required, normalize_role


users_bp = Blueprint(
    "users",
    __name__,
    url_prefix="/users",
)


# ---------------------------------------------------------------------
# LIST USERS
# ---------------------------------------------------------------------

@users_bp.route("/")
@login_required
@capability_required(CAP_USERS_MANAGE)
def list_users():
    role_filter = normalize_role((request.args.get("role") or "").strip())

    return render_template(
        "users/list.html",
        users=query_users(role=role_filter),
        roles=ROLES,
        role_filter=role_filter,
    )


# ---------------------------------------------------------------------
# CHANGE ROLE
# ---------------------------------------------------------------------

@users_bp.route("/<int:user_id>/role", methods=["POST"])
@login_required
@capability_required(CAP_USERS_MANAGE)
def update_role(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        flash("Pengguna tidak ditemukan.", "danger")
        return redirect(url_for("users.list_users"))

    try:
        update_user_role(user, (request.form.get("role") or "").strip(), current_user)
    except SuratError as exc:
        flash(exc.message, "danger")
        return redirect(url_for("users.list_users"))

    flash(f"Peran {user.label} diperbarui menjadi {ROLES[user.role]}.", "success")
    return redirect(url_for("users.list_users"))
