"""
Authentication Routes

Provides:
- /auth/login
- /auth/signup
- /auth/logout
- /auth/forgot-password
- /auth/reset-password/<token>
- /auth/seed-admin (first system bootstrap)

Rules:
- New accounts get the viewer role; an admin grants more.
- Error codes from accounts.py are mapped to localized flash messages.
- Failed sign-ins are limited per email (LOGIN_MAX_ATTEMPTS per
  LOGIN_ATTEMPT_WINDOW seconds); a successful sign-in is not counted.
"""

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_limiter.util import get_remote_address
from flask_login import current_user, login_required

from ...accounts import (
    auth_error_message,
    create_admin,
    request_password_reset,
    reset_password as reset_account_password,
    sign_in,
    sign_out,
    sign_up,
    start_session,
    verify_reset_token,
)
from ...errors import AuthError, ValidationError
from ...extensions import limiter
from ...models import User
from ...utils import safe_next_url

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

def login_rate_key() -> str:
    """Count failed sign-ins per submitted email, per client when it is blank."""
    email = request.form.get("email", "").strip().lower()
    return f"login:{email}" if email else f"login-ip:{get_remote_address()}"


def login_rate_limit() -> str:
    config = current_app.config
    return f"{config['LOGIN_MAX_ATTEMPTS']} per {config['LOGIN_ATTEMPT_WINDOW']} seconds"


def _failed_sign_in(response) -> bool:
    # Failures re-render the form (200); a sign-in redirects.
    return response.status_code == 200


@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit(login_rate_limit, key_func=login_rate_key, methods=["POST"], deduct_when=_failed_sign_in)
def login():
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.index"))

    if request.method == "POST":
        email = request.form.get("email", "")
        password = request.form.get("password", "")

        try:
            sign_in(email, password, remember=bool(request.form.get("remember")))
        except ValidationError as exc:
            flash(exc.message, "danger")
            return render_template("auth/login.html", email=email)
        except AuthError as exc:
            flash(auth_error_message(exc.code, "sign-in"), "danger")
            return render_template("auth/login.html", email=email)

        flash("Selamat datang kembali!", "success")
        return redirect(safe_next_url(request.args.get("next"), "dashboard.index"))

    return render_template("auth/login.html")


# ============================================================
# SIGN UP
# ============================================================

@auth_bp.route("/signup", methods=["GET", "POST"])
def signup():
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.index"))

    if request.method == "POST":
        form = request.form
        try:
            user = sign_up(
                form.get("email", ""),
                form.get("password", ""),
                form.get("confirm_password", ""),
                form.get("display_name", ""),
                profile={
                    "department": form.get("department"),
                    "position": form.get("position"),
                    "village_code": form.get("village_code"),
                    "village_name": form.get("village_name"),
                },
            )
        except ValidationError as exc:
            flash(exc.message, "danger")
            return render_template("auth/signup.html", form=form)
        except AuthError as exc:
            flash(auth_error_message(exc.code, "sign-up"), "danger")
            return render_template("auth/signup.html", form=form)

        # Signed in straight away, like the hosted auth providers do
        start_session(user)
        flash("Akun Anda telah berhasil dibuat!", "success")
        return redirect(url_for("dashboard.index"))

    return render_template("auth/signup.html", form={})


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    sign_out(current_user)
    flash("Anda telah keluar.", "info")
    return redirect(url_for("auth.login"))


# ============================================================
# PASSWORD RESET
# ============================================================

@auth_bp.route("/forgot-password", methods=["GET", "POST"])
def forgot_password():
    sent = False

    if request.method == "POST":
        email = request.form.get("email", "")
        try:
            request_password_reset(email)
        except ValidationError as exc:
            flash(exc.message, "danger")
            return render_template("auth/forgot_password.html", sent=False, email=email)
        except AuthError as exc:
            flash(auth_error_message(exc.code, "reset"), "danger")
            return render_template("auth/forgot_password.html", sent=False, email=email)

        flash("Silakan periksa email Anda untuk instruksi reset password", "success")
        sent = True

    return render_template("auth/forgot_password.html", sent=sent)


@auth_bp.route("/reset-password/<token>", methods=["GET", "POST"])
def reset_password(token):
    if verify_reset_token(token) is None:
        flash(auth_error_message("invalid-action-code"), "danger")
        return redirect(url_for("auth.forgot_password"))

    if request.method == "POST":
        try:
            reset_account_password(
                token,
                request.form.get("password", ""),
                request.form.get("confirm_password", ""),
            )
        except ValidationError as exc:
            flash(exc.message, "danger")
            return render_template("auth/reset_password.html", token=token)
        except AuthError as exc:
            flash(auth_error_message(exc.code, "reset"), "danger")
            return redirect(url_for("auth.forgot_password"))

        flash("Password berhasil diubah. Silakan masuk.", "success")
        return redirect(url_for("auth.login"))

    return render_template("auth/reset_password.html", token=token)


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-admin", methods=["GET", "POST"])
def seed_admin():
    """
    Bootstrap the FIRST admin of the system.

    Blocked as soon as any user exists.
    """
    if User.query.count() > 0:
        flash("Sudah ada pengguna di sistem.", "warning")
        return redirect(url_for("auth.login"))

    if request.method == "POST":
        email = request.form.get("email", "")
        password = request.form.get("password", "")

        try:
            create_admin(email, password)
        except ValidationError as exc:
            flash(exc.message, "danger")
            return render_template("auth/seed_admin.html")
        except AuthError as exc:
            flash(auth_error_message(exc.code, "sign-up"), "danger")
            return render_template("auth/seed_admin.html")

        current_app.logger.info("First admin created through the bootstrap page")
        flash("Admin berhasil dibuat. Silakan masuk.", "success")
        return redirect(url_for("auth.login"))

    return render_template("auth/seed_admin.html")
