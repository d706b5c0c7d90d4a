"""
Accounts: sign-up / sign-in / sign-out, password reset, role lookup and
user listing.

Failures raise AuthError with a provider-style code; auth_error_message()
maps codes to the localized text shown to the user. Input problems found
before touching the database raise ValidationError. Repeated failed sign-ins
are throttled per email by the rate limit on the login route.
"""

from __future__ import annotations

import logging
import re
import smtplib
from email.message import EmailMessage
from typing import Any, Callable, Mapping

from flask import current_app, url_for
from flask_login import login_user, logout_user, user_logged_in, user_logged_out
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .audit import log_action, serialize_model
from .errors import AuthError, SuratError, ValidationError
from .extensions import db
from .models import User
from .security import DEFAULT_ROLE, ROLE_ADMIN, normalize_role

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
VILLAGE_CODE_RE = re.compile(r"^[A-Za-z0-9.\-]+$")

COMMON_PASSWORDS = {"123456", "1234567", "12345678", "password", "qwerty", "111111", "abc123"}

AUTH_ERROR_MESSAGES = {
    "invalid-credential": "Email atau password tidak valid",
    "user-not-found": "Pengguna tidak ditemukan",
    "user-disabled": "Akun Anda tidak aktif",
    "too-many-requests": "Terlalu banyak percobaan. Coba lagi nanti.",
    "email-already-in-use": "Email sudah terdaftar",
    "invalid-email": "Format email tidak valid",
    "weak-password": "Password terlalu lemah",
    "invalid-action-code": "Tautan reset password tidak valid atau sudah kedaluwarsa",
}

GENERIC_MESSAGES = {
    "sign-in": "Terjadi kesalahan saat masuk. Coba lagi.",
    "sign-up": "Terjadi kesalahan saat mendaftar. Coba lagi.",
    "reset": "Terjadi kesalahan saat mengirim email reset password. Coba lagi.",
}

PROFILE_FIELDS = ("display_name", "department", "position", "phone", "village_code", "village_name")


def auth_error_message(code: str | None, operation: str = "sign-in") -> str:
    """Localized message for an error code, else the operation's generic message."""
    return AUTH_ERROR_MESSAGES.get(code or "", GENERIC_MESSAGES.get(operation, GENERIC_MESSAGES["sign-in"]))


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


# ---------------------------------------------------------------------
# Sign in / out
# ---------------------------------------------------------------------
def authenticate(email: str, password: str) -> User:
    """Check credentials and return the user; raises AuthError."""
    email = _normalize_email(email)
    if not email or not password:
        raise ValidationError("Email dan password harus diisi")

    user = User.query.filter_by(email=email).first()
    if user is None or not user.check_password(password):
        logger.info("Failed sign-in for %s", email)
        raise AuthError("invalid-credential")

    if not user.is_active:
        raise AuthError("user-disabled")

    return user


def start_session(user: User, remember: bool = False) -> User:
    """Sign in an already verified user (after authenticate() or sign_up())."""
    login_user(user, remember=remember)
    logger.info("User %s signed in", user.email)
    return user


def sign_in(email: str, password: str, remember: bool = False) -> User:
    return start_session(authenticate(email, password), remember=remember)


def sign_out(user: Any = None) -> None:
    if user is not None and getattr(user, "is_authenticated", False):
        logger.info("User %s signed out", user.email)
    logout_user()


def observe_auth_state(callback: Callable[[Any], None], app: Any = None) -> Callable[[], None]:
    """
    Call callback(user) after each sign-in and callback(None) after each sign-out.

    Scoped to one app when given. Returns an unsubscribe function.
    """
    def _on_login(sender: Any, user: Any = None, **_: Any) -> None:
        callback(user)

    def _on_logout(sender: Any, user: Any = None, **_: Any) -> None:
        callback(None)

    kwargs = {"weak": False}
    if app is not None:
        kwargs["sender"] = app
    user_logged_in.connect(_on_login, **kwargs)
    user_logged_out.connect(_on_logout, **kwargs)

    def unsubscribe() -> None:
        user_logged_in.disconnect(_on_login)
        user_logged_out.disconnect(_on_logout)

    return unsubscribe


# ---------------------------------------------------------------------
# Sign up
# ---------------------------------------------------------------------
def _check_new_password(password: str, confirm: str) -> None:
    if password != confirm:
        raise ValidationError("Pastikan password dan konfirmasi password sama")
    min_length = current_app.config["PASSWORD_MIN_LENGTH"]
    if len(password) < min_length:
        raise ValidationError(f"Password harus minimal {min_length} karakter")


def _is_weak(password: str, email: str) -> bool:
    lowered = password.lower()
    return lowered in COMMON_PASSWORDS or lowered == email.split("@", 1)[0] or len(set(password)) == 1


def _check_village_code(code: str) -> None:
    if code and not VILLAGE_CODE_RE.match(code):
        raise ValidationError("Kode desa hanya boleh berisi huruf, angka, titik, atau tanda hubung")


def sign_up(
    email: str,
    password: str,
    confirm_password: str,
    display_name: str,
    profile: Mapping[str, Any] | None = None,
) -> User:
    """Create a viewer account. Local checks run before any database access."""
    email = _normalize_email(email)
    display_name = (display_name or "").strip()

    if not email or not password or not confirm_password or not display_name:
        raise ValidationError("Semua field harus diisi")
    _check_new_password(password, confirm_password)

    profile = dict(profile or {})
    village_code = (profile.get("village_code") or "").strip()
    _check_village_code(village_code)

    if not EMAIL_RE.match(email):
        raise AuthError("invalid-email")
    if _is_weak(password, email):
        raise AuthError("weak-password")
    if User.query.filter_by(email=email).first():
        raise AuthError("email-already-in-use")

    user = User(email=email, display_name=display_name, role=DEFAULT_ROLE, is_active=True)
    for name in ("department", "position", "phone", "village_name"):
        value = (profile.get(name) or "").strip()
        setattr(user, name, value or None)
    user.village_code = village_code or None
    user.set_password(password)

    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise AuthError("email-already-in-use") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Sign-up failed for %s", email)
        raise AuthError("internal-error") from exc

    logger.info("User %s registered", email)
    return user


def create_admin(email: str, password: str, display_name: str = "Administrator") -> User:
    """Bootstrap an admin account (CLI and first-run page)."""
    email = _normalize_email(email)
    if not EMAIL_RE.match(email):
        raise AuthError("invalid-email")
    _check_new_password(password, password)
    if User.query.filter_by(email=email).first():
        raise AuthError("email-already-in-use")

    user = User(email=email, display_name=display_name, role=ROLE_ADMIN, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info("Admin %s created", email)
    return user


# ---------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------
def _reset_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="password-reset")


def generate_reset_token(user: User) -> str:
    # Part of the current hash is signed in so the token dies once the password changes
    return _reset_serializer().dumps({"uid": user.id, "ph": user.password_hash[-16:]})


def verify_reset_token(token: str) -> User | None:
    try:
        data = _reset_serializer().loads(token, max_age=current_app.config["PASSWORD_RESET_MAX_AGE"])
    except (SignatureExpired, BadSignature):
        return None

    user = db.session.get(User, data.get("uid"))
    if user is None or user.password_hash[-16:] != data.get("ph"):
        return None
    return user


def send_password_reset_email(to_email: str, reset_url: str) -> None:
    """Send the reset link; without MAIL_SERVER the link is only logged."""
    config = current_app.config
    if not config.get("MAIL_SERVER"):
        logger.warning("MAIL_SERVER not configured; password reset link for %s: %s", to_email, reset_url)
        return

    msg = EmailMessage()
    msg["Subject"] = f"Reset password {config['APP_NAME']}"
    msg["From"] = config["MAIL_SENDER"]
    msg["To"] = to_email
    msg.set_content(
        f"Klik tautan berikut untuk mengatur ulang password Anda:\n\n{reset_url}\n\n"
        "Abaikan email ini jika Anda tidak meminta reset password."
    )

    try:
        with smtplib.SMTP(config["MAIL_SERVER"], config["MAIL_PORT"]) as server:
            if config.get("MAIL_USE_TLS"):
                server.starttls()
            if config.get("MAIL_USERNAME"):
                server.login(config["MAIL_USERNAME"], config["MAIL_PASSWORD"])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.exception("Sending password reset email to %s failed", to_email)
        raise AuthError("mail-failed", GENERIC_MESSAGES["reset"]) from exc


def request_password_reset(email: str) -> str:
    """Dispatch a reset link to the account's email. Returns the reset URL."""
    email = _normalize_email(email)
    if not email:
        raise ValidationError("Email harus diisi")
    if not EMAIL_RE.match(email):
        raise AuthError("invalid-email")

    user = User.query.filter_by(email=email).first()
    if user is None:
        raise AuthError("user-not-found")

    token = generate_reset_token(user)
    reset_url = url_for("auth.reset_password", token=token, _external=True)
    send_password_reset_email(user.email, reset_url)
    logger.info("Password reset requested for %s", email)
    return reset_url


def reset_password(token: str, password: str, confirm_password: str) -> User:
    user = verify_reset_token(token)
    if user is None:
        raise AuthError("invalid-action-code")
    _check_new_password(password, confirm_password)

    user.set_password(password)
    db.session.commit()
    logger.info("Password reset completed for %s", user.email)
    return user


# ---------------------------------------------------------------------
# Own account
# ---------------------------------------------------------------------
def update_account(user: User, data: Mapping[str, Any]) -> User:
    values = {name: (data.get(name) or "").strip() for name in PROFILE_FIELDS}
    if not values["display_name"]:
        raise ValidationError("Nama lengkap harus diisi")
    _check_village_code(values["village_code"])

    for name, value in values.items():
        setattr(user, name, value or None)
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str, confirm_password: str) -> None:
    if not user.check_password(current_password or ""):
        raise ValidationError("Password saat ini salah")
    _check_new_password(new_password or "", confirm_password or "")
    user.set_password(new_password)
    db.session.commit()
    logger.info("User %s changed password", user.email)


# ---------------------------------------------------------------------
# Users & roles
# ---------------------------------------------------------------------
def get_user_role(user_id: int) -> str | None:
    """Role of the user if it is a known role, else None."""
    user = db.session.get(User, user_id)
    if user is None:
        return None
    return normalize_role(user.role)


def list_users(role: str | None = None, active_only: bool = False) -> list[User]:
    q = User.query
    if role:
        q = q.filter(User.role == role)
    if active_only:
        q = q.filter(User.is_active.is_(True))
    users = q.all()
    return sorted(users, key=lambda u: u.label.casefold())


def update_user_role(user: User, role: str, actor: Any) -> User:
    if normalize_role(role) is None:
        raise ValidationError("Peran tidak valid")
    if actor is not None and getattr(actor, "id", None) == user.id:
        raise ValidationError("Anda tidak dapat mengubah peran akun sendiri")

    before = serialize_model(user)
    try:
        user.role = role
        db.session.flush()
        log_action(user, "UPDATE", before=before, after=serialize_model(user), actor=actor)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Updating role of user %s failed", user.id)
        raise SuratError("Gagal memperbarui peran pengguna") from exc

    logger.info("Role of %s set to %s", user.email, role)
    return user
