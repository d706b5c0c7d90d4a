"""
suratdesa/security.py

Role capabilities and access-control helpers.

Key rules:
- Roles form a closed set: admin, staff, operator, viewer.
- A role maps to a fixed set of capabilities; anything else (missing role,
  unknown value) maps to the empty set. Checks fail closed.
- UI is never trusted; routes enforce capabilities server-side. Navigation
  filtering (navigation.py) is visibility only.

This module also provides a global safety net:
- readonly_guard() blocks POST/PUT/PATCH/DELETE for users without any write
  capability (viewers, unknown roles). Wire it via app.before_request.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, FrozenSet, Optional, Tuple

from flask import render_template, request
from flask_login import current_user

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
ROLE_OPERATOR = "operator"
ROLE_VIEWER = "viewer"

ROLES = {
    ROLE_ADMIN: "Administrator",
    ROLE_STAFF: "Staf",
    ROLE_OPERATOR: "Operator",
    ROLE_VIEWER: "Pengamat",
}

DEFAULT_ROLE = ROLE_VIEWER

CAP_LETTER_CREATE = "letters.create"
CAP_LETTER_REVIEW = "letters.review"
CAP_LETTER_SEND = "letters.send"
CAP_LETTER_ARCHIVE = "letters.archive"
CAP_LETTER_EDIT_ANY = "letters.edit_any"
CAP_VILLAGE_EDIT = "village.edit"
CAP_USERS_MANAGE = "users.manage"

ROLE_CAPABILITIES: dict[str, FrozenSet[str]] = {
    ROLE_ADMIN: frozenset({
        CAP_LETTER_CREATE,
        CAP_LETTER_REVIEW,
        CAP_LETTER_SEND,
        CAP_LETTER_ARCHIVE,
        CAP_LETTER_EDIT_ANY,
        CAP_VILLAGE_EDIT,
        CAP_USERS_MANAGE,
    }),
    ROLE_STAFF: frozenset({
        CAP_LETTER_CREATE,
        CAP_LETTER_REVIEW,
        CAP_LETTER_SEND,
        CAP_LETTER_ARCHIVE,
        CAP_LETTER_EDIT_ANY,
        CAP_VILLAGE_EDIT,
    }),
    ROLE_OPERATOR: frozenset({
        CAP_LETTER_CREATE,
        CAP_LETTER_SEND,
    }),
    ROLE_VIEWER: frozenset(),
}

# Self-service endpoints any signed-in user may POST to
SELF_SERVICE_ENDPOINTS = {"auth.logout", "settings.account", "settings.change_password"}


def _forbidden() -> Tuple[str, int]:
    """Render a consistent 403 page."""
    return render_template("errors/403.html"), 403


def normalize_role(role: Any) -> Optional[str]:
    """Return the role if it belongs to the closed set, else None."""
    if isinstance(role, str) and role in ROLE_CAPABILITIES:
        return role
    return None


def capabilities_for(role: Any) -> FrozenSet[str]:
    """Role -> capabilities. Missing or unrecognised roles get nothing."""
    known = normalize_role(role)
    if known is None:
        return frozenset()
    return ROLE_CAPABILITIES[known]


def user_capabilities(user: Any) -> FrozenSet[str]:
    """Capabilities of an explicit user object (anonymous -> none)."""
    if user is None or not getattr(user, "is_authenticated", False):
        return frozenset()
    return capabilities_for(getattr(user, "role", None))


def has_capability(capability: str, user: Any = None) -> bool:
    """True if the given user (default: current user) holds the capability."""
    if user is None:
        user = current_user
    return capability in user_capabilities(user)


def readonly_guard() -> Optional[Tuple[str, int]]:
    """
    Global guard: users without write capabilities cannot mutate data.

    Allow-list for self-service endpoints (logout, own account, own password).
    """
    if request.method not in MUTATING_METHODS:
        return None

    if not current_user.is_authenticated:
        return None

    if user_capabilities(current_user):
        return None

    endpoint = (request.endpoint or "").strip()
    if endpoint in SELF_SERVICE_ENDPOINTS:
        return None

    return _forbidden()


def capability_required(capability: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory: require a capability for the current user.

    Usage:
        @capability_required(CAP_USERS_MANAGE)
        def list_users(): ...
    """
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not has_capability(capability):
                return _forbidden()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def can_edit_letter(letter: Any, user: Any = None) -> bool:
    """Creator of the letter, or a holder of letters.edit_any."""
    if user is None:
        user = current_user
    if not getattr(user, "is_authenticated", False):
        return False
    if has_capability(CAP_LETTER_EDIT_ANY, user):
        return True
    return letter.created_by is not None and letter.created_by == user.id
