"""
Account settings blueprint package.

Exposes settings_bp for app factory registration; routes live in routes.py.
"""

from .routes import settings_bp  # noqa: F401
