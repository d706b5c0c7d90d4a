"""
Dashboard blueprint package.

Exposes dashboard_bp for app factory registration; routes live in routes.py.
"""

from .routes import dashboard_bp  # noqa: F401
