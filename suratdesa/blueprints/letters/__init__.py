"""
Letters blueprint package.

Exposes letters_bp for app factory registration; routes live in routes.py.
"""

from .routes import letters_bp  # noqa: F401
