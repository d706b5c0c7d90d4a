"""
Stored files blueprint package.

Exposes files_bp for app factory registration; routes live in routes.py.
"""

from .routes import files_bp  # noqa: F401
