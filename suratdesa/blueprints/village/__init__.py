"""
Village profile blueprint package.

Exposes village_bp for app factory registration; routes live in routes.py.
"""

from .routes import village_bp  # noqa: F401
