"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
upload storage, mail delivery for password resets and other settings. It uses environment variables for sensitive
information and defaults for development. In production, make sure to set the appropriate environment variables and
secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'suratdesa.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for forms
    WTF_CSRF_ENABLED = True

    # App UI name (used in templates)
    APP_NAME = "SuratDesa"

    # Uploaded attachments and logos live here; served through /files/<path>
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", str(BASE_DIR / "uploads"))
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_UPLOAD_MB", "10")) * 1024 * 1024

    # Used in letter numbers when the creating user has no village code
    DEFAULT_VILLAGE_CODE = os.environ.get("DEFAULT_VILLAGE_CODE", "DESA")

    PASSWORD_MIN_LENGTH = 6
    PASSWORD_RESET_MAX_AGE = 60 * 60  # seconds

    # Failed sign-in throttling (per email), counted by Flask-Limiter.
    # Use a shared backend (e.g. redis://) when running several workers.
    LOGIN_MAX_ATTEMPTS = 5
    LOGIN_ATTEMPT_WINDOW = 15 * 60  # seconds
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = False

    # Password reset mail. Without MAIL_SERVER the reset link is only logged.
    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_USE_TLS = os.environ.get("MAIL_USE_TLS", "1") == "1"
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "noreply@desa.go.id")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    MAIL_SERVER = None
    LOG_LEVEL = "WARNING"
