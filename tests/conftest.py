"""
Pytest fixtures for the SuratDesa test suite.

Strategy:
- Real Flask app from the factory with TestingConfig (in-memory SQLite, CSRF off);
  `file_app` uses a SQLite file instead so threads get their own connections
- Uploads go to a per-test temporary folder
- Service tests run inside a test request context (`ctx`); route tests use the
  test client *without* an outer context, so every request gets its own
  session and login state
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from config import TestingConfig
from suratdesa import create_app
from suratdesa.extensions import db
from suratdesa.letter_form import LetterDraft
from suratdesa.models import Letter, User

PASSWORD = "rahasia123"


@pytest.fixture
def app(tmp_path):
    app = create_app("config.TestingConfig")
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
    app.extensions["suratdesa_auth_unsubscribe"]()


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database, for tests that use several connections."""

    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'suratdesa.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"check_same_thread": False, "timeout": 30}}

    app = create_app(FileConfig)
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    app.extensions["suratdesa_auth_unsubscribe"]()


@pytest.fixture
def ctx(app):
    """Request context for calling the service layer directly."""
    with app.test_request_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


def _create_user(email: str, role: str | None, **extra) -> User:
    user = User(email=email, display_name=extra.pop("display_name", email.split("@")[0].title()), role=role, **extra)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def make_user(app):
    """Factory creating a committed user; works inside or outside a context."""

    def _make(email: str, role: str | None = "viewer", **extra) -> User:
        with app.app_context():
            user = _create_user(email, role, **extra)
            db.session.refresh(user)
            db.session.expunge(user)
        return user

    return _make


@pytest.fixture
def users(ctx):
    """One user per role, bound to the `ctx` session."""
    return {
        "admin": _create_user("admin@desa.id", "admin", village_code="SKM"),
        "staff": _create_user("staf@desa.id", "staff"),
        "operator": _create_user("operator@desa.id", "operator", village_code="SKM"),
        "viewer": _create_user("warga@desa.id", "viewer"),
    }


def make_draft(**overrides) -> LetterDraft:
    values = {
        "type": "UMUM",
        "subject": "Undangan rapat desa",
        "priority": "medium",
        "content": "Dengan hormat, kami mengundang Bapak/Ibu.",
        "recipient": "Ketua RT 01",
    }
    values.update(overrides)
    return LetterDraft(**values)


def add_letter(creator: User | None = None, **fields) -> Letter:
    """Insert a letter row directly, bypassing numbering."""
    number = fields.pop("number", None)
    if number is None:
        number = (db.session.query(db.func.max(Letter.number)).scalar() or 0) + 1
    values = {
        "letter_number": f"{number:03d}/UMUM/DESA/01/2025",
        "number": number,
        "year": 2025,
        "month": "01",
        "type": "UMUM",
        "subject": f"Surat {number}",
        "content": "Isi surat",
        "recipients": ["Warga"],
        "status": "draft",
        "created_by": creator.id if creator is not None else None,
        "created_at": datetime(2025, 1, 1) + timedelta(days=number),
    }
    values.update(fields)
    letter = Letter(**values)
    db.session.add(letter)
    db.session.commit()
    return letter


def login(client, email: str, password: str = PASSWORD):
    return client.post("/auth/login", data={"email": email, "password": password})
