"""
suratdesa/__init__.py

Flask application factory for SuratDesa, the village letter management system.

- Letters get sequential per-year reference numbers (numbering.py).
- Roles map to capabilities (security.py); the sidebar is filtered by them
  (navigation.py) but every route enforces them server-side.
- Data lives in SQLAlchemy models; uploads in UPLOAD_FOLDER.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, flash, redirect, render_template, request, url_for
from flask_login import current_user

from .extensions import csrf, db, limiter, login_manager, migrate
from .models import User
from .navigation import build_navigation
from .security import ROLES, has_capability, readonly_guard
from .utils import format_date, priority_badge_class, status_badge_class

# Blueprint imports kept inside create_app() to reduce import side effects.

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging(app: Flask) -> None:
    """Application and package loggers share one stream handler and level."""
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)

    app.logger.setLevel(level)


def create_app(config_object: str | type = "config.Config") -> Flask:
    """Create and configure the Flask application (import path or config class)."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login; disabled accounts are signed out."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    # ----------------------------------------------------------------------
    # GLOBAL SECURITY NET: read-only guard for users without write capabilities.
    # ----------------------------------------------------------------------
    @app.before_request
    def _readonly_guard_hook():
        return readonly_guard()

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.dashboard import dashboard_bp
    from .blueprints.files import files_bp
    from .blueprints.letters import letters_bp
    from .blueprints.settings import settings_bp
    from .blueprints.users import users_bp
    from .blueprints.village import village_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(letters_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(village_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(files_bp)

    # ----------------------------------------------------------------------
    # Auth state observation (logging only)
    # ----------------------------------------------------------------------
    from .accounts import observe_auth_state

    def _log_auth_change(user):
        if user is not None:
            app.logger.info("Session started for %s (role=%s)", user.email, user.role)

    app.extensions["suratdesa_auth_unsubscribe"] = observe_auth_state(_log_auth_change, app=app)

    # ----------------------------------------------------------------------
    # Template globals (navigation, role labels, formatting)
    # ----------------------------------------------------------------------
    @app.context_processor
    def inject_globals():
        """
        Inject navigation filtered for the current user.

        SECURITY NOTE:
        - This only filters visibility. Routes enforce permissions.
        """
        return {
            "config": app.config,
            "nav_sections": build_navigation(current_user),
            "role_labels": ROLES,
            "has_capability": has_capability,
        }

    app.jinja_env.filters["date_id"] = format_date
    app.jinja_env.filters["status_badge"] = status_badge_class
    app.jinja_env.filters["priority_badge"] = priority_badge_class

    # ----------------------------------------------------------------------
    # Error pages
    # ----------------------------------------------------------------------
    @app.errorhandler(403)
    def forbidden(_error):
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(_error):
        return render_template("errors/404.html"), 404

    @app.errorhandler(413)
    def too_large(_error):
        app.logger.warning("Upload rejected: request larger than MAX_CONTENT_LENGTH")
        return render_template("errors/413.html"), 413

    @app.errorhandler(429)
    def too_many_requests(_error):
        from .accounts import auth_error_message

        app.logger.warning("Rate limit hit on %s from %s", request.endpoint, request.remote_addr)
        if request.endpoint == "auth.login":
            flash(auth_error_message("too-many-requests"), "danger")
            return render_template("auth/login.html", email=request.form.get("email", "")), 429
        return render_template("errors/429.html"), 429

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables (development; use `flask db upgrade` with migrations)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed-village")
    def seed_village_command():
        """Create the village profile with default values if missing."""
        from .village import get_village_profile

        profile = get_village_profile()
        click.echo(f"Village profile: {profile.name} ({profile.code})")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.password_option()
    def create_admin_command(email, password):
        """Create an admin account."""
        from .accounts import auth_error_message, create_admin
        from .errors import AuthError, ValidationError

        try:
            user = create_admin(email, password)
        except ValidationError as exc:
            raise click.ClickException(exc.message)
        except AuthError as exc:
            raise click.ClickException(auth_error_message(exc.code, "sign-up"))
        click.echo(f"Admin {user.email} created.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Home: redirect to dashboard or login."""
        if current_user.is_authenticated:
            return redirect(url_for("dashboard.index"))
        return redirect(url_for("auth.login"))

    return app
