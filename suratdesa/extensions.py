"""
Flask extension instances for SuratDesa.

They are created unbound here so models, services and blueprints can import
them without importing the app; create_app() binds them to the application.
The login manager's redirect target and messages are fixed here because every
app instance uses the same auth blueprint. The rate limiter has no default
limits; the sign-in route declares its own.
"""

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()

login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Silakan masuk terlebih dahulu."
login_manager.login_message_category = "info"

# Per-route limits only (sign-in throttling); storage from RATELIMIT_STORAGE_URI
limiter = Limiter(key_func=get_remote_address, default_limits=[])
