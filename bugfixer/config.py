"""
BugFixer Backend
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'bugfixer_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _normalise_db_url(raw: str) -> str:
    # SQLAlchemy 2.0 requires postgresql://
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # Auth (JWT in httpOnly cookie)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_EXPIRES = int(os.getenv("JWT_EXPIRES", str(7 * 24 * 3600)))
    AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_SECURE = os.getenv("AUTH_COOKIE_SECURE", "false").lower() == "true"
    BCRYPT_ROUNDS = 12

    # Rate limiter storage
    REDIS_URL = os.getenv("REDIS_URL", "memory://")

    # CORS / public URLs
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
    API_PUBLIC_URL = os.getenv("API_PUBLIC_URL", "http://localhost:7070")

    # Email / SMTP (log-only mode when MAIL_SERVER is unset)
    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "true").lower() == "true"
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "BugFixer <noreply@bugfixer.local>")

    # GitHub OAuth
    GITHUB_CLIENT_ID = os.getenv("GITHUB_CLIENT_ID", "")
    GITHUB_CLIENT_SECRET = os.getenv("GITHUB_CLIENT_SECRET", "")
    GITHUB_CALLBACK_URL = os.getenv(
        "GITHUB_CALLBACK_URL", "http://localhost:7070/api/github/callback"
    )
    GITHUB_STATE_MAX_AGE = 600  # seconds
    ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")

    # Caches
    IDENTITY_CACHE_TTL = int(os.getenv("IDENTITY_CACHE_TTL", "300"))
    IDENTITY_CACHE_MAX_SIZE = int(os.getenv("IDENTITY_CACHE_MAX_SIZE", "1000"))
    WIDGET_ORIGIN_CACHE_TTL = int(os.getenv("WIDGET_ORIGIN_CACHE_TTL", "60"))

    # Side effects
    NOTIFICATIONS_ASYNC = os.getenv("NOTIFICATIONS_ASYNC", "true").lower() == "true"
    OUTBOUND_HTTP_TIMEOUT = float(os.getenv("OUTBOUND_HTTP_TIMEOUT", "10"))

    # Screenshot uploads (local disk; unset disables /api/upload)
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER")

    MAX_CONTENT_LENGTH = 52 * 1024 * 1024  # five 10 MB images + form fields

    # Logging (see middleware/logging_config.py)
    LOG_LEVEL = os.getenv("LOG_LEVEL")
    LOG_FORMAT = os.getenv("LOG_FORMAT")
    SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "1000"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _normalise_db_url(_raw_db_url) if _raw_db_url else _SQLITE_DEV


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret"
    ENCRYPTION_KEY = "test-encryption-key"
    RATELIMIT_ENABLED = False
    BCRYPT_ROUNDS = 4
    NOTIFICATIONS_ASYNC = False
    FRONTEND_URL = "http://localhost:5173"
    API_PUBLIC_URL = "http://localhost:7070"
    GITHUB_CLIENT_ID = "test-client-id"
    GITHUB_CLIENT_SECRET = "test-client-secret"
    GITHUB_CALLBACK_URL = "http://localhost:7070/api/github/callback"
    MAIL_SERVER = None
    UPLOAD_FOLDER = None


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _normalise_db_url(_raw_db_url) if _raw_db_url else None
    AUTH_COOKIE_SECURE = os.getenv("AUTH_COOKIE_SECURE", "true").lower() == "true"

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
