"""
IT Help-Desk Ticket Service
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'helpdesk_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _env_bool(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name, default=None):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Email / SMTP (optional; dev mode logs without sending)
    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "true").lower() == "true"
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "noreply@helpdesk.local")
    MAIL_SENDER_NAME = os.getenv("MAIL_SENDER_NAME", "IT Support")

    # Base URL for links embedded in emails (approve / reject)
    APP_URL = os.getenv("APP_URL", "http://localhost:5000")

    # Attachments
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(basedir, "uploads"))
    MAX_ATTACHMENTS = int(os.getenv("MAX_ATTACHMENTS", "5"))
    ALLOWED_UPLOAD_EXTENSIONS = [
        e.strip() for e in os.getenv(
            "ALLOWED_UPLOAD_EXTENSIONS", "pdf,png,jpg,jpeg,gif,txt,doc,docx,xls,xlsx,csv,zip",
        ).split(",") if e.strip()
    ]
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10 MB

    # Ticket lifecycle
    APPROVAL_TOKEN_TTL_HOURS = int(os.getenv("APPROVAL_TOKEN_TTL_HOURS", "24"))
    APPROVAL_GATE_ENABLED = _env_bool("APPROVAL_GATE_ENABLED")
    PRIMARY_IT_HEAD_USER_ID = _env_int("PRIMARY_IT_HEAD_USER_ID")
    NOTIFICATIONS_ASYNC = _env_bool("NOTIFICATIONS_ASYNC", "true")

    LOG_LEVEL = os.getenv("LOG_LEVEL")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    # Mail is never sent in tests; EmailLog rows record what would have gone out
    MAIL_SERVER = None
    NOTIFICATIONS_ASYNC = False
    APPROVAL_GATE_ENABLED = False
    PRIMARY_IT_HEAD_USER_ID = None
    APP_URL = "http://helpdesk.test"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

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
