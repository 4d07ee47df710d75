"""
IT Help-Desk Ticket Service
Flask Application Factory.

Usage:
    from helpdesk import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from helpdesk.config import config
from helpdesk.middleware.jwt_auth import init_jwt_middleware
from helpdesk.middleware.logging_config import configure_logging
from helpdesk.middleware.rate_limiter import init_rate_limits
from helpdesk.middleware.timing import init_request_timing
from helpdesk.models import db

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing + JWT actor ───────────────────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)

    @app.before_request
    def _guard_request():
        from flask import abort
        # Content-Type validation for mutating API calls
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.content_length and "json" not in ct and "multipart/form-data" not in ct:
                abort(415, description="Content-Type must be application/json or multipart/form-data")

    # ── Import all models so create_all / Alembic can see them ───────────
    from helpdesk.models import directory as _directory_models  # noqa: F401
    from helpdesk.models import email_log as _email_log_models  # noqa: F401
    from helpdesk.models import ticket as _ticket_models        # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ─────────────────────────
    if not app.config.get("TESTING"):
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from helpdesk.blueprints.ticket_bp import ticket_bp

    app.register_blueprint(ticket_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-roles")
    def seed_roles_cmd():
        """Create the fixed directory roles (Admin, Agent, IT Head) if missing."""
        from helpdesk.services.directory_service import seed_roles
        count = seed_roles()
        logger.info("Seeded %s new role(s).", count)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "IT Help-Desk"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
