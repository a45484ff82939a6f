"""
BugFixer Backend
Flask Application Factory.

Usage:
    from bugfixer import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from bugfixer.config import config
from bugfixer.core.exceptions import BugFixerError
from bugfixer.integrations.github_gateway import GitHubGateway
from bugfixer.integrations.image_storage import STORAGE_KEY, ImageStorage
from bugfixer.middleware.jwt_auth import init_jwt_middleware
from bugfixer.middleware.logging_config import configure_logging
from bugfixer.middleware.rate_limiter import init_rate_limits
from bugfixer.middleware.security_headers import init_security_headers
from bugfixer.middleware.timing import init_request_timing
from bugfixer.middleware.widget_cors import init_widget_cors
from bugfixer.models import db
from bugfixer.services.email_service import OUTBOX_KEY
from bugfixer.services.cache_service import (
    IDENTITY_CACHE_KEY,
    WIDGET_ORIGIN_CACHE_KEY,
    TTLCache,
    WidgetOriginCache,
)
from bugfixer.services.github_service import GATEWAY_KEY
from bugfixer.services.widget_service import load_allowed_origins

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
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
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def _init_caches(app):
    """Build the in-process caches; tests may replace them in app.extensions."""
    app.extensions[IDENTITY_CACHE_KEY] = TTLCache(
        ttl_seconds=app.config["IDENTITY_CACHE_TTL"],
        max_size=app.config["IDENTITY_CACHE_MAX_SIZE"],
    )
    app.extensions[WIDGET_ORIGIN_CACHE_KEY] = WidgetOriginCache(
        loader=load_allowed_origins,
        ttl_seconds=app.config["WIDGET_ORIGIN_CACHE_TTL"],
    )
    app.extensions[GATEWAY_KEY] = GitHubGateway.from_config(app.config)
    app.extensions[STORAGE_KEY] = ImageStorage.from_config(app.config)
    if app.config.get("TESTING"):
        # Log-only mail mode records sent messages here
        app.extensions[OUTBOX_KEY] = []


def _register_error_handlers(app):
    @app.errorhandler(BugFixerError)
    def handle_domain_error(e):
        if e.status_code >= 500:
            logger.error("%s: %s", type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found", "path": request.path}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": "Request body too large"}), 413

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "Too many requests", "retry_after": e.description}), 429

    @app.errorhandler(500)
    def server_error(e):
        original = getattr(e, "original_exception", None) or e
        logger.error("Unhandled error on %s %s", request.method, request.path,
                     exc_info=(type(original), original, original.__traceback__))
        db.session.rollback()
        body = {"error": "Internal server error"}
        if app.config.get("DEBUG"):
            body["message"] = str(original)
        return jsonify(body), 500


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
    # Instantiated so ProductionConfig can refuse a missing DATABASE_URL
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    frontend_origins = [o.strip().rstrip("/") for o in app.config["FRONTEND_URL"].split(",") if o.strip()]
    CORS(
        app,
        resources={r"/api/*": {"origins": frontend_origins}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    _init_caches(app)

    # ── Middleware ───────────────────────────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)
    init_widget_cors(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from bugfixer.models import bug as _bug_models                   # noqa: F401
    from bugfixer.models import integrations as _integration_models  # noqa: F401
    from bugfixer.models import project as _project_models           # noqa: F401
    from bugfixer.models import user as _user_models                 # noqa: F401
    from bugfixer.models import widget as _widget_models             # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from bugfixer.blueprints.agent_config_bp import agent_config_bp
    from bugfixer.blueprints.auth_bp import auth_bp
    from bugfixer.blueprints.bug_bp import bug_bp
    from bugfixer.blueprints.github_bp import github_bp
    from bugfixer.blueprints.health_bp import health_bp
    from bugfixer.blueprints.invitation_bp import invitation_bp
    from bugfixer.blueprints.member_bp import member_bp
    from bugfixer.blueprints.project_bp import project_bp
    from bugfixer.blueprints.upload_bp import upload_bp
    from bugfixer.blueprints.widget_bp import widget_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(bug_bp)
    app.register_blueprint(member_bp)
    app.register_blueprint(invitation_bp)
    app.register_blueprint(widget_bp)
    app.register_blueprint(github_bp)
    app.register_blueprint(agent_config_bp)
    app.register_blueprint(upload_bp)

    _register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
