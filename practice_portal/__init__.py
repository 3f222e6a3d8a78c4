"""
Good Practice Portal
Flask Application Factory.

Usage:
    from practice_portal import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from practice_portal.config import config
from practice_portal.models import db
from practice_portal.auth import init_auth
from practice_portal.middleware.logging_config import configure_logging
from practice_portal.middleware.rate_limiter import init_rate_limits
from practice_portal.middleware.security_headers import init_security_headers
from practice_portal.middleware.timing import init_request_timing

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


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
    default_limits=[],                     # limits are applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
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
    app.config.from_object(config[config_name])
    os.makedirs(app.instance_path, exist_ok=True)

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

    # ── Session resolver (sets g.caller) ─────────────────────────────────
    init_auth(app)

    # ── Security headers ─────────────────────────────────────────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 1 * 1024 * 1024)  # 1 MB

    # ── Import all models so Alembic can detect them ─────────────────────
    from practice_portal.models import practice as _practice_models      # noqa: F401
    from practice_portal.models import evaluation as _evaluation_models  # noqa: F401
    from practice_portal.models import contract as _contract_models      # noqa: F401
    from practice_portal.models import voting as _voting_models          # noqa: F401
    from practice_portal.models import audit as _audit_models            # noqa: F401
    from practice_portal.models import committee as _committee_models    # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS; migrations own changes) ──
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from practice_portal.blueprints import ALL_BLUEPRINTS

    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)

    # ── Rate limits (per blueprint, skipped under TESTING) ───────────────
    init_rate_limits(app, limiter)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("issue-token")
    @click.argument("matricula")
    @click.option("--contract", default=None, help="Contract code carried by the token")
    @click.option("--role", default="viewer", type=click.Choice(["admin", "editor", "viewer"]))
    def issue_token_cmd(matricula, contract, role):
        """Mint an access token for local development and smoke tests."""
        from practice_portal.services.jwt_service import generate_access_token
        click.echo(generate_access_token(matricula, contract, role))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "detail": str(e.description)}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    return app
