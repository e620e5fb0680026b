"""
Golden Bridge Women
Flask Application Factory.

Usage:
    from goldenbridge import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from goldenbridge.auth import init_auth
from goldenbridge.config import ProductionConfig, config
from goldenbridge.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from goldenbridge.middleware.jwt_auth import init_jwt_middleware
from goldenbridge.middleware.logging_config import configure_logging
from goldenbridge.middleware.rate_limiter import init_rate_limits
from goldenbridge.middleware.timing import init_request_timing
from goldenbridge.models import db
from goldenbridge.utils.errors import E, api_error

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
    default_limits=[],                     # limits are attached per blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def _register_error_handlers(app):
    """Map the service exception taxonomy onto API error responses."""

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error):
        db.session.rollback()
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(TransitionError)
    def _handle_transition(error):
        db.session.rollback()
        return api_error(E.CONFLICT_STATE, str(error), details=error.details)

    @app.errorhandler(ValidationError)
    def _handle_validation(error):
        db.session.rollback()
        return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details)

    @app.errorhandler(ConflictError)
    def _handle_conflict(error):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @app.errorhandler(PermissionDenied)
    def _handle_forbidden(error):
        db.session.rollback()
        logger.warning("Permission denied: user %s tried to %s on %s",
                       error.actor_id, error.action, request.path)
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": E.VALIDATION_INVALID}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        logger.error("500 error on %s", request.path, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def _register_cli(app):
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Load the demo users, programs, milestones and budget."""
        from goldenbridge.seed import seed_demo_data
        summary = seed_demo_data()
        click.echo(f"Seeded demo data: {summary}")

    @app.cli.command("expire-invites")
    def expire_invites_cmd():
        """Mark overdue pending invites as expired."""
        from goldenbridge.services.program_service import expire_invites
        click.echo(f"Expired {expire_invites()} invite(s)")


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
    config_class = config[config_name]
    # Production validates its environment on instantiation
    app.config.from_object(config_class() if config_class is ProductionConfig else config_class)

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

    # ── Middleware ───────────────────────────────────────────────────────
    init_auth(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from goldenbridge.models import audit as _audit_models                # noqa: F401
    from goldenbridge.models import finance as _finance_models            # noqa: F401
    from goldenbridge.models import milestone as _milestone_models        # noqa: F401
    from goldenbridge.models import notification as _notification_models  # noqa: F401
    from goldenbridge.models import program as _program_models            # noqa: F401
    from goldenbridge.models import user as _user_models                  # noqa: F401

    # ── Domain event subscribers (import registers @subscribe handlers) ──
    importlib.import_module("goldenbridge.services.audit_service")

    if config_name != "production":
        with app.app_context():
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from goldenbridge.blueprints.audit_bp import audit_bp
    from goldenbridge.blueprints.auth_bp import auth_bp
    from goldenbridge.blueprints.finance_bp import finance_bp
    from goldenbridge.blueprints.health_bp import health_bp
    from goldenbridge.blueprints.milestone_bp import milestone_bp
    from goldenbridge.blueprints.notification_bp import notification_bp
    from goldenbridge.blueprints.program_bp import program_bp
    from goldenbridge.blueprints.report_bp import report_bp
    from goldenbridge.blueprints.user_bp import user_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(program_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(milestone_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(report_bp)
    app.register_blueprint(health_bp)

    _register_error_handlers(app)
    _register_cli(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
