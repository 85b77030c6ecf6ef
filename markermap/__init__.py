"""
Marker Map Moderation Platform
Flask Application Factory.

Usage:
    from markermap import create_app
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
from sqlalchemy import engine as _sa_engine, event as _sa_event

from markermap.auth import init_auth
from markermap.config import config
from markermap.core.exceptions import InvalidFormatError, NotFoundError, ValidationError
from markermap.middleware.diagnostics import run_startup_diagnostics
from markermap.middleware.logging_config import configure_logging
from markermap.middleware.rate_limiter import init_rate_limits
from markermap.models import db
from markermap.utils.errors import E, api_error

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
    default_limits=[],                     # no global limit; applied per-blueprint
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)


def _register_error_handlers(app):
    from markermap.integrations.geocoding_gateway import GeocodingError

    @app.errorhandler(NotFoundError)
    def _not_found_error(exc):
        return api_error(E.NOT_FOUND, f"{exc.resource} not found")

    @app.errorhandler(ValidationError)
    def _validation_error(exc):
        return api_error(E.VALIDATION_INVALID, str(exc), details={"messages": exc.messages})

    @app.errorhandler(InvalidFormatError)
    def _invalid_format(exc):
        return api_error(E.INVALID_FORMAT, str(exc))

    @app.errorhandler(GeocodingError)
    def _geocoding_error(exc):
        return api_error(E.UPSTREAM, str(exc))

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500


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

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    app.config.setdefault("RATELIMIT_STORAGE_URI", "memory://")
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Authentication & identity ─────────────────────────────────────────
    init_auth(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 5 * 1024 * 1024)  # 5 MB import files

    # ── Import all models so Alembic can detect them ─────────────────────
    from markermap.models import forum as _forum_models          # noqa: F401
    from markermap.models import marker as _marker_models        # noqa: F401
    from markermap.models import scheduling as _scheduling_models  # noqa: F401

    with app.app_context():
        if str(app.config.get("SQLALCHEMY_DATABASE_URI") or "").startswith("sqlite"):
            os.makedirs(app.instance_path, exist_ok=True)
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from markermap.blueprints.admin_bp import admin_bp
    from markermap.blueprints.map_bp import map_bp

    app.register_blueprint(map_bp)
    app.register_blueprint(admin_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("run-job")
    @click.argument("name")
    def run_job_cmd(name):
        """Run a scheduled job now (for cron / external schedulers)."""
        from markermap.services.scheduler_service import SchedulerService
        result = SchedulerService.run_job(name)
        click.echo(f"{result['job_name']}: {result['status']} {result.get('result') or result.get('error') or ''}")

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Marker Map Platform"}

    _register_error_handlers(app)

    # ── Startup diagnostics ──────────────────────────────────────────────
    run_startup_diagnostics(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler initialization (import jobs to register them) ──────────
    import importlib
    importlib.import_module("markermap.services.scheduled_jobs")  # registers @register_job handlers
    from markermap.services.scheduler_service import SchedulerService as _SchedulerSvc
    _SchedulerSvc.init_app(app)

    return app
