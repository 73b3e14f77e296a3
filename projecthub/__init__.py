"""
ProjectHub
Flask application factory.

Usage:
    from projecthub import create_app
    app = create_app()           # reads APP_ENV, defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from projecthub.config import config
from projecthub.middleware.jwt_auth import init_jwt_middleware
from projecthub.middleware.logging_config import configure_logging
from projecthub.middleware.timing import init_request_timing
from projecthub.models import db
from projecthub.utils.errors import E, api_error

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


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to the APP_ENV env var, or "development".

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request middleware ───────────────────────────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from projecthub.models import approval as _approval_models          # noqa: F401
    from projecthub.models import audit as _audit_models                # noqa: F401
    from projecthub.models import comment as _comment_models            # noqa: F401
    from projecthub.models import notification as _notification_models  # noqa: F401
    from projecthub.models import project as _project_models            # noqa: F401
    from projecthub.models import stage as _stage_models                # noqa: F401

    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            try:
                db.create_all()
            except SQLAlchemyError as exc:
                app.logger.warning("db.create_all() failed: %s", exc)

    # ── Blueprints ───────────────────────────────────────────────────────
    from projecthub.blueprints.comment_bp import comment_bp
    from projecthub.blueprints.component_bp import component_bp
    from projecthub.blueprints.health_bp import health_bp
    from projecthub.blueprints.project_content_bp import project_content_bp
    from projecthub.blueprints.project_bp import project_bp
    from projecthub.blueprints.stage_bp import stage_bp

    app.register_blueprint(stage_bp)
    app.register_blueprint(component_bp)
    app.register_blueprint(comment_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(project_content_bp)
    app.register_blueprint(health_bp)

    @app.errorhandler(500)
    def _handle_unexpected(error):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return api_error(E.INTERNAL, "Internal server error")

    logger.debug("ProjectHub app created with config=%s", config_name)
    return app
