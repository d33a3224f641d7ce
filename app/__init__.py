"""
Consultation Intake
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from app.config import config
from app.models import db
from app.middleware.logging_config import configure_logging
from app.middleware.timing import init_request_timing
from app.middleware.diagnostics import run_startup_diagnostics
from app.middleware.rate_limiter import init_rate_limits

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections (answer/proposal cascades)."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per-blueprint
)

# Form posts are accepted on these paths; everything else under /api/ is JSON.
_FORM_PATH_SUFFIXES = ("/answers", "/answers/bulk")
_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


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
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins == "*":
        CORS(app)
    elif cors_origins:
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Request guard (Content-Type) ─────────────────────────────────────
    @app.before_request
    def _guard_request():
        from flask import request as _req, abort
        if _req.method in ("POST", "PUT", "PATCH") and _req.path.startswith("/api/"):
            ct = _req.content_type or ""
            if "json" in ct or not _req.data and not _req.form:
                return None
            if _req.path.endswith(_FORM_PATH_SUFFIXES) and any(t in ct for t in _FORM_CONTENT_TYPES):
                return None
            abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import client as _client_models             # noqa: F401
    from app.models import project as _project_models           # noqa: F401
    from app.models import questionnaire as _questionnaire_models  # noqa: F401
    from app.models import answer as _answer_models             # noqa: F401
    from app.models import proposal as _proposal_models         # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.questionnaire_bp import questionnaire_bp
    from app.blueprints.intake_bp import intake_bp
    from app.blueprints.brief_bp import brief_bp
    from app.blueprints.health_bp import health_bp

    app.register_blueprint(questionnaire_bp)
    app.register_blueprint(intake_bp)
    app.register_blueprint(brief_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-questionnaire")
    def seed_questionnaire_cmd():
        """Seed and activate the default "Universal v1" questionnaire."""
        from app.services.questionnaire_service import seed_default_questionnaire
        qn = seed_default_questionnaire(activate=True)
        logger.info("Active questionnaire: %s v%s (%d questions)",
                    qn.name, qn.version, len(qn.questions))

    # ── Health check (short form; details at /health/live) ─────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Consultation Intake"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"ok": False, "error": "Not found", "path": request.path}, 404

    @app.errorhandler(500)
    def server_error(e):
        logging.getLogger(__name__).error("500 error: %s", e, exc_info=True)
        return {"ok": False, "error": "Internal server error"}, 500

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"ok": False, "error": "Method not allowed"}, 405

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"ok": False, "error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"ok": False, "error": "Too many requests", "retry_after": e.description}, 429

    # ── Startup diagnostics ──────────────────────────────────────────────
    run_startup_diagnostics(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
