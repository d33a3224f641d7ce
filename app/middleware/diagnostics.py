"""
Startup diagnostics — runs once when the Flask app starts.

Checks the database and the intake schema, then logs a summary banner.
"""

import logging
import sys

from flask import Flask

from app.models import db

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as exc:
            db_status = "FAILED"
            issues.append(f"Database unreachable: {exc}")

        # ── Table count ──────────────────────────────────────────────
        try:
            from sqlalchemy import inspect as sa_inspect
            table_count = len(sa_inspect(db.engine).get_table_names())
            if table_count == 0:
                issues.append("No tables found — run 'flask db upgrade'")
        except Exception:
            table_count = "?"

        # ── Active questionnaire ─────────────────────────────────────
        questionnaire_status = "n/a"
        if db_status == "ok":
            from app.services.questionnaire_service import find_active_questionnaire
            try:
                qn = find_active_questionnaire()
            except Exception as exc:
                qn = None
                issues.append(f"Questionnaire lookup failed: {exc}")
            if qn:
                questionnaire_status = f"{qn.name} v{qn.version} ({len(qn.questions)} q)"
            else:
                questionnaire_status = "NONE ACTIVE"
                issues.append("No active questionnaire — run 'flask seed-questionnaire'")

        mode = "visible-only" if app.config.get("INTAKE_PROGRESS_VISIBLE_ONLY") else "all questions"

        # ── Banner ───────────────────────────────────────────────────
        banner = f"""
╔══════════════════════════════════════════════════════════════╗
║  Consultation Intake — Startup Diagnostics                   ║
╠══════════════════════════════════════════════════════════════╣
║  Python        : {py:<44s}║
║  Debug         : {str(app.debug):<44s}║
║  Database      : {f'{db_type} ({db_status})':<44s}║
║  Tables        : {str(table_count):<44s}║
║  Questionnaire : {questionnaire_status[:44]:<44s}║
║  Progress mode : {mode:<44s}║
╚══════════════════════════════════════════════════════════════╝"""
        logger.info(banner)

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  ⚠ %s", issue)
        else:
            logger.info("✅ All startup checks passed")
