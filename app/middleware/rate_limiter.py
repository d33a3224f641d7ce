"""
Rate limiting configuration.

Applies per-blueprint limits using Flask-Limiter. The Limiter instance is
created in app/__init__.py with no default limits; this module decides which
route groups are limited and how hard.

Limits (per remote IP, configurable):
    - intake (autosave):   AUTOSAVE_RATE_LIMIT   default 120/minute
    - brief (snapshots):   SNAPSHOT_RATE_LIMIT   default 20/minute
    - questionnaire:       200/minute
    - health:              exempt

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)


def init_rate_limits(app, limiter):
    """Apply rate limits to API blueprints. Disabled in testing mode."""

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    autosave_limit = app.config.get("AUTOSAVE_RATE_LIMIT", "120/minute")
    snapshot_limit = app.config.get("SNAPSHOT_RATE_LIMIT", "20/minute")

    # Autosave fires on every field blur; keep it generous.
    bp = app.blueprints.get("intake")
    if bp:
        limiter.limit(autosave_limit)(bp)

    # Each snapshot renders the full brief and appends a row.
    bp = app.blueprints.get("brief")
    if bp:
        limiter.limit(snapshot_limit, methods=["POST"])(bp)

    bp = app.blueprints.get("questionnaire")
    if bp:
        limiter.limit("200/minute")(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — autosave: %s, snapshots: %s", autosave_limit, snapshot_limit,
    )
