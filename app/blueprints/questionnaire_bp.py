"""
Questionnaire blueprint — read-only view of the active question schema.

Endpoints:
    GET /api/v1/questionnaires/active
        Returns: 200 with the questionnaire and its questions grouped by
        phase, or 404 when no questionnaire is active.

Schema authoring is handled outside the intake engine.
"""

import logging

from flask import Blueprint, jsonify

from app.services import questionnaire_service
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

questionnaire_bp = Blueprint("questionnaire", __name__, url_prefix="/api/v1")
register_error_handlers(questionnaire_bp)


@questionnaire_bp.route("/questionnaires/active", methods=["GET"])
def get_active():
    return jsonify(questionnaire_service.serialize_active()), 200
