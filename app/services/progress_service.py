"""
Progress calculator — completion of a project's intake, computed on demand.

Nothing is cached: every call reads the current answers and the active
questionnaire.

Counting modes:
    visible_only=False   every question of the active questionnaire counts
                         toward the total, conditional or not (default)
    visible_only=True    questions hidden by their ``show_if`` rule are left
                         out of both the answered count and the total

The default comes from ``INTAKE_PROGRESS_VISIBLE_ONLY``.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func, select

from app.models import db
from app.models.answer import Answer
from app.models.questionnaire import phase_title
from app.services import intake_service, questionnaire_service

logger = logging.getLogger(__name__)


def percent_of(answered: int, total: int) -> int:
    """Rounded percentage, half-up (2/3 -> 67); 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * answered + total) // (2 * total)


def _bucket(answered: int, total: int) -> dict:
    return {"answered_count": answered, "total_count": total, "percent": percent_of(answered, total)}


def last_saved_at(project_id: int):
    return db.session.execute(
        select(func.max(Answer.updated_at)).where(Answer.project_id == project_id)
    ).scalar()


def compute_progress(project_id: int, *, phase: str | None = None,
                     visible_only: bool | None = None) -> dict:
    """Completion of a project's intake.

    Args:
        project_id:   Project to measure.
        phase:        When given, the top-level numbers cover this phase only.
        visible_only: Counting mode; None reads the app config.

    Returns:
        ``{answered_count, total_count, percent, last_saved_at, phase,
        visible_only, phases: [{phase, title, answered_count, total_count,
        percent}]}``

    Raises:
        NotFoundError: project missing.
    """
    intake_service.get_project(project_id)
    if visible_only is None:
        visible_only = bool(current_app.config.get("INTAKE_PROGRESS_VISIBLE_ONLY", False))

    saved = last_saved_at(project_id)
    report = {
        **_bucket(0, 0),
        "phase": phase,
        "visible_only": visible_only,
        "last_saved_at": saved.isoformat() if saved else None,
        "phases": [],
    }

    questionnaire = questionnaire_service.find_active_questionnaire()
    if questionnaire is None:
        logger.debug("No active questionnaire; progress for project_id=%s is empty", project_id)
        return report

    answers = intake_service.decoded_answers(project_id, questionnaire.questions)

    answered_total = total = 0
    for ph, questions in questionnaire_service.group_by_phase(questionnaire.questions):
        counted = [
            q for q in questions
            if not visible_only or questionnaire_service.is_visible(q, answers)
        ]
        answered = sum(1 for q in counted if q.id in answers and not answers[q.id].is_empty)
        report["phases"].append({"phase": ph, "title": phase_title(ph), **_bucket(answered, len(counted))})
        if phase is None or phase == ph:
            answered_total += answered
            total += len(counted)

    report.update(_bucket(answered_total, total))
    return report
