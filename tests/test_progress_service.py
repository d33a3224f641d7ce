"""
Tests for the progress calculator.

pytest markers: unit
"""

import pytest

from app.core.exceptions import NotFoundError
from app.services import intake_service
from app.services.progress_service import compute_progress, percent_of

pytestmark = pytest.mark.unit

BRANCHY_QUESTIONS = [
    {"id": "kind", "phase": "FUNCTIONAL", "order": 1, "question_text": "Project type",
     "type": "DROPDOWN", "options": ["Website", "E-commerce"]},
    {"id": "payments", "phase": "FUNCTIONAL", "order": 2, "question_text": "Payment methods",
     "type": "CHECKBOX", "options": ["Cards", "PayPal"],
     "show_if": {"question_id": "kind", "equals": "E-commerce"}},
]


@pytest.mark.parametrize("answered,total,expected", [
    (0, 0, 0), (0, 3, 0), (1, 3, 33), (2, 3, 67), (3, 3, 100), (1, 2, 50), (1, 8, 13),
])
def test_percent_rounds_half_up(answered, total, expected):
    assert percent_of(answered, total) == expected


class TestComputeProgress:
    def test_complete_intake(self, answered_project):
        progress = compute_progress(answered_project.id)
        assert progress["answered_count"] == 3
        assert progress["total_count"] == 3
        assert progress["percent"] == 100
        assert progress["last_saved_at"] is not None

    def test_per_phase_breakdown(self, questionnaire, project):
        intake_service.apply_batch(project.id, {"q_Q1": "hello"})
        progress = compute_progress(project.id)
        assert progress["phases"] == [
            {"phase": "DISCOVERY", "title": "Discovery", "answered_count": 1, "total_count": 2, "percent": 50},
            {"phase": "TECH", "title": "Technical Requirements", "answered_count": 0, "total_count": 1,
             "percent": 0},
        ]

    def test_phase_scope(self, questionnaire, project):
        intake_service.apply_batch(project.id, {"q_Q3": "Y"})
        progress = compute_progress(project.id, phase="TECH")
        assert (progress["answered_count"], progress["total_count"], progress["percent"]) == (1, 1, 100)
        assert progress["phase"] == "TECH"

    def test_monotonic_as_questions_are_answered(self, questionnaire, project):
        seen = [compute_progress(project.id)["percent"]]
        for field, value in (("q_Q3", "X"), ("q_Q1", "hello"), ("q_Q2", ["B"])):
            intake_service.apply_batch(project.id, {field: value})
            seen.append(compute_progress(project.id)["percent"])
        assert seen == sorted(seen)
        assert seen[-1] == 100

    def test_no_questionnaire_is_zero(self, project):
        progress = compute_progress(project.id)
        assert (progress["answered_count"], progress["total_count"], progress["percent"]) == (0, 0, 0)
        assert progress["phases"] == []
        assert progress["last_saved_at"] is None

    def test_answers_outside_active_questionnaire_not_counted(self, answered_project,
                                                             make_questionnaire):
        make_questionnaire(
            [{"id": "N1", "phase": "DISCOVERY", "order": 1, "question_text": "N1", "type": "TEXT"}],
            version=2,
        )
        progress = compute_progress(answered_project.id)
        assert (progress["answered_count"], progress["total_count"]) == (0, 1)

    def test_missing_project(self):
        with pytest.raises(NotFoundError):
            compute_progress(404)


class TestVisibilityModes:
    def test_hidden_question_counts_by_default(self, make_questionnaire, project):
        make_questionnaire(BRANCHY_QUESTIONS, name="Branchy")
        intake_service.apply_batch(project.id, {"q_kind": "Website"})

        progress = compute_progress(project.id)
        assert progress["visible_only"] is False
        assert (progress["answered_count"], progress["total_count"], progress["percent"]) == (1, 2, 50)

    def test_visible_only_excludes_hidden_question(self, make_questionnaire, project):
        make_questionnaire(BRANCHY_QUESTIONS, name="Branchy")
        intake_service.apply_batch(project.id, {"q_kind": "Website"})

        progress = compute_progress(project.id, visible_only=True)
        assert (progress["answered_count"], progress["total_count"], progress["percent"]) == (1, 1, 100)

    def test_visible_only_includes_revealed_question(self, make_questionnaire, project):
        make_questionnaire(BRANCHY_QUESTIONS, name="Branchy")
        intake_service.apply_batch(project.id, {"q_kind": "E-commerce"})

        progress = compute_progress(project.id, visible_only=True)
        assert (progress["answered_count"], progress["total_count"]) == (1, 2)

    def test_default_mode_from_config(self, app, make_questionnaire, project, monkeypatch):
        make_questionnaire(BRANCHY_QUESTIONS, name="Branchy")
        intake_service.apply_batch(project.id, {"q_kind": "Website"})
        monkeypatch.setitem(app.config, "INTAKE_PROGRESS_VISIBLE_ONLY", True)

        progress = compute_progress(project.id)
        assert progress["visible_only"] is True
        assert progress["total_count"] == 1
