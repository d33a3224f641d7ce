"""
Tests for the question schema store.

Covers:
  - get_active_questionnaire / find_active_questionnaire
  - phase ordering and grouping
  - show_if visibility rules
  - activation toggling and default seeding
  - immutability of questions referenced by answers

pytest markers: unit
"""

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.answer import Answer
from app.models.questionnaire import PHASES, Question, Questionnaire, phase_title
from app.services import questionnaire_service
from app.services.answer_codec import MultiValue, SingleValue

pytestmark = pytest.mark.unit


def _make_answer(project_id, question_id, value):
    a = Answer(project_id=project_id, question_id=question_id, value=value)
    db.session.add(a)
    db.session.commit()
    return a


class TestActiveQuestionnaire:
    def test_missing_raises_not_found(self):
        with pytest.raises(NotFoundError):
            questionnaire_service.get_active_questionnaire()
        assert questionnaire_service.find_active_questionnaire() is None

    def test_returns_active(self, questionnaire):
        active = questionnaire_service.get_active_questionnaire()
        assert active.id == questionnaire.id
        assert {q.id for q in active.questions} == {"Q1", "Q2", "Q3"}

    def test_activation_is_exclusive(self, questionnaire, make_questionnaire):
        second = make_questionnaire(
            [{"id": "N1", "phase": "DISCOVERY", "order": 1, "question_text": "N1", "type": "TEXT"}],
            name="Scenario", version=2,
        )
        assert questionnaire_service.get_active_questionnaire().id == second.id
        assert db.session.get(Questionnaire, questionnaire.id).is_active is False

        questionnaire_service.activate_questionnaire(questionnaire.id)
        assert questionnaire_service.get_active_questionnaire().id == questionnaire.id
        assert Questionnaire.query.filter_by(is_active=True).count() == 1

    def test_activate_unknown_raises(self):
        with pytest.raises(NotFoundError):
            questionnaire_service.activate_questionnaire(999)

    def test_serialize_active_groups_by_phase(self, questionnaire):
        data = questionnaire_service.serialize_active()
        assert data["name"] == "Scenario"
        assert [p["phase"] for p in data["phases"]] == ["DISCOVERY", "TECH"]
        assert data["phases"][1]["title"] == "Technical Requirements"
        assert [q["id"] for q in data["phases"][0]["questions"]] == ["Q1", "Q2"]
        assert data["phases"][0]["questions"][1]["has_other"] is True


class TestOrdering:
    def test_phase_enumeration_then_order(self, make_questionnaire):
        qn = make_questionnaire([
            {"id": "s1", "phase": "STACK", "order": 1, "question_text": "s1", "type": "TEXT"},
            {"id": "d2", "phase": "DISCOVERY", "order": 2, "question_text": "d2", "type": "TEXT"},
            {"id": "t1", "phase": "TECH", "order": 1, "question_text": "t1", "type": "TEXT"},
            {"id": "d1", "phase": "DISCOVERY", "order": 1, "question_text": "d1", "type": "TEXT"},
        ])
        assert [q.id for q in qn.ordered_questions()] == ["d1", "d2", "t1", "s1"]
        groups = questionnaire_service.group_by_phase(qn.questions)
        assert [(phase, [q.id for q in qs]) for phase, qs in groups] == [
            ("DISCOVERY", ["d1", "d2"]), ("TECH", ["t1"]), ("STACK", ["s1"]),
        ]

    def test_phase_titles(self):
        assert PHASES[0] == "DISCOVERY"
        assert phase_title("AUDIENCE") == "Audience & UX"
        assert phase_title("STACK") == "Tech Stack"


class TestVisibility:
    def _q(self, show_if):
        return Question(id="dep", phase="FUNCTIONAL", order=1, question_text="dep",
                        type="TEXT", show_if=show_if)

    def test_no_rule_is_visible(self):
        assert questionnaire_service.is_visible(self._q(None), {}) is True

    def test_equals(self):
        q = self._q({"question_id": "src", "equals": "E-commerce"})
        assert questionnaire_service.is_visible(q, {"src": SingleValue("E-commerce")}) is True
        assert questionnaire_service.is_visible(q, {"src": SingleValue("Website")}) is False
        assert questionnaire_service.is_visible(q, {}) is False

    def test_includes_on_multi_value(self):
        q = self._q({"question_id": "src", "includes": "B"})
        assert questionnaire_service.is_visible(q, {"src": MultiValue(("A", "B"))}) is True
        assert questionnaire_service.is_visible(q, {"src": MultiValue(("A",))}) is False

    def test_in(self):
        q = self._q({"question_id": "src", "in": ["X", "Y"]})
        assert questionnaire_service.is_visible(q, {"src": SingleValue("Y")}) is True
        assert questionnaire_service.is_visible(q, {"src": SingleValue("Z")}) is False

    def test_answered(self):
        q = self._q({"question_id": "src", "answered": True})
        assert questionnaire_service.is_visible(q, {"src": SingleValue("x")}) is True
        assert questionnaire_service.is_visible(q, {}) is False
        q_not = self._q({"question_id": "src", "answered": False})
        assert questionnaire_service.is_visible(q_not, {}) is True

    def test_unknown_rule_shape_is_visible(self):
        q = self._q({"question_id": "src", "matches": "^a"})
        assert questionnaire_service.is_visible(q, {}) is True


class TestCreateAndSeed:
    def test_invalid_definition_rejected(self):
        with pytest.raises(ValidationError) as exc:
            questionnaire_service.create_questionnaire("Bad", 1, [
                {"phase": "NOWHERE", "order": 1, "question_text": "", "type": "SLIDER"},
            ])
        assert set(exc.value.details) == {
            "questions[0].phase", "questions[0].type", "questions[0].question_text",
        }

    def test_seed_default_is_idempotent(self):
        first = questionnaire_service.seed_default_questionnaire()
        second = questionnaire_service.seed_default_questionnaire()
        assert first.id == second.id
        assert first.is_active is True
        assert Questionnaire.query.count() == 1
        assert len(first.questions) == 23

    def test_seed_default_commerce_questions_are_conditional(self):
        qn = questionnaire_service.seed_default_questionnaire()
        conditional = [q for q in qn.questions if q.show_if]
        assert len(conditional) == 2
        assert all(q.show_if["question_id"] == "functional-project-type" for q in conditional)


class TestImmutability:
    def test_unreferenced_question_can_be_edited(self, questionnaire):
        q = db.session.get(Question, "Q1")
        q.question_text = "Q1 (reworded)"
        db.session.commit()
        assert db.session.get(Question, "Q1").question_text == "Q1 (reworded)"

    def test_referenced_question_cannot_be_edited(self, questionnaire, project):
        _make_answer(project.id, "Q1", "hello")
        q = db.session.get(Question, "Q1")
        q.question_text = "Q1 (reworded)"
        with pytest.raises(ValidationError):
            db.session.commit()
        db.session.rollback()
        assert db.session.get(Question, "Q1").question_text == "Q1"

    def test_referenced_question_cannot_be_deleted(self, questionnaire, project):
        _make_answer(project.id, "Q3", "X")
        db.session.delete(db.session.get(Question, "Q3"))
        with pytest.raises(ValidationError):
            db.session.commit()
        db.session.rollback()
        assert db.session.get(Question, "Q3") is not None
