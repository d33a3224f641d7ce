"""
Tests for the intake synchronizer (batch autosave, read-only gate, lifecycle).

Scenario questionnaire (conftest): Q1 TEXT, Q2 CHECKBOX ["A","B","Other"],
Q3 DROPDOWN ["X","Y"].

pytest markers: unit
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.models import db
from app.models.answer import Answer
from app.models.project import LEGACY_STATUS_ACTIVE, STATUS_DRAFT, STATUS_SUBMITTED, Project
from app.services import intake_service
from app.services.progress_service import compute_progress

pytestmark = pytest.mark.unit


def _stored(project_id):
    """{question_id: (value, updated_at)} straight from the table."""
    rows = Answer.query.filter_by(project_id=project_id).all()
    return {a.question_id: (a.value, a.updated_at) for a in rows}


def _values(project_id):
    return {qid: v for qid, (v, _) in _stored(project_id).items()}


class TestScenario:
    def test_batch_writes_encoded_answers(self, answered_project):
        assert _values(answered_project.id) == {
            "Q1": "hello",
            "Q2": '["A", "Other: custom"]',
            "Q3": "X",
        }
        assert compute_progress(answered_project.id)["percent"] == 100

    def test_submitted_project_is_read_only(self, answered_project):
        before = _stored(answered_project.id)
        intake_service.submit_project(answered_project.id)

        with pytest.raises(ForbiddenError):
            intake_service.apply_batch(answered_project.id, {"q_Q1": "changed"})

        db.session.expire_all()
        assert _stored(answered_project.id) == before

    def test_reopen_then_empty_value_deletes_row(self, answered_project):
        intake_service.submit_project(answered_project.id)
        intake_service.reopen_project(answered_project.id)

        result = intake_service.apply_batch(answered_project.id, {"q_Q1": ""})

        assert (result.upserts, result.deletes) == (0, 1)
        assert "Q1" not in _values(answered_project.id)
        progress = compute_progress(answered_project.id)
        assert (progress["answered_count"], progress["total_count"], progress["percent"]) == (2, 3, 67)


class TestApplyBatch:
    def test_update_overwrites_single_row(self, questionnaire, project):
        intake_service.apply_batch(project.id, {"q_Q1": "first"})
        result = intake_service.apply_batch(project.id, {"q_Q1": "second"})

        assert result.upserts == 1
        assert Answer.query.filter_by(project_id=project.id, question_id="Q1").count() == 1
        assert _values(project.id)["Q1"] == "second"

    def test_empty_value_without_row_is_noop(self, questionnaire, project):
        result = intake_service.apply_batch(project.id, {"q_Q1": "", "q_Q2": []})
        assert result.to_dict() == {"upserts": 0, "deletes": 0, "applied": 0, "skipped": []}
        assert _values(project.id) == {}

    def test_unticking_checkbox_group_clears_answer(self, answered_project):
        result = intake_service.apply_batch(answered_project.id, {"q_Q2": []})
        assert result.deletes == 1
        assert "Q2" not in _values(answered_project.id)

    def test_repeated_pairs_accumulate(self, questionnaire, project):
        intake_service.apply_batch(project.id, [("q_Q2", "A"), ("q_Q2", "B"), ("csrf", "t")])
        assert _values(project.id) == {"Q2": '["A", "B"]'}

    def test_other_text_appended_when_other_not_ticked(self, questionnaire, project):
        intake_service.apply_batch(project.id, {"q_Q2": ["A"], "q_Q2__other": "Fax"})
        assert _values(project.id) == {"Q2": '["A", "Other: Fax"]'}

    @pytest.mark.parametrize("text", ["", "renamed"])
    def test_other_field_alone_leaves_answer_untouched(self, answered_project, text):
        result = intake_service.apply_batch(answered_project.id, {"q_Q2__other": text})

        assert (result.upserts, result.deletes) == (0, 0)
        assert [(s.field, s.reason) for s in result.skipped] == [
            ("q_Q2__other", intake_service.SKIP_OTHER_WITHOUT_VALUE),
        ]
        assert _values(answered_project.id)["Q2"] == '["A", "Other: custom"]'

    def test_legacy_active_project_is_read_only(self, questionnaire, make_project):
        p = make_project(status=LEGACY_STATUS_ACTIVE)

        with pytest.raises(ForbiddenError):
            intake_service.apply_batch(p.id, {"q_Q1": "written"})
        with pytest.raises(ForbiddenError):
            intake_service.clear_answers(p.id)
        assert _values(p.id) == {}
        assert p.is_read_only is True

    def test_unknown_and_malformed_fields_are_skipped(self, questionnaire, project):
        result = intake_service.apply_batch(project.id, {
            "q_Q1": "kept",
            "q_NOPE": "ignored",
            "q_bad name!": "ignored",
            "__allNames": "q_Q1",
            "title": "not a question field",
        })

        assert result.upserts == 1
        assert {(s.field, s.reason) for s in result.skipped} == {
            ("q_NOPE", intake_service.SKIP_UNKNOWN_QUESTION),
            ("q_bad name!", intake_service.SKIP_MALFORMED),
        }
        assert _values(project.id) == {"Q1": "kept"}

    def test_storage_error_skips_only_that_field(self, questionnaire, project, monkeypatch):
        original = intake_service._write_answer

        def _flaky(project_id, question_id, encoded):
            if question_id == "Q3":
                raise SQLAlchemyError("disk full")
            return original(project_id, question_id, encoded)

        monkeypatch.setattr(intake_service, "_write_answer", _flaky)
        result = intake_service.apply_batch(project.id, {"q_Q1": "hello", "q_Q3": "X"})

        assert result.upserts == 1
        assert [(s.field, s.reason) for s in result.skipped] == [
            ("q_Q3", intake_service.SKIP_STORAGE_ERROR),
        ]
        assert _values(project.id) == {"Q1": "hello"}

    def test_missing_project(self, questionnaire):
        with pytest.raises(NotFoundError):
            intake_service.apply_batch(999, {"q_Q1": "x"})

    def test_missing_questionnaire(self, project):
        with pytest.raises(NotFoundError):
            intake_service.apply_batch(project.id, {"q_Q1": "x"})

    def test_answers_to_inactive_questionnaire_are_unknown(self, questionnaire, project,
                                                          make_questionnaire):
        make_questionnaire(
            [{"id": "V2Q1", "phase": "DISCOVERY", "order": 1, "question_text": "new", "type": "TEXT"}],
            version=2,
        )
        result = intake_service.apply_batch(project.id, {"q_Q1": "stale", "q_V2Q1": "fresh"})
        assert result.upserts == 1
        assert result.skipped[0].reason == intake_service.SKIP_UNKNOWN_QUESTION
        assert _values(project.id) == {"V2Q1": "fresh"}


class TestApplySingle:
    def test_single_field_autosave(self, questionnaire, project):
        result = intake_service.apply_single(project.id, "Q3", "Y")
        assert result.upserts == 1
        assert _values(project.id) == {"Q3": "Y"}

    def test_single_multi_value_with_other(self, questionnaire, project):
        intake_service.apply_single(project.id, "Q2", ["B", "Other"], other_text="Fax")
        assert _values(project.id) == {"Q2": '["B", "Other: Fax"]'}

    def test_other_text_without_value_is_skipped(self, answered_project):
        result = intake_service.apply_single(answered_project.id, "Q2", "", other_text="renamed")

        assert result.applied == 0
        assert result.skipped[0].reason == intake_service.SKIP_OTHER_WITHOUT_VALUE
        assert _values(answered_project.id)["Q2"] == '["A", "Other: custom"]'

    def test_text_that_looks_like_json_round_trips(self, questionnaire, project):
        intake_service.apply_single(project.id, "Q1", '["a"]')

        form = intake_service.build_form(project.id)
        q1 = form["phases"][0]["questions"][0]
        assert q1["question_id"] == "Q1"
        assert q1["current_value"] == '["a"]'

    def test_malformed_question_id(self, questionnaire, project):
        result = intake_service.apply_single(project.id, "not valid", "x")
        assert result.applied == 0
        assert result.skipped[0].reason == intake_service.SKIP_MALFORMED

    def test_forbidden_when_submitted(self, questionnaire, make_project):
        p = make_project(status=STATUS_SUBMITTED)
        with pytest.raises(ForbiddenError):
            intake_service.apply_single(p.id, "Q1", "x")
        assert _values(p.id) == {}


class TestBuildForm:
    def test_form_model_restores_state(self, answered_project):
        form = intake_service.build_form(answered_project.id)

        assert form["read_only"] is False
        assert [p["phase"] for p in form["phases"]] == ["DISCOVERY", "TECH"]
        q1, q2 = form["phases"][0]["questions"]
        assert q1["field_name"] == "q_Q1"
        assert q1["current_value"] == "hello"
        assert q2["selected"] == ["A", "Other"]
        assert q2["other_text"] == "custom"
        assert q2["other_field_name"] == "q_Q2__other"
        assert q2["current_value"] == ["A", "Other: custom"]
        assert all(q["visible"] for p in form["phases"] for q in p["questions"])

    def test_unanswered_form(self, questionnaire, project):
        form = intake_service.build_form(project.id)
        q3 = form["phases"][1]["questions"][0]
        assert q3["current_value"] == ""
        assert q3["selected"] == []
        assert q3["updated_at"] is None

    def test_no_questionnaire_degrades(self, project):
        form = intake_service.build_form(project.id)
        assert form["questionnaire"] is None
        assert form["phases"] == []

    def test_read_only_flag(self, questionnaire, make_project):
        p = make_project(status=STATUS_SUBMITTED)
        assert intake_service.build_form(p.id)["read_only"] is True


class TestLifecycle:
    def test_submit_and_reopen_are_idempotent(self, project):
        first = intake_service.submit_project(project.id)
        submitted_at = first.submitted_at
        again = intake_service.submit_project(project.id)
        assert again.status == STATUS_SUBMITTED
        assert again.submitted_at == submitted_at

        intake_service.reopen_project(project.id)
        reopened = intake_service.reopen_project(project.id)
        assert reopened.status == STATUS_DRAFT
        assert reopened.submitted_at is None

    def test_require_complete_blocks_partial_intake(self, questionnaire, project):
        intake_service.apply_batch(project.id, {"q_Q1": "only one"})
        with pytest.raises(ValidationError) as exc:
            intake_service.submit_project(project.id, require_complete=True)
        assert exc.value.details == {"answered_count": 1, "total_count": 3}
        assert db.session.get(Project, project.id).status == STATUS_DRAFT

    def test_require_complete_allows_full_intake(self, answered_project):
        p = intake_service.submit_project(answered_project.id, require_complete=True)
        assert p.status == STATUS_SUBMITTED

    def test_clear_answers(self, answered_project):
        assert intake_service.clear_answers(answered_project.id) == 3
        assert _values(answered_project.id) == {}

    def test_clear_answers_forbidden_when_submitted(self, answered_project):
        intake_service.submit_project(answered_project.id)
        with pytest.raises(ForbiddenError):
            intake_service.clear_answers(answered_project.id)
        assert len(_values(answered_project.id)) == 3
