"""
Intake synchronizer — reconciles client field batches into Answer rows.

Rules:
  - Project-level failures (NotFoundError, ForbiddenError) are raised before
    any write; a submitted project is never partially updated.
  - Per-field problems never raise. They are recorded in
    ``BatchResult.skipped`` and the rest of the batch still applies.
  - Each field is written inside its own SAVEPOINT so a storage error rolls
    back that field only.
  - An empty submitted value deletes the Answer row; rows never hold "".
  - Last write wins per (project, question); there is no merge.
  - db.session.commit() for answer writes happens only in this file.

Field names:
    q_<questionId>            answer value(s)
    q_<questionId>__other     companion text for an "Other" option; applied only
                              together with q_<questionId> in the same batch
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.models import db
from app.models.answer import Answer
from app.models.project import STATUS_DRAFT, STATUS_SUBMITTED, Project
from app.models.questionnaire import Question, phase_title
from app.services import answer_codec
from app.services import questionnaire_service

logger = logging.getLogger(__name__)

FIELD_PREFIX = "q_"
OTHER_SUFFIX = "__other"
_FIELD_RE = re.compile(r"^q_([A-Za-z0-9_-]+)$")
_OTHER_FIELD_RE = re.compile(r"^q_([A-Za-z0-9_-]+)__other$")

SKIP_MALFORMED = "malformed_field"
SKIP_UNKNOWN_QUESTION = "unknown_question"
SKIP_STORAGE_ERROR = "storage_error"
SKIP_OTHER_WITHOUT_VALUE = "other_without_value"


@dataclass(frozen=True)
class SkippedField:
    field: str
    reason: str


@dataclass
class BatchResult:
    """Outcome of one batch: rows written, rows removed, fields skipped."""

    upserts: int = 0
    deletes: int = 0
    skipped: list[SkippedField] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return self.upserts + self.deletes

    def to_dict(self) -> dict:
        return {
            "upserts": self.upserts,
            "deletes": self.deletes,
            "applied": self.applied,
            "skipped": [{"field": s.field, "reason": s.reason} for s in self.skipped],
        }


@dataclass
class _FieldGroup:
    name: str
    values: list[str] = field(default_factory=list)
    other: str | None = None
    # False when only the q_<id>__other companion arrived.
    has_value: bool = False


# ═══════════════════════════════════════════════════════════════════
# FIELD PARSING
# ═══════════════════════════════════════════════════════════════════


def _iter_entries(entries) -> Iterable[tuple[str, object]]:
    if isinstance(entries, Mapping):
        return entries.items()
    return entries


def _as_list(raw) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return ["" if v is None else str(v) for v in raw]
    return [str(raw)]


def parse_fields(entries) -> tuple[dict[str, _FieldGroup], list[SkippedField]]:
    """Group raw form entries by question id.

    ``entries`` is a mapping ``{name: value | [values]}`` or an iterable of
    ``(name, value)`` pairs (repeated names accumulate, as with multipart
    checkbox groups). Names not starting with ``q_`` are ignored; ``q_``
    names that do not match the field grammar are reported as malformed.
    """
    groups: dict[str, _FieldGroup] = {}
    skipped: list[SkippedField] = []

    for name, raw in _iter_entries(entries):
        name = str(name)
        if not name.startswith(FIELD_PREFIX):
            continue

        m = _OTHER_FIELD_RE.match(name)
        if m:
            qid = m.group(1)
            group = groups.setdefault(qid, _FieldGroup(name=f"{FIELD_PREFIX}{qid}"))
            texts = [t for t in _as_list(raw) if t.strip()]
            if texts:
                group.other = texts[-1].strip()
            continue

        m = _FIELD_RE.match(name)
        if not m:
            skipped.append(SkippedField(name, SKIP_MALFORMED))
            continue
        qid = m.group(1)
        group = groups.setdefault(qid, _FieldGroup(name=name))
        group.has_value = True
        group.values.extend(_as_list(raw))

    return groups, skipped


# ═══════════════════════════════════════════════════════════════════
# PROJECT GATE
# ═══════════════════════════════════════════════════════════════════


def get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _require_writable(project_id: int) -> Project:
    """Load the project and enforce the read-only gate."""
    project = get_project(project_id)
    if project.is_read_only:
        logger.info("Write refused: project_id=%s status=%s", project_id, project.status,
                    extra={"project_id": project_id})
        raise ForbiddenError(f"Project intake is {project.status} (read-only)", project_id=project_id)
    return project


# ═══════════════════════════════════════════════════════════════════
# WRITES
# ═══════════════════════════════════════════════════════════════════


def _write_answer(project_id: int, question_id: str, encoded: str) -> str | None:
    """Upsert or delete one row. Returns "upsert", "delete" or None (no-op)."""
    existing = db.session.execute(
        select(Answer).where(Answer.project_id == project_id, Answer.question_id == question_id)
    ).scalar_one_or_none()

    if encoded == "":
        if existing is None:
            return None
        db.session.delete(existing)
        return "delete"

    if existing is None:
        db.session.add(Answer(project_id=project_id, question_id=question_id, value=encoded))
    else:
        existing.value = encoded
        existing.updated_at = datetime.now(timezone.utc)
    return "upsert"


def _write_in_savepoint(project_id: int, question_id: str, encoded: str) -> str | None:
    # A concurrent request may insert the same key between our SELECT and
    # INSERT; the retry then sees the row and updates it.
    for attempt in (1, 2):
        try:
            with db.session.begin_nested():
                return _write_answer(project_id, question_id, encoded)
        except IntegrityError:
            if attempt == 2:
                raise
            logger.debug("Answer insert raced project_id=%s question_id=%s; retrying as update",
                         project_id, question_id)
    return None


def _apply_groups(project: Project, groups: dict[str, _FieldGroup],
                  skipped: list[SkippedField]) -> BatchResult:
    questionnaire = questionnaire_service.get_active_questionnaire()
    questions = questionnaire_service.question_map(questionnaire)
    result = BatchResult(skipped=list(skipped))

    for qid, group in groups.items():
        question = questions.get(qid)
        if question is None:
            result.skipped.append(SkippedField(group.name, SKIP_UNKNOWN_QUESTION))
            logger.debug("Skipping field %s: not in active questionnaire", group.name,
                         extra={"project_id": project.id, "question_id": qid})
            continue

        if not group.has_value:
            # Companion text on its own never rewrites the stored selection.
            result.skipped.append(SkippedField(f"{group.name}{OTHER_SUFFIX}", SKIP_OTHER_WITHOUT_VALUE))
            logger.debug("Skipping %s%s: no value field in batch", group.name, OTHER_SUFFIX,
                         extra={"project_id": project.id, "question_id": qid})
            continue

        encoded = answer_codec.encode_submission(
            group.values,
            question_type=question.type,
            options=question.option_list,
            other_text=group.other,
        )
        try:
            outcome = _write_in_savepoint(project.id, qid, encoded)
        except SQLAlchemyError:
            logger.exception("Answer write failed project_id=%s question_id=%s", project.id, qid,
                             extra={"project_id": project.id, "question_id": qid})
            result.skipped.append(SkippedField(group.name, SKIP_STORAGE_ERROR))
            continue

        if outcome == "upsert":
            result.upserts += 1
        elif outcome == "delete":
            result.deletes += 1

    db.session.commit()
    logger.info(
        "Intake batch applied project_id=%s upserts=%d deletes=%d skipped=%d",
        project.id, result.upserts, result.deletes, len(result.skipped),
        extra={"project_id": project.id},
    )
    return result


def apply_batch(project_id: int, fields) -> BatchResult:
    """Apply a batch of raw form fields to a project's answers.

    Args:
        project_id: Target project.
        fields:     Mapping or iterable of (name, value) pairs; see
                    ``parse_fields``.

    Returns:
        BatchResult with upsert/delete counts and skipped fields.

    Raises:
        NotFoundError:  project or active questionnaire missing.
        ForbiddenError: project is not DRAFT; nothing is written.
    """
    project = _require_writable(project_id)
    groups, skipped = parse_fields(fields)
    return _apply_groups(project, groups, skipped)


def apply_single(project_id: int, question_id: str, value, other_text: str | None = None) -> BatchResult:
    """Single-field autosave. Same contract as ``apply_batch``.

    An empty ``value`` clears the answer, unless ``other_text`` is given: a
    companion-only save is skipped rather than replacing the selection.
    """
    project = _require_writable(project_id)
    qid = str(question_id or "")
    name = f"{FIELD_PREFIX}{qid}"
    if not _FIELD_RE.match(name):
        return BatchResult(skipped=[SkippedField(name, SKIP_MALFORMED)])
    values = _as_list(value)
    other = (other_text or "").strip() or None
    group = _FieldGroup(name=name, values=values, other=other,
                        has_value=other is None or any(v != "" for v in values))
    return _apply_groups(project, {qid: group}, [])


# ═══════════════════════════════════════════════════════════════════
# READS
# ═══════════════════════════════════════════════════════════════════


def load_answer_rows(project_id: int) -> dict[str, Answer]:
    rows = db.session.execute(select(Answer).where(Answer.project_id == project_id)).scalars()
    return {a.question_id: a for a in rows}


def decoded_answers(project_id: int, questions) -> dict[str, answer_codec.AnswerValue]:
    """Decoded answers of a project keyed by question id (schema questions only)."""
    rows = load_answer_rows(project_id)
    decoded = {}
    for q in questions:
        row = rows.get(q.id)
        if row is not None:
            decoded[q.id] = answer_codec.decode_answer(row.value, multi=q.is_multi_value)
    return decoded


def _form_question(question: Question, row: Answer | None,
                   answers: dict[str, answer_codec.AnswerValue]) -> dict:
    raw = row.value if row is not None else None
    value = answer_codec.decode_answer(raw, multi=question.is_multi_value)
    state = answer_codec.field_state(raw, multi=question.is_multi_value)
    return {
        "question_id": question.id,
        "field_name": f"{FIELD_PREFIX}{question.id}",
        "label": question.question_text,
        "order": question.order,
        "type": question.type,
        "options": question.option_list,
        "has_other": question.has_other,
        "other_field_name": f"{FIELD_PREFIX}{question.id}{OTHER_SUFFIX}" if question.has_other else None,
        "current_value": value.text if isinstance(value, answer_codec.SingleValue) else value.as_list(),
        "selected": state["selected"],
        "other_text": state["other_text"],
        "visible": questionnaire_service.is_visible(question, answers),
        "updated_at": row.updated_at.isoformat() if row is not None and row.updated_at else None,
    }


def build_form(project_id: int) -> dict:
    """Outbound form model: questions grouped by phase with current values.

    Degrades to an empty phase list (``questionnaire: None``) when no
    questionnaire is active.
    """
    project = get_project(project_id)
    payload = {"project": project.to_dict(), "read_only": project.is_read_only,
               "questionnaire": None, "phases": []}

    questionnaire = questionnaire_service.find_active_questionnaire()
    if questionnaire is None:
        return payload

    rows = load_answer_rows(project_id)
    answers = decoded_answers(project_id, questionnaire.questions)
    payload["questionnaire"] = questionnaire.to_dict()
    payload["phases"] = [
        {
            "phase": phase,
            "title": phase_title(phase),
            "questions": [_form_question(q, rows.get(q.id), answers) for q in questions],
        }
        for phase, questions in questionnaire_service.group_by_phase(questionnaire.questions)
    ]
    return payload


# ═══════════════════════════════════════════════════════════════════
# LIFECYCLE
# ═══════════════════════════════════════════════════════════════════


def submit_project(project_id: int, *, require_complete: bool = False) -> Project:
    """DRAFT -> SUBMITTED. Idempotent for an already-submitted project.

    ``require_complete`` refuses the transition unless progress is 100 %.
    """
    project = get_project(project_id)
    if project.status == STATUS_SUBMITTED:
        return project

    if require_complete:
        from app.services.progress_service import compute_progress

        progress = compute_progress(project_id)
        if progress["percent"] < 100:
            raise ValidationError(
                "Intake is incomplete; answer every question before submitting.",
                details={"answered_count": progress["answered_count"],
                         "total_count": progress["total_count"]},
            )

    project.status = STATUS_SUBMITTED
    project.submitted_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Project submitted project_id=%s", project_id, extra={"project_id": project_id})
    return project


def reopen_project(project_id: int) -> Project:
    """SUBMITTED -> DRAFT. Always permitted; re-enables writes."""
    project = get_project(project_id)
    if project.status == STATUS_DRAFT:
        return project
    project.status = STATUS_DRAFT
    project.submitted_at = None
    db.session.commit()
    logger.info("Project reopened project_id=%s", project_id, extra={"project_id": project_id})
    return project


def clear_answers(project_id: int) -> int:
    """Delete every answer of a DRAFT project. Returns the number removed."""
    _require_writable(project_id)
    removed = db.session.execute(
        delete(Answer).where(Answer.project_id == project_id)
    ).rowcount or 0
    db.session.commit()
    logger.info("Intake answers cleared project_id=%s removed=%d", project_id, removed,
                extra={"project_id": project_id})
    return removed
