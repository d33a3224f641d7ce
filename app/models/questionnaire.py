"""
Questionnaire schema — versioned catalog of phased, typed questions.

A Questionnaire owns an ordered set of Questions. Exactly one questionnaire is
active at a time; the intake engine always reads the active one.

Immutability:
    Once an Answer references a Question, the question's content can no
    longer be edited or deleted. A new questionnaire version must be created
    instead. The ORM guard at the bottom of this module enforces that.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import event, func, inspect as sa_inspect, select

from app.core.exceptions import ValidationError
from app.models import db


def _uuid():
    return str(uuid.uuid4())


# ── Phases (enumeration order == display order) ─────────────────────────────

PHASES = (
    "DISCOVERY",
    "AUDIENCE",
    "FUNCTIONAL",
    "TECH",
    "DESIGN",
    "CONTENT",
    "STACK",
)

PHASE_TITLES = {
    "DISCOVERY": "Discovery",
    "AUDIENCE": "Audience & UX",
    "FUNCTIONAL": "Functional Requirements",
    "TECH": "Technical Requirements",
    "DESIGN": "Design",
    "CONTENT": "Content",
    "STACK": "Tech Stack",
}

# ── Question types ──────────────────────────────────────────────────────────

TYPE_TEXT = "TEXT"
TYPE_TEXTAREA = "TEXTAREA"
TYPE_DROPDOWN = "DROPDOWN"
TYPE_CHECKBOX = "CHECKBOX"
TYPE_MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
TYPE_BOOLEAN = "BOOLEAN"
TYPE_SCALE = "SCALE"

VALID_QUESTION_TYPES = frozenset({
    TYPE_TEXT, TYPE_TEXTAREA, TYPE_DROPDOWN, TYPE_CHECKBOX,
    TYPE_MULTIPLE_CHOICE, TYPE_BOOLEAN, TYPE_SCALE,
})

MULTI_VALUE_TYPES = frozenset({TYPE_CHECKBOX, TYPE_MULTIPLE_CHOICE})

# Option value that asks the form for a companion free-text field.
OTHER_OPTION = "Other"


def phase_rank(phase: str) -> int:
    """Position of a phase in the enumeration; unknown phases sort last."""
    try:
        return PHASES.index(phase)
    except ValueError:
        return len(PHASES)


def phase_title(phase: str) -> str:
    return PHASE_TITLES.get(phase, phase)


class Questionnaire(db.Model):
    """Named, versioned question catalog."""

    __tablename__ = "questionnaires"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    questions = db.relationship(
        "Question", backref="questionnaire", lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.UniqueConstraint("name", "version", name="uq_questionnaires_name_version"),
    )

    def ordered_questions(self) -> list:
        """Questions sorted by (phase enumeration order, order, id)."""
        return sorted(
            self.questions,
            key=lambda q: (phase_rank(q.phase), q.order or 0, q.id),
        )

    def to_dict(self, include_questions: bool = False) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "is_active": self.is_active,
            "question_count": len(self.questions),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_questions:
            d["questions"] = [q.to_dict() for q in self.ordered_questions()]
        return d


class Question(db.Model):
    """Single question of a questionnaire.

    ``id`` is a string so it can be embedded verbatim in form field names
    (``q_<id>``); it must match ``[A-Za-z0-9_-]+``.

    ``show_if`` is an optional visibility rule evaluated against the project's
    current answers, e.g. ``{"question_id": "q-goals", "equals": "Yes"}``.
    """

    __tablename__ = "questions"

    id = db.Column(db.String(64), primary_key=True, default=_uuid)
    questionnaire_id = db.Column(
        db.Integer,
        db.ForeignKey("questionnaires.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phase = db.Column(
        db.String(20), nullable=False,
        comment="DISCOVERY | AUDIENCE | FUNCTIONAL | TECH | DESIGN | CONTENT | STACK",
    )
    order = db.Column(db.Integer, nullable=False, default=0)
    question_text = db.Column(db.Text, nullable=False)
    type = db.Column(
        db.String(20), nullable=False, default=TYPE_TEXT,
        comment="TEXT | TEXTAREA | DROPDOWN | CHECKBOX | MULTIPLE_CHOICE | BOOLEAN | SCALE",
    )
    options = db.Column(db.JSON, nullable=True)
    show_if = db.Column(db.JSON, nullable=True)

    __table_args__ = (
        db.Index("ix_questions_questionnaire_phase_order", "questionnaire_id", "phase", "order"),
    )

    @property
    def option_list(self) -> list[str]:
        if not isinstance(self.options, list):
            return []
        return [str(o) for o in self.options]

    @property
    def is_multi_value(self) -> bool:
        return self.type in MULTI_VALUE_TYPES

    @property
    def has_other(self) -> bool:
        return OTHER_OPTION in self.option_list

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "questionnaire_id": self.questionnaire_id,
            "phase": self.phase,
            "phase_title": phase_title(self.phase),
            "order": self.order,
            "question_text": self.question_text,
            "type": self.type,
            "options": self.option_list,
            "has_other": self.has_other,
            "show_if": self.show_if,
        }


# ── Immutability guard ──────────────────────────────────────────────────────

_CONTENT_FIELDS = ("questionnaire_id", "phase", "order", "question_text", "type", "options", "show_if")


def _answer_count(connection, question_id: str) -> int:
    from app.models.answer import Answer

    return connection.execute(
        select(func.count(Answer.id)).where(Answer.question_id == question_id)
    ).scalar() or 0


@event.listens_for(Question, "before_update")
def _guard_referenced_update(mapper, connection, target):
    state = sa_inspect(target)
    changed = [f for f in _CONTENT_FIELDS if state.attrs[f].history.has_changes()]
    if not changed:
        return
    if _answer_count(connection, target.id):
        raise ValidationError(
            "Question is referenced by answers and cannot be edited; "
            "create a new questionnaire version instead.",
            details={"question_id": target.id, "fields": changed},
        )


@event.listens_for(Question, "before_delete")
def _guard_referenced_delete(mapper, connection, target):
    if _answer_count(connection, target.id):
        raise ValidationError(
            "Question is referenced by answers and cannot be deleted.",
            details={"question_id": target.id},
        )
