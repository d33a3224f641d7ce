"""Answer model — one encoded answer per (project, question)."""

from datetime import datetime, timezone

from app.models import db


class Answer(db.Model):
    """Persisted answer.

    ``value`` holds the encoded representation produced by
    ``app.services.answer_codec``: a verbatim string for single-value answers,
    a JSON array of strings for multi-value answers. Empty answers are not
    stored; clearing a field deletes its row.
    """

    __tablename__ = "answers"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = db.Column(
        db.String(64),
        db.ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    value = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("project_id", "question_id", name="uq_answers_project_question"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "question_id": self.question_id,
            "value": self.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
