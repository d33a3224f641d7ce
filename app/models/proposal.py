"""
Proposal model — immutable, versioned brief snapshots.

Every save creates a new row with ``version = max(version) + 1`` for the
project. Rows are append-only; the unique constraint on
``(project_id, version)`` serialises concurrent version assignment.
"""

from datetime import datetime, timezone

from app.models import db


class Proposal(db.Model):
    __tablename__ = "proposals"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version = db.Column(db.Integer, nullable=False)
    document_body = db.Column(db.Text, nullable=False)
    questionnaire_id = db.Column(
        db.Integer,
        db.ForeignKey("questionnaires.id", ondelete="SET NULL"),
        nullable=True,
        comment="Questionnaire the snapshot was rendered from",
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("project_id", "version", name="uq_proposals_project_version"),
    )

    def to_dict(self, include_body: bool = False) -> dict:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "version": self.version,
            "questionnaire_id": self.questionnaire_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_body:
            d["document_body"] = self.document_body
        return d
