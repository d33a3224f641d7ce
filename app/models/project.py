"""Project model — the subject of an intake questionnaire."""

from datetime import datetime, timezone

from app.models import db

# ── Lifecycle ─────────────────────────────────────────────────────────────────

STATUS_DRAFT = "DRAFT"
STATUS_SUBMITTED = "SUBMITTED"

# Pre-lifecycle rows used "ACTIVE" for what is now SUBMITTED; they are read-only too.
LEGACY_STATUS_ACTIVE = "ACTIVE"


class Project(db.Model):
    """Consultation project whose answers are collected through the intake.

    Business rules:
    - Answers may only be written while status is DRAFT.
    - DRAFT -> SUBMITTED happens only through an explicit submit action.
    - SUBMITTED -> DRAFT (reopen) is always permitted.
    """

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    project_type = db.Column(
        db.String(40), nullable=False, default="WEBSITE",
        comment="WEBSITE | ECOMMERCE | WEB_APP | MOBILE_APP | ...",
    )
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)

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

    answers = db.relationship("Answer", backref="project", lazy="dynamic",
                              cascade="all, delete-orphan", passive_deletes=True)
    proposals = db.relationship("Proposal", backref="project", lazy="dynamic",
                                cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_read_only(self) -> bool:
        return self.status != STATUS_DRAFT

    def to_dict(self) -> dict:
        """Serialize core project fields for API responses."""
        return {
            "id": self.id,
            "client_id": self.client_id,
            "name": self.name,
            "project_type": self.project_type,
            "status": self.status,
            "read_only": self.is_read_only,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
