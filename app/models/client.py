"""Client model — the organisation a consultation project is run for."""

from datetime import datetime, timezone

from app.models import db


class Client(db.Model):
    """Identification record for the brief header. CRUD lives outside the intake engine."""

    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    client_type = db.Column(
        db.String(40), nullable=True,
        comment="SMALL_BUSINESS | ENTERPRISE | NON_PROFIT | INDIVIDUAL | ...",
    )
    industry = db.Column(db.String(120), nullable=True)
    contact_name = db.Column(db.String(200), nullable=True)
    contact_email = db.Column(db.String(200), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    projects = db.relationship("Project", backref="client", lazy="dynamic",
                               cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "client_type": self.client_type,
            "industry": self.industry,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
