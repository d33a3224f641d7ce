"""
Brief / proposal snapshotter.

``build_document`` renders the live answer set into a BriefDocument without
persisting anything (preview). ``save_snapshot`` renders again at the moment
of the call and stores the HTML as a new, immutable Proposal version.

Versioning:
    version = 1 + max(existing versions of the project), default 0.
    The unique constraint on (project_id, version) rejects a concurrent
    duplicate; the loser re-reads the max and retries up to
    ``SNAPSHOT_MAX_ATTEMPTS`` times before ConflictError is raised.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from flask import current_app, render_template_string
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError
from app.models import db
from app.models.proposal import Proposal
from app.models.questionnaire import phase_title
from app.services import answer_codec, intake_service, questionnaire_service

logger = logging.getLogger(__name__)

NO_QUESTIONNAIRE_NOTICE = "No active questionnaire found."


@dataclass
class BriefItem:
    question_id: str
    label: str
    value: str


@dataclass
class BriefSection:
    phase: str
    title: str
    items: list[BriefItem] = field(default_factory=list)


@dataclass
class BriefDocument:
    project_id: int
    title: str
    subtitle: str
    generated_at: datetime
    questionnaire_id: int | None = None
    questionnaire_name: str | None = None
    questionnaire_version: int | None = None
    sections: list[BriefSection] = field(default_factory=list)
    notice: str | None = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["generated_at"] = self.generated_at.isoformat()
        return d

    def render_html(self) -> str:
        return render_template_string(
            _BRIEF_TEMPLATE,
            doc=self,
            timestamp=self.generated_at.strftime("%Y-%m-%d %H:%M UTC"),
        )


_BRIEF_TEMPLATE = """\
<article style="font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial; line-height:1.5; color:#111">
  <header style="margin-bottom:24px">
    <h1 style="font-size:22px; font-weight:700; margin:0">{{ doc.title }}</h1>
    <p style="margin:4px 0 0; opacity:.75">{{ doc.subtitle }}</p>
    <p style="margin:2px 0 0; opacity:.6">{{ timestamp }}</p>
  </header>
{%- if doc.notice %}
  <p>{{ doc.notice }}</p>
{%- endif %}
{%- for sec in doc.sections %}
  <section style="margin:24px 0; padding:16px; border:1px solid #e5e7eb; border-radius:12px">
    <h2 style="font-size:16px; font-weight:600; margin:0 0 12px">{{ sec.title }}</h2>
    <dl style="display:grid; grid-template-columns: 220px 1fr; gap:10px 16px; margin:0">
    {%- for it in sec.items %}
      <dt style="opacity:.7">{{ it.label }}</dt>
      <dd style="margin:0">{{ it.value }}</dd>
    {%- endfor %}
    </dl>
  </section>
{%- endfor %}
</article>
"""


# ── Build ─────────────────────────────────────────────────────────────────────


def build_document(project_id: int) -> BriefDocument:
    """Assemble the brief for a project from its current answers.

    Missing answers render as the configured placeholder; multi-value
    answers are comma-joined. With no active questionnaire the document has
    no sections and carries a notice.

    Raises:
        NotFoundError: project missing.
    """
    project = intake_service.get_project(project_id)
    placeholder = current_app.config.get("BRIEF_EMPTY_PLACEHOLDER", "—")

    client_name = project.client.name if project.client else ""
    doc = BriefDocument(
        project_id=project.id,
        title=project.name,
        subtitle=" • ".join(p for p in (client_name, project.project_type) if p),
        generated_at=datetime.now(timezone.utc),
    )

    questionnaire = questionnaire_service.find_active_questionnaire()
    if questionnaire is None:
        doc.notice = NO_QUESTIONNAIRE_NOTICE
        return doc

    doc.questionnaire_id = questionnaire.id
    doc.questionnaire_name = questionnaire.name
    doc.questionnaire_version = questionnaire.version

    answers = intake_service.decoded_answers(project_id, questionnaire.questions)
    for phase, questions in questionnaire_service.group_by_phase(questionnaire.questions):
        section = BriefSection(phase=phase, title=phase_title(phase))
        for q in questions:
            value = answers.get(q.id, answer_codec.EMPTY)
            section.items.append(BriefItem(
                question_id=q.id,
                label=q.question_text,
                value=answer_codec.display_text(value, placeholder),
            ))
        doc.sections.append(section)
    return doc


# ── Snapshots ─────────────────────────────────────────────────────────────────


def next_version(project_id: int) -> int:
    current = db.session.execute(
        select(func.max(Proposal.version)).where(Proposal.project_id == project_id)
    ).scalar()
    return (current or 0) + 1


def save_snapshot(project_id: int, *, max_attempts: int | None = None) -> Proposal:
    """Render the brief now and persist it as the next Proposal version.

    Raises:
        NotFoundError: project or active questionnaire missing.
        ConflictError: version collision persisted after all retries.
    """
    doc = build_document(project_id)
    if doc.questionnaire_id is None:
        raise NotFoundError(resource="Questionnaire", resource_id="active")
    body = doc.render_html()

    attempts = max_attempts or int(current_app.config.get("SNAPSHOT_MAX_ATTEMPTS", 3))
    version = None
    for attempt in range(1, attempts + 1):
        version = next_version(project_id)
        now = datetime.now(timezone.utc)
        proposal = Proposal(
            project_id=project_id,
            version=version,
            document_body=body,
            questionnaire_id=doc.questionnaire_id,
            created_at=now,
            updated_at=now,
        )
        db.session.add(proposal)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.warning(
                "Proposal version collision project_id=%s version=%s attempt=%d/%d",
                project_id, version, attempt, attempts,
                extra={"project_id": project_id, "version": version},
            )
            continue
        logger.info("Proposal saved project_id=%s version=%s", project_id, version,
                    extra={"project_id": project_id, "version": version})
        return proposal

    raise ConflictError("Proposal", "version", str(version))


def rerender_snapshot(project_id: int, version: int) -> Proposal:
    """Regenerate the body of an existing version in place.

    Not part of the normal flow, which always appends a new version.
    """
    proposal = get_proposal(project_id, version)
    doc = build_document(project_id)
    proposal.document_body = doc.render_html()
    proposal.questionnaire_id = doc.questionnaire_id
    proposal.updated_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Proposal re-rendered project_id=%s version=%s", project_id, version,
                extra={"project_id": project_id, "version": version})
    return proposal


def proposals_query(project_id: int):
    """Query over a project's versions, newest first (for pagination)."""
    intake_service.get_project(project_id)
    return Proposal.query.filter_by(project_id=project_id).order_by(Proposal.version.desc())


def list_proposals(project_id: int) -> list[Proposal]:
    """All versions of a project, newest first."""
    return proposals_query(project_id).all()


def get_proposal(project_id: int, version: int) -> Proposal:
    proposal = db.session.execute(
        select(Proposal).where(Proposal.project_id == project_id, Proposal.version == version)
    ).scalar_one_or_none()
    if proposal is None:
        raise NotFoundError(resource="Proposal", resource_id=f"{project_id}/v{version}")
    return proposal


def latest_proposal(project_id: int) -> Proposal | None:
    return db.session.execute(
        select(Proposal)
        .where(Proposal.project_id == project_id)
        .order_by(Proposal.version.desc())
        .limit(1)
    ).scalar_one_or_none()
