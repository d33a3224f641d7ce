"""
Question schema store — read access to the active questionnaire.

Rules:
  - ``get_active_questionnaire()`` is a plain query on every call; nothing is
    cached between requests, so activation changes are seen immediately.
  - Question ordering is ``(phase enumeration order, order, id)``.
  - ``is_visible`` is a pure predicate over a snapshot of decoded answers;
    any caller that needs visibility evaluates it the same way.
"""

from __future__ import annotations

import logging
from typing import Mapping

from sqlalchemy import select

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.questionnaire import (
    OTHER_OPTION,
    PHASES,
    TYPE_CHECKBOX,
    TYPE_DROPDOWN,
    TYPE_TEXT,
    TYPE_TEXTAREA,
    VALID_QUESTION_TYPES,
    Question,
    Questionnaire,
    phase_rank,
    phase_title,
)
from app.services.answer_codec import AnswerValue, EMPTY

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# QUERIES
# ═══════════════════════════════════════════════════════════════════


def get_active_questionnaire() -> Questionnaire:
    """Return the active questionnaire.

    Raises:
        NotFoundError: when no questionnaire is marked active.
    """
    rows = db.session.execute(
        select(Questionnaire)
        .where(Questionnaire.is_active.is_(True))
        .order_by(Questionnaire.version.desc(), Questionnaire.id.desc())
    ).scalars().all()
    if not rows:
        raise NotFoundError(resource="Questionnaire", resource_id="active")
    if len(rows) > 1:
        logger.warning(
            "%d questionnaires marked active; using id=%s version=%s",
            len(rows), rows[0].id, rows[0].version,
        )
    return rows[0]


def find_active_questionnaire() -> Questionnaire | None:
    """Like ``get_active_questionnaire`` but returns None instead of raising."""
    try:
        return get_active_questionnaire()
    except NotFoundError:
        return None


def question_map(questionnaire: Questionnaire) -> dict[str, Question]:
    return {q.id: q for q in questionnaire.questions}


def group_by_phase(questions) -> list[tuple[str, list[Question]]]:
    """Group questions into ``[(phase, [questions...])]`` in schema order.

    Empty phases are omitted.
    """
    ordered = sorted(questions, key=lambda q: (phase_rank(q.phase), q.order or 0, q.id))
    groups: list[tuple[str, list[Question]]] = []
    for q in ordered:
        if groups and groups[-1][0] == q.phase:
            groups[-1][1].append(q)
        else:
            groups.append((q.phase, [q]))
    return groups


def serialize_active() -> dict:
    """Active questionnaire with its questions grouped by phase."""
    qn = get_active_questionnaire()
    return {
        **qn.to_dict(),
        "phases": [
            {
                "phase": phase,
                "title": phase_title(phase),
                "questions": [q.to_dict() for q in questions],
            }
            for phase, questions in group_by_phase(qn.questions)
        ],
    }


# ═══════════════════════════════════════════════════════════════════
# CONDITIONAL VISIBILITY
# ═══════════════════════════════════════════════════════════════════


def is_visible(question: Question, answers: Mapping[str, AnswerValue]) -> bool:
    """Evaluate ``question.show_if`` against decoded answers.

    Supported rules (``question_id`` names the controlling question):
        {"question_id": X, "equals": V}       any answer item equals V
        {"question_id": X, "in": [V1, V2]}    any answer item is listed
        {"question_id": X, "includes": V}     alias of equals, for checkboxes
        {"question_id": X, "answered": bool}  controlling answer (non-)empty

    Questions without a rule, or with a rule shape not listed above, are
    visible.
    """
    rule = question.show_if
    if not rule or not isinstance(rule, dict):
        return True
    source_id = rule.get("question_id")
    if not source_id:
        return True

    value = answers.get(source_id, EMPTY)
    items = value.as_list()

    if "equals" in rule:
        return str(rule["equals"]) in items
    if "includes" in rule:
        return str(rule["includes"]) in items
    if "in" in rule and isinstance(rule["in"], list):
        allowed = {str(v) for v in rule["in"]}
        return any(item in allowed for item in items)
    if "answered" in rule:
        return (not value.is_empty) == bool(rule["answered"])
    return True


# ═══════════════════════════════════════════════════════════════════
# ACTIVATION + SEEDING
# ═══════════════════════════════════════════════════════════════════


def activate_questionnaire(questionnaire_id: int) -> Questionnaire:
    """Mark one questionnaire active and every other one inactive."""
    qn = db.session.get(Questionnaire, questionnaire_id)
    if not qn:
        raise NotFoundError(resource="Questionnaire", resource_id=questionnaire_id)

    for other in Questionnaire.query.filter(
        Questionnaire.is_active.is_(True), Questionnaire.id != qn.id,
    ):
        other.is_active = False
    qn.is_active = True
    db.session.commit()
    logger.info("Questionnaire activated id=%s name=%s version=%s", qn.id, qn.name, qn.version)
    return qn


def create_questionnaire(name: str, version: int, questions: list[dict], *,
                         description: str | None = None) -> Questionnaire:
    """Create a questionnaire version with its questions (inactive).

    Each question dict carries ``phase``, ``order``, ``question_text``,
    ``type`` and optionally ``id``, ``options``, ``show_if``.
    """
    errors = {}
    for idx, q in enumerate(questions):
        if q.get("phase") not in PHASES:
            errors[f"questions[{idx}].phase"] = f"must be one of {', '.join(PHASES)}"
        if q.get("type") not in VALID_QUESTION_TYPES:
            errors[f"questions[{idx}].type"] = f"must be one of {', '.join(sorted(VALID_QUESTION_TYPES))}"
        if not (q.get("question_text") or "").strip():
            errors[f"questions[{idx}].question_text"] = "is required"
    if errors:
        raise ValidationError("Invalid questionnaire definition", details=errors)

    qn = Questionnaire(name=name, version=version, description=description, is_active=False)
    for q in questions:
        qn.questions.append(Question(**q))
    db.session.add(qn)
    db.session.flush()
    return qn


def seed_default_questionnaire(activate: bool = True) -> Questionnaire:
    """Insert the "Universal v1" questionnaire if it does not exist yet.

    Safe to run multiple times. Call from the ``seed-questionnaire`` CLI
    command or from demo seed scripts.
    """
    qn = Questionnaire.query.filter_by(name="Universal v1", version=1).first()
    if qn is None:
        qn = create_questionnaire(
            "Universal v1", 1, _get_default_questions(),
            description="Core discovery across phases with presets",
        )
        logger.info("Seeded questionnaire 'Universal v1' with %d questions", len(qn.questions))
    if activate and not qn.is_active:
        return activate_questionnaire(qn.id)
    db.session.commit()
    return qn


def _q(phase, order, text, qtype, options=None, *, qid=None, show_if=None) -> dict:
    d = {"phase": phase, "order": order, "question_text": text, "type": qtype,
         "options": options, "show_if": show_if}
    if qid:
        d["id"] = qid
    return d


def _get_default_questions() -> list[dict]:
    """Question bank of the default questionnaire."""
    return [
        # ── Discovery ──
        _q("DISCOVERY", 1, "What problem does this project need to solve for your users?", TYPE_TEXTAREA),
        _q("DISCOVERY", 2, "Who is your target audience?", TYPE_TEXT),
        _q("DISCOVERY", 3, "Primary business goals", TYPE_CHECKBOX, [
            "Generate leads", "Increase online sales", "Online bookings/appointments",
            "Build brand credibility", "Publish content regularly",
            "Self-serve support (FAQ/Help Center)", "Internal workflow/tooling",
            "Community/membership", OTHER_OPTION,
        ]),
        # ── Audience & UX ──
        _q("AUDIENCE", 1, "Primary device usage", TYPE_DROPDOWN,
           ["Mobile first", "Desktop focused", "Mixed usage"]),
        _q("AUDIENCE", 2, "Key actions you want users to take", TYPE_CHECKBOX, [
            "Contact via form", "Book a meeting", "Start free trial", "Request a quote",
            "Purchase", "Join newsletter", "Sign up / Create account", "Download asset",
            OTHER_OPTION,
        ]),
        _q("AUDIENCE", 3, "Accessibility target", TYPE_DROPDOWN,
           ["WCAG 2.1 A", "WCAG 2.1 AA", "WCAG 2.2 AA", "Best effort"]),
        # ── Functional ──
        _q("FUNCTIONAL", 1, "What is the primary project type?", TYPE_DROPDOWN, [
            "Website", "E-commerce", "Web application / SaaS", "Blog/Content",
            "Portfolio", "Landing page",
        ], qid="functional-project-type"),
        _q("FUNCTIONAL", 2, "Pages/sections needed", TYPE_CHECKBOX, [
            "Home", "About", "Services", "Pricing", "Portfolio/Case studies",
            "Blog/Resources", "FAQ/Help Center", "Contact", "Careers",
            "Legal (Privacy / Terms)", "Docs/Knowledge base", "Status page", OTHER_OPTION,
        ]),
        _q("FUNCTIONAL", 3, "Account & authentication", TYPE_CHECKBOX, [
            "Guest (no account)", "Email/password", "Social login (Google/Apple/etc.)",
            "SSO (SAML/OIDC)", "2FA/MFA", "Role-based access (RBAC)", OTHER_OPTION,
        ]),
        _q("FUNCTIONAL", 4, "Which payment methods should be supported?", TYPE_CHECKBOX, [
            "Credit/Debit cards", "Apple Pay", "Google Pay", "PayPal", "Bank transfer",
            "Cash on delivery", "Buy Now Pay Later (Klarna/Affirm)", "Invoicing",
            "Multi-currency", OTHER_OPTION,
        ], show_if={"question_id": "functional-project-type", "equals": "E-commerce"}),
        _q("FUNCTIONAL", 5, "Shipping & fulfillment", TYPE_CHECKBOX, [
            "Flat rate", "Real-time carrier rates", "Free shipping rules", "In-store pickup",
            "International zones", "Returns & RMA", "Label printing", OTHER_OPTION,
        ], show_if={"question_id": "functional-project-type", "equals": "E-commerce"}),
        _q("FUNCTIONAL", 6, "Content management needs", TYPE_CHECKBOX, [
            "Client can edit all pages", "Blog publishing", "Media library",
            "Scheduling & drafts", "Custom content types", "Multi-language", OTHER_OPTION,
        ]),
        # ── Technical ──
        _q("TECH", 1, "List any third-party tools or systems we must integrate "
                      "(CRM, email, analytics, etc.)", TYPE_TEXTAREA),
        _q("TECH", 2, "Preferred integrations", TYPE_CHECKBOX, [
            "CRM (HubSpot/Salesforce)", "Email marketing (Mailchimp/Brevo/Klaviyo)",
            "Analytics (GA4/Matomo)", "Chat/Support (Intercom/Drift/Zendesk)",
            "Payments (Stripe/Adyen)", "CMS (Headless/WordPress)", "LMS/LRS",
            "ERP/Inventory", OTHER_OPTION,
        ]),
        _q("TECH", 3, "Performance targets", TYPE_CHECKBOX, [
            "LCP < 2.5s", "CLS < 0.1", "TTFB < 0.5s", "Core Web Vitals green",
            "Image optimization & CDN", OTHER_OPTION,
        ]),
        _q("TECH", 4, "Compliance & policies", TYPE_CHECKBOX, [
            "GDPR / cookie consent", "CCPA", "PCI-DSS (payments)", "HIPAA (PHI)",
            "Data retention policy", "DPA (Data Processing Addendum)", OTHER_OPTION,
        ]),
        _q("TECH", 5, "Operational requirements", TYPE_CHECKBOX, [
            "Staging environment", "Uptime monitoring", "Error tracking", "Daily backups",
            "Audit logs", "SLA / Support plan", OTHER_OPTION,
        ]),
        # ── Design ──
        _q("DESIGN", 1, "Design tone/style", TYPE_CHECKBOX, [
            "Minimal & modern", "Corporate & formal", "Friendly & playful",
            "Bold & expressive", "Editorial", "Dark mode", OTHER_OPTION,
        ]),
        _q("DESIGN", 2, "Do you have brand assets?", TYPE_DROPDOWN,
           ["Logo only", "Logo + colors", "Full brand guidelines", "No assets yet"]),
        # ── Content ──
        _q("CONTENT", 1, "Content readiness", TYPE_DROPDOWN,
           ["All content ready", "Some content ready", "Need help creating content"]),
        _q("CONTENT", 2, "SEO priorities", TYPE_CHECKBOX, [
            "Keyword strategy", "On-page SEO (titles/meta)",
            "Technical SEO (sitemap/robots/schema)", "Redirects/migrations",
            "Content plan", OTHER_OPTION,
        ]),
        # ── Stack ──
        _q("STACK", 1, "Preferred platform/stack (if any)", TYPE_CHECKBOX, [
            "Next.js (recommended)", "React (SPA)", "WordPress", "Shopify",
            "Headless CMS", "No preference", OTHER_OPTION,
        ]),
        _q("STACK", 2, "Hosting preference", TYPE_DROPDOWN, [
            "Vercel (recommended)", "AWS", "Azure", "GCP", "Self-hosted", "No preference",
        ]),
    ]
