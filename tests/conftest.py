"""
Shared pytest fixtures for the Consultation Intake test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - questionnaire: Active 3-question questionnaire (Q1 TEXT, Q2 CHECKBOX, Q3 DROPDOWN)
    - project: DRAFT project of a demo client
    - answered_project: project with the three scenario questions answered
    - make_questionnaire / make_project: factory fixtures
"""

import pytest

from app import create_app
from app.models import db as _db


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────

SCENARIO_QUESTIONS = [
    {"id": "Q1", "phase": "DISCOVERY", "order": 1, "question_text": "Q1", "type": "TEXT"},
    {"id": "Q2", "phase": "DISCOVERY", "order": 2, "question_text": "Q2", "type": "CHECKBOX",
     "options": ["A", "B", "Other"]},
    {"id": "Q3", "phase": "TECH", "order": 1, "question_text": "Q3", "type": "DROPDOWN",
     "options": ["X", "Y"]},
]


def _make_questionnaire(questions=None, *, name="Scenario", version=1, activate=True):
    """Create (and by default activate) a questionnaire from question dicts."""
    from app.services.questionnaire_service import activate_questionnaire, create_questionnaire

    qn = create_questionnaire(name, version, [dict(q) for q in (questions or SCENARIO_QUESTIONS)])
    _db.session.commit()
    if activate:
        activate_questionnaire(qn.id)
    return qn


def _make_project(name="Acme E-commerce Launch", *, client_name="Acme Retail",
                 project_type="WEBSITE", status="DRAFT"):
    from app.models.client import Client
    from app.models.project import Project

    c = Client(name=client_name)
    _db.session.add(c)
    _db.session.flush()
    p = Project(client_id=c.id, name=name, project_type=project_type, status=status)
    _db.session.add(p)
    _db.session.commit()
    return p


@pytest.fixture()
def questionnaire():
    return _make_questionnaire()


@pytest.fixture()
def project():
    return _make_project()


@pytest.fixture()
def answered_project(questionnaire, project):
    """Project with the three scenario questions answered."""
    from app.services import intake_service

    intake_service.apply_batch(project.id, {
        "q_Q1": "hello",
        "q_Q2": ["A", "Other"],
        "q_Q2__other": "custom",
        "q_Q3": "X",
    })
    return project


@pytest.fixture()
def make_questionnaire():
    """Factory fixture: ``make_questionnaire(questions, name=..., version=..., activate=...)``."""
    return _make_questionnaire


@pytest.fixture()
def make_project():
    """Factory fixture: ``make_project(name, client_name=..., project_type=..., status=...)``."""
    return _make_project
