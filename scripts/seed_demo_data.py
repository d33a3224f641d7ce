#!/usr/bin/env python3
"""
Consultation Intake — Demo Data Seed Script.

Creates the default questionnaire, one demo client with a draft project and
a handful of answers, so the intake, progress and brief endpoints have
something to show.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --append
    python scripts/seed_demo_data.py --verbose
"""

import argparse
import sys

sys.path.insert(0, ".")

from app import create_app
from app.models import db
from app.models.answer import Answer
from app.models.client import Client
from app.models.project import Project
from app.models.proposal import Proposal
from app.services import intake_service
from app.services.questionnaire_service import seed_default_questionnaire

DEMO_CLIENT = {
    "name": "Acme Retail",
    "client_type": "SMALL_BUSINESS",
    "industry": "Retail",
    "contact_name": "Jordan Lee",
    "contact_email": "jordan@acme-retail.example",
}

DEMO_PROJECT = {"name": "Acme E-commerce Launch", "project_type": "ECOMMERCE"}

# question_text -> submitted values (matched against the seeded questionnaire)
DEMO_ANSWERS = {
    "What problem does this project need to solve for your users?":
        ["Customers cannot order online; phone orders do not scale."],
    "Who is your target audience?": ["Home cooks aged 25-45"],
    "Primary business goals": ["Increase online sales", "Build brand credibility"],
    "Primary device usage": ["Mobile first"],
    "What is the primary project type?": ["E-commerce"],
    "Which payment methods should be supported?": ["Credit/Debit cards", "PayPal"],
}


def _reset():
    for model in (Proposal, Answer, Project, Client):
        db.session.query(model).delete()
    db.session.commit()


def seed_all(app, append=False, verbose=False):
    with app.app_context():
        if not append:
            _reset()
            print("🧹 Existing intake data removed")

        qn = seed_default_questionnaire(activate=True)
        print(f"📋 Questionnaire: {qn.name} v{qn.version} ({len(qn.questions)} questions)")

        client = Client(**DEMO_CLIENT)
        db.session.add(client)
        db.session.flush()
        project = Project(client_id=client.id, **DEMO_PROJECT)
        db.session.add(project)
        db.session.commit()
        print(f"🏢 Client: {client.name} → project #{project.id} {project.name}")

        by_text = {q.question_text: q for q in qn.questions}
        fields = {}
        for text, values in DEMO_ANSWERS.items():
            q = by_text.get(text)
            if q is None:
                print(f"   ⚠️  question not found: {text}")
                continue
            fields[f"q_{q.id}"] = values
        result = intake_service.apply_batch(project.id, fields)
        print(f"✍️  Answers: upserts={result.upserts} skipped={len(result.skipped)}")
        if verbose:
            for s in result.skipped:
                print(f"   skipped {s.field}: {s.reason}")

        print(f"\n{'='*60}")
        print(f"🎉 DEMO DATA SEED COMPLETE — project_id={project.id}")
        print(f"{'='*60}\n")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--append", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    app = create_app()
    print(f"🎯 DB: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
    with app.app_context():
        db.create_all()
    seed_all(app, append=args.append, verbose=args.verbose)


if __name__ == "__main__":
    main()
