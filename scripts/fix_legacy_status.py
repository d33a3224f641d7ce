#!/usr/bin/env python3
"""Move projects still carrying the legacy "ACTIVE" status to SUBMITTED (idempotent)."""

import argparse
import sys
from datetime import datetime, timezone

sys.path.insert(0, ".")

from app import create_app
from app.models import db
from app.models.project import LEGACY_STATUS_ACTIVE, STATUS_SUBMITTED, Project


def fix_legacy_statuses(apply: bool = False) -> dict:
    """Rewrite ACTIVE -> SUBMITTED. With ``apply=False`` nothing is written."""
    summary = {"mode": "apply" if apply else "dry-run", "matched": 0, "updated": 0}

    projects = Project.query.filter_by(status=LEGACY_STATUS_ACTIVE).order_by(Project.id).all()
    summary["matched"] = len(projects)

    for project in projects:
        if not apply:
            print(f"[DRY-RUN] project_id={project.id} {LEGACY_STATUS_ACTIVE} -> {STATUS_SUBMITTED}")
            continue
        project.status = STATUS_SUBMITTED
        if project.submitted_at is None:
            project.submitted_at = project.updated_at or datetime.now(timezone.utc)
        summary["updated"] += 1
        print(f"[UPDATE] project_id={project.id} {LEGACY_STATUS_ACTIVE} -> {STATUS_SUBMITTED}")

    if apply:
        db.session.commit()

    print(f"[SUMMARY] mode={summary['mode']} matched={summary['matched']} updated={summary['updated']}")
    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Migrate legacy ACTIVE project statuses to SUBMITTED.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--dry-run", action="store_true", help="Preview only; do not write data")
    mode.add_argument("--apply", action="store_true", help="Persist status changes")
    args = parser.parse_args()

    if not args.dry_run and not args.apply:
        print("[INFO] No mode specified; defaulting to --dry-run")

    app = create_app()
    with app.app_context():
        fix_legacy_statuses(apply=bool(args.apply))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
