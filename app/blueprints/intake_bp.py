"""
Intake blueprint — autosave, form population and lifecycle of a project intake.

Endpoints:
    GET    /api/v1/projects/<pid>/intake
           Returns: 200 with the per-phase form model and current values.

    POST   /api/v1/projects/<pid>/answers/bulk
           Body: multipart/form-data or urlencoded form with q_<id> and
                 q_<id>__other fields (optional "__allNames"), or JSON
                 { "fields": { "q_<id>": "..." | [...], ... } }.
           Returns: 200 { ok, upserts, deletes, applied, skipped }.

    POST   /api/v1/projects/<pid>/answers
           Body: { "question_id": "...", "value": "..." | [...], "other": "..." }
                 (JSON or form). Single-field autosave.

    DELETE /api/v1/projects/<pid>/answers
           Removes every answer of a DRAFT project.

    POST   /api/v1/projects/<pid>/submit     Body: { "require_complete": bool }
    POST   /api/v1/projects/<pid>/reopen

    GET    /api/v1/projects/<pid>/progress?phase=&visible_only=

Status codes:
    404  project (or active questionnaire) missing
    403  write against a submitted project; nothing was written
    200  batch applied; zero counts are a no-op, not an error

Layer contract:
    - Blueprint: parse transport payloads, call service, return JSON.
    - NO db.session calls here; all writes owned by intake_service.
"""

import logging

from flask import Blueprint, jsonify, request

from app.services import intake_service, progress_service
from app.utils.errors import E, api_error, register_error_handlers
from app.utils.helpers import form_entries, parse_bool

logger = logging.getLogger(__name__)

intake_bp = Blueprint("intake", __name__, url_prefix="/api/v1")
register_error_handlers(intake_bp)


def _batch_fields():
    """Extract raw answer fields from a JSON or form request."""
    if request.is_json:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return None
        fields = data.get("fields", data)
        return fields if isinstance(fields, dict) else None
    return form_entries(request.form)


# ── Form ───────────────────────────────────────────────────────────────────────


@intake_bp.route("/projects/<int:project_id>/intake", methods=["GET"])
def get_intake(project_id: int):
    return jsonify(intake_service.build_form(project_id)), 200


# ── Autosave ───────────────────────────────────────────────────────────────────


@intake_bp.route("/projects/<int:project_id>/answers/bulk", methods=["POST"])
def save_bulk(project_id: int):
    """Apply a batch of fields. Unknown or malformed fields are reported, not fatal."""
    fields = _batch_fields()
    if fields is None:
        return api_error(E.VALIDATION_INVALID, "'fields' must be an object of field names to values")

    result = intake_service.apply_batch(project_id, fields)
    return jsonify({"ok": True, **result.to_dict()}), 200


@intake_bp.route("/projects/<int:project_id>/answers", methods=["POST"])
def save_single(project_id: int):
    if request.is_json:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object.")
        question_id = str(data.get("question_id") or "").strip()
        value = data.get("value", "")
        other = data.get("other")
    else:
        question_id = (request.form.get("questionId") or request.form.get("question_id") or "").strip()
        values = request.form.getlist("value")
        value = values if len(values) > 1 else (values[0] if values else "")
        other = request.form.get("other")

    if not question_id:
        return api_error(E.VALIDATION_REQUIRED, "Field 'question_id' is required.")

    result = intake_service.apply_single(project_id, question_id, value, other_text=other)
    return jsonify({"ok": True, **result.to_dict()}), 200


@intake_bp.route("/projects/<int:project_id>/answers", methods=["DELETE"])
def clear_answers(project_id: int):
    removed = intake_service.clear_answers(project_id)
    return jsonify({"ok": True, "deletes": removed}), 200


# ── Lifecycle ──────────────────────────────────────────────────────────────────


@intake_bp.route("/projects/<int:project_id>/submit", methods=["POST"])
def submit(project_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object.")
    require_complete = parse_bool(data.get("require_complete"), default=False)
    project = intake_service.submit_project(project_id, require_complete=require_complete)
    return jsonify(project.to_dict()), 200


@intake_bp.route("/projects/<int:project_id>/reopen", methods=["POST"])
def reopen(project_id: int):
    project = intake_service.reopen_project(project_id)
    return jsonify(project.to_dict()), 200


# ── Progress ───────────────────────────────────────────────────────────────────


@intake_bp.route("/projects/<int:project_id>/progress", methods=["GET"])
def progress(project_id: int):
    phase = request.args.get("phase") or None
    visible_only = parse_bool(request.args.get("visible_only"))
    return jsonify(progress_service.compute_progress(
        project_id, phase=phase, visible_only=visible_only,
    )), 200
