"""
Brief blueprint — live brief preview and versioned proposal snapshots.

Endpoints:
    GET  /api/v1/projects/<pid>/brief[?format=json|html|xlsx]
         Live preview rendered from current answers; nothing is persisted.

    POST /api/v1/projects/<pid>/proposals
         Renders the brief now and stores it as the next version.
         Returns: 201 with the new proposal (409 + retryable on a version race).

    GET  /api/v1/projects/<pid>/proposals
         All versions, newest first (bodies omitted). ?limit=&offset=

    GET  /api/v1/projects/<pid>/proposals/<version>[?format=html]
         One frozen version.
"""

import logging

from flask import Blueprint, Response, jsonify, request, send_file

from app.blueprints import paginate_query
from app.services import brief_service, progress_service
from app.services.export_service import export_brief_xlsx
from app.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

brief_bp = Blueprint("brief", __name__, url_prefix="/api/v1")
register_error_handlers(brief_bp)

_FORMATS = ("json", "html", "xlsx")


@brief_bp.route("/projects/<int:project_id>/brief", methods=["GET"])
def preview(project_id: int):
    fmt = (request.args.get("format") or "json").lower()
    if fmt not in _FORMATS:
        return api_error(E.VALIDATION_INVALID, f"format must be one of: {', '.join(_FORMATS)}")

    doc = brief_service.build_document(project_id)
    if fmt == "html":
        return Response(doc.render_html(), mimetype="text/html")
    if fmt == "xlsx":
        buf = export_brief_xlsx(doc.to_dict(), progress_service.compute_progress(project_id))
        return send_file(
            buf,
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            as_attachment=True,
            download_name=f"brief-project-{project_id}.xlsx",
        )

    latest = brief_service.latest_proposal(project_id)
    return jsonify({
        "document": doc.to_dict(),
        "html": doc.render_html(),
        "latest_proposal": latest.to_dict() if latest else None,
    }), 200


@brief_bp.route("/projects/<int:project_id>/proposals", methods=["POST"])
def create_proposal(project_id: int):
    proposal = brief_service.save_snapshot(project_id)
    return jsonify(proposal.to_dict(include_body=True)), 201


@brief_bp.route("/projects/<int:project_id>/proposals", methods=["GET"])
def list_proposals(project_id: int):
    proposals, total = paginate_query(brief_service.proposals_query(project_id))
    return jsonify({"items": [p.to_dict() for p in proposals], "total": total}), 200


@brief_bp.route("/projects/<int:project_id>/proposals/<int:version>", methods=["GET"])
def get_proposal(project_id: int, version: int):
    proposal = brief_service.get_proposal(project_id, version)
    if (request.args.get("format") or "").lower() == "html":
        return Response(proposal.document_body, mimetype="text/html")
    return jsonify(proposal.to_dict(include_body=True)), 200
