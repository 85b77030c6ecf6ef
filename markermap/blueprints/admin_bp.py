"""
Map Admin Blueprint: export / import and scheduled-job control.

Routes (all under /api/v1/admin/map, moderator only):
  GET    /export?format=json|sql       – file download of markers + pending suggestions
  POST   /import                       – multipart upload (.json / .sql), atomic
  GET    /jobs                         – registered jobs with last-run info
  POST   /jobs/<name>/run              – run a job now
  POST   /jobs/<name>/toggle           – enable / disable a job   Body: { enabled }

No temp files: exports are rendered in memory, uploads are read in memory.
"""

import logging

from flask import Blueprint, Response, jsonify, request

from markermap.auth import require_moderator
from markermap.services.export_service import build_export
from markermap.services.import_service import import_data, parse_import_file
from markermap.services.scheduler_service import SchedulerService
from markermap.utils.errors import E, api_error

logger = logging.getLogger(__name__)

admin_bp = Blueprint("map_admin", __name__, url_prefix="/api/v1/admin/map")


@admin_bp.before_request
@require_moderator
def _moderators_only():
    return None


@admin_bp.route("/export", methods=["GET"])
def export_map():
    """Download every marker plus pending suggestions as JSON or SQL text."""
    content, mimetype, filename = build_export(request.args.get("format", "json"))
    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@admin_bp.route("/import", methods=["POST"])
def import_map():
    """Import an export file. Form field: ``file``.

    Returns the per-section created / updated / skipped counts; nothing is
    written unless every record reconciles.
    """
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return api_error(E.VALIDATION_REQUIRED, "file is required")

    data = parse_import_file(upload.filename, upload.read())
    result = import_data(data)
    return jsonify(result)


@admin_bp.route("/jobs", methods=["GET"])
def list_jobs():
    return jsonify(SchedulerService.list_jobs())


@admin_bp.route("/jobs/<name>/run", methods=["POST"])
def run_job(name):
    result = SchedulerService.run_job(name)
    if result["status"] == "error":
        return api_error(E.NOT_FOUND, result["error"])
    status = 500 if result["status"] == "failed" else 200
    return jsonify(result), status


@admin_bp.route("/jobs/<name>/toggle", methods=["POST"])
def toggle_job(name):
    data = request.get_json(silent=True) or {}
    if "enabled" not in data:
        return api_error(E.VALIDATION_REQUIRED, "enabled is required")
    record = SchedulerService.toggle_job(name, bool(data["enabled"]))
    if record is None:
        return api_error(E.NOT_FOUND, f"Unknown job: {name}")
    return jsonify(record)
