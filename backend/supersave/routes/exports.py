# Overview: Flask API routes for CSV and text data exports (admin only).

from flask import Blueprint, Response, jsonify, current_app

from ..decorators import require_auth, require_admin
from ..services import export_service


exports_bp = Blueprint("exports", __name__, url_prefix="/api/exports")


def _download(body: str, filename: str, mimetype: str = "text/csv") -> Response:
    response = Response(body, mimetype=mimetype)
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


_CSV_EXPORTS = {
    "vouchers": ("vouchers", export_service.vouchers_csv),
    "accounts": ("accounts", export_service.accounts_csv),
    "purchases": ("purchases", export_service.purchases_csv),
    "users": ("users", export_service.users_csv),
    "audit-logs": ("audit_logs", export_service.audit_logs_csv),
}


@exports_bp.get("/<string:kind>")
@require_auth
@require_admin
def export_csv_route(kind: str):
    if kind not in _CSV_EXPORTS:
        return jsonify({"error": "Unknown export"}), 404

    prefix, generator = _CSV_EXPORTS[kind]
    try:
        return _download(generator(), export_service.export_filename(prefix))
    except Exception:
        current_app.logger.exception("Failed to export %s", kind)
        return jsonify({"error": "Internal server error"}), 500


@exports_bp.get("/all")
@require_auth
@require_admin
def export_all_route():
    try:
        return _download(
            export_service.complete_export(),
            export_service.export_filename("supersave_complete_export", "txt"),
            mimetype="text/plain",
        )
    except Exception:
        current_app.logger.exception("Failed to export all data")
        return jsonify({"error": "Internal server error"}), 500
