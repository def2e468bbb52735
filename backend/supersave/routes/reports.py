from flask import Blueprint, jsonify, request, current_app

from ..decorators import require_auth
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("")
@require_auth
def audit_log_report():
    """Audit log entries; ?start=&end= (a date-only end includes that whole day)."""
    start = request.args.get("start")
    end = request.args.get("end")

    try:
        logs = reporting_service.audit_logs(start, end)
        return jsonify({"logs": [log.to_dict() for log in logs]}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to load audit logs")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/redemptions")
@require_auth
def redemption_report():
    start = request.args.get("start")
    end = request.args.get("end")

    try:
        report = reporting_service.redemption_report(start, end)
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to build redemption report")
        return jsonify({"error": "Internal server error"}), 500
