# Overview: Flask API routes for dashboard counters and redemption analytics.

from flask import Blueprint, jsonify, request, current_app

from ..decorators import require_auth
from ..services import reporting_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api")


@analytics_bp.get("/dashboard/stats")
@require_auth
def dashboard_stats():
    try:
        return jsonify(reporting_service.dashboard_stats()), 200
    except Exception:
        current_app.logger.exception("Failed to load dashboard stats")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/analytics/redemptions")
@require_auth
def redemptions_by_period():
    """
    Redemptions bucketed by period.

    Query params: start, end (default: last 30 days), group_by (day|week|month).
    """
    try:
        report = reporting_service.redemptions_by_period(
            request.args.get("start"),
            request.args.get("end"),
            request.args.get("group_by", "day"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to load redemption analytics")
        return jsonify({"error": "Internal server error"}), 500
