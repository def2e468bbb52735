# Overview: Flask API routes for system health and first-run setup.

"""
System health and initial setup endpoints.

/api/setup creates the very first user and refuses once any user exists.
"""

import time
from flask import Blueprint, current_app, jsonify, request
from ..extensions import db
from ..models import SessionToken, User, Voucher
from ..services import auth_service, session_service
from ..services.audit_service import log_event
from ..services.auth_service import PasswordValidationError
from ..validation import ConflictError, ValidationError
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        voucher_count = db.session.query(Voucher).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "vouchers": voucher_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }
    return response, 200 if healthy else 503


@system_bp.post("/setup")
def setup_route():
    """
    Create the first (admin) user and sign them in.

    Only allowed while the users table is empty.
    """
    try:
        if auth_service.count_users() > 0:
            return jsonify({"error": "Setup already completed. Users already exist."}), 400

        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        if not email or not password:
            return jsonify({"error": "Email and password are required"}), 400

        user = auth_service.create_user(email, password, role=data.get("role") or "admin")
        log_event("user_created", user=user, details={"user_id": user.id, "role": user.role, "setup": True}, commit=True)

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({"user": user.to_dict(), "token": token, "session": session.to_dict()}), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to complete setup")
        return jsonify({"error": "Internal server error"}), 500
