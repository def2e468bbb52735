# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Login issues a bearer session token
- Logout revokes the presented token
- Password reset by e-mailed single-use token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import password_reset_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..services.password_reset_service import ResetTokenError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "Email and password are required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid email or password"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    try:
        session_service.revoke_session(g.session_token, reason="User logout")
        return jsonify({"success": True, "message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.post("/forgot-password")
def forgot_password_route():
    """
    Start a password reset.

    The response is the same whether or not the e-mail is registered.
    resetLink is only included when EXPOSE_RESET_LINK is on (development).
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        if not email:
            return jsonify({"error": "Email is required"}), 400

        result = password_reset_service.request_reset(email, request.host_url)

        response = {"success": True, "message": result.message}
        if result.reset_link and current_app.config.get("EXPOSE_RESET_LINK"):
            response["resetLink"] = result.reset_link
        return jsonify(response), 200

    except Exception:
        current_app.logger.exception("Failed to process forgot-password request")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/reset-password")
def reset_password_route():
    try:
        data = request.get_json(silent=True) or {}
        token = data.get("token")
        password = data.get("password")
        if not token or not password:
            return jsonify({"error": "Token and password are required"}), 400

        password_reset_service.reset_password(token, password)
        return jsonify({"success": True, "message": "Password has been reset successfully"}), 200

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ResetTokenError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return jsonify({"error": "Internal server error"}), 500
