# Overview: Flask API routes for bulk-buyer accounts; CRUD, ledger entries, allocation and activity.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import account_service
from ..services import voucher_service
from ..services.account_service import AccountError
from ..validation import NotFoundError, ValidationError


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


def _with_stats(account) -> dict:
    data = account.to_dict()
    data.update(account_service.get_account_stats(account.id))
    return data


@accounts_bp.get("")
@require_auth
def list_accounts_route():
    try:
        accounts = account_service.list_accounts()
        return jsonify({"accounts": [_with_stats(a) for a in accounts]}), 200
    except Exception:
        current_app.logger.exception("Failed to list accounts")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("")
@require_auth
def create_account_route():
    try:
        account = account_service.create_account(request.get_json(silent=True) or {}, g.current_user)
        return jsonify({"account": account.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/summaries")
@require_auth
def list_account_summaries_route():
    try:
        return jsonify({"summaries": account_service.list_account_summaries()}), 200
    except Exception:
        current_app.logger.exception("Failed to list account summaries")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/<int:account_id>")
@require_auth
def get_account_route(account_id: int):
    account = account_service.get_account(account_id)
    if not account:
        return jsonify({"error": "Account not found"}), 404
    return jsonify({"account": _with_stats(account)}), 200


@accounts_bp.patch("/<int:account_id>")
@require_auth
def update_account_route(account_id: int):
    try:
        account = account_service.update_account(account_id, request.get_json(silent=True) or {})
        return jsonify({"account": account.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/<int:account_id>/summary")
@require_auth
def account_summary_route(account_id: int):
    summary = account_service.get_account_summary(account_id)
    if not summary:
        return jsonify({"error": "Account not found"}), 404
    return jsonify({"summary": summary}), 200


@accounts_bp.get("/<int:account_id>/purchases")
@require_auth
def list_purchases_route(account_id: int):
    if not account_service.get_account(account_id):
        return jsonify({"error": "Account not found"}), 404
    purchases = account_service.list_purchases(account_id)
    return jsonify({"purchases": [p.to_dict() for p in purchases]}), 200


@accounts_bp.post("/<int:account_id>/purchases")
@require_auth
def record_purchase_route(account_id: int):
    """
    Record a bulk purchase.

    Request body: {"amount_rands": 500, "notes": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        purchase = account_service.record_purchase(
            account_id,
            data.get("amount_rands"),
            data.get("notes"),
            g.current_user,
            unit_rands=current_app.config["PURCHASE_UNIT_RANDS"],
        )
        return jsonify({"purchase": purchase.to_dict()}), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record purchase")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/<int:account_id>/redemptions")
@require_auth
def list_manual_redemptions_route(account_id: int):
    if not account_service.get_account(account_id):
        return jsonify({"error": "Account not found"}), 404
    redemptions = account_service.list_manual_redemptions(account_id)
    return jsonify({"redemptions": [r.to_dict() for r in redemptions]}), 200


@accounts_bp.post("/<int:account_id>/redemptions")
@require_auth
def record_manual_redemption_route(account_id: int):
    try:
        data = request.get_json(silent=True) or {}
        redemption = account_service.record_manual_redemption(
            account_id,
            data.get("amount_rands"),
            data.get("notes"),
            g.current_user,
        )
        return jsonify({"redemption": redemption.to_dict()}), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, AccountError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record manual redemption")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("/<int:account_id>/vouchers")
@require_auth
def allocate_vouchers_route(account_id: int):
    """
    Allocate vouchers to the account.

    Request body: {"barcodes": ["...", "..."]}
    """
    try:
        data = request.get_json(silent=True) or {}
        barcodes = data.get("barcodes")
        if not isinstance(barcodes, list) or not barcodes:
            return jsonify({"error": "Barcodes array is required"}), 400

        result = voucher_service.allocate_vouchers(account_id, barcodes, g.current_user)
        return jsonify(result.to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to allocate vouchers")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/<int:account_id>/activity")
@require_auth
def account_activity_route(account_id: int):
    try:
        return jsonify({"activity": account_service.get_account_activity(account_id)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load account activity")
        return jsonify({"error": "Internal server error"}), 500
