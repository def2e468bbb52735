# Overview: Flask API routes for vouchers; lookup, redemption, import and voiding.

"""
Voucher routes

Redemption always answers 200 with a success flag: "not found" or
"already redeemed" are outcomes the scan screen displays, not API errors.
Imports accept either JSON ({"barcodes": [...], ...}) or a multipart upload
with a CSV, JSON or Excel file in the "file" field.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..services import import_service
from ..services import voucher_service
from ..services.import_service import ImportError
from ..services.voucher_service import VoucherError
from ..validation import ConflictError, NotFoundError, ValidationError


vouchers_bp = Blueprint("vouchers", __name__, url_prefix="/api/vouchers")


@vouchers_bp.get("")
@require_auth
def list_vouchers_route():
    """
    List vouchers.

    Query params: status (all|available|redeemed|expired|voided), search,
    account_id, limit (default 50), offset.
    """
    try:
        page = voucher_service.list_vouchers(
            status=request.args.get("status"),
            search=request.args.get("search"),
            account_id=request.args.get("account_id", type=int),
            limit=request.args.get("limit", type=int),
            offset=request.args.get("offset", type=int),
        )
        return jsonify({
            "vouchers": [v.to_dict() for v in page["vouchers"]],
            "total": page["total"],
            "limit": page["limit"],
            "offset": page["offset"],
        }), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list vouchers")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.get("/<string:barcode>")
@require_auth
def get_voucher_route(barcode: str):
    voucher = voucher_service.get_voucher_by_barcode(barcode)
    if not voucher:
        return jsonify({"error": "Voucher not found"}), 404
    return jsonify({"voucher": voucher.to_dict()}), 200


@vouchers_bp.post("/redeem")
@require_auth
def redeem_voucher_route():
    try:
        data = request.get_json(silent=True) or {}
        result = voucher_service.redeem_voucher(data.get("barcode"), g.current_user)
        return jsonify(result.to_dict()), 200
    except VoucherError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to redeem voucher")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.post("/import")
@require_auth
def import_vouchers_route():
    try:
        if "file" in request.files:
            upload = request.files["file"]
            barcodes = import_service.parse_barcode_file(upload.filename or "", upload.stream)
            data = request.form
        else:
            data = request.get_json(silent=True) or {}
            barcodes = data.get("barcodes")

        result = import_service.import_vouchers(
            barcodes=barcodes,
            batch_number=data.get("batch_number"),
            book_number=data.get("book_number"),
            value_rands=data.get("value"),
            account_id=data.get("account_id") or None,
            user=g.current_user,
            default_value_rands=current_app.config["VOUCHER_DEFAULT_VALUE_RANDS"],
        )
        return jsonify(result.to_dict()), 200

    except (ImportError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to import vouchers")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.post("/<int:voucher_id>/void")
@require_auth
@require_admin
def void_voucher_route(voucher_id: int):
    try:
        voucher = voucher_service.void_voucher(voucher_id, g.current_user)
        return jsonify({"voucher": voucher.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to void voucher")
        return jsonify({"error": "Internal server error"}), 500
