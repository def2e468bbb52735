# Overview: Service-layer operations for bulk-buyer accounts; CRUD, ledger entries and balances.

"""
Bulk-buyer accounts.

Balance model (all cents):
- total_purchased  = sum of purchases
- total_allocated  = face value of vouchers allocated to the account
- total_redeemed   = face value of allocated vouchers that were redeemed
- manual_redemptions = sum of manual deductions
- remaining_balance = total_purchased - total_redeemed - manual_redemptions
"""

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import Account, AccountPurchase, AccountRedemption, User, Voucher
from ..models.vouchers import STATUS_AVAILABLE, STATUS_REDEEMED
from ..time_utils import to_utc_z
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_account,
    parse_rands,
    validate_payload,
)
from .audit_service import log_event


ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_name", "email", "phone", "notes"},
    required_on_create={"name"},
)


class AccountError(ValueError):
    """Raised when an account ledger operation breaks a business rule."""


def _require_account(account_id: int) -> Account:
    account = db.session.get(Account, account_id)
    if not account:
        raise NotFoundError("Account not found")
    return account


def get_account(account_id: int) -> Account | None:
    return db.session.get(Account, account_id)


def list_accounts() -> list[Account]:
    return db.session.query(Account).order_by(Account.name.asc(), Account.id.asc()).all()


def create_account(payload: dict, user: User | None) -> Account:
    patch = validate_payload(model=Account, payload=payload, policy=ACCOUNT_POLICY, partial=False)
    enforce_rules_account(patch)
    account = Account(**patch, created_by_user_id=user.id if user else None)
    db.session.add(account)
    db.session.commit()
    return account


def update_account(account_id: int, payload: dict) -> Account:
    account = _require_account(account_id)
    patch = validate_payload(model=Account, payload=payload, policy=ACCOUNT_POLICY, partial=True)
    enforce_rules_account(patch)
    for key, value in patch.items():
        setattr(account, key, value)
    db.session.commit()
    return account


def _voucher_totals(account_id: int):
    return (
        db.session.query(
            func.count(Voucher.id).label("total"),
            func.coalesce(func.sum(case((Voucher.status == STATUS_AVAILABLE, 1), else_=0)), 0).label("available"),
            func.coalesce(func.sum(case((Voucher.status == STATUS_REDEEMED, 1), else_=0)), 0).label("redeemed"),
            func.coalesce(func.sum(Voucher.value_cents), 0).label("total_value"),
            func.coalesce(
                func.sum(case((Voucher.status == STATUS_AVAILABLE, Voucher.value_cents), else_=0)), 0
            ).label("available_value"),
            func.coalesce(
                func.sum(case((Voucher.status == STATUS_REDEEMED, Voucher.value_cents), else_=0)), 0
            ).label("redeemed_value"),
        )
        .filter(Voucher.account_id == account_id)
        .one()
    )


def get_account_stats(account_id: int) -> dict:
    """Voucher counts and values for the accounts list."""
    totals = _voucher_totals(account_id)
    return {
        "total_vouchers": int(totals.total or 0),
        "available_vouchers": int(totals.available or 0),
        "redeemed_vouchers": int(totals.redeemed or 0),
        "total_value_cents": int(totals.total_value or 0),
        "available_value_cents": int(totals.available_value or 0),
    }


def get_account_summary(account_id: int) -> dict | None:
    account = get_account(account_id)
    if not account:
        return None

    purchases = (
        db.session.query(
            func.coalesce(func.sum(AccountPurchase.amount_cents), 0),
            func.coalesce(func.sum(AccountPurchase.voucher_count), 0),
        )
        .filter(AccountPurchase.account_id == account_id)
        .one()
    )
    manual = (
        db.session.query(func.coalesce(func.sum(AccountRedemption.amount_cents), 0))
        .filter(AccountRedemption.account_id == account_id)
        .scalar()
    )
    vouchers = _voucher_totals(account_id)

    total_purchased = int(purchases[0] or 0)
    total_redeemed = int(vouchers.redeemed_value or 0)
    manual_redemptions = int(manual or 0)

    summary = account.to_dict()
    summary.update(
        {
            "total_purchased_cents": total_purchased,
            "total_allocated_cents": int(vouchers.total_value or 0),
            "total_redeemed_cents": total_redeemed,
            "manual_redemptions_cents": manual_redemptions,
            "remaining_balance_cents": total_purchased - total_redeemed - manual_redemptions,
            "vouchers_purchased": int(purchases[1] or 0),
            "vouchers_allocated": int(vouchers.total or 0),
            "vouchers_redeemed": int(vouchers.redeemed or 0),
        }
    )
    return summary


def list_account_summaries() -> list[dict]:
    return [get_account_summary(account.id) for account in list_accounts()]


def list_purchases(account_id: int | None = None) -> list[AccountPurchase]:
    query = db.session.query(AccountPurchase)
    if account_id is not None:
        query = query.filter(AccountPurchase.account_id == account_id)
    return query.order_by(AccountPurchase.purchase_date.desc(), AccountPurchase.id.desc()).all()


def list_manual_redemptions(account_id: int) -> list[AccountRedemption]:
    return (
        db.session.query(AccountRedemption)
        .filter(AccountRedemption.account_id == account_id)
        .order_by(AccountRedemption.redemption_date.desc(), AccountRedemption.id.desc())
        .all()
    )


def record_purchase(
    account_id: int,
    amount_rands,
    notes: str | None,
    user: User | None,
    *,
    unit_rands: int = 50,
) -> AccountPurchase:
    """Record money in; the amount must be a whole number of vouchers."""
    account = _require_account(account_id)
    amount_cents = parse_rands(amount_rands, "Amount in Rands")
    unit_cents = unit_rands * 100
    if amount_cents % unit_cents != 0:
        raise ValidationError(
            f"Amount must be a multiple of R{unit_rands} "
            f"(e.g., R{unit_rands}, R{unit_rands * 2}, R{unit_rands * 3})"
        )

    purchase = AccountPurchase(
        account_id=account.id,
        amount_cents=amount_cents,
        voucher_count=amount_cents // unit_cents,
        unit_value_cents=unit_cents,
        notes=(notes or "").strip() or None,
        created_by_user_id=user.id if user else None,
    )
    db.session.add(purchase)
    log_event(
        "purchase_recorded",
        user=user,
        details={"account_id": account.id, "amount_cents": amount_cents, "voucher_count": purchase.voucher_count},
    )
    db.session.commit()
    return purchase


def record_manual_redemption(
    account_id: int,
    amount_rands,
    notes: str | None,
    user: User | None,
) -> AccountRedemption:
    """Record money out that did not go through a voucher scan."""
    _require_account(account_id)
    amount_cents = parse_rands(amount_rands, "Amount in Rands")

    remaining = get_account_summary(account_id)["remaining_balance_cents"]
    if amount_cents > remaining:
        raise AccountError(
            f"Amount exceeds remaining balance of R{remaining / 100:.2f}"
        )

    redemption = AccountRedemption(
        account_id=account_id,
        amount_cents=amount_cents,
        notes=(notes or "").strip() or None,
        created_by_user_id=user.id if user else None,
        created_by_email=user.email if user else None,
    )
    db.session.add(redemption)
    log_event(
        "manual_redemption",
        user=user,
        details={"account_id": account_id, "amount_cents": amount_cents},
    )
    db.session.commit()
    return redemption


def get_account_activity(account_id: int) -> list[dict]:
    """
    Merged account timeline, newest first.

    Types: purchase, manual_redemption, voucher_allocated, redemption.
    """
    _require_account(account_id)
    activity: list[dict] = []

    for purchase in list_purchases(account_id):
        activity.append(
            {
                "id": f"purchase-{purchase.id}",
                "type": "purchase",
                "date": purchase.purchase_date,
                "amount_cents": purchase.amount_cents,
                "notes": purchase.notes,
                "created_by_user_id": purchase.created_by_user_id,
                "created_by_email": None,
            }
        )

    for manual in list_manual_redemptions(account_id):
        activity.append(
            {
                "id": f"manual-{manual.id}",
                "type": "manual_redemption",
                "date": manual.redemption_date,
                "amount_cents": manual.amount_cents,
                "notes": manual.notes,
                "created_by_user_id": manual.created_by_user_id,
                "created_by_email": manual.created_by_email,
            }
        )

    vouchers = db.session.query(Voucher).filter(Voucher.account_id == account_id).all()
    for voucher in vouchers:
        activity.append(
            {
                "id": f"allocated-{voucher.id}",
                "type": "voucher_allocated",
                "date": voucher.allocated_at or voucher.created_at,
                "amount_cents": voucher.value_cents,
                "notes": f"Voucher {voucher.barcode}",
                "created_by_user_id": None,
                "created_by_email": None,
            }
        )
        if voucher.status == STATUS_REDEEMED and voucher.redeemed_at:
            activity.append(
                {
                    "id": f"redeemed-{voucher.id}",
                    "type": "redemption",
                    "date": voucher.redeemed_at,
                    "amount_cents": voucher.value_cents,
                    "notes": f"Voucher {voucher.barcode}",
                    "created_by_user_id": voucher.redeemed_by_user_id,
                    "created_by_email": voucher.redeemed_by_email,
                }
            )

    activity.sort(key=lambda item: item["date"], reverse=True)
    for item in activity:
        item["date"] = to_utc_z(item["date"])
    return activity
