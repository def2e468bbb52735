# Overview: Service-layer operations for data exports; CSV and combined text downloads.

from __future__ import annotations

import csv
import io
import json
from datetime import date

from ..extensions import db
from ..models import Account, AccountPurchase, AuditLog, User, Voucher
from ..time_utils import format_export_datetime, utcnow
from . import account_service


BANNER = "=" * 60


def _rands(cents: int | None) -> str:
    return f"{(cents or 0) / 100:.2f}"


def _write_csv(headers: list[str], rows: list[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(["" if value is None else value for value in row] for row in rows)
    return buffer.getvalue().rstrip("\n")


def export_filename(prefix: str, ext: str = "csv", *, today: date | None = None) -> str:
    today = today or utcnow().date()
    return f"{prefix}_{today.isoformat()}.{ext}"


def vouchers_csv() -> str:
    vouchers = db.session.query(Voucher).order_by(Voucher.created_at.desc(), Voucher.id.desc()).all()
    headers = [
        "Barcode", "Value (Rands)", "Status", "Batch Number", "Book Number",
        "Account ID", "Created At", "Redeemed At", "Redeemed By",
    ]
    rows = [
        [
            v.barcode,
            v.value_rands,
            v.status,
            v.batch_number,
            v.book_number,
            v.account_id,
            format_export_datetime(v.created_at),
            format_export_datetime(v.redeemed_at),
            v.redeemed_by_email,
        ]
        for v in vouchers
    ]
    return _write_csv(headers, rows)


def accounts_csv() -> str:
    headers = [
        "Name", "Contact Name", "Email", "Phone",
        "Total Purchased (Rands)", "Total Allocated (Rands)", "Total Redeemed (Rands)",
        "Manual Redemptions (Rands)", "Remaining Balance (Rands)",
        "Vouchers Purchased", "Vouchers Allocated", "Vouchers Redeemed", "Notes",
    ]
    rows = [
        [
            s["name"],
            s["contact_name"],
            s["email"],
            s["phone"],
            _rands(s["total_purchased_cents"]),
            _rands(s["total_allocated_cents"]),
            _rands(s["total_redeemed_cents"]),
            _rands(s["manual_redemptions_cents"]),
            _rands(s["remaining_balance_cents"]),
            s["vouchers_purchased"],
            s["vouchers_allocated"],
            s["vouchers_redeemed"],
            s["notes"],
        ]
        for s in account_service.list_account_summaries()
    ]
    return _write_csv(headers, rows)


def purchases_csv() -> str:
    names = dict(db.session.query(Account.id, Account.name).all())
    purchases = (
        db.session.query(AccountPurchase)
        .order_by(AccountPurchase.purchase_date.desc(), AccountPurchase.id.desc())
        .all()
    )
    headers = ["Account Name", "Amount (Rands)", "Voucher Count", "Purchase Date", "Notes"]
    rows = [
        [
            names.get(p.account_id, "Unknown"),
            _rands(p.amount_cents),
            p.voucher_count,
            format_export_datetime(p.purchase_date),
            p.notes,
        ]
        for p in purchases
    ]
    return _write_csv(headers, rows)


def users_csv() -> str:
    users = db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    headers = ["Email", "Role", "Created At"]
    rows = [[u.email, u.role, format_export_datetime(u.created_at)] for u in users]
    return _write_csv(headers, rows)


def audit_logs_csv() -> str:
    logs = db.session.query(AuditLog).order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).all()
    headers = ["Action", "Voucher ID", "User Email", "Timestamp", "Details"]
    rows = [
        [
            log.action,
            log.voucher_id,
            log.user_email,
            format_export_datetime(log.timestamp),
            json.dumps(log.details, sort_keys=True) if log.details else "",
        ]
        for log in logs
    ]
    return _write_csv(headers, rows)


def complete_export(*, today: date | None = None) -> str:
    """Every CSV export in one plain-text document, one banner per section."""
    today = today or utcnow().date()
    sections = [
        ("VOUCHERS", vouchers_csv()),
        ("ACCOUNTS", accounts_csv()),
        ("PURCHASES", purchases_csv()),
        ("USERS", users_csv()),
        ("AUDIT LOGS", audit_logs_csv()),
    ]
    parts = [f"SuperSave Data Export - {today.isoformat()}\n{BANNER}\n"]
    for title, body in sections:
        parts.append(f"{title}\n{BANNER}\n{body}\n")
    return "\n".join(parts)
