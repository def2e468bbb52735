# Overview: Service-layer operations for reporting; dashboard counters, audit and redemption reports.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import AuditLog, Voucher
from ..models.vouchers import (
    STATUS_AVAILABLE,
    STATUS_EXPIRED,
    STATUS_REDEEMED,
    STATUS_VOIDED,
    VOUCHER_STATUSES,
)
from ..time_utils import parse_iso_datetime, parse_range_end, start_of_day, to_utc_z, utcnow


DEFAULT_ANALYTICS_DAYS = 30

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-W%W",
    "month": "%Y-%m",
}


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_range_end(end) if end else None
    except ValueError:
        raise ReportError("start and end must be ISO-8601 dates")
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


def dashboard_stats() -> dict:
    """
    Headline counters for the dashboard.

    All counts come from one GROUP BY over status, so total always equals
    the sum of by_status even while redemptions are landing.
    """
    rows = (
        db.session.query(
            Voucher.status,
            func.count(Voucher.id).label("count"),
            func.coalesce(func.sum(Voucher.value_cents), 0).label("value_cents"),
        )
        .group_by(Voucher.status)
        .all()
    )

    by_status = {status: 0 for status in VOUCHER_STATUSES}
    value_by_status = {status: 0 for status in VOUCHER_STATUSES}
    for row in rows:
        by_status[row.status] = int(row.count or 0)
        value_by_status[row.status] = int(row.value_cents or 0)

    today = start_of_day(utcnow())
    redeemed_today = (
        db.session.query(func.count(Voucher.id))
        .filter(Voucher.status == STATUS_REDEEMED, Voucher.redeemed_at >= today)
        .scalar()
    )

    total_value_cents = sum(value_by_status.values())
    redeemed_value_cents = value_by_status[STATUS_REDEEMED]

    return {
        "total": sum(by_status.values()),
        "available": by_status[STATUS_AVAILABLE],
        "redeemed_today": int(redeemed_today or 0),
        "redeemed_total": by_status[STATUS_REDEEMED],
        "voided": by_status[STATUS_VOIDED],
        "expired": by_status[STATUS_EXPIRED],
        "total_value": total_value_cents // 100,
        "redeemed_value": redeemed_value_cents // 100,
        "total_value_cents": total_value_cents,
        "redeemed_value_cents": redeemed_value_cents,
        "by_status": by_status,
    }


def audit_logs(start: str | None = None, end: str | None = None, *, limit: int | None = None) -> list[AuditLog]:
    """Audit entries in range, newest first. A date-only end covers that whole day."""
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(AuditLog)
    if start_dt:
        query = query.filter(AuditLog.timestamp >= start_dt)
    if end_dt:
        query = query.filter(AuditLog.timestamp <= end_dt)

    query = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def redemption_report(start: str | None = None, end: str | None = None) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(Voucher).filter(Voucher.status == STATUS_REDEEMED)
    if start_dt:
        query = query.filter(Voucher.redeemed_at >= start_dt)
    if end_dt:
        query = query.filter(Voucher.redeemed_at <= end_dt)

    vouchers = query.order_by(Voucher.redeemed_at.desc(), Voucher.id.desc()).all()

    total_value_cents = sum(v.value_cents for v in vouchers)
    redeemers = {v.redeemed_by_email or v.redeemed_by_user_id for v in vouchers}
    redeemers.discard(None)

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "redemptions": [v.to_dict() for v in vouchers],
        "total_count": len(vouchers),
        "total_value": total_value_cents // 100,
        "total_value_cents": total_value_cents,
        "unique_users": len(redeemers),
    }


def redemptions_by_period(
    start: str | None = None,
    end: str | None = None,
    group_by: str | None = "day",
) -> dict:
    """Redemption counts and value bucketed by day, ISO-ish week or month."""
    group_by = group_by or "day"
    if group_by not in PERIOD_FORMATS:
        raise ReportError("group_by must be day, week, or month")

    start_dt, end_dt = _parse_range(start, end)
    if end_dt is None:
        end_dt = utcnow()
    if start_dt is None:
        start_dt = end_dt - timedelta(days=DEFAULT_ANALYTICS_DAYS)

    period_expr = func.strftime(PERIOD_FORMATS[group_by], Voucher.redeemed_at)

    rows = (
        db.session.query(
            period_expr.label("period"),
            func.count(Voucher.id).label("count"),
            func.coalesce(func.sum(Voucher.value_cents), 0).label("value_cents"),
        )
        .filter(
            Voucher.status == STATUS_REDEEMED,
            Voucher.redeemed_at >= start_dt,
            Voucher.redeemed_at <= end_dt,
        )
        .group_by("period")
        .order_by("period")
        .all()
    )

    return {
        "group_by": group_by,
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "rows": [
            {
                "period": row.period,
                "count": int(row.count or 0),
                "value": int(row.value_cents or 0) // 100,
            }
            for row in rows
        ],
    }

