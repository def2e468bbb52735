# Overview: Service-layer operations for the audit trail; append-only writes.

from __future__ import annotations

from typing import Any

from ..extensions import db
from ..models import AuditLog, User


def log_event(
    action: str,
    *,
    user: User | None = None,
    voucher_id: int | None = None,
    details: dict[str, Any] | None = None,
    commit: bool = False,
) -> AuditLog:
    """
    Append an audit entry.

    Callers normally let the entry ride in the same transaction as the
    change it records; pass commit=True for standalone events.
    """
    entry = AuditLog(
        action=action,
        voucher_id=voucher_id,
        user_id=user.id if user else None,
        user_email=user.email if user else None,
        details=details,
    )
    db.session.add(entry)
    if commit:
        db.session.commit()
    return entry
