# Overview: Service-layer operations for vouchers; lookups, redemption, voiding and allocation.

"""
Voucher lifecycle.

A voucher leaves 'available' exactly once. Redemption and voiding are both
conditional UPDATEs (WHERE status = 'available'); when two requests race
for the same barcode the database serializes them and the loser sees zero
affected rows. No application-level locking is involved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..extensions import db
from ..models import Account, User, Voucher
from ..models.vouchers import (
    STATUS_AVAILABLE,
    STATUS_EXPIRED,
    STATUS_REDEEMED,
    STATUS_VOIDED,
    VOUCHER_STATUSES,
)
from ..time_utils import to_utc_z, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .audit_service import log_event


DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500
MAX_REPORTED_ERRORS = 10

MSG_NOT_FOUND = "Voucher not found. Please check the barcode and try again."
MSG_ALREADY_REDEEMED = "This voucher has already been redeemed."
MSG_VOIDED = "This voucher has been voided and cannot be redeemed."
MSG_EXPIRED = "This voucher has expired."
MSG_RETRY = "Failed to redeem voucher. Please try again."


class VoucherError(ValueError):
    """Raised when a voucher request is malformed."""


@dataclass
class RedemptionResult:
    success: bool
    message: str
    voucher: Voucher | None = None
    redeemed_by: str | None = None
    redeemed_at: str | None = None

    def to_dict(self) -> dict:
        data = {"success": self.success, "message": self.message}
        if self.voucher is not None:
            data["voucher"] = self.voucher.to_dict()
        if self.redeemed_by is not None:
            data["redeemed_by"] = self.redeemed_by
        if self.redeemed_at is not None:
            data["redeemed_at"] = self.redeemed_at
        return data


@dataclass
class AllocationResult:
    allocated: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.failed += 1
        if len(self.errors) < MAX_REPORTED_ERRORS:
            self.errors.append(message)

    def to_dict(self) -> dict:
        return {"allocated": self.allocated, "failed": self.failed, "errors": self.errors}


def get_voucher(voucher_id: int) -> Voucher | None:
    return db.session.get(Voucher, voucher_id)


def get_voucher_by_barcode(barcode: str) -> Voucher | None:
    if not barcode:
        return None
    return db.session.query(Voucher).filter_by(barcode=barcode.strip()).first()


def list_vouchers(
    *,
    status: str | None = None,
    search: str | None = None,
    account_id: int | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> dict:
    """
    Filter and paginate vouchers, newest first.

    status None/""/"all" means no status filter. search matches barcode,
    batch number or book number substrings.
    """
    query = db.session.query(Voucher)

    if status and status != "all":
        if status not in VOUCHER_STATUSES:
            raise ValidationError(f"status must be one of: all, {', '.join(VOUCHER_STATUSES)}")
        query = query.filter(Voucher.status == status)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Voucher.barcode.like(pattern),
                Voucher.batch_number.like(pattern),
                Voucher.book_number.like(pattern),
            )
        )

    if account_id is not None:
        query = query.filter(Voucher.account_id == account_id)

    total = query.count()

    limit = DEFAULT_PAGE_SIZE if limit is None else max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset or 0)

    vouchers = (
        query.order_by(Voucher.created_at.desc(), Voucher.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return {"vouchers": vouchers, "total": total, "limit": limit, "offset": offset}


def _mark_redeemed(voucher_id: int, user: User) -> bool:
    """
    Conditional UPDATE available -> redeemed.

    Returns True when this call performed the transition. Does not commit.
    """
    updated = (
        db.session.query(Voucher)
        .filter(Voucher.id == voucher_id, Voucher.status == STATUS_AVAILABLE)
        .update(
            {
                Voucher.status: STATUS_REDEEMED,
                Voucher.redeemed_at: utcnow(),
                Voucher.redeemed_by_user_id: user.id,
                Voucher.redeemed_by_email: user.email,
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def _unavailable_result(voucher: Voucher) -> RedemptionResult | None:
    if voucher.status == STATUS_REDEEMED:
        return RedemptionResult(
            success=False,
            message=MSG_ALREADY_REDEEMED,
            voucher=voucher,
            redeemed_by=voucher.redeemed_by_email,
            redeemed_at=to_utc_z(voucher.redeemed_at),
        )
    if voucher.status == STATUS_VOIDED:
        return RedemptionResult(success=False, message=MSG_VOIDED)
    if voucher.status == STATUS_EXPIRED:
        return RedemptionResult(success=False, message=MSG_EXPIRED)
    return None


def redeem_voucher(barcode: str, user: User) -> RedemptionResult:
    """
    Redeem a voucher by barcode on behalf of user.

    Business outcomes (not found, already redeemed, voided, expired) are
    reported in the result rather than raised, so the scan screen can show
    them. A lost race re-reads the row and reports who won.
    """
    barcode = (barcode or "").strip() if isinstance(barcode, str) else ""
    if not barcode:
        raise VoucherError("Barcode is required")

    voucher = get_voucher_by_barcode(barcode)
    if not voucher:
        return RedemptionResult(success=False, message=MSG_NOT_FOUND)

    blocked = _unavailable_result(voucher)
    if blocked:
        return blocked

    if not _mark_redeemed(voucher.id, user):
        db.session.rollback()
        db.session.expire_all()
        current = get_voucher(voucher.id)
        blocked = _unavailable_result(current) if current else None
        return blocked or RedemptionResult(success=False, message=MSG_RETRY)

    log_event(
        "redeemed",
        user=user,
        voucher_id=voucher.id,
        details={"barcode": voucher.barcode, "value": voucher.value_rands},
    )
    db.session.commit()

    redeemed = get_voucher(voucher.id)
    return RedemptionResult(
        success=True,
        message=f"Voucher redeemed successfully! Value: R{redeemed.value_rands}",
        voucher=redeemed,
    )


def void_voucher(voucher_id: int, user: User) -> Voucher:
    """
    Void an available voucher.

    Raises NotFoundError for unknown ids and ConflictError when the voucher
    already left 'available'.
    """
    voucher = get_voucher(voucher_id)
    if not voucher:
        raise NotFoundError("Voucher not found")

    updated = (
        db.session.query(Voucher)
        .filter(Voucher.id == voucher_id, Voucher.status == STATUS_AVAILABLE)
        .update({Voucher.status: STATUS_VOIDED}, synchronize_session=False)
    )
    if updated != 1:
        db.session.rollback()
        db.session.expire_all()
        current = get_voucher(voucher_id)
        if not current:
            raise NotFoundError("Voucher not found")
        raise ConflictError(f"Only available vouchers can be voided (current status: {current.status})")

    log_event("voided", user=user, voucher_id=voucher_id, details={"barcode": voucher.barcode})
    db.session.commit()
    return get_voucher(voucher_id)


def allocate_vouchers(account_id: int, barcodes: Iterable[str], user: User) -> AllocationResult:
    """
    Assign available, unallocated vouchers to a bulk-buyer account.

    Each barcode is claimed with a conditional UPDATE (account_id IS NULL),
    so a voucher can never end up on two accounts.
    """
    account = db.session.get(Account, account_id)
    if not account:
        raise NotFoundError("Account not found")

    result = AllocationResult()
    seen: set[str] = set()
    now = utcnow()

    for raw in barcodes:
        barcode = str(raw).strip() if raw is not None else ""
        if not barcode:
            result.fail("Empty barcode")
            continue
        if barcode in seen:
            result.fail(f"Barcode {barcode}: Duplicate in request")
            continue
        seen.add(barcode)

        voucher = get_voucher_by_barcode(barcode)
        if not voucher:
            result.fail(f"Barcode {barcode}: Not found")
            continue
        if voucher.status != STATUS_AVAILABLE:
            result.fail(f"Barcode {barcode}: Voucher is {voucher.status}")
            continue

        claimed = (
            db.session.query(Voucher)
            .filter(
                Voucher.id == voucher.id,
                Voucher.account_id.is_(None),
                Voucher.status == STATUS_AVAILABLE,
            )
            .update({Voucher.account_id: account_id, Voucher.allocated_at: now}, synchronize_session=False)
        )
        if claimed != 1:
            if voucher.account_id == account_id:
                result.fail(f"Barcode {barcode}: Already allocated to this account")
            else:
                result.fail(f"Barcode {barcode}: Already allocated to another account")
            continue
        result.allocated += 1

    if result.allocated:
        log_event(
            "allocated",
            user=user,
            details={
                "account_id": account_id,
                "account_name": account.name,
                "total_allocated": result.allocated,
                "total_failed": result.failed,
            },
        )
    db.session.commit()
    return result
