from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


STATUS_AVAILABLE = "available"
STATUS_REDEEMED = "redeemed"
STATUS_EXPIRED = "expired"
STATUS_VOIDED = "voided"
VOUCHER_STATUSES = (STATUS_AVAILABLE, STATUS_REDEEMED, STATUS_EXPIRED, STATUS_VOIDED)


class Voucher(db.Model):
    """
    A single redeemable barcode with a fixed value.

    LIFECYCLE: created in bulk by an import as 'available', then moves
    exactly once to 'redeemed' or 'voided'. Both transitions are conditional
    UPDATEs guarded by status = 'available' (see voucher_service), so the
    database serializes competing redemptions of the same barcode.
    """
    __tablename__ = "vouchers"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('available', 'redeemed', 'expired', 'voided')",
            name="ck_vouchers_status",
        ),
        db.Index("ix_vouchers_status_redeemed_at", "status", "redeemed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    barcode = db.Column(db.String(128), nullable=False, unique=True, index=True)
    value_cents = db.Column(db.Integer, nullable=False, default=5000)
    status = db.Column(db.String(16), nullable=False, default=STATUS_AVAILABLE, index=True)

    batch_number = db.Column(db.String(64), nullable=False, index=True)
    book_number = db.Column(db.String(64), nullable=True)

    # Bulk-buyer allocation (optional)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)
    allocated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    redeemed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    redeemed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    # Denormalized so attribution survives user deletion
    redeemed_by_email = db.Column(db.String(255), nullable=True)

    account = db.relationship("Account", backref=db.backref("vouchers", lazy=True))
    redeemed_by = db.relationship("User", foreign_keys=[redeemed_by_user_id])

    @property
    def value_rands(self) -> int:
        return self.value_cents // 100

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "value_cents": self.value_cents,
            "value": self.value_rands,
            "status": self.status,
            "batch_number": self.batch_number,
            "book_number": self.book_number,
            "account_id": self.account_id,
            "allocated_at": to_utc_z(self.allocated_at),
            "created_at": to_utc_z(self.created_at),
            "redeemed_at": to_utc_z(self.redeemed_at),
            "redeemed_by_user_id": self.redeemed_by_user_id,
            "redeemed_by_email": self.redeemed_by_email,
        }
