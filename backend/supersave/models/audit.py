from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AuditLog(db.Model):
    """
    Voucher program audit trail.

    Actions: imported, redeemed, voided, allocated, purchase_recorded,
    manual_redemption, user_created, user_deleted, password_reset.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    Only a full restore from a backup snapshot replaces the table.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_action_timestamp", "action", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    voucher_id = db.Column(db.Integer, db.ForeignKey("vouchers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    user_email = db.Column(db.String(255), nullable=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), index=True)
    details = db.Column(db.JSON, nullable=True)

    voucher = db.relationship("Voucher", backref=db.backref("audit_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "voucher_id": self.voucher_id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "timestamp": to_utc_z(self.timestamp),
            "details": self.details,
        }
