from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Account(db.Model):
    """
    Bulk-buyer account.

    The balance is derived, never stored: purchases add money, redeemed
    allocated vouchers and manual redemptions take it away
    (see account_service.get_account_summary).
    """
    __tablename__ = "accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "created_by_user_id": self.created_by_user_id,
        }


class AccountPurchase(db.Model):
    """Money in: a bulk purchase of vouchers by an account."""
    __tablename__ = "account_purchases"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_account_purchases_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    voucher_count = db.Column(db.Integer, nullable=False)
    unit_value_cents = db.Column(db.Integer, nullable=False, default=5000)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    account = db.relationship("Account", backref=db.backref("purchases", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "amount_cents": self.amount_cents,
            "voucher_count": self.voucher_count,
            "unit_value_cents": self.unit_value_cents,
            "purchase_date": to_utc_z(self.purchase_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "created_by_user_id": self.created_by_user_id,
        }


class AccountRedemption(db.Model):
    """Money out: a manual deduction against an account balance."""
    __tablename__ = "account_redemptions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_account_redemptions_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    redemption_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_by_email = db.Column(db.String(255), nullable=True)

    account = db.relationship("Account", backref=db.backref("manual_redemptions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "amount_cents": self.amount_cents,
            "redemption_date": to_utc_z(self.redemption_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "created_by_user_id": self.created_by_user_id,
            "created_by_email": self.created_by_email,
        }
