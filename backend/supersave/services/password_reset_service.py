# Overview: Service-layer operations for password reset; single-use e-mailed tokens.

"""
Password reset flow.

request_reset never reveals whether an e-mail is registered: the caller
always gets the same generic message. Tokens are 64 hex chars, live for
PASSWORD_RESET_TTL_MINUTES and are consumed on first successful use. A
reset revokes every session the user had.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import PasswordResetToken
from ..time_utils import utcnow
from . import auth_service, email_service, session_service
from .audit_service import log_event


GENERIC_RESET_MESSAGE = "If an account exists with this email, a reset link will be sent."


class ResetTokenError(ValueError):
    """Raised when a reset token is unknown, used or expired."""


@dataclass
class ResetRequestResult:
    message: str
    reset_link: str | None = None
    email_sent: bool = False


def request_reset(email: str, base_url: str) -> ResetRequestResult:
    user = auth_service.get_user_by_email(email)
    if not user:
        current_app.logger.info("Password reset requested for unknown e-mail")
        return ResetRequestResult(message=GENERIC_RESET_MESSAGE)

    ttl = timedelta(minutes=current_app.config.get("PASSWORD_RESET_TTL_MINUTES", 60))
    token = secrets.token_hex(32)
    db.session.add(
        PasswordResetToken(
            user_id=user.id,
            token=token,
            expires_at=utcnow() + ttl,
            used=False,
        )
    )
    db.session.commit()

    reset_link = f"{base_url.rstrip('/')}/reset-password?token={token}"
    sent = email_service.send_email(
        user.email,
        "Reset Your SuperSave Password",
        email_service.reset_email_html(reset_link),
    )
    current_app.logger.info("Password reset token issued for user %s (email sent: %s)", user.id, sent)
    return ResetRequestResult(message=GENERIC_RESET_MESSAGE, reset_link=reset_link, email_sent=sent)


def get_reset_token(token: str) -> PasswordResetToken | None:
    return db.session.query(PasswordResetToken).filter_by(token=token).first()


def reset_password(token: str, new_password: str) -> None:
    """
    Consume a reset token and set a new password.

    Raises PasswordValidationError for weak passwords and ResetTokenError
    for bad tokens. Strength is checked first so a typo does not burn the
    token.
    """
    auth_service.validate_password_strength(new_password)

    record = get_reset_token(token) if token else None
    if not record or not record.user:
        raise ResetTokenError("Invalid or expired reset token")
    if record.used:
        raise ResetTokenError("This reset token has already been used")
    if record.expires_at < utcnow():
        raise ResetTokenError("Reset token has expired")

    # Claim the token atomically; a concurrent reset with the same token loses here
    claimed = (
        db.session.query(PasswordResetToken)
        .filter(PasswordResetToken.id == record.id, PasswordResetToken.used.is_(False))
        .update({PasswordResetToken.used: True}, synchronize_session=False)
    )
    if claimed != 1:
        db.session.rollback()
        raise ResetTokenError("This reset token has already been used")

    user = record.user
    auth_service.set_password(user, new_password)
    session_service.revoke_all_user_sessions(user.id, "Password reset", commit=False)
    log_event("password_reset", user=user)
    db.session.commit()


def cleanup_expired_tokens() -> int:
    """Delete tokens that are used or past expiry. Returns count deleted."""
    deleted = db.session.query(PasswordResetToken).filter(
        db.or_(
            PasswordResetToken.used.is_(True),
            PasswordResetToken.expires_at < utcnow(),
        )
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
