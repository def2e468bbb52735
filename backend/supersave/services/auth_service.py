# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and user management.

WHY: Every redemption must be attributable to a staff member. Uses bcrypt
for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import (
    Account,
    AccountPurchase,
    AccountRedemption,
    AuditLog,
    PasswordResetToken,
    SessionToken,
    User,
    Voucher,
)
from ..models.auth import ROLE_ADMIN, USER_ROLES
from ..validation import ConflictError, NotFoundError, ValidationError, validate_email
from .audit_service import log_event


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character

    Raises PasswordValidationError with the first unmet requirement.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password is required")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter (A-Z)")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter (a-z)")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one number (0-9)")

    if not re.search(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]", password):
        raise PasswordValidationError("Password must contain at least one special character (!@#$%^&* etc.)")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is constant-time. A malformed stored hash counts as
    a mismatch rather than an error.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def get_user_by_email(email: str) -> User | None:
    if not email:
        return None
    return db.session.query(User).filter(
        db.func.lower(User.email) == email.strip().lower()
    ).first()


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def count_users() -> int:
    return db.session.query(User).count()


def create_user(
    email: str,
    password: str,
    role: str = "editor",
    created_by_user_id: int | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad e-mail or role
        ConflictError: e-mail already registered
        PasswordValidationError: password doesn't meet requirements
    """
    email = validate_email(email)
    role = (role or "editor").strip().lower()
    if role not in USER_ROLES:
        raise ValidationError("role must be one of: admin, editor")

    if get_user_by_email(email):
        raise ConflictError("User with this email already exists")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(
        email=email,
        password_hash=password_hash,
        role=role,
        created_by_user_id=created_by_user_id,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with e-mail and password.

    Returns User if credentials valid, None otherwise.
    """
    user = get_user_by_email(email)
    if not user:
        return None

    if verify_password(password, user.password_hash):
        return user

    return None


def set_password(user: User, new_password: str) -> None:
    """Replace a user's password. Caller commits."""
    user.password_hash = hash_password(new_password)


def delete_user(user_id: int, actor: User) -> User:
    """
    Delete a user.

    References elsewhere are nulled out rather than cascaded: vouchers,
    ledger entries and audit logs keep the denormalized e-mail for
    attribution. Sessions and reset tokens go with the user.

    Raises:
        NotFoundError: unknown user
        ConflictError: self-deletion or removing the last admin
    """
    user = get_user(user_id)
    if not user:
        raise NotFoundError("User not found")

    if user.id == actor.id:
        raise ConflictError("You cannot delete your own account")

    if user.role == ROLE_ADMIN:
        admin_count = db.session.query(User).filter_by(role=ROLE_ADMIN).count()
        if admin_count <= 1:
            raise ConflictError("Cannot delete the last admin user")

    db.session.query(Voucher).filter_by(redeemed_by_user_id=user.id).update(
        {"redeemed_by_user_id": None}, synchronize_session=False
    )
    db.session.query(AuditLog).filter_by(user_id=user.id).update(
        {"user_id": None}, synchronize_session=False
    )
    db.session.query(Account).filter_by(created_by_user_id=user.id).update(
        {"created_by_user_id": None}, synchronize_session=False
    )
    db.session.query(AccountPurchase).filter_by(created_by_user_id=user.id).update(
        {"created_by_user_id": None}, synchronize_session=False
    )
    db.session.query(AccountRedemption).filter_by(created_by_user_id=user.id).update(
        {"created_by_user_id": None}, synchronize_session=False
    )
    db.session.query(User).filter_by(created_by_user_id=user.id).update(
        {"created_by_user_id": None}, synchronize_session=False
    )
    db.session.query(SessionToken).filter_by(user_id=user.id).delete(synchronize_session=False)
    db.session.query(PasswordResetToken).filter_by(user_id=user.id).delete(synchronize_session=False)

    log_event("user_deleted", user=actor, details={"user_id": user.id, "email": user.email})
    db.session.delete(user)
    db.session.commit()
    return user
