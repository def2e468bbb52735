from .auth import User, SessionToken, PasswordResetToken
from .accounts import Account, AccountPurchase, AccountRedemption
from .vouchers import Voucher
from .audit import AuditLog

__all__ = [
    'User', 'SessionToken', 'PasswordResetToken',
    'Account', 'AccountPurchase', 'AccountRedemption',
    'Voucher',
    'AuditLog',
]
