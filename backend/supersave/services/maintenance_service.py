# Overview: Service-layer operations for maintenance; housekeeping of expired auth records.

from __future__ import annotations

from . import password_reset_service, session_service


def cleanup_sessions(*, retention_days: int = 30) -> int:
    """Delete expired or revoked sessions older than retention_days."""
    return session_service.cleanup_expired_sessions(retention_days=retention_days)


def cleanup_reset_tokens() -> int:
    """Delete used and expired password reset tokens."""
    return password_reset_service.cleanup_expired_tokens()
