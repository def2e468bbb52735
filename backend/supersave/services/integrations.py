# Overview: Shared plumbing for outbound API integrations; access tokens and HTTP clients.

"""
Access tokens for Google Drive and GitHub come from one of two places:

1. A static token in config (GOOGLE_DRIVE_ACCESS_TOKEN / GITHUB_TOKEN).
2. A connectors host (CONNECTORS_HOSTNAME + CONNECTORS_IDENTITY) that hands
   out OAuth access tokens. Those are cached per connector until the
   expires_at the host reports; a token without expiry is fetched again on
   every call.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime

import httpx
from flask import current_app

from ..time_utils import parse_iso_datetime, utcnow


CONNECTOR_GOOGLE_DRIVE = "google-drive"
CONNECTOR_GITHUB = "github"

_STATIC_TOKEN_KEYS = {
    CONNECTOR_GOOGLE_DRIVE: "GOOGLE_DRIVE_ACCESS_TOKEN",
    CONNECTOR_GITHUB: "GITHUB_TOKEN",
}

_NOT_CONNECTED = {
    CONNECTOR_GOOGLE_DRIVE: "Google Drive not connected",
    CONNECTOR_GITHUB: "GitHub not connected",
}


class IntegrationError(Exception):
    """
    Raised when an external service is unavailable or rejects a request.

    status_code is the HTTP status routes should answer with: 503 when the
    integration is not configured, 502 when the remote side failed.
    """

    def __init__(self, message: str, *, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class _CachedToken:
    access_token: str
    expires_at: datetime | None

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at > now


_token_cache: dict[str, _CachedToken] = {}
_token_lock = threading.Lock()


def clear_token_cache() -> None:
    with _token_lock:
        _token_cache.clear()


def build_client(client: httpx.Client | None = None) -> httpx.Client:
    """Return the injected client or a fresh one with the configured timeout."""
    if client is not None:
        return client
    return httpx.Client(timeout=current_app.config.get("INTEGRATION_TIMEOUT_SECONDS", 30))


def raise_for_status(response: httpx.Response, service: str) -> None:
    if response.status_code < 400:
        return
    message = f"{service} request failed with status {response.status_code}"
    try:
        parsed = response.json()
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        detail = parsed.get("message") or parsed.get("error")
        if isinstance(detail, dict):
            detail = detail.get("message")
        if detail:
            message = f"{message}: {detail}"
    raise IntegrationError(message)


def _extract_token(item: dict) -> tuple[str | None, datetime | None]:
    settings = item.get("settings") or {}
    token = settings.get("access_token") or (
        ((settings.get("oauth") or {}).get("credentials") or {}).get("access_token")
    )
    expires_raw = settings.get("expires_at")
    expires_at = None
    if isinstance(expires_raw, str):
        try:
            expires_at = parse_iso_datetime(expires_raw)
        except ValueError:
            expires_at = None
    return token, expires_at


def get_access_token(connector: str, *, client: httpx.Client | None = None) -> str:
    """Resolve an OAuth access token for a connector."""
    config = current_app.config

    static_token = config.get(_STATIC_TOKEN_KEYS[connector])
    if static_token:
        return static_token

    with _token_lock:
        cached = _token_cache.get(connector)
        if cached and cached.is_valid(utcnow()):
            return cached.access_token

    hostname = config.get("CONNECTORS_HOSTNAME")
    identity = config.get("CONNECTORS_IDENTITY")
    if not hostname or not identity:
        raise IntegrationError(_NOT_CONNECTED[connector], status_code=503)

    http = build_client(client)
    try:
        response = http.get(
            f"https://{hostname}/api/v2/connection",
            params={"include_secrets": "true", "connector_names": connector},
            headers={"Accept": "application/json", "X-Connectors-Token": identity},
        )
    except httpx.RequestError as exc:
        raise IntegrationError(f"Failed to contact connectors host: {exc}") from exc
    finally:
        if client is None:
            http.close()

    raise_for_status(response, "Connectors host")
    items = (response.json() or {}).get("items") or []
    token, expires_at = _extract_token(items[0]) if items else (None, None)
    if not token:
        raise IntegrationError(_NOT_CONNECTED[connector], status_code=503)

    with _token_lock:
        _token_cache[connector] = _CachedToken(access_token=token, expires_at=expires_at)
    current_app.logger.info("Fetched %s access token from connectors host", connector)
    return token
