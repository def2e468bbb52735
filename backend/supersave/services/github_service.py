# Overview: GitHub backups over the REST API; ensures the repo and commits snapshots.

from __future__ import annotations

import base64

import httpx
from flask import current_app

from . import backup_service
from .integrations import (
    CONNECTOR_GITHUB,
    IntegrationError,
    build_client,
    get_access_token,
    raise_for_status,
)


GITHUB_API = "https://api.github.com"
REPO_DESCRIPTION = "Automated backup of SuperSave Voucher Management System"


def _send(http: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
    try:
        return http.request(method, url, **kwargs)
    except httpx.RequestError as exc:
        raise IntegrationError(f"Failed to contact GitHub: {exc}") from exc


def ensure_repository(http: httpx.Client, headers: dict, repo_name: str, private: bool) -> tuple[str, bool]:
    """Returns (owner_login, created)."""
    response = _send(http, "GET", f"{GITHUB_API}/user", headers=headers)
    raise_for_status(response, "GitHub")
    owner = response.json()["login"]

    response = _send(http, "GET", f"{GITHUB_API}/repos/{owner}/{repo_name}", headers=headers)
    if response.status_code != 404:
        raise_for_status(response, "GitHub")
        return owner, False

    response = _send(
        http, "POST", f"{GITHUB_API}/user/repos",
        json={"name": repo_name, "private": private, "description": REPO_DESCRIPTION},
        headers=headers,
    )
    raise_for_status(response, "GitHub")
    current_app.logger.info("Created GitHub backup repository %s/%s", owner, repo_name)
    return owner, True


def backup_to_github(
    repo_name: str | None = None,
    private: bool = True,
    *,
    client: httpx.Client | None = None,
) -> dict:
    """Make sure the backup repository exists and commit a snapshot to backups/."""
    repo_name = (repo_name or "").strip() or current_app.config["GITHUB_BACKUP_REPO"]

    http = build_client(client)
    try:
        token = get_access_token(CONNECTOR_GITHUB, client=client)
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        }
        owner, created = ensure_repository(http, headers, repo_name, private)

        file_name = backup_service.snapshot_filename()
        path = f"backups/{file_name}"
        content = base64.b64encode(backup_service.snapshot_json().encode("utf-8")).decode("ascii")
        response = _send(
            http, "PUT", f"{GITHUB_API}/repos/{owner}/{repo_name}/contents/{path}",
            json={"message": f"SuperSave backup {file_name}", "content": content},
            headers=headers,
        )
        raise_for_status(response, "GitHub")
    finally:
        if client is None:
            http.close()

    current_app.logger.info("Backed up to GitHub: %s/%s/%s", owner, repo_name, path)
    return {"success": True, "owner": owner, "repo": repo_name, "path": path, "created": created}
