# Overview: Google Drive backups over the Drive v3 REST API.

from __future__ import annotations

import json
import secrets

import httpx
from flask import current_app

from . import backup_service
from .integrations import (
    CONNECTOR_GOOGLE_DRIVE,
    IntegrationError,
    build_client,
    get_access_token,
    raise_for_status,
)


DRIVE_API = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_API = "https://www.googleapis.com/upload/drive/v3"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def _headers(client: httpx.Client | None) -> dict:
    token = get_access_token(CONNECTOR_GOOGLE_DRIVE, client=client)
    return {"Authorization": f"Bearer {token}", "Accept": "application/json"}


def _request(http: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
    try:
        response = http.request(method, url, **kwargs)
    except httpx.RequestError as exc:
        raise IntegrationError(f"Failed to contact Google Drive: {exc}") from exc
    raise_for_status(response, "Google Drive")
    return response


def _escape_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def get_or_create_backup_folder(http: httpx.Client, headers: dict) -> str:
    folder_name = current_app.config["BACKUP_FOLDER_NAME"]
    query = (
        f"name = '{_escape_query(folder_name)}' and mimeType = '{FOLDER_MIME_TYPE}' "
        "and trashed = false"
    )
    response = _request(
        http, "GET", f"{DRIVE_API}/files",
        params={"q": query, "fields": "files(id)"},
        headers=headers,
    )
    files = response.json().get("files") or []
    if files:
        return files[0]["id"]

    response = _request(
        http, "POST", f"{DRIVE_API}/files",
        params={"fields": "id"},
        json={"name": folder_name, "mimeType": FOLDER_MIME_TYPE},
        headers=headers,
    )
    folder_id = response.json()["id"]
    current_app.logger.info("Created Google Drive backup folder %s", folder_id)
    return folder_id


def _multipart_related(metadata: dict, body: str) -> tuple[bytes, str]:
    boundary = f"supersave-{secrets.token_hex(8)}"
    payload = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        "Content-Type: application/json\r\n\r\n"
        f"{body}\r\n"
        f"--{boundary}--\r\n"
    )
    return payload.encode("utf-8"), f"multipart/related; boundary={boundary}"


def backup_to_drive(*, client: httpx.Client | None = None) -> dict:
    """Upload a full snapshot into the backup folder."""
    http = build_client(client)
    try:
        headers = _headers(client)
        folder_id = get_or_create_backup_folder(http, headers)
        file_name = backup_service.snapshot_filename()
        content, content_type = _multipart_related(
            {"name": file_name, "parents": [folder_id]},
            backup_service.snapshot_json(),
        )
        response = _request(
            http, "POST", f"{DRIVE_UPLOAD_API}/files",
            params={"uploadType": "multipart", "fields": "id,name"},
            content=content,
            headers={**headers, "Content-Type": content_type},
        )
    finally:
        if client is None:
            http.close()

    uploaded = response.json()
    current_app.logger.info("Backed up to Google Drive: %s", file_name)
    return {"success": True, "file_name": file_name, "file_id": uploaded.get("id")}


def list_drive_backups(*, client: httpx.Client | None = None) -> list[dict]:
    http = build_client(client)
    try:
        headers = _headers(client)
        folder_id = get_or_create_backup_folder(http, headers)
        response = _request(
            http, "GET", f"{DRIVE_API}/files",
            params={
                "q": f"'{folder_id}' in parents and trashed = false",
                "fields": "files(id, name, createdTime, size)",
                "orderBy": "createdTime desc",
            },
            headers=headers,
        )
    finally:
        if client is None:
            http.close()
    return response.json().get("files") or []


def restore_from_drive(file_id: str, *, client: httpx.Client | None = None) -> dict:
    """Download a snapshot by Drive file id and restore it."""
    if not file_id:
        raise backup_service.BackupError("File ID is required")

    http = build_client(client)
    try:
        response = _request(
            http, "GET", f"{DRIVE_API}/files/{file_id}",
            params={"alt": "media"},
            headers=_headers(client),
        )
    finally:
        if client is None:
            http.close()

    counts = backup_service.restore_snapshot(backup_service.load_snapshot(response.content))
    current_app.logger.info("Restored Google Drive backup %s", file_id)
    return {"success": True, "counts": counts}
