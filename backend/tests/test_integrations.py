"""
Outbound integration tests (Google Drive, GitHub, Resend, connectors host).

All HTTP goes through httpx.MockTransport; nothing leaves the process.
"""

import base64
import json
from datetime import timedelta

import httpx
import pytest

from supersave.services import email_service, github_service, google_drive_service
from supersave.services.integrations import (
    CONNECTOR_GITHUB,
    CONNECTOR_GOOGLE_DRIVE,
    IntegrationError,
    get_access_token,
)
from supersave.time_utils import to_utc_z, utcnow

from conftest import make_vouchers


def mock_client(handler):
    """httpx client whose requests are answered by handler and recorded."""
    seen = []

    def _record(request):
        seen.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(_record))
    client.seen = seen
    return client


@pytest.fixture
def drive_token(app, monkeypatch):
    monkeypatch.setitem(app.config, "GOOGLE_DRIVE_ACCESS_TOKEN", "drive-token")


@pytest.fixture
def github_token(app, monkeypatch):
    monkeypatch.setitem(app.config, "GITHUB_TOKEN", "gh-token")


@pytest.fixture
def connectors(app, monkeypatch):
    monkeypatch.setitem(app.config, "CONNECTORS_HOSTNAME", "connectors.test")
    monkeypatch.setitem(app.config, "CONNECTORS_IDENTITY", "identity-123")


class TestAccessTokens:

    def test_not_configured(self):
        with pytest.raises(IntegrationError) as exc:
            get_access_token(CONNECTOR_GOOGLE_DRIVE)
        assert exc.value.status_code == 503
        assert str(exc.value) == "Google Drive not connected"

    def test_static_token_wins(self, github_token):
        assert get_access_token(CONNECTOR_GITHUB) == "gh-token"

    def test_connector_token_is_cached_until_expiry(self, connectors):
        expires = to_utc_z(utcnow() + timedelta(hours=1))

        def handler(request):
            assert request.headers["X-Connectors-Token"] == "identity-123"
            assert request.url.params["connector_names"] == "github"
            return httpx.Response(200, json={"items": [{"settings": {"access_token": "oauth-1", "expires_at": expires}}]})

        client = mock_client(handler)
        assert get_access_token(CONNECTOR_GITHUB, client=client) == "oauth-1"
        assert get_access_token(CONNECTOR_GITHUB, client=client) == "oauth-1"
        assert len(client.seen) == 1
        assert client.seen[0].url.host == "connectors.test"

    def test_token_without_expiry_is_refetched(self, connectors):
        def handler(request):
            settings = {"oauth": {"credentials": {"access_token": "nested-token"}}}
            return httpx.Response(200, json={"items": [{"settings": settings}]})

        client = mock_client(handler)
        assert get_access_token(CONNECTOR_GOOGLE_DRIVE, client=client) == "nested-token"
        get_access_token(CONNECTOR_GOOGLE_DRIVE, client=client)
        assert len(client.seen) == 2

    def test_no_connection(self, connectors):
        client = mock_client(lambda request: httpx.Response(200, json={"items": []}))
        with pytest.raises(IntegrationError) as exc:
            get_access_token(CONNECTOR_GOOGLE_DRIVE, client=client)
        assert exc.value.status_code == 503

    def test_host_error(self, connectors):
        client = mock_client(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(IntegrationError) as exc:
            get_access_token(CONNECTOR_GITHUB, client=client)
        assert exc.value.status_code == 502
        assert "boom" in str(exc.value)


class TestGoogleDrive:

    def test_backup_creates_folder_and_uploads(self, drive_token, admin_user, db_session):
        make_vouchers(db_session, ["GD-1"])

        def handler(request):
            assert request.headers["Authorization"] == "Bearer drive-token"
            if request.method == "GET" and request.url.path == "/drive/v3/files":
                return httpx.Response(200, json={"files": []})
            if request.method == "POST" and request.url.path == "/drive/v3/files":
                assert json.loads(request.content)["name"] == "SuperSave Backups"
                return httpx.Response(200, json={"id": "folder-1"})
            if request.url.path == "/upload/drive/v3/files":
                assert request.url.params["uploadType"] == "multipart"
                assert request.headers["Content-Type"].startswith("multipart/related; boundary=")
                return httpx.Response(200, json={"id": "file-9", "name": "x.json"})
            return httpx.Response(404)

        client = mock_client(handler)
        result = google_drive_service.backup_to_drive(client=client)

        assert result["success"] is True
        assert result["file_id"] == "file-9"
        assert result["file_name"].startswith("SuperSave_Backup_")

        upload = client.seen[-1].content.decode()
        assert '"parents": ["folder-1"]' in upload
        assert '"barcode": "GD-1"' in upload

    def test_existing_folder_is_reused(self, drive_token, admin_user):
        def handler(request):
            if request.url.path == "/drive/v3/files" and request.method == "GET":
                if "in parents" in request.url.params["q"]:
                    return httpx.Response(200, json={"files": [{"id": "b-1", "name": "SuperSave_Backup_1.json"}]})
                return httpx.Response(200, json={"files": [{"id": "folder-7"}]})
            return httpx.Response(500)

        client = mock_client(handler)
        files = google_drive_service.list_drive_backups(client=client)
        assert files == [{"id": "b-1", "name": "SuperSave_Backup_1.json"}]
        assert all(r.method == "GET" for r in client.seen)
        assert client.seen[-1].url.params["orderBy"] == "createdTime desc"

    def test_restore_from_drive(self, drive_token, admin_user, db_session):
        snapshot = {"version": "1.0", "users": [], "accounts": [{"id": 5, "name": "From Drive"}]}

        def handler(request):
            assert request.url.path == "/drive/v3/files/abc"
            assert request.url.params["alt"] == "media"
            return httpx.Response(200, content=json.dumps(snapshot).encode())

        result = google_drive_service.restore_from_drive("abc", client=mock_client(handler))
        assert result["success"] is True
        assert result["counts"]["accounts"] == 1
        assert result["counts"]["users"] == 0

    def test_remote_failure(self, drive_token):
        client = mock_client(lambda request: httpx.Response(401, json={"error": {"message": "Invalid Credentials"}}))
        with pytest.raises(IntegrationError) as exc:
            google_drive_service.backup_to_drive(client=client)
        assert exc.value.status_code == 502
        assert "Invalid Credentials" in str(exc.value)

    def test_route_reports_not_connected(self, client, admin_headers):
        resp = client.post("/api/backup/google-drive", headers=admin_headers)
        assert resp.status_code == 503
        assert resp.json["error"] == "Google Drive not connected"


class TestGitHub:

    def test_creates_repo_then_commits(self, github_token, admin_user, db_session):
        def handler(request):
            path = request.url.path
            if path == "/user":
                return httpx.Response(200, json={"login": "supersave-ops"})
            if path == "/repos/supersave-ops/supersave-backups":
                return httpx.Response(404, json={"message": "Not Found"})
            if path == "/user/repos":
                body = json.loads(request.content)
                assert body["private"] is True
                assert body["description"] == "Automated backup of SuperSave Voucher Management System"
                return httpx.Response(201, json={"name": body["name"]})
            if request.method == "PUT":
                return httpx.Response(201, json={"content": {"path": path}})
            return httpx.Response(500)

        client = mock_client(handler)
        result = github_service.backup_to_github(client=client)

        assert result["success"] is True
        assert result["created"] is True
        assert result["owner"] == "supersave-ops"
        assert result["path"].startswith("backups/SuperSave_Backup_")

        put = client.seen[-1]
        assert put.method == "PUT"
        body = json.loads(put.content)
        snapshot = json.loads(base64.b64decode(body["content"]))
        assert snapshot["version"] == "1.0"
        assert snapshot["users"][0]["email"] == admin_user.email

    def test_existing_repo_is_not_recreated(self, github_token, admin_user):
        def handler(request):
            if request.url.path == "/user":
                return httpx.Response(200, json={"login": "ops"})
            if request.method == "GET":
                return httpx.Response(200, json={"name": "vault"})
            if request.method == "PUT":
                return httpx.Response(201, json={})
            return httpx.Response(500)

        client = mock_client(handler)
        result = github_service.backup_to_github("vault", client=client)
        assert result["created"] is False
        assert [r.method for r in client.seen] == ["GET", "GET", "PUT"]

    def test_route_reports_not_connected(self, client, admin_headers):
        resp = client.post("/api/github/backup", json={}, headers=admin_headers)
        assert resp.status_code == 503
        assert resp.json["error"] == "GitHub not connected"


class TestResend:

    def test_not_configured(self):
        assert email_service.send_email("a@b.co", "Hi", "<p>x</p>") is False

    def test_sends(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "RESEND_API_KEY", "re_test")

        def handler(request):
            assert request.headers["Authorization"] == "Bearer re_test"
            body = json.loads(request.content)
            assert body["to"] == ["a@b.co"]
            assert body["subject"] == "Hi"
            return httpx.Response(200, json={"id": "msg-1"})

        client = mock_client(handler)
        assert email_service.send_email("a@b.co", "Hi", "<p>x</p>", client=client) is True
        assert str(client.seen[0].url) == email_service.RESEND_API

    def test_api_error_is_not_raised(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "RESEND_API_KEY", "re_test")
        client = mock_client(lambda request: httpx.Response(422, json={"message": "bad from"}))
        assert email_service.send_email("a@b.co", "Hi", "<p>x</p>", client=client) is False

    def test_reset_email_contains_link(self):
        html = email_service.reset_email_html("https://app.test/reset-password?token=abc")
        assert html.count("https://app.test/reset-password?token=abc") == 2
