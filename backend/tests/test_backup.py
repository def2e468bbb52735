"""
Backup tests: snapshot contents, transactional restore and the
download/upload routes.
"""

import io
import json

import pytest

from supersave.models import Account, AccountPurchase, AccountRedemption, AuditLog, SessionToken, User, Voucher
from supersave.services import account_service, backup_service, voucher_service
from supersave.services.backup_service import BackupError

from conftest import ADMIN_EMAIL, PASSWORD, auth_headers, get_auth_token, make_vouchers


@pytest.fixture
def populated(admin_user, editor_user, account, db_session):
    """One row or more in every snapshot table."""
    make_vouchers(db_session, ["BK-1", "BK-2"], account_id=account.id)
    make_vouchers(db_session, ["BK-3"])
    voucher_service.redeem_voucher("BK-1", editor_user)
    account_service.record_purchase(account.id, 200, "Opening order", admin_user)
    account_service.record_manual_redemption(account.id, 20, None, admin_user)
    return admin_user


def _table_counts(db_session):
    return {
        "users": db_session.query(User).count(),
        "accounts": db_session.query(Account).count(),
        "vouchers": db_session.query(Voucher).count(),
        "purchases": db_session.query(AccountPurchase).count(),
        "manualRedemptions": db_session.query(AccountRedemption).count(),
        "auditLogs": db_session.query(AuditLog).count(),
    }


class TestSnapshot:

    def test_snapshot_has_every_section(self, populated, db_session):
        snapshot = backup_service.build_snapshot()
        assert snapshot["version"] == "1.0"
        assert snapshot["timestamp"].endswith("Z")
        assert {key: len(snapshot[key]) for key, _ in backup_service.SNAPSHOT_TABLES} == _table_counts(db_session)

        redeemed = next(v for v in snapshot["vouchers"] if v["barcode"] == "BK-1")
        assert redeemed["status"] == "redeemed"
        assert redeemed["redeemed_at"].endswith("Z")
        assert "password_hash" in snapshot["users"][0]

    def test_snapshot_is_json(self, populated):
        parsed = json.loads(backup_service.snapshot_json())
        assert parsed["version"] == "1.0"

    def test_filename(self):
        name = backup_service.snapshot_filename()
        assert name.startswith("SuperSave_Backup_")
        assert name.endswith(".json")
        assert ":" not in name


class TestRestore:

    def test_restore_reproduces_data(self, populated, db_session):
        before = _table_counts(db_session)
        snapshot = json.loads(backup_service.snapshot_json())

        # Changes after the snapshot are discarded by the restore
        make_vouchers(db_session, ["LATE-1"])
        db_session.add(Account(name="Late Account"))
        db_session.commit()

        counts = backup_service.restore_snapshot(snapshot)
        assert counts == before
        assert _table_counts(db_session) == before

        voucher = db_session.query(Voucher).filter_by(barcode="BK-1").one()
        assert voucher.status == "redeemed"
        assert voucher.redeemed_at is not None
        assert db_session.query(Voucher).filter_by(barcode="LATE-1").count() == 0
        assert account_service.get_account_summary(voucher.account_id)["remaining_balance_cents"] == 20000 - 5000 - 2000

    def test_restore_drops_sessions(self, client, populated, db_session):
        snapshot = backup_service.build_snapshot()
        headers = auth_headers(get_auth_token(client, ADMIN_EMAIL, PASSWORD))

        backup_service.restore_snapshot(snapshot)
        assert db_session.query(SessionToken).count() == 0
        assert client.get("/api/auth/me", headers=headers).status_code == 401

        # Restored password hashes still work
        assert get_auth_token(client, ADMIN_EMAIL, PASSWORD)

    def test_failed_restore_rolls_back(self, populated, db_session):
        before = _table_counts(db_session)
        snapshot = backup_service.build_snapshot()
        snapshot["vouchers"].append(dict(snapshot["vouchers"][0], id=999))

        with pytest.raises(BackupError):
            backup_service.restore_snapshot(snapshot)

        assert _table_counts(db_session) == before

    def test_bad_datetime_rolls_back(self, populated, db_session):
        before = _table_counts(db_session)
        snapshot = backup_service.build_snapshot()
        snapshot["accounts"][0]["created_at"] = "2026-13-45T00:00:00Z"

        with pytest.raises(BackupError):
            backup_service.restore_snapshot(snapshot)
        assert _table_counts(db_session) == before

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"version": "2.0"},
            {"version": "1.0", "vouchers": "not-a-list"},
            {"users": [1, 2]},
        ],
    )
    def test_invalid_snapshots(self, payload):
        with pytest.raises(BackupError):
            backup_service.validate_snapshot(payload)

    def test_load_snapshot_rejects_garbage(self):
        with pytest.raises(BackupError):
            backup_service.load_snapshot(b"not json at all")


class TestBackupRoutes:

    def test_download(self, client, admin_headers, populated):
        resp = client.get("/api/backup/download", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "application/json"
        assert 'filename="SuperSave_Backup_' in resp.headers["Content-Disposition"]
        assert len(resp.json["vouchers"]) == 3

    def test_upload_restore(self, client, admin_headers, populated, db_session):
        raw = backup_service.snapshot_json().encode()
        expected = _table_counts(db_session)

        resp = client.post(
            "/api/backup/upload-restore",
            data={"file": (io.BytesIO(raw), "backup.json")},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        assert resp.json["success"] is True
        assert resp.json["counts"] == expected

    def test_upload_invalid_file(self, client, admin_headers):
        resp = client.post(
            "/api/backup/upload-restore",
            data={"file": (io.BytesIO(b"{broken"), "backup.json")},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid backup data format"

    def test_upload_requires_body(self, client, admin_headers):
        resp = client.post("/api/backup/upload-restore", headers=admin_headers)
        assert resp.status_code == 400
