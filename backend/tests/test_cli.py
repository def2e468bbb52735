"""
CLI command tests (flask system / users / backup / maintenance).
"""

import json
from datetime import timedelta

from supersave.models import Account, PasswordResetToken, SessionToken, User
from supersave.services import session_service
from supersave.time_utils import utcnow

from conftest import ADMIN_EMAIL, PASSWORD, make_vouchers


class TestSystemCommands:

    def test_init_db_is_idempotent(self, app, account, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init-db"])
        assert result.exit_code == 0, result.output
        assert "PASS Database tables created." in result.output
        assert db_session.query(Account).count() == 1

    def test_reset_db_requires_confirmation(self, app, account, db_session):
        result = app.test_cli_runner().invoke(args=["system", "reset-db"], input="n\n")
        assert result.exit_code != 0
        assert "Aborted" in result.output
        assert db_session.query(Account).count() == 1

    def test_reset_db_wipes_data(self, app, admin_user, account, db_session):
        result = app.test_cli_runner().invoke(args=["system", "reset-db", "--yes"])
        assert result.exit_code == 0, result.output
        assert "Database reset complete" in result.output
        db_session.expire_all()
        assert db_session.query(Account).count() == 0
        assert db_session.query(User).count() == 0


class TestUserCommands:

    def test_create_admin(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["users", "create-admin", "--email", "Boss@SuperSave.test", "--password", PASSWORD])
        assert result.exit_code == 0, result.output
        assert "PASS Created admin user boss@supersave.test" in result.output
        assert db_session.query(User).filter_by(email="boss@supersave.test", role="admin").count() == 1

    def test_create_admin_weak_password(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["users", "create-admin", "--email", "boss@supersave.test", "--password", "weak"])
        assert result.exit_code != 0
        assert "at least 8 characters" in result.output
        assert db_session.query(User).count() == 0

    def test_list(self, app, admin_user):
        result = app.test_cli_runner().invoke(args=["users", "list"])
        assert result.exit_code == 0
        assert ADMIN_EMAIL in result.output


class TestBackupCommands:

    def test_export_then_restore(self, app, admin_user, account, db_session, tmp_path):
        make_vouchers(db_session, ["CLI-1", "CLI-2"])
        out = tmp_path / "snapshot.json"
        runner = app.test_cli_runner()

        result = runner.invoke(args=["backup", "export", "--out", str(out)])
        assert result.exit_code == 0, result.output
        assert "vouchers=2" in result.output
        assert len(json.loads(out.read_text())["vouchers"]) == 2

        db_session.add(Account(name="Added Later"))
        db_session.commit()

        result = runner.invoke(args=["backup", "restore", str(out), "--yes"])
        assert result.exit_code == 0, result.output
        assert "accounts=1" in result.output
        assert db_session.query(Account).filter_by(name="Added Later").count() == 0

    def test_restore_rejects_bad_file(self, app, admin_user, db_session, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text('{"version": "9.9"}')
        result = app.test_cli_runner().invoke(args=["backup", "restore", str(bad), "--yes"])
        assert result.exit_code != 0
        assert "Unsupported backup version" in result.output
        assert db_session.query(User).count() == 1


class TestMaintenanceCommands:

    def test_cleanup_sessions(self, app, admin_user, db_session):
        old, _ = session_service.create_session(admin_user.id)
        old.created_at = utcnow() - timedelta(days=40)
        old.is_revoked = True
        session_service.create_session(admin_user.id)
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sessions"])
        assert result.exit_code == 0
        assert "Deleted 1 sessions" in result.output
        assert db_session.query(SessionToken).count() == 1

    def test_cleanup_reset_tokens(self, app, admin_user, db_session):
        db_session.add_all([
            PasswordResetToken(user_id=admin_user.id, token="u" * 64, expires_at=utcnow() + timedelta(hours=1), used=True),
            PasswordResetToken(user_id=admin_user.id, token="e" * 64, expires_at=utcnow() - timedelta(hours=1), used=False),
            PasswordResetToken(user_id=admin_user.id, token="k" * 64, expires_at=utcnow() + timedelta(hours=1), used=False),
        ])
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-reset-tokens"])
        assert result.exit_code == 0
        assert "Deleted 2 password reset tokens." in result.output
        assert db_session.query(PasswordResetToken).count() == 1
