# Overview: Flask CLI command groups for bootstrap, backups, and maintenance.

# backend/supersave/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users create-admin --email admin@supersave.co.za --password "Password123!"
#   Create an admin user (prompts if options are omitted).
# - python -m flask users list
#   List all users with roles.
#
# Backups:
# - python -m flask backup export --out backup.json
#   Write a full JSON snapshot.
# - python -m flask backup restore backup.json --yes
#   Replace ALL data with a snapshot.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired/revoked sessions older than the retention window.
# - python -m flask maintenance cleanup-reset-tokens
#   Delete used and expired password reset tokens.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN
from .services.auth_service import create_user, PasswordValidationError
from .services import backup_service
from .services import maintenance_service
from .services.backup_service import BackupError
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask users create-admin' to add a user.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create-admin')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(email, password):
    """
    Create an admin user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(email, password, role=ROLE_ADMIN)
    except (PasswordValidationError, ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created admin user {user.email} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Email':<40} {'Role':<8} {'Created'}")
    click.echo("="*70)

    for user in users:
        created = user.created_at.strftime("%Y-%m-%d") if user.created_at else ""
        click.echo(f"{user.id:<5} {user.email:<40} {user.role:<8} {created}")


@click.group('backup')
def backup_group():
    """Snapshot export and restore commands."""


@backup_group.command('export')
@click.option('--out', 'out_path', type=click.Path(dir_okay=False, writable=True), required=True)
@with_appcontext
def export_backup(out_path):
    """Write a full JSON snapshot to a file."""
    snapshot = backup_service.build_snapshot()
    with open(out_path, "w", encoding="utf-8") as fh:
        fh.write(backup_service.snapshot_json(snapshot))

    counts = ", ".join(f"{key}={len(snapshot[key])}" for key, _ in backup_service.SNAPSHOT_TABLES)
    click.echo(f"PASS Snapshot written to {out_path} ({counts})")


@backup_group.command('restore')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def restore_backup(path, yes):
    """
    DANGER: Replace all data with a snapshot.

    Users, sessions and reset tokens are replaced too.
    """
    if not yes:
        click.confirm("WARN This will REPLACE ALL DATA. Are you sure?", abort=True)

    with open(path, "rb") as fh:
        raw = fh.read()

    try:
        counts = backup_service.restore_snapshot(backup_service.load_snapshot(raw))
    except BackupError as e:
        raise click.ClickException(str(e))

    summary = ", ".join(f"{key}={value}" for key, value in counts.items())
    click.echo(f"PASS Restore complete ({summary})")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Cleanup expired and revoked sessions.

    Default retention: 30 days.
    """
    deleted = maintenance_service.cleanup_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


@maintenance_group.command('cleanup-reset-tokens')
@with_appcontext
def cleanup_reset_tokens_cli():
    """Delete used and expired password reset tokens."""
    deleted = maintenance_service.cleanup_reset_tokens()
    click.echo(f"Deleted {deleted} password reset tokens.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(backup_group)
    app.cli.add_command(maintenance_group)
