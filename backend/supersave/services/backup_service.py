# Overview: Service-layer operations for backups; full-data snapshots and transactional restore.

"""
Snapshot format (version 1.0):

    {
      "version": "1.0",
      "timestamp": "...Z",
      "users": [...], "accounts": [...], "vouchers": [...],
      "purchases": [...], "manualRedemptions": [...], "auditLogs": [...]
    }

Each record carries every column of its table, keyed by column name.
Datetimes are ISO-8601 strings with a trailing Z.

RESTORE: one transaction. Existing rows are deleted children-first, then the
snapshot is inserted parents-first. Sessions and reset tokens are dropped
since they reference users that are about to be replaced.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any

from flask import current_app
from sqlalchemy import DateTime

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
from ..time_utils import parse_iso_datetime, to_iso_full, utcnow


SNAPSHOT_VERSION = "1.0"

# Snapshot key -> model, in insert (parent-first) order
SNAPSHOT_TABLES: list[tuple[str, Any]] = [
    ("users", User),
    ("accounts", Account),
    ("vouchers", Voucher),
    ("purchases", AccountPurchase),
    ("manualRedemptions", AccountRedemption),
    ("auditLogs", AuditLog),
]

# Child-first delete order
DELETE_ORDER = [
    AuditLog,
    PasswordResetToken,
    SessionToken,
    AccountRedemption,
    AccountPurchase,
    Voucher,
    Account,
    User,
]

_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")


class BackupError(ValueError):
    """Raised when a snapshot is malformed or cannot be restored."""


def _serialize_row(obj) -> dict:
    row = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.key)
        if isinstance(value, datetime):
            value = to_iso_full(value)
        row[column.key] = value
    return row


def build_snapshot() -> dict:
    snapshot: dict[str, Any] = {
        "version": SNAPSHOT_VERSION,
        "timestamp": to_iso_full(utcnow()),
    }
    for key, model in SNAPSHOT_TABLES:
        rows = db.session.query(model).order_by(model.id.asc()).all()
        snapshot[key] = [_serialize_row(row) for row in rows]
    return snapshot


def snapshot_json(snapshot: dict | None = None) -> str:
    return json.dumps(snapshot if snapshot is not None else build_snapshot(), indent=2)


def snapshot_filename(prefix: str = "SuperSave_Backup") -> str:
    stamp = re.sub(r"[:.]", "-", to_iso_full(utcnow()))
    return f"{prefix}_{stamp}.json"


def load_snapshot(raw: bytes | str) -> dict:
    """Parse an uploaded snapshot file."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise BackupError("Invalid backup data format") from exc
    return validate_snapshot(data)


def validate_snapshot(data: Any) -> dict:
    if not isinstance(data, dict):
        raise BackupError("Invalid backup data format")
    version = data.get("version")
    if version is not None and str(version) != SNAPSHOT_VERSION:
        raise BackupError(f"Unsupported backup version: {version}")
    for key, _model in SNAPSHOT_TABLES:
        value = data.get(key, [])
        if value is None:
            continue
        if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
            raise BackupError(f"Backup section '{key}' must be a list of records")
    return data


def _prepare_row(model, record: dict) -> dict:
    """Keep known columns only; ISO strings on datetime columns become datetimes."""
    row = {}
    for column in model.__table__.columns:
        if column.key not in record:
            continue
        value = record[column.key]
        if isinstance(column.type, DateTime) and isinstance(value, str) and _ISO_PREFIX.match(value):
            try:
                value = parse_iso_datetime(value)
            except ValueError as exc:
                raise BackupError(f"Invalid datetime for {model.__tablename__}.{column.key}: {value}") from exc
        row[column.key] = value
    return row


def restore_snapshot(data: Any) -> dict:
    """
    Replace all data with the snapshot contents.

    Returns per-section record counts. On any failure the transaction is
    rolled back and the database is left unchanged.
    """
    data = validate_snapshot(data)
    counts: dict[str, int] = {}

    try:
        for model in DELETE_ORDER:
            db.session.query(model).delete(synchronize_session=False)
        db.session.flush()

        for key, model in SNAPSHOT_TABLES:
            records = data.get(key) or []
            rows = [_prepare_row(model, record) for record in records]
            if rows:
                db.session.execute(model.__table__.insert(), rows)
            counts[key] = len(rows)

        db.session.commit()
    except BackupError:
        db.session.rollback()
        raise
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Snapshot restore failed")
        raise BackupError(f"Restore failed: {exc}") from exc

    db.session.expire_all()
    current_app.logger.info("Restored snapshot: %s", counts)
    return counts
