# backend/supersave/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/supersave.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///supersave.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Voucher program constants (whole Rands)
    VOUCHER_DEFAULT_VALUE_RANDS = int(os.environ.get("VOUCHER_DEFAULT_VALUE_RANDS", "50"))
    PURCHASE_UNIT_RANDS = int(os.environ.get("PURCHASE_UNIT_RANDS", "50"))

    # Password reset
    PASSWORD_RESET_TTL_MINUTES = int(os.environ.get("PASSWORD_RESET_TTL_MINUTES", "60"))
    EXPOSE_RESET_LINK = _env_bool("EXPOSE_RESET_LINK", False)
    RESEND_API_KEY = os.environ.get("RESEND_API_KEY")
    MAIL_FROM = os.environ.get("MAIL_FROM", "SuperSave <vouchers@supersave.co.za>")

    # Backup integrations. Either a static token or a connectors host that
    # hands out short-lived OAuth tokens.
    GOOGLE_DRIVE_ACCESS_TOKEN = os.environ.get("GOOGLE_DRIVE_ACCESS_TOKEN")
    GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN")
    CONNECTORS_HOSTNAME = os.environ.get("CONNECTORS_HOSTNAME")
    CONNECTORS_IDENTITY = os.environ.get("CONNECTORS_IDENTITY")
    BACKUP_FOLDER_NAME = os.environ.get("BACKUP_FOLDER_NAME", "SuperSave Backups")
    GITHUB_BACKUP_REPO = os.environ.get("GITHUB_BACKUP_REPO", "supersave-backups")
    INTEGRATION_TIMEOUT_SECONDS = float(os.environ.get("INTEGRATION_TIMEOUT_SECONDS", "30"))

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
