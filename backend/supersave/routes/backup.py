# Overview: Flask API routes for backups; snapshot download/restore, Google Drive and GitHub.

"""
Backup routes (admin only)

A restore replaces every table, including users and sessions, so the
caller's own token stops working afterwards and they must sign in again.
"""

from flask import Blueprint, Response, request, jsonify, current_app

from ..decorators import require_auth, require_admin
from ..services import backup_service
from ..services import github_service
from ..services import google_drive_service
from ..services.backup_service import BackupError
from ..services.integrations import IntegrationError


backup_bp = Blueprint("backup", __name__, url_prefix="/api")


@backup_bp.get("/backup/download")
@require_auth
@require_admin
def download_backup_route():
    try:
        response = Response(backup_service.snapshot_json(), mimetype="application/json")
        filename = backup_service.snapshot_filename()
        response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response
    except Exception:
        current_app.logger.exception("Failed to build backup snapshot")
        return jsonify({"error": "Internal server error"}), 500


@backup_bp.post("/backup/upload-restore")
@require_auth
@require_admin
def upload_restore_route():
    """Restore from an uploaded snapshot ("file" field) or a JSON body."""
    try:
        if "file" in request.files:
            data = backup_service.load_snapshot(request.files["file"].read())
        else:
            data = request.get_json(silent=True)
            if data is None:
                return jsonify({"error": "Backup file is required"}), 400

        counts = backup_service.restore_snapshot(data)
        return jsonify({"success": True, "counts": counts}), 200

    except BackupError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to restore uploaded backup")
        return jsonify({"error": "Internal server error"}), 500


@backup_bp.post("/backup/google-drive")
@require_auth
@require_admin
def drive_backup_route():
    try:
        return jsonify(google_drive_service.backup_to_drive()), 200
    except IntegrationError as e:
        current_app.logger.warning("Google Drive backup failed: %s", e)
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to back up to Google Drive")
        return jsonify({"error": "Internal server error"}), 500


@backup_bp.get("/backup/google-drive/list")
@require_auth
@require_admin
def drive_list_route():
    try:
        return jsonify({"files": google_drive_service.list_drive_backups()}), 200
    except IntegrationError as e:
        current_app.logger.warning("Google Drive listing failed: %s", e)
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list Google Drive backups")
        return jsonify({"error": "Internal server error"}), 500


@backup_bp.post("/backup/google-drive/restore")
@require_auth
@require_admin
def drive_restore_route():
    try:
        data = request.get_json(silent=True) or {}
        file_id = data.get("file_id")
        if not file_id:
            return jsonify({"error": "File ID is required"}), 400

        return jsonify(google_drive_service.restore_from_drive(file_id)), 200

    except BackupError as e:
        return jsonify({"error": str(e)}), 400
    except IntegrationError as e:
        current_app.logger.warning("Google Drive restore failed: %s", e)
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restore Google Drive backup")
        return jsonify({"error": "Internal server error"}), 500


@backup_bp.post("/github/backup")
@require_auth
@require_admin
def github_backup_route():
    """
    Commit a snapshot to a GitHub repository.

    Request body: {"repo_name": "supersave-backups", "private": true}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = github_service.backup_to_github(
            data.get("repo_name"),
            bool(data.get("private", True)),
        )
        return jsonify(result), 200
    except IntegrationError as e:
        current_app.logger.warning("GitHub backup failed: %s", e)
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to back up to GitHub")
        return jsonify({"error": "Internal server error"}), 500
