# Overview: Service-layer operations for voucher imports; parses uploads and inserts batches.

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from typing import IO, Any, Iterable
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Account, User, Voucher
from ..models.vouchers import STATUS_AVAILABLE
from ..validation import NotFoundError, ValidationError, parse_positive_int
from .audit_service import log_event


MAX_REPORTED_ERRORS = 10
SUPPORTED_EXTENSIONS = {"csv", "txt", "json", "xlsx", "xlsm"}


class ImportError(ValueError):
    """Raised when an upload cannot be turned into barcodes."""


@dataclass
class ImportResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.failed += 1
        if len(self.errors) < MAX_REPORTED_ERRORS:
            self.errors.append(message)

    def to_dict(self) -> dict:
        return {"success": self.success, "failed": self.failed, "errors": self.errors}


def _is_header(cell: Any) -> bool:
    text = str(cell or "").strip().lower()
    return "barcode" in text or "code" in text


def _clean(cell: Any) -> str:
    if cell is None:
        return ""
    if isinstance(cell, float) and cell.is_integer():
        cell = int(cell)
    return str(cell).strip().replace('"', "")


def _first_column(rows: Iterable[Iterable[Any]]) -> list[str]:
    """
    First non-empty cell of each row; a leading header row that mentions
    'barcode' or 'code' is skipped.
    """
    barcodes: list[str] = []
    for index, row in enumerate(rows):
        cells = list(row) if row is not None else []
        if not cells:
            continue
        first = cells[0]
        if index == 0 and _is_header(first):
            continue
        barcode = _clean(first)
        if barcode:
            barcodes.append(barcode)
    return barcodes


def parse_barcode_file(filename: str, stream: IO[bytes]) -> list[str]:
    """Extract barcodes from an uploaded CSV, JSON or Excel file."""
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""
    if ext not in SUPPORTED_EXTENSIONS:
        raise ImportError("Unsupported file format. Upload a CSV, JSON or Excel file.")

    try:
        if ext in {"csv", "txt"}:
            text = stream.read().decode("utf-8-sig")
            reader = csv.reader(io.StringIO(text))
            return _first_column(row for row in reader if any(c.strip() for c in row))

        if ext == "json":
            data = json.load(stream)
            if isinstance(data, dict):
                data = data.get("barcodes", [])
            if not isinstance(data, list):
                raise ImportError("JSON upload must be a list of barcodes or {\"barcodes\": [...]}")
            return [b for b in (_clean(item) for item in data) if b]

        wb = load_workbook(stream, read_only=True, data_only=True)
        try:
            return _first_column(wb.active.iter_rows(values_only=True))
        finally:
            wb.close()
    except ImportError:
        raise
    except (UnicodeDecodeError, json.JSONDecodeError, csv.Error, BadZipFile, InvalidFileException) as exc:
        raise ImportError(f"Failed to parse upload: {exc}") from exc


def import_vouchers(
    *,
    barcodes: list[Any],
    batch_number: str | None,
    book_number: str | None = None,
    value_rands: Any = None,
    account_id: int | None = None,
    user: User | None = None,
    default_value_rands: int = 50,
) -> ImportResult:
    """
    Create one 'available' voucher per barcode.

    Every barcode is checked for existence and then inserted inside its own
    savepoint, so a unique-constraint hit (e.g. a concurrent import of the
    same barcode) fails that row only. Duplicates, including repeats within
    the same request, count as failures.
    """
    if not isinstance(barcodes, list) or not barcodes:
        raise ValidationError("Barcodes array is required")

    batch_number = (batch_number or "").strip() or (book_number or "").strip()
    if not batch_number:
        raise ValidationError("Batch number is required")
    book_number = (book_number or "").strip() or None

    if value_rands in (None, ""):
        value_rands = default_value_rands
    value_cents = parse_positive_int(value_rands, "value") * 100

    if account_id is not None:
        account_id = parse_positive_int(account_id, "account_id")
        if not db.session.get(Account, account_id):
            raise NotFoundError("Account not found")

    result = ImportResult()

    for raw in barcodes:
        barcode = _clean(raw)
        if not barcode:
            result.fail("Empty barcode")
            continue
        if len(barcode) > Voucher.__table__.c.barcode.type.length:
            result.fail(f"Barcode {barcode[:32]}...: Too long")
            continue

        if db.session.query(Voucher.id).filter_by(barcode=barcode).first():
            result.fail(f"Barcode {barcode}: Already exists")
            continue

        try:
            with db.session.begin_nested():
                db.session.add(
                    Voucher(
                        barcode=barcode,
                        value_cents=value_cents,
                        status=STATUS_AVAILABLE,
                        batch_number=batch_number,
                        book_number=book_number,
                        account_id=account_id,
                    )
                )
            result.success += 1
        except IntegrityError:
            result.fail(f"Barcode {barcode}: Already exists")

    if result.success > 0:
        log_event(
            "imported",
            user=user,
            details={
                "batch_number": batch_number,
                "book_number": book_number,
                "account_id": account_id,
                "total_imported": result.success,
                "total_failed": result.failed,
            },
        )
    db.session.commit()
    return result
