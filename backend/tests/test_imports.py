"""
Voucher import tests: duplicate accounting, batch defaults and file parsing.
"""

import io
import json

import pytest
from openpyxl import Workbook

from supersave.models import AuditLog, Voucher
from supersave.services import import_service
from supersave.services.import_service import ImportError as BarcodeImportError
from supersave.validation import NotFoundError, ValidationError

from conftest import make_vouchers


class TestImportVouchers:

    def test_new_and_duplicate_barcodes(self, admin_user, db_session):
        make_vouchers(db_session, ["DUP-1", "DUP-2"])

        result = import_service.import_vouchers(
            barcodes=["NEW-1", "DUP-1", "NEW-2", "DUP-2", "NEW-3"],
            batch_number="B-100",
            user=admin_user,
        )
        assert result.success == 3
        assert result.failed == 2
        assert "Barcode DUP-1: Already exists" in result.errors

        assert db_session.query(Voucher).filter_by(batch_number="B-100").count() == 3
        log = db_session.query(AuditLog).filter_by(action="imported").one()
        assert log.details["total_imported"] == 3
        assert log.details["total_failed"] == 2

    def test_repeats_within_request_fail(self, admin_user, db_session):
        result = import_service.import_vouchers(
            barcodes=["R-1", "R-1", "R-1"],
            batch_number="B-101",
            user=admin_user,
        )
        assert result.success == 1
        assert result.failed == 2

    def test_all_duplicates_writes_no_audit(self, admin_user, db_session):
        make_vouchers(db_session, ["ONLY-1"])
        result = import_service.import_vouchers(barcodes=["ONLY-1"], batch_number="B-102", user=admin_user)
        assert result.success == 0
        assert db_session.query(AuditLog).filter_by(action="imported").count() == 0

    def test_batch_falls_back_to_book(self, admin_user, db_session):
        import_service.import_vouchers(barcodes=["BK-1"], batch_number=None, book_number="BOOK-9", user=admin_user)
        voucher = db_session.query(Voucher).filter_by(barcode="BK-1").one()
        assert voucher.batch_number == "BOOK-9"
        assert voucher.book_number == "BOOK-9"

    def test_batch_required(self, admin_user):
        with pytest.raises(ValidationError):
            import_service.import_vouchers(barcodes=["X-1"], batch_number="  ", user=admin_user)

    def test_barcodes_required(self, admin_user):
        with pytest.raises(ValidationError):
            import_service.import_vouchers(barcodes=[], batch_number="B-1", user=admin_user)

    def test_value_and_account(self, admin_user, account, db_session):
        import_service.import_vouchers(
            barcodes=["V-1"], batch_number="B-103", value_rands="100", account_id=account.id, user=admin_user,
        )
        voucher = db_session.query(Voucher).filter_by(barcode="V-1").one()
        assert voucher.value_cents == 10000
        assert voucher.account_id == account.id
        assert voucher.status == "available"

    def test_unknown_account(self, admin_user):
        with pytest.raises(NotFoundError):
            import_service.import_vouchers(barcodes=["V-2"], batch_number="B-1", account_id=9999, user=admin_user)

    def test_blank_and_numeric_cells(self, admin_user, db_session):
        result = import_service.import_vouchers(barcodes=["", 6001234.0, " N-1 "], batch_number="B-104", user=admin_user)
        assert result.success == 2
        assert result.failed == 1
        assert db_session.query(Voucher).filter_by(barcode="6001234").count() == 1
        assert db_session.query(Voucher).filter_by(barcode="N-1").count() == 1


class TestParseBarcodeFile:

    def test_csv_skips_header(self):
        data = b"Barcode,Notes\nSS-1,first\n\nSS-2,second\n"
        assert import_service.parse_barcode_file("codes.csv", io.BytesIO(data)) == ["SS-1", "SS-2"]

    def test_csv_without_header(self):
        data = b'"111"\n222\n'
        assert import_service.parse_barcode_file("codes.csv", io.BytesIO(data)) == ["111", "222"]

    def test_json_list_and_object(self):
        assert import_service.parse_barcode_file("a.json", io.BytesIO(b'["J-1", "J-2"]')) == ["J-1", "J-2"]
        payload = json.dumps({"barcodes": ["J-3"]}).encode()
        assert import_service.parse_barcode_file("b.json", io.BytesIO(payload)) == ["J-3"]

    def test_xlsx(self):
        wb = Workbook()
        sheet = wb.active
        sheet.append(["Voucher Code"])
        sheet.append(["X-1"])
        sheet.append([6009876543])
        buf = io.BytesIO()
        wb.save(buf)
        buf.seek(0)

        assert import_service.parse_barcode_file("book.xlsx", buf) == ["X-1", "6009876543"]

    def test_unsupported_extension(self):
        with pytest.raises(BarcodeImportError):
            import_service.parse_barcode_file("codes.pdf", io.BytesIO(b"%PDF"))

    def test_malformed_json(self):
        with pytest.raises(BarcodeImportError):
            import_service.parse_barcode_file("codes.json", io.BytesIO(b"{not json"))


class TestImportRoute:

    def test_json_import(self, client, editor_headers, db_session):
        resp = client.post(
            "/api/vouchers/import",
            json={"barcodes": ["API-1", "API-2"], "batch_number": "B-200", "value": 50},
            headers=editor_headers,
        )
        assert resp.status_code == 200
        assert resp.json == {"success": 2, "failed": 0, "errors": []}

    def test_file_upload(self, client, editor_headers, db_session):
        resp = client.post(
            "/api/vouchers/import",
            data={
                "file": (io.BytesIO(b"barcode\nUP-1\nUP-2\n"), "upload.csv"),
                "batch_number": "B-201",
            },
            headers=editor_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        assert resp.json["success"] == 2
        assert db_session.query(Voucher).filter_by(batch_number="B-201").count() == 2

    def test_missing_batch(self, client, editor_headers):
        resp = client.post("/api/vouchers/import", json={"barcodes": ["Z-1"]}, headers=editor_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Batch number is required"

    def test_bad_file_type(self, client, editor_headers):
        resp = client.post(
            "/api/vouchers/import",
            data={"file": (io.BytesIO(b"x"), "codes.doc"), "batch_number": "B-1"},
            headers=editor_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_corrupt_workbook(self, client, editor_headers, db_session):
        resp = client.post(
            "/api/vouchers/import",
            data={"file": (io.BytesIO(b"not really a workbook"), "codes.xlsx"), "batch_number": "B-1"},
            headers=editor_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        assert resp.json["error"].startswith("Failed to parse upload")
        assert db_session.query(Voucher).count() == 0
