"""
Reporting tests: dashboard counters, audit log ranges, redemption reports
and period analytics.
"""

from datetime import datetime, timedelta

import pytest

from supersave.models import AuditLog, Voucher
from supersave.services import reporting_service, voucher_service
from supersave.services.audit_service import log_event
from supersave.services.reporting_service import ReportError
from supersave.time_utils import utcnow

from conftest import ADMIN_EMAIL, EDITOR_EMAIL, make_vouchers


def _redeemed_at(db_session, barcode, when):
    voucher = db_session.query(Voucher).filter_by(barcode=barcode).one()
    voucher.redeemed_at = when
    db_session.commit()


class TestDashboardStats:

    def test_counts_by_status(self, client, editor_headers, admin_user, db_session):
        make_vouchers(db_session, ["D-1", "D-2", "D-3", "D-4"])
        make_vouchers(db_session, ["D-5"], status="expired", value_cents=10000)
        voucher_service.redeem_voucher("D-1", admin_user)
        voucher_service.void_voucher(db_session.query(Voucher).filter_by(barcode="D-2").one().id, admin_user)

        resp = client.get("/api/dashboard/stats", headers=editor_headers)
        assert resp.status_code == 200
        stats = resp.json
        assert stats["total"] == 5
        assert stats["available"] == 2
        assert stats["redeemed_total"] == 1
        assert stats["redeemed_today"] == 1
        assert stats["voided"] == 1
        assert stats["expired"] == 1
        assert stats["total"] == sum(stats["by_status"].values())
        assert stats["total_value_cents"] == 4 * 5000 + 10000
        assert stats["redeemed_value"] == 50

    def test_empty_database(self, admin_user):
        stats = reporting_service.dashboard_stats()
        assert stats["total"] == 0
        assert stats["by_status"] == {"available": 0, "redeemed": 0, "expired": 0, "voided": 0}

    def test_yesterday_not_counted_today(self, admin_user, db_session):
        make_vouchers(db_session, ["Y-1"])
        voucher_service.redeem_voucher("Y-1", admin_user)
        _redeemed_at(db_session, "Y-1", utcnow() - timedelta(days=1, hours=1))

        stats = reporting_service.dashboard_stats()
        assert stats["redeemed_today"] == 0
        assert stats["redeemed_total"] == 1


class TestAuditLogs:

    def test_date_only_end_is_inclusive(self, admin_user, db_session):
        entry = log_event("imported", user=admin_user, details={"total_imported": 1})
        entry.timestamp = datetime(2026, 3, 1, 18, 30)
        later = log_event("imported", user=admin_user)
        later.timestamp = datetime(2026, 3, 2, 0, 0, 1)
        db_session.commit()

        logs = reporting_service.audit_logs("2026-03-01", "2026-03-01")
        assert [log.id for log in logs] == [entry.id]

    def test_newest_first_over_http(self, client, editor_headers, admin_user, db_session):
        first = log_event("imported", user=admin_user)
        first.timestamp = utcnow() - timedelta(minutes=5)
        log_event("redeemed", user=admin_user)
        db_session.commit()

        resp = client.get("/api/reports", headers=editor_headers)
        assert resp.status_code == 200
        assert [log["action"] for log in resp.json["logs"]] == ["redeemed", "imported"]
        assert resp.json["logs"][0]["user_email"] == ADMIN_EMAIL

    @pytest.mark.parametrize(
        "start,end",
        [("not-a-date", None), ("2026-03-05", "2026-03-01")],
    )
    def test_bad_range(self, client, editor_headers, start, end):
        params = {"start": start}
        if end:
            params["end"] = end
        resp = client.get("/api/reports", query_string=params, headers=editor_headers)
        assert resp.status_code == 400


class TestRedemptionReport:

    def test_totals_and_unique_users(self, admin_user, editor_user, db_session):
        make_vouchers(db_session, ["R-1", "R-2", "R-3"])
        make_vouchers(db_session, ["R-4"], value_cents=10000)
        voucher_service.redeem_voucher("R-1", admin_user)
        voucher_service.redeem_voucher("R-2", editor_user)
        voucher_service.redeem_voucher("R-4", editor_user)

        report = reporting_service.redemption_report()
        assert report["total_count"] == 3
        assert report["total_value"] == 200
        assert report["total_value_cents"] == 20000
        assert report["unique_users"] == 2
        assert {r["redeemed_by_email"] for r in report["redemptions"]} == {ADMIN_EMAIL, EDITOR_EMAIL}

    def test_range_filter(self, client, editor_headers, admin_user, db_session):
        make_vouchers(db_session, ["RR-1", "RR-2"])
        voucher_service.redeem_voucher("RR-1", admin_user)
        voucher_service.redeem_voucher("RR-2", admin_user)
        _redeemed_at(db_session, "RR-1", datetime(2026, 1, 15, 9, 0))
        _redeemed_at(db_session, "RR-2", datetime(2026, 2, 15, 9, 0))

        resp = client.get(
            "/api/reports/redemptions",
            query_string={"start": "2026-01-01", "end": "2026-01-31"},
            headers=editor_headers,
        )
        assert resp.status_code == 200
        assert [r["barcode"] for r in resp.json["redemptions"]] == ["RR-1"]
        assert resp.json["end"] == "2026-01-31T23:59:59Z"


class TestRedemptionsByPeriod:

    def test_group_by_day_and_month(self, admin_user, db_session):
        make_vouchers(db_session, ["P-1", "P-2", "P-3"])
        for code in ("P-1", "P-2", "P-3"):
            voucher_service.redeem_voucher(code, admin_user)
        _redeemed_at(db_session, "P-1", datetime(2026, 4, 1, 8, 0))
        _redeemed_at(db_session, "P-2", datetime(2026, 4, 1, 17, 0))
        _redeemed_at(db_session, "P-3", datetime(2026, 4, 20, 12, 0))

        by_day = reporting_service.redemptions_by_period("2026-04-01", "2026-04-30", "day")
        assert by_day["rows"] == [
            {"period": "2026-04-01", "count": 2, "value": 100},
            {"period": "2026-04-20", "count": 1, "value": 50},
        ]

        by_month = reporting_service.redemptions_by_period("2026-04-01", "2026-04-30", "month")
        assert by_month["rows"] == [{"period": "2026-04", "count": 3, "value": 150}]

    def test_defaults_to_last_thirty_days(self, admin_user):
        report = reporting_service.redemptions_by_period()
        assert report["group_by"] == "day"
        assert report["rows"] == []
        assert report["start"] < report["end"]

    def test_invalid_group_by(self, client, editor_headers):
        resp = client.get("/api/analytics/redemptions?group_by=year", headers=editor_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "group_by must be day, week, or month"

    def test_service_raises_for_bad_group(self):
        with pytest.raises(ReportError):
            reporting_service.redemptions_by_period(group_by="hour")

    def test_audit_entries_untouched_by_reports(self, admin_user, db_session):
        reporting_service.redemption_report()
        assert db_session.query(AuditLog).count() == 0
