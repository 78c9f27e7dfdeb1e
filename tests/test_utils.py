from __future__ import annotations

import io
from datetime import date, datetime, time, timedelta, timezone

import pandas as pd
import pytest

import utils
from membership import compute_renewal
from models import Profile, Role

UTC = timezone.utc
NOW = datetime(2025, 5, 20, 12, 0, tzinfo=UTC)


def _member(name: str, expired_at: datetime | None, is_active: bool = True) -> Profile:
    return Profile(
        id=name.lower(), name=name, email=f"{name.lower()}@example.com", phone_number=None,
        role=Role.USER, is_active=is_active, expired_at=expired_at, member_type="Reguler",
        created_at=NOW, updated_at=NOW,
    )


def _trx(created_at: datetime, amount: int, status: str = "APPROVED", **extra) -> dict:
    return {"created_at": created_at, "amount": amount, "status": status, **extra}


def test_format_rupiah():
    assert utils.format_rupiah(50000) == "Rp 50.000"
    assert utils.format_rupiah(0) == "Rp 0"
    assert utils.format_rupiah(2300000) == "Rp 2.300.000"


def test_format_date():
    assert utils.format_date(datetime(2024, 2, 9, tzinfo=UTC)) == "9 Feb 2024"
    assert utils.format_date(None) == "-"
    assert utils.format_date(datetime(1970, 1, 1)) == "-"


def test_format_card_id():
    assert utils.format_card_id("3f2a9c1e-77b4-4d1a-9e0f-123456789abc") == "3F2A 9C1E 77B4"
    assert utils.format_card_id("") == "0000 0000 0000"


def test_month_helpers():
    assert utils.add_months(2024, 12, 1) == (2025, 1)
    assert utils.add_months(2025, 1, -1) == (2024, 12)
    start, end = utils.month_bounds(2024, 12)
    assert start == datetime(2024, 12, 1, tzinfo=UTC)
    assert end == datetime(2025, 1, 1, tzinfo=UTC)


def test_local_form_time_is_converted_to_utc():
    jakarta = timezone(timedelta(hours=7))
    moment = utils.local_to_utc(date(2025, 5, 20), time(10, 0), jakarta)
    assert moment == datetime(2025, 5, 20, 3, 0, tzinfo=UTC)
    assert moment.tzinfo == UTC


def test_local_form_time_renews_lapsed_member_from_real_instant():
    jakarta = timezone(timedelta(hours=7))
    trx_date = utils.local_to_utc(date(2025, 5, 20), time(10, 0), jakarta)
    renewal = compute_renewal(datetime(2025, 1, 1, tzinfo=UTC), trx_date, 30, now=trx_date)
    assert renewal.expired_at == datetime(2025, 6, 19, 3, 0, tzinfo=UTC)


def test_local_now_is_aware():
    assert utils.local_now().tzinfo is not None


def test_validate_member_inputs():
    assert utils.validate_member_inputs("Ani", "ani@example.com", "password123") == []
    errors = utils.validate_member_inputs(" ", "nope", "short")
    assert len(errors) == 3


def test_monthly_stats_counts_pending_and_sums_approved():
    rows = [
        _trx(NOW, 250000),
        _trx(NOW, 650000),
        _trx(NOW, 100000, "PENDING"),
        _trx(NOW, 999999, "REJECTED"),
    ]
    assert utils.monthly_stats(rows, 7) == {"pending": 1, "members": 7, "revenue": 900000}


@pytest.mark.parametrize("days,label", [(-2, "EXPIRED"), (0, "EXPIRED"), (1, "URGENT"), (3, "SOON"), (5, "NOTICE")])
def test_urgency_label(days, label):
    assert utils.urgency_label(days) == label


def test_expiring_members_window():
    members = [
        _member("Soon", NOW + timedelta(days=2)),
        _member("Later", NOW + timedelta(days=12)),
        _member("Lapsed", NOW - timedelta(hours=3)),
        _member("Inactive", NOW + timedelta(days=1), is_active=False),
        _member("Never", None),
    ]
    rows = utils.expiring_members(members, within_days=5, now=NOW)

    assert [r["name"] for r in rows] == ["Lapsed", "Soon"]
    assert rows[0]["days_left"] == 0 and rows[0]["urgency"] == "EXPIRED"
    assert rows[1]["days_left"] == 2 and rows[1]["urgency"] == "SOON"


def test_monthly_report_marks_manual_payments_and_totals():
    rows = [
        _trx(datetime(2025, 5, 2, tzinfo=UTC), 250000, member_name="Ani", member_email="ani@example.com",
             plan_name="Monthly", proof_url="ani-1.png"),
        _trx(datetime(2025, 5, 3, tzinfo=UTC), 100000, member_name=None, member_email=None,
             plan_name="Monthly", proof_url="MANUAL_CASH_ADMIN"),
    ]
    df = utils.monthly_report_frame(rows)

    assert list(df.columns) == utils.REPORT_COLUMNS
    assert df["Plan"].tolist() == ["Monthly", "Manual (Cash)", "TOTAL"]
    assert df["Name"].tolist()[:2] == ["Ani", "Unnamed"]
    assert df["Date"].iloc[0] == "02/05/2025"
    assert df["Amount"].iloc[-1] == 350000

    parsed = pd.read_csv(io.BytesIO(utils.monthly_report_csv_bytes(rows)))
    assert len(parsed) == 3


def test_monthly_report_empty():
    assert utils.monthly_report_frame([]).empty
    assert utils.report_filename(2025, 5) == "Report_May_2025.csv"


def test_analytics_revenue_and_growth():
    transactions = [
        _trx(datetime(2025, 4, 10, tzinfo=UTC), 200000),
        _trx(datetime(2025, 5, 1, tzinfo=UTC), 250000),
        _trx(datetime(2025, 5, 15, tzinfo=UTC), 50000),
        _trx(datetime(2025, 5, 16, tzinfo=UTC), 1000000, "PENDING"),
        _trx(datetime(2024, 1, 1, tzinfo=UTC), 700000),  # outside the window
    ]
    members = [
        {"created_at": datetime(2024, 6, 1, tzinfo=UTC)},
        {"created_at": datetime(2025, 4, 2, tzinfo=UTC)},
        {"created_at": datetime(2025, 5, 3, tzinfo=UTC)},
        {"created_at": datetime(2025, 5, 4, tzinfo=UTC)},
    ]

    data = utils.analytics(transactions, members, months=6, now=NOW)

    assert data.monthly_revenue["month"].tolist() == [
        "Dec 2024", "Jan 2025", "Feb 2025", "Mar 2025", "Apr 2025", "May 2025",
    ]
    assert data.monthly_revenue["revenue"].tolist() == [0, 0, 0, 0, 200000, 300000]
    assert data.member_growth["new"].tolist() == [0, 0, 0, 0, 1, 2]
    assert data.member_growth["total"].tolist() == [1, 1, 1, 1, 2, 4]
    assert data.stats["total_revenue"] == 500000
    assert data.stats["revenue_growth"] == pytest.approx(50.0)
    assert data.stats["member_growth"] == pytest.approx(100.0)
    assert data.stats["total_members"] == 4
    assert data.stats["avg_revenue"] == pytest.approx(500000 / 6)


def test_analytics_with_no_data():
    data = utils.analytics([], [], months=3, now=NOW)
    assert data.monthly_revenue["revenue"].tolist() == [0, 0, 0]
    assert data.member_growth["total"].tolist() == [0, 0, 0]
    assert data.stats["revenue_growth"] == 0.0
