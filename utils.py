"""
utils.py
Formatting, validation, dashboard analytics, CSV reports, sample data.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

import pandas as pd

from membership import as_utc, days_left, utcnow
from models import TransactionStatus, is_manual_proof

REPORT_COLUMNS = ["Date", "Name", "Email", "Plan", "Amount", "Status"]


# ---------- formatting ----------

def format_rupiah(amount: int | float) -> str:
    return "Rp " + f"{amount:,.0f}".replace(",", ".")


def format_date(value: datetime | None) -> str:
    """'9 Feb 2024'; '-' for a missing or placeholder (pre-2000) date."""
    if value is None or value.year < 2000:
        return "-"
    return f"{value.day} {value.strftime('%b %Y')}"


def format_card_id(member_id: str | None) -> str:
    """First 12 hex chars of the member id, grouped like a card number."""
    if not member_id:
        return "0000 0000 0000"
    clean = member_id.replace("-", "")[:12].upper()
    return " ".join(clean[i:i + 4] for i in range(0, len(clean), 4))


# ---------- dates ----------

def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    y = year + (month - 1 + months) // 12
    m = (month - 1 + months) % 12 + 1
    return y, m


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """[start of month, start of next month) in UTC."""
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    ny, nm = add_months(year, month, 1)
    return start, datetime(ny, nm, 1, tzinfo=timezone.utc)


def month_label(year: int, month: int) -> str:
    return datetime(year, month, 1).strftime("%B %Y")


def local_now() -> datetime:
    """Current time in the host's local timezone (aware)."""
    return datetime.now().astimezone()


def local_to_utc(day: date, at: time, tz: tzinfo | None = None) -> datetime:
    """
    Wall-clock date + time entered in a form, read in `tz` (the host's local
    zone when None), as an aware UTC datetime.
    """
    naive = datetime.combine(day, at)
    local = naive.replace(tzinfo=tz) if tz is not None else naive.astimezone()
    return local.astimezone(timezone.utc)


# ---------- validation ----------

def validate_member_inputs(name: str, email: str, password: str | None = None) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Full name is required.")
    if not email.strip() or "@" not in email:
        errors.append("A valid email is required.")
    if password is not None and len(password) < 8:
        errors.append("Password must be at least 8 characters.")
    return errors


# ---------- dashboard ----------

def monthly_stats(transactions: list[dict], active_members: int) -> dict:
    """Header cards for one month of transactions."""
    pending = [t for t in transactions if t["status"] == TransactionStatus.PENDING.value]
    approved = [t for t in transactions if t["status"] == TransactionStatus.APPROVED.value]
    return {
        "pending": len(pending),
        "members": active_members,
        "revenue": sum(int(t["amount"]) for t in approved),
    }


def urgency_label(days: int) -> str:
    if days <= 0:
        return "EXPIRED"
    if days <= 1:
        return "URGENT"
    if days <= 3:
        return "SOON"
    return "NOTICE"


def expiring_members(profiles, within_days: int = 5, now: datetime | None = None) -> list[dict]:
    """Active members whose expiration falls within the next `within_days` days (or already passed)."""
    now = as_utc(now or utcnow())
    limit = now + timedelta(days=within_days)
    rows = []
    for p in profiles:
        expired_at = as_utc(p.expired_at)
        if not p.is_active or expired_at is None or expired_at > limit:
            continue
        left = days_left(expired_at, now)
        rows.append({
            "id": p.id,
            "name": p.name,
            "email": p.email,
            "phone_number": p.phone_number,
            "expired_at": expired_at,
            "days_left": left,
            "urgency": urgency_label(left),
        })
    rows.sort(key=lambda r: r["expired_at"])
    return rows


@dataclass(frozen=True)
class Analytics:
    monthly_revenue: pd.DataFrame  # month, revenue
    member_growth: pd.DataFrame  # month, new, total
    stats: dict


def _to_periods(values) -> pd.Series:
    stamps = pd.to_datetime(pd.Series(list(values), dtype="object"), utc=True)
    return stamps.dt.tz_localize(None).dt.to_period("M")


def _growth(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def analytics(transactions: list[dict], members: list[dict], months: int = 6, now: datetime | None = None) -> Analytics:
    """
    Revenue and member growth for the `months` months ending with the current one.
    `transactions` need created_at/amount/status; `members` need created_at.
    """
    now = as_utc(now or utcnow())
    periods = pd.period_range(end=pd.Period(year=now.year, month=now.month, freq="M"), periods=months, freq="M")
    labels = [p.strftime("%b %Y") for p in periods]

    approved = [t for t in transactions if t["status"] == TransactionStatus.APPROVED.value]
    if approved:
        trx = pd.DataFrame({
            "month": _to_periods(t["created_at"] for t in approved),
            "amount": [int(t["amount"]) for t in approved],
        })
        revenue = trx.groupby("month")["amount"].sum().reindex(periods, fill_value=0)
    else:
        revenue = pd.Series(0, index=periods)

    if members:
        joined = _to_periods(m["created_at"] for m in members)
        new = joined.value_counts().reindex(periods, fill_value=0)
        before_window = int((joined < periods[0]).sum())
    else:
        new = pd.Series(0, index=periods)
        before_window = 0
    total = new.cumsum() + before_window

    monthly_revenue = pd.DataFrame({"month": labels, "revenue": revenue.astype(int).tolist()})
    member_growth = pd.DataFrame({"month": labels, "new": new.astype(int).tolist(), "total": total.astype(int).tolist()})

    this_rev = float(revenue.iloc[-1])
    prev_rev = float(revenue.iloc[-2]) if months > 1 else 0.0
    this_new = float(new.iloc[-1])
    prev_new = float(new.iloc[-2]) if months > 1 else 0.0
    total_revenue = int(revenue.sum())

    stats = {
        "total_revenue": total_revenue,
        "revenue_growth": _growth(this_rev, prev_rev),
        "total_members": len(members),
        "member_growth": _growth(this_new, prev_new),
        "avg_revenue": total_revenue / months if months else 0,
    }
    return Analytics(monthly_revenue=monthly_revenue, member_growth=member_growth, stats=stats)


# ---------- reports ----------

def monthly_report_frame(rows: list[dict]) -> pd.DataFrame:
    """Approved transactions of a month as report rows, closed by a TOTAL line."""
    if not rows:
        return pd.DataFrame(columns=REPORT_COLUMNS)

    records = []
    for trx in rows:
        plan_name = trx.get("plan_name") or "-"
        if is_manual_proof(trx.get("proof_url")):
            plan_name = "Manual (Cash)"
        records.append({
            "Date": as_utc(trx["created_at"]).strftime("%d/%m/%Y"),
            "Name": trx.get("member_name") or "Unnamed",
            "Email": trx.get("member_email") or "-",
            "Plan": plan_name,
            "Amount": int(trx["amount"]),
            "Status": "PAID",
        })
    df = pd.DataFrame(records, columns=REPORT_COLUMNS)
    total = {"Date": "", "Name": "", "Email": "", "Plan": "TOTAL", "Amount": int(df["Amount"].sum()), "Status": ""}
    return pd.concat([df, pd.DataFrame([total])], ignore_index=True)


def monthly_report_csv_bytes(rows: list[dict]) -> bytes:
    return monthly_report_frame(rows).to_csv(index=False).encode("utf-8")


def report_filename(year: int, month: int) -> str:
    return f"Report_{month_label(year, month).replace(' ', '_')}.csv"


# ---------- sample data ----------

def insert_sample_data(repo) -> None:
    """
    Insert a few plans (first run only) and 3 members with payments
    (safe to run multiple times: adds new members each time).
    """
    import services

    if not repo.list_active_plans():
        services.create_plan(repo, "Monthly", 250000, 30, "Full gym access for 30 days")
        services.create_plan(repo, "Quarterly", 650000, 90, "Full gym access for 90 days")
        services.create_plan(repo, "Yearly", 2300000, 365, "Full gym access for a year")

    plans = repo.list_active_plans()
    monthly = plans[0]
    now = utcnow()
    tag = secrets.token_hex(3)

    # Member 1: active, expires in ~3 days
    services.create_member(
        repo, f"budi.{tag}@example.com", "password123", "Budi Santoso", "081200000001",
        plan_id=monthly.id, amount=monthly.price, transaction_date=now - timedelta(days=monthly.duration_days - 3),
    )
    # Member 2: active, longer plan
    longest = plans[-1]
    services.create_member(
        repo, f"siti.{tag}@example.com", "password123", "Siti Rahma", "081200000002",
        plan_id=longest.id, amount=longest.price, transaction_date=now - timedelta(days=10),
    )
    # Member 3: lapsed
    services.create_member(
        repo, f"andi.{tag}@example.com", "password123", "Andi Wijaya", "081200000003",
        plan_id=monthly.id, amount=monthly.price, transaction_date=now - timedelta(days=60),
    )
