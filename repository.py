"""
repository.py
Store access for profiles, plans and transactions.

Services depend on the MembershipRepository protocol only; SqliteRepository is
the implementation backed by db.py.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Protocol

import db
from membership import as_utc
from models import Plan, Profile, Role, Transaction, TransactionDraft, TransactionStatus

_PROFILE_COLUMNS = {"name", "phone_number", "member_type", "is_active", "expired_at", "created_at", "updated_at"}


class MembershipRepository(Protocol):
    """Minimum contract the services need from the data store."""

    def get_profile(self, user_id: str) -> Profile | None:  # pragma: no cover - Protocol
        ...

    def update_profile(self, user_id: str, changes: dict[str, Any]) -> None:  # pragma: no cover - Protocol
        ...

    def list_active_profiles_expired_before(self, moment: datetime) -> list[Profile]:  # pragma: no cover - Protocol
        ...

    def deactivate_profiles(self, user_ids: list[str], updated_at: datetime) -> int:  # pragma: no cover - Protocol
        ...

    def get_plan(self, plan_id: str) -> Plan | None:  # pragma: no cover - Protocol
        ...

    def list_active_plans(self) -> list[Plan]:  # pragma: no cover - Protocol
        ...

    def insert_plan(
        self, name: str, price: int, duration_days: int, description: str = ""
    ) -> Plan:  # pragma: no cover - Protocol
        ...

    def set_plan_active(self, plan_id: str, is_active: bool) -> None:  # pragma: no cover - Protocol
        ...

    def insert_transaction(self, draft: TransactionDraft) -> Transaction:  # pragma: no cover - Protocol
        ...

    def get_transaction(self, transaction_id: str) -> Transaction | None:  # pragma: no cover - Protocol
        ...

    def update_transaction_status(
        self, transaction_id: str, status: TransactionStatus, updated_at: datetime
    ) -> None:  # pragma: no cover - Protocol
        ...


def _dt(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _iso(value: datetime | None) -> str | None:
    # stored as UTC so that string comparison orders correctly
    value = as_utc(value)
    if value is None:
        return None
    return value.isoformat(timespec="seconds")


def profile_from_row(row: sqlite3.Row) -> Profile:
    return Profile(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        phone_number=row["phone_number"],
        role=Role(row["role"]),
        is_active=bool(row["is_active"]),
        expired_at=_dt(row["expired_at"]),
        member_type=row["member_type"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def plan_from_row(row: sqlite3.Row) -> Plan:
    return Plan(
        id=row["id"],
        name=row["name"],
        price=int(row["price"]),
        duration_days=int(row["duration_days"]),
        is_active=bool(row["is_active"]),
        description=row["description"] or "",
        created_at=_dt(row["created_at"]),
    )


def transaction_from_row(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        user_id=row["user_id"],
        plan_id=row["plan_id"],
        amount=int(row["amount"]),
        status=TransactionStatus(row["status"]),
        proof_url=row["proof_url"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


class SqliteRepository:
    """MembershipRepository over the local SQLite database, plus the read queries the dashboards use."""

    # ---------- profiles ----------

    def get_profile(self, user_id: str) -> Profile | None:
        row = db.fetch_one("SELECT * FROM profiles WHERE id = ?", (user_id,))
        return profile_from_row(row) if row else None

    def list_members(self, search: str = "", status_filter: str = "all") -> list[Profile]:
        sql = "SELECT * FROM profiles WHERE role = 'USER'"
        params: list[Any] = []

        if search.strip():
            sql += " AND (name LIKE ? OR email LIKE ?)"
            like = f"%{search.strip()}%"
            params.extend([like, like])

        if status_filter == "active":
            sql += " AND is_active = 1"
        elif status_filter == "inactive":
            sql += " AND is_active = 0"

        sql += " ORDER BY created_at DESC"
        return [profile_from_row(r) for r in db.fetch_all(sql, tuple(params))]

    def count_active_members(self) -> int:
        row = db.fetch_one("SELECT COUNT(*) AS c FROM profiles WHERE role = 'USER' AND is_active = 1")
        return int(row["c"])

    def update_profile(self, user_id: str, changes: dict[str, Any]) -> None:
        unknown = set(changes) - _PROFILE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown profile fields: {sorted(unknown)}")
        if not changes:
            return

        values = []
        for key, value in changes.items():
            if isinstance(value, datetime):
                value = _iso(value)
            elif isinstance(value, bool):
                value = int(value)
            values.append(value)

        assignments = ", ".join(f"{key} = ?" for key in changes)
        db.execute(f"UPDATE profiles SET {assignments} WHERE id = ?", (*values, user_id))

    def list_active_profiles_expired_before(self, moment: datetime) -> list[Profile]:
        rows = db.fetch_all(
            """
            SELECT * FROM profiles
            WHERE is_active = 1 AND role = 'USER' AND expired_at IS NOT NULL AND expired_at < ?
            ORDER BY expired_at ASC
            """,
            (_iso(moment),),
        )
        return [profile_from_row(r) for r in rows]

    def deactivate_profiles(self, user_ids: list[str], updated_at: datetime) -> int:
        if not user_ids:
            return 0
        placeholders = ",".join("?" for _ in user_ids)
        return db.execute(
            f"UPDATE profiles SET is_active = 0, updated_at = ? WHERE id IN ({placeholders})",
            (_iso(updated_at), *user_ids),
        )

    # ---------- plans ----------

    def get_plan(self, plan_id: str) -> Plan | None:
        row = db.fetch_one("SELECT * FROM plans WHERE id = ?", (plan_id,))
        return plan_from_row(row) if row else None

    def list_active_plans(self) -> list[Plan]:
        rows = db.fetch_all("SELECT * FROM plans WHERE is_active = 1 ORDER BY created_at ASC, rowid ASC")
        return [plan_from_row(r) for r in rows]

    def list_plans(self) -> list[Plan]:
        rows = db.fetch_all("SELECT * FROM plans ORDER BY created_at ASC, rowid ASC")
        return [plan_from_row(r) for r in rows]

    def insert_plan(self, name: str, price: int, duration_days: int, description: str = "") -> Plan:
        plan_id = db.new_id()
        db.execute(
            """
            INSERT INTO plans(id, name, description, price, duration_days, is_active, created_at)
            VALUES(?,?,?,?,?,1,?)
            """,
            (plan_id, name, description, price, duration_days, db.now_iso()),
        )
        return self.get_plan(plan_id)

    def set_plan_active(self, plan_id: str, is_active: bool) -> None:
        db.execute("UPDATE plans SET is_active = ? WHERE id = ?", (int(is_active), plan_id))

    # ---------- transactions ----------

    def insert_transaction(self, draft: TransactionDraft) -> Transaction:
        trx_id = db.new_id()
        db.execute(
            """
            INSERT INTO transactions(id, user_id, plan_id, amount, status, proof_url, created_at, updated_at)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            (
                trx_id,
                draft.user_id,
                draft.plan_id,
                draft.amount,
                draft.status.value,
                draft.proof_url,
                _iso(draft.created_at),
                db.now_iso(),
            ),
        )
        return self.get_transaction(trx_id)

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        row = db.fetch_one("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
        return transaction_from_row(row) if row else None

    def update_transaction_status(
        self, transaction_id: str, status: TransactionStatus, updated_at: datetime
    ) -> None:
        db.execute(
            "UPDATE transactions SET status = ?, updated_at = ? WHERE id = ?",
            (status.value, _iso(updated_at), transaction_id),
        )

    def list_transaction_details(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        status: TransactionStatus | None = None,
        user_id: str | None = None,
        ascending: bool = False,
    ) -> list[dict]:
        """Transactions joined with member name/email/expiry and plan name/duration."""
        sql = """
            SELECT t.id, t.user_id, t.plan_id, t.amount, t.status, t.proof_url, t.created_at,
                   p.name AS member_name, p.email AS member_email, p.expired_at AS member_expired_at,
                   pl.name AS plan_name, pl.duration_days AS plan_duration_days
            FROM transactions t
            LEFT JOIN profiles p ON p.id = t.user_id
            LEFT JOIN plans pl ON pl.id = t.plan_id
            WHERE 1=1
        """
        params: list[Any] = []
        if start is not None:
            sql += " AND t.created_at >= ?"
            params.append(_iso(start))
        if end is not None:
            sql += " AND t.created_at < ?"
            params.append(_iso(end))
        if status is not None:
            sql += " AND t.status = ?"
            params.append(status.value)
        if user_id is not None:
            sql += " AND t.user_id = ?"
            params.append(user_id)
        sql += " ORDER BY t.created_at " + ("ASC" if ascending else "DESC")

        rows = []
        for r in db.fetch_all(sql, tuple(params)):
            row = dict(r)
            row["created_at"] = _dt(row["created_at"])
            row["member_expired_at"] = _dt(row["member_expired_at"])
            rows.append(row)
        return rows

    def list_profile_rows(self) -> list[dict]:
        """Member rows (id, created_at) for growth analytics."""
        rows = db.fetch_all("SELECT id, created_at FROM profiles WHERE role = 'USER'")
        return [{"id": r["id"], "created_at": _dt(r["created_at"])} for r in rows]
