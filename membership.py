"""
membership.py
Membership lifecycle rules: expiration renewal, active status, payment plan
resolution and transaction status transitions.

Everything here is pure: callers read current state, ask these functions what
should change, and persist the answer themselves.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from errors import InvalidStatusTransitionError, PlanNotResolvedError
from models import Plan, RenewalResult, TransactionDraft, TransactionStatus

# expirations older than this are placeholders for "never had a membership"
_PLACEHOLDER_CUTOFF = datetime(2000, 1, 1, tzinfo=timezone.utc)

_EMPTY_PLAN_IDS = {"", "null", "none", "undefined"}

_ALLOWED_TRANSITIONS = {
    TransactionStatus.PENDING: {TransactionStatus.APPROVED, TransactionStatus.REJECTED},
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Naive timestamps are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _real_expiration(value: datetime | None) -> datetime | None:
    value = as_utc(value)
    if value is None or value < _PLACEHOLDER_CUTOFF:
        return None
    return value


def is_membership_active(expired_at: datetime | None, now: datetime | None = None) -> bool:
    expired_at = _real_expiration(expired_at)
    if expired_at is None:
        return False
    return expired_at > as_utc(now or utcnow())


def days_left(expired_at: datetime | None, now: datetime | None = None) -> int:
    """Whole days (rounded up) until expiration; 0 once lapsed."""
    expired_at = _real_expiration(expired_at)
    now = as_utc(now or utcnow())
    if expired_at is None or expired_at <= now:
        return 0
    return math.ceil((expired_at - now) / timedelta(days=1))


def renewal_base(current_expired_at: datetime | None, reference_date: datetime) -> datetime:
    """
    The later of the current expiration and the transaction's effective date.
    A membership that lapsed before the reference date restarts from the reference date.
    """
    current = _real_expiration(current_expired_at)
    reference = as_utc(reference_date)
    if current is not None and current > reference:
        return current
    return reference


def compute_renewal(
    current_expired_at: datetime | None,
    reference_date: datetime | None = None,
    duration_days: int = 0,
    now: datetime | None = None,
) -> RenewalResult:
    """
    Add `duration_days` (may be negative) on top of renewal_base().

    `reference_date` defaults to now. The returned status compares against the
    real current time, never against `reference_date`. A zero duration leaves
    the expiration untouched.
    """
    now = as_utc(now or utcnow())
    if duration_days == 0:
        return RenewalResult(
            expired_at=as_utc(current_expired_at),
            is_active=is_membership_active(current_expired_at, now),
        )

    reference = as_utc(reference_date) if reference_date is not None else now
    new_expired_at = renewal_base(current_expired_at, reference) + timedelta(days=duration_days)
    return RenewalResult(expired_at=new_expired_at, is_active=new_expired_at > now)


def apply_explicit_expiration(new_expired_at: datetime, now: datetime | None = None) -> RenewalResult:
    """An admin-chosen expiration is used verbatim; only the status is derived."""
    new_expired_at = as_utc(new_expired_at)
    return RenewalResult(
        expired_at=new_expired_at,
        is_active=new_expired_at > as_utc(now or utcnow()),
    )


def choose_duration(manual_days: int, plan: Plan | None) -> int:
    """Manual day count wins over the selected plan's duration."""
    if manual_days:
        return manual_days
    if plan is not None:
        return plan.duration_days
    return 0


def normalize_plan_id(plan_id: str | None) -> str | None:
    if plan_id is None:
        return None
    plan_id = str(plan_id).strip()
    if plan_id.lower() in _EMPTY_PLAN_IDS:
        return None
    return plan_id


def resolve_payment_plan(explicit_plan_id: str | None, fallback_plan: Plan | None) -> str | None:
    """
    Plan id to attach to a payment: the explicit choice when there is one,
    otherwise the fallback (first active) plan, otherwise None.
    Whether the explicit id exists is the store's concern.
    """
    plan_id = normalize_plan_id(explicit_plan_id)
    if plan_id is not None:
        return plan_id
    if fallback_plan is not None:
        return fallback_plan.id
    return None


def plan_transaction(
    user_id: str,
    amount: int,
    explicit_plan_id: str | None,
    fallback_plan: Plan | None,
    status: TransactionStatus,
    proof_url: str,
    created_at: datetime | None = None,
) -> TransactionDraft | None:
    """
    Decide what payment record should be written, if any.
    Nothing is recorded for a zero amount; a positive amount without a
    resolvable plan raises PlanNotResolvedError.
    """
    if amount <= 0:
        return None

    plan_id = resolve_payment_plan(explicit_plan_id, fallback_plan)
    if plan_id is None:
        raise PlanNotResolvedError(amount)

    return TransactionDraft(
        user_id=user_id,
        plan_id=plan_id,
        amount=amount,
        status=status,
        proof_url=proof_url,
        created_at=as_utc(created_at or utcnow()),
    )


def transition_status(current: TransactionStatus, target: TransactionStatus) -> TransactionStatus:
    if target not in _ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(current.value, target.value)
    return target
