from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from errors import InvalidStatusTransitionError, PlanNotResolvedError
from membership import (
    apply_explicit_expiration,
    choose_duration,
    compute_renewal,
    days_left,
    is_membership_active,
    normalize_plan_id,
    plan_transaction,
    resolve_payment_plan,
    transition_status,
)
from models import Plan, TransactionStatus

UTC = timezone.utc


def _dt(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


def _plan(plan_id: str = "p1", duration_days: int = 30, price: int = 250000) -> Plan:
    return Plan(id=plan_id, name="Monthly", price=price, duration_days=duration_days, is_active=True)


def test_lapsed_membership_renews_from_transaction_date():
    result = compute_renewal(_dt(2024, 1, 1), _dt(2024, 1, 10), 30, now=_dt(2024, 1, 10))
    assert result.expired_at == _dt(2024, 2, 9)
    assert result.is_active is True


def test_running_membership_renews_from_current_expiration():
    result = compute_renewal(_dt(2025, 6, 1), _dt(2025, 5, 20), 90, now=_dt(2025, 5, 20))
    assert result.expired_at == _dt(2025, 8, 30)


@pytest.mark.parametrize("days", [0, 1, 30, 365])
def test_future_expiration_is_extended_additively(days):
    current = _dt(2025, 3, 1, 12)
    reference = _dt(2025, 2, 1)
    result = compute_renewal(current, reference, days, now=reference)
    assert result.expired_at == current + timedelta(days=days)


@pytest.mark.parametrize("days", [1, 7, 90])
def test_past_expiration_is_clamped_to_reference(days):
    reference = _dt(2025, 2, 1, 8, 30)
    result = compute_renewal(_dt(2024, 12, 1), reference, days, now=reference)
    assert result.expired_at == reference + timedelta(days=days)


def test_new_member_without_expiration_starts_at_reference():
    reference = _dt(2025, 4, 1)
    assert compute_renewal(None, reference, 30, now=reference).expired_at == _dt(2025, 5, 1)


def test_epoch_placeholder_counts_as_no_expiration():
    reference = _dt(2025, 4, 1)
    result = compute_renewal(_dt(1970, 1, 1), reference, 10, now=reference)
    assert result.expired_at == _dt(2025, 4, 11)


def test_reference_defaults_to_now():
    now = _dt(2025, 7, 1)
    assert compute_renewal(None, None, 5, now=now).expired_at == _dt(2025, 7, 6)


def test_status_uses_real_now_not_reference_date():
    # backdated entry: active relative to the reference date, lapsed relative to now
    result = compute_renewal(None, _dt(2024, 1, 1), 30, now=_dt(2024, 6, 1))
    assert result.expired_at == _dt(2024, 1, 31)
    assert result.is_active is False


def test_zero_days_leaves_expiration_unchanged():
    current = _dt(2025, 1, 15)
    result = compute_renewal(current, _dt(2025, 3, 1), 0, now=_dt(2025, 1, 1))
    assert result.expired_at == current
    assert result.is_active is True


def test_negative_days_can_lapse_membership():
    now = _dt(2025, 5, 1)
    result = compute_renewal(_dt(2025, 5, 5), now, -10, now=now)
    assert result.expired_at == _dt(2025, 4, 25)
    assert result.is_active is False


def test_naive_timestamps_are_treated_as_utc():
    result = compute_renewal(datetime(2025, 6, 1), datetime(2025, 5, 20), 1, now=_dt(2025, 5, 20))
    assert result.expired_at == _dt(2025, 6, 2)


def test_explicit_expiration_is_used_verbatim():
    now = _dt(2025, 5, 1)
    future = apply_explicit_expiration(_dt(2025, 12, 31), now=now)
    past = apply_explicit_expiration(_dt(2025, 1, 1), now=now)
    assert future.expired_at == _dt(2025, 12, 31) and future.is_active is True
    assert past.expired_at == _dt(2025, 1, 1) and past.is_active is False


def test_is_active_and_days_left():
    now = _dt(2025, 1, 1, 12)
    assert is_membership_active(_dt(2025, 1, 2), now) is True
    assert is_membership_active(_dt(2025, 1, 1), now) is False
    assert is_membership_active(None, now) is False
    assert days_left(_dt(2025, 1, 2), now) == 1
    assert days_left(_dt(2025, 1, 3, 13), now) == 3
    assert days_left(_dt(2024, 12, 1), now) == 0
    assert days_left(None, now) == 0


def test_manual_days_take_priority_over_plan():
    plan = _plan(duration_days=30)
    assert choose_duration(7, plan) == 7
    assert choose_duration(-3, plan) == -3
    assert choose_duration(0, plan) == 30
    assert choose_duration(0, None) == 0


@pytest.mark.parametrize("raw", [None, "", "  ", "null", "None", "undefined"])
def test_empty_plan_ids_normalize_to_none(raw):
    assert normalize_plan_id(raw) is None


def test_resolve_payment_plan():
    fallback = _plan("first")
    assert resolve_payment_plan("p9", fallback) == "p9"
    assert resolve_payment_plan("null", fallback) == "first"
    assert resolve_payment_plan(None, fallback) == "first"
    assert resolve_payment_plan(None, None) is None


def test_paid_transaction_falls_back_to_first_plan():
    draft = plan_transaction(
        "u1", 50000, None, _plan("p1"), TransactionStatus.APPROVED, "MANUAL_EDIT_ADMIN", _dt(2025, 1, 1)
    )
    assert draft is not None
    assert draft.plan_id == "p1"
    assert draft.amount == 50000
    assert draft.status == TransactionStatus.APPROVED
    assert draft.created_at == _dt(2025, 1, 1)


def test_zero_amount_records_nothing_even_without_plan():
    assert plan_transaction("u1", 0, None, None, TransactionStatus.APPROVED, "MANUAL_EDIT_ADMIN") is None


def test_paid_transaction_without_any_plan_is_rejected():
    with pytest.raises(PlanNotResolvedError):
        plan_transaction("u1", 50000, "", None, TransactionStatus.APPROVED, "MANUAL_EDIT_ADMIN")


def test_status_transitions():
    assert transition_status(TransactionStatus.PENDING, TransactionStatus.APPROVED) == TransactionStatus.APPROVED
    assert transition_status(TransactionStatus.PENDING, TransactionStatus.REJECTED) == TransactionStatus.REJECTED
    with pytest.raises(InvalidStatusTransitionError):
        transition_status(TransactionStatus.APPROVED, TransactionStatus.REJECTED)
    with pytest.raises(InvalidStatusTransitionError):
        transition_status(TransactionStatus.REJECTED, TransactionStatus.APPROVED)
    with pytest.raises(InvalidStatusTransitionError):
        transition_status(TransactionStatus.PENDING, TransactionStatus.PENDING)
