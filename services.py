"""
services.py
Admin actions and member self-service.

Every operation reads current state through the repository, asks membership.py
what should change, then writes. Payment plan resolution happens before the
first write, so a payment that cannot be recorded leaves the store untouched.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime

import auth
from errors import MemberNotFoundError, TransactionNotFoundError, ValidationError
from membership import (
    apply_explicit_expiration,
    as_utc,
    choose_duration,
    compute_renewal,
    normalize_plan_id,
    plan_transaction,
    transition_status,
    utcnow,
)
from models import (
    DEFAULT_MEMBER_TYPE,
    PROOF_MANUAL_CASH,
    PROOF_MANUAL_EDIT,
    PROOF_MANUAL_REGISTRATION,
    Plan,
    Profile,
    RenewalResult,
    Role,
    Transaction,
    TransactionDraft,
    TransactionStatus,
)
from repository import MembershipRepository
from storage import ProofStorage

logger = logging.getLogger(__name__)


def _require_profile(repo: MembershipRepository, user_id: str) -> Profile:
    profile = repo.get_profile(user_id)
    if profile is None:
        raise MemberNotFoundError(user_id)
    return profile


def _explicit_plan(repo: MembershipRepository, plan_id: str | None) -> Plan | None:
    if not plan_id:
        return None
    plan = repo.get_plan(plan_id)
    if plan is None:
        raise ValidationError(f"Plan not found: {plan_id}")
    return plan


def _fallback_plan(repo: MembershipRepository, amount: int, plan_id: str | None) -> Plan | None:
    # only consulted when a payment has to be recorded without an explicit plan
    if amount <= 0 or plan_id is not None:
        return None
    plans = repo.list_active_plans()
    return plans[0] if plans else None


def _record(repo: MembershipRepository, draft: TransactionDraft | None) -> Transaction | None:
    if draft is None:
        return None
    trx = repo.insert_transaction(draft)
    logger.info(
        "recorded %s transaction %s: user=%s plan=%s amount=%d",
        trx.status.value, trx.id, trx.user_id, trx.plan_id, trx.amount,
    )
    return trx


# ---------- admin: members ----------

def create_member(
    repo: MembershipRepository,
    email: str,
    password: str,
    name: str,
    phone_number: str | None = None,
    plan_id: str | None = None,
    duration_days: int = 0,
    amount: int = 0,
    transaction_date: datetime | None = None,
    now: datetime | None = None,
    identity=auth,
) -> Profile:
    """
    Register a member on their behalf. With a starting plan (or day count) the
    membership runs from `transaction_date`; a paid amount is recorded as an
    approved manual registration.
    """
    now = as_utc(now or utcnow())
    trx_date = as_utc(transaction_date or now)
    plan_id = normalize_plan_id(plan_id)
    plan = _explicit_plan(repo, plan_id)

    draft = plan_transaction(
        "", amount, plan_id, _fallback_plan(repo, amount, plan_id),
        TransactionStatus.APPROVED, PROOF_MANUAL_REGISTRATION, trx_date,
    )

    profile = identity.sign_up(email=email, password=password, name=name, phone_number=phone_number, role=Role.USER)

    if duration_days > 0 or plan_id:
        days = plan.duration_days if plan is not None else duration_days
        renewal = compute_renewal(None, trx_date, days, now)
        repo.update_profile(
            profile.id,
            {
                "is_active": renewal.is_active,
                "expired_at": renewal.expired_at,
                "member_type": DEFAULT_MEMBER_TYPE,
                "phone_number": (phone_number or "").strip() or None,
                "created_at": trx_date,
                "updated_at": now,
            },
        )
        logger.info("new member %s starts %s, expires %s", profile.email, trx_date, renewal.expired_at)

    if draft is not None:
        _record(repo, dataclasses.replace(draft, user_id=profile.id))

    return repo.get_profile(profile.id)


def update_member_full(
    repo: MembershipRepository,
    user_id: str,
    name: str,
    phone_number: str | None,
    member_type: str,
    is_active: bool,
    expired_date: datetime | None = None,
    plan_id: str | None = None,
    amount: int = 0,
    manual_days: int = 0,
    transaction_date: datetime | None = None,
    now: datetime | None = None,
) -> Profile:
    """
    Edit a member. An explicit `expired_date` wins; otherwise a plan or manual
    day count (manual first, may be negative) extends from the later of the
    current expiration and `transaction_date`. With neither, `is_active` is
    taken as given.
    """
    profile = _require_profile(repo, user_id)
    now = as_utc(now or utcnow())
    trx_date = as_utc(transaction_date or now)
    plan_id = normalize_plan_id(plan_id)
    plan = _explicit_plan(repo, plan_id)

    draft = plan_transaction(
        user_id, amount, plan_id, _fallback_plan(repo, amount, plan_id),
        TransactionStatus.APPROVED, PROOF_MANUAL_EDIT, trx_date,
    )

    changes = {
        "name": name.strip(),
        "phone_number": (phone_number or "").strip() or None,
        "member_type": member_type,
        "is_active": is_active,
        "updated_at": now,
    }

    if expired_date is not None:
        renewal = apply_explicit_expiration(expired_date, now)
        changes["expired_at"] = renewal.expired_at
        changes["is_active"] = renewal.is_active
    else:
        days = choose_duration(manual_days, plan)
        if days != 0:
            renewal = compute_renewal(profile.expired_at, trx_date, days, now)
            changes["expired_at"] = renewal.expired_at
            changes["is_active"] = renewal.is_active
            logger.info("extending %s by %d days -> %s", user_id, days, renewal.expired_at)

    repo.update_profile(user_id, changes)
    _record(repo, draft)
    return repo.get_profile(user_id)


def extend_member_manual(
    repo: MembershipRepository,
    user_id: str,
    days: int,
    amount: int = 0,
    transaction_date: datetime | None = None,
    now: datetime | None = None,
) -> RenewalResult:
    """Cash extension at the front desk; the payment is booked against the first active plan."""
    profile = _require_profile(repo, user_id)
    now = as_utc(now or utcnow())
    trx_date = as_utc(transaction_date or now)

    draft = plan_transaction(
        user_id, amount, None, _fallback_plan(repo, amount, None),
        TransactionStatus.APPROVED, PROOF_MANUAL_CASH, trx_date,
    )

    renewal = compute_renewal(profile.expired_at, trx_date, days, now)
    if days != 0:
        repo.update_profile(
            user_id,
            {"expired_at": renewal.expired_at, "is_active": renewal.is_active, "updated_at": now},
        )
        logger.info("manual extension of %s by %d days -> %s", user_id, days, renewal.expired_at)

    _record(repo, draft)
    return renewal


def update_profile(
    repo: MembershipRepository, user_id: str, name: str, phone_number: str | None, member_type: str
) -> None:
    _require_profile(repo, user_id)
    repo.update_profile(
        user_id,
        {
            "name": name.strip(),
            "phone_number": (phone_number or "").strip() or None,
            "member_type": member_type,
            "updated_at": utcnow(),
        },
    )


def delete_member(repo: MembershipRepository, user_id: str, identity=auth) -> None:
    _require_profile(repo, user_id)
    identity.delete_account(user_id)


def update_expired_members(repo: MembershipRepository, now: datetime | None = None) -> list[Profile]:
    """Flip every still-active member whose expiration has passed to inactive."""
    now = as_utc(now or utcnow())
    expired = repo.list_active_profiles_expired_before(now)
    if not expired:
        logger.debug("no expired members found")
        return []

    repo.deactivate_profiles([p.id for p in expired], now)
    logger.info("deactivated %d expired members: %s", len(expired), ", ".join(p.email for p in expired))
    return expired


# ---------- payments ----------

def submit_payment(
    repo: MembershipRepository,
    storage: ProofStorage,
    user_id: str,
    plan_id: str,
    filename: str,
    content: bytes,
    now: datetime | None = None,
) -> Transaction:
    """Member buys a plan: proof is stored, transaction waits for admin approval."""
    _require_profile(repo, user_id)
    plan = repo.get_plan(plan_id)
    if plan is None or not plan.is_active:
        raise ValidationError("Selected plan is not available.")
    if plan.price <= 0:
        raise ValidationError("Selected plan has no price to pay.")

    now = as_utc(now or utcnow())
    proof_url = storage.save(user_id, filename, content, now)
    draft = plan_transaction(user_id, plan.price, plan.id, None, TransactionStatus.PENDING, proof_url, now)
    return _record(repo, draft)


def approve_payment(repo: MembershipRepository, transaction_id: str, now: datetime | None = None) -> RenewalResult:
    """PENDING -> APPROVED, then extend the member by the plan's duration from the approval time."""
    trx = repo.get_transaction(transaction_id)
    if trx is None:
        raise TransactionNotFoundError(transaction_id)
    status = transition_status(trx.status, TransactionStatus.APPROVED)
    profile = _require_profile(repo, trx.user_id)
    plan = repo.get_plan(trx.plan_id) if trx.plan_id else None

    now = as_utc(now or utcnow())
    days = plan.duration_days if plan is not None else 0
    renewal = compute_renewal(profile.expired_at, now, days, now)

    repo.update_transaction_status(trx.id, status, now)
    if days != 0:
        repo.update_profile(
            profile.id,
            {"expired_at": renewal.expired_at, "is_active": renewal.is_active, "updated_at": now},
        )
    logger.info("approved transaction %s; %s now expires %s", trx.id, profile.email, renewal.expired_at)
    return renewal


def reject_payment(repo: MembershipRepository, transaction_id: str, now: datetime | None = None) -> None:
    trx = repo.get_transaction(transaction_id)
    if trx is None:
        raise TransactionNotFoundError(transaction_id)
    status = transition_status(trx.status, TransactionStatus.REJECTED)
    repo.update_transaction_status(trx.id, status, as_utc(now or utcnow()))
    logger.info("rejected transaction %s", trx.id)


# ---------- plans ----------

def create_plan(
    repo: MembershipRepository, name: str, price: int, duration_days: int, description: str = ""
) -> Plan:
    if not name.strip():
        raise ValidationError("Plan name is required.")
    if price < 0:
        raise ValidationError("Plan price cannot be negative.")
    if duration_days < 0:
        raise ValidationError("Plan duration cannot be negative.")
    plan = repo.insert_plan(name.strip(), int(price), int(duration_days), description.strip())
    logger.info("created plan %s (%s, %d days, %d)", plan.id, plan.name, plan.duration_days, plan.price)
    return plan


def set_plan_active(repo: MembershipRepository, plan_id: str, is_active: bool) -> None:
    if repo.get_plan(plan_id) is None:
        raise ValidationError(f"Plan not found: {plan_id}")
    repo.set_plan_active(plan_id, is_active)
