"""
models.py
Domain types (profiles, plans, transactions) and their fixed vocabularies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

MEMBER_TYPES = ["Reguler", "VIP"]
DEFAULT_MEMBER_TYPE = "Reguler"

# proof_url markers for payments entered by an admin (no uploaded proof)
PROOF_MANUAL_REGISTRATION = "MANUAL_REGISTRATION_ADMIN"
PROOF_MANUAL_EDIT = "MANUAL_EDIT_ADMIN"
PROOF_MANUAL_CASH = "MANUAL_CASH_ADMIN"


def is_manual_proof(proof_url: str | None) -> bool:
    return bool(proof_url) and "MANUAL" in proof_url


class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    email: str
    phone_number: str | None
    role: Role
    is_active: bool
    expired_at: datetime | None
    member_type: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    price: int  # whole Rupiah
    duration_days: int
    is_active: bool
    description: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True)
class Transaction:
    id: str
    user_id: str
    plan_id: str | None
    amount: int
    status: TransactionStatus
    proof_url: str | None
    created_at: datetime
    updated_at: datetime | None = None


@dataclass(frozen=True)
class TransactionDraft:
    """A transaction that should be inserted; ids and timestamps are assigned by the store."""

    user_id: str
    plan_id: str
    amount: int
    status: TransactionStatus
    proof_url: str
    created_at: datetime


@dataclass(frozen=True)
class RenewalResult:
    expired_at: datetime | None
    is_active: bool
