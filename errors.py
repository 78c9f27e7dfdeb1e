"""
errors.py
Exceptions raised by the membership core and the services around it.
"""

from __future__ import annotations


class GymError(Exception):
    """Base exception for all gym-app errors."""


class ValidationError(GymError):
    """Form input that cannot be used (bad number, bad date...)."""


class AuthError(GymError):
    """Sign-up, login or password-change failures."""


class MemberNotFoundError(GymError):
    def __init__(self, user_id: str):
        super().__init__(f"Member not found: {user_id}")
        self.user_id = user_id


class PlanNotResolvedError(GymError):
    """A payment has to be recorded but no plan could be resolved for it."""

    def __init__(self, amount: int):
        super().__init__(f"No plan available to record a payment of {amount}.")
        self.amount = amount


class TransactionNotFoundError(GymError):
    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction not found: {transaction_id}")
        self.transaction_id = transaction_id


class InvalidStatusTransitionError(GymError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move transaction from {current} to {target}.")
        self.current = current
        self.target = target
