"""Referral engine error taxonomy and operation outcomes."""

from enum import Enum


class ReferralError(Exception):
    """Base class for referral engine errors."""
    pass


class InvalidInput(ReferralError):
    """Missing or malformed code or email, rejected before any lookup."""
    pass


class AccountNotFound(ReferralError):
    """Unknown referral code, email or account id."""
    pass


class SelfReferral(ReferralError):
    """A code's owner tried to convert on their own code."""
    pass


class GenerationExhausted(ReferralError):
    """No unique referral code could be produced; retry later."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"No unique referral code after {attempts} attempts")


class StoreUnavailable(ReferralError):
    """A database call failed or timed out."""
    pass


class ReferralOutcome(str, Enum):
    """What a fire-and-forget operation actually did.

    Callers only ever see an acknowledgement; the outcome exists for logging,
    diagnostics and tests.
    """
    TRACKED = "tracked"
    DUPLICATE = "duplicate"
    UPGRADED = "upgraded"
    CONVERTED = "converted"
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    SELF_REFERRAL = "self_referral"
    STORE_UNAVAILABLE = "store_unavailable"
    FAILED = "failed"
