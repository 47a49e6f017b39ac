"""Referral attribution engine.

Issues referral codes, records link clicks (deduplicated per visitor and
code within a rolling window) and attributes later conversions back to the
referring profile or newsletter subscriber.
"""

from flaneur.referral.errors import (
    AccountNotFound,
    GenerationExhausted,
    InvalidInput,
    ReferralError,
    ReferralOutcome,
    SelfReferral,
    StoreUnavailable,
)
from flaneur.referral.models import ReferralCodeClaim, ReferralEvent, ReferralStatus
from flaneur.referral.service import ReferralService, referral_service

__all__ = [
    "AccountNotFound",
    "GenerationExhausted",
    "InvalidInput",
    "ReferralCodeClaim",
    "ReferralError",
    "ReferralEvent",
    "ReferralOutcome",
    "ReferralService",
    "ReferralStatus",
    "SelfReferral",
    "StoreUnavailable",
    "referral_service",
]
