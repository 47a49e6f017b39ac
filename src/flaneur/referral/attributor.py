"""Conversion attribution: tie a signup back to the click that led to it."""

from datetime import datetime
from typing import Callable

from flaneur.logging_config import get_logger
from flaneur.referral.errors import ReferralOutcome, SelfReferral
from flaneur.referral.repo import ReferralEventRepository
from flaneur.referral.resolver import AccountResolver, normalize_code, normalize_email
from flaneur.storage.db import Database
from flaneur.storage.models import utcnow

logger = get_logger(__name__)


class ConversionAttributor:
    """Record each conversion exactly once as a terminal ledger entry.

    Prefers upgrading the newest unmatched click for the code, which keeps the
    click-to-conversion delta. Falls back to inserting a ``converted`` event
    when there is no such click, or when a concurrent conversion upgraded it
    first.
    """

    def __init__(self, database: Database, clock: Callable[[], datetime] = utcnow):
        self.db = database
        self.clock = clock

    def record(self, code: object, referred_email: object) -> ReferralOutcome:
        """Attribute a conversion to the owner of ``code``.

        Args:
            code: Referral code the prospect arrived with
            referred_email: Email the prospect signed up with

        Returns:
            UPGRADED, CONVERTED or NOT_FOUND

        Raises:
            InvalidInput: if the code or email is malformed
            SelfReferral: if the email belongs to the code's owner (nothing written)
        """
        code = normalize_code(code)
        referred_email = normalize_email(referred_email)

        with self.db.session() as session:
            resolver = AccountResolver(session)
            events = ReferralEventRepository(session)

            referrer = resolver.resolve_by_code(code)
            if not referrer:
                logger.debug("referral_conversion_unknown_code", code=code)
                return ReferralOutcome.NOT_FOUND

            # Compare against the owner's current email, not the one cached on the ref
            owner = resolver.get(referrer.kind, referrer.id)
            if owner and owner.email == referred_email:
                logger.info("referral_self_referral_rejected", code=code)
                raise SelfReferral("Referrer cannot convert on their own code")

            # May be None for a brand-new signup; the email is recorded regardless
            referred = resolver.resolve_by_email(referred_email)
            now = self.clock()

            click = events.latest_unmatched_click(code)
            if click and events.mark_converted(click.id, referred_email, referred, now):
                logger.info(
                    "referral_click_converted",
                    code=code,
                    event_id=click.id,
                    referred_type=referred.kind.value if referred else None,
                )
                return ReferralOutcome.UPGRADED

            if click:
                logger.info("referral_click_claimed_concurrently", code=code, event_id=click.id)

            event = events.add_conversion(code, referrer, referred_email, referred, now)
            logger.info(
                "referral_direct_conversion",
                code=code,
                event_id=event.id,
                referred_type=referred.kind.value if referred else None,
            )
            return ReferralOutcome.CONVERTED
