"""Referral link click recording with per-visitor deduplication."""

import hashlib
import hmac
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import IntegrityError

from flaneur.logging_config import get_logger
from flaneur.referral.errors import ReferralOutcome
from flaneur.referral.repo import ReferralEventRepository
from flaneur.referral.resolver import AccountResolver, normalize_code
from flaneur.storage.db import Database
from flaneur.storage.models import utcnow

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1)


def hash_visitor(salt: str, client_ip: str | None, code: str) -> str:
    """Salted hash of IP + code.

    Keyed by code as well as IP so one visitor cannot be correlated across
    different referral codes.
    """
    message = f"{client_ip or 'unknown'}{code}".encode("utf-8")
    return hmac.new(salt.encode("utf-8"), message, hashlib.sha256).hexdigest()


def dedup_bucket(moment: datetime, window: timedelta) -> int:
    """Index of the fixed window-sized slot ``moment`` falls into."""
    return int((moment - _EPOCH) // window)


class ClickRecorder:
    """Record at most one click per (ip hash, code) per rolling window.

    The rolling-window lookup and the insert are separate statements. A unique
    constraint on (ip_hash, dedup_bucket) turns the common concurrent duplicate
    into an IntegrityError, reported as ``DUPLICATE``. Two racing clicks that
    straddle a bucket boundary can still both land.
    """

    def __init__(
        self,
        database: Database,
        salt: str,
        window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = database
        self.salt = salt
        self.window = window
        self.clock = clock

    def record(self, code: object, client_ip: str | None) -> ReferralOutcome:
        """Record a click on a referral link.

        Args:
            code: Referral code from the link
            client_ip: Visitor IP (hashed, never stored)

        Returns:
            TRACKED, DUPLICATE or NOT_FOUND

        Raises:
            InvalidInput: if the code is malformed
        """
        code = normalize_code(code)

        with self.db.session() as session:
            referrer = AccountResolver(session).resolve_by_code(code)
            if not referrer:
                logger.debug("referral_click_unknown_code", code=code)
                return ReferralOutcome.NOT_FOUND

            ip_hash = hash_visitor(self.salt, client_ip, code)
            now = self.clock()
            events = ReferralEventRepository(session)

            if events.recent_click_exists(ip_hash, now - self.window):
                logger.debug("referral_click_already_tracked", code=code)
                return ReferralOutcome.DUPLICATE

        try:
            with self.db.session() as session:
                event = ReferralEventRepository(session).add_click(
                    code=code,
                    referrer=referrer,
                    ip_hash=ip_hash,
                    dedup_bucket=dedup_bucket(now, self.window),
                    clicked_at=now,
                )
        except IntegrityError:
            logger.info("referral_click_concurrent_duplicate", code=code)
            return ReferralOutcome.DUPLICATE

        logger.info(
            "referral_click_tracked",
            code=code,
            event_id=event.id,
            referrer_type=referrer.kind.value,
        )
        return ReferralOutcome.TRACKED
