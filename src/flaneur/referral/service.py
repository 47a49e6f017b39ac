"""Referral service: the engine's public operations.

- issue_code / issue_code_for_subscriber: call-and-response, errors surface
- track_click / record_conversion: fire-and-forget, always acknowledge
- resolve: diagnostics lookup by code or email
- get_stats: click and conversion counts for one referrer
"""

from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from flaneur.accounts.models import AccountKind, AccountRef
from flaneur.accounts.store import AccountRepository, to_ref
from flaneur.logging_config import get_logger
from flaneur.referral.attributor import ConversionAttributor
from flaneur.referral.codes import CodeIssuer
from flaneur.referral.errors import (
    AccountNotFound,
    InvalidInput,
    ReferralOutcome,
    SelfReferral,
    StoreUnavailable,
)
from flaneur.referral.repo import ReferralEventRepository
from flaneur.referral.resolver import AccountResolver, normalize_email
from flaneur.referral.tracker import ClickRecorder
from flaneur.settings import settings
from flaneur.storage.db import Database, db
from flaneur.storage.models import utcnow

logger = get_logger(__name__)

# Expected failures of fire-and-forget operations, by outcome
_SOFT_FAILURES: dict[type[Exception], ReferralOutcome] = {
    InvalidInput: ReferralOutcome.INVALID_INPUT,
    AccountNotFound: ReferralOutcome.NOT_FOUND,
    SelfReferral: ReferralOutcome.SELF_REFERRAL,
    SQLAlchemyError: ReferralOutcome.STORE_UNAVAILABLE,
}


def _acknowledge(operation: str, action: Callable[[], ReferralOutcome]) -> ReferralOutcome:
    """Run a fire-and-forget operation; no exception ever leaves this call."""
    try:
        return action()
    except Exception as e:
        for error_type, outcome in _SOFT_FAILURES.items():
            if isinstance(e, error_type):
                break
        else:
            outcome = ReferralOutcome.FAILED

        if outcome in (ReferralOutcome.STORE_UNAVAILABLE, ReferralOutcome.FAILED):
            logger.exception(f"{operation}_failed", outcome=outcome.value)
        else:
            logger.debug(f"{operation}_skipped", outcome=outcome.value, reason=str(e))
        return outcome


class ReferralService:
    """Service for referral codes, click tracking and conversion attribution."""

    def __init__(
        self,
        database: Database | None = None,
        ip_salt: str | None = None,
        dedup_window: timedelta | None = None,
        code_length: int | None = None,
        max_attempts: int | None = None,
        app_url: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize referral service.

        Args default to the global settings and database.
        """
        self.db = database or db
        self.app_url = (app_url or settings.app_url).rstrip("/")
        self.logger = get_logger(__name__)

        self.issuer = CodeIssuer(
            self.db,
            length=code_length or settings.referral_code_length,
            max_attempts=max_attempts or settings.referral_code_max_attempts,
        )
        self.clicks = ClickRecorder(
            self.db,
            salt=ip_salt or settings.referral_ip_salt,
            window=dedup_window or timedelta(hours=settings.referral_dedup_window_hours),
            clock=clock,
        )
        self.conversions = ConversionAttributor(self.db, clock=clock)

    def referral_link(self, code: str) -> str:
        """Shareable invite URL for a code."""
        return f"{self.app_url}/invite?ref={code}"

    def issue_code(self, account: AccountRef) -> str:
        """Get existing referral code or create a new one for an account.

        Raises:
            AccountNotFound: if the account does not exist
            GenerationExhausted: if no unique code could be generated
            StoreUnavailable: if the database failed
        """
        try:
            return self.issuer.ensure_code(account)
        except SQLAlchemyError as e:
            self.logger.error("referral_code_store_error", kind=account.kind.value, error=str(e))
            raise StoreUnavailable("Could not issue referral code") from e

    def authenticate_subscriber(self, email: str, token: str) -> AccountRef:
        """Find the newsletter subscriber owning an email + unsubscribe token pair.

        Raises:
            InvalidInput: if email or token is missing or malformed
            AccountNotFound: if no subscriber matches the email + token pair
        """
        email = normalize_email(email)
        if not token:
            raise InvalidInput("Token required")

        try:
            with self.db.session() as session:
                subscriber = AccountRepository(session).find_subscriber(email, token)
                if not subscriber:
                    raise AccountNotFound("Subscriber not found")
                return to_ref(AccountKind.NEWSLETTER, subscriber)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not look up subscriber") from e

    def issue_code_for_subscriber(self, email: str, token: str) -> str:
        """Issue a code for a subscriber who is not signed in (email + token auth)."""
        return self.issue_code(self.authenticate_subscriber(email, token))

    def track_click(self, code: object, client_ip: str | None) -> ReferralOutcome:
        """Track a click on a referral link. Never raises."""
        return _acknowledge("referral_click", lambda: self.clicks.record(code, client_ip))

    def record_conversion(self, code: object, referred_email: object) -> ReferralOutcome:
        """Record a conversion for a referral code. Never raises."""
        return _acknowledge(
            "referral_conversion",
            lambda: self.conversions.record(code, referred_email),
        )

    def resolve(self, value: object) -> AccountRef:
        """Resolve a referral code or email to an account.

        Raises:
            InvalidInput: if the value is neither a valid code nor a valid email
            AccountNotFound: if nothing matches
            StoreUnavailable: if the database failed
        """
        try:
            with self.db.session() as session:
                account = AccountResolver(session).resolve(value)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not resolve account") from e

        if not account:
            raise AccountNotFound("No account for this code or email")
        return account

    def get_stats(self, account: AccountRef) -> dict[str, Any]:
        """Get referral statistics for an account, issuing its code if needed.

        Returns:
            Dict with code, link, clicks, conversions and pending clicks
        """
        code = self.issue_code(account)

        try:
            with self.db.session() as session:
                stats = ReferralEventRepository(session).stats_for_referrer(account)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not load referral stats") from e

        return {
            "code": code,
            "link": self.referral_link(code),
            **stats,
        }


# Singleton instance
referral_service = ReferralService()
