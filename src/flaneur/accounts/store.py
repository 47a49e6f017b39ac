"""Repository over the two account tables.

Both kinds expose the same four operations (by id, by code, by email and a
conditional code write), dispatched on ``AccountKind``.
"""

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from flaneur.accounts.models import AccountKind, AccountRef, NewsletterSubscriber, Profile
from flaneur.logging_config import get_logger

logger = get_logger(__name__)

Account = Profile | NewsletterSubscriber

_MODELS: dict[AccountKind, type[Profile] | type[NewsletterSubscriber]] = {
    AccountKind.PROFILE: Profile,
    AccountKind.NEWSLETTER: NewsletterSubscriber,
}


def to_ref(kind: AccountKind, account: Account) -> AccountRef:
    """Build the tagged reference for a loaded account row."""
    email = account.email.strip().lower() if account.email else None
    return AccountRef(kind=kind, id=account.id, email=email)


class AccountRepository:
    """Repository for Profile and NewsletterSubscriber lookups."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, kind: AccountKind, account_id: str) -> Account | None:
        """Get account by ID."""
        return self.session.get(_MODELS[kind], account_id)

    def find_by_code(self, kind: AccountKind, code: str) -> Account | None:
        """Get account holding a (normalized) referral code."""
        model = _MODELS[kind]
        return self.session.scalar(select(model).where(model.referral_code == code))

    def find_by_email(self, kind: AccountKind, email: str) -> Account | None:
        """Get account by (normalized) email, case-insensitively."""
        model = _MODELS[kind]
        return self.session.scalar(
            select(model).where(func.lower(model.email) == email).limit(1)
        )

    def find_subscriber(self, email: str, token: str) -> NewsletterSubscriber | None:
        """Get a newsletter subscriber authenticated by email + unsubscribe token."""
        return self.session.scalar(
            select(NewsletterSubscriber).where(
                func.lower(NewsletterSubscriber.email) == email,
                NewsletterSubscriber.unsubscribe_token == token,
            )
        )

    def assign_code(self, kind: AccountKind, account_id: str, code: str) -> bool:
        """Write a referral code onto an account that has none yet.

        Returns:
            False if the account already holds a code (or vanished), in which
            case nothing was written.
        """
        model = _MODELS[kind]
        result = self.session.execute(
            update(model)
            .where(model.id == account_id, model.referral_code.is_(None))
            .values(referral_code=code)
            .execution_options(synchronize_session=False)
        )
        assigned = result.rowcount == 1
        logger.debug("account_code_write", kind=kind.value, account_id=account_id, assigned=assigned)
        return assigned
