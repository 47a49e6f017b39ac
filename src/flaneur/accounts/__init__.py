"""Account kinds a referral code can belong to."""

from flaneur.accounts.models import AccountKind, AccountRef, NewsletterSubscriber, Profile
from flaneur.accounts.store import AccountRepository

__all__ = ["AccountKind", "AccountRef", "AccountRepository", "NewsletterSubscriber", "Profile"]
