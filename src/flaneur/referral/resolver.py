"""Account resolution across profiles and newsletter subscribers."""

import re

from sqlalchemy.orm import Session

from flaneur.accounts.models import AccountKind, AccountRef
from flaneur.accounts.store import AccountRepository, to_ref
from flaneur.referral.errors import InvalidInput

# Profiles first: the two tables are disjoint on codes, so order only affects cost
SEARCH_ORDER = (AccountKind.PROFILE, AccountKind.NEWSLETTER)

_CODE_RE = re.compile(r"^[a-z0-9_-]{1,32}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_code(code: object) -> str:
    """Trim and lower-case a referral code.

    Raises:
        InvalidInput: if the code is missing or malformed
    """
    if not isinstance(code, str):
        raise InvalidInput("Referral code must be a string")
    normalized = code.strip().lower()
    if not _CODE_RE.match(normalized):
        raise InvalidInput("Malformed referral code")
    return normalized


def normalize_email(email: object) -> str:
    """Trim and lower-case an email address.

    Raises:
        InvalidInput: if the email is missing or malformed
    """
    if not isinstance(email, str):
        raise InvalidInput("Email must be a string")
    normalized = email.strip().lower()
    if len(normalized) > 255 or not _EMAIL_RE.match(normalized):
        raise InvalidInput("Malformed email")
    return normalized


class AccountResolver:
    """Translate codes and emails into tagged account references.

    Read-only: never writes to either account table.
    """

    def __init__(self, session: Session):
        self.accounts = AccountRepository(session)

    def resolve_by_code(self, code: str) -> AccountRef | None:
        """Find the account holding a normalized referral code."""
        for kind in SEARCH_ORDER:
            account = self.accounts.find_by_code(kind, code)
            if account:
                return to_ref(kind, account)
        return None

    def resolve_by_email(self, email: str) -> AccountRef | None:
        """Find the account registered under a normalized email."""
        for kind in SEARCH_ORDER:
            account = self.accounts.find_by_email(kind, email)
            if account:
                return to_ref(kind, account)
        return None

    def get(self, kind: AccountKind, account_id: str) -> AccountRef | None:
        """Load one account by its tagged id."""
        account = self.accounts.get(kind, account_id)
        return to_ref(kind, account) if account else None

    def resolve(self, value: object) -> AccountRef | None:
        """Resolve either an email (contains ``@``) or a referral code."""
        if isinstance(value, str) and "@" in value:
            return self.resolve_by_email(normalize_email(value))
        return self.resolve_by_code(normalize_code(value))
