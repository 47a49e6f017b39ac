"""Lazy referral code issuance."""

import secrets
from typing import Callable

from sqlalchemy.exc import IntegrityError

from flaneur.accounts.models import AccountRef
from flaneur.accounts.store import AccountRepository
from flaneur.logging_config import get_logger
from flaneur.referral.errors import AccountNotFound, GenerationExhausted
from flaneur.referral.models import ReferralCodeClaim
from flaneur.referral.resolver import AccountResolver
from flaneur.storage.db import Database

# Lowercase letters and digits, without 0, o, i, l, 1
CODE_ALPHABET = "abcdefghjkmnpqrstuvwxyz23456789"


def generate_code(length: int = 8) -> str:
    """Generate a random, readable referral code.

    Format: k7m2xq9p (8 chars by default). Uniqueness is checked by the issuer.
    """
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class CodeIssuer:
    """Give an account a referral code, exactly once.

    Every attempt runs in its own transaction: claim the candidate in the
    shared code namespace, then write it onto the account only if the account
    still has no code. A lost race rolls the claim back and the code that won
    is returned instead.
    """

    def __init__(
        self,
        database: Database,
        length: int = 8,
        max_attempts: int = 10,
        generator: Callable[[int], str] = generate_code,
    ):
        self.db = database
        self.length = length
        self.max_attempts = max_attempts
        self.generator = generator
        self.logger = get_logger(__name__)

    def _current_code(self, account: AccountRef) -> str | None:
        with self.db.session() as session:
            row = AccountRepository(session).get(account.kind, account.id)
            if row is None:
                raise AccountNotFound(f"{account.kind.value} {account.id} not found")
            return row.referral_code

    def ensure_code(self, account: AccountRef) -> str:
        """Return the account's referral code, generating one if it has none.

        Args:
            account: Account to issue a code for

        Returns:
            The persisted referral code

        Raises:
            AccountNotFound: if the account does not exist
            GenerationExhausted: if every candidate collided
        """
        existing = self._current_code(account)
        if existing:
            return existing

        for attempt in range(1, self.max_attempts + 1):
            candidate = self.generator(self.length)
            lost_race = False

            try:
                with self.db.session() as session:
                    if AccountResolver(session).resolve_by_code(candidate):
                        self.logger.debug("referral_code_collision", attempt=attempt)
                        continue

                    session.add(
                        ReferralCodeClaim(
                            code=candidate,
                            account_type=account.kind.value,
                            account_id=account.id,
                        )
                    )
                    session.flush()

                    if not AccountRepository(session).assign_code(account.kind, account.id, candidate):
                        # Someone else wrote a code first; release our claim
                        session.rollback()
                        lost_race = True
            except IntegrityError:
                self.logger.debug("referral_code_claim_conflict", attempt=attempt)
                continue

            if lost_race:
                winner = self._current_code(account)
                self.logger.info(
                    "referral_code_race_lost",
                    kind=account.kind.value,
                    account_id=account.id,
                    code=winner,
                )
                if winner:
                    return winner
                # Account lost its row between reads; nothing to attach a code to
                raise AccountNotFound(f"{account.kind.value} {account.id} not found")

            self.logger.info(
                "referral_code_issued",
                kind=account.kind.value,
                account_id=account.id,
                code=candidate,
                attempts=attempt,
            )
            return candidate

        self.logger.warning(
            "referral_code_generation_exhausted",
            kind=account.kind.value,
            account_id=account.id,
            attempts=self.max_attempts,
        )
        raise GenerationExhausted(self.max_attempts)
