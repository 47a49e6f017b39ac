"""Shared fixtures: an in-memory database, account factories and a fake clock."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from flaneur.accounts.models import AccountKind, AccountRef, NewsletterSubscriber, Profile
from flaneur.referral.models import ReferralEvent
from flaneur.referral.service import ReferralService
from flaneur.storage.db import Database

TEST_SALT = "test-salt"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 10, 19, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(database, clock):
    return ReferralService(
        database=database,
        ip_salt=TEST_SALT,
        app_url="https://flaneur.test/",
        clock=clock,
    )


@pytest.fixture
def make_profile(database):
    def _make(email: str = "owner@example.com", referral_code: str | None = None) -> AccountRef:
        with database.session() as session:
            profile = Profile(email=email, referral_code=referral_code)
            session.add(profile)
            session.flush()
            return AccountRef(kind=AccountKind.PROFILE, id=profile.id, email=email)

    return _make


@pytest.fixture
def make_subscriber(database):
    def _make(
        email: str = "reader@example.com",
        referral_code: str | None = None,
        token: str = "unsub-token",
    ) -> AccountRef:
        with database.session() as session:
            subscriber = NewsletterSubscriber(
                email=email,
                referral_code=referral_code,
                unsubscribe_token=token,
            )
            session.add(subscriber)
            session.flush()
            return AccountRef(kind=AccountKind.NEWSLETTER, id=subscriber.id, email=email)

    return _make


@pytest.fixture
def ledger(database):
    """Snapshot of every referral event, oldest first."""
    def _ledger() -> list[ReferralEvent]:
        with database.session() as session:
            return list(session.scalars(select(ReferralEvent).order_by(ReferralEvent.id)))

    return _ledger
