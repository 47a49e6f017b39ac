"""Tests for click recording and the dedup window."""

from datetime import datetime, timedelta

import pytest

from flaneur.referral.errors import InvalidInput, ReferralOutcome
from flaneur.referral.repo import ReferralEventRepository
from flaneur.referral.tracker import ClickRecorder, dedup_bucket, hash_visitor
from tests.conftest import TEST_SALT


@pytest.fixture
def recorder(database, clock):
    return ClickRecorder(database, salt=TEST_SALT, clock=clock)


def test_hash_is_keyed_by_code_and_salt():
    base = hash_visitor("salt", "1.2.3.4", "abc")

    assert len(base) == 64
    assert "1.2.3.4" not in base
    assert hash_visitor("salt", "1.2.3.4", "abd") != base
    assert hash_visitor("other", "1.2.3.4", "abc") != base
    assert hash_visitor("salt", None, "abc") == hash_visitor("salt", "unknown", "abc")


def test_dedup_bucket_changes_once_per_window():
    window = timedelta(hours=24)
    start = datetime(2026, 10, 19, 0, 0, 0)

    assert dedup_bucket(start, window) == dedup_bucket(start + timedelta(hours=23, minutes=59), window)
    assert dedup_bucket(start + window, window) == dedup_bucket(start, window) + 1


def test_click_creates_clicked_event(recorder, make_profile, ledger, clock):
    owner = make_profile(referral_code="abc")

    assert recorder.record(" ABC ", "1.2.3.4") == ReferralOutcome.TRACKED

    [event] = ledger()
    assert event.code == "abc"
    assert event.status == "clicked"
    assert event.referrer_type == "profile"
    assert event.referrer_id == owner.id
    assert event.ip_hash == hash_visitor(TEST_SALT, "1.2.3.4", "abc")
    assert event.referred_email is None
    assert event.referred_type is None
    assert event.clicked_at == clock.now
    assert event.converted_at is None


def test_repeat_click_within_window_is_collapsed(recorder, make_profile, ledger, clock):
    make_profile(referral_code="abc")

    assert recorder.record("abc", "1.2.3.4") == ReferralOutcome.TRACKED
    clock.advance(hours=23, minutes=59)
    assert recorder.record("abc", "1.2.3.4") == ReferralOutcome.DUPLICATE

    assert len(ledger()) == 1


def test_click_after_window_creates_second_event(recorder, make_profile, ledger, clock):
    make_profile(referral_code="abc")

    recorder.record("abc", "1.2.3.4")
    clock.advance(hours=1)
    recorder.record("abc", "1.2.3.4")
    clock.advance(hours=23, minutes=1)

    assert recorder.record("abc", "1.2.3.4") == ReferralOutcome.TRACKED
    assert len(ledger()) == 2


def test_window_is_rolling_not_calendar(recorder, make_profile, ledger, clock):
    make_profile(referral_code="abc")
    clock.now = datetime(2026, 10, 19, 23, 59, 0)

    recorder.record("abc", "1.2.3.4")
    clock.advance(minutes=2)

    # Next calendar day, but still inside 24 hours of the first click
    assert recorder.record("abc", "1.2.3.4") == ReferralOutcome.DUPLICATE
    assert len(ledger()) == 1


def test_different_visitors_and_codes_are_independent(recorder, make_profile, make_subscriber, ledger):
    make_profile(referral_code="abc")
    make_subscriber(referral_code="xyz")

    assert recorder.record("abc", "1.2.3.4") == ReferralOutcome.TRACKED
    assert recorder.record("abc", "5.6.7.8") == ReferralOutcome.TRACKED
    assert recorder.record("xyz", "1.2.3.4") == ReferralOutcome.TRACKED

    events = ledger()
    assert len(events) == 3
    assert events[2].referrer_type == "newsletter"


def test_unknown_code_leaves_ledger_unchanged(recorder, ledger):
    assert recorder.record("doesnotexist", "1.2.3.4") == ReferralOutcome.NOT_FOUND
    assert ledger() == []


def test_malformed_code_raises_invalid_input(recorder):
    with pytest.raises(InvalidInput):
        recorder.record("", "1.2.3.4")


def test_concurrent_duplicate_hits_unique_constraint(recorder, make_profile, ledger, monkeypatch):
    make_profile(referral_code="abc")
    recorder.record("abc", "1.2.3.4")

    # Both requests passed the window check before either inserted
    monkeypatch.setattr(ReferralEventRepository, "recent_click_exists", lambda self, ip_hash, since: False)

    assert recorder.record("abc", "1.2.3.4") == ReferralOutcome.DUPLICATE
    assert len(ledger()) == 1
