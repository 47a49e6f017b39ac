"""Tests for the referral HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from flaneur.api.main import app
from flaneur.api.v1.referral import current_profile_id, get_referral_service
from flaneur.referral.errors import GenerationExhausted
from flaneur.referral.tracker import hash_visitor
from tests.conftest import TEST_SALT


@pytest.fixture
def client(service):
    app.dependency_overrides[get_referral_service] = lambda: service
    # No lifespan: tables come from the test database fixture
    yield TestClient(app)
    app.dependency_overrides.clear()


def sign_in(profile_id):
    app.dependency_overrides[current_profile_id] = lambda: profile_id


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_track_uses_first_forwarded_ip(client, make_profile, ledger):
    make_profile(referral_code="abc")

    response = client.post(
        "/api/v1/referral/track",
        json={"code": "ABC"},
        headers={"X-Forwarded-For": "1.2.3.4, 10.0.0.1"},
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    [event] = ledger()
    assert event.ip_hash == hash_visitor(TEST_SALT, "1.2.3.4", "abc")


@pytest.mark.parametrize("payload", [{}, {"code": None}, {"code": 123}, {"code": "doesnotexist"}])
def test_track_always_acknowledges(client, ledger, payload):
    response = client.post("/api/v1/referral/track", json=payload)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert ledger() == []


MALFORMED_BODIES = [
    {},
    {"content": b"not json", "headers": {"Content-Type": "application/json"}},
    {"json": ["abc"]},
    {"json": "abc"},
]


@pytest.mark.parametrize("path", ["/api/v1/referral/track", "/api/v1/referral/convert"])
@pytest.mark.parametrize("kwargs", MALFORMED_BODIES)
def test_malformed_body_is_acknowledged(client, make_profile, ledger, path, kwargs):
    make_profile(referral_code="abc")

    response = client.post(path, **kwargs)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert ledger() == []


def test_convert_records_conversion(client, make_profile, ledger):
    make_profile(referral_code="abc")

    response = client.post("/api/v1/referral/convert", json={"code": "abc", "email": "new@example.com"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    [event] = ledger()
    assert event.status == "converted"
    assert event.referred_email == "new@example.com"


@pytest.mark.parametrize(
    "payload",
    [{}, {"code": "abc"}, {"email": "new@example.com"}, {"code": "abc", "email": "owner@example.com"}],
)
def test_convert_always_acknowledges(client, make_profile, ledger, payload):
    make_profile(email="owner@example.com", referral_code="abc")

    response = client.post("/api/v1/referral/convert", json=payload)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert ledger() == []


def test_code_requires_authentication(client):
    response = client.get("/api/v1/referral/code")

    assert response.status_code == 401


def test_code_for_signed_in_profile(client, make_profile):
    owner = make_profile()
    sign_in(owner.id)

    first = client.get("/api/v1/referral/code")
    second = client.get("/api/v1/referral/code")

    assert first.status_code == 200
    body = first.json()
    assert body["link"] == f"https://flaneur.test/invite?ref={body['code']}"
    assert second.json()["code"] == body["code"]


def test_code_for_unknown_profile_is_404(client):
    sign_in("00000000-0000-0000-0000-000000000000")

    response = client.get("/api/v1/referral/code")

    assert response.status_code == 404


def test_code_for_subscriber_with_token(client, make_subscriber):
    make_subscriber(email="reader@example.com", referral_code="read1234", token="tok")

    response = client.get("/api/v1/referral/code", params={"email": "Reader@example.com", "token": "tok"})

    assert response.status_code == 200
    assert response.json()["code"] == "read1234"


def test_code_for_subscriber_with_wrong_token_is_404(client, make_subscriber):
    make_subscriber(email="reader@example.com", token="tok")

    response = client.get("/api/v1/referral/code", params={"email": "reader@example.com", "token": "nope"})

    assert response.status_code == 404


def test_code_generation_exhausted_is_503(client, service, make_profile, monkeypatch):
    owner = make_profile()
    sign_in(owner.id)

    def exhausted(account):
        raise GenerationExhausted(10)

    monkeypatch.setattr(service, "issue_code", exhausted)

    response = client.get("/api/v1/referral/code")

    assert response.status_code == 503


def test_resolve_code(client, make_subscriber):
    subscriber = make_subscriber(referral_code="read1234")

    response = client.get("/api/v1/referral/resolve", params={"q": "READ1234"})

    assert response.status_code == 200
    assert response.json() == {"kind": "newsletter", "id": subscriber.id}


def test_resolve_unknown_and_invalid(client):
    assert client.get("/api/v1/referral/resolve", params={"q": "nobody99"}).status_code == 404
    assert client.get("/api/v1/referral/resolve", params={"q": "!!"}).status_code == 400


def test_stats_for_signed_in_profile(client, make_profile):
    owner = make_profile()
    sign_in(owner.id)
    code = client.get("/api/v1/referral/code").json()["code"]
    client.post("/api/v1/referral/track", json={"code": code}, headers={"X-Forwarded-For": "9.9.9.9"})
    client.post("/api/v1/referral/convert", json={"code": code, "email": "friend@example.com"})

    response = client.get("/api/v1/referral/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == code
    assert body["clicks"] == 1
    assert body["conversions"] == 1
    assert body["pending"] == 0
