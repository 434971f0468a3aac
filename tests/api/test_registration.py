from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi.testclient import TestClient

from app.api import registration as registration_api
from app.core.errors import DuplicateConstraintError, RegistrationError
from app.services import lifecycle_service, registration_service
from tests.conftest import auth_headers, register, registration_payload

# ---- POST /api/registration/register ----


def test_register_returns_trial_and_token(client: TestClient) -> None:
    resp = client.post("/api/registration/register", json=registration_payload())
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Dojo registered successfully"

    data = body["data"]
    assert data["organization"]["name"] == "Tiger Dojo"
    assert data["organization"]["slug"] == "tiger-dojo"
    assert data["organization"]["subscription"] == "trial"
    assert data["school"]["name"] == "Tiger Dojo Main School"
    assert data["school"]["slug"] == "tiger-dojo-main-school"
    assert data["user"]["email"] == "a@b.com"
    assert data["user"]["role"] == "org_admin"
    assert "passwordHash" not in data["user"]
    assert data["trial"]["days"] == 30

    end = datetime.fromisoformat(data["trial"]["endDate"])
    remaining = end - datetime.now(UTC)
    assert timedelta(days=29) < remaining <= timedelta(days=30)


def test_register_token_carries_identity_claims(client: TestClient) -> None:
    data = register(client)
    claims = jwt.decode(data["token"], options={"verify_signature": False})
    assert claims["sub"] == data["user"]["id"]
    assert claims["email"] == "a@b.com"
    assert claims["role"] == "org_admin"
    assert claims["org_id"] == data["organization"]["id"]
    assert claims["school_id"] == data["school"]["id"]
    assert timedelta(days=29) < timedelta(seconds=claims["exp"] - claims["iat"]) <= timedelta(days=30)


def test_register_normalizes_email(client: TestClient) -> None:
    data = register(client, email="  Sensei@Example.COM ")
    assert data["user"]["email"] == "sensei@example.com"


def test_register_duplicate_email_conflicts(client: TestClient) -> None:
    register(client)
    resp = client.post(
        "/api/registration/register",
        json=registration_payload(email="A@B.com", organizationName="Other Dojo"),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == registration_api.EMAIL_TAKEN


def test_register_same_name_twice_gets_suffixed_slug(client: TestClient) -> None:
    first = register(client, email="one@example.com")
    second = register(client, email="two@example.com")
    assert first["organization"]["slug"] == "tiger-dojo"
    assert second["organization"]["slug"] == "tiger-dojo-1"


def test_register_uses_first_school_overrides(client: TestClient) -> None:
    data = register(client, firstSchoolName="Tiger Downtown")
    assert data["school"]["name"] == "Tiger Downtown"
    assert data["school"]["slug"] == "tiger-downtown"


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"password": "short1A"},
        {"password": "alllowercase1"},
        {"password": "NoDigitsHere"},
        {"phone": "call me"},
        {"martialArtTypes": []},
        {"martialArtTypes": ["  "]},
        {"numberOfSchools": 0},
        {"estimatedStudents": 10001},
        {"organizationName": "X"},
        {"firstName": "A"},
        {"website": "ftp://dojo.example"},
        {"city": "   "},
    ],
)
def test_register_rejects_invalid_input(client: TestClient, overrides: dict) -> None:
    resp = client.post("/api/registration/register", json=registration_payload(**overrides))
    assert resp.status_code == 422


def test_register_rejects_missing_field(client: TestClient) -> None:
    payload = registration_payload()
    del payload["zipCode"]
    resp = client.post("/api/registration/register", json=payload)
    assert resp.status_code == 422


def test_register_accepts_website(client: TestClient) -> None:
    data = register(client, website="https://tiger.example")
    me = client.get("/api/auth/me", headers=auth_headers(data["token"])).json()
    assert me["user"]["organization"]["website"] == "https://tiger.example"


def test_register_race_on_email_maps_to_conflict(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _lost_race(*_args, **_kwargs):
        dup = DuplicateConstraintError("users.email", "a@b.com")
        raise RegistrationError(dup) from dup

    monkeypatch.setattr(registration_service, "register_dojo", _lost_race)
    resp = client.post("/api/registration/register", json=registration_payload())
    assert resp.status_code == 409
    assert resp.json()["detail"] == registration_api.EMAIL_TAKEN


def test_register_internal_failure_is_opaque(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _broken(*_args, **_kwargs):
        cause = RuntimeError("db exploded at 10.0.0.3")
        raise RegistrationError(cause) from cause

    monkeypatch.setattr(registration_service, "register_dojo", _broken)
    resp = client.post("/api/registration/register", json=registration_payload())
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Registration failed"


# ---- POST /api/registration/check-email ----


def test_check_email_availability(client: TestClient) -> None:
    url = "/api/registration/check-email"
    assert client.post(url, json={"email": "a@b.com"}).json() == {
        "success": True,
        "available": True,
    }
    register(client)
    assert client.post(url, json={"email": " A@B.COM"}).json()["available"] is False


def test_check_email_rejects_malformed(client: TestClient) -> None:
    resp = client.post("/api/registration/check-email", json={"email": "nope"})
    assert resp.status_code == 422


# ---- GET /api/registration/trial-status ----


def test_trial_status_requires_auth(client: TestClient) -> None:
    assert client.get("/api/registration/trial-status").status_code == 401


def test_trial_status_for_fresh_registration(
    client: TestClient, admin_headers: dict
) -> None:
    resp = client.get("/api/registration/trial-status", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["isExpired"] is False
    assert data["daysRemaining"] == 30


# ---- POST /api/registration/extend-trial ----


def test_extend_trial_moves_end_date(client: TestClient, registered: dict) -> None:
    headers = auth_headers(registered["token"])
    before = datetime.fromisoformat(registered["trial"]["endDate"])

    resp = client.post("/api/registration/extend-trial", json={"days": 10}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Trial extended by 10 days"
    after = datetime.fromisoformat(resp.json()["data"]["trialEndDate"])
    assert after - before == timedelta(days=10)


def test_trial_status_follows_the_clock(
    client: TestClient, admin_headers: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    url = "/api/registration/trial-status"
    assert client.get(url, headers=admin_headers).json()["data"]["isExpired"] is False

    later = datetime.now(UTC) + timedelta(days=31)

    class _Later(datetime):
        @classmethod
        def now(cls, tz=None):
            return later

    monkeypatch.setattr(lifecycle_service, "datetime", _Later)
    data = client.get(url, headers=admin_headers).json()["data"]
    assert data["isExpired"] is True
    assert data["daysRemaining"] == 0


def test_extend_trial_shows_in_trial_status(
    client: TestClient, admin_headers: dict
) -> None:
    url = "/api/registration/trial-status"
    assert client.get(url, headers=admin_headers).json()["data"]["daysRemaining"] == 30

    client.post("/api/registration/extend-trial", json={"days": 5}, headers=admin_headers)
    assert client.get(url, headers=admin_headers).json()["data"]["daysRemaining"] == 35


@pytest.mark.parametrize("days", [0, 91, -1])
def test_extend_trial_rejects_out_of_range(
    client: TestClient, admin_headers: dict, days: int
) -> None:
    resp = client.post(
        "/api/registration/extend-trial", json={"days": days}, headers=admin_headers
    )
    assert resp.status_code == 422


def test_extend_trial_requires_auth(client: TestClient) -> None:
    resp = client.post("/api/registration/extend-trial", json={"days": 5})
    assert resp.status_code == 401


# ---- POST /api/registration/convert-subscription ----


def test_convert_subscription_to_basic(client: TestClient, admin_headers: dict) -> None:
    resp = client.post(
        "/api/registration/convert-subscription",
        json={"subscriptionType": "basic"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["subscription"] == "basic"
    assert data["subscriptionStatus"] == "active"
    assert data["settings"]["allowedSchools"] == 3
    assert data["settings"]["allowedStudents"] == 200
    assert data["settings"]["trialFeatures"] is False
    assert data["settings"]["features"]["customBranding"] is False

    expiry = datetime.fromisoformat(data["subscriptionExpiry"])
    assert timedelta(days=364) < expiry - datetime.now(UTC) <= timedelta(days=366)


def test_convert_subscription_rejects_unknown_tier(
    client: TestClient, admin_headers: dict
) -> None:
    resp = client.post(
        "/api/registration/convert-subscription",
        json={"subscriptionType": "platinum"},
        headers=admin_headers,
    )
    assert resp.status_code == 422


def test_convert_subscription_is_visible_in_me(
    client: TestClient, admin_headers: dict
) -> None:
    client.post(
        "/api/registration/convert-subscription",
        json={"subscriptionType": "enterprise"},
        headers=admin_headers,
    )
    org = client.get("/api/auth/me", headers=admin_headers).json()["user"]["organization"]
    assert org["subscription"] == "enterprise"
    assert org["settings"]["allowedSchools"] == -1
