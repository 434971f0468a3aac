from __future__ import annotations

import sys
from pathlib import Path

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.models.registration import RegistrationInput  # noqa: E402
from app.repos.identity_store import identity_store  # noqa: E402
from app.services.cache import cache_service  # noqa: E402

REGISTRATION_PAYLOAD: dict = {
    "organizationName": "Tiger Dojo",
    "businessType": "dojo",
    "martialArtTypes": ["Karate"],
    "numberOfSchools": 1,
    "estimatedStudents": 50,
    "email": "a@b.com",
    "phone": "555-123-4567",
    "address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zipCode": "62701",
    "country": "USA",
    "firstName": "Al",
    "lastName": "Bo",
    "password": "Passw0rd",
}


@pytest.fixture(autouse=True)
def reset_identity_store() -> None:
    """Start every test with an empty in-memory store."""
    if hasattr(identity_store, "clear"):
        identity_store.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "clear"):
        cache_service.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def registration_payload(**overrides) -> dict:
    return {**REGISTRATION_PAYLOAD, **overrides}


def make_registration_input(**overrides) -> RegistrationInput:
    fields = {
        "organization_name": "Tiger Dojo",
        "business_type": "dojo",
        "martial_art_types": ("Karate",),
        "number_of_schools": 1,
        "estimated_students": 50,
        "email": "a@b.com",
        "phone": "555-123-4567",
        "address": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "country": "USA",
        "first_name": "Al",
        "last_name": "Bo",
        "password": "Passw0rd",
    }
    fields.update(overrides)
    return RegistrationInput(**fields)


def register(client: TestClient, **overrides) -> dict:
    """Register a dojo through the API and return the response ``data``."""
    resp = client.post("/api/registration/register", json=registration_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def registered(client: TestClient) -> dict:
    """A freshly registered "Tiger Dojo" (response data incl. token)."""
    return register(client)


@pytest.fixture
def admin_headers(registered: dict) -> dict[str, str]:
    return auth_headers(registered["token"])
