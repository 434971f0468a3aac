"""Assert that passwords and tokens never appear in log output.

These tests exercise endpoints that handle sensitive data and verify
the log records contain no leaked secrets.
"""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from tests.conftest import registration_payload

TEST_PASSWORD = "Sup3r-s3cret-passw0rd"


def test_registration_does_not_log_password(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/api/registration/register",
            json=registration_payload(password=TEST_PASSWORD),
        )
    assert resp.status_code == 201

    all_log_text = " ".join(caplog.messages)
    assert TEST_PASSWORD not in all_log_text, "Password found in log output!"
    assert resp.json()["data"]["token"] not in all_log_text, "JWT found in log output!"


def test_failed_registration_does_not_log_password(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    client.post("/api/registration/register", json=registration_payload(password=TEST_PASSWORD))
    with caplog.at_level(logging.DEBUG):
        # Second attempt trips the duplicate email check
        resp = client.post(
            "/api/registration/register",
            json=registration_payload(password=TEST_PASSWORD),
        )
    assert resp.status_code == 409
    assert TEST_PASSWORD not in " ".join(caplog.messages)


@pytest.mark.parametrize("password", [TEST_PASSWORD, "wrong-Passw0rd"])
def test_login_does_not_log_password_or_token(
    client: TestClient, caplog: pytest.LogCaptureFixture, password: str
) -> None:
    client.post("/api/registration/register", json=registration_payload(password=TEST_PASSWORD))

    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/api/auth/login", json={"email": "a@b.com", "password": password}
        )

    all_log_text = " ".join(caplog.messages)
    assert password not in all_log_text, "Password found in log output!"
    token = resp.json().get("token")
    if token:
        assert token not in all_log_text, "JWT found in log output!"
