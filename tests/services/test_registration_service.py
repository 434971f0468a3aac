"""Registration workflow: end-to-end result, atomicity, slugs and hooks."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from app.core.errors import (
    DuplicateConstraintError,
    InputValidationError,
    RegistrationError,
    SlugExhaustedError,
)
from app.models.registration import RegistrationResult
from app.models.user import User
from app.repos.identity_store import InMemoryIdentityStore
from app.services import registration_service
from app.services.auth_service import verify_password
from app.services.registration_service import TRIAL_DAYS, register_dojo
from tests.conftest import make_registration_input

NOW = datetime(2024, 1, 1, 9, 30, tzinfo=UTC)


def _registrations(result: str) -> float:
    value = REGISTRY.get_sample_value(
        "dojo_registrations_total", labels={"result": result}
    )
    return value if value is not None else 0.0


def _register(store: InMemoryIdentityStore, **overrides) -> RegistrationResult:
    return asyncio.run(
        register_dojo(store, make_registration_input(**overrides), now=NOW)
    )


async def _org_by_slug(store: InMemoryIdentityStore, slug: str):
    async with store.transaction() as tx:
        return await tx.orgs.get_by_slug(slug)


def test_register_tiger_dojo_end_to_end() -> None:
    store = InMemoryIdentityStore()
    result = _register(store)

    org = result.organization
    assert result.trial_days == TRIAL_DAYS == 30
    assert org.name == "Tiger Dojo"
    assert org.slug == "tiger-dojo"
    assert org.subscription == "trial"
    assert org.subscription_status == "active"
    assert org.trial_start_date == NOW
    assert org.trial_end_date == NOW + timedelta(days=30)
    assert org.subscription_expiry == org.trial_end_date
    assert org.settings.allowed_schools == 1
    assert org.settings.allowed_students == 50
    assert org.settings.trial_features is True
    assert org.settings.features.to_dict() == {
        "attendance": True,
        "reporting": True,
        "messaging": True,
        "payments": False,
        "advancedAnalytics": True,
        "customBranding": True,
    }

    school = result.school
    assert school.name == "Tiger Dojo Main School"
    assert school.slug == "tiger-dojo-main-school"
    assert school.organization_id == org.id
    assert school.address == "1 Main St"
    assert school.settings.martial_art_types == ("Karate",)
    assert school.settings.class_capacity == 30
    assert school.settings.allow_online_booking is True

    user = result.user
    assert user.role == "org_admin"
    assert user.email_verified is False
    assert user.is_active is True
    assert user.last_login == NOW
    assert user.organization_id == org.id
    assert user.school_id == school.id


def test_register_persists_all_three_records() -> None:
    store = InMemoryIdentityStore()
    result = _register(store)

    async def _load():
        async with store.transaction() as tx:
            return (
                await tx.orgs.get_by_id(result.organization.id),
                await tx.schools.get_by_id(result.school.id),
                await tx.users.get_by_email("a@b.com"),
            )

    org, school, user = asyncio.run(_load())
    assert org == result.organization
    assert school == result.school
    assert user == result.user


def test_password_is_hashed_not_stored() -> None:
    store = InMemoryIdentityStore()
    result = _register(store)
    assert result.user.password_hash != "Passw0rd"
    assert result.user.password_hash.startswith("$argon2")
    assert verify_password("Passw0rd", result.user.password_hash)


def test_first_school_name_and_address_override() -> None:
    store = InMemoryIdentityStore()
    result = _register(
        store, first_school_name="Tiger Downtown", first_school_address="9 Elm Rd"
    )
    assert result.school.name == "Tiger Downtown"
    assert result.school.slug == "tiger-downtown"
    assert result.school.address == "9 Elm Rd"
    assert result.school.city == "Springfield"


def test_zero_estimates_fall_back_to_trial_defaults() -> None:
    store = InMemoryIdentityStore()
    result = _register(store, number_of_schools=0, estimated_students=0)
    assert result.organization.settings.allowed_schools == 1
    assert result.organization.settings.allowed_students == 100


def test_colliding_names_get_distinct_slugs() -> None:
    store = InMemoryIdentityStore()
    first = _register(store, email="one@example.com")
    second = _register(store, email="two@example.com")

    assert first.organization.slug == "tiger-dojo"
    assert second.organization.slug == "tiger-dojo-1"
    # School slugs are per organization, so both keep the base slug.
    assert first.school.slug == second.school.slug == "tiger-dojo-main-school"


def test_duplicate_email_rolls_back_everything() -> None:
    store = InMemoryIdentityStore()

    async def _seed() -> None:
        async with store.transaction() as tx:
            await tx.users.add(
                User.new(
                    organization_id=uuid4(),
                    email="A@B.com",
                    password_hash="x",
                    first_name="Ex",
                    last_name="Isting",
                    role="student",
                )
            )

    asyncio.run(_seed())
    failures_before = _registrations("failure")

    with pytest.raises(RegistrationError) as exc_info:
        _register(store)

    err = exc_info.value
    assert isinstance(err.cause, DuplicateConstraintError)
    assert err.__cause__ is err.cause
    assert err.is_duplicate_email
    assert asyncio.run(_org_by_slug(store, "tiger-dojo")) is None
    assert store.schools.snapshot() == {}
    assert _registrations("failure") - failures_before == 1


def test_hashing_failure_rolls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    store = InMemoryIdentityStore()

    def _boom(_plain: str) -> str:
        raise RuntimeError("hasher unavailable")

    monkeypatch.setattr(registration_service, "hash_password", _boom)

    with pytest.raises(RegistrationError) as exc_info:
        _register(store)

    assert isinstance(exc_info.value.cause, RuntimeError)
    assert asyncio.run(_org_by_slug(store, "tiger-dojo")) is None
    assert store.schools.snapshot() == {}


def test_slug_exhaustion_surfaces_as_registration_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    store = InMemoryIdentityStore()

    async def _exhausted(_tx, name, **_kwargs):
        raise SlugExhaustedError(name, 0)

    monkeypatch.setattr(registration_service, "unique_slug", _exhausted)

    with pytest.raises(RegistrationError) as exc_info:
        _register(store)
    assert isinstance(exc_info.value.cause, SlugExhaustedError)


def test_missing_required_field_is_rejected() -> None:
    store = InMemoryIdentityStore()
    with pytest.raises(RegistrationError) as exc_info:
        _register(store, martial_art_types=())
    assert isinstance(exc_info.value.cause, InputValidationError)
    assert exc_info.value.cause.details == {"missing": ["martial_art_types"]}


def test_successful_registration_counts_metric() -> None:
    store = InMemoryIdentityStore()
    before = _registrations("success")
    _register(store)
    assert _registrations("success") - before == 1


def test_post_commit_hook_receives_result() -> None:
    store = InMemoryIdentityStore()
    seen: list[RegistrationResult] = []

    async def _async_hook(result: RegistrationResult) -> None:
        seen.append(result)

    result = asyncio.run(
        register_dojo(
            store, make_registration_input(), now=NOW, post_commit_hooks=[_async_hook]
        )
    )
    assert seen == [result]


def test_failing_hook_does_not_undo_registration(
    caplog: pytest.LogCaptureFixture,
) -> None:
    store = InMemoryIdentityStore()
    calls: list[str] = []

    def _broken(_result: RegistrationResult) -> None:
        raise RuntimeError("mailer down")

    def _after(_result: RegistrationResult) -> None:
        calls.append("after")

    with caplog.at_level(logging.WARNING, logger="app.services.registration_service"):
        result = asyncio.run(
            register_dojo(
                store,
                make_registration_input(),
                now=NOW,
                post_commit_hooks=[_broken, _after],
            )
        )

    assert asyncio.run(_org_by_slug(store, "tiger-dojo")) == result.organization
    assert calls == ["after"]
    assert any("_broken" in r.getMessage() for r in caplog.records)


def test_default_hook_logs_welcome(caplog: pytest.LogCaptureFixture) -> None:
    store = InMemoryIdentityStore()
    with caplog.at_level(logging.INFO, logger="app.services.registration_service"):
        _register(store)
    messages = [r.getMessage() for r in caplog.records]
    assert any("New dojo registered: Tiger Dojo (tiger-dojo)" in m for m in messages)
    assert not any("Passw0rd" in m for m in messages)
