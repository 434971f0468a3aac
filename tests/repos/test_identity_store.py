from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from app.core.errors import DuplicateConstraintError
from app.models.organization import Organization
from app.models.school import School
from app.models.subscription import trial_settings
from app.models.user import User
from app.repos.identity_store import InMemoryIdentityStore


def _org(slug: str = "tiger-dojo") -> Organization:
    return Organization.new(
        name="Tiger Dojo", slug=slug, email="o@example.com", settings=trial_settings(1, 10)
    )


def _school(org_id, slug: str = "main", name: str = "Main") -> School:
    return School.new(
        organization_id=org_id,
        name=name,
        slug=slug,
        address="1 Main St",
        city="Springfield",
        state="IL",
        zip_code="62701",
        country="USA",
        phone="555",
        email="s@example.com",
    )


def _user(org_id, email: str = "a@b.com", **fields) -> User:
    return User.new(
        organization_id=org_id,
        email=email,
        password_hash="h",
        first_name="Al",
        last_name="Bo",
        role=fields.pop("role", "org_admin"),
        **fields,
    )


def test_commit_makes_writes_visible() -> None:
    store = InMemoryIdentityStore()
    org = _org()

    async def _run():
        async with store.transaction() as tx:
            await tx.orgs.add(org)
            await tx.schools.add(_school(org.id))
        async with store.transaction() as tx:
            return await tx.orgs.get_by_slug("tiger-dojo"), await tx.schools.count_by_org(org.id)

    found, schools = asyncio.run(_run())
    assert found == org
    assert schools == 1


def test_exception_rolls_back_every_repo() -> None:
    store = InMemoryIdentityStore()
    org = _org()

    async def _run():
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await tx.orgs.add(org)
                await tx.schools.add(_school(org.id))
                await tx.users.add(_user(org.id))
                raise RuntimeError("boom")
        async with store.transaction() as tx:
            return (
                await tx.orgs.get_by_id(org.id),
                await tx.schools.list_by_org(org.id),
                await tx.users.get_by_email("a@b.com"),
            )

    assert asyncio.run(_run()) == (None, [], None)


def test_rollback_keeps_earlier_commits() -> None:
    store = InMemoryIdentityStore()
    first = _org("first")

    async def _run():
        async with store.transaction() as tx:
            await tx.orgs.add(first)
        with pytest.raises(DuplicateConstraintError):
            async with store.transaction() as tx:
                await tx.orgs.add(_org("second"))
                await tx.orgs.add(_org("first"))
        async with store.transaction() as tx:
            return await tx.orgs.get_by_slug("first"), await tx.orgs.get_by_slug("second")

    kept, dropped = asyncio.run(_run())
    assert kept == first
    assert dropped is None


def test_duplicate_email_is_case_insensitive() -> None:
    store = InMemoryIdentityStore()
    org_id = uuid4()

    async def _run():
        async with store.transaction() as tx:
            await tx.users.add(_user(org_id, "Sensei@Example.com"))
            await tx.users.add(_user(org_id, "sensei@example.COM"))

    with pytest.raises(DuplicateConstraintError) as exc_info:
        asyncio.run(_run())
    assert exc_info.value.details["constraint"] == "users.email"


def test_school_slug_unique_per_org_only() -> None:
    store = InMemoryIdentityStore()
    org_a, org_b = uuid4(), uuid4()

    async def _run():
        async with store.transaction() as tx:
            await tx.schools.add(_school(org_a))
            await tx.schools.add(_school(org_b))
            await tx.schools.add(_school(org_a, name="Other"))

    with pytest.raises(DuplicateConstraintError) as exc_info:
        asyncio.run(_run())
    assert exc_info.value.details["constraint"] == "schools.organization_id_slug"


def test_count_by_school_filters_role_and_activity() -> None:
    store = InMemoryIdentityStore()
    org_id, school_id = uuid4(), uuid4()

    async def _run():
        async with store.transaction() as tx:
            await tx.users.add(_user(org_id, "s1@x.io", role="student", school_id=school_id))
            inactive = _user(org_id, "s2@x.io", role="student", school_id=school_id)
            await tx.users.add(inactive)
            await tx.users.set_active(inactive.id, False)
            await tx.users.add(_user(org_id, "i1@x.io", role="instructor", school_id=school_id))
            return (
                await tx.users.count_by_school(school_id, "student"),
                await tx.users.count_by_school(school_id, "student", active_only=False),
                await tx.users.count_by_school(school_id, "instructor"),
            )

    assert asyncio.run(_run()) == (1, 2, 1)
