from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.core.errors import DuplicateConstraintError
from app.models.organization import Organization


class OrgRepo(Protocol):
    async def get_by_id(
        self, org_id: UUID, *, for_update: bool = False
    ) -> Organization | None: ...
    async def get_by_slug(self, slug: str) -> Organization | None: ...
    async def add(self, org: Organization) -> None: ...
    async def save(self, org: Organization) -> None: ...


class InMemoryOrgRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Organization] = {}
        self._by_slug: dict[str, UUID] = {}

    async def get_by_id(
        self, org_id: UUID, *, for_update: bool = False
    ) -> Organization | None:
        # for_update is a no-op: the in-memory store serializes transactions.
        return self._by_id.get(org_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        org_id = self._by_slug.get(slug)
        return self._by_id.get(org_id) if org_id is not None else None

    async def add(self, org: Organization) -> None:
        if org.slug in self._by_slug:
            raise DuplicateConstraintError("organizations.slug", org.slug)
        self._by_id[org.id] = org
        self._by_slug[org.slug] = org.id

    async def save(self, org: Organization) -> None:
        current = self._by_id.get(org.id)
        if current is None:
            raise KeyError("organization not found")
        if org.slug != current.slug:
            if org.slug in self._by_slug:
                raise DuplicateConstraintError("organizations.slug", org.slug)
            del self._by_slug[current.slug]
            self._by_slug[org.slug] = org.id
        self._by_id[org.id] = org

    def snapshot(self) -> tuple[dict, dict]:
        return dict(self._by_id), dict(self._by_slug)

    def restore(self, state: tuple[dict, dict]) -> None:
        self._by_id, self._by_slug = dict(state[0]), dict(state[1])

    def clear(self) -> None:
        self._by_id.clear()
        self._by_slug.clear()
