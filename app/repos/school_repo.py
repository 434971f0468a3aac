from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.core.errors import DuplicateConstraintError
from app.models.school import School


class SchoolRepo(Protocol):
    async def get_by_id(self, school_id: UUID) -> School | None: ...
    async def get_by_slug(self, organization_id: UUID, slug: str) -> School | None: ...
    async def get_by_name(self, organization_id: UUID, name: str) -> School | None: ...
    async def list_by_org(self, organization_id: UUID) -> list[School]: ...
    async def count_by_org(self, organization_id: UUID) -> int: ...
    async def add(self, school: School) -> None: ...
    async def save(self, school: School) -> None: ...
    async def delete(self, school_id: UUID) -> bool: ...


class InMemorySchoolRepo:
    """Schools keyed by id; slugs are unique per (organization_id, slug)."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, School] = {}

    def _slug_taken(self, school: School) -> bool:
        return any(
            s.organization_id == school.organization_id
            and s.slug == school.slug
            and s.id != school.id
            for s in self._by_id.values()
        )

    async def get_by_id(self, school_id: UUID) -> School | None:
        return self._by_id.get(school_id)

    async def get_by_slug(self, organization_id: UUID, slug: str) -> School | None:
        for s in self._by_id.values():
            if s.organization_id == organization_id and s.slug == slug:
                return s
        return None

    async def get_by_name(self, organization_id: UUID, name: str) -> School | None:
        for s in self._by_id.values():
            if s.organization_id == organization_id and s.name == name:
                return s
        return None

    async def list_by_org(self, organization_id: UUID) -> list[School]:
        return [s for s in self._by_id.values() if s.organization_id == organization_id]

    async def count_by_org(self, organization_id: UUID) -> int:
        return len(await self.list_by_org(organization_id))

    async def add(self, school: School) -> None:
        if self._slug_taken(school):
            raise DuplicateConstraintError("schools.organization_id_slug", school.slug)
        self._by_id[school.id] = school

    async def save(self, school: School) -> None:
        if school.id not in self._by_id:
            raise KeyError("school not found")
        if self._slug_taken(school):
            raise DuplicateConstraintError("schools.organization_id_slug", school.slug)
        self._by_id[school.id] = school

    async def delete(self, school_id: UUID) -> bool:
        return self._by_id.pop(school_id, None) is not None

    def snapshot(self) -> dict[UUID, School]:
        return dict(self._by_id)

    def restore(self, state: dict[UUID, School]) -> None:
        self._by_id = dict(state)

    def clear(self) -> None:
        self._by_id.clear()
