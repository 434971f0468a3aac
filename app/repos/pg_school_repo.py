"""PostgreSQL implementation of SchoolRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicateConstraintError
from app.db.tables import UQ_SCHOOLS_ORGANIZATION_SLUG, SchoolRow, unique_violation
from app.models.school import School, SchoolSettings


class PgSchoolRepo:
    """Satisfies the SchoolRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _one(self, *criteria) -> School | None:
        stmt = select(SchoolRow).where(*criteria)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_school(row)

    async def get_by_id(self, school_id: UUID) -> School | None:
        return await self._one(SchoolRow.id == school_id)

    async def get_by_slug(self, organization_id: UUID, slug: str) -> School | None:
        return await self._one(
            SchoolRow.organization_id == organization_id, SchoolRow.slug == slug
        )

    async def get_by_name(self, organization_id: UUID, name: str) -> School | None:
        stmt = (
            select(SchoolRow)
            .where(SchoolRow.organization_id == organization_id, SchoolRow.name == name)
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_school(row) if row is not None else None

    async def list_by_org(self, organization_id: UUID) -> list[School]:
        stmt = (
            select(SchoolRow)
            .where(SchoolRow.organization_id == organization_id)
            .order_by(SchoolRow.name)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_school(r) for r in rows]

    async def count_by_org(self, organization_id: UUID) -> int:
        stmt = select(func.count()).select_from(SchoolRow).where(
            SchoolRow.organization_id == organization_id
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def add(self, school: School) -> None:
        self._session.add(SchoolRow(id=school.id, **_school_values(school)))
        try:
            await self._session.flush()
        except IntegrityError as exc:
            if unique_violation(exc) != UQ_SCHOOLS_ORGANIZATION_SLUG:
                raise
            raise DuplicateConstraintError(
                "schools.organization_id_slug", school.slug
            ) from exc

    async def save(self, school: School) -> None:
        stmt = (
            update(SchoolRow)
            .where(SchoolRow.id == school.id)
            .values(**_school_values(school))
        )
        try:
            result = await self._session.execute(stmt)
        except IntegrityError as exc:
            if unique_violation(exc) != UQ_SCHOOLS_ORGANIZATION_SLUG:
                raise
            raise DuplicateConstraintError(
                "schools.organization_id_slug", school.slug
            ) from exc
        if result.rowcount == 0:
            raise KeyError("school not found")

    async def delete(self, school_id: UUID) -> bool:
        result = await self._session.execute(
            delete(SchoolRow).where(SchoolRow.id == school_id)
        )
        return result.rowcount > 0


def _school_values(school: School) -> dict:
    return {
        "organization_id": school.organization_id,
        "name": school.name,
        "slug": school.slug,
        "address": school.address,
        "city": school.city,
        "state": school.state,
        "zip_code": school.zip_code,
        "country": school.country,
        "phone": school.phone,
        "email": school.email,
        "website": school.website,
        "description": school.description,
        "max_students": school.max_students,
        "timezone": school.timezone,
        "settings": school.settings.to_dict(),
        "is_active": school.is_active,
    }


def _row_to_school(row: SchoolRow) -> School:
    return School(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        slug=row.slug,
        address=row.address or "",
        city=row.city or "",
        state=row.state or "",
        zip_code=row.zip_code or "",
        country=row.country or "",
        phone=row.phone or "",
        email=row.email or "",
        settings=SchoolSettings.from_dict(row.settings),
        website=row.website,
        description=row.description,
        max_students=row.max_students,
        timezone=row.timezone,
        is_active=row.is_active,
    )
