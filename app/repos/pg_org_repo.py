"""PostgreSQL implementation of OrgRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicateConstraintError
from app.db.tables import UQ_ORGANIZATIONS_SLUG, OrganizationRow, unique_violation
from app.models.organization import Organization
from app.models.subscription import OrgSettings


class PgOrgRepo:
    """Satisfies the OrgRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(
        self, org_id: UUID, *, for_update: bool = False
    ) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.id == org_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_org(row)

    async def get_by_slug(self, slug: str) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_org(row)

    async def add(self, org: Organization) -> None:
        self._session.add(OrganizationRow(id=org.id, **_org_values(org)))
        try:
            await self._session.flush()
        except IntegrityError as exc:
            if unique_violation(exc) != UQ_ORGANIZATIONS_SLUG:
                raise
            raise DuplicateConstraintError("organizations.slug", org.slug) from exc

    async def save(self, org: Organization) -> None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org.id)
            .values(**_org_values(org))
        )
        try:
            result = await self._session.execute(stmt)
        except IntegrityError as exc:
            if unique_violation(exc) != UQ_ORGANIZATIONS_SLUG:
                raise
            raise DuplicateConstraintError("organizations.slug", org.slug) from exc
        if result.rowcount == 0:
            raise KeyError("organization not found")


def _org_values(org: Organization) -> dict:
    return {
        "name": org.name,
        "slug": org.slug,
        "email": org.email,
        "phone": org.phone,
        "website": org.website,
        "address": org.address,
        "city": org.city,
        "state": org.state,
        "zip_code": org.zip_code,
        "country": org.country,
        "business_type": org.business_type,
        "martial_art_types": list(org.martial_art_types),
        "number_of_schools": org.number_of_schools,
        "estimated_students": org.estimated_students,
        "subscription": org.subscription,
        "subscription_status": org.subscription_status,
        "trial_start_date": org.trial_start_date,
        "trial_end_date": org.trial_end_date,
        "subscription_expiry": org.subscription_expiry,
        "settings": org.settings.to_dict(),
        "is_active": org.is_active,
    }


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        slug=row.slug,
        email=row.email,
        settings=OrgSettings.from_dict(row.settings),
        phone=row.phone,
        website=row.website,
        address=row.address,
        city=row.city,
        state=row.state,
        zip_code=row.zip_code,
        country=row.country,
        business_type=row.business_type,
        martial_art_types=tuple(row.martial_art_types or ()),
        number_of_schools=row.number_of_schools,
        estimated_students=row.estimated_students,
        subscription=row.subscription,  # type: ignore[arg-type]
        subscription_status=row.subscription_status,  # type: ignore[arg-type]
        trial_start_date=row.trial_start_date,
        trial_end_date=row.trial_end_date,
        subscription_expiry=row.subscription_expiry,
        is_active=row.is_active,
    )
