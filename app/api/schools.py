"""School CRUD and statistics (/api/schools/*).

Every route is scoped to the caller's organization: a school owned by
another tenant is reported as 404, never 403, so ids do not leak across
tenants.  Creating a school counts against the organization's
``allowed_schools`` quota unless the plan is unlimited.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.api.dependencies import require_any_role
from app.api.serializers import school_out
from app.core.errors import DuplicateConstraintError
from app.models.principal import Principal
from app.models.school import School, SchoolSettings
from app.models.user import ADMIN_ROLES
from app.repos.identity_store import StoreSession, identity_store
from app.services.cache import cache_service, get_json, org_key, org_pattern, set_json
from app.services.slug_service import unique_slug

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schools", tags=["schools"])

SCHOOLS_TTL_SECONDS = 300
DEFAULT_COUNTRY = "USA"
NAME_TAKEN = "A school with this name already exists in your organization"

_require_reader = require_any_role(ADMIN_ROLES | {"school_admin"})
_require_admin = require_any_role(ADMIN_ROLES)


# --- Request schemas ------------------------------------------------------


class _SchoolFields(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("email", check_fields=False)
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        if value is not None and "@" not in value:
            raise ValueError("Valid email is required")
        return value.strip().lower() if value else value


class SchoolCreateIn(_SchoolFields):
    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str
    martial_arts: list[str] = Field(min_length=1)
    max_students: int = Field(ge=1)
    country: str = DEFAULT_COUNTRY
    website: str | None = None
    description: str | None = None
    timezone: str | None = None
    is_active: bool = True


class SchoolUpdateIn(_SchoolFields):
    name: str | None = Field(default=None, min_length=1)
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    phone: str | None = None
    email: str | None = None
    martial_arts: list[str] | None = Field(default=None, min_length=1)
    max_students: int | None = Field(default=None, ge=1)
    website: str | None = None
    description: str | None = None
    timezone: str | None = None
    is_active: bool | None = None


# --- Helpers ----------------------------------------------------------------


async def _get_owned_school(tx: StoreSession, school_id: UUID, principal: Principal) -> School:
    school = await tx.schools.get_by_id(school_id)
    if school is None or school.organization_id != principal.organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return school


async def _school_with_counts(tx: StoreSession, school: School) -> dict:
    body = school_out(school)
    body["currentStudents"] = await tx.users.count_by_school(school.id, "student")
    return body


def _matches(school: School, search: str | None, is_active: bool | None, martial_art: str | None) -> bool:
    if is_active is not None and school.is_active != is_active:
        return False
    if martial_art and martial_art not in school.settings.martial_art_types:
        return False
    if search:
        needle = search.lower()
        haystacks = (school.name, school.city, school.address)
        if not any(needle in (h or "").lower() for h in haystacks):
            return False
    return True


# --- Routes -----------------------------------------------------------------


@router.get("")
async def list_schools(
    principal: Annotated[Principal, Depends(_require_reader)],
    search: str | None = Query(None),
    is_active: bool | None = Query(None, alias="isActive"),
    martial_art: str | None = Query(None, alias="martialArt"),
) -> dict:
    key = org_key(
        principal.organization_id, f"schools:{search or ''}|{is_active}|{martial_art or ''}"
    )
    cached = await get_json(cache_service, key)
    if cached is not None:
        return cached

    async with identity_store.transaction() as tx:
        schools = await tx.schools.list_by_org(principal.organization_id)
        data = [
            await _school_with_counts(tx, s)
            for s in schools
            if _matches(s, search, is_active, martial_art)
        ]

    body = {"success": True, "data": data}
    await set_json(cache_service, key, body, SCHOOLS_TTL_SECONDS)
    return body


@router.get("/{school_id}")
async def get_school(
    school_id: UUID,
    principal: Annotated[Principal, Depends(_require_reader)],
) -> dict:
    async with identity_store.transaction() as tx:
        school = await _get_owned_school(tx, school_id, principal)
        data = await _school_with_counts(tx, school)
    return {"success": True, "data": data}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_school(
    payload: SchoolCreateIn,
    principal: Annotated[Principal, Depends(_require_admin)],
) -> dict:
    org_id = principal.organization_id
    try:
        async with identity_store.transaction() as tx:
            org = await tx.orgs.get_by_id(org_id, for_update=True)
            if org is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found"
                )
            if not org.settings.unlimited_schools:
                count = await tx.schools.count_by_org(org_id)
                if count >= org.settings.allowed_schools:
                    logger.info(
                        "School quota reached  org_id=%s allowed=%d",
                        org_id,
                        org.settings.allowed_schools,
                    )
                    raise HTTPException(
                        status_code=status.HTTP_403_FORBIDDEN,
                        detail="School limit reached for your subscription plan",
                    )
            if await tx.schools.get_by_name(org_id, payload.name) is not None:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=NAME_TAKEN)

            school = School.new(
                organization_id=org_id,
                name=payload.name,
                slug=await unique_slug(tx, payload.name, organization_id=org_id),
                address=payload.address,
                city=payload.city,
                state=payload.state,
                zip_code=payload.zip_code,
                country=payload.country,
                phone=payload.phone,
                email=payload.email,
                website=payload.website,
                description=payload.description,
                max_students=payload.max_students,
                timezone=payload.timezone,
                is_active=payload.is_active,
                settings=SchoolSettings(martial_art_types=tuple(payload.martial_arts)),
            )
            await tx.schools.add(school)
    except DuplicateConstraintError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=NAME_TAKEN) from None

    await cache_service.delete_pattern(org_pattern(org_id))
    logger.info("School created  school_id=%s slug=%s", school.id, school.slug)
    body = school_out(school)
    body["currentStudents"] = 0
    return {"success": True, "message": "School created successfully", "data": body}


@router.put("/{school_id}")
async def update_school(
    school_id: UUID,
    payload: SchoolUpdateIn,
    principal: Annotated[Principal, Depends(_require_admin)],
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    martial_arts = changes.pop("martial_arts", None)

    async with identity_store.transaction() as tx:
        school = await _get_owned_school(tx, school_id, principal)
        new_name = changes.get("name")
        if new_name and new_name != school.name:
            clash = await tx.schools.get_by_name(principal.organization_id, new_name)
            if clash is not None and clash.id != school.id:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=NAME_TAKEN)

        updated = replace(school, **{k: v for k, v in changes.items() if v is not None})
        if martial_arts is not None:
            updated = replace(
                updated,
                settings=replace(updated.settings, martial_art_types=tuple(martial_arts)),
            )
        await tx.schools.save(updated)
        data = await _school_with_counts(tx, updated)

    await cache_service.delete_pattern(org_pattern(principal.organization_id))
    return {"success": True, "message": "School updated successfully", "data": data}


@router.delete("/{school_id}")
async def delete_school(
    school_id: UUID,
    principal: Annotated[Principal, Depends(_require_admin)],
) -> dict:
    async with identity_store.transaction() as tx:
        school = await _get_owned_school(tx, school_id, principal)
        if await tx.users.count_by_school(school.id, "student") > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete school with active students. Please reassign students first.",
            )
        await tx.schools.delete(school.id)

    await cache_service.delete_pattern(org_pattern(principal.organization_id))
    logger.info("School deleted  school_id=%s", school_id)
    return {"success": True, "message": "School deleted successfully"}


@router.get("/{school_id}/stats")
async def school_stats(
    school_id: UUID,
    principal: Annotated[Principal, Depends(_require_reader)],
) -> dict:
    async with identity_store.transaction() as tx:
        school = await _get_owned_school(tx, school_id, principal)
        students = await tx.users.count_by_school(school.id, "student")
        instructors = await tx.users.count_by_school(school.id, "instructor")

    max_students = school.max_students or 0
    # Percent rounded half up.
    utilization = math.floor(students * 100 / max_students + 0.5) if max_students > 0 else 0
    return {
        "success": True,
        "data": {
            "schoolId": str(school.id),
            "schoolName": school.name,
            "studentCount": students,
            "instructorCount": instructors,
            "maxStudents": max_students,
            "utilization": utilization,
            "martialArts": list(school.settings.martial_art_types),
            "isActive": school.is_active,
        },
    }
