"""Dojo sign-up and subscription lifecycle endpoints (/api/registration/*).

POST /register creates the organization, its first school and the admin
user in one transaction, then returns a token so the client is logged in
immediately.  The trial/subscription endpoints act on the caller's own
organization.
"""

from __future__ import annotations

import logging
import re
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from app.api.dependencies import require_any_role, require_user
from app.api.serializers import iso, user_out
from app.core.errors import InputValidationError, NotFoundError, RegistrationError
from app.models.principal import Principal
from app.models.registration import RegistrationInput
from app.models.user import ADMIN_ROLES
from app.repos.identity_store import identity_store
from app.services import lifecycle_service, registration_service, token_service
from app.services.cache import cache_service, org_pattern

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/registration", tags=["registration"])

EMAIL_TAKEN = "An account with this email already exists"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^[\d\s\-+()]+$")
_URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


def _normalize_email(value: str) -> str:
    email = value.strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValueError("Invalid email address")
    return email


# --- Request schemas ------------------------------------------------------


class RegisterIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    organization_name: str = Field(min_length=2, max_length=100)
    business_type: str = Field(min_length=1)
    martial_art_types: list[str] = Field(min_length=1)
    number_of_schools: int = Field(ge=1, le=100)
    estimated_students: int = Field(ge=1, le=10000)
    email: str
    phone: str = Field(min_length=1)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    country: str = Field(min_length=1)
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    password: str = Field(min_length=8)
    website: str | None = None
    first_school_name: str | None = Field(default=None, min_length=2, max_length=100)
    first_school_address: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, value, info: ValidationInfo):
        # Passwords are taken verbatim.
        if isinstance(value, str) and info.field_name != "password":
            return value.strip()
        return value

    @field_validator("martial_art_types")
    @classmethod
    def _arts_not_blank(cls, value: list[str]) -> list[str]:
        arts = [a.strip() for a in value]
        if not all(arts):
            raise ValueError("Invalid martial art types")
        return arts

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        if not _PHONE_RE.match(value):
            raise ValueError("Invalid phone number")
        return value

    @field_validator("password")
    @classmethod
    def _password_complexity(cls, value: str) -> str:
        if not (
            re.search(r"[a-z]", value)
            and re.search(r"[A-Z]", value)
            and re.search(r"\d", value)
        ):
            raise ValueError(
                "Password must contain at least one uppercase letter, "
                "one lowercase letter, and one number"
            )
        return value

    @field_validator("website")
    @classmethod
    def _website(cls, value: str | None) -> str | None:
        if value and not _URL_RE.match(value):
            raise ValueError("Invalid website URL")
        return value or None

    def to_input(self) -> RegistrationInput:
        return RegistrationInput(
            organization_name=self.organization_name,
            business_type=self.business_type,
            martial_art_types=tuple(self.martial_art_types),
            number_of_schools=self.number_of_schools,
            estimated_students=self.estimated_students,
            email=self.email,
            phone=self.phone,
            address=self.address,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            country=self.country,
            first_name=self.first_name,
            last_name=self.last_name,
            password=self.password,
            website=self.website,
            first_school_name=self.first_school_name or None,
            first_school_address=self.first_school_address or None,
        )


class CheckEmailIn(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return _normalize_email(value)


class ExtendTrialIn(BaseModel):
    days: int = Field(
        ge=lifecycle_service.MIN_EXTENSION_DAYS,
        le=lifecycle_service.MAX_EXTENSION_DAYS,
    )


class ConvertSubscriptionIn(BaseModel):
    subscriptionType: Literal["free", "basic", "premium", "enterprise"]


# --- POST /api/registration/register --------------------------------------


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn) -> dict:
    async with identity_store.transaction() as tx:
        existing = await tx.users.get_by_email(payload.email)
    if existing is not None:
        logger.info("Registration rejected, email already registered")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)

    try:
        result = await registration_service.register_dojo(
            identity_store, payload.to_input()
        )
    except RegistrationError as e:
        if e.is_duplicate_email:
            # Lost the race against a concurrent registration.
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN
            ) from None
        logger.error("Registration failed: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed",
        ) from None

    org = result.organization
    token = token_service.create_access_token(result.user)
    logger.info("Dojo registered  org_id=%s slug=%s", org.id, org.slug)

    user = user_out(result.user)
    return {
        "success": True,
        "message": "Dojo registered successfully",
        "data": {
            "organization": {
                "id": str(org.id),
                "name": org.name,
                "slug": org.slug,
                "subscription": org.subscription,
                "trialEndDate": iso(org.trial_end_date),
            },
            "school": {
                "id": str(result.school.id),
                "name": result.school.name,
                "slug": result.school.slug,
            },
            "user": {
                k: user[k] for k in ("id", "email", "firstName", "lastName", "role")
            },
            "trial": {"days": result.trial_days, "endDate": iso(org.trial_end_date)},
            "token": token,
        },
    }


# --- POST /api/registration/check-email -----------------------------------


@router.post("/check-email")
async def check_email(payload: CheckEmailIn) -> dict:
    async with identity_store.transaction() as tx:
        existing = await tx.users.get_by_email(payload.email)
    return {"success": True, "available": existing is None}


# --- GET /api/registration/trial-status -----------------------------------


@router.get("/trial-status")
async def trial_status(
    principal: Annotated[Principal, Depends(require_user)],
) -> dict:
    # Not cached: the answer depends on the current time.
    trial = await lifecycle_service.check_trial_status(
        identity_store, principal.organization_id
    )
    return {
        "success": True,
        "data": {
            "isExpired": trial.is_expired,
            "daysRemaining": trial.days_remaining,
            "trialEndDate": iso(trial.trial_end_date),
        },
    }


# --- Admin-only lifecycle changes ------------------------------------------

_require_admin = require_any_role(ADMIN_ROLES)


@router.post("/extend-trial")
async def extend_trial(
    payload: ExtendTrialIn,
    principal: Annotated[Principal, Depends(_require_admin)],
) -> dict:
    try:
        org = await lifecycle_service.extend_trial(
            identity_store, principal.organization_id, payload.days
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found"
        ) from None
    except InputValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=e.message
        ) from None

    await cache_service.delete_pattern(org_pattern(org.id))
    return {
        "success": True,
        "message": f"Trial extended by {payload.days} days",
        "data": {"trialEndDate": iso(org.trial_end_date)},
    }


@router.post("/convert-subscription")
async def convert_subscription(
    payload: ConvertSubscriptionIn,
    principal: Annotated[Principal, Depends(_require_admin)],
) -> dict:
    try:
        org = await lifecycle_service.convert_to_subscription(
            identity_store, principal.organization_id, payload.subscriptionType
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found"
        ) from None

    await cache_service.delete_pattern(org_pattern(org.id))
    return {
        "success": True,
        "message": f"Subscription converted to {payload.subscriptionType}",
        "data": {
            "subscription": org.subscription,
            "subscriptionStatus": org.subscription_status,
            "subscriptionExpiry": iso(org.subscription_expiry),
            "settings": org.settings.to_dict(),
        },
    }
