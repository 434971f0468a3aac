from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from app.models.subscription import (
    OrgSettings,
    SubscriptionStatus,
    SubscriptionTier,
)


@dataclass(frozen=True, slots=True)
class Organization:
    id: UUID
    name: str
    slug: str
    email: str
    settings: OrgSettings
    phone: str | None = None
    website: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    business_type: str | None = None
    martial_art_types: tuple[str, ...] = ()
    number_of_schools: int = 1
    estimated_students: int = 0
    subscription: SubscriptionTier = "trial"
    subscription_status: SubscriptionStatus = "active"
    trial_start_date: datetime | None = None
    trial_end_date: datetime | None = None
    subscription_expiry: datetime | None = None
    is_active: bool = True

    @staticmethod
    def new(*, name: str, slug: str, email: str, settings: OrgSettings, **fields) -> Organization:
        return Organization(
            id=uuid4(), name=name, slug=slug, email=email, settings=settings, **fields
        )
