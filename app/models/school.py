from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

DEFAULT_CLASS_CAPACITY = 30


@dataclass(frozen=True, slots=True)
class SchoolSettings:
    martial_art_types: tuple[str, ...] = ()
    class_capacity: int = DEFAULT_CLASS_CAPACITY
    allow_online_booking: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "martialArtTypes": list(self.martial_art_types),
            "classCapacity": self.class_capacity,
            "allowOnlineBooking": self.allow_online_booking,
        }

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> SchoolSettings:
        data = data or {}
        return SchoolSettings(
            martial_art_types=tuple(data.get("martialArtTypes") or ()),
            class_capacity=int(data.get("classCapacity", DEFAULT_CLASS_CAPACITY)),
            allow_online_booking=bool(data.get("allowOnlineBooking", True)),
        )


@dataclass(frozen=True, slots=True)
class School:
    id: UUID
    organization_id: UUID
    name: str
    slug: str  # unique within organization_id
    address: str
    city: str
    state: str
    zip_code: str
    country: str
    phone: str
    email: str
    settings: SchoolSettings = SchoolSettings()
    website: str | None = None
    description: str | None = None
    max_students: int | None = None
    timezone: str | None = None
    is_active: bool = True

    @staticmethod
    def new(*, organization_id: UUID, name: str, slug: str, **fields) -> School:
        return School(
            id=uuid4(), organization_id=organization_id, name=name, slug=slug, **fields
        )
