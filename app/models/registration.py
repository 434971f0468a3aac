from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.models.organization import Organization
from app.models.school import School
from app.models.user import User


@dataclass(frozen=True, slots=True)
class RegistrationInput:
    """Validated sign-up payload for a new dojo.

    Shape and format checks happen in the API layer before this object is
    built; the registration workflow only re-checks presence.
    """

    organization_name: str
    business_type: str
    martial_art_types: tuple[str, ...]
    number_of_schools: int
    estimated_students: int
    email: str
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str
    first_name: str
    last_name: str
    password: str
    website: str | None = None
    first_school_name: str | None = None
    first_school_address: str | None = None

    def __repr__(self) -> str:
        # Keep the plain-text password out of logs and tracebacks.
        return (
            f"RegistrationInput(organization_name={self.organization_name!r}, "
            f"email={self.email!r})"
        )


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    organization: Organization
    school: School
    user: User
    trial_days: int


@dataclass(frozen=True, slots=True)
class TrialStatus:
    is_expired: bool
    days_remaining: int
    trial_end_date: datetime | None
