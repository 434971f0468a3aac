from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

UserRole = Literal[
    "super_admin", "org_admin", "school_admin", "instructor", "student", "parent"
]

ADMIN_ROLES: frozenset[str] = frozenset({"super_admin", "org_admin"})


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    organization_id: UUID
    email: str
    password_hash: str
    first_name: str
    last_name: str
    role: UserRole
    school_id: UUID | None = None
    phone: str | None = None
    is_active: bool = True
    email_verified: bool = False
    last_login: datetime | None = None

    @staticmethod
    def new(
        *,
        organization_id: UUID,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        role: UserRole,
        school_id: UUID | None = None,
        phone: str | None = None,
        last_login: datetime | None = None,
    ) -> User:
        # Emails are stored normalized; uniqueness is checked on this form.
        return User(
            id=uuid4(),
            organization_id=organization_id,
            email=email.strip().lower(),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role,
            school_id=school_id,
            phone=phone,
            is_active=True,
            email_verified=False,
            last_login=last_login,
        )
