from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller, resolved from a bearer token and the user store.

    Role and tenant come from the stored user, not the token claims, so a
    role change or deactivation takes effect on the next request.
    """

    user_id: UUID
    email: str
    role: str
    organization_id: UUID
    school_id: UUID | None = None

    def has_role(self, role: str) -> bool:
        return self.role == role

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return self.role in roles

    def is_platform_admin(self) -> bool:
        return self.role == "super_admin"
