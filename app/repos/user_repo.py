from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from app.core.errors import DuplicateConstraintError
from app.models.user import User


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def set_active(self, user_id: UUID, is_active: bool) -> None: ...
    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None: ...
    async def touch_last_login(self, user_id: UUID, when: datetime) -> None: ...
    async def count_by_school(
        self, school_id: UUID, role: str, *, active_only: bool = True
    ) -> int: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, User] = {}
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return self._by_email.get(email.strip().lower())

    async def add(self, user: User) -> None:
        if user.email in self._by_email:
            raise DuplicateConstraintError("users.email", user.email)
        self._by_email[user.email] = user
        self._by_id[user.id] = user

    def _replace(self, user_id: UUID, **changes) -> None:
        u = self._by_id.get(user_id)
        if u is None:
            raise KeyError("user not found")
        updated = replace(u, **changes)
        self._by_id[user_id] = updated
        self._by_email[updated.email] = updated

    async def set_active(self, user_id: UUID, is_active: bool) -> None:
        self._replace(user_id, is_active=is_active)

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        self._replace(user_id, password_hash=password_hash)

    async def touch_last_login(self, user_id: UUID, when: datetime) -> None:
        self._replace(user_id, last_login=when)

    async def count_by_school(
        self, school_id: UUID, role: str, *, active_only: bool = True
    ) -> int:
        return sum(
            1
            for u in self._by_id.values()
            if u.school_id == school_id
            and u.role == role
            and (u.is_active or not active_only)
        )

    def snapshot(self) -> tuple[dict, dict]:
        return dict(self._by_email), dict(self._by_id)

    def restore(self, state: tuple[dict, dict]) -> None:
        self._by_email, self._by_id = dict(state[0]), dict(state[1])

    def clear(self) -> None:
        self._by_email.clear()
        self._by_id.clear()
