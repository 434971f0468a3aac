"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicateConstraintError
from app.db.tables import UQ_USERS_EMAIL, UserRow, unique_violation
from app.models.user import User


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        stmt = select(UserRow).where(UserRow.id == user_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(UserRow).where(UserRow.email == email.strip().lower())
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def add(self, user: User) -> None:
        row = UserRow(
            id=user.id,
            organization_id=user.organization_id,
            school_id=user.school_id,
            email=user.email,
            password_hash=user.password_hash,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            phone=user.phone,
            is_active=user.is_active,
            email_verified=user.email_verified,
            last_login=user.last_login,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            if unique_violation(exc) != UQ_USERS_EMAIL:
                raise
            raise DuplicateConstraintError("users.email", user.email) from exc

    async def set_active(self, user_id: UUID, is_active: bool) -> None:
        stmt = update(UserRow).where(UserRow.id == user_id).values(is_active=is_active)
        await self._session.execute(stmt)

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user_id)
            .values(password_hash=password_hash)
        )
        await self._session.execute(stmt)

    async def touch_last_login(self, user_id: UUID, when: datetime) -> None:
        stmt = update(UserRow).where(UserRow.id == user_id).values(last_login=when)
        await self._session.execute(stmt)

    async def count_by_school(
        self, school_id: UUID, role: str, *, active_only: bool = True
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(UserRow)
            .where(UserRow.school_id == school_id, UserRow.role == role)
        )
        if active_only:
            stmt = stmt.where(UserRow.is_active.is_(True))
        return int((await self._session.execute(stmt)).scalar_one())


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        organization_id=row.organization_id,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        role=row.role,  # type: ignore[arg-type]
        school_id=row.school_id,
        phone=row.phone,
        is_active=row.is_active,
        email_verified=row.email_verified,
        last_login=row.last_login,
    )
