"""Transactional access to organizations, schools and users.

Every multi-record workflow (registration, trial extension, subscription
conversion, school CRUD) runs inside ``identity_store.transaction()``:

    async with identity_store.transaction() as tx:
        org = await tx.orgs.get_by_id(org_id, for_update=True)
        ...

All writes made through ``tx`` commit together when the block exits
normally and are discarded when it raises.  Unique-constraint violations
surface as ``DuplicateConstraintError``; other backend failures as
``PersistenceError``.

Two implementations:
- ``PgIdentityStore``: one SQLAlchemy ``AsyncSession`` per transaction.
- ``InMemoryIdentityStore``: dict-backed repos, serialized by a lock and
  rolled back from a snapshot.  Used in dev/test when DATABASE_URL is unset.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import DojoError, PersistenceError
from app.db.engine import async_session_factory
from app.repos.org_repo import InMemoryOrgRepo, OrgRepo
from app.repos.pg_org_repo import PgOrgRepo
from app.repos.pg_school_repo import PgSchoolRepo
from app.repos.pg_user_repo import PgUserRepo
from app.repos.school_repo import InMemorySchoolRepo, SchoolRepo
from app.repos.user_repo import InMemoryUserRepo, UserRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoreSession:
    orgs: OrgRepo
    schools: SchoolRepo
    users: UserRepo


class IdentityStore(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[StoreSession]: ...


class InMemoryIdentityStore:
    def __init__(self) -> None:
        self.orgs = InMemoryOrgRepo()
        self.schools = InMemorySchoolRepo()
        self.users = InMemoryUserRepo()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        async with self._lock:
            saved = (
                self.orgs.snapshot(),
                self.schools.snapshot(),
                self.users.snapshot(),
            )
            try:
                yield StoreSession(self.orgs, self.schools, self.users)
            except BaseException:
                self.orgs.restore(saved[0])
                self.schools.restore(saved[1])
                self.users.restore(saved[2])
                raise

    def clear(self) -> None:
        self.orgs.clear()
        self.schools.clear()
        self.users.clear()
        self._lock = asyncio.Lock()


class PgIdentityStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield StoreSession(
                        PgOrgRepo(session), PgSchoolRepo(session), PgUserRepo(session)
                    )
            except DojoError:
                raise
            except SQLAlchemyError as exc:
                logger.exception("Identity store transaction failed")
                raise PersistenceError(str(exc)) from exc


# --- Singleton (Postgres when configured, in-memory otherwise) ---

identity_store: InMemoryIdentityStore | PgIdentityStore
if async_session_factory is not None:
    identity_store = PgIdentityStore(async_session_factory)
else:
    identity_store = InMemoryIdentityStore()
