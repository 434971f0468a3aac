"""URL-safe slugs for organizations and schools.

Organization slugs are unique across the whole store; school slugs only
within their organization.  ``unique_slug`` probes the store inside the
caller's transaction and appends ``-1``, ``-2``, ... until a free
candidate is found.  The unique constraints on the tables are the final
guard against a concurrent writer taking the same slug.
"""

from __future__ import annotations

import re
from uuid import UUID

from app.core.errors import SlugExhaustedError
from app.repos.identity_store import StoreSession

MAX_SLUG_ATTEMPTS = 1000
FALLBACK_SLUG = "dojo"

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^a-z0-9-]")
_HYPHENS = re.compile(r"-{2,}")


def slugify(name: str) -> str:
    slug = _WHITESPACE.sub("-", name.strip().lower())
    slug = _INVALID.sub("", slug)
    slug = _HYPHENS.sub("-", slug).strip("-")
    return slug or FALLBACK_SLUG


async def _slug_exists(
    session: StoreSession, slug: str, organization_id: UUID | None
) -> bool:
    if organization_id is None:
        return await session.orgs.get_by_slug(slug) is not None
    return await session.schools.get_by_slug(organization_id, slug) is not None


async def unique_slug(
    session: StoreSession,
    name: str,
    *,
    organization_id: UUID | None = None,
    max_attempts: int = MAX_SLUG_ATTEMPTS,
) -> str:
    base = slugify(name)
    candidate = base
    for attempt in range(max_attempts):
        if attempt:
            candidate = f"{base}-{attempt}"
        if not await _slug_exists(session, candidate, organization_id):
            return candidate
    raise SlugExhaustedError(base, max_attempts)
