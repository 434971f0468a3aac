"""Trial status, trial extension and subscription conversion.

Each write operation runs in its own store transaction and reads the
organization with ``for_update=True``, so concurrent extensions or
conversions of the same organization serialize instead of racing.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import UUID

from app.core.errors import InputValidationError, NotFoundError
from app.core.metrics import SUBSCRIPTION_CONVERSIONS, TRIAL_EXTENSIONS
from app.models.organization import Organization
from app.models.registration import TrialStatus
from app.models.subscription import PAID_TIERS, TIER_POLICIES
from app.repos.identity_store import IdentityStore

logger = logging.getLogger(__name__)

MIN_EXTENSION_DAYS = 1
MAX_EXTENSION_DAYS = 90

_DAY = timedelta(days=1)


def _add_one_year(moment: datetime) -> datetime:
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        # Feb 29 has no counterpart next year.
        return moment.replace(year=moment.year + 1, day=28)


def compute_trial_status(org: Organization | None, now: datetime) -> TrialStatus:
    if org is None or org.trial_end_date is None:
        return TrialStatus(is_expired=True, days_remaining=0, trial_end_date=None)
    days = math.ceil((org.trial_end_date - now) / _DAY)
    return TrialStatus(
        is_expired=days <= 0,
        days_remaining=max(0, days),
        trial_end_date=org.trial_end_date,
    )


async def check_trial_status(
    store: IdentityStore, organization_id: UUID, *, now: datetime | None = None
) -> TrialStatus:
    async with store.transaction() as tx:
        org = await tx.orgs.get_by_id(organization_id)
    return compute_trial_status(org, now or datetime.now(UTC))


async def extend_trial(
    store: IdentityStore,
    organization_id: UUID,
    additional_days: int,
    *,
    now: datetime | None = None,
) -> Organization:
    if not MIN_EXTENSION_DAYS <= additional_days <= MAX_EXTENSION_DAYS:
        raise InputValidationError(
            f"additional_days must be between {MIN_EXTENSION_DAYS} and {MAX_EXTENSION_DAYS}",
            details={"additional_days": additional_days},
        )
    now = now or datetime.now(UTC)

    async with store.transaction() as tx:
        org = await tx.orgs.get_by_id(organization_id, for_update=True)
        if org is None:
            raise NotFoundError("organization", str(organization_id))
        new_end = (org.trial_end_date or now) + timedelta(days=additional_days)
        updated = replace(org, trial_end_date=new_end, subscription_expiry=new_end)
        await tx.orgs.save(updated)

    TRIAL_EXTENSIONS.inc()
    logger.info(
        "Extended trial for org=%s by %d days, ends %s",
        organization_id,
        additional_days,
        new_end.isoformat(),
    )
    return updated


async def convert_to_subscription(
    store: IdentityStore,
    organization_id: UUID,
    tier: str,
    *,
    now: datetime | None = None,
) -> Organization:
    """Move an organization onto a paid tier.

    Quotas and feature flags are replaced wholesale from the tier policy;
    nothing from the previous settings document is carried over.  Free
    plans expire immediately, every other tier one year from ``now``.
    """
    policy = TIER_POLICIES.get(tier)  # type: ignore[call-overload]
    if policy is None:
        raise InputValidationError(
            f"unknown subscription tier: {tier}",
            details={"tier": tier, "allowed": list(PAID_TIERS)},
        )
    now = now or datetime.now(UTC)
    expiry = now if tier == "free" else _add_one_year(now)

    async with store.transaction() as tx:
        org = await tx.orgs.get_by_id(organization_id, for_update=True)
        if org is None:
            raise NotFoundError("organization", str(organization_id))
        previous = org.subscription
        updated = replace(
            org,
            subscription=tier,
            subscription_status="active",
            subscription_expiry=expiry,
            settings=policy.to_settings(),
        )
        await tx.orgs.save(updated)

    SUBSCRIPTION_CONVERSIONS.labels(tier=tier).inc()
    logger.info(
        "Converted org=%s from %s to %s, expires %s",
        organization_id,
        previous,
        tier,
        expiry.isoformat(),
    )
    return updated
