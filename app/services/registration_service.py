"""Dojo registration: organization, first school and admin user in one unit.

``register_dojo`` either persists all three records or none of them.  Any
failure inside the transaction (slug exhaustion, hashing, a unique
constraint lost to a concurrent registration) is rolled back and
surfaced as a single ``RegistrationError`` whose ``cause`` is the
original exception.

Post-commit hooks (by default a welcome log line) run after the commit
and are best-effort: their failures are logged and never undo or fail
the registration.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

from app.core.errors import InputValidationError, RegistrationError
from app.core.metrics import REGISTRATIONS
from app.models.organization import Organization
from app.models.registration import RegistrationInput, RegistrationResult
from app.models.school import DEFAULT_CLASS_CAPACITY, School, SchoolSettings
from app.models.subscription import trial_settings
from app.models.user import User
from app.repos.identity_store import IdentityStore
from app.services.auth_service import hash_password
from app.services.slug_service import unique_slug

logger = logging.getLogger(__name__)

TRIAL_DAYS = 30

PostCommitHook = Callable[[RegistrationResult], object]


def default_school_name(organization_name: str) -> str:
    return f"{organization_name} Main School"


def _check_required(data: RegistrationInput) -> None:
    missing = [
        name
        for name, value in (
            ("organization_name", data.organization_name),
            ("email", data.email),
            ("password", data.password),
            ("martial_art_types", data.martial_art_types),
        )
        if not value
    ]
    if missing:
        raise InputValidationError(
            "registration input is missing required fields",
            details={"missing": missing},
        )


def _log_welcome(result: RegistrationResult) -> None:
    logger.info(
        "New dojo registered: %s (%s), trial=%d days, admin=%s",
        result.organization.name,
        result.organization.slug,
        result.trial_days,
        result.user.email,
    )


DEFAULT_POST_COMMIT_HOOKS: tuple[PostCommitHook, ...] = (_log_welcome,)


async def _run_post_commit_hooks(
    hooks: Sequence[PostCommitHook], result: RegistrationResult
) -> None:
    for hook in hooks:
        try:
            outcome = hook(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.warning(
                "Post-registration hook %s failed for org=%s",
                getattr(hook, "__name__", repr(hook)),
                result.organization.id,
                exc_info=True,
            )


async def register_dojo(
    store: IdentityStore,
    data: RegistrationInput,
    *,
    now: datetime | None = None,
    post_commit_hooks: Sequence[PostCommitHook] | None = None,
) -> RegistrationResult:
    now = now or datetime.now(UTC)
    trial_end = now + timedelta(days=TRIAL_DAYS)
    hooks = DEFAULT_POST_COMMIT_HOOKS if post_commit_hooks is None else post_commit_hooks

    try:
        _check_required(data)
        async with store.transaction() as tx:
            slug = await unique_slug(tx, data.organization_name)
            org = Organization.new(
                name=data.organization_name,
                slug=slug,
                email=data.email,
                settings=trial_settings(data.number_of_schools, data.estimated_students),
                phone=data.phone,
                website=data.website,
                address=data.address,
                city=data.city,
                state=data.state,
                zip_code=data.zip_code,
                country=data.country,
                business_type=data.business_type,
                martial_art_types=tuple(data.martial_art_types),
                number_of_schools=data.number_of_schools,
                estimated_students=data.estimated_students,
                subscription="trial",
                subscription_status="active",
                trial_start_date=now,
                trial_end_date=trial_end,
                subscription_expiry=trial_end,
                is_active=True,
            )
            await tx.orgs.add(org)

            school_name = data.first_school_name or default_school_name(
                data.organization_name
            )
            school = School.new(
                organization_id=org.id,
                name=school_name,
                slug=await unique_slug(tx, school_name, organization_id=org.id),
                address=data.first_school_address or data.address,
                city=data.city,
                state=data.state,
                zip_code=data.zip_code,
                country=data.country,
                phone=data.phone,
                email=data.email,
                settings=SchoolSettings(
                    martial_art_types=tuple(data.martial_art_types),
                    class_capacity=DEFAULT_CLASS_CAPACITY,
                    allow_online_booking=True,
                ),
            )
            await tx.schools.add(school)

            user = User.new(
                organization_id=org.id,
                school_id=school.id,
                email=data.email,
                password_hash=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                role="org_admin",
                phone=data.phone,
                last_login=now,
            )
            await tx.users.add(user)
    except Exception as exc:
        REGISTRATIONS.labels(result="failure").inc()
        logger.warning(
            "Registration rolled back for %r: %s", data, type(exc).__name__
        )
        raise RegistrationError(exc) from exc

    REGISTRATIONS.labels(result="success").inc()
    result = RegistrationResult(
        organization=org, school=school, user=user, trial_days=TRIAL_DAYS
    )
    await _run_post_commit_hooks(hooks, result)
    return result
