"""Password hashing and credential checks for dojo staff accounts."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from app.core.errors import AccountDeactivatedError
from app.models.user import User
from app.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

_ph = PasswordHasher()


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


async def authenticate_user(
    users: UserRepo, email: str, password: str, *, now: datetime | None = None
) -> User | None:
    """Check credentials and record the login.

    Returns None for an unknown email or a wrong password.  A correct
    password on a deactivated account raises AccountDeactivatedError.
    On success ``last_login`` is stamped and the stored hash is upgraded
    if the hasher parameters have changed since it was written.
    """
    user = await users.get_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        raise AccountDeactivatedError(str(user.id))

    if _ph.check_needs_rehash(user.password_hash):
        user = replace(user, password_hash=_ph.hash(password))
        await users.update_password_hash(user.id, user.password_hash)
        logger.info("Rehashed password for user=%s", user.id)

    now = now or datetime.now(UTC)
    await users.touch_last_login(user.id, now)
    return replace(user, last_login=now)
