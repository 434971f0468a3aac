"""JWT access token creation and validation (ES256).

Registration and login issue tokens here; dependencies.py validates them.
Claims carry the user's identity and tenant, but authorization decisions
re-read the stored user on every request.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from app.core.config import SETTINGS
from app.models.user import User

# Ephemeral EC key pair: tokens do not survive a restart.
# TODO: load the signing key from a file or KMS for multi-instance prod.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "dojo-service"
AUDIENCE = "dojo-service"


def create_access_token(user: User, *, ttl: timedelta | None = None) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": str(user.id),
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + (ttl or timedelta(days=SETTINGS.jwt_expire_days)),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "email": user.email,
        "role": user.role,
        "org_id": str(user.organization_id),
        "school_id": str(user.school_id) if user.school_id else None,
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256. Raises jwt.ExpiredSignatureError or
    jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
