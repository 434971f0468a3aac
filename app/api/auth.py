"""JSON auth endpoints (/api/auth/login, /api/auth/me, /api/auth/logout).

Login returns { message, token, user } so the client can keep the token
in memory and go straight to the dashboard.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from app.api.dependencies import require_user
from app.api.serializers import organization_out, user_out
from app.core.errors import AccountDeactivatedError
from app.models.principal import Principal
from app.repos.identity_store import identity_store
from app.services import auth_service, token_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginIn(BaseModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        email = value.strip().lower()
        if "@" not in email:
            raise ValueError("Valid email is required")
        return email


@router.post("/login")
async def login(payload: LoginIn) -> dict:
    email = payload.email
    try:
        async with identity_store.transaction() as tx:
            user = await auth_service.authenticate_user(tx.users, email, payload.password)
            if user is not None:
                org = await tx.orgs.get_by_id(user.organization_id)
    except AccountDeactivatedError:
        logger.warning("Login refused, account deactivated  email=%s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated",
        ) from None

    if user is None:
        logger.warning("Login failed  email=%s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    logger.info("Login succeeded  user_id=%s", user.id)
    body = user_out(user)
    body["organization"] = organization_out(org) if org is not None else None
    return {
        "message": "Login successful",
        "token": token_service.create_access_token(user),
        "user": body,
    }


@router.get("/me")
async def me(principal: Annotated[Principal, Depends(require_user)]) -> dict:
    async with identity_store.transaction() as tx:
        user = await tx.users.get_by_id(principal.user_id)
        org = await tx.orgs.get_by_id(principal.organization_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    body = user_out(user)
    body["organization"] = organization_out(org) if org is not None else None
    return {"user": body}


@router.post("/logout")
async def logout(principal: Annotated[Principal, Depends(require_user)]) -> dict:
    # Tokens are stateless; the client discards its copy.
    logger.info("Logout  user_id=%s", principal.user_id)
    return {"message": "Logout successful"}
