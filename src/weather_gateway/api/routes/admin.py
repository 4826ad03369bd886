"""Administration routes.

Available to identities with the elevated role only.

Revoking a user deactivates the account, which invalidates every session and
API key the user holds on their next use. Restoring reactivates the account;
credentials revoked individually stay revoked.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from weather_gateway.api.dependencies import get_gateway, require_elevated
from weather_gateway.api.routes.auth import UserResponse, user_response
from weather_gateway.auth.models import AuthenticatedPrincipal, CredentialKind, Role
from weather_gateway.database.connection import get_db_session
from weather_gateway.database.models import Credential, User
from weather_gateway.gateway import Gateway

logger = logging.getLogger(__name__)

router = APIRouter()


class StatsResponse(BaseModel):
    """Gateway usage statistics."""

    users: int
    active_users: int
    elevated_users: int
    active_sessions: int
    active_api_keys: int
    state_backend: str


class RoleUpdate(BaseModel):
    """Role change request."""

    role: Role


async def _get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


async def _count(db: AsyncSession, *criteria) -> int:
    result = await db.execute(select(func.count()).select_from(Credential).where(*criteria))
    return result.scalar_one()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    principal: AuthenticatedPrincipal = Depends(require_elevated),
    gateway: Gateway = Depends(get_gateway),
    db: AsyncSession = Depends(get_db_session),
) -> StatsResponse:
    """Get user and credential counts."""
    users = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    active_users = (
        await db.execute(select(func.count()).select_from(User).where(User.is_active == True))
    ).scalar_one()
    elevated_users = (
        await db.execute(
            select(func.count()).select_from(User).where(User.role == Role.ELEVATED.value)
        )
    ).scalar_one()
    active_sessions = await _count(
        db,
        Credential.kind == CredentialKind.SESSION.value,
        Credential.revoked == False,
        Credential.expires_at > datetime.now(timezone.utc),
    )
    active_api_keys = await _count(
        db,
        Credential.kind == CredentialKind.API_KEY.value,
        Credential.revoked == False,
    )

    return StatsResponse(
        users=users,
        active_users=active_users,
        elevated_users=elevated_users,
        active_sessions=active_sessions,
        active_api_keys=active_api_keys,
        state_backend=gateway.backend.name,
    )


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_role(
    user_id: uuid.UUID,
    update: RoleUpdate,
    principal: AuthenticatedPrincipal = Depends(require_elevated),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    """Change a user's role. Takes effect on the user's next request."""
    user = await _get_user(db, user_id)
    user.role = update.role.value
    await db.commit()

    logger.info(f"User {user_id} role set to {update.role.value} by {principal.identity_id}")
    return user_response(user)


@router.post("/users/{user_id}/revoke", response_model=UserResponse)
async def revoke_user(
    user_id: uuid.UUID,
    principal: AuthenticatedPrincipal = Depends(require_elevated),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    """Deactivate a user, invalidating all of their credentials."""
    if user_id == principal.identity_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot revoke your own account",
        )

    user = await _get_user(db, user_id)
    user.is_active = False
    await db.commit()

    logger.info(f"User {user_id} revoked by {principal.identity_id}")
    return user_response(user)


@router.post("/users/{user_id}/restore", response_model=UserResponse)
async def restore_user(
    user_id: uuid.UUID,
    principal: AuthenticatedPrincipal = Depends(require_elevated),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    """Reactivate a revoked user."""
    user = await _get_user(db, user_id)
    user.is_active = True
    await db.commit()

    logger.info(f"User {user_id} restored by {principal.identity_id}")
    return user_response(user)
