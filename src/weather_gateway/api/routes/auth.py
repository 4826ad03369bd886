"""Authentication routes.

Handles account registration, password login and session management.

## Endpoints

1. POST /auth/register - Create an account
2. POST /auth/login - Exchange email and password for a session credential
3. POST /auth/logout - Revoke the presented session credential
4. GET /auth/me - Get current user info

## Session Management

A session credential is returned once, in the login response, and sent back
as `Authorization: Bearer <publicId>:<secret>`. It expires after
`SESSION_TTL_SECONDS` (default 1 hour) or when revoked by logout.

Register and login are governed by the per-IP rate limit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from weather_gateway.api.dependencies import (
    get_current_principal,
    get_gateway,
    limit_by_ip,
    require_session,
)
from weather_gateway.auth.hashing import hash_password_async, verify_password_async
from weather_gateway.auth.models import AuthenticatedPrincipal
from weather_gateway.database.connection import get_db_session
from weather_gateway.database.credential_store import identity_from_user
from weather_gateway.database.models import User
from weather_gateway.gateway import Gateway

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_LOGIN = "Invalid email or password"


class RegisterRequest(BaseModel):
    """Account registration request."""

    email: EmailStr
    password: str = Field(..., max_length=256)


class LoginRequest(BaseModel):
    """Password login request."""

    email: EmailStr
    password: str = Field(..., max_length=256)


class UserResponse(BaseModel):
    """User information response."""

    id: str
    email: str
    role: str
    is_active: bool


class SessionResponse(BaseModel):
    """Issued session credential."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime | None


class MeResponse(BaseModel):
    """Current caller information."""

    user: UserResponse
    credential_kind: str
    credential_id: str
    expires_at: datetime | None = None


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        role=user.role,
        is_active=user.is_active,
    )


def normalize_email(email: str) -> str:
    return email.strip().lower()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_by_ip)],
)
async def register(
    request: RegisterRequest,
    gateway: Gateway = Depends(get_gateway),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    """Create a standard account."""
    min_length = gateway.settings.min_password_length
    if len(request.password) < min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {min_length} characters",
        )

    email = normalize_email(request.email)
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(email=email, password_hash=await hash_password_async(request.password))
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Registered concurrently since the check above
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )
    await db.refresh(user)

    logger.info(f"Registered user {user.id}")
    return user_response(user)


@router.post(
    "/login",
    response_model=SessionResponse,
    dependencies=[Depends(limit_by_ip)],
)
async def login(
    request: LoginRequest,
    gateway: Gateway = Depends(get_gateway),
    db: AsyncSession = Depends(get_db_session),
) -> SessionResponse:
    """Log in and receive a session credential.

    Unknown email, wrong password and deactivated accounts all get the same
    401 response.
    """
    result = await db.execute(select(User).where(User.email == normalize_email(request.email)))
    user = result.scalar_one_or_none()

    password_ok = user is not None and await verify_password_async(
        request.password, user.password_hash
    )
    if not password_ok or not user.is_active:
        logger.info("Failed login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_LOGIN,
            headers={"WWW-Authenticate": "Bearer"},
        )

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()

    issued = await gateway.issuer.issue_session_credential(identity_from_user(user))
    return SessionResponse(access_token=issued.value, expires_at=issued.expires_at)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    principal: AuthenticatedPrincipal = Depends(require_session),
    gateway: Gateway = Depends(get_gateway),
) -> Response:
    """Revoke the session credential used for this request."""
    await gateway.issuer.revoke(principal.public_id, owner_id=principal.identity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=MeResponse)
async def get_me(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> MeResponse:
    """Get the current user and the credential in use."""
    user = await db.get(User, principal.identity_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    return MeResponse(
        user=user_response(user),
        credential_kind=principal.kind.value,
        credential_id=principal.public_id,
        expires_at=principal.expires_at,
    )
