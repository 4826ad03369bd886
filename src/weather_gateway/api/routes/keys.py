"""API key routes.

Logged-in users manage their own API keys. These endpoints require a session
credential: an API key cannot mint or revoke other keys.

The plaintext key appears only in the creation response.
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from weather_gateway.api.dependencies import get_gateway, require_session
from weather_gateway.auth.models import AuthenticatedPrincipal, CredentialRecord
from weather_gateway.gateway import Gateway

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateKeyRequest(BaseModel):
    """API key creation request."""

    label: str | None = Field(default=None, max_length=100)


class CreatedKeyResponse(BaseModel):
    """A new API key. `api_key` is shown only once."""

    public_id: str
    api_key: str
    label: str | None
    created_at: datetime


class KeyResponse(BaseModel):
    """API key metadata."""

    public_id: str
    label: str | None
    created_at: datetime
    revoked: bool


def key_response(record: CredentialRecord) -> KeyResponse:
    return KeyResponse(
        public_id=record.public_id,
        label=record.label,
        created_at=record.created_at,
        revoked=record.revoked,
    )


@router.post("", response_model=CreatedKeyResponse, status_code=status.HTTP_201_CREATED)
async def create_key(
    request: CreateKeyRequest | None = None,
    principal: AuthenticatedPrincipal = Depends(require_session),
    gateway: Gateway = Depends(get_gateway),
) -> CreatedKeyResponse:
    """Issue a new API key for the current user."""
    label = request.label if request else None
    issued = await gateway.issuer.issue_api_key(principal.identity, label=label)
    return CreatedKeyResponse(
        public_id=issued.public_id,
        api_key=issued.value,
        label=label,
        created_at=issued.created_at,
    )


@router.get("", response_model=list[KeyResponse])
async def list_keys(
    principal: AuthenticatedPrincipal = Depends(require_session),
    gateway: Gateway = Depends(get_gateway),
) -> list[KeyResponse]:
    """List the current user's API keys, newest first."""
    records = await gateway.issuer.list_api_keys(principal.identity_id)
    return [key_response(record) for record in records]


@router.delete("/{public_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_key(
    public_id: str,
    principal: AuthenticatedPrincipal = Depends(require_session),
    gateway: Gateway = Depends(get_gateway),
) -> Response:
    """Revoke one of the current user's API keys."""
    keys = {record.public_id for record in await gateway.issuer.list_api_keys(principal.identity_id)}
    if public_id not in keys or not await gateway.issuer.revoke(
        public_id, owner_id=principal.identity_id
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="API key not found",
        )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
