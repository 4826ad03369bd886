"""FastAPI dependencies for authentication and rate limiting.

These dependencies can be used in route handlers to require a verified
credential and to apply the caller's request quota.

## Credentials

- `X-API-Key: <publicId>:<secret>`: an API key
- `Authorization: Bearer <publicId>:<secret>`: a session credential

Verification errors propagate to the app's exception handlers, which turn
any rejection into one generic 401.

## Usage

```python
from fastapi import Depends
from weather_gateway.api.dependencies import require_elevated, require_session

@router.post("/keys")
async def create_key(principal: AuthenticatedPrincipal = Depends(require_session)):
    ...

@router.get("/admin/stats")
async def stats(principal: AuthenticatedPrincipal = Depends(require_elevated)):
    # Only elevated identities can access this
    ...
```
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, Response, status

from weather_gateway.auth.models import AuthenticatedPrincipal, CredentialKind
from weather_gateway.auth.verifier import extract_bearer
from weather_gateway.errors import AuthenticationError
from weather_gateway.gateway import Gateway
from weather_gateway.ratelimit.governor import RateDecision

logger = logging.getLogger(__name__)


def get_gateway(request: Request) -> Gateway:
    """Get the gateway built at startup."""
    return request.app.state.gateway


def client_ip(request: Request, trust_forwarded_for: bool = False) -> str:
    """Best-effort client IP address.

    `X-Forwarded-For` is only honoured behind a trusted proxy; otherwise any
    caller could pick its own rate limit bucket.
    """
    if trust_forwarded_for:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def apply_decision(decision: RateDecision, response: Response) -> None:
    """Set quota headers and reject the request when over the limit.

    Raises:
        RateLimited: If the decision does not allow the request
    """
    response.headers["X-RateLimit-Limit"] = str(decision.limit)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
    if not decision.allowed:
        raise decision.to_error()


async def get_principal_optional(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
) -> AuthenticatedPrincipal | None:
    """Verify the presented credential, or return None if there is none.

    An API key header takes precedence over an Authorization header.
    """
    api_key = request.headers.get(gateway.settings.api_key_header)
    if api_key:
        return await gateway.verifier.verify(api_key.strip(), CredentialKind.API_KEY)

    authorization = request.headers.get("Authorization")
    if authorization:
        return await gateway.verifier.verify(extract_bearer(authorization), CredentialKind.SESSION)

    return None


async def get_current_principal(
    principal: AuthenticatedPrincipal | None = Depends(get_principal_optional),
) -> AuthenticatedPrincipal:
    """Get the authenticated caller.

    Raises 401 if no credential was presented.
    """
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return principal


async def require_session(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> AuthenticatedPrincipal:
    """Require a session credential (a logged-in user, not an API key).

    Raises 403 for API key callers.
    """
    if principal.kind != CredentialKind.SESSION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Session credential required",
        )

    return principal


async def require_elevated(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> AuthenticatedPrincipal:
    """Require the caller's identity to have the elevated role.

    Raises 403 otherwise.
    """
    if not principal.identity.is_elevated:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Elevated access required",
        )

    return principal


async def limit_by_ip(
    request: Request,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
) -> None:
    """Apply the IP quota (anonymous endpoints such as login)."""
    ip = client_ip(request, gateway.settings.trust_forwarded_for)
    apply_decision(await gateway.governor.check_ip(ip), response)


async def rate_limited_principal(
    request: Request,
    response: Response,
    gateway: Gateway = Depends(get_gateway),
) -> AuthenticatedPrincipal:
    """Authenticate the caller and apply its quota.

    API key callers are counted per key. Everyone else, including callers
    whose API key fails verification, is counted per client IP.

    Raises:
        RateLimited: If the quota is exhausted
        HTTPException: 401 if no credential was presented
    """
    ip = client_ip(request, gateway.settings.trust_forwarded_for)

    if request.headers.get(gateway.settings.api_key_header):
        try:
            principal = await get_principal_optional(request, gateway)
        except AuthenticationError:
            apply_decision(await gateway.governor.check_ip(ip), response)
            raise
        apply_decision(await gateway.governor.check_api_key(principal.public_id), response)
        return principal

    apply_decision(await gateway.governor.check_ip(ip), response)
    principal = await get_principal_optional(request, gateway)
    return await get_current_principal(principal)
