"""Session token signing.

The secret material of a session credential is a signed JWT. The token is
bound to its credential: `jti` carries the credential's public id, so a token
cannot be replayed under another public id.

## Token Structure

```json
{
  "sub": "identity-uuid",
  "jti": "public-id",
  "iat": 1234567890,
  "exp": 1234571490,
  "type": "session"
}
```

## Security

- Tokens are signed with the application secret key (HS256)
- Only the signature and binding are checked here. Expiry is enforced
  against the stored credential record, after the hash check.
- The token itself is never stored; the credential store keeps its hash
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from jose import JWTError, jwt

from weather_gateway.errors import SignatureInvalid

logger = logging.getLogger(__name__)

# JWT configuration
ALGORITHM = "HS256"
TOKEN_TYPE = "session"


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried by a verified session token."""

    public_id: str
    identity_id: uuid.UUID
    issued_at: datetime
    expires_at: datetime


def create_session_token(
    public_id: str,
    identity_id: uuid.UUID,
    issued_at: datetime,
    expires_at: datetime,
    secret_key: str,
) -> str:
    """Create the signed secret material for a session credential.

    Args:
        public_id: Public id of the credential the token belongs to
        identity_id: The identity the session authenticates
        issued_at: Issue time
        expires_at: Absolute expiry
        secret_key: Signing key

    Returns:
        Signed JWT token string
    """
    payload = {
        "sub": str(identity_id),
        "jti": public_id,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
        "type": TOKEN_TYPE,
    }
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def decode_session_token(token: str, public_id: str, secret_key: str) -> SessionClaims:
    """Verify a session token's signature and binding.

    Args:
        token: The JWT token string
        public_id: Public id the token was presented with
        secret_key: Signing key

    Returns:
        The token's claims

    Raises:
        SignatureInvalid: If the signature, type or binding is wrong
    """
    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError as e:
        logger.debug(f"Session token signature check failed: {e}")
        raise SignatureInvalid(public_id) from e

    if payload.get("type") != TOKEN_TYPE:
        logger.debug("Invalid token type")
        raise SignatureInvalid(public_id)

    if payload.get("jti") != public_id:
        logger.debug("Session token bound to another credential")
        raise SignatureInvalid(public_id)

    try:
        return SessionClaims(
            public_id=payload["jti"],
            identity_id=uuid.UUID(payload["sub"]),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, ValueError, TypeError) as e:
        logger.debug(f"Invalid token payload: {e}")
        raise SignatureInvalid(public_id) from e
