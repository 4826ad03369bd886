"""Identity and credential value types.

These are plain, immutable values passed between the issuer, the verifier
and the credential stores. Database rows live in
`weather_gateway.database.models`.

## Credential wire format

```
<public id>:<secret material>
```

- Public id: 128+ bits of randomness, hex encoded; the lookup key
- Secret material: a signed session token (sessions) or 256 random bits
  (API keys); only its hash is ever stored
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

SEPARATOR = ":"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Identity role."""

    STANDARD = "standard"
    ELEVATED = "elevated"


class CredentialKind(str, Enum):
    """Kind of credential."""

    SESSION = "session"  # Short-lived, one per login
    API_KEY = "api_key"  # Long-lived, revocable, many per identity


@dataclass(frozen=True)
class Identity:
    """A principal: a human user or a programmatic client."""

    id: uuid.UUID
    role: Role = Role.STANDARD
    revoked: bool = False

    @property
    def is_elevated(self) -> bool:
        return self.role == Role.ELEVATED


@dataclass(frozen=True)
class CredentialRecord:
    """What a credential store keeps for one credential.

    `secret_hash` is a one-way hash of the secret material; the secret itself
    is never stored. `expires_at` is None for credentials that never expire.
    """

    public_id: str
    identity: Identity
    kind: CredentialKind
    secret_hash: str = field(repr=False)
    expires_at: datetime | None = None
    revoked: bool = False
    created_at: datetime = field(default_factory=utcnow)
    label: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass(frozen=True)
class IssuedCredential:
    """A freshly issued credential.

    This is the only object that ever holds the plaintext secret. It is
    returned to the caller once and must not be stored.
    """

    public_id: str
    secret: str = field(repr=False)
    kind: CredentialKind
    identity_id: uuid.UUID
    created_at: datetime
    expires_at: datetime | None = None

    @property
    def value(self) -> str:
        """The credential in wire format."""
        return f"{self.public_id}{SEPARATOR}{self.secret}"


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    """Result of a successful verification."""

    identity: Identity
    kind: CredentialKind
    public_id: str
    expires_at: datetime | None = None

    @property
    def identity_id(self) -> uuid.UUID:
        return self.identity.id

    @property
    def role(self) -> Role:
        return self.identity.role
