"""Gateway error taxonomy.

## Hierarchy

```
GatewayError
├── AuthenticationError
│   ├── MalformedCredential        -> 400
│   └── CredentialRejected         -> 401 (one generic response)
│       ├── CredentialNotFound
│       ├── SignatureInvalid
│       ├── SecretMismatch
│       ├── CredentialExpired
│       └── CredentialRevoked
├── RateLimited                    -> 429 + Retry-After
├── BackendUnavailable             -> 503 when it blocks the request
│   └── StoreUnavailable
├── IssuanceFailed                 -> 503
├── PublicIdConflict               (internal, store uniqueness violation)
└── ProviderError                  -> 502 (providers.base)
    ├── UpstreamRateLimited        -> 503 + Retry-After
    └── LocationNotFound           -> 404
```

Subclasses of `CredentialRejected` exist for logging and tests only. The HTTP
layer handles them through the base class so callers cannot learn which check
failed.
"""

from __future__ import annotations

import math


class GatewayError(Exception):
    """Base exception for gateway errors."""


class AuthenticationError(GatewayError):
    """Base class for credential verification failures."""


class MalformedCredential(AuthenticationError):
    """Credential does not have the `publicId:secretMaterial` shape."""

    def __init__(self, message: str = "Malformed credential"):
        super().__init__(message)


class CredentialRejected(AuthenticationError):
    """Credential is well-formed but not acceptable."""

    reason: str = "rejected"

    def __init__(self, public_id: str | None = None):
        super().__init__(f"Credential {self.reason}")
        self.public_id = public_id


class CredentialNotFound(CredentialRejected):
    reason = "not_found"


class SignatureInvalid(CredentialRejected):
    reason = "signature_invalid"


class SecretMismatch(CredentialRejected):
    reason = "secret_mismatch"


class CredentialExpired(CredentialRejected):
    reason = "expired"


class CredentialRevoked(CredentialRejected):
    reason = "revoked"


class RateLimited(GatewayError):
    """Raised when a caller exceeds its request quota."""

    def __init__(self, retry_after: float, limit: int | None = None):
        super().__init__(f"Rate limit exceeded, retry after {retry_after:.1f}s")
        self.retry_after = retry_after
        self.limit = limit

    @property
    def retry_after_header(self) -> str:
        """Retry-After header value (whole seconds, at least 1)."""
        return str(max(1, math.ceil(self.retry_after)))


class BackendUnavailable(GatewayError):
    """Raised when an external store cannot be reached in time."""

    def __init__(self, backend: str, message: str = "Backend unavailable"):
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class StoreUnavailable(BackendUnavailable):
    """Raised when the credential store cannot be reached in time."""

    def __init__(self, message: str = "Credential store unavailable"):
        super().__init__("credential_store", message)


class IssuanceFailed(GatewayError):
    """Raised when no unique public id could be allocated."""


class PublicIdConflict(GatewayError):
    """Raised by a credential store when a public id already exists."""

    def __init__(self, public_id: str):
        super().__init__("Public id already exists")
        self.public_id = public_id
