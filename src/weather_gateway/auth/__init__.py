"""Authentication module for the weather gateway.

Provides credential issuance and verification for two kinds of callers:

- Interactive users log in with email and password and receive a session
  credential (default lifetime 1 hour), sent as `Authorization: Bearer`
- Programmatic clients use long-lived API keys, sent in the `X-API-Key`
  header

Both kinds share the wire format `publicId:secretMaterial`.

## Security

- Only a keyed one-way hash of each secret is stored
- A credential's plaintext is returned exactly once, at issuance
- All verification failures look the same to the caller
"""

from weather_gateway.auth.issuer import CredentialIssuer
from weather_gateway.auth.models import (
    AuthenticatedPrincipal,
    CredentialKind,
    CredentialRecord,
    Identity,
    IssuedCredential,
    Role,
)
from weather_gateway.auth.store import CredentialStore, InMemoryCredentialStore
from weather_gateway.auth.verifier import CredentialVerifier, extract_bearer, parse_credential

__all__ = [
    "CredentialIssuer",
    "CredentialVerifier",
    "CredentialStore",
    "InMemoryCredentialStore",
    "AuthenticatedPrincipal",
    "CredentialKind",
    "CredentialRecord",
    "Identity",
    "IssuedCredential",
    "Role",
    "extract_bearer",
    "parse_credential",
]
