"""Credential verification.

## Algorithm

1. Split `publicId:secretMaterial`; anything other than exactly two
   non-empty parts is `MalformedCredential`
2. Look up the public id (`CredentialNotFound`); a credential presented
   through the wrong header is treated as not found
3. Session tokens: check signature and binding first (`SignatureInvalid`)
4. Compare the secret's hash with the stored hash (`SecretMismatch`)
5. Check expiry (`CredentialExpired`), then credential and identity
   revocation (`CredentialRevoked`)
6. Return the authenticated principal

Only step 1 may be reported to callers as such. Steps 2-5 raise subclasses of
`CredentialRejected`, which the HTTP layer turns into one generic 401. The
specific reason is logged at DEBUG level with the public id only.

A failing credential store raises `StoreUnavailable`; it is never treated as
a rejection and never authenticates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from weather_gateway.auth.hashing import verify_secret
from weather_gateway.auth.models import (
    SEPARATOR,
    AuthenticatedPrincipal,
    CredentialKind,
    utcnow,
)
from weather_gateway.auth.session import decode_session_token
from weather_gateway.auth.store import CredentialStore, with_store_timeout
from weather_gateway.errors import (
    CredentialExpired,
    CredentialNotFound,
    CredentialRejected,
    CredentialRevoked,
    MalformedCredential,
    SecretMismatch,
    SignatureInvalid,
)

logger = logging.getLogger(__name__)

# Longer inputs cannot be credentials we issued
MAX_CREDENTIAL_LENGTH = 2048

BEARER_SCHEME = "bearer"


def parse_credential(value: str) -> tuple[str, str]:
    """Split a credential into (public_id, secret).

    Raises:
        MalformedCredential: Unless the value has exactly two non-empty parts
    """
    if not value or len(value) > MAX_CREDENTIAL_LENGTH:
        raise MalformedCredential()
    parts = value.split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedCredential()
    return parts[0], parts[1]


def extract_bearer(authorization: str) -> str:
    """Return the credential from an `Authorization: Bearer <cred>` header.

    Raises:
        MalformedCredential: If the scheme is not Bearer or the value is empty
    """
    scheme, _, credential = authorization.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME or not credential.strip():
        raise MalformedCredential("Expected 'Authorization: Bearer <credential>'")
    return credential.strip()


class CredentialVerifier:
    """Verify presented credentials against the credential store."""

    def __init__(
        self,
        store: CredentialStore,
        secret_key: str,
        hash_key: str,
        store_timeout: float = 2.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the verifier.

        Args:
            store: Credential store
            secret_key: Session token signing key
            hash_key: HMAC key for secret hashes
            store_timeout: Timeout per store call in seconds
            clock: Returns the current aware UTC time (injectable for tests)
        """
        self.store = store
        self._secret_key = secret_key
        self._hash_key = hash_key
        self._store_timeout = store_timeout
        self._clock = clock

    async def verify(self, presented: str, kind: CredentialKind) -> AuthenticatedPrincipal:
        """Verify a credential presented as `kind`.

        Args:
            presented: Credential in wire format
            kind: Kind implied by the header it arrived in

        Returns:
            The authenticated principal

        Raises:
            MalformedCredential: If the credential cannot be parsed
            CredentialRejected: If any check fails (see module docs)
            StoreUnavailable: If the credential store cannot be reached
        """
        public_id, secret = parse_credential(presented)
        try:
            return await self._verify(public_id, secret, kind)
        except CredentialRejected as e:
            logger.debug(f"Credential {public_id} rejected: {e.reason}")
            raise

    async def _verify(
        self,
        public_id: str,
        secret: str,
        kind: CredentialKind,
    ) -> AuthenticatedPrincipal:
        record = await with_store_timeout(
            self.store.find_by_public_id(public_id), self._store_timeout
        )
        if record is None or record.kind != kind:
            raise CredentialNotFound(public_id)

        if record.kind == CredentialKind.SESSION:
            claims = decode_session_token(secret, public_id, self._secret_key)
            if claims.identity_id != record.identity.id:
                raise SignatureInvalid(public_id)

        if not verify_secret(secret, record.secret_hash, self._hash_key):
            raise SecretMismatch(public_id)

        if record.is_expired(self._clock()):
            raise CredentialExpired(public_id)

        if record.revoked or record.identity.revoked:
            raise CredentialRevoked(public_id)

        return AuthenticatedPrincipal(
            identity=record.identity,
            kind=record.kind,
            public_id=public_id,
            expires_at=record.expires_at,
        )
