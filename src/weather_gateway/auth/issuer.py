"""Credential issuance.

Mints session credentials and API keys and owns the hashing discipline:

1. Generate a public id (`public_id_bytes` of randomness, hex encoded)
2. Generate the secret material (signed session token or random key)
3. Hash the secret and build the record
4. Insert the record; on a public id conflict, start over with a new id
5. Return the plaintext credential, only after the insert succeeded

The plaintext secret exists only in the returned `IssuedCredential`.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from weather_gateway.auth.hashing import hash_secret
from weather_gateway.auth.models import (
    CredentialKind,
    CredentialRecord,
    Identity,
    IssuedCredential,
    utcnow,
)
from weather_gateway.auth.session import create_session_token
from weather_gateway.auth.store import CredentialStore, with_store_timeout
from weather_gateway.errors import CredentialRevoked, IssuanceFailed, PublicIdConflict

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=1)
API_KEY_SECRET_BYTES = 32


class CredentialIssuer:
    """Issue and revoke credentials."""

    def __init__(
        self,
        store: CredentialStore,
        secret_key: str,
        hash_key: str,
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
        public_id_bytes: int = 16,
        max_attempts: int = 5,
        store_timeout: float = 2.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the issuer.

        Args:
            store: Credential store
            secret_key: Session token signing key
            hash_key: HMAC key for secret hashes
            session_ttl: Default session lifetime
            public_id_bytes: Random bytes per public id (at least 16)
            max_attempts: Public id generations before giving up
            store_timeout: Timeout per store call in seconds
            clock: Returns the current aware UTC time (injectable for tests)
        """
        if public_id_bytes < 16:
            raise ValueError("Public ids need at least 128 bits of entropy")
        self.store = store
        self._secret_key = secret_key
        self._hash_key = hash_key
        self.session_ttl = session_ttl
        self._public_id_bytes = public_id_bytes
        self._max_attempts = max_attempts
        self._store_timeout = store_timeout
        self._clock = clock

    def _new_public_id(self) -> str:
        return secrets.token_hex(self._public_id_bytes)

    @staticmethod
    def _new_api_key_secret() -> str:
        return secrets.token_urlsafe(API_KEY_SECRET_BYTES)

    async def issue_session_credential(
        self,
        identity: Identity,
        ttl: timedelta | None = None,
    ) -> IssuedCredential:
        """Issue a short-lived session credential.

        Args:
            identity: The identity that logged in
            ttl: Session lifetime (default: the issuer's session TTL)

        Returns:
            The credential; its plaintext is not recoverable afterwards

        Raises:
            StoreUnavailable: If the record could not be persisted
            IssuanceFailed: If no unique public id could be allocated
        """
        if ttl is None:
            ttl = self.session_ttl
        if ttl <= timedelta(0):
            raise ValueError("Session TTL must be positive")
        return await self._issue(identity, CredentialKind.SESSION, ttl=ttl)

    async def issue_api_key(self, identity: Identity, label: str | None = None) -> IssuedCredential:
        """Issue a long-lived API key.

        API keys never expire; they stay valid until revoked. An identity may
        hold any number of keys.

        Raises:
            StoreUnavailable: If the record could not be persisted
            IssuanceFailed: If no unique public id could be allocated
        """
        return await self._issue(identity, CredentialKind.API_KEY, label=label)

    async def _issue(
        self,
        identity: Identity,
        kind: CredentialKind,
        ttl: timedelta | None = None,
        label: str | None = None,
    ) -> IssuedCredential:
        if identity.revoked:
            raise CredentialRevoked()

        for attempt in range(1, self._max_attempts + 1):
            public_id = self._new_public_id()
            created_at = self._clock()
            expires_at = created_at + ttl if ttl is not None else None

            if kind == CredentialKind.SESSION:
                secret = create_session_token(
                    public_id, identity.id, created_at, expires_at, self._secret_key
                )
            else:
                secret = self._new_api_key_secret()

            record = CredentialRecord(
                public_id=public_id,
                identity=identity,
                kind=kind,
                secret_hash=hash_secret(secret, self._hash_key),
                expires_at=expires_at,
                created_at=created_at,
                label=label,
            )

            try:
                await with_store_timeout(self.store.insert_unique(record), self._store_timeout)
            except PublicIdConflict:
                logger.warning(
                    f"Public id collision on attempt {attempt}/{self._max_attempts}, regenerating"
                )
                continue

            logger.info(f"Issued {kind.value} credential {public_id} for identity {identity.id}")
            return IssuedCredential(
                public_id=public_id,
                secret=secret,
                kind=kind,
                identity_id=identity.id,
                created_at=created_at,
                expires_at=expires_at,
            )

        raise IssuanceFailed(f"No unique public id after {self._max_attempts} attempts")

    async def revoke(self, public_id: str, owner_id: uuid.UUID | None = None) -> bool:
        """Revoke a credential.

        Args:
            public_id: Credential to revoke
            owner_id: If given, only revoke when the credential belongs to
                this identity

        Returns:
            True if a matching credential was revoked
        """
        record = await with_store_timeout(
            self.store.find_by_public_id(public_id), self._store_timeout
        )
        if record is None:
            return False
        if owner_id is not None and record.identity.id != owner_id:
            return False

        revoked = await with_store_timeout(
            self.store.update_revocation(public_id, True), self._store_timeout
        )
        if revoked:
            logger.info(f"Revoked {record.kind.value} credential {public_id}")
        return revoked

    async def list_api_keys(self, identity_id: uuid.UUID) -> list[CredentialRecord]:
        """List an identity's API keys (records only, never secrets)."""
        return await with_store_timeout(
            self.store.list_for_identity(identity_id, CredentialKind.API_KEY),
            self._store_timeout,
        )
