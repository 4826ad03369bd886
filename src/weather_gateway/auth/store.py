"""Credential store contract and in-memory implementation.

The store is the durable mapping from public id to credential record. The
issuer and verifier only rely on this contract:

| Operation | Result |
|-----------|--------|
| `find_by_public_id(id)` | record joined with its identity, or None |
| `insert_unique(record)` | None, or `PublicIdConflict` if the id exists |
| `update_revocation(id, revoked)` | True if the credential exists |
| `list_for_identity(identity_id, kind)` | records owned by an identity |

Implementations raise `StoreUnavailable` when the underlying service fails.
The SQL implementation lives in `weather_gateway.database.credential_store`.
"""

from __future__ import annotations

import asyncio
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import replace
from typing import TypeVar

from weather_gateway.auth.models import CredentialKind, CredentialRecord, Identity
from weather_gateway.errors import PublicIdConflict, StoreUnavailable

T = TypeVar("T")


class CredentialStore(ABC):
    """Abstract credential store."""

    @abstractmethod
    async def find_by_public_id(self, public_id: str) -> CredentialRecord | None:
        """Look up a credential with the current state of its identity."""

    @abstractmethod
    async def insert_unique(self, record: CredentialRecord) -> None:
        """Insert a credential record.

        Raises:
            PublicIdConflict: If a record with the same public id exists
        """

    @abstractmethod
    async def update_revocation(self, public_id: str, revoked: bool) -> bool:
        """Set the revocation flag of a credential.

        Returns:
            True if the credential exists
        """

    @abstractmethod
    async def list_for_identity(
        self,
        identity_id: uuid.UUID,
        kind: CredentialKind | None = None,
    ) -> list[CredentialRecord]:
        """List credentials owned by an identity, newest first."""


async def with_store_timeout(awaitable: Awaitable[T], timeout: float) -> T:
    """Await a store call, converting a timeout into `StoreUnavailable`."""
    try:
        async with asyncio.timeout(timeout):
            return await awaitable
    except TimeoutError as e:
        raise StoreUnavailable(f"Credential store timed out after {timeout}s") from e


class InMemoryCredentialStore(CredentialStore):
    """Process-local credential store.

    For tests and single-instance development setups. Identities must be
    registered with `save_identity()` (or are registered implicitly by the
    first inserted credential) so that role and revocation changes are
    visible to verification.
    """

    def __init__(self) -> None:
        self._records: dict[str, CredentialRecord] = {}
        self._identities: dict[uuid.UUID, Identity] = {}
        self._lock = threading.Lock()

    def save_identity(self, identity: Identity) -> None:
        """Register or update an identity."""
        with self._lock:
            self._identities[identity.id] = identity

    def _with_live_identity(self, record: CredentialRecord) -> CredentialRecord:
        identity = self._identities.get(record.identity.id, record.identity)
        return replace(record, identity=identity)

    async def find_by_public_id(self, public_id: str) -> CredentialRecord | None:
        with self._lock:
            record = self._records.get(public_id)
            if record is None:
                return None
            return self._with_live_identity(record)

    async def insert_unique(self, record: CredentialRecord) -> None:
        with self._lock:
            if record.public_id in self._records:
                raise PublicIdConflict(record.public_id)
            self._identities.setdefault(record.identity.id, record.identity)
            self._records[record.public_id] = record

    async def update_revocation(self, public_id: str, revoked: bool) -> bool:
        with self._lock:
            record = self._records.get(public_id)
            if record is None:
                return False
            self._records[public_id] = replace(record, revoked=revoked)
            return True

    async def list_for_identity(
        self,
        identity_id: uuid.UUID,
        kind: CredentialKind | None = None,
    ) -> list[CredentialRecord]:
        with self._lock:
            records = [
                self._with_live_identity(r)
                for r in self._records.values()
                if r.identity.id == identity_id and (kind is None or r.kind == kind)
            ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
