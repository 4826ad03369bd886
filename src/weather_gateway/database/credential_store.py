"""SQL credential store.

Implements `weather_gateway.auth.store.CredentialStore` on the `credentials`
and `users` tables. Each operation runs in its own short session, so
credential writes are committed independently of the request's session.

The unique constraint on `credentials.public_id` is what detects public id
collisions: an `IntegrityError` on insert becomes `PublicIdConflict`. Any
other database failure becomes `StoreUnavailable`.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from weather_gateway.auth.models import CredentialKind, CredentialRecord, Identity, Role
from weather_gateway.auth.store import CredentialStore
from weather_gateway.database.models import Credential, User
from weather_gateway.errors import PublicIdConflict, StoreUnavailable

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def identity_from_user(user: User) -> Identity:
    """Build the identity value for a user row."""
    return Identity(id=user.id, role=Role(user.role), revoked=not user.is_active)


def _to_record(credential: Credential, user: User) -> CredentialRecord:
    return CredentialRecord(
        public_id=credential.public_id,
        identity=identity_from_user(user),
        kind=CredentialKind(credential.kind),
        secret_hash=credential.secret_hash,
        expires_at=_as_utc(credential.expires_at),
        revoked=credential.revoked,
        created_at=_as_utc(credential.created_at),
        label=credential.label,
    )


class SqlCredentialStore(CredentialStore):
    """Credential store backed by SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_by_public_id(self, public_id: str) -> CredentialRecord | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Credential, User)
                    .join(User, Credential.user_id == User.id)
                    .where(Credential.public_id == public_id)
                )
                row = result.first()
        except SQLAlchemyError as e:
            logger.error(f"Credential lookup failed: {e!r}")
            raise StoreUnavailable() from e

        if row is None:
            return None
        credential, user = row
        return _to_record(credential, user)

    async def insert_unique(self, record: CredentialRecord) -> None:
        credential = Credential(
            public_id=record.public_id,
            user_id=record.identity.id,
            kind=record.kind.value,
            secret_hash=record.secret_hash,
            label=record.label,
            expires_at=record.expires_at,
            revoked=record.revoked,
            created_at=record.created_at,
        )
        try:
            async with self._session_factory() as session:
                session.add(credential)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    integrity_error = e
                else:
                    return
        except SQLAlchemyError as e:
            logger.error(f"Credential insert failed: {e!r}")
            raise StoreUnavailable() from e

        # Only the public id constraint means "try another id"
        if await self.find_by_public_id(record.public_id) is not None:
            raise PublicIdConflict(record.public_id) from integrity_error
        logger.error(f"Credential insert violated a constraint: {integrity_error!r}")
        raise StoreUnavailable("Credential could not be stored") from integrity_error

    async def update_revocation(self, public_id: str, revoked: bool) -> bool:
        revoked_at = datetime.now(timezone.utc) if revoked else None
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(Credential)
                    .where(Credential.public_id == public_id)
                    .values(revoked=revoked, revoked_at=revoked_at)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Credential revocation update failed: {e!r}")
            raise StoreUnavailable() from e
        return result.rowcount > 0

    async def list_for_identity(
        self,
        identity_id: uuid.UUID,
        kind: CredentialKind | None = None,
    ) -> list[CredentialRecord]:
        query = (
            select(Credential, User)
            .join(User, Credential.user_id == User.id)
            .where(Credential.user_id == identity_id)
            .order_by(Credential.created_at.desc())
        )
        if kind is not None:
            query = query.where(Credential.kind == kind.value)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error(f"Credential listing failed: {e!r}")
            raise StoreUnavailable() from e
        return [_to_record(credential, user) for credential, user in rows]
