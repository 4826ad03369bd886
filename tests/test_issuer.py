"""Tests for credential issuance."""

import asyncio
import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest

from weather_gateway.auth.hashing import hash_secret
from weather_gateway.auth.issuer import CredentialIssuer
from weather_gateway.auth.models import SEPARATOR, CredentialKind, Identity
from weather_gateway.auth.store import InMemoryCredentialStore
from weather_gateway.errors import CredentialRevoked, IssuanceFailed, StoreUnavailable

from conftest import TEST_HASH_KEY, TEST_SECRET_KEY


class TestIssueApiKey:
    """Tests for API key issuance."""

    @pytest.mark.asyncio
    async def test_wire_format(self, issuer, identity):
        issued = await issuer.issue_api_key(identity, label="ci")
        public_id, secret = issued.value.split(SEPARATOR)
        assert public_id == issued.public_id
        assert secret == issued.secret
        assert len(public_id) == 32  # 16 random bytes, hex
        assert issued.kind == CredentialKind.API_KEY
        assert issued.expires_at is None

    @pytest.mark.asyncio
    async def test_only_hash_is_stored(self, issuer, identity, credential_store):
        issued = await issuer.issue_api_key(identity)
        record = await credential_store.find_by_public_id(issued.public_id)

        assert record.secret_hash == hash_secret(issued.secret, TEST_HASH_KEY)
        assert issued.secret not in repr(record)
        assert issued.secret not in record.secret_hash

    @pytest.mark.asyncio
    async def test_secret_not_in_repr(self, issuer, identity):
        issued = await issuer.issue_api_key(identity)
        assert issued.secret not in repr(issued)

    @pytest.mark.asyncio
    async def test_label_is_stored(self, issuer, identity, credential_store):
        issued = await issuer.issue_api_key(identity, label="ci")
        record = await credential_store.find_by_public_id(issued.public_id)
        assert record.label == "ci"

    @pytest.mark.asyncio
    async def test_revoked_identity_cannot_receive_credentials(self, issuer):
        with pytest.raises(CredentialRevoked):
            await issuer.issue_api_key(Identity(id=uuid.uuid4(), revoked=True))

    @pytest.mark.asyncio
    async def test_many_concurrent_keys_are_unique(self, issuer, identity, credential_store):
        issued = await asyncio.gather(*(issuer.issue_api_key(identity) for _ in range(10_000)))

        assert len({c.public_id for c in issued}) == 10_000
        assert len({c.secret for c in issued}) == 10_000
        assert len(credential_store) == 10_000


class TestIssueSession:
    """Tests for session credential issuance."""

    @pytest.mark.asyncio
    async def test_default_ttl(self, issuer, identity, dt_clock):
        issued = await issuer.issue_session_credential(identity)
        assert issued.kind == CredentialKind.SESSION
        assert issued.created_at == dt_clock.now
        assert issued.expires_at == dt_clock.now + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_custom_ttl(self, issuer, identity, dt_clock):
        issued = await issuer.issue_session_credential(identity, ttl=timedelta(minutes=5))
        assert issued.expires_at == dt_clock.now + timedelta(minutes=5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-1)])
    async def test_rejects_non_positive_ttl(self, issuer, identity, credential_store, ttl):
        with pytest.raises(ValueError):
            await issuer.issue_session_credential(identity, ttl=ttl)
        assert len(credential_store) == 0

    @pytest.mark.asyncio
    async def test_record_expiry(self, issuer, identity, credential_store):
        issued = await issuer.issue_session_credential(identity)
        record = await credential_store.find_by_public_id(issued.public_id)
        assert record.expires_at == issued.expires_at


class TestPublicIdCollisions:
    """Tests for public id regeneration."""

    @pytest.mark.asyncio
    async def test_collision_regenerates_id(self, issuer, identity):
        first = await issuer.issue_api_key(identity)
        ids = iter([first.public_id, first.public_id, "f" * 32])

        with patch.object(issuer, "_new_public_id", side_effect=lambda: next(ids)):
            second = await issuer.issue_api_key(identity)

        assert second.public_id == "f" * 32

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, credential_store, identity, dt_clock):
        issuer = CredentialIssuer(
            credential_store,
            secret_key=TEST_SECRET_KEY,
            hash_key=TEST_HASH_KEY,
            max_attempts=3,
            clock=dt_clock,
        )
        first = await issuer.issue_api_key(identity)

        with patch.object(issuer, "_new_public_id", return_value=first.public_id) as new_id:
            with pytest.raises(IssuanceFailed):
                await issuer.issue_api_key(identity)

        assert new_id.call_count == 3
        assert len(credential_store) == 1

    def test_rejects_short_public_ids(self, credential_store):
        with pytest.raises(ValueError):
            CredentialIssuer(
                credential_store,
                secret_key=TEST_SECRET_KEY,
                hash_key=TEST_HASH_KEY,
                public_id_bytes=8,
            )


class TestStoreFailure:
    """Tests for an unavailable store."""

    @pytest.mark.asyncio
    async def test_slow_store_times_out(self, identity):
        class SlowStore(InMemoryCredentialStore):
            async def insert_unique(self, record):
                await asyncio.sleep(1)

        issuer = CredentialIssuer(
            SlowStore(),
            secret_key=TEST_SECRET_KEY,
            hash_key=TEST_HASH_KEY,
            store_timeout=0.01,
        )
        with pytest.raises(StoreUnavailable):
            await issuer.issue_api_key(identity)


class TestRevoke:
    """Tests for revocation and listing."""

    @pytest.mark.asyncio
    async def test_revoke(self, issuer, identity, credential_store):
        issued = await issuer.issue_api_key(identity)
        assert await issuer.revoke(issued.public_id) is True
        record = await credential_store.find_by_public_id(issued.public_id)
        assert record.revoked

    @pytest.mark.asyncio
    async def test_revoke_unknown(self, issuer):
        assert await issuer.revoke("0" * 32) is False

    @pytest.mark.asyncio
    async def test_revoke_requires_owner(self, issuer, identity, credential_store):
        issued = await issuer.issue_api_key(identity)
        assert await issuer.revoke(issued.public_id, owner_id=uuid.uuid4()) is False
        record = await credential_store.find_by_public_id(issued.public_id)
        assert not record.revoked

    @pytest.mark.asyncio
    async def test_list_api_keys_newest_first(self, issuer, identity, dt_clock):
        first = await issuer.issue_api_key(identity, label="first")
        dt_clock.advance(seconds=1)
        second = await issuer.issue_api_key(identity, label="second")
        await issuer.issue_session_credential(identity)

        keys = await issuer.list_api_keys(identity.id)
        assert [k.public_id for k in keys] == [second.public_id, first.public_id]
