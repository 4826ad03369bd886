"""Tests for gateway assembly and shutdown."""

from unittest.mock import AsyncMock

import pytest

from weather_gateway.cache.response_cache import CacheCategory
from weather_gateway.config import Settings
from weather_gateway.gateway import build_gateway


class BrokenWeatherClient:
    """A weather client whose close fails."""

    async def close(self) -> None:
        raise RuntimeError("connection pool already closed")


@pytest.fixture
def settings() -> Settings:
    return Settings(cache_ttl_current_seconds=600, cache_ttl_hourly_seconds=7200)


def test_cache_ttls_come_from_settings(settings, credential_store, memory_backend):
    gateway = build_gateway(settings, credential_store, backend=memory_backend)
    ttls = gateway.weather.ttls
    assert ttls.for_category(CacheCategory.CURRENT) == 600
    assert ttls.for_category(CacheCategory.HOURLY) == 7200
    assert ttls.for_category(CacheCategory.GEOCODING) == 86400


@pytest.mark.asyncio
async def test_close_releases_backend_when_weather_close_fails(
    settings, credential_store, fake_geocoder
):
    backend = AsyncMock()
    gateway = build_gateway(
        settings,
        credential_store,
        backend=backend,
        weather_client=BrokenWeatherClient(),
        geocoder=fake_geocoder,
    )

    with pytest.raises(RuntimeError):
        await gateway.close()

    assert fake_geocoder.closed
    backend.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_close(settings, credential_store, fake_weather_client, fake_geocoder):
    backend = AsyncMock()
    gateway = build_gateway(
        settings,
        credential_store,
        backend=backend,
        weather_client=fake_weather_client,
        geocoder=fake_geocoder,
    )

    await gateway.close()

    assert fake_weather_client.closed
    assert fake_geocoder.closed
    backend.close.assert_awaited_once()
