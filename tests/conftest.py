"""Pytest fixtures for weather gateway tests.

This module provides test fixtures that ensure:
1. No external API calls are made (weather and geocoding providers, Redis)
2. The SQL store runs on in-memory SQLite (aiosqlite)
3. Isolated test environment with controlled configuration and clocks
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

# Set test environment BEFORE importing application modules
# This ensures no real services are contacted during test collection
os.environ.setdefault("SECRET_KEY", "test-secret-key-at-least-32-characters-long")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DATABASE_CREATE_TABLES", "true")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ.pop("REDIS_URL", None)

from weather_gateway.auth.issuer import CredentialIssuer
from weather_gateway.auth.models import Identity, Role
from weather_gateway.auth.store import InMemoryCredentialStore
from weather_gateway.auth.verifier import CredentialVerifier
from weather_gateway.cache.response_cache import ResponseCache
from weather_gateway.models.location import Coordinates
from weather_gateway.providers.base import LocationNotFound
from weather_gateway.ratelimit.governor import RateGovernor, RatePolicy
from weather_gateway.state.memory import MemoryStateBackend

TEST_SECRET_KEY = "test-secret-key-at-least-32-characters-long"
TEST_HASH_KEY = "test-credential-hash-key"


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from weather_gateway.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Clocks
# =============================================================================


class FakeClock:
    """Manually advanced clock returning float seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateTimeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dt_clock() -> FakeDateTimeClock:
    return FakeDateTimeClock()


# =============================================================================
# Components
# =============================================================================


@pytest.fixture
def memory_backend(clock: FakeClock) -> MemoryStateBackend:
    """In-memory state backend on the fake clock."""
    return MemoryStateBackend(clock=clock)


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def identity(credential_store: InMemoryCredentialStore) -> Identity:
    """A standard identity registered with the store."""
    identity = Identity(id=uuid.uuid4())
    credential_store.save_identity(identity)
    return identity


@pytest.fixture
def elevated_identity(credential_store: InMemoryCredentialStore) -> Identity:
    identity = Identity(id=uuid.uuid4(), role=Role.ELEVATED)
    credential_store.save_identity(identity)
    return identity


@pytest.fixture
def issuer(credential_store: InMemoryCredentialStore, dt_clock: FakeDateTimeClock) -> CredentialIssuer:
    return CredentialIssuer(
        credential_store,
        secret_key=TEST_SECRET_KEY,
        hash_key=TEST_HASH_KEY,
        clock=dt_clock,
    )


@pytest.fixture
def verifier(credential_store: InMemoryCredentialStore, dt_clock: FakeDateTimeClock) -> CredentialVerifier:
    return CredentialVerifier(
        credential_store,
        secret_key=TEST_SECRET_KEY,
        hash_key=TEST_HASH_KEY,
        clock=dt_clock,
    )


@pytest.fixture
def governor(memory_backend: MemoryStateBackend, clock: FakeClock) -> RateGovernor:
    return RateGovernor(
        memory_backend,
        ip_policy=RatePolicy("ip", 5, 60),
        api_key_policy=RatePolicy("api_key", 10, 60),
        clock=clock,
    )


@pytest.fixture
def response_cache(memory_backend: MemoryStateBackend, clock: FakeClock) -> ResponseCache:
    return ResponseCache(memory_backend, clock=clock)


# =============================================================================
# Fake upstream providers
# =============================================================================


def open_meteo_payload(latitude: float, longitude: float) -> dict[str, Any]:
    """A translated Open-Meteo payload, as OpenMeteoClient returns it."""
    return {
        "location": {
            "latitude": latitude,
            "longitude": longitude,
            "city": None,
            "country": None,
            "timezone": "Europe/London",
            "elevation": 23.0,
        },
        "current": {"time": "2024-06-15T12:00", "temperature": 18.2, "windSpeed": 11.3},
        "hourly": [
            {"time": "2024-06-15T12:00", "temperature": 18.2, "humidity": 60, "windSpeed": 11.3},
            {"time": "2024-06-15T13:00", "temperature": 18.9, "humidity": 58, "windSpeed": 12.0},
        ],
    }


class FakeWeatherClient:
    """Stands in for OpenMeteoClient and records its calls."""

    def __init__(self, error: Exception | None = None):
        self.calls: list[Coordinates] = []
        self.sections: list[tuple[bool, bool]] = []
        self.error = error
        self.closed = False

    async def get_forecast(
        self,
        coordinates: Coordinates,
        current: bool = True,
        hourly: bool = True,
    ) -> dict[str, Any]:
        self.calls.append(coordinates)
        self.sections.append((current, hourly))
        if self.error is not None:
            raise self.error
        payload = open_meteo_payload(coordinates.latitude, coordinates.longitude)
        if not current:
            del payload["current"]
        if not hourly:
            del payload["hourly"]
        return payload

    async def close(self) -> None:
        self.closed = True


class FakeGeocoder:
    """Stands in for NominatimGeocoder with a fixed gazetteer."""

    PLACES = {
        ("london", "gb"): (51.5073219, -0.1276474, "London, Greater London, England, United Kingdom"),
        ("paris", "fr"): (48.8588897, 2.3200410, "Paris, Ile-de-France, France"),
    }

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def geocode(self, city: str, country: str) -> dict[str, Any]:
        self.calls.append((city, country))
        match = self.PLACES.get((city.strip().lower(), country.strip().lower()))
        if match is None:
            raise LocationNotFound(city, country)
        latitude, longitude, display_name = match
        return {"latitude": latitude, "longitude": longitude, "display_name": display_name}

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_weather_client() -> FakeWeatherClient:
    return FakeWeatherClient()


@pytest.fixture
def fake_geocoder() -> FakeGeocoder:
    return FakeGeocoder()
