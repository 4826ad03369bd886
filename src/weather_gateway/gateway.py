"""Gateway component wiring.

`build_gateway()` assembles the credential, rate limiting, cache and weather
components from settings. The FastAPI app builds one gateway at startup and
stores it on `app.state.gateway`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from weather_gateway.auth.issuer import CredentialIssuer
from weather_gateway.auth.store import CredentialStore
from weather_gateway.auth.verifier import CredentialVerifier
from weather_gateway.cache.response_cache import CacheTTLs, ResponseCache
from weather_gateway.config import Settings
from weather_gateway.providers.nominatim import NominatimGeocoder
from weather_gateway.providers.open_meteo import OpenMeteoClient
from weather_gateway.ratelimit.governor import RateGovernor, RatePolicy
from weather_gateway.services.weather import WeatherService
from weather_gateway.state import SharedStateBackend, create_state_backend

logger = logging.getLogger(__name__)


@dataclass
class Gateway:
    """The gateway's long-lived components."""

    settings: Settings
    store: CredentialStore
    backend: SharedStateBackend
    issuer: CredentialIssuer
    verifier: CredentialVerifier
    governor: RateGovernor
    cache: ResponseCache
    weather: WeatherService

    async def close(self) -> None:
        try:
            await self.weather.close()
        finally:
            await self.backend.close()


def build_gateway(
    settings: Settings,
    store: CredentialStore,
    backend: SharedStateBackend | None = None,
    weather_client: OpenMeteoClient | None = None,
    geocoder: NominatimGeocoder | None = None,
) -> Gateway:
    """Assemble a gateway.

    Args:
        settings: Application settings
        store: Credential store
        backend: Shared state backend (default: from `settings.redis_url`)
        weather_client: Weather provider (default: Open-Meteo from settings)
        geocoder: Geocoder (default: Nominatim from settings)
    """
    if backend is None:
        backend = create_state_backend(settings.redis_url, timeout=settings.state_timeout_seconds)
    if not settings.uses_shared_backend:
        logger.warning(
            "No REDIS_URL configured: rate limits and cache are local to this instance"
        )

    issuer = CredentialIssuer(
        store,
        secret_key=settings.secret_key,
        hash_key=settings.credential_hash_key,
        session_ttl=timedelta(seconds=settings.session_ttl_seconds),
        public_id_bytes=settings.public_id_bytes,
        max_attempts=settings.max_issue_attempts,
        store_timeout=settings.store_timeout_seconds,
    )
    verifier = CredentialVerifier(
        store,
        secret_key=settings.secret_key,
        hash_key=settings.credential_hash_key,
        store_timeout=settings.store_timeout_seconds,
    )
    governor = RateGovernor(
        backend,
        ip_policy=RatePolicy(
            "ip",
            settings.rate_limit_ip_limit,
            settings.rate_limit_ip_window_seconds,
        ),
        api_key_policy=RatePolicy(
            "api_key",
            settings.rate_limit_api_key_limit,
            settings.rate_limit_api_key_window_seconds,
        ),
        fail_open=settings.rate_limit_fail_open,
    )
    cache = ResponseCache(backend)

    upstream_options = {
        "user_agent": settings.upstream_user_agent,
        "timeout": settings.upstream_timeout_seconds,
    }
    weather = WeatherService(
        cache,
        weather_client=weather_client
        or OpenMeteoClient(settings.open_meteo_base_url, **upstream_options),
        geocoder=geocoder or NominatimGeocoder(settings.nominatim_base_url, **upstream_options),
        ttls=CacheTTLs(
            current=settings.cache_ttl_current_seconds,
            hourly=settings.cache_ttl_hourly_seconds,
            geocoding=settings.cache_ttl_geocoding_seconds,
        ),
        precision=settings.cache_coordinate_precision,
    )

    return Gateway(
        settings=settings,
        store=store,
        backend=backend,
        issuer=issuer,
        verifier=verifier,
        governor=governor,
        cache=cache,
        weather=weather,
    )
