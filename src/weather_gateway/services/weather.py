"""Weather lookups with response caching.

## Flow

```
by place:        geocode (cached 24h) -> by coordinates
by coordinates:  round -> fingerprints -> cache get (current, hourly)
                   both hit -> payload
                   any miss -> Open-Meteo for the missing sections
                            -> cache set (current 30 min, hourly 1h) -> payload
```

The response reports a cache hit only when both sections came from the
cache.

Coordinates are rounded to the cache precision before both the fingerprint
and the upstream request, so a cached payload always describes the point its
key names. Failed upstream calls raise and are never cached.

City and country labels are attached to the returned payload after the
lookup. Two places that geocode to the same point share one cached forecast.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from weather_gateway.cache.fingerprint import DEFAULT_PRECISION, fingerprint
from weather_gateway.cache.response_cache import CacheCategory, CacheTTLs, ResponseCache
from weather_gateway.models.location import Coordinates
from weather_gateway.providers.nominatim import NominatimGeocoder
from weather_gateway.providers.open_meteo import OpenMeteoClient

logger = logging.getLogger(__name__)

CURRENT_NAMESPACE = "weather:current"
HOURLY_NAMESPACE = "weather:hourly"
GEOCODING_NAMESPACE = "geocoding"


@dataclass
class WeatherResult:
    """A weather payload and whether it came from the cache."""

    payload: dict[str, Any]
    cache_hit: bool


class WeatherService:
    """Cache-aside weather lookups."""

    def __init__(
        self,
        cache: ResponseCache,
        weather_client: OpenMeteoClient,
        geocoder: NominatimGeocoder,
        ttls: CacheTTLs | None = None,
        precision: int = DEFAULT_PRECISION,
    ):
        self.cache = cache
        self.weather_client = weather_client
        self.geocoder = geocoder
        self.ttls = ttls or CacheTTLs()
        self.precision = precision

    async def get_by_coordinates(
        self,
        coordinates: Coordinates,
        city: str | None = None,
        country: str | None = None,
    ) -> WeatherResult:
        """Current conditions and the hourly series for a point.

        Raises:
            ProviderError: If a section is not cached and upstream fails
        """
        rounded = coordinates.rounded(self.precision)
        current_key = self._point_key(rounded, CURRENT_NAMESPACE)
        hourly_key = self._point_key(rounded, HOURLY_NAMESPACE)

        current = await self.cache.get(current_key)
        hourly = await self.cache.get(hourly_key)
        cache_hit = current is not None and hourly is not None
        if not cache_hit:
            fetched = await self.weather_client.get_forecast(
                rounded,
                current=current is None,
                hourly=hourly is None,
            )
            if current is None:
                current = {"location": fetched["location"], "current": fetched["current"]}
                await self.cache.set(
                    current_key, current, self.ttls.for_category(CacheCategory.CURRENT)
                )
            if hourly is None:
                hourly = fetched["hourly"]
                await self.cache.set(
                    hourly_key, hourly, self.ttls.for_category(CacheCategory.HOURLY)
                )

        payload = {**current, "hourly": hourly}
        return WeatherResult(payload=_with_labels(payload, city, country), cache_hit=cache_hit)

    def _point_key(self, rounded: Coordinates, namespace: str) -> str:
        return fingerprint(
            {"latitude": rounded.latitude, "longitude": rounded.longitude},
            namespace=namespace,
            precision=self.precision,
        )

    async def get_by_place(self, city: str, country: str) -> WeatherResult:
        """Current conditions for a city within a country.

        Raises:
            LocationNotFound: If the place cannot be geocoded
            ProviderError: If an upstream call fails
        """
        location = await self.geocode(city, country)
        coordinates = Coordinates(
            latitude=location["latitude"],
            longitude=location["longitude"],
        )
        return await self.get_by_coordinates(coordinates, city=city, country=country)

    async def geocode(self, city: str, country: str) -> dict[str, Any]:
        """Resolve a place, using the geocoding cache."""
        key = fingerprint(
            {"city": city, "country": country},
            namespace=GEOCODING_NAMESPACE,
            precision=self.precision,
        )
        location = await self.cache.get(key)
        if location is None:
            location = await self.geocoder.geocode(city, country)
            await self.cache.set(key, location, self.ttls.for_category(CacheCategory.GEOCODING))
        else:
            logger.debug(f"Geocoding cache hit for {city!r}, {country!r}")
        return location

    async def close(self) -> None:
        try:
            await self.weather_client.close()
        finally:
            await self.geocoder.close()


def _with_labels(payload: dict[str, Any], city: str | None, country: str | None) -> dict[str, Any]:
    if city is None and country is None:
        return payload
    labelled = copy.deepcopy(payload)
    location = labelled.setdefault("location", {})
    location["city"] = city
    location["country"] = country
    return labelled
