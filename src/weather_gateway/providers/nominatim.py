"""Nominatim geocoder.

Resolves a city name within a country to coordinates.

API Documentation: https://nominatim.org/release-docs/latest/api/Search/

Nominatim's usage policy requires an identifying User-Agent and no more than
one request per second, which is why geocoding results are cached for a day.
"""

from __future__ import annotations

import logging
from typing import Any

from weather_gateway.models.location import Coordinates
from weather_gateway.providers.base import LocationNotFound, ProviderError, UpstreamProvider

logger = logging.getLogger(__name__)


class NominatimGeocoder(UpstreamProvider):
    """Nominatim search client."""

    name = "nominatim"

    def __init__(self, base_url: str = "https://nominatim.openstreetmap.org", **kwargs: Any):
        super().__init__(base_url, **kwargs)

    @staticmethod
    def build_params(city: str, country: str) -> dict[str, Any]:
        return {
            "q": city,
            "countrycodes": country.lower(),
            "format": "json",
            "limit": 1,
            "addressdetails": 1,
        }

    async def geocode(self, city: str, country: str) -> dict[str, Any]:
        """Resolve a city to coordinates.

        Returns:
            {"latitude": float, "longitude": float, "display_name": str | None}

        Raises:
            LocationNotFound: If there is no match
            ProviderError: If the request fails
        """
        logger.debug(f"Geocoding {city!r} in {country!r}")
        results = await self._get_json("/search", params=self.build_params(city, country))
        if not results:
            raise LocationNotFound(city, country, provider=self.name)

        first = results[0]
        try:
            coordinates = Coordinates(latitude=float(first["lat"]), longitude=float(first["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Unexpected response shape: {e!r}", provider=self.name) from e

        return {
            "latitude": coordinates.latitude,
            "longitude": coordinates.longitude,
            "display_name": first.get("display_name"),
        }
