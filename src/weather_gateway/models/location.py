"""Location models for weather lookups."""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, Field

from weather_gateway.cache.fingerprint import round_coordinate


class Coordinates(BaseModel):
    """Geographic coordinates (latitude/longitude).

    Latitude:
        - Negative (-) = south of equator
        - Positive (+) = north of equator
        - Range: -90 to +90

    Longitude:
        - Negative (-) = west of prime meridian
        - Positive (+) = east of prime meridian
        - Range: -180 to +180
    """

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in decimal degrees")

    def rounded(self, precision: int) -> Self:
        """Return coordinates rounded to `precision` decimals.

        Upstream queries use rounded coordinates so that the cached payload
        matches the cache key it is stored under.
        """
        return type(self)(
            latitude=float(round_coordinate(self.latitude, precision)),
            longitude=float(round_coordinate(self.longitude, precision)),
        )

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"


class Place(BaseModel):
    """A named place resolved by geocoding."""

    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166-1 alpha-2 code")
