"""Upstream providers fronted by the gateway."""

from weather_gateway.providers.base import (
    LocationNotFound,
    ProviderError,
    UpstreamProvider,
    UpstreamRateLimited,
)
from weather_gateway.providers.nominatim import NominatimGeocoder
from weather_gateway.providers.open_meteo import OpenMeteoClient

__all__ = [
    "LocationNotFound",
    "ProviderError",
    "UpstreamProvider",
    "UpstreamRateLimited",
    "NominatimGeocoder",
    "OpenMeteoClient",
]
