"""Open-Meteo weather provider.

API Documentation: https://open-meteo.com/en/docs

## Response Format

```json
{
  "latitude": 51.5,
  "longitude": -0.12,
  "timezone": "Europe/London",
  "elevation": 23.0,
  "current_weather": {"time": "2024-06-10T12:00", "temperature": 18.2, "windspeed": 11.3},
  "hourly": {
    "time": ["2024-06-10T00:00", ...],
    "temperature_2m": [...],
    "relativehumidity_2m": [...],
    "windspeed_10m": [...]
  }
}
```

## Translated Payload

```json
{
  "location": {"latitude", "longitude", "city", "country", "timezone", "elevation"},
  "current": {"time", "temperature", "windSpeed"},
  "hourly": [{"time", "temperature", "humidity", "windSpeed"}, ...]
}
```

`current` and `hourly` are only present when requested. The weather service
caches them separately and asks only for the sections it is missing.

`city` and `country` are left empty here; the weather service fills them in
when the lookup came from a place name.
"""

from __future__ import annotations

import logging
from typing import Any

from weather_gateway.models.location import Coordinates
from weather_gateway.providers.base import ProviderError, UpstreamProvider

logger = logging.getLogger(__name__)

HOURLY_VARIABLES = "temperature_2m,relativehumidity_2m,windspeed_10m"


class OpenMeteoClient(UpstreamProvider):
    """Open-Meteo forecast client."""

    name = "open-meteo"

    def __init__(self, base_url: str = "https://api.open-meteo.com/v1", **kwargs: Any):
        super().__init__(base_url, **kwargs)

    @staticmethod
    def build_params(
        coordinates: Coordinates,
        current: bool = True,
        hourly: bool = True,
    ) -> dict[str, Any]:
        """Query parameters for a forecast lookup.

        Raises:
            ValueError: If neither section is requested
        """
        if not (current or hourly):
            raise ValueError("Request current conditions, the hourly series, or both")
        params: dict[str, Any] = {
            "latitude": coordinates.latitude,
            "longitude": coordinates.longitude,
            "timezone": "auto",
        }
        if current:
            params["current_weather"] = "true"
        if hourly:
            params["hourly"] = HOURLY_VARIABLES
        return params

    async def get_forecast(
        self,
        coordinates: Coordinates,
        current: bool = True,
        hourly: bool = True,
    ) -> dict[str, Any]:
        """Get current conditions and/or the hourly series for a location.

        Raises:
            ProviderError: If the request fails or the response is unusable
        """
        logger.debug(f"Fetching Open-Meteo forecast for {coordinates}")
        params = self.build_params(coordinates, current=current, hourly=hourly)
        data = await self._get_json("/forecast", params=params)
        return self._translate_response(data, current=current, hourly=hourly)

    def _translate_response(
        self,
        data: dict[str, Any],
        current: bool = True,
        hourly: bool = True,
    ) -> dict[str, Any]:
        """Translate an Open-Meteo response to the gateway payload."""
        try:
            payload: dict[str, Any] = {
                "location": {
                    "latitude": data["latitude"],
                    "longitude": data["longitude"],
                    "city": None,
                    "country": None,
                    "timezone": data.get("timezone"),
                    "elevation": data.get("elevation"),
                },
            }
            if current:
                conditions = data["current_weather"]
                payload["current"] = {
                    "time": conditions["time"],
                    "temperature": conditions["temperature"],
                    "windSpeed": conditions["windspeed"],
                }
            if hourly:
                series = data["hourly"]
                payload["hourly"] = [
                    {
                        "time": time,
                        "temperature": series["temperature_2m"][index],
                        "humidity": series["relativehumidity_2m"][index],
                        "windSpeed": series["windspeed_10m"][index],
                    }
                    for index, time in enumerate(series["time"])
                ]
            return payload
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Unexpected response shape: {e!r}", provider=self.name) from e
