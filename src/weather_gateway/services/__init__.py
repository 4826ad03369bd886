"""Gateway services."""

from weather_gateway.services.weather import WeatherResult, WeatherService

__all__ = [
    "WeatherResult",
    "WeatherService",
]
