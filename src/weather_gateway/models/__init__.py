"""Data models."""

from weather_gateway.models.location import Coordinates, Place

__all__ = [
    "Coordinates",
    "Place",
]
