"""Weather routes.

GET /api/weather?lat=51.5074&lon=-0.1278
GET /api/weather?city=London&country=GB

Callers authenticate with an API key or a session credential and are rate
limited. The `X-Cache` response header says whether the forecast was served
from the cache (`HIT`) or fetched upstream (`MISS`).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import ValidationError

from weather_gateway.api.dependencies import get_gateway, rate_limited_principal
from weather_gateway.auth.models import AuthenticatedPrincipal
from weather_gateway.gateway import Gateway
from weather_gateway.models.location import Coordinates, Place

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_QUERY = "Invalid query parameters"


@router.get("")
async def get_weather(
    response: Response,
    lat: float | None = Query(default=None, description="Latitude in decimal degrees"),
    lon: float | None = Query(default=None, description="Longitude in decimal degrees"),
    city: str | None = Query(default=None, max_length=100),
    country: str | None = Query(default=None, description="ISO 3166-1 alpha-2 code"),
    principal: AuthenticatedPrincipal = Depends(rate_limited_principal),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    """Current conditions and hourly forecast for a point or a place."""
    try:
        if lat is not None and lon is not None:
            coordinates = Coordinates(latitude=lat, longitude=lon)
            result = await gateway.weather.get_by_coordinates(coordinates)
        elif city and country:
            place = Place(city=city.strip(), country=country.strip())
            result = await gateway.weather.get_by_place(place.city, place.country)
        else:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_QUERY)
    except ValidationError as e:
        logger.debug(f"Rejected weather query: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_QUERY)

    response.headers["X-Cache"] = "HIT" if result.cache_hit else "MISS"
    return result.payload
