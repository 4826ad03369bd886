"""Tests for the upstream providers, using httpx mock transports."""

from unittest.mock import patch

import httpx
import pytest
from tenacity import wait_none

from weather_gateway.models.location import Coordinates
from weather_gateway.providers.base import (
    LocationNotFound,
    ProviderError,
    UpstreamProvider,
    UpstreamRateLimited,
)
from weather_gateway.providers.nominatim import NominatimGeocoder
from weather_gateway.providers.open_meteo import OpenMeteoClient


OPEN_METEO_RESPONSE = {
    "latitude": 51.5,
    "longitude": -0.12,
    "timezone": "Europe/London",
    "elevation": 23.0,
    "current_weather": {"time": "2024-06-15T12:00", "temperature": 18.2, "windspeed": 11.3},
    "hourly": {
        "time": ["2024-06-15T12:00", "2024-06-15T13:00"],
        "temperature_2m": [18.2, 18.9],
        "relativehumidity_2m": [60, 58],
        "windspeed_10m": [11.3, 12.0],
    },
}

NOMINATIM_RESPONSE = [
    {
        "lat": "51.5073219",
        "lon": "-0.1276474",
        "display_name": "London, Greater London, England, United Kingdom",
    }
]


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestOpenMeteoClient:
    """Tests for the Open-Meteo client."""

    @pytest.mark.asyncio
    async def test_request_parameters(self):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=OPEN_METEO_RESPONSE)

        client = OpenMeteoClient("https://api.test/v1", client=mock_client(handler))
        await client.get_forecast(Coordinates(latitude=51.5074, longitude=-0.1278))

        request = requests[0]
        assert request.url.path == "/v1/forecast"
        assert request.url.params["latitude"] == "51.5074"
        assert request.url.params["longitude"] == "-0.1278"
        assert request.url.params["current_weather"] == "true"
        assert request.url.params["hourly"] == "temperature_2m,relativehumidity_2m,windspeed_10m"
        assert request.url.params["timezone"] == "auto"
        assert request.headers["User-Agent"] == "weather-gateway/0.1.0"

    @pytest.mark.asyncio
    async def test_translates_response(self):
        client = OpenMeteoClient(
            client=mock_client(lambda request: httpx.Response(200, json=OPEN_METEO_RESPONSE))
        )
        payload = await client.get_forecast(Coordinates(latitude=51.5, longitude=-0.12))

        assert payload["location"] == {
            "latitude": 51.5,
            "longitude": -0.12,
            "city": None,
            "country": None,
            "timezone": "Europe/London",
            "elevation": 23.0,
        }
        assert payload["current"] == {
            "time": "2024-06-15T12:00",
            "temperature": 18.2,
            "windSpeed": 11.3,
        }
        assert payload["hourly"][1] == {
            "time": "2024-06-15T13:00",
            "temperature": 18.9,
            "humidity": 58,
            "windSpeed": 12.0,
        }

    @pytest.mark.asyncio
    async def test_hourly_only(self):
        requests: list[httpx.Request] = []
        response = {k: v for k, v in OPEN_METEO_RESPONSE.items() if k != "current_weather"}

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=response)

        client = OpenMeteoClient(client=mock_client(handler))
        payload = await client.get_forecast(
            Coordinates(latitude=51.5, longitude=-0.12), current=False
        )

        assert "current_weather" not in requests[0].url.params
        assert "current" not in payload
        assert len(payload["hourly"]) == 2

    def test_requires_a_section(self):
        with pytest.raises(ValueError):
            OpenMeteoClient.build_params(
                Coordinates(latitude=1, longitude=1), current=False, hourly=False
            )

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        client = OpenMeteoClient(
            client=mock_client(lambda request: httpx.Response(200, json={"latitude": 1}))
        )
        with pytest.raises(ProviderError):
            await client.get_forecast(Coordinates(latitude=1, longitude=1))

    @pytest.mark.asyncio
    async def test_server_error(self):
        client = OpenMeteoClient(
            client=mock_client(lambda request: httpx.Response(500, text="boom"))
        )
        with pytest.raises(ProviderError) as exc_info:
            await client.get_forecast(Coordinates(latitude=1, longitude=1))
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        client = OpenMeteoClient(
            client=mock_client(
                lambda request: httpx.Response(429, headers={"Retry-After": "30"})
            )
        )
        with pytest.raises(UpstreamRateLimited) as exc_info:
            await client.get_forecast(Coordinates(latitude=1, longitude=1))
        assert exc_info.value.retry_after == 30

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = OpenMeteoClient(
            client=mock_client(lambda request: httpx.Response(200, text="<html>"))
        )
        with pytest.raises(ProviderError, match="Invalid JSON"):
            await client.get_forecast(Coordinates(latitude=1, longitude=1))

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=OPEN_METEO_RESPONSE)

        client = OpenMeteoClient(client=mock_client(handler))
        with patch.object(UpstreamProvider._fetch.retry, "wait", wait_none()):
            payload = await client.get_forecast(Coordinates(latitude=1, longitude=1))

        assert attempts == 3
        assert payload["current"]["temperature"] == 18.2

    @pytest.mark.asyncio
    async def test_persistent_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = OpenMeteoClient(client=mock_client(handler))
        with patch.object(UpstreamProvider._fetch.retry, "wait", wait_none()):
            with pytest.raises(ProviderError, match="unreachable"):
                await client.get_forecast(Coordinates(latitude=1, longitude=1))

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        http_client = mock_client(lambda request: httpx.Response(200, json=OPEN_METEO_RESPONSE))
        async with OpenMeteoClient(client=http_client):
            pass
        assert not http_client.is_closed
        await http_client.aclose()


class TestNominatimGeocoder:
    """Tests for the Nominatim geocoder."""

    @pytest.mark.asyncio
    async def test_request_parameters(self):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=NOMINATIM_RESPONSE)

        geocoder = NominatimGeocoder(
            "https://geo.test",
            user_agent="test-agent/1.0",
            client=mock_client(handler),
        )
        await geocoder.geocode("London", "GB")

        request = requests[0]
        assert request.url.path == "/search"
        assert request.url.params["q"] == "London"
        assert request.url.params["countrycodes"] == "gb"
        assert request.url.params["format"] == "json"
        assert request.url.params["limit"] == "1"
        assert request.url.params["addressdetails"] == "1"
        assert request.headers["User-Agent"] == "test-agent/1.0"

    @pytest.mark.asyncio
    async def test_parses_first_result(self):
        geocoder = NominatimGeocoder(
            client=mock_client(lambda request: httpx.Response(200, json=NOMINATIM_RESPONSE))
        )
        location = await geocoder.geocode("London", "GB")
        assert location == {
            "latitude": 51.5073219,
            "longitude": -0.1276474,
            "display_name": "London, Greater London, England, United Kingdom",
        }

    @pytest.mark.asyncio
    async def test_no_results(self):
        geocoder = NominatimGeocoder(
            client=mock_client(lambda request: httpx.Response(200, json=[]))
        )
        with pytest.raises(LocationNotFound) as exc_info:
            await geocoder.geocode("Atlantis", "GR")
        assert exc_info.value.city == "Atlantis"

    @pytest.mark.asyncio
    async def test_out_of_range_result(self):
        geocoder = NominatimGeocoder(
            client=mock_client(
                lambda request: httpx.Response(200, json=[{"lat": "123", "lon": "0"}])
            )
        )
        with pytest.raises(ProviderError):
            await geocoder.geocode("Nowhere", "XX")
