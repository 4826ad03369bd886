"""Base upstream provider abstraction.

Upstream providers are the external HTTP services the gateway fronts. Each
provider translates its API response into the gateway's own payload shape,
so cached entries and responses do not depend on upstream field names.

## Supported Providers

### Open-Meteo (open-meteo.com)
- Endpoint: https://api.open-meteo.com/v1/forecast
- Auth: None required for basic use
- Rate limit: 10,000 requests/day (non-commercial)
- Key response path: current_weather, hourly objects with arrays

### Nominatim (nominatim.openstreetmap.org)
- Endpoint: https://nominatim.openstreetmap.org/search
- Auth: User-Agent header required (no API key)
- Rate limit: 1 request/second, results must be cached
- Key response path: [0].lat, [0].lon, [0].display_name

## Errors

- `UpstreamRateLimited`: the provider answered 429
- `LocationNotFound`: geocoding found no match
- `ProviderError`: any other failed request, including transport errors that
  persisted through retries
"""

from __future__ import annotations

import logging
from typing import Any, Self

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from weather_gateway.errors import GatewayError

logger = logging.getLogger(__name__)


class ProviderError(GatewayError):
    """Base exception for upstream provider errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.response_body = response_body


class UpstreamRateLimited(ProviderError):
    """Raised when the provider's own rate limit is exceeded."""

    def __init__(
        self,
        provider: str,
        retry_after: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(
            f"Rate limit exceeded for {provider}",
            provider=provider,
            status_code=status_code,
        )
        self.retry_after = retry_after


class LocationNotFound(ProviderError):
    """Raised when a place name cannot be resolved."""

    def __init__(self, city: str, country: str, provider: str = "nominatim"):
        super().__init__(f'City "{city}" not found in {country}', provider=provider)
        self.city = city
        self.country = country


class UpstreamProvider:
    """Base class for JSON-over-HTTP upstream providers.

    Attributes:
        name: Provider name used in logs and errors
        base_url: Base URL for the API

    Example:
        ```python
        class MyProvider(UpstreamProvider):
            name = "my_provider"

            async def lookup(self, query):
                data = await self._get_json("/search", params={"q": query})
                return self._translate_response(data)
        ```
    """

    name: str = "upstream"

    def __init__(
        self,
        base_url: str,
        user_agent: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the provider.

        Args:
            base_url: Base URL for the API
            user_agent: User-Agent string for requests
            timeout: Request timeout in seconds
            client: Pre-built HTTP client (tests pass one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent or "weather-gateway/0.1.0"
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        self._get_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    def _get_default_headers(self) -> dict[str, str]:
        """Get default headers for requests."""
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _fetch(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Fetch data from the API with retry logic.

        Timeouts and network errors are retried. HTTP error statuses are not.

        Raises:
            ProviderError: If the provider answers with an error status
            UpstreamRateLimited: If the provider answers 429
            httpx.TransportError: If the request keeps failing after retries
        """
        client = self._get_client()
        request_headers = self._get_default_headers()
        if headers:
            request_headers.update(headers)

        response = await client.get(url, params=params, headers=request_headers)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise UpstreamRateLimited(
                self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                status_code=429,
            )

        if response.status_code >= 400:
            raise ProviderError(
                f"API request failed: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
                response_body=response.text,
            )

        return response

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET `path` relative to the base URL and decode the JSON body."""
        url = f"{self.base_url}{path}"
        try:
            response = await self._fetch(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{self.name} request failed: {e!r}")
            raise ProviderError(f"{self.name} unreachable", provider=self.name) from e

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                "Invalid JSON in response",
                provider=self.name,
                status_code=response.status_code,
                response_body=response.text[:500],
            ) from e
