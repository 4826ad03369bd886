"""FastAPI application factory.

Creates and configures the FastAPI application with all routes, error
handlers and middleware.

## Usage

```python
from weather_gateway.api import create_app

app = create_app()

# Run with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
```

## Configuration

The app is configured via environment variables. See `weather_gateway.config`
for available settings.

## Error responses

| Error | Status |
|-------|--------|
| MalformedCredential | 400 |
| CredentialRejected (any reason) | 401 `Invalid credentials` |
| RateLimited | 429 with `Retry-After` |
| LocationNotFound | 404 |
| ProviderError | 502 |
| UpstreamRateLimited | 503 |
| BackendUnavailable, IssuanceFailed | 503 |
| SQLAlchemyError (database down or slow) | 503 |
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from weather_gateway.config import Settings, get_settings
from weather_gateway.database.connection import (
    close_db,
    create_tables,
    get_session_factory,
    init_db,
    ping_db,
)
from weather_gateway.database.credential_store import SqlCredentialStore
from weather_gateway.errors import (
    BackendUnavailable,
    CredentialRejected,
    IssuanceFailed,
    MalformedCredential,
    RateLimited,
)
from weather_gateway.gateway import build_gateway
from weather_gateway.log import configure_logging
from weather_gateway.providers.base import LocationNotFound, ProviderError, UpstreamRateLimited
from weather_gateway.providers.nominatim import NominatimGeocoder
from weather_gateway.providers.open_meteo import OpenMeteoClient
from weather_gateway.state.base import SharedStateBackend

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Map gateway errors to HTTP responses."""

    @app.exception_handler(MalformedCredential)
    async def malformed_credential(request: Request, exc: MalformedCredential) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(CredentialRejected)
    async def credential_rejected(request: Request, exc: CredentialRejected) -> JSONResponse:
        # Same response for every reason
        return _error(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(RateLimited)
    async def rate_limited(request: Request, exc: RateLimited) -> JSONResponse:
        headers = {"Retry-After": exc.retry_after_header, "X-RateLimit-Remaining": "0"}
        if exc.limit is not None:
            headers["X-RateLimit-Limit"] = str(exc.limit)
        return _error(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests", headers=headers)

    @app.exception_handler(BackendUnavailable)
    async def backend_unavailable(request: Request, exc: BackendUnavailable) -> JSONResponse:
        logger.error(f"Backend unavailable: {exc}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service temporarily unavailable")

    @app.exception_handler(SQLAlchemyError)
    async def database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(f"Database error: {exc!r}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service temporarily unavailable")

    @app.exception_handler(TimeoutError)
    async def timed_out(request: Request, exc: TimeoutError) -> JSONResponse:
        logger.error("Request timed out waiting for a backend")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service temporarily unavailable")

    @app.exception_handler(IssuanceFailed)
    async def issuance_failed(request: Request, exc: IssuanceFailed) -> JSONResponse:
        logger.error(f"Credential issuance failed: {exc}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service temporarily unavailable")

    @app.exception_handler(LocationNotFound)
    async def location_not_found(request: Request, exc: LocationNotFound) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(UpstreamRateLimited)
    async def upstream_rate_limited(request: Request, exc: UpstreamRateLimited) -> JSONResponse:
        logger.warning(f"Upstream rate limited: {exc.provider}")
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Weather provider busy, try again later",
            headers=headers,
        )

    @app.exception_handler(ProviderError)
    async def provider_error(request: Request, exc: ProviderError) -> JSONResponse:
        logger.error(f"Upstream error from {exc.provider}: {exc} (status={exc.status_code})")
        return _error(status.HTTP_502_BAD_GATEWAY, "Unable to fetch weather data")


def create_app(
    settings: Settings | None = None,
    *,
    backend: SharedStateBackend | None = None,
    weather_client: OpenMeteoClient | None = None,
    geocoder: NominatimGeocoder | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings (default: from the environment)
        backend: Shared state backend (default: from `REDIS_URL`)
        weather_client: Weather provider override (tests)
        geocoder: Geocoder override (tests)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager.

        Handles startup and shutdown tasks:
        - Initialize database connection
        - Build the gateway components
        - Clean up on shutdown
        """
        configure_logging(settings.log_level)
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")

        # Initialize database
        await init_db(settings)
        if settings.database_create_tables:
            await create_tables()

        gateway = build_gateway(
            settings,
            SqlCredentialStore(get_session_factory()),
            backend=backend,
            weather_client=weather_client,
            geocoder=geocoder,
        )
        app.state.gateway = gateway
        logger.info(f"Shared state backend: {gateway.backend.name}")

        yield

        # Shutdown
        logger.info("Shutting down")
        await gateway.close()
        await close_db()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Authenticated, rate-limited and cached weather API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "PATCH"],
        allow_headers=["*"],
        expose_headers=["Retry-After", "X-Cache", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
    )

    register_exception_handlers(app)

    # Include routers
    from weather_gateway.api.routes import admin, auth, keys, weather

    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
    app.include_router(keys.router, prefix="/api/keys", tags=["API Keys"])
    app.include_router(weather.router, prefix="/api/weather", tags=["Weather"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        gateway = request.app.state.gateway
        return {
            "status": "healthy",
            "version": settings.app_version,
            "state_backend": gateway.backend.name,
            "state_backend_ok": await gateway.backend.ping(),
            "database_ok": await ping_db(),
        }

    return app
