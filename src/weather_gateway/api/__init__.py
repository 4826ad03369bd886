"""FastAPI application and routes."""

from weather_gateway.api.app import create_app

__all__ = ["create_app"]
