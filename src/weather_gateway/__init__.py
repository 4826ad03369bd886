"""Weather gateway.

An authenticated, rate-limited and cached gateway in front of upstream
weather and geocoding services.

## Components

- auth: credential issuance and verification (sessions and API keys)
- ratelimit: fixed-window request quotas per caller
- cache: memoization of upstream lookups keyed by a query fingerprint
- state: shared key-value backends (Redis or in-process)
- providers: upstream weather/geocoding HTTP clients
- api: FastAPI application
"""

__version__ = "0.1.0"
