"""Database module for the weather gateway.

This module provides:
- SQLAlchemy async engine and sessions
- User and credential tables
- The SQL credential store
"""

from weather_gateway.database.connection import (
    close_db,
    get_db,
    get_db_session,
    init_db,
    ping_db,
)
from weather_gateway.database.credential_store import SqlCredentialStore
from weather_gateway.database.models import (
    Base,
    Credential,
    User,
)

__all__ = [
    # Connection
    "get_db",
    "get_db_session",
    "init_db",
    "close_db",
    "ping_db",
    # Store
    "SqlCredentialStore",
    # Models
    "Base",
    "Credential",
    "User",
]
