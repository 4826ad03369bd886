"""Database models for the weather gateway.

## Security Notes

- Passwords are stored as bcrypt hashes
- Credential secrets are never stored; `secret_hash` holds a keyed one-way
  hash of the secret material
- `public_id` is unique across sessions and API keys

## Schema Overview

```
users
└── credentials (1:N) - sessions and API keys
```
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from weather_gateway.auth.models import CredentialKind, Role


class Base(DeclarativeBase):
    """Base class for all database models."""


class User(Base):
    """User account model.

    An identity that logs in with email and password. Users are never
    deleted while credentials reference them; access is withdrawn by
    clearing `is_active`, which revokes every credential at once.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Account status
    role: Mapped[str] = mapped_column(String(16), default=Role.STANDARD.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    credentials: Mapped[list["Credential"]] = relationship(back_populates="user")

    @property
    def is_elevated(self) -> bool:
        return self.role == Role.ELEVATED.value

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Credential(Base):
    """A session credential or API key.

    `expires_at` is NULL for API keys (no expiry until revoked).
    """

    __tablename__ = "credentials"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    public_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    kind: Mapped[str] = mapped_column(String(16), default=CredentialKind.API_KEY.value)
    secret_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    label: Mapped[str | None] = mapped_column(String(100))

    # Lifecycle
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    revoked: Mapped[bool] = mapped_column(Boolean, default=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="credentials")

    __table_args__ = (
        Index("ix_credentials_user_kind", "user_id", "kind"),
    )

    def __repr__(self) -> str:
        return f"<Credential {self.kind} {self.public_id}>"
