"""One-way hashing for credential secrets and passwords.

## Credential secrets

Secrets are high-entropy random values (API keys) or signed tokens
(sessions), so a keyed HMAC-SHA256 is sufficient and fast. The HMAC key is
separate from the token signing key: a leaked credential table alone does not
allow offline checks of guessed secrets.

## Passwords

Passwords are low-entropy, so they use bcrypt. Bcrypt truncates inputs at 72
bytes; pre-hashing with SHA-256 yields a fixed-length input so long passwords
are not silently truncated.

Bcrypt is CPU-bound. The async helpers run it in a worker thread and return
only once the hash is computed, so callers persist a finished hash.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac

import bcrypt


def hash_secret(secret: str, key: str) -> str:
    """Return the hex HMAC-SHA256 of a credential secret."""
    return hmac.new(key.encode("utf-8"), secret.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_secret(secret: str, expected_hash: str, key: str) -> bool:
    """Check a secret against its stored hash in constant time."""
    return hmac.compare_digest(hash_secret(secret, key), expected_hash)


def _prehash(password: str) -> bytes:
    """SHA-256 pre-hash to avoid bcrypt's 72-byte truncation."""
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    """Return bcrypt hash of password (SHA-256 pre-hashed before bcrypt)."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(_prehash(password), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True if plain_password matches hashed_password."""
    try:
        return bool(
            bcrypt.checkpw(
                _prehash(plain_password),
                hashed_password.encode("utf-8"),
            )
        )
    except (ValueError, TypeError):
        return False


async def hash_password_async(password: str) -> str:
    """Hash a password in a worker thread."""
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(plain_password: str, hashed_password: str) -> bool:
    """Verify a password in a worker thread."""
    return await asyncio.to_thread(verify_password, plain_password, hashed_password)
