"""Canonical query fingerprints.

Semantically equivalent upstream queries must map to the same cache key.
Parameters are canonicalized before hashing:

- Keys are trimmed and lowercased
- Text values are trimmed, inner whitespace is collapsed, and lowercased
- Numbers (coordinates) are rounded half-up to a fixed number of decimals
  and rendered with exactly that many decimals
- None values are dropped
- The result is serialized as JSON with sorted keys

Examples (precision 4):

| Query | Canonical form |
|-------|----------------|
| `{"city": " London ", "country": "UK"}` | `{"city":"london","country":"uk"}` |
| `{"lat": 51.50740001}` | `{"lat":"51.5074"}` |
| `{"lat": 51.6}` | `{"lat":"51.6000"}` |

The same canonical parameters are what should be sent upstream, so the cached
payload always corresponds to the key it is stored under.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

DEFAULT_PRECISION = 4


def round_coordinate(value: float | int | str, precision: int = DEFAULT_PRECISION) -> Decimal:
    """Round a numeric value half-up to `precision` decimals.

    Raises:
        ValueError: If the value is not a finite number
    """
    quantized = Decimal(str(value))
    if not quantized.is_finite():
        raise ValueError(f"Cannot fingerprint non-finite number: {value!r}")
    quantized = quantized.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)
    if quantized.is_zero():
        # -0.0000 and 0.0000 are the same coordinate
        quantized = abs(quantized)
    return quantized


def canonical_value(value: Any, precision: int = DEFAULT_PRECISION) -> Any:
    """Canonicalize a single parameter value."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return format(round_coordinate(value, precision), "f")
    if isinstance(value, str):
        return " ".join(value.split()).lower()
    if isinstance(value, Mapping):
        return canonicalize(value, precision)
    if isinstance(value, (list, tuple)):
        return [canonical_value(v, precision) for v in value if v is not None]
    raise TypeError(f"Unsupported query parameter type: {type(value).__name__}")


def canonicalize(params: Mapping[str, Any], precision: int = DEFAULT_PRECISION) -> dict[str, Any]:
    """Canonicalize a mapping of query parameters.

    Raises:
        ValueError: If two keys collide after normalization
    """
    result: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        canonical_key = str(key).strip().lower()
        if canonical_key in result:
            raise ValueError(f"Duplicate query parameter after normalization: {canonical_key!r}")
        result[canonical_key] = canonical_value(value, precision)
    return result


def canonical_query(params: Mapping[str, Any], precision: int = DEFAULT_PRECISION) -> str:
    """Serialize canonical parameters in a stable, sorted order."""
    return json.dumps(
        canonicalize(params, precision),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def fingerprint(
    params: Mapping[str, Any],
    namespace: str = "query",
    precision: int = DEFAULT_PRECISION,
) -> str:
    """Compute the cache fingerprint for a query.

    Args:
        params: Query parameters as they will be sent upstream
        namespace: Data category or upstream operation (e.g. "weather:current")
        precision: Decimals kept for numeric values

    Returns:
        `<namespace>:<sha256 of the canonical query>`
    """
    digest = hashlib.sha256(canonical_query(params, precision).encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"
