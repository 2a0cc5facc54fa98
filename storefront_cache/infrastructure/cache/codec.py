"""
Cache entry codec.

Every value written to the KV store is wrapped in a tagged envelope::

    {"data": <payload>, "cached_at": <epoch seconds>, "ttl": <seconds>, "kind": "list"}

``cached_at`` lets a reader compute staleness without a second round-trip
(no TTL query), and ``kind`` lets it reject a payload of the wrong shape
before any caller relies on it. Anything that does not decode into a
well-formed envelope raises CacheSerializationError, which the cache
manager treats as a miss.
"""

from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from storefront_cache.core.config.constants import PayloadKind
from storefront_cache.core.exceptions import CacheSerializationError


def kind_of(value: Any) -> PayloadKind:
    """Shape tag for a payload value."""
    if isinstance(value, list):
        return PayloadKind.LIST
    if isinstance(value, dict):
        return PayloadKind.OBJECT
    return PayloadKind.SCALAR


class CacheEntry(BaseModel):
    """
    A decoded cache entry.

    Staleness windows for an entry written at t0, with freshness threshold F
    and TTL T (F < T):

        t0 <= now < t0 + F      fresh
        t0 + F <= now < t0 + T  stale (serve, then refresh in background)
        now >= t0 + T           expired (treated as absent)
    """

    model_config = ConfigDict(frozen=True)

    data: Any
    cached_at: float
    ttl: int = Field(gt=0)
    kind: PayloadKind

    def age(self, now: float) -> float:
        return max(0.0, now - self.cached_at)

    def is_expired(self, now: float) -> bool:
        return self.age(now) >= self.ttl

    def is_stale(self, now: float, fresh_for: float) -> bool:
        return self.age(now) >= fresh_for

    def ttl_remaining(self, now: float) -> float:
        return max(0.0, self.ttl - self.age(now))


def encode_entry(data: Any, ttl: int, now: float) -> str:
    """
    Serialize a payload into its envelope.

    Raises:
        CacheSerializationError: If the payload is not JSON-serializable
    """
    try:
        return orjson.dumps(
            {"data": data, "cached_at": now, "ttl": ttl, "kind": kind_of(data).value}
        ).decode("utf-8")
    except TypeError as e:
        raise CacheSerializationError(
            message=f"Payload is not JSON-serializable: {e}",
            details={"payload_type": type(data).__name__},
        ) from e


def decode_entry(
    raw: str | bytes,
    expected_kind: PayloadKind = PayloadKind.ANY,
    schema: TypeAdapter | None = None,
) -> CacheEntry:
    """
    Parse and validate an envelope.

    Args:
        raw: Value read from the KV store
        expected_kind: Shape the domain stores (ANY skips the check)
        schema: Optional pydantic adapter the payload must satisfy

    Raises:
        CacheSerializationError: On non-JSON input, a missing or malformed
            envelope, a kind tag that disagrees with the payload, or a
            payload that fails the domain check
    """
    try:
        decoded = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise CacheSerializationError(
            message="Cached value is not valid JSON",
            details={"preview": str(raw[:40])},
        ) from e

    if not isinstance(decoded, dict) or "data" not in decoded or "cached_at" not in decoded:
        raise CacheSerializationError(
            message="Cached value is not a tagged entry",
            details={"value_type": type(decoded).__name__},
        )

    try:
        entry = CacheEntry.model_validate(decoded)
    except ValidationError as e:
        raise CacheSerializationError(
            message="Cached entry envelope is malformed",
            details={"errors": e.error_count()},
        ) from e

    actual_kind = kind_of(entry.data)
    if entry.kind != actual_kind:
        raise CacheSerializationError(
            message="Cached entry kind tag does not match its payload",
            details={"tagged": entry.kind.value, "actual": actual_kind.value},
        )
    if expected_kind != PayloadKind.ANY and entry.kind != expected_kind:
        raise CacheSerializationError(
            message="Cached payload has the wrong shape for its domain",
            details={"expected": expected_kind.value, "actual": entry.kind.value},
        )

    if schema is not None:
        try:
            schema.validate_python(entry.data)
        except ValidationError as e:
            raise CacheSerializationError(
                message="Cached payload failed schema validation",
                details={"errors": e.error_count()},
            ) from e

    return entry
