"""
Process-local micro-cache for reference data.

Lifecycle of a record:
- created on the first successful fetch of a domain
- overwritten on every refresh
- never deleted; judged only by comparing its timestamp with the TTL at read time
- lost on process restart

The cache is a pure optimization owned by one process. It is never shared or
synchronized with other instances; the KV store is the shared tier.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from storefront_cache.core.config.constants import CacheDomain
from storefront_cache.core.config.settings import get_settings

MICRO_CACHE_DOMAINS: frozenset[CacheDomain] = frozenset(
    {CacheDomain.SIZE_OPTIONS, CacheDomain.AGE_OPTIONS, CacheDomain.GENDER_OPTIONS}
)


@dataclass(frozen=True)
class MicroCacheRecord:
    data: Any
    timestamp_ms: float


class MicroCache:
    """
    One record slot per reference-data domain.

    Args:
        ttl_ms: Record lifetime (defaults to CACHE_MICRO_TTL_MS)
        clock: Returns the current time in seconds
    """

    def __init__(self, ttl_ms: int | None = None, clock: Callable[[], float] = time.time):
        self.ttl_ms = ttl_ms if ttl_ms is not None else get_settings().cache.CACHE_MICRO_TTL_MS
        self._clock = clock
        self._records: dict[CacheDomain, MicroCacheRecord] = {}

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def lookup(self, domain: CacheDomain) -> MicroCacheRecord | None:
        """Return the record while it is younger than the TTL, otherwise None."""
        record = self._records.get(domain)
        if record is None:
            return None
        if self._now_ms() - record.timestamp_ms < self.ttl_ms:
            return record
        return None

    def store(self, domain: CacheDomain, data: Any) -> MicroCacheRecord:
        """Overwrite the domain's record with a fresh timestamp."""
        if domain not in MICRO_CACHE_DOMAINS:
            raise ValueError(f"{domain} is not a micro-cached domain")
        record = MicroCacheRecord(data=data, timestamp_ms=self._now_ms())
        self._records[domain] = record
        return record

    def reset(self) -> None:
        """Drop every record. Intended for tests and process bootstrap only."""
        self._records.clear()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        now_ms = self._now_ms()
        return {
            domain.value: {
                "age_ms": round(now_ms - record.timestamp_ms, 1),
                "fresh": now_ms - record.timestamp_ms < self.ttl_ms,
            }
            for domain, record in self._records.items()
        }


# =============================================================================
# PROCESS SINGLETON
# =============================================================================

_micro_cache: MicroCache | None = None


def get_micro_cache() -> MicroCache:
    """Get the process-wide micro-cache, creating it empty on first use."""
    global _micro_cache

    if _micro_cache is None:
        _micro_cache = MicroCache()

    return _micro_cache


def reset_micro_cache() -> None:
    """Discard the process-wide micro-cache; the next access starts empty."""
    global _micro_cache
    _micro_cache = None
