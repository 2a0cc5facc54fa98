"""
Key-Value Store Protocol

This module defines the contract the cache layer consumes from the shared
key-value store, enabling dependency injection and testability.

Architectural Decision: Protocol-based abstraction
- The read-through cache depends on four operations only
- RedisClient satisfies it in production, InMemoryKeyValueStore in tests
  and local development
"""

import asyncio
import fnmatch
import time
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Protocol defining the operations consumed by the cache layer.

    Every operation may fail (network error, timeout). Callers treat a
    failure as a cache miss, never as a fatal error for the request.

    Implementations:
    - RedisClient: Production Redis-backed store
    - InMemoryKeyValueStore: Testing/development store
    """

    async def get(self, key: str) -> str | None:
        """
        Get a raw value.

        Returns:
            The stored string, or None if the key does not exist
        """
        ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Store a raw value with an optional time-to-live in seconds.

        Returns:
            True if stored
        """
        ...

    async def delete(self, *keys: str) -> int:
        """
        Delete keys.

        Returns:
            Number of keys deleted
        """
        ...

    async def keys(self, pattern: str = "*") -> list[str]:
        """
        List keys matching a glob pattern.

        Returns:
            Matching keys (order unspecified)
        """
        ...

    async def ping(self) -> bool:
        """Check if the store is reachable."""
        ...


class InMemoryKeyValueStore:
    """
    In-process implementation of KeyValueStore.

    TTLs are enforced lazily on access against an injectable clock, so tests
    can move time forward without sleeping. Several cache managers may share
    one instance to stand in for several processes sharing one Redis.

    Note: This is NOT distributed. Use for tests and local development only.
    """

    def __init__(self, clock: Callable[[], float] = time.time, delay: float = 0.0):
        self._store: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}
        self._clock = clock
        self.delay = delay
        self.fail_with: Exception | None = None

    async def _simulate_network(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

    def _purge_if_expired(self, key: str) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and self._clock() >= expires_at:
            self._store.pop(key, None)
            self._expires_at.pop(key, None)

    async def connect(self) -> None:
        """Nothing to connect."""

    async def disconnect(self) -> None:
        """Drop all data."""
        self._store.clear()
        self._expires_at.clear()

    async def ping(self) -> bool:
        return self.fail_with is None

    async def get(self, key: str) -> str | None:
        await self._simulate_network()
        self._purge_if_expired(key)
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        await self._simulate_network()
        self._store[key] = value
        if ttl:
            self._expires_at[key] = self._clock() + ttl
        else:
            self._expires_at.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        await self._simulate_network()
        count = 0
        for key in keys:
            self._purge_if_expired(key)
            if key in self._store:
                del self._store[key]
                self._expires_at.pop(key, None)
                count += 1
        return count

    async def keys(self, pattern: str = "*") -> list[str]:
        await self._simulate_network()
        for key in list(self._store):
            self._purge_if_expired(key)
        return [key for key in self._store if fnmatch.fnmatchcase(key, pattern)]

    def ttl_of(self, key: str) -> float | None:
        """Seconds until expiry, or None for keys without a TTL."""
        expires_at = self._expires_at.get(key)
        return None if expires_at is None else expires_at - self._clock()

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy" if self.fail_with is None else "unhealthy",
            "connected": True,
            "keys_count": len(self._store),
            "backend": "in_memory",
        }
