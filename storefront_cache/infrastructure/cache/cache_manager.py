#!/usr/bin/env python3
"""
Read-Through Cache Manager

Architecture:
    CacheManager (Public API)
        ├── KeyValueStore (shared tier: Redis in production)
        ├── KVCircuitBreaker (skip the shared tier during an outage)
        ├── BackgroundTasks (write-backs, refreshes, abandoned reads)
        ├── CacheMonitor (recent-operation ring buffer)
        └── MetricsCollector (Prometheus counters)

Read path of get_or_compute:
    1. KV read raced against CACHE_READ_TIMEOUT_MS
    2. fresh hit  -> HIT / REDIS_CACHE
    3. stale hit  -> STALE / REDIS_CACHE, refresh in the background
    4. otherwise  -> await the caller's fetch, MISS / SUPABASE_DATABASE,
                     write back in the background

Failure policy:
    - KV errors, timeouts and unreadable entries are misses
    - write-back and refresh failures are logged and dropped
    - exceptions from the caller's fetch propagate unchanged
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storefront_cache.core.config.constants import (
    HEADER_CACHE_CONTROL,
    HEADER_CACHE_STATUS,
    HEADER_DATA_SOURCE,
    CacheDomain,
    CacheStatus,
    CacheTier,
    DataSource,
    MetricOperation,
    MetricSource,
    Stage,
)
from storefront_cache.core.config.settings import get_settings
from storefront_cache.core.exceptions import (
    CacheError,
    CacheKeyError,
    CacheSerializationError,
)
from storefront_cache.core.interfaces.cache import KeyValueStore
from storefront_cache.core.logging.logger import get_logger, log_stage
from storefront_cache.core.resilience.background_tasks import BackgroundTasks, bounded_wait
from storefront_cache.core.resilience.circuit_breaker import KVCircuitBreaker
from storefront_cache.infrastructure.cache.codec import CacheEntry, decode_entry, encode_entry
from storefront_cache.infrastructure.cache.keys import build_cache_key, domain_for_key, get_policy
from storefront_cache.infrastructure.cache.payloads import schema_for
from storefront_cache.infrastructure.monitoring.cache_monitor import CacheMonitor, get_cache_monitor
from storefront_cache.infrastructure.monitoring.metrics_collector import (
    MetricsCollector,
    get_metrics_collector,
)

logger = get_logger(__name__)

Fetch = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class CacheResult:
    """Outcome of a cache read: the value plus where it came from."""

    data: Any
    status: CacheStatus
    source: DataSource
    key: str
    cached_at: float | None = None

    @property
    def is_stale(self) -> bool:
        return self.status == CacheStatus.STALE

    def headers(self, cache_control: str | None = None) -> dict[str, str]:
        """Response headers describing this outcome to clients and CDNs."""
        headers = {
            HEADER_CACHE_STATUS: self.status.value,
            HEADER_DATA_SOURCE: self.source.value,
        }
        if cache_control:
            headers[HEADER_CACHE_CONTROL] = cache_control
        return headers


@dataclass
class InvalidationReport:
    """Keys removed by an invalidation and the failures met on the way."""

    deleted_keys: list[str] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.deleted_keys)

    def merge(self, other: "InvalidationReport") -> "InvalidationReport":
        for key in other.deleted_keys:
            if key not in self.deleted_keys:
                self.deleted_keys.append(key)
        self.errors.extend(other.errors)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "deleted_keys": list(self.deleted_keys), "errors": list(self.errors)}


class CacheManager:
    """
    Read-through cache over a shared key-value store.

    Usage:
        cache = CacheManager(kv_store=redis_client)

        result = await cache.get_or_compute(
            CacheDomain.PRODUCT, fetch=lambda: load_product(product_id), scope=product_id
        )
        response.headers.update(result.headers())

    Every collaborator is injectable so tests can run several managers
    ("processes") against one in-memory store with a controlled clock.
    """

    def __init__(
        self,
        kv_store: KeyValueStore | None = None,
        *,
        monitor: CacheMonitor | None = None,
        breaker: KVCircuitBreaker | None = None,
        background: BackgroundTasks | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.time,
        settings=None,
    ):
        if kv_store is None:
            from storefront_cache.infrastructure.cache.redis_client import get_redis_client

            kv_store = get_redis_client()

        self._settings = settings or get_settings()
        cache_settings = self._settings.cache
        self._kv = kv_store
        self._enabled = cache_settings.ENABLE_CACHING
        self._read_timeout_ms = cache_settings.CACHE_READ_TIMEOUT_MS
        self._freshness_ratio = cache_settings.CACHE_FRESHNESS_RATIO
        self._ttl_overrides = dict(cache_settings.CACHE_TTL_OVERRIDES)
        self._drain_timeout = cache_settings.CACHE_REFRESH_DRAIN_TIMEOUT

        self._metrics = metrics if metrics is not None else get_metrics_collector()
        self._monitor = monitor if monitor is not None else get_cache_monitor()
        self._background = background if background is not None else BackgroundTasks()
        if breaker is None:
            breaker = KVCircuitBreaker(
                name="kv", on_state_change=lambda name, state: self._metrics.set_circuit_state(name, state.value)
            )
        self._breaker = breaker
        self._clock = clock
        self._refreshing: set[str] = set()

        logger.info(
            "Cache manager initialized",
            stage="CACHE.INIT",
            caching_enabled=self._enabled,
            read_timeout_ms=self._read_timeout_ms,
        )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def kv_store(self) -> KeyValueStore:
        return self._kv

    @property
    def monitor(self) -> CacheMonitor:
        return self._monitor

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def breaker(self) -> KVCircuitBreaker:
        return self._breaker

    @property
    def background(self) -> BackgroundTasks:
        return self._background

    @property
    def enabled(self) -> bool:
        return self._enabled

    def now(self) -> float:
        return self._clock()

    def ttl_for(self, domain: CacheDomain) -> int:
        """Effective TTL of a domain (override or default)."""
        domain = CacheDomain(domain)
        return self._ttl_overrides.get(domain.value, get_policy(domain).ttl)

    def fresh_for(self, ttl: float) -> float:
        """Soft freshness threshold for an entry with the given TTL."""
        return ttl * self._freshness_ratio

    def key_for(
        self, domain: CacheDomain, scope: str | int | None = None, qualifier: str | int | None = None
    ) -> str:
        return build_cache_key(domain, scope, qualifier)

    # -------------------------------------------------------------------------
    # Read-through
    # -------------------------------------------------------------------------

    async def get_or_compute(
        self,
        domain: CacheDomain,
        fetch: Fetch,
        scope: str | int | None = None,
        qualifier: str | int | None = None,
        timeout_ms: int | None = None,
        ttl: int | None = None,
    ) -> CacheResult:
        """
        Read a value through the cache.

        Args:
            domain: Cache domain of the value
            fetch: Zero-argument coroutine function loading the value from origin
            scope: User id (or entity id) the key is scoped to
            qualifier: Further key qualifier (filter, query, id)
            timeout_ms: Bounded wait for the KV read (defaults to CACHE_READ_TIMEOUT_MS)
            ttl: Entry TTL in seconds (defaults to the domain TTL)

        Returns:
            CacheResult with the value and its provenance

        Raises:
            Whatever ``fetch`` raises, unchanged
        """
        domain = CacheDomain(domain)
        key = build_cache_key(domain, scope, qualifier)
        ttl = ttl or self.ttl_for(domain)

        entry = await self._read_entry(domain, key, timeout_ms)
        if entry is not None:
            if not entry.is_stale(self._clock(), self.fresh_for(entry.ttl)):
                return CacheResult(entry.data, CacheStatus.HIT, DataSource.REDIS_CACHE, key, entry.cached_at)

            self._metrics.record_stale_served(domain.value)
            self._schedule_refresh(domain, key, fetch, ttl)
            return CacheResult(entry.data, CacheStatus.STALE, DataSource.REDIS_CACHE, key, entry.cached_at)

        data = await self._fetch_origin(domain, key, fetch)
        if data is not None:
            self._schedule_write(domain, key, data, ttl)
        return CacheResult(data, CacheStatus.MISS, DataSource.DATABASE, key)

    async def get(
        self,
        domain: CacheDomain,
        scope: str | int | None = None,
        qualifier: str | int | None = None,
        timeout_ms: int | None = None,
    ) -> CacheResult | None:
        """
        Bounded read without fallback.

        Returns:
            HIT or STALE result, or None on a miss of any kind
        """
        domain = CacheDomain(domain)
        key = build_cache_key(domain, scope, qualifier)
        entry = await self._read_entry(domain, key, timeout_ms)
        if entry is None:
            return None
        status = (
            CacheStatus.STALE
            if entry.is_stale(self._clock(), self.fresh_for(entry.ttl))
            else CacheStatus.HIT
        )
        return CacheResult(entry.data, status, DataSource.REDIS_CACHE, key, entry.cached_at)

    async def set(
        self,
        domain: CacheDomain,
        data: Any,
        scope: str | int | None = None,
        qualifier: str | int | None = None,
        ttl: int | None = None,
    ) -> bool:
        """
        Write a value and wait for the store to acknowledge it.

        Returns:
            True if stored; False if caching is unavailable or the write failed
        """
        domain = CacheDomain(domain)
        key = build_cache_key(domain, scope, qualifier)
        return await self._write_entry(domain, key, data, ttl or self.ttl_for(domain))

    # -------------------------------------------------------------------------
    # Key inspection and deletion
    # -------------------------------------------------------------------------

    async def delete(self, *keys: str) -> int:
        """
        Delete concrete keys.

        Deletes are attempted even while the circuit is open: skipping one
        could leave a stale view behind once the store recovers.

        Returns:
            Number of keys deleted

        Raises:
            CacheKeyError: If the store rejects the delete
        """
        if not keys:
            return 0
        start = time.perf_counter()
        try:
            deleted = await self._kv.delete(*keys)
        except Exception as e:
            self._on_kv_failure("delete", e, keys[0])
            raise self._as_cache_error(e, "delete", keys=list(keys)) from e
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._metrics.record_kv_duration("delete", elapsed_ms / 1000)

        self._breaker.record_success()
        for key in keys:
            self._monitor.record(MetricOperation.DELETE, key, deleted > 0, elapsed_ms, MetricSource.CACHE)
        log_stage(logger, Stage.INVALIDATION, "Cache keys deleted", level="debug", keys=list(keys), deleted=deleted)
        return deleted

    async def keys(self, pattern: str = "*") -> list[str]:
        """
        List keys matching a glob pattern.

        Raises:
            CacheKeyError: If the store rejects the scan
        """
        start = time.perf_counter()
        try:
            found = await self._kv.keys(pattern)
        except Exception as e:
            self._on_kv_failure("keys", e, pattern)
            raise self._as_cache_error(e, "keys", pattern=pattern) from e
        self._breaker.record_success()
        self._metrics.record_kv_duration("keys", time.perf_counter() - start)
        return sorted(found)

    async def delete_pattern(self, pattern: str) -> "InvalidationReport":
        """
        Expand a glob pattern to concrete keys and delete them.

        Failures are reported, not raised.
        """
        report = InvalidationReport()
        try:
            matched = await self.keys(pattern)
            if matched:
                await self.delete(*matched)
                report.deleted_keys.extend(matched)
        except CacheError as e:
            report.errors.append({"pattern": pattern, "error": e.message})
        return report

    async def get_raw(self, key: str) -> str | None:
        """
        Raw stored value of a key, bypassing decoding.

        Raises:
            CacheKeyError: If the store rejects the read
        """
        try:
            raw = await self._kv.get(key)
        except Exception as e:
            self._on_kv_failure("get", e, key)
            raise self._as_cache_error(e, "get", key=key) from e
        self._breaker.record_success()
        return raw

    async def entry_info(self, key: str) -> dict[str, Any]:
        """
        Describe the entry stored under a concrete key.

        Returns:
            Dict with existence, decoded envelope fields, age, remaining TTL
            and staleness; ``valid`` is False for unreadable values
        """
        raw = await self.get_raw(key)
        info: dict[str, Any] = {"key": key, "exists": raw is not None}
        if raw is None:
            return info

        domain = domain_for_key(key)
        info["domain"] = domain.value if domain else None
        try:
            if domain is None:
                entry = decode_entry(raw)
            else:
                entry = decode_entry(raw, get_policy(domain).kind, schema_for(domain))
        except CacheSerializationError as e:
            info.update(valid=False, error=e.message, size=len(raw))
            return info

        now = self._clock()
        info.update(
            valid=True,
            kind=entry.kind.value,
            size=len(raw),
            cached_at=datetime.fromtimestamp(entry.cached_at, tz=timezone.utc).isoformat(),
            ttl=entry.ttl,
            age_seconds=round(entry.age(now), 1),
            ttl_remaining=round(entry.ttl_remaining(now), 1),
            stale=entry.is_stale(now, self.fresh_for(entry.ttl)),
            expired=entry.is_expired(now),
            value=entry.data,
        )
        return info

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _kv_allowed(self) -> bool:
        return self._enabled and self._breaker.allow_request()

    @staticmethod
    def _as_cache_error(exc: Exception, operation: str, **details) -> CacheKeyError:
        if isinstance(exc, CacheKeyError):
            return exc
        return CacheKeyError.from_exception(exc, message=f"KV {operation} failed: {exc}", **details)

    def _on_kv_failure(self, operation: str, exc: Exception, key: str) -> None:
        self._breaker.record_failure()
        self._metrics.record_kv_error(operation, type(exc).__name__)
        log_stage(
            logger,
            Stage.KV_READ if operation == "get" else Stage.WRITE_BACK if operation == "set" else Stage.INVALIDATION,
            f"KV {operation} failed",
            level="warning",
            cache_key=key,
            error=str(exc),
            error_type=type(exc).__name__,
        )

    def _record_get(self, domain: CacheDomain, key: str, hit: bool, start: float, size: int | None = None) -> None:
        elapsed_ms = (time.perf_counter() - start) * 1000
        self._monitor.record(
            MetricOperation.GET,
            key,
            hit,
            elapsed_ms,
            MetricSource.CACHE if hit else MetricSource.DATABASE,
            data_size=size,
        )
        if hit:
            self._metrics.record_cache_hit(CacheTier.REDIS.value, domain.value)
        else:
            self._metrics.record_cache_miss(CacheTier.REDIS.value, domain.value)

    async def _read_entry(
        self, domain: CacheDomain, key: str, timeout_ms: int | None
    ) -> CacheEntry | None:
        if not self._kv_allowed():
            self._metrics.record_cache_miss(CacheTier.REDIS.value, domain.value)
            return None

        timeout_s = (timeout_ms or self._read_timeout_ms) / 1000
        start = time.perf_counter()
        try:
            raw = await bounded_wait(self._kv.get(key), timeout_s, self._background, operation="kv.get")
        except Exception as e:
            self._on_kv_failure("get", e, key)
            self._record_get(domain, key, False, start)
            return None

        self._breaker.record_success()
        self._metrics.record_kv_duration("get", time.perf_counter() - start)

        if raw is None:
            self._record_get(domain, key, False, start)
            return None

        policy = get_policy(domain)
        try:
            entry = decode_entry(raw, policy.kind, schema_for(domain))
        except CacheSerializationError as e:
            log_stage(
                logger,
                Stage.KV_READ,
                "Discarding unreadable cache entry",
                level="warning",
                cache_key=key,
                error=e.message,
                **e.details,
            )
            self._metrics.record_error("CacheSerializationError", Stage.KV_READ.value)
            self._record_get(domain, key, False, start)
            return None

        if entry.is_expired(self._clock()):
            self._record_get(domain, key, False, start)
            return None

        self._record_get(domain, key, True, start, size=len(raw))
        return entry

    async def _fetch_origin(self, domain: CacheDomain, key: str, fetch: Fetch) -> Any:
        try:
            data = await fetch()
        except Exception:
            self._metrics.record_origin_fetch(domain.value, "failure")
            log_stage(logger, Stage.ORIGIN_FETCH, "Origin fetch failed", level="warning", cache_key=key)
            raise
        self._metrics.record_origin_fetch(domain.value, "success")
        log_stage(logger, Stage.ORIGIN_FETCH, "Served from origin", level="debug", cache_key=key)
        return data

    async def _write_entry(self, domain: CacheDomain, key: str, data: Any, ttl: int) -> bool:
        if not self._kv_allowed():
            return False
        return await self._store(key, data, ttl)

    async def _store(self, key: str, data: Any, ttl: int) -> bool:
        try:
            raw = encode_entry(data, ttl, self._clock())
        except CacheSerializationError as e:
            log_stage(logger, Stage.WRITE_BACK, "Value not cacheable", level="warning", cache_key=key, error=e.message)
            return False

        start = time.perf_counter()
        try:
            accepted = await self._kv.set(key, raw, ttl)
        except Exception as e:
            self._on_kv_failure("set", e, key)
            self._monitor.record(
                MetricOperation.SET, key, False, (time.perf_counter() - start) * 1000, MetricSource.CACHE
            )
            return False

        elapsed = time.perf_counter() - start
        self._breaker.record_success()
        self._metrics.record_kv_duration("set", elapsed)
        if accepted is False:
            self._monitor.record(MetricOperation.SET, key, False, elapsed * 1000, MetricSource.CACHE)
            log_stage(logger, Stage.WRITE_BACK, "Cache write refused", level="warning", cache_key=key)
            return False
        self._monitor.record(
            MetricOperation.SET, key, True, elapsed * 1000, MetricSource.CACHE, data_size=len(raw)
        )
        log_stage(logger, Stage.WRITE_BACK, "Cache entry written", level="debug", cache_key=key, ttl=ttl)
        return True

    async def _write_back(self, domain: CacheDomain, key: str, data: Any, ttl: int) -> None:
        # skipped while the circuit is open
        if not self._kv_allowed():
            return
        if not await self._store(key, data, ttl):
            self._metrics.record_background_failure("write_back")

    def _schedule_write(self, domain: CacheDomain, key: str, data: Any, ttl: int) -> None:
        """Fire-and-forget write-back, decoupled from the response path."""
        if not self._enabled:
            return
        self._background.spawn(self._write_back(domain, key, data, ttl), name=f"write-back:{key}")

    def _schedule_refresh(self, domain: CacheDomain, key: str, fetch: Fetch, ttl: int) -> None:
        """Start a background refresh unless one is already running for this key."""
        if key in self._refreshing:
            return
        self._refreshing.add(key)
        task = self._background.spawn(self._refresh(domain, key, fetch, ttl), name=f"refresh:{key}")
        if task is None:
            self._refreshing.discard(key)

    async def _refresh(self, domain: CacheDomain, key: str, fetch: Fetch, ttl: int) -> None:
        try:
            data = await fetch()
            if data is not None:
                await self._write_back(domain, key, data, ttl)
            log_stage(logger, Stage.BACKGROUND_REFRESH, "Stale entry refreshed", level="debug", cache_key=key)
        except Exception as e:
            self._metrics.record_background_failure("refresh")
            log_stage(
                logger,
                Stage.BACKGROUND_REFRESH,
                "Background refresh failed",
                level="warning",
                cache_key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            self._refreshing.discard(key)

    # -------------------------------------------------------------------------
    # Lifecycle and monitoring
    # -------------------------------------------------------------------------

    async def shutdown(self, timeout: float | None = None) -> None:
        """Drain write-backs and refreshes, cancelling what does not finish in time."""
        await self._background.shutdown(self._drain_timeout if timeout is None else timeout)
        logger.info("Cache manager shut down", stage="CACHE.SHUTDOWN")

    def stats(self) -> dict[str, Any]:
        """
        Cache layer statistics.

        Returns:
            Monitor aggregates plus circuit state and background backlog
        """
        return {
            **self._monitor.get_stats(),
            "caching_enabled": self._enabled,
            "circuit": self._breaker.stats(),
            "pending_background_tasks": self._background.pending,
            "refreshes_in_flight": len(self._refreshing),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Health of the cache layer.

        The layer is "degraded" rather than "unhealthy" when the KV store is
        down: requests still succeed from origin.
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "caching_enabled": self._enabled,
            "circuit": self._breaker.state.value,
            "kv": None,
        }

        checker = getattr(self._kv, "health_check", None)
        try:
            if checker is not None:
                kv_health = await checker()
            else:
                kv_health = {"status": "healthy" if await self._kv.ping() else "unhealthy"}
        except Exception as e:
            kv_health = {"status": "error", "error": str(e)}

        health["kv"] = kv_health
        if kv_health.get("status") != "healthy" or self._breaker.state.value != "closed":
            health["status"] = "degraded"
        return health

