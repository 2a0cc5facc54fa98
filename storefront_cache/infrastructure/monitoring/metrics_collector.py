#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

Process-level counters for the cache layer, exported in Prometheus text
format at /admin/metrics:
- Cache hits and misses by tier (memory, redis)
- Origin fetches and their failures by domain
- KV operation latency and errors by operation
- Background write-back and refresh failures
- KV circuit breaker state

Architectural Decision: prometheus-client for industry-standard metrics
- Compatible with Grafana dashboards
- Histogram buckets for latency percentiles
"""


from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from storefront_cache.core.config.settings import get_settings
from storefront_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

# Cache metrics
CACHE_HITS = Counter(
    'storefront_cache_hits_total',
    'Total cache hits',
    ['tier', 'domain']
)

CACHE_MISSES = Counter(
    'storefront_cache_misses_total',
    'Total cache misses',
    ['tier', 'domain']
)

CACHE_STALE_SERVED = Counter(
    'storefront_cache_stale_served_total',
    'Stale entries served while a refresh runs in the background',
    ['domain']
)

# Origin metrics
ORIGIN_FETCHES = Counter(
    'storefront_cache_origin_fetches_total',
    'Origin fetches by outcome',
    ['domain', 'status']
)

# KV metrics
KV_OPERATION_DURATION = Histogram(
    'storefront_cache_kv_operation_seconds',
    'KV operation latency in seconds',
    ['operation'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0)
)

KV_ERRORS = Counter(
    'storefront_cache_kv_errors_total',
    'KV operation failures by operation and error type',
    ['operation', 'error_type']
)

BACKGROUND_FAILURES = Counter(
    'storefront_cache_background_failures_total',
    'Write-back and refresh failures that were logged and dropped',
    ['kind']
)

# Circuit breaker metrics
CIRCUIT_BREAKER_STATE = Gauge(
    'storefront_cache_circuit_breaker_state',
    'Circuit breaker state (0=closed, 1=half_open, 2=open)',
    ['name']
)

# Error metrics
ERRORS = Counter(
    'storefront_cache_errors_total',
    'Total errors by type',
    ['error_type', 'stage']
)

# App info
APP_INFO = Info(
    'storefront_cache_app',
    'Application information'
)


class MetricsCollector:
    """
    Centralized metrics collector.

    STAGE-M: Metrics collection

    Usage:
        metrics = get_metrics_collector()
        metrics.record_cache_hit("redis", "product")
        output = metrics.get_prometheus_metrics()
    """

    def __init__(self):
        """Initialize metrics collector."""
        self.settings = get_settings()

        APP_INFO.info({
            'version': self.settings.app.APP_VERSION,
            'environment': self.settings.app.ENVIRONMENT,
            'app_name': self.settings.app.APP_NAME
        })

        logger.info("Metrics collector initialized", stage="M.0")

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_hit(self, tier: str, domain: str) -> None:
        """Record cache hit."""
        CACHE_HITS.labels(tier=tier, domain=domain).inc()

    def record_cache_miss(self, tier: str, domain: str) -> None:
        """Record cache miss."""
        CACHE_MISSES.labels(tier=tier, domain=domain).inc()

    def record_stale_served(self, domain: str) -> None:
        CACHE_STALE_SERVED.labels(domain=domain).inc()

    def record_origin_fetch(self, domain: str, status: str) -> None:
        """Record an origin fetch ('success' or 'failure')."""
        ORIGIN_FETCHES.labels(domain=domain, status=status).inc()

    # =========================================================================
    # KV Metrics
    # =========================================================================

    def record_kv_duration(self, operation: str, duration_seconds: float) -> None:
        KV_OPERATION_DURATION.labels(operation=operation).observe(duration_seconds)

    def record_kv_error(self, operation: str, error_type: str) -> None:
        KV_ERRORS.labels(operation=operation, error_type=error_type).inc()

    def record_background_failure(self, kind: str) -> None:
        """Record a dropped write-back ('write_back') or refresh ('refresh')."""
        BACKGROUND_FAILURES.labels(kind=kind).inc()

    # =========================================================================
    # Circuit Breaker Metrics
    # =========================================================================

    def set_circuit_state(self, name: str, state: str) -> None:
        """Set circuit breaker state."""
        state_value = {"closed": 0, "half_open": 1, "open": 2}.get(state, 0)
        CIRCUIT_BREAKER_STATE.labels(name=name).set(state_value)

    # =========================================================================
    # Error Metrics
    # =========================================================================

    def record_error(self, error_type: str, stage: str) -> None:
        """Record error."""
        ERRORS.labels(error_type=error_type, stage=stage).inc()

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """
        Get Prometheus metrics output.

        Returns:
            bytes: Prometheus text format metrics
        """
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


# Global metrics collector
_metrics: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
