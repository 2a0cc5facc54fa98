"""
Admin Routes - Educational Documentation
=========================================

WHAT ARE ADMIN ENDPOINTS?
--------------------------
Operational endpoints for monitoring the cache layer:

1. Metrics: Prometheus counters (hits and misses by tier, KV latency,
   background failures, circuit state)
2. Statistics: the cache manager's view (monitor aggregates, circuit,
   background backlog)

PROMETHEUS METRICS:
-------------------
Prometheus scrapes /admin/metrics (pull model). Format:
    # HELP metric_name Description of the metric
    # TYPE metric_name counter
    metric_name{label="value"} 123.45

SECURITY CONSIDERATIONS:
------------------------
In production, admin endpoints should be exposed on an internal network
only.
"""

import structlog
from fastapi import APIRouter, Response, status

from storefront_cache.application.api.dependencies import CacheManagerDep
from storefront_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/metrics", status_code=status.HTTP_200_OK)
async def prometheus_metrics():
    """
    Export Prometheus metrics in text exposition format.

    Returns:
        Response: text/plain Prometheus payload
    """
    metrics = get_metrics_collector()
    return Response(content=metrics.get_prometheus_metrics(), media_type=metrics.get_content_type())


@router.get("/cache-stats", status_code=status.HTTP_200_OK)
async def cache_statistics(cache: CacheManagerDep):
    """
    Cache layer statistics.

    Returns:
        dict: Monitor aggregates, circuit breaker state, pending background work
    """
    stats = cache.stats()
    logger.debug("cache_stats_served", total_operations=stats["total_operations"])
    return stats
