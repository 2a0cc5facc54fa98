"""
Monitoring Module

Prometheus counters for the cache layer and the in-memory cache monitor
behind the /debug/metrics endpoints.
"""

from .cache_monitor import CacheMonitor, MetricRecord, get_cache_monitor, reset_cache_monitor
from .metrics_collector import MetricsCollector, get_metrics_collector

__all__ = [
    "CacheMonitor",
    "MetricRecord",
    "get_cache_monitor",
    "reset_cache_monitor",
    "MetricsCollector",
    "get_metrics_collector",
]
