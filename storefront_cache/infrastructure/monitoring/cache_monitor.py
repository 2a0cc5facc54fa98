"""
Cache Monitor

In-memory record of recent cache operations for operator inspection through
the /debug/metrics endpoints. Observability only: nothing here affects what a
read returns.

The buffer is bounded: once it holds ``max_entries`` records, each new record
evicts the oldest one.
"""

import time
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storefront_cache.core.config.constants import (
    METRICS_WINDOW_DAY,
    METRICS_WINDOW_HOUR,
    MetricOperation,
    MetricSource,
)
from storefront_cache.core.config.settings import get_settings
from storefront_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MetricRecord:
    operation: MetricOperation
    key: str
    hit: bool
    response_time_ms: float
    source: MetricSource
    timestamp: float = field(default_factory=time.time)
    data_size: int | None = None

    def to_dict(self) -> dict[str, Any]:
        record = {
            "operation": self.operation.value,
            "key": self.key,
            "hit": self.hit,
            "response_time_ms": round(self.response_time_ms, 2),
            "source": self.source.value,
            "timestamp": datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat(),
        }
        if self.data_size is not None:
            record["data_size"] = self.data_size
        return record


def _hit_rate(records: Iterable[MetricRecord]) -> float:
    records = list(records)
    if not records:
        return 0.0
    hits = sum(1 for record in records if record.hit)
    return round(hits / len(records) * 100, 2)


class CacheMonitor:
    """
    Bounded ring buffer of MetricRecord.

    Args:
        max_entries: Buffer capacity (defaults to CACHE_METRICS_MAX_ENTRIES)
        clock: Returns the current time in seconds, used for the
            last-hour and last-24h windows
    """

    def __init__(self, max_entries: int | None = None, clock: Callable[[], float] = time.time):
        settings = get_settings().cache
        self.max_entries = max_entries or settings.CACHE_METRICS_MAX_ENTRIES
        self._recent_limit = settings.CACHE_METRICS_RECENT_LIMIT
        self._key_recent_limit = settings.CACHE_KEY_METRICS_RECENT_LIMIT
        self._clock = clock
        self._records: deque[MetricRecord] = deque(maxlen=self.max_entries)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[MetricRecord]:
        return list(self._records)

    def record_metric(self, record: MetricRecord) -> None:
        """Append a record; the oldest one drops silently at capacity."""
        self._records.append(record)

    def record(
        self,
        operation: MetricOperation,
        key: str,
        hit: bool,
        response_time_ms: float,
        source: MetricSource,
        data_size: int | None = None,
    ) -> None:
        """Build and append a record stamped with the monitor's clock."""
        self.record_metric(
            MetricRecord(
                operation=operation,
                key=key,
                hit=hit,
                response_time_ms=response_time_ms,
                source=source,
                timestamp=self._clock(),
                data_size=data_size,
            )
        )

    def get_stats(self) -> dict[str, Any]:
        """
        Aggregate statistics over the buffer.

        Hit rates are percentages over every operation in the window,
        rounded to two decimals. The average response time covers the whole
        buffer.
        """
        now = self._clock()
        records = list(self._records)
        last_day = [r for r in records if now - r.timestamp < METRICS_WINDOW_DAY]
        last_hour = [r for r in last_day if now - r.timestamp < METRICS_WINDOW_HOUR]

        avg_response = (
            sum(r.response_time_ms for r in records) / len(records) if records else 0.0
        )

        return {
            "total_operations": len(records),
            "last_24h_operations": len(last_day),
            "last_hour_operations": len(last_hour),
            "hit_rate_24h": _hit_rate(last_day),
            "hit_rate_hour": _hit_rate(last_hour),
            "avg_response_time_ms": round(avg_response, 2),
            "recent_operations": [r.to_dict() for r in records[-self._recent_limit:]],
        }

    def get_key_metrics(self, pattern: str) -> dict[str, Any]:
        """Statistics for records whose key contains ``pattern``."""
        matching = [r for r in self._records if pattern in r.key]
        return {
            "key_pattern": pattern,
            "operations": len(matching),
            "hit_rate": _hit_rate(matching),
            "operations_list": [r.to_dict() for r in matching[-self._key_recent_limit:]],
        }

    def clear_metrics(self) -> int:
        """Empty the buffer. Returns how many records were dropped."""
        cleared = len(self._records)
        self._records.clear()
        logger.info("Cache metrics cleared", stage="M.CLEAR", cleared=cleared)
        return cleared


# Global monitor
_monitor: CacheMonitor | None = None


def get_cache_monitor() -> CacheMonitor:
    """Get the process-wide cache monitor."""
    global _monitor
    if _monitor is None:
        _monitor = CacheMonitor()
    return _monitor


def reset_cache_monitor() -> None:
    global _monitor
    _monitor = None
