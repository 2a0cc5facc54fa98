"""
Cache warming.

Pre-loads the KV store (and the micro-cache for option lists) from origin,
typically after a deploy or a bulk invalidation, so the first requests are
hits. Each domain is warmed independently; one failing origin does not stop
the others.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storefront_cache.core.config.constants import CacheDomain, Stage
from storefront_cache.core.logging.logger import get_logger, log_stage
from storefront_cache.infrastructure.cache.cache_manager import Fetch
from storefront_cache.infrastructure.cache.cache_service import OptionsCacheService

logger = get_logger(__name__)

WARMABLE_DOMAINS: tuple[CacheDomain, ...] = (
    CacheDomain.CATEGORY_OPTIONS,
    CacheDomain.CATEGORIES,
    CacheDomain.SIZE_OPTIONS,
    CacheDomain.AGE_OPTIONS,
    CacheDomain.GENDER_OPTIONS,
)


@dataclass
class WarmReport:
    warmed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self, preview: int = 50) -> dict[str, Any]:
        return {
            "success": True,
            "message": "Cache warming completed",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "warmed": len(self.warmed),
            "keys_preview": self.warmed[:preview],
            "errors": dict(self.errors),
        }


class CacheWarmer:
    """
    Warms every configured origin source.

    Args:
        options: Service writing both cache tiers
        sources: Origin fetchers keyed by domain; unconfigured domains are skipped
    """

    def __init__(self, options: OptionsCacheService, sources: Mapping[CacheDomain, Fetch]):
        self.options = options
        self.sources = {
            CacheDomain(domain): fetch for domain, fetch in sources.items() if fetch is not None
        }

    async def _warm_one(self, domain: CacheDomain, fetch: Fetch) -> str | None:
        return await self.options.warm(domain, fetch)

    async def warm(self, domains: tuple[CacheDomain, ...] = WARMABLE_DOMAINS) -> WarmReport:
        report = WarmReport()
        selected = [(d, self.sources[d]) for d in domains if d in self.sources]

        results = await asyncio.gather(
            *(self._warm_one(domain, fetch) for domain, fetch in selected),
            return_exceptions=True,
        )

        for (domain, _), result in zip(selected, results):
            if isinstance(result, Exception):
                report.errors[domain.value] = str(result) or type(result).__name__
            elif result is None:
                report.errors[domain.value] = "not written to cache"
            else:
                report.warmed.append(result)

        log_stage(
            logger,
            Stage.WARMING,
            "Cache warming completed",
            level="warning" if report.errors else "info",
            warmed=len(report.warmed),
            errors=report.errors,
        )
        return report
