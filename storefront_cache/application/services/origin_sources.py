"""
Origin Sources - Educational Documentation
==========================================

WHAT IS AN ORIGIN SOURCE?
-------------------------
The origin is the relational store the cache protects. This service never
talks to it directly: every cached endpoint is given a zero-argument async
callable that returns fresh data ("fetch"). The callable is the only seam
between the cache layer and the origin.

WHY CALLABLES AND NOT A CLIENT?
-------------------------------
- The cache layer stays independent of the origin's client library
- Tests inject plain coroutines returning fixtures
- Errors raised by a fetch propagate unchanged to the route, which decides
  the HTTP status (500 "Failed to retrieve ... options")

UNCONFIGURED SOURCES:
---------------------
A route whose fetch was never wired in answers 503 through
DataSourceNotConfiguredError instead of failing with an AttributeError.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, fields
from typing import Any

from storefront_cache.core.config.constants import CacheDomain
from storefront_cache.core.exceptions import DataSourceNotConfiguredError

OriginFetch = Callable[[], Awaitable[Any]]


@dataclass
class OriginSources:
    """Origin fetchers for the reference-data endpoints."""

    sizes: OriginFetch | None = None
    ages: OriginFetch | None = None
    genders: OriginFetch | None = None
    category_options: OriginFetch | None = None
    categories: OriginFetch | None = None

    _DOMAINS = {
        CacheDomain.SIZE_OPTIONS: "sizes",
        CacheDomain.AGE_OPTIONS: "ages",
        CacheDomain.GENDER_OPTIONS: "genders",
        CacheDomain.CATEGORY_OPTIONS: "category_options",
        CacheDomain.CATEGORIES: "categories",
    }

    def fetcher_for(self, domain: CacheDomain) -> OriginFetch:
        """
        Fetch callable for a domain.

        Raises:
            DataSourceNotConfiguredError: If none is registered
        """
        name = self._DOMAINS.get(CacheDomain(domain))
        fetch = getattr(self, name) if name else None
        if fetch is None:
            raise DataSourceNotConfiguredError(
                message=f"No origin source configured for {CacheDomain(domain).value}",
                details={"domain": CacheDomain(domain).value},
            )
        return fetch

    def configured(self) -> dict[CacheDomain, OriginFetch]:
        """Every registered fetcher keyed by its cache domain."""
        by_name = {f.name: getattr(self, f.name) for f in fields(self)}
        return {
            domain: by_name[name]
            for domain, name in self._DOMAINS.items()
            if by_name.get(name) is not None
        }
