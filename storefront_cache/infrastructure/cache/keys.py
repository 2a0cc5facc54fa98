"""
Cache key construction.

A key is ``prefix[:scope][:qualifier]``. Construction is deterministic and
free-text qualifiers (search queries) are trimmed and lower-cased, so
``"  Soft Toys "`` and ``"soft toys"`` address the same entry.
"""

from dataclasses import dataclass

from storefront_cache.core.config.constants import (
    KEY_SEPARATOR,
    REDIS_KEY_AGE_OPTIONS,
    REDIS_KEY_CART,
    REDIS_KEY_CATEGORIES,
    REDIS_KEY_CATEGORY_OPTIONS,
    REDIS_KEY_GENDER_OPTIONS,
    REDIS_KEY_PRODUCT,
    REDIS_KEY_PRODUCT_LIST,
    REDIS_KEY_RATINGS,
    REDIS_KEY_SEARCH_SUGGESTIONS,
    REDIS_KEY_SIZE_OPTIONS,
    REDIS_KEY_USER_ADDRESSES,
    REDIS_KEY_USER_ORDER,
    REDIS_KEY_USER_ORDERS,
    REDIS_KEY_USER_PROFILE,
    REDIS_KEY_USER_WISHLIST,
    TTL_ADDRESSES,
    TTL_CART,
    TTL_CATEGORIES,
    TTL_OPTIONS,
    TTL_ORDER_DETAILS,
    TTL_ORDERS,
    TTL_PRODUCT,
    TTL_PRODUCT_LIST,
    TTL_PROFILE,
    TTL_RATINGS,
    TTL_SEARCH_SUGGESTIONS,
    TTL_WISHLIST,
    CacheDomain,
    PayloadKind,
)
from storefront_cache.core.exceptions import CacheKeyError


@dataclass(frozen=True)
class DomainPolicy:
    """How one cache domain is keyed, expired and shape-checked."""

    prefix: str
    ttl: int
    kind: PayloadKind
    user_scoped: bool = False
    free_text_qualifier: bool = False


DOMAIN_POLICIES: dict[CacheDomain, DomainPolicy] = {
    CacheDomain.PROFILE: DomainPolicy(REDIS_KEY_USER_PROFILE, TTL_PROFILE, PayloadKind.OBJECT, user_scoped=True),
    CacheDomain.ADDRESSES: DomainPolicy(REDIS_KEY_USER_ADDRESSES, TTL_ADDRESSES, PayloadKind.LIST, user_scoped=True),
    CacheDomain.WISHLIST: DomainPolicy(REDIS_KEY_USER_WISHLIST, TTL_WISHLIST, PayloadKind.LIST, user_scoped=True),
    CacheDomain.CART: DomainPolicy(REDIS_KEY_CART, TTL_CART, PayloadKind.ANY, user_scoped=True),
    CacheDomain.ORDERS: DomainPolicy(REDIS_KEY_USER_ORDERS, TTL_ORDERS, PayloadKind.LIST, user_scoped=True),
    CacheDomain.ORDER_DETAILS: DomainPolicy(
        REDIS_KEY_USER_ORDER, TTL_ORDER_DETAILS, PayloadKind.OBJECT, user_scoped=True
    ),
    CacheDomain.PRODUCT: DomainPolicy(REDIS_KEY_PRODUCT, TTL_PRODUCT, PayloadKind.OBJECT),
    CacheDomain.PRODUCT_LIST: DomainPolicy(REDIS_KEY_PRODUCT_LIST, TTL_PRODUCT_LIST, PayloadKind.LIST),
    CacheDomain.SEARCH_SUGGESTIONS: DomainPolicy(
        REDIS_KEY_SEARCH_SUGGESTIONS, TTL_SEARCH_SUGGESTIONS, PayloadKind.OBJECT, free_text_qualifier=True
    ),
    CacheDomain.RATINGS: DomainPolicy(REDIS_KEY_RATINGS, TTL_RATINGS, PayloadKind.ANY),
    CacheDomain.CATEGORIES: DomainPolicy(REDIS_KEY_CATEGORIES, TTL_CATEGORIES, PayloadKind.LIST),
    CacheDomain.CATEGORY_OPTIONS: DomainPolicy(REDIS_KEY_CATEGORY_OPTIONS, TTL_OPTIONS, PayloadKind.LIST),
    CacheDomain.SIZE_OPTIONS: DomainPolicy(REDIS_KEY_SIZE_OPTIONS, TTL_OPTIONS, PayloadKind.LIST),
    CacheDomain.AGE_OPTIONS: DomainPolicy(REDIS_KEY_AGE_OPTIONS, TTL_OPTIONS, PayloadKind.LIST),
    CacheDomain.GENDER_OPTIONS: DomainPolicy(REDIS_KEY_GENDER_OPTIONS, TTL_OPTIONS, PayloadKind.LIST),
}

USER_DOMAINS: tuple[CacheDomain, ...] = tuple(
    domain for domain, policy in DOMAIN_POLICIES.items() if policy.user_scoped
)


def get_policy(domain: CacheDomain) -> DomainPolicy:
    return DOMAIN_POLICIES[CacheDomain(domain)]


def normalize_free_text(value: str) -> str:
    """Trim and lower-case a free-text qualifier."""
    return value.strip().lower()


def _part(value: object) -> str:
    return str(value).strip() if value is not None else ""


_GLOB_CHARS = "*?["


def is_glob(pattern: str) -> bool:
    return any(ch in pattern for ch in _GLOB_CHARS)


def escape_glob(value: str) -> str:
    """
    Make a literal safe to embed in a glob pattern.

    Bracket form (``[*]``) is understood by both Redis MATCH and fnmatch.
    """
    return "".join(f"[{ch}]" if ch in _GLOB_CHARS else ch for ch in value)


def build_cache_key(
    domain: CacheDomain,
    scope: str | int | None = None,
    qualifier: str | int | None = None,
) -> str:
    """
    Build the deterministic key for a (domain, scope, qualifier) triple.

    Empty scope or qualifier parts are omitted.

    Raises:
        CacheKeyError: If a user-scoped domain is given no scope

    Example:
        >>> build_cache_key(CacheDomain.ORDERS, 42, "list:default")
        'user:orders:42:list:default'
        >>> build_cache_key(CacheDomain.SEARCH_SUGGESTIONS, qualifier="  Soft Toys ")
        'search:suggestions:soft toys'
    """
    policy = get_policy(domain)
    scope_part = _part(scope)
    if policy.user_scoped and not scope_part:
        raise CacheKeyError(
            message=f"Cache domain '{CacheDomain(domain).value}' requires a user scope",
            details={"domain": CacheDomain(domain).value},
        )

    if qualifier is not None and policy.free_text_qualifier:
        qualifier_part = normalize_free_text(str(qualifier))
    else:
        qualifier_part = _part(qualifier)

    parts = [policy.prefix]
    if scope_part:
        parts.append(scope_part)
    if qualifier_part:
        parts.append(qualifier_part)
    return KEY_SEPARATOR.join(parts)


def domain_patterns(domain: CacheDomain, scope: str | int | None = None) -> list[str]:
    """
    Glob patterns covering every key of a domain, optionally for one scope.

    Both the bare key and its qualified children are covered:
    ``user:orders:42`` and ``user:orders:42:*``.
    """
    base = get_policy(domain).prefix
    scope_part = _part(scope)
    if scope_part:
        base = f"{base}{KEY_SEPARATOR}{escape_glob(scope_part)}"
    return [base, f"{base}{KEY_SEPARATOR}*"]


def user_key_patterns(user_id: str | int) -> list[str]:
    """Glob patterns covering every user-scoped key of one user."""
    if not _part(user_id):
        raise CacheKeyError(message="A user id is required", details={"user_id": user_id})
    patterns: list[str] = []
    for domain in USER_DOMAINS:
        patterns.extend(domain_patterns(domain, user_id))
    return patterns


def domain_for_key(key: str) -> CacheDomain | None:
    """
    Resolve the domain owning a concrete key (longest prefix wins).

    Used by operator tooling that starts from a raw key.
    """
    best: tuple[int, CacheDomain] | None = None
    for domain, policy in DOMAIN_POLICIES.items():
        prefix = policy.prefix
        if key == prefix or key.startswith(prefix + KEY_SEPARATOR):
            if best is None or len(prefix) > best[0]:
                best = (len(prefix), domain)
    return best[1] if best else None
