"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across the
storefront cache layer: cache domains and their key prefixes, default TTLs,
cache outcome vocabularies and HTTP header names.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for key prefixes and TTLs
- Type-safe enums for cache outcomes and circuit state
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Cache processing stages used as the ``stage`` field of log events.

    Stages read top to bottom in the order a read-through request visits them.
    """

    MICRO_CACHE_LOOKUP = "CACHE.0_MICRO_CACHE_LOOKUP"
    KV_READ = "CACHE.1_KV_READ"
    ORIGIN_FETCH = "CACHE.2_ORIGIN_FETCH"
    WRITE_BACK = "CACHE.3_WRITE_BACK"
    BACKGROUND_REFRESH = "CACHE.4_BACKGROUND_REFRESH"
    INVALIDATION = "CACHE.5_INVALIDATION"
    WARMING = "CACHE.6_WARMING"

    CIRCUIT_BREAKER = "CB_CIRCUIT_BREAKER"
    BACKGROUND_TASK = "BG_BACKGROUND_TASK"
    METRICS = "M_METRICS_COLLECTION"


# ============================================================================
# Circuit Breaker States
# ============================================================================


class CircuitState(str, Enum):
    """
    Circuit breaker states.

    CLOSED: Normal operation, KV calls allowed
    OPEN: KV skipped, reads are misses and write-backs are dropped
    HALF_OPEN: One probe call allowed to test recovery
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# ============================================================================
# Cache Tiers and Outcomes
# ============================================================================


class CacheTier(str, Enum):
    """
    Cache tiers, used as the Prometheus ``tier`` label.

    MEMORY: Process-local micro-cache
    REDIS: Shared key-value store
    """

    MEMORY = "memory"
    REDIS = "redis"


class CacheStatus(str, Enum):
    """Value of the X-Cache-Status response header."""

    HIT = "HIT"
    MISS = "MISS"
    STALE = "STALE"


class DataSource(str, Enum):
    """Value of the X-Data-Source response header."""

    MEMORY_CACHE = "MEMORY_CACHE"
    REDIS_CACHE = "REDIS_CACHE"
    DATABASE = "SUPABASE_DATABASE"


class MetricOperation(str, Enum):
    """Operation recorded in the cache monitor."""

    GET = "GET"
    SET = "SET"
    DELETE = "DELETE"


class MetricSource(str, Enum):
    """Where the value of a recorded operation came from."""

    CACHE = "CACHE"
    DATABASE = "DATABASE"


class PayloadKind(str, Enum):
    """
    Shape tag stored with every cache entry.

    ANY is only used by domains whose payload shape is not fixed; entries are
    always written with a concrete kind.
    """

    LIST = "list"
    OBJECT = "object"
    SCALAR = "scalar"
    ANY = "any"


# ============================================================================
# Cache Domains
# ============================================================================


class CacheDomain(str, Enum):
    """
    Every family of cached values.

    The value is the domain name used in CACHE_TTL_OVERRIDES and in logs.
    """

    PROFILE = "profile"
    ADDRESSES = "addresses"
    WISHLIST = "wishlist"
    CART = "cart"
    ORDERS = "orders"
    ORDER_DETAILS = "order_details"
    PRODUCT = "product"
    PRODUCT_LIST = "product_list"
    SEARCH_SUGGESTIONS = "search_suggestions"
    RATINGS = "ratings"
    CATEGORIES = "categories"
    CATEGORY_OPTIONS = "category_options"
    SIZE_OPTIONS = "size_options"
    AGE_OPTIONS = "age_options"
    GENDER_OPTIONS = "gender_options"


# ============================================================================
# Redis Key Prefixes
# ============================================================================

REDIS_KEY_USER_PROFILE = "user:profile"
REDIS_KEY_USER_ADDRESSES = "user:addresses"
REDIS_KEY_USER_WISHLIST = "user:wishlist"
REDIS_KEY_USER_ORDERS = "user:orders"
REDIS_KEY_USER_ORDER = "user:order"
REDIS_KEY_CART = "cart"
REDIS_KEY_PRODUCT = "product"
REDIS_KEY_PRODUCT_LIST = "products:list"
REDIS_KEY_SEARCH_SUGGESTIONS = "search:suggestions"
REDIS_KEY_RATINGS = "ratings"
REDIS_KEY_CATEGORIES = "categories:list"
REDIS_KEY_CATEGORY_OPTIONS = "categories:options"
REDIS_KEY_SIZE_OPTIONS = "sizes:options"
REDIS_KEY_AGE_OPTIONS = "ages:options"
REDIS_KEY_GENDER_OPTIONS = "genders:options"

KEY_SEPARATOR = ":"

# Qualifiers
ORDERS_LIST_QUALIFIER = "list"
ORDERS_DEFAULT_FILTER = "default"
RATINGS_ALL_QUALIFIER = "all"
RATINGS_PRODUCT_QUALIFIER = "product"
DEFAULT_PRODUCT_LIST_LIMIT = 100

# ============================================================================
# Default TTLs (seconds)
# ============================================================================

TTL_OPTIONS = 7200  # Size, age, gender and category option lists
TTL_PRODUCT = 1800
TTL_PRODUCT_LIST = 1800
TTL_CATEGORIES = 3600
TTL_SEARCH_SUGGESTIONS = 300
TTL_RATINGS = 900
TTL_PROFILE = 3600
TTL_ADDRESSES = 1800
TTL_WISHLIST = 1800
TTL_CART = 7200
TTL_ORDERS = 900
TTL_ORDER_DETAILS = 600

# Search
SEARCH_MIN_QUERY_LENGTH = 2

# Monitoring windows (seconds)
METRICS_WINDOW_HOUR = 3600
METRICS_WINDOW_DAY = 86400

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_CACHE_STATUS = "X-Cache-Status"
HEADER_DATA_SOURCE = "X-Data-Source"
HEADER_CACHE_CONTROL = "Cache-Control"

# Edge caching for reference-data responses
OPTIONS_CACHE_CONTROL = "public, s-maxage=120, stale-while-revalidate=600"
