#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
storefront cache layer. All configuration is centralized here so the key-value
client, the read-through cache, the micro-cache and the HTTP surface agree on
the same values.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms (reload_settings)
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the shared key-value store.

    STAGE-0.1: Redis connection configuration
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_SSL: bool = Field(default=False, description="Use TLS for the Redis connection")

    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_CONNECT_RETRIES: int = Field(default=3, description="Connection attempts before giving up")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Read-through cache configuration.

    STAGE-2: Cache timing configuration

    TTLs per domain live in constants (DEFAULT_TTLS); CACHE_TTL_OVERRIDES
    replaces individual entries by domain name, e.g. {"product": 900}.
    """

    ENABLE_CACHING: bool = Field(default=True, description="Master switch for the KV tier")
    CACHE_READ_TIMEOUT_MS: int = Field(default=300, description="Bounded wait for a KV read")
    CACHE_MICRO_TTL_MS: int = Field(default=120_000, description="Process-local option cache TTL")
    CACHE_FRESHNESS_RATIO: float = Field(
        default=0.5, description="Soft freshness threshold as a fraction of the entry TTL"
    )
    CACHE_TTL_OVERRIDES: dict[str, int] = Field(
        default_factory=dict, description="Per-domain TTL overrides in seconds"
    )
    CACHE_METRICS_MAX_ENTRIES: int = Field(default=1000, description="Metric ring buffer capacity")
    CACHE_METRICS_RECENT_LIMIT: int = Field(default=10, description="Recent operations in stats")
    CACHE_KEY_METRICS_RECENT_LIMIT: int = Field(default=20, description="Recent operations per key pattern")
    CACHE_REFRESH_DRAIN_TIMEOUT: float = Field(
        default=5.0, description="Seconds to wait for background cache work on shutdown"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CircuitBreakerSettings(BaseSettings):
    """
    Circuit breaker configuration for KV outages.

    STAGE-CB: Circuit breaker thresholds
    """

    CB_FAILURE_THRESHOLD: int = Field(default=5, description="Consecutive KV failures before opening")
    CB_RECOVERY_TIMEOUT: float = Field(default=30.0, description="Seconds before a probe is allowed")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="Storefront Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api", description="Prefix for every router")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")
    ENABLE_DEBUG_ROUTES: bool = Field(default=False, description="Mount the /debug operator routes")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from storefront_cache.core.config.settings import get_settings

        settings = get_settings()
        redis_host = settings.redis.REDIS_HOST
        read_timeout = settings.cache.CACHE_READ_TIMEOUT_MS
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_SSL: bool = Field(default=False, description="Use TLS for the Redis connection")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_CONNECT_RETRIES: int = Field(default=3, description="Connection attempts before giving up")

    # Cache settings
    ENABLE_CACHING: bool = Field(default=True, description="Master switch for the KV tier")
    CACHE_READ_TIMEOUT_MS: int = Field(default=300, description="Bounded wait for a KV read")
    CACHE_MICRO_TTL_MS: int = Field(default=120_000, description="Process-local option cache TTL")
    CACHE_FRESHNESS_RATIO: float = Field(
        default=0.5, description="Soft freshness threshold as a fraction of the entry TTL"
    )
    CACHE_TTL_OVERRIDES: dict[str, int] = Field(
        default_factory=dict, description="Per-domain TTL overrides in seconds"
    )
    CACHE_METRICS_MAX_ENTRIES: int = Field(default=1000, description="Metric ring buffer capacity")
    CACHE_METRICS_RECENT_LIMIT: int = Field(default=10, description="Recent operations in stats")
    CACHE_KEY_METRICS_RECENT_LIMIT: int = Field(default=20, description="Recent operations per key pattern")
    CACHE_REFRESH_DRAIN_TIMEOUT: float = Field(
        default=5.0, description="Seconds to wait for background cache work on shutdown"
    )

    # Circuit Breaker settings
    CB_FAILURE_THRESHOLD: int = Field(default=5, description="Consecutive KV failures before opening")
    CB_RECOVERY_TIMEOUT: float = Field(default=30.0, description="Seconds before a probe is allowed")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="Storefront Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api", description="Prefix for every router")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")
    ENABLE_DEBUG_ROUTES: bool | None = Field(
        default=None,
        description="Mount the /debug operator routes; unset means development and test only",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("CACHE_FRESHNESS_RATIO")
    @classmethod
    def validate_freshness_ratio(cls, v):
        """The soft threshold must fall strictly inside the TTL."""
        if not 0 < v < 1:
            raise ValueError("CACHE_FRESHNESS_RATIO must be between 0 and 1 (exclusive)")
        return v

    @model_validator(mode="after")
    def validate_positive_limits(self):
        """Reject limits that would disable the bounded wait or the ring buffer."""
        if self.CACHE_READ_TIMEOUT_MS <= 0:
            raise ValueError("CACHE_READ_TIMEOUT_MS must be positive")
        if self.CACHE_METRICS_MAX_ENTRIES <= 0:
            raise ValueError("CACHE_METRICS_MAX_ENTRIES must be positive")
        return self

    # Nested configuration views
    @property
    def redis(self) -> 'RedisSettings':
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_SSL=self.REDIS_SSL,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_CONNECT_RETRIES=self.REDIS_CONNECT_RETRIES,
        )

    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            ENABLE_CACHING=self.ENABLE_CACHING,
            CACHE_READ_TIMEOUT_MS=self.CACHE_READ_TIMEOUT_MS,
            CACHE_MICRO_TTL_MS=self.CACHE_MICRO_TTL_MS,
            CACHE_FRESHNESS_RATIO=self.CACHE_FRESHNESS_RATIO,
            CACHE_TTL_OVERRIDES=self.CACHE_TTL_OVERRIDES,
            CACHE_METRICS_MAX_ENTRIES=self.CACHE_METRICS_MAX_ENTRIES,
            CACHE_METRICS_RECENT_LIMIT=self.CACHE_METRICS_RECENT_LIMIT,
            CACHE_KEY_METRICS_RECENT_LIMIT=self.CACHE_KEY_METRICS_RECENT_LIMIT,
            CACHE_REFRESH_DRAIN_TIMEOUT=self.CACHE_REFRESH_DRAIN_TIMEOUT,
        )

    @property
    def circuit_breaker(self) -> 'CircuitBreakerSettings':
        """Get circuit breaker settings."""
        return CircuitBreakerSettings(
            CB_FAILURE_THRESHOLD=self.CB_FAILURE_THRESHOLD,
            CB_RECOVERY_TIMEOUT=self.CB_RECOVERY_TIMEOUT,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def debug_routes_enabled(self) -> bool:
        if self.ENABLE_DEBUG_ROUTES is not None:
            return self.ENABLE_DEBUG_ROUTES
        return self.ENVIRONMENT in ("development", "test")

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            DEBUG=self.DEBUG,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            API_BASE_PATH=self.API_BASE_PATH,
            CORS_ORIGINS=self.CORS_ORIGINS,
            ENABLE_DEBUG_ROUTES=self.debug_routes_enabled,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
