"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import pytest
from pydantic import ValidationError

from storefront_cache.core.config.settings import Settings, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsDefaults:
    """Default values of the cache layer."""

    def test_read_timeout_defaults_to_300ms(self):
        settings = Settings()
        assert settings.cache.CACHE_READ_TIMEOUT_MS == 300

    def test_micro_cache_ttl_defaults_to_two_minutes(self):
        settings = Settings()
        assert settings.cache.CACHE_MICRO_TTL_MS == 120_000

    def test_freshness_ratio_defaults_to_half(self):
        settings = Settings()
        assert settings.cache.CACHE_FRESHNESS_RATIO == 0.5

    def test_metrics_buffer_defaults_to_1000(self):
        settings = Settings()
        assert settings.cache.CACHE_METRICS_MAX_ENTRIES == 1000

    def test_nested_views_mirror_root_values(self):
        settings = Settings()

        assert settings.redis.REDIS_HOST == settings.REDIS_HOST
        assert settings.circuit_breaker.CB_FAILURE_THRESHOLD == settings.CB_FAILURE_THRESHOLD
        assert settings.app.API_BASE_PATH == "/api"
        assert settings.logging.LOG_FORMAT in ("json", "console")


@pytest.mark.unit
class TestSettingsFromEnvironment:
    """Environment overrides and validation."""

    def test_env_overrides_read_timeout(self, monkeypatch):
        monkeypatch.setenv("CACHE_READ_TIMEOUT_MS", "150")
        assert reload_settings().cache.CACHE_READ_TIMEOUT_MS == 150

    def test_ttl_overrides_parse_from_json(self, monkeypatch):
        monkeypatch.setenv("CACHE_TTL_OVERRIDES", '{"product": 900}')
        assert reload_settings().cache.CACHE_TTL_OVERRIDES == {"product": 900}

    def test_log_level_is_upper_cased(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert reload_settings().LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_is_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        with pytest.raises(ValidationError):
            Settings()

    @pytest.mark.parametrize("ratio", ["0", "1", "1.5"])
    def test_freshness_ratio_must_be_inside_ttl(self, monkeypatch, ratio):
        monkeypatch.setenv("CACHE_FRESHNESS_RATIO", ratio)
        with pytest.raises(ValidationError):
            Settings()

    def test_non_positive_read_timeout_is_rejected(self, monkeypatch):
        monkeypatch.setenv("CACHE_READ_TIMEOUT_MS", "0")
        with pytest.raises(ValidationError):
            Settings()


@pytest.mark.unit
class TestSettingsSingleton:
    def test_get_settings_returns_same_instance(self):
        assert get_settings() is get_settings()

    def test_reload_settings_replaces_instance(self):
        first = get_settings()
        assert reload_settings() is not first
