"""Tests for the central configuration loader (techtrend/config.py)."""

import pytest

from techtrend.config import (
    CacheSettings,
    Settings,
    _apply_dict,
    _apply_env_overrides,
    _load_yaml,
    get_settings,
    reset_settings,
)


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    """Reset the singleton and strip env overrides around each test."""
    monkeypatch.delenv("REDIS_URL", raising=False)
    for key in list(CacheSettings().__dict__):
        monkeypatch.delenv(f"TECHTREND_CACHE_{key.upper()}", raising=False)
    reset_settings()
    yield
    reset_settings()


# ── YAML loading ────────────────────────────────────────


class TestLoadYaml:
    def test_loads_valid_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("cache:\n  user_ttl_seconds: 120\n")
        assert _load_yaml(f) == {"cache": {"user_ttl_seconds": 120}}

    def test_missing_file(self, tmp_path):
        assert _load_yaml(tmp_path / "nope.yaml") == {}

    def test_non_mapping(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("- a\n- b\n")
        assert _load_yaml(f) == {}


class TestApplyDict:
    def test_sets_known_keys(self):
        section = CacheSettings()
        _apply_dict(section, {"public_ttl_seconds": 10})
        assert section.public_ttl_seconds == 10

    def test_ignores_unknown_keys(self):
        section = CacheSettings()
        _apply_dict(section, {"bogus": 1})
        assert not hasattr(section, "bogus")


class TestEnvOverrides:
    def test_int_override(self, monkeypatch):
        monkeypatch.setenv("TECHTREND_CACHE_USER_TTL_SECONDS", "60")
        settings = Settings()
        _apply_env_overrides(settings)
        assert settings.cache.user_ttl_seconds == 60

    def test_bool_override(self, monkeypatch):
        monkeypatch.setenv("TECHTREND_CACHE_SINGLE_FLIGHT", "true")
        settings = Settings()
        _apply_env_overrides(settings)
        assert settings.cache.single_flight is True

    def test_invalid_override_is_ignored(self, monkeypatch):
        monkeypatch.setenv("TECHTREND_CACHE_PUBLIC_TTL_SECONDS", "soon")
        settings = Settings()
        _apply_env_overrides(settings)
        assert settings.cache.public_ttl_seconds == 3600

    def test_redis_url(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
        settings = Settings()
        _apply_env_overrides(settings)
        assert settings.cache.redis_url == "redis://cache:6379/2"


class TestGetSettings:
    def test_defaults_without_files(self, tmp_path):
        settings = get_settings(
            yaml_path=tmp_path / "missing.yaml", env_path=tmp_path / ".env"
        )
        assert settings.cache.public_ttl_seconds == 3600
        assert settings.cache.user_ttl_seconds == 900
        assert settings.cache.search_ttl_seconds == 600
        assert settings.observability.metric_prefix == "techtrend"

    def test_yaml_overlay(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("cache:\n  search_namespace: custom:search\n")
        settings = get_settings(yaml_path=f, env_path=tmp_path / ".env")
        assert settings.cache.search_namespace == "custom:search"

    def test_singleton(self, tmp_path):
        a = get_settings(yaml_path=tmp_path / "x.yaml", env_path=tmp_path / ".env")
        b = get_settings()
        assert a is b

    def test_force_reload(self, tmp_path, monkeypatch):
        a = get_settings(yaml_path=tmp_path / "x.yaml", env_path=tmp_path / ".env")
        monkeypatch.setenv("TECHTREND_CACHE_USER_TTL_SECONDS", "30")
        b = get_settings(
            yaml_path=tmp_path / "x.yaml", env_path=tmp_path / ".env", _force_reload=True
        )
        assert a is not b
        assert b.cache.user_ttl_seconds == 30
