"""Tests for configuration validation."""

from pathlib import Path

from src.core.config import Settings, constants
from src.core.day_keys import get_default_policy


def test_settings_read_environment(monkeypatch) -> None:
    """Test settings pick up environment variables."""
    monkeypatch.setenv("API_BASE_URL", "https://example.test/api")
    monkeypatch.setenv("LOCAL_CACHE_PATH", "/tmp/routinely-cache.json")
    monkeypatch.setenv("DAY_KEY_UTC_OFFSET_MINUTES", "-300")

    settings = Settings()

    assert settings.api_base_url == "https://example.test/api"
    assert settings.local_cache_path == Path("/tmp/routinely-cache.json")
    assert settings.day_key_utc_offset_minutes == -300


def test_default_policy_follows_settings(monkeypatch) -> None:
    """Test the default day key policy uses the configured offset."""
    monkeypatch.setattr("src.core.day_keys.settings.day_key_utc_offset_minutes", 90)

    assert get_default_policy().utc_offset_minutes == 90


def test_cache_keys_match_client_storage_names() -> None:
    assert constants.CACHE_KEY_ROUTINES == "pt_routines_v1"
    assert constants.CACHE_KEY_ACTIVITIES == "pt_activities_v1"
