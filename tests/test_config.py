"""Tests for settings and provider configuration loading."""

from pathlib import Path

import pytest

from weather_aggregator.config import (
    AppSettings,
    api_key_env_name,
    clear_settings_cache,
    get_api_key,
    get_provider_config,
    get_settings,
    list_provider_ids,
    require_api_key,
)
from weather_aggregator.exceptions import CredentialMissingError


class TestSettings:
    """Test environment-driven application settings."""

    def test_data_dir_from_environment(self, tmp_path):
        settings = get_settings()

        assert settings.data_dir == tmp_path / "home"
        assert settings.appdata_path == tmp_path / "home" / "appdata.json"
        assert settings.places_path == tmp_path / "home" / "places.json"

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("WEATHER_AGGREGATOR_HOME")
        monkeypatch.delenv("WEATHER_AGGREGATOR_COUNTRY", raising=False)
        clear_settings_cache()

        settings = get_settings()

        assert settings.data_dir == Path.home() / ".weather_aggregator"
        assert settings.simulate is False
        assert settings.geocoding_country == "nl"
        assert settings.cache.enabled is False

    @pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("no", False)])
    def test_simulate_flag(self, monkeypatch, value, expected):
        monkeypatch.setenv("WEATHER_AGGREGATOR_SIMULATE", value)
        clear_settings_cache()

        assert get_settings().simulate is expected

    def test_cache_lives_in_data_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WEATHER_AGGREGATOR_CACHE", "yes")
        clear_settings_cache()

        cache = get_settings().cache

        assert cache.enabled
        assert cache.cache_name == str(tmp_path / "home" / "http_cache")

    def test_country_override(self, monkeypatch):
        monkeypatch.setenv("WEATHER_AGGREGATOR_COUNTRY", "BE")
        clear_settings_cache()

        assert get_settings().geocoding_country == "be"

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_explicit_settings(self, tmp_path):
        settings = AppSettings(data_dir=tmp_path)
        assert settings.appdata_path.parent == tmp_path


class TestProviderConfig:
    """Test providers.yaml loading."""

    def test_weather_providers_in_file_order(self):
        assert list_provider_ids("weather") == [
            "open_weather_map",
            "accuweather",
            "weerlive",
            "visual_crossing",
            "weatherapi",
            "weatherbit",
            "test",
        ]

    def test_limits(self):
        weerlive = get_provider_config("weather", "weerlive")
        test = get_provider_config("weather", "test")
        geocoding = get_provider_config("geocoding", "geocoding")

        assert (weerlive.name, weerlive.daily_limit, weerlive.monthly_limit) == ("WeerLive", 300, -1)
        assert (test.daily_limit, test.monthly_limit, test.enabled) == (5, 10, False)
        assert (geocoding.name, geocoding.daily_limit) == ("Geocoding", 3000)
        assert weerlive.enabled is True
        assert weerlive.timeout_s == 20.0

    def test_unknown_provider(self):
        assert get_provider_config("weather", "nope") is None
        assert list_provider_ids("satellite") == []


class TestApiKeys:
    """Test API key lookup."""

    @pytest.mark.parametrize(
        "display_name,env_var",
        [
            ("Open Weather Map", "OPEN_WEATHER_MAP_API_KEY"),
            ("AccuWeather", "ACCUWEATHER_API_KEY"),
            ("Visual Crossing", "VISUAL_CROSSING_API_KEY"),
            ("WeatherAPI", "WEATHERAPI_API_KEY"),
            ("Geocoding", "GEOCODING_API_KEY"),
        ],
    )
    def test_env_name(self, display_name, env_var):
        assert api_key_env_name(display_name) == env_var

    def test_get_api_key(self, monkeypatch):
        monkeypatch.setenv("WEERLIVE_API_KEY", "abc")
        assert get_api_key("WEERLIVE_API_KEY") == "abc"

    def test_empty_key_is_missing(self, monkeypatch):
        monkeypatch.setenv("WEERLIVE_API_KEY", "")

        with pytest.raises(CredentialMissingError) as exc_info:
            require_api_key("WeerLive")

        assert "WEERLIVE_API_KEY" in str(exc_info.value)
        assert exc_info.value.provider == "WeerLive"
