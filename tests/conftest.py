"""
pytest configuration for weather-aggregator tests.

Every test gets its own data directory, no log file and a fresh HTTP session.
"""

import json
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import Mock

import pytest
from dotenv import load_dotenv

from weather_aggregator import http_cache
from weather_aggregator.config import clear_settings_cache, get_provider_config
from weather_aggregator.models import Location
from weather_aggregator.request_budget import JsonDocumentStore

API_KEY_VARS = [
    "OPEN_WEATHER_MAP_API_KEY",
    "ACCUWEATHER_API_KEY",
    "WEERLIVE_API_KEY",
    "VISUAL_CROSSING_API_KEY",
    "WEATHERAPI_API_KEY",
    "WEATHERBIT_API_KEY",
    "GEOCODING_API_KEY",
    "TEST_API_KEY",
]


def pytest_configure(config):
    """Load .env so integration tests can reach live APIs."""
    env_path = Path(__file__).parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path, monkeypatch):
    """Point the data directory at tmp_path and keep log files out of the repo."""
    monkeypatch.setenv("WEATHER_AGGREGATOR_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("DISABLE_FILE_LOGGING", "1")
    monkeypatch.delenv("WEATHER_AGGREGATOR_SIMULATE", raising=False)
    monkeypatch.delenv("WEATHER_AGGREGATOR_CACHE", raising=False)
    clear_settings_cache()
    http_cache.reset_session()
    yield
    http_cache.reset_session()
    clear_settings_cache()


@pytest.fixture
def no_api_keys(monkeypatch):
    """Remove every provider API key from the environment."""
    for var in API_KEY_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def all_api_keys(monkeypatch):
    """Provide a dummy API key for every provider."""
    for var in API_KEY_VARS:
        monkeypatch.setenv(var, "test-key")


@pytest.fixture
def store(tmp_path):
    """Shared application document in a temporary directory."""
    return JsonDocumentStore(tmp_path / "appdata.json")


@pytest.fixture
def amsterdam():
    return Location(
        name="Amsterdam",
        state="North Holland",
        country="Netherlands",
        place_id="ams",
        latitude=52.3731,
        longitude=4.8925,
    )


class FakeClock:
    """Settable clock for rollover tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0))


@pytest.fixture
def make_provider(store, clock):
    """Build a provider with a dummy key against the temporary store."""

    def _make(provider_cls, **config_overrides):
        config = get_provider_config(provider_cls.service_type, provider_cls.provider_id)
        if config_overrides:
            config = config.model_copy(update=config_overrides)
        return provider_cls(store, api_key="test-key", config=config, clock=clock)

    return _make


def make_response(status_code=200, json_body=None, text=None):
    """Mock requests.Response with the bits providers read."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    if json_body is not None:
        response.json.return_value = json_body
        if text is None:
            text = json.dumps(json_body)
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    response.text = text or ""
    return response


@pytest.fixture
def response_factory():
    return make_response
