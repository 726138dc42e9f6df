"""Configuration management for weather-aggregator.

Provider endpoints and request limits live in ``conf/providers.yaml``; runtime
settings come from the environment (optionally via a ``.env`` file).
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from weather_aggregator.exceptions import CredentialMissingError
from weather_aggregator.logging_config import get_logger

logger = get_logger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


class CacheSettings(BaseModel):
    """HTTP cache configuration."""

    enabled: bool = False
    cache_name: str = "http_cache"
    expire_after_s: int = 600


class AppSettings(BaseModel):
    """Main application settings."""

    data_dir: Path = Field(default_factory=lambda: Path.home() / ".weather_aggregator")
    simulate: bool = False
    geocoding_country: str = "nl"
    language: str = "nl"
    cache: CacheSettings = CacheSettings()

    @property
    def appdata_path(self) -> Path:
        """Shared document holding request counts, provider flags and place keys."""
        return self.data_dir / "appdata.json"

    @property
    def places_path(self) -> Path:
        """Favorite locations document."""
        return self.data_dir / "places.json"


class ProviderConfig(BaseModel):
    """Configuration for an external API provider."""

    name: str
    endpoint: str
    timeout_s: float = 20.0
    daily_limit: int = -1
    monthly_limit: int = -1
    enabled: bool = True


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Get application settings with environment overrides.

    Environment variables:
        WEATHER_AGGREGATOR_HOME: Directory for persisted JSON documents
        WEATHER_AGGREGATOR_SIMULATE: Use bundled fixtures instead of live APIs
        WEATHER_AGGREGATOR_COUNTRY: Country filter for geocoding searches
        WEATHER_AGGREGATOR_CACHE: Enable the requests-cache SQLite cache
    """
    load_dotenv(override=False)

    overrides: dict[str, Any] = {}
    if home := os.getenv("WEATHER_AGGREGATOR_HOME"):
        overrides["data_dir"] = Path(home).expanduser()
    if simulate := os.getenv("WEATHER_AGGREGATOR_SIMULATE"):
        overrides["simulate"] = simulate.lower() in TRUTHY
    if country := os.getenv("WEATHER_AGGREGATOR_COUNTRY"):
        overrides["geocoding_country"] = country.lower()

    if os.getenv("WEATHER_AGGREGATOR_CACHE", "").lower() in TRUTHY:
        data_dir = overrides.get("data_dir", Path.home() / ".weather_aggregator")
        overrides["cache"] = CacheSettings(
            enabled=True, cache_name=str(data_dir / "http_cache")
        )

    return AppSettings(**overrides)


def clear_settings_cache() -> None:
    """Clear settings cache to force reload from current environment."""
    get_settings.cache_clear()


@lru_cache(maxsize=1)
def get_config_dir() -> Path:
    """Get the bundled configuration directory path."""
    config_dir = Path(__file__).resolve().parent / "conf"
    if not config_dir.exists():
        raise FileNotFoundError(f"Configuration directory not found: {config_dir}")
    return config_dir


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML configuration file from the configuration directory."""
    config_file = get_config_dir() / filename

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    try:
        with open(config_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_file}: {e}") from e

    logger.debug(f"Loaded configuration from {config_file}")
    return data or {}


@lru_cache(maxsize=1)
def get_providers_config() -> dict[str, Any]:
    """Load provider configuration."""
    return load_yaml_config("providers.yaml")


def get_provider_config(service_type: str, provider_id: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        service_type: Type of service ('weather', 'geocoding')
        provider_id: Provider key in providers.yaml ('accuweather', 'weerlive', ...)

    Returns:
        Provider configuration object, or None if not found
    """
    service_config = get_providers_config().get(service_type, {})
    provider_dict = service_config.get("providers", {}).get(provider_id)

    if not provider_dict:
        logger.warning(f"No configuration found for {service_type}.{provider_id}")
        return None

    return ProviderConfig(**provider_dict)


def list_provider_ids(service_type: str) -> list[str]:
    """List provider keys configured for a service, in file order."""
    service_config = get_providers_config().get(service_type, {})
    return list(service_config.get("providers", {}))


def api_key_env_name(display_name: str) -> str:
    """Derive the API key variable name from a provider display name.

    >>> api_key_env_name("Open Weather Map")
    'OPEN_WEATHER_MAP_API_KEY'
    """
    return display_name.upper().replace(" ", "_") + "_API_KEY"


def get_api_key(env_var_name: str) -> str | None:
    """Get API key from environment variable.

    Args:
        env_var_name: Name of environment variable containing API key

    Returns:
        API key string, or None if not set
    """
    api_key = os.getenv(env_var_name)
    if not api_key:
        logger.debug(f"API key environment variable {env_var_name} not set")
        return None

    logger.debug(f"Loaded API key from {env_var_name}")
    return api_key


def require_api_key(display_name: str) -> str:
    """Look up a provider's API key or raise ``CredentialMissingError``."""
    env_var = api_key_env_name(display_name)
    api_key = get_api_key(env_var)
    if not api_key:
        raise CredentialMissingError(display_name, env_var)
    return api_key
