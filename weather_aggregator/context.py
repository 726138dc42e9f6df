"""Composition root: builds stores, providers and the aggregation service."""

from collections.abc import Callable
from datetime import datetime

from weather_aggregator.config import AppSettings, get_provider_config, get_settings, list_provider_ids
from weather_aggregator.exceptions import CredentialMissingError
from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import ErrorKind, ProviderError
from weather_aggregator.providers import (
    WEATHER_PROVIDERS,
    GeocodingProvider,
    OpenWeatherMapProvider,
    WeatherProviderBase,
)
from weather_aggregator.request_budget import BudgetStatus, JsonDocumentStore
from weather_aggregator.service import CurrentWeatherService, WeatherService
from weather_aggregator.stores import LocationStore, SettingsStore

logger = get_logger(__name__)

SIMULATED_API_KEY = "simulated"


class AppContext:
    """
    Everything a front end needs, wired once and passed around explicitly.

    Providers whose API key is missing are left out and reported as
    ``CREDENTIAL_MISSING`` errors with every forecast.
    """

    def __init__(
        self,
        settings: AppSettings | None = None,
        simulate: bool | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the context.

        Args:
            settings: Application settings (defaults to get_settings())
            simulate: Use bundled payloads; defaults to the settings and the
                persisted simulate flag
            clock: Source of the current local time for request budgets
        """
        self.settings = settings or get_settings()
        self.app_store = JsonDocumentStore(self.settings.appdata_path)
        self.places_store = JsonDocumentStore(self.settings.places_path)
        self.settings_store = SettingsStore(self.app_store)
        self.locations = LocationStore(self.places_store)
        self.clock = clock

        if simulate is None:
            simulate = self.settings.simulate or self.settings_store.simulate_mode
        self.simulate = simulate

        self.providers: list[WeatherProviderBase] = []
        self.unavailable: list[ProviderError] = []
        self._default_enabled: dict[str, bool] = {}
        self.weather_provider_names: list[str] = []
        for provider_id in list_provider_ids("weather"):
            provider = self._build(WEATHER_PROVIDERS[provider_id], provider_id, "weather")
            if provider is not None:
                self.providers.append(provider)

        self.geocoder = self._build(GeocodingProvider, "geocoding", "geocoding")

        self.service = WeatherService(
            self.providers,
            is_enabled=self.is_enabled,
            unavailable=self.unavailable,
            simulate=self.simulate,
        )

        current_provider = next(
            (p for p in self.providers if isinstance(p, OpenWeatherMapProvider)), None
        )
        self.current_weather = (
            CurrentWeatherService(
                current_provider, self.locations, clock=self.clock, simulate=self.simulate
            )
            if current_provider
            else None
        )

    def _build(self, provider_cls, provider_id: str, service_type: str):
        config = get_provider_config(service_type, provider_id)
        if config is None:
            return None
        self._default_enabled[config.name] = config.enabled
        if service_type == "weather":
            self.weather_provider_names.append(config.name)
        api_key = SIMULATED_API_KEY if self.simulate else None
        try:
            return provider_cls(
                self.app_store,
                api_key=api_key,
                config=config,
                settings=self.settings,
                clock=self.clock,
            )
        except CredentialMissingError as e:
            logger.warning(f"{config.name} provider unavailable: {e}")
            if service_type == "weather":
                self.unavailable.append(
                    ProviderError(
                        provider=config.name, kind=ErrorKind.CREDENTIAL_MISSING, message=str(e)
                    )
                )
            return None

    def is_enabled(self, provider_name: str) -> bool:
        """Persisted enabled flag, falling back to providers.yaml."""
        return self.settings_store.is_enabled(
            provider_name, default=self._default_enabled.get(provider_name, True)
        )

    def budget_statuses(self) -> list[BudgetStatus]:
        """Request counters for every constructed provider."""
        providers = [*self.providers, *([self.geocoder] if self.geocoder else [])]
        return [p.budget.status() for p in providers]
