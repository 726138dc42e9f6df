"""Weather and geocoding provider implementations."""

from weather_aggregator.providers.accuweather import AccuWeatherProvider
from weather_aggregator.providers.base import BaseProvider, WeatherProviderBase
from weather_aggregator.providers.geocoding import GeocodingProvider
from weather_aggregator.providers.open_weather_map import OpenWeatherMapProvider
from weather_aggregator.providers.stub import StubProvider
from weather_aggregator.providers.visual_crossing import VisualCrossingProvider
from weather_aggregator.providers.weatherapi import WeatherApiProvider
from weather_aggregator.providers.weatherbit import WeatherbitProvider
from weather_aggregator.providers.weerlive import WeerLiveProvider

# Keyed by provider id in providers.yaml
WEATHER_PROVIDERS: dict[str, type[WeatherProviderBase]] = {
    "open_weather_map": OpenWeatherMapProvider,
    "accuweather": AccuWeatherProvider,
    "weerlive": WeerLiveProvider,
    "visual_crossing": VisualCrossingProvider,
    "weatherapi": WeatherApiProvider,
    "weatherbit": WeatherbitProvider,
    "test": StubProvider,
}

__all__ = [
    "AccuWeatherProvider",
    "BaseProvider",
    "GeocodingProvider",
    "OpenWeatherMapProvider",
    "StubProvider",
    "VisualCrossingProvider",
    "WEATHER_PROVIDERS",
    "WeatherApiProvider",
    "WeatherProviderBase",
    "WeatherbitProvider",
    "WeerLiveProvider",
]
