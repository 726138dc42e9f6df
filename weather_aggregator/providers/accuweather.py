"""AccuWeather forecast provider.

Forecast endpoints are addressed by an AccuWeather location key, resolved once
per coordinate pair through a geoposition search and cached in the shared
application document under ``placeKeys``.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel

from weather_aggregator.exceptions import MalformedResponseError
from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import ForecastRecord, Location, WeatherCondition
from weather_aggregator.providers.base import WeatherProviderBase, as_int

logger = get_logger(__name__)

ICON_GROUPS = (
    ((1, 30), WeatherCondition.SUNNY),
    ((5, 37), WeatherCondition.HAZE),
    ((11,), WeatherCondition.FOG),
    ((31,), WeatherCondition.COLD),
    ((32,), WeatherCondition.WINDY),
    ((2, 3, 4, 6, 13, 14, 33, 34, 35, 36), WeatherCondition.PARTLY_CLOUDY),
    ((7, 8, 38), WeatherCondition.CLOUDY),
    ((12, 18, 29, 39, 40), WeatherCondition.RAIN),
    ((15, 16, 17, 41, 42), WeatherCondition.THUNDERSTORM),
    ((19, 20, 21, 22, 23, 43, 44), WeatherCondition.SNOW),
    ((24, 25, 26), WeatherCondition.HAIL),
)

ICON_CONDITIONS = {icon: condition for icons, condition in ICON_GROUPS for icon in icons}


class AccuGeoposition(BaseModel):
    Key: str


class AccuValue(BaseModel):
    Value: float


class AccuHourlyItem(BaseModel):
    DateTime: datetime
    Temperature: AccuValue
    WeatherIcon: int


class AccuRange(BaseModel):
    Minimum: AccuValue
    Maximum: AccuValue


class AccuDayPart(BaseModel):
    Icon: int


class AccuDailyItem(BaseModel):
    Date: datetime
    Temperature: AccuRange
    Day: AccuDayPart


class AccuDailyForecast(BaseModel):
    DailyForecasts: list[Any]


class AccuWeatherProvider(WeatherProviderBase):
    """Provider for the AccuWeather hourly and 5-day forecast APIs."""

    provider_id = "accuweather"

    def _cached_location_key(self, location: Location) -> str | None:
        place_keys = self.store.read().get("placeKeys")
        if not isinstance(place_keys, dict):
            return None
        provider_keys = place_keys.get(self.name)
        if not isinstance(provider_keys, dict):
            return None
        return provider_keys.get(location.coordinates)

    def _store_location_key(self, location: Location, key: str) -> None:
        def apply(doc: dict[str, Any]) -> None:
            if not isinstance(doc.get("placeKeys"), dict):
                doc["placeKeys"] = {}
            doc["placeKeys"].setdefault(self.name, {})[location.coordinates] = key

        self.store.update(apply)

    async def location_key(self, location: Location, simulate: bool = False) -> str:
        """
        Resolve the AccuWeather location key for a place.

        The lookup is a counted request of its own; the result is cached for
        live lookups only.
        """
        if not simulate:
            cached = self._cached_location_key(location)
            if cached:
                logger.debug(f"{self.name}: cached location key {cached} for {location.name}")
                return cached

        payload = await self._call(
            f"{self.endpoint}/locations/v1/cities/geoposition/search",
            {"apikey": self.api_key, "q": location.coordinates, "details": "true"},
            "accuweather_location.json",
            simulate,
        )
        key = self.validate_payload(AccuGeoposition, payload).Key
        if not simulate:
            self._store_location_key(location, key)
        return key

    async def _fetch_day(
        self, day: date, location: Location, simulate: bool
    ) -> list[ForecastRecord]:
        key = await self.location_key(location, simulate)
        payload = await self._call(
            f"{self.endpoint}/forecasts/v1/hourly/12hour/{key}",
            {"apikey": self.api_key, "details": "true", "metric": "true"},
            "accuweather_hourly.json",
            simulate,
        )
        if not isinstance(payload, list):
            raise MalformedResponseError("Hourly forecast is not a list")
        records = self.parse_items(payload, AccuHourlyItem, self._hourly_record)
        return self.select_day(records, day, simulate)

    def _hourly_record(self, item: AccuHourlyItem) -> ForecastRecord:
        # Hourly readings are single values without humidity
        return self.record(
            item.WeatherIcon, item.DateTime, item.Temperature.Value, item.Temperature.Value
        )

    async def _fetch_week(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        key = await self.location_key(location, simulate)
        payload = await self._call(
            f"{self.endpoint}/forecasts/v1/daily/5day/{key}",
            {"apikey": self.api_key, "details": "true", "metric": "true"},
            "accuweather_daily.json",
            simulate,
        )
        forecast = self.validate_payload(AccuDailyForecast, payload)
        return self.parse_items(forecast.DailyForecasts, AccuDailyItem, self._daily_record)

    def _daily_record(self, item: AccuDailyItem) -> ForecastRecord:
        return self.record(
            item.Day.Icon,
            item.Date,
            item.Temperature.Minimum.Value,
            item.Temperature.Maximum.Value,
        )

    def extract_error(self, status: int, payload: Any) -> str | None:
        if not isinstance(payload, dict):
            return None
        fault = payload.get("fault")
        if isinstance(fault, dict) and fault.get("faultstring"):
            return f"{status} - {fault['faultstring']}"
        if payload.get("Message"):
            return f"{status} - {payload['Message']}"
        return None

    @staticmethod
    def map_condition(raw: Any) -> WeatherCondition:
        return ICON_CONDITIONS.get(as_int(raw), WeatherCondition.UNKNOWN)
