"""Weatherbit daily forecast provider."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import ForecastRecord, Location, WeatherCondition
from weather_aggregator.providers.base import WeatherProviderBase, as_int

logger = get_logger(__name__)

EXACT_CODES = {
    800: WeatherCondition.CLEAR,
    801: WeatherCondition.PARTLY_CLOUDY,
    802: WeatherCondition.PARTLY_CLOUDY,
    803: WeatherCondition.CLOUDY,
    804: WeatherCondition.CLOUDY,
    700: WeatherCondition.MIST,
    711: WeatherCondition.SMOKE,
    721: WeatherCondition.HAZE,
    731: WeatherCondition.SAND,
    741: WeatherCondition.FOG,
    751: WeatherCondition.FOG,
}

CODE_RANGES = (
    (600, 623, WeatherCondition.SNOW),
    (500, 522, WeatherCondition.RAIN),
    (300, 302, WeatherCondition.DRIZZLE),
    (200, 233, WeatherCondition.THUNDERSTORM),
)


class WbWeather(BaseModel):
    code: int


class WbDay(BaseModel):
    day: date = Field(alias="datetime")
    min_temp: float
    max_temp: float
    rh: float | None = None
    weather: WbWeather


class WbForecast(BaseModel):
    data: list[Any]


class WeatherbitProvider(WeatherProviderBase):
    """
    Provider for the Weatherbit 16-day forecast API.

    Weatherbit only publishes daily values on this plan, so the day view gets
    an empty (successful) result without spending a request.
    """

    provider_id = "weatherbit"

    async def _fetch_day(
        self, day: date, location: Location, simulate: bool
    ) -> list[ForecastRecord]:
        logger.debug(f"{self.name}: no hourly forecast available, skipping day view")
        return []

    async def _fetch_week(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        params = {
            "key": self.api_key,
            "lat": location.latitude,
            "lon": location.longitude,
            "days": 7,
        }
        payload = await self._call(self.endpoint, params, "weatherbit.json", simulate)
        forecast = self.validate_payload(WbForecast, payload)
        return self.parse_items(
            forecast.data,
            WbDay,
            lambda d: self.record(
                d.weather.code,
                datetime.combine(d.day, datetime.min.time()),
                d.min_temp,
                d.max_temp,
                d.rh,
            ),
        )

    def extract_error(self, status: int, payload: Any) -> str | None:
        if not isinstance(payload, dict):
            return None
        error = payload.get("error")
        if isinstance(error, dict):
            return f"{error.get('code', 'Unknown Code')} - {error.get('message', 'Unknown Error')}"
        if isinstance(error, str):
            return f"{status} - {error}"
        return None

    @staticmethod
    def map_condition(raw: Any) -> WeatherCondition:
        code = as_int(raw)
        if code is None:
            return WeatherCondition.UNKNOWN
        if code in EXACT_CODES:
            return EXACT_CODES[code]
        for low, high, condition in CODE_RANGES:
            if low <= code <= high:
                return condition
        return WeatherCondition.UNKNOWN
