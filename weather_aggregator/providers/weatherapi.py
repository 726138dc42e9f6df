"""WeatherAPI.com forecast provider."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import ForecastRecord, Location, WeatherCondition
from weather_aggregator.providers.base import WeatherProviderBase, as_key

logger = get_logger(__name__)

_CONDITION_TEXTS: dict[WeatherCondition, tuple[str, ...]] = {
    WeatherCondition.PARTLY_CLOUDY: ("partly cloudy",),
    WeatherCondition.SUNNY: ("sunny",),
    WeatherCondition.CLOUDY: ("cloudy", "overcast"),
    WeatherCondition.CLEAR: ("clear",),
    WeatherCondition.MIST: ("mist",),
    WeatherCondition.FOG: ("fog", "freezing fog"),
    WeatherCondition.DRIZZLE: (
        "patchy rain possible",
        "patchy freezing drizzle possible",
        "patchy light drizzle",
        "light drizzle",
        "freezing drizzle",
        "heavy freezing drizzle",
    ),
    WeatherCondition.RAIN: (
        "patchy rain nearby",
        "patchy light rain",
        "light rain",
        "moderate rain at times",
        "moderate rain",
        "heavy rain at times",
        "heavy rain",
        "light freezing rain",
        "moderate or heavy freezing rain",
        "light rain shower",
        "moderate or heavy rain shower",
        "torrential rain shower",
    ),
    WeatherCondition.SNOW: (
        "patchy snow possible",
        "patchy sleet possible",
        "blowing snow",
        "blizzard",
        "light sleet",
        "moderate or heavy sleet",
        "patchy light snow",
        "light snow",
        "patchy moderate snow",
        "moderate snow",
        "patchy heavy snow",
        "heavy snow",
        "light sleet showers",
        "moderate or heavy sleet showers",
        "light snow showers",
        "moderate or heavy snow showers",
    ),
    WeatherCondition.HAIL: (
        "ice pellets",
        "light showers of ice pellets",
        "moderate or heavy showers of ice pellets",
    ),
    WeatherCondition.THUNDERSTORM: (
        "thundery outbreaks possible",
        "patchy light rain with thunder",
        "moderate or heavy rain with thunder",
        "patchy light snow with thunder",
        "moderate or heavy snow with thunder",
    ),
}

CONDITIONS = {text: condition for condition, texts in _CONDITION_TEXTS.items() for text in texts}


class WapiCondition(BaseModel):
    text: str


class WapiHour(BaseModel):
    time: datetime
    temp_c: float
    humidity: float
    condition: WapiCondition

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, v: Any) -> Any:
        if isinstance(v, str):
            return datetime.strptime(v, "%Y-%m-%d %H:%M")
        return v


class WapiDaySummary(BaseModel):
    mintemp_c: float
    maxtemp_c: float
    avghumidity: float
    condition: WapiCondition


class WapiForecastDay(BaseModel):
    forecast_date: date = Field(alias="date")
    day: WapiDaySummary
    hour: list[Any] = Field(default_factory=list)


class WapiForecastDays(BaseModel):
    forecastday: list[Any] = Field(min_length=1)


class WapiForecast(BaseModel):
    forecast: WapiForecastDays


class WeatherApiProvider(WeatherProviderBase):
    """Provider for the WeatherAPI.com forecast endpoint."""

    provider_id = "weatherapi"

    async def _forecast(
        self, location: Location, simulate: bool, fixture: str, **params: Any
    ) -> WapiForecast:
        query = {"key": self.api_key, "q": location.coordinates, **params}
        payload = await self._call(f"{self.endpoint}forecast.json", query, fixture, simulate)
        return self.validate_payload(WapiForecast, payload)

    async def _fetch_day(
        self, day: date, location: Location, simulate: bool
    ) -> list[ForecastRecord]:
        forecast = await self._forecast(
            location, simulate, "weatherapi_day.json", dt=day.isoformat()
        )
        first_day = self.validate_payload(WapiForecastDay, forecast.forecast.forecastday[0])
        records = self.parse_items(
            first_day.hour,
            WapiHour,
            lambda h: self.record(h.condition.text, h.time, h.temp_c, h.temp_c, h.humidity),
        )
        return self.select_day(records, day, simulate)

    async def _fetch_week(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        forecast = await self._forecast(location, simulate, "weatherapi_week.json", days=7)
        return self.parse_items(
            forecast.forecast.forecastday,
            WapiForecastDay,
            lambda d: self.record(
                d.day.condition.text,
                datetime.combine(d.forecast_date, datetime.min.time()),
                d.day.mintemp_c,
                d.day.maxtemp_c,
                d.day.avghumidity,
            ),
        )

    def extract_error(self, status: int, payload: Any) -> str | None:
        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict):
            return None
        return f"{error.get('code', 'Unknown Code')} - {error.get('message', 'Unknown Error')}"

    @staticmethod
    def map_condition(raw: Any) -> WeatherCondition:
        return CONDITIONS.get(as_key(raw), WeatherCondition.UNKNOWN)
