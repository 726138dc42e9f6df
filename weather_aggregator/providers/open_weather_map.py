"""OpenWeatherMap 5 day / 3 hour forecast provider."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import FetchResult, ForecastRecord, Location, WeatherCondition
from weather_aggregator.providers.base import WeatherProviderBase, as_int

logger = get_logger(__name__)

ATMOSPHERE_CODES = {
    701: WeatherCondition.MIST,
    711: WeatherCondition.SMOKE,
    721: WeatherCondition.HAZE,
    731: WeatherCondition.DUST,
    741: WeatherCondition.FOG,
    751: WeatherCondition.SAND,
    761: WeatherCondition.DUST,
    762: WeatherCondition.ASH,
    771: WeatherCondition.SQUALL,
    781: WeatherCondition.TORNADO,
}

GROUP_CODES = {
    2: WeatherCondition.THUNDERSTORM,
    3: WeatherCondition.DRIZZLE,
    5: WeatherCondition.RAIN,
    6: WeatherCondition.SNOW,
}


class OwmMain(BaseModel):
    temp_min: float
    temp_max: float
    humidity: float


class OwmWeather(BaseModel):
    id: int


class OwmItem(BaseModel):
    dt_txt: datetime
    main: OwmMain
    weather: list[OwmWeather] = Field(min_length=1)


class OwmForecast(BaseModel):
    items: list[Any] = Field(alias="list")


class OwmCurrent(BaseModel):
    main: OwmMain
    weather: list[OwmWeather] = Field(min_length=1)


class OpenWeatherMapProvider(WeatherProviderBase):
    """
    Provider for the OpenWeatherMap forecast API (3-hourly steps).

    Also serves current conditions for saved locations via ``fetch_current``.
    """

    provider_id = "open_weather_map"

    def _params(self, location: Location) -> dict[str, Any]:
        return {
            "lat": location.latitude,
            "lon": location.longitude,
            "appid": self.api_key,
            "units": "metric",
        }

    async def _fetch_forecast(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        payload = await self._call(
            f"{self.endpoint}forecast", self._params(location), "open_weather_map.json", simulate
        )
        forecast = self.validate_payload(OwmForecast, payload)
        return self.parse_items(forecast.items, OwmItem, self._to_record)

    async def fetch_current(self, location: Location, simulate: bool = False) -> FetchResult:
        """
        Fetch the current conditions at a location.

        Args:
            location: Place to look up
            simulate: Use the bundled payload instead of the live API

        Returns:
            Fetch result with a single record stamped with the current time
        """
        logger.info(f"{self.name}: fetching current weather for {location.name}")
        return await self._guarded(self._fetch_current(location, simulate))

    async def _fetch_current(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        payload = await self._call(
            f"{self.endpoint}weather",
            self._params(location),
            "open_weather_map_current.json",
            simulate,
        )
        current = self.validate_payload(OwmCurrent, payload)
        return [
            self.record(
                current.weather[0].id,
                self.clock().replace(second=0, microsecond=0),
                current.main.temp_min,
                current.main.temp_max,
                current.main.humidity,
            )
        ]

    def _to_record(self, item: OwmItem) -> ForecastRecord:
        return self.record(
            item.weather[0].id,
            item.dt_txt,
            item.main.temp_min,
            item.main.temp_max,
            item.main.humidity,
        )

    async def _fetch_day(
        self, day: date, location: Location, simulate: bool
    ) -> list[ForecastRecord]:
        records = await self._fetch_forecast(location, simulate)
        return self.select_day(records, day, simulate)

    async def _fetch_week(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        return self.group_by_date(await self._fetch_forecast(location, simulate))

    def extract_error(self, status: int, payload: Any) -> str | None:
        if isinstance(payload, dict) and "message" in payload:
            return f"{payload.get('cod', status)} - {payload['message']}"
        return None

    @staticmethod
    def map_condition(raw: Any) -> WeatherCondition:
        code = as_int(raw)
        if code is None:
            return WeatherCondition.UNKNOWN
        if code in ATMOSPHERE_CODES:
            return ATMOSPHERE_CODES[code]
        if code == 800:
            return WeatherCondition.SUNNY
        if 801 <= code <= 899:
            return WeatherCondition.CLOUDY
        if 200 <= code <= 699:
            return GROUP_CODES.get(code // 100, WeatherCondition.UNKNOWN)
        return WeatherCondition.UNKNOWN
