"""WeerLive (weerlive.nl) forecast provider for Dutch place names."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, field_validator

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import ForecastRecord, Location, WeatherCondition
from weather_aggregator.providers.base import WeatherProviderBase, as_key

logger = get_logger(__name__)

IMAGE_CONDITIONS = {
    "zonnig": WeatherCondition.SUNNY,
    "bliksem": WeatherCondition.THUNDERSTORM,
    "regen": WeatherCondition.RAIN,
    "buien": WeatherCondition.RAIN,
    "halfbewolkt_regen": WeatherCondition.RAIN,
    "hagel": WeatherCondition.HAIL,
    "mist": WeatherCondition.MIST,
    "nachtmist": WeatherCondition.MIST,
    "sneeuw": WeatherCondition.SNOW,
    "bewolkt": WeatherCondition.CLOUDY,
    "zwaarbewolkt": WeatherCondition.CLOUDY,
    "nachtbewolkt": WeatherCondition.CLOUDY,
    "wolkennacht": WeatherCondition.CLOUDY,
    "lichtbewolkt": WeatherCondition.PARTLY_CLOUDY,
    "halfbewolkt": WeatherCondition.PARTLY_CLOUDY,
    "helderenacht": WeatherCondition.CLEAR,
}


def _parse_dutch_datetime(value: Any, fmt: str) -> Any:
    if isinstance(value, str):
        return datetime.strptime(value.strip(), fmt)
    return value


class WeerLiveHour(BaseModel):
    uur: datetime
    temp: float
    image: str

    @field_validator("uur", mode="before")
    @classmethod
    def parse_uur(cls, v: Any) -> Any:
        return _parse_dutch_datetime(v, "%d-%m-%Y %H:%M")


class WeerLiveDay(BaseModel):
    dag: datetime
    min_temp: float
    max_temp: float
    image: str

    @field_validator("dag", mode="before")
    @classmethod
    def parse_dag(cls, v: Any) -> Any:
        return _parse_dutch_datetime(v, "%d-%m-%Y")


class WeerLiveHourly(BaseModel):
    uur_verw: list[Any]


class WeerLiveWeekly(BaseModel):
    wk_verw: list[Any]


class WeerLiveProvider(WeatherProviderBase):
    """Provider for the WeerLive v2 API; locations are queried by name."""

    provider_id = "weerlive"

    async def _forecast(self, location: Location, simulate: bool) -> Any:
        params = {"key": self.api_key, "locatie": location.name}
        return await self._call(self.endpoint, params, "weerlive.json", simulate)

    async def _fetch_day(
        self, day: date, location: Location, simulate: bool
    ) -> list[ForecastRecord]:
        payload = self.validate_payload(WeerLiveHourly, await self._forecast(location, simulate))
        records = self.parse_items(
            payload.uur_verw,
            WeerLiveHour,
            lambda hour: self.record(hour.image, hour.uur, hour.temp, hour.temp),
        )
        return self.select_day(records, day, simulate)

    async def _fetch_week(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        payload = self.validate_payload(WeerLiveWeekly, await self._forecast(location, simulate))
        return self.parse_items(
            payload.wk_verw,
            WeerLiveDay,
            lambda day: self.record(day.image, day.dag, day.min_temp, day.max_temp),
        )

    def extract_error(self, status: int, payload: Any) -> str | None:
        if not isinstance(payload, dict):
            return None
        return f"{payload.get('cod', 'Unknown Code')} - {payload.get('message', 'Unknown Error')}"

    @staticmethod
    def map_condition(raw: Any) -> WeatherCondition:
        return IMAGE_CONDITIONS.get(as_key(raw), WeatherCondition.UNKNOWN)
