"""Visual Crossing timeline weather provider.

Requests use ``lang=id`` so conditions arrive as language-independent
identifiers such as ``type_43`` or ``rain``.
"""

from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, Field

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import ForecastRecord, Location, WeatherCondition
from weather_aggregator.providers.base import NO_ERROR_INFO, WeatherProviderBase, as_key

logger = get_logger(__name__)

_CONDITION_IDS: dict[WeatherCondition, tuple[str, ...]] = {
    WeatherCondition.CLEAR: ("clear", "clearingpm", "sunshine", "norain", "type_43"),
    WeatherCondition.CLOUDY: (
        "cloudierpm", "cloudcover", "overcast", "type_27", "type_28", "type_29", "type_41",
    ),
    WeatherCondition.COLD: ("coolingdown", "cold"),
    WeatherCondition.RAIN: (
        "rain", "rainallday", "rainam", "rainpm", "rainchance", "raindays", "rainearlyam",
        "rainlatepm", "rainsnow", "rainsnowallday", "rainsnowam", "rainsnowpm",
        "type_3", "type_5", "type_9", "type_10", "type_11", "type_13", "type_14",
        "type_21", "type_22", "type_23", "type_24", "type_25", "type_26", "type_32", "type_33",
    ),
    WeatherCondition.SNOW: (
        "snow", "snowallday", "snowam", "snowpm", "snowchance", "snowdays", "snowearlyam",
        "snowlatepm", "type_1", "type_31", "type_34", "type_35",
    ),
    WeatherCondition.THUNDERSTORM: (
        "stormspossible", "stormsstrong", "type_18", "type_37", "type_38",
    ),
    WeatherCondition.PARTLY_CLOUDY: ("variablecloud", "type_42"),
    WeatherCondition.FOG: ("fog", "type_8", "type_12"),
    WeatherCondition.MIST: ("mist", "type_19"),
    WeatherCondition.DUST: ("dust", "dust storm", "type_7"),
    WeatherCondition.HAZE: ("haze", "smoke", "type_30"),
    WeatherCondition.TORNADO: ("tornado", "type_15"),
    WeatherCondition.SQUALL: ("squalls", "type_36"),
    WeatherCondition.WINDY: ("windy",),
    WeatherCondition.DRIZZLE: ("type_2", "type_4", "type_6"),
    WeatherCondition.HAIL: ("type_16", "type_40"),
    WeatherCondition.ICE: ("type_17",),
}

CONDITIONS = {key: condition for condition, keys in _CONDITION_IDS.items() for key in keys}


class VcHour(BaseModel):
    at: time = Field(alias="datetime")
    temp: float
    humidity: float | None = None
    conditions: str


class VcDay(BaseModel):
    day: date = Field(alias="datetime")
    tempmin: float
    tempmax: float
    humidity: float | None = None
    conditions: str
    hours: list[Any] = Field(default_factory=list)


class VcTimeline(BaseModel):
    days: list[Any]


class VisualCrossingProvider(WeatherProviderBase):
    """Provider for the Visual Crossing timeline API."""

    provider_id = "visual_crossing"

    async def _timeline(self, location: Location, simulate: bool) -> VcTimeline:
        url = (
            f"{self.endpoint}/rest/services/timeline/"
            f"{location.latitude},{location.longitude}"
        )
        params = {
            "unitGroup": "metric",
            "key": self.api_key,
            "contentType": "json",
            "lang": "id",
        }
        payload = await self._call(url, params, "visual_crossing.json", simulate)
        return self.validate_payload(VcTimeline, payload)

    async def _fetch_day(
        self, day: date, location: Location, simulate: bool
    ) -> list[ForecastRecord]:
        timeline = await self._timeline(location, simulate)
        records = []
        for vc_day in self.parse_days(timeline.days):
            records.extend(
                self.parse_items(
                    vc_day.hours,
                    VcHour,
                    lambda hour, d=vc_day.day: self.record(
                        hour.conditions,
                        datetime.combine(d, hour.at),
                        hour.temp,
                        hour.temp,
                        hour.humidity,
                    ),
                )
            )
        return self.select_day(records, day, simulate)

    async def _fetch_week(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        timeline = await self._timeline(location, simulate)
        return self.parse_items(
            timeline.days,
            VcDay,
            lambda d: self.record(
                d.conditions,
                datetime.combine(d.day, time()),
                d.tempmin,
                d.tempmax,
                d.humidity,
            ),
        )

    def parse_days(self, days: list[Any]) -> list[VcDay]:
        """Validate day entries, skipping malformed ones."""
        parsed = []
        for index, raw in enumerate(days):
            try:
                parsed.append(VcDay.model_validate(raw))
            except ValueError as e:
                logger.warning(f"{self.name}: skipping malformed day {index}: {e}")
        return parsed

    def error_message(self, status: int, text: str) -> str:
        # The API answers errors in plain text
        return f"{status} - {text.strip() or NO_ERROR_INFO}"

    @staticmethod
    def map_condition(raw: Any) -> WeatherCondition:
        # Multiple conditions come comma separated; the first one leads
        first = as_key(raw).split(",")[0].strip()
        return CONDITIONS.get(first, WeatherCondition.UNKNOWN)
