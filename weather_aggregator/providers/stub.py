"""The "Test" provider: a placeholder JSON endpoint dressed up as weather."""

from datetime import date, datetime, timedelta
from typing import Any

from pydantic import BaseModel

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import HUMIDITY_UNKNOWN, ForecastRecord, Location, WeatherCondition
from weather_aggregator.providers.base import WeatherProviderBase, as_key

logger = get_logger(__name__)

STUB_CONDITION = "sunny"
STUB_MIN_TEMPERATURE = 15.0
STUB_MAX_TEMPERATURE = 25.0
STUB_WEEK_HUMIDITY = 50.0


class StubPost(BaseModel):
    id: int = int(HUMIDITY_UNKNOWN)


class StubProvider(WeatherProviderBase):
    """
    Exercises the whole provider pipeline (budget, HTTP, parsing) against a
    free endpoint. Every forecast is sunny, 15-25 degrees.

    In day mode the post ``id`` doubles as the humidity reading.
    """

    provider_id = "test"

    async def _post(self, simulate: bool) -> StubPost:
        payload = await self._call(self.endpoint, None, "test.json", simulate)
        return self.validate_payload(StubPost, payload)

    async def _fetch_day(
        self, day: date, location: Location, simulate: bool
    ) -> list[ForecastRecord]:
        post = await self._post(simulate)
        at = datetime.combine(day, self.clock().time().replace(minute=0, second=0, microsecond=0))
        return [
            self.record(
                STUB_CONDITION, at, STUB_MIN_TEMPERATURE, STUB_MAX_TEMPERATURE, float(post.id)
            )
        ]

    async def _fetch_week(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        await self._post(simulate)
        start = self.clock()
        return [
            self.record(
                STUB_CONDITION,
                start + timedelta(days=offset),
                STUB_MIN_TEMPERATURE,
                STUB_MAX_TEMPERATURE,
                STUB_WEEK_HUMIDITY,
            )
            for offset in range(7)
        ]

    @staticmethod
    def map_condition(raw: Any) -> WeatherCondition:
        return WeatherCondition.SUNNY if as_key(raw) == STUB_CONDITION else WeatherCondition.UNKNOWN
