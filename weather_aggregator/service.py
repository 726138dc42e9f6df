"""
Aggregation of forecasts across weather providers.

All enabled providers are queried concurrently; successful records are merged
into time buckets while failures are collected as error messages next to the
data instead of aborting the whole request.
"""

import asyncio
import calendar
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import (
    HUMIDITY_UNKNOWN,
    AggregatedBucket,
    AggregationMode,
    AggregationResult,
    CurrentWeatherResult,
    ErrorKind,
    FetchResult,
    ForecastRecord,
    Location,
    ProviderError,
    WeatherCondition,
)
from weather_aggregator.providers.base import WeatherProviderBase
from weather_aggregator.providers.open_weather_map import OpenWeatherMapProvider
from weather_aggregator.stores import LocationStore

logger = get_logger(__name__)

AGGREGATE_SOURCE = "aggregate"
CURRENT_WEATHER_MAX_AGE = timedelta(hours=1)


def merge_records(records: list[ForecastRecord], timestamp: datetime) -> ForecastRecord:
    """
    Combine records that share a bucket into one representative record.

    Args:
        records: Records in arrival order (must not be empty)
        timestamp: Timestamp for the merged record

    Returns:
        Record with the lowest minimum, the highest maximum, the mean of the
        known humidities (0 when none are known) and the first known condition
    """
    humidities = [r.humidity for r in records if r.humidity != HUMIDITY_UNKNOWN]
    condition = next(
        (r.condition for r in records if r.condition != WeatherCondition.UNKNOWN),
        WeatherCondition.UNKNOWN,
    )
    return ForecastRecord(
        condition=condition,
        timestamp=timestamp,
        min_temperature=min(r.min_temperature for r in records),
        max_temperature=max(r.max_temperature for r in records),
        humidity=sum(humidities) / len(humidities) if humidities else 0.0,
        source=AGGREGATE_SOURCE,
    )


def bucket_key(timestamp: datetime, mode: AggregationMode) -> str:
    """Hour label (``"14:00"``) in day mode, weekday name in week mode."""
    if mode == AggregationMode.DAY:
        return f"{timestamp.hour:02d}:00"
    return calendar.day_name[timestamp.weekday()]


def aggregate_records(
    records: Iterable[ForecastRecord], mode: AggregationMode
) -> list[AggregatedBucket]:
    """
    Bucket normalized records and compute one representative per bucket.

    Records are first merged per timestamp (exact time in day mode, calendar
    date in week mode). The merged entries are then ordered chronologically and
    regrouped by hour or weekday, keeping the earliest entry for each key.

    Args:
        records: Records from any number of providers
        mode: Day (hourly buckets) or week (weekday buckets)

    Returns:
        Buckets in chronological order
    """
    by_time: dict[datetime, list[ForecastRecord]] = {}
    for record in records:
        if mode == AggregationMode.DAY:
            stamp = record.timestamp
        else:
            stamp = datetime.combine(record.timestamp.date(), datetime.min.time())
        by_time.setdefault(stamp, []).append(record)

    buckets: dict[str, AggregatedBucket] = {}
    for stamp in sorted(by_time):
        key = bucket_key(stamp, mode)
        if key in buckets:
            logger.debug(f"Bucket {key} already filled, dropping later entry at {stamp}")
            continue
        group = by_time[stamp]
        if mode == AggregationMode.DAY:
            stamp = stamp.replace(minute=0, second=0, microsecond=0)
        buckets[key] = AggregatedBucket(
            key=key,
            timestamp=stamp,
            record=merge_records(group, stamp),
            sources=sorted({r.source for r in group}),
        )

    return list(buckets.values())


class WeatherService:
    """Fans a forecast request out to all enabled providers and merges the results."""

    def __init__(
        self,
        providers: Iterable[WeatherProviderBase],
        is_enabled: Callable[[str], bool] | None = None,
        unavailable: Iterable[ProviderError] = (),
        simulate: bool = False,
    ) -> None:
        """
        Initialize the service.

        Args:
            providers: Constructed weather providers
            is_enabled: Looks up a provider's enabled flag by display name
            unavailable: Providers that failed to construct, reported while enabled
            simulate: Default for using bundled payloads instead of live APIs
        """
        self.providers = list(providers)
        self.is_enabled = is_enabled or (lambda _name: True)
        self.unavailable = list(unavailable)
        self.simulate = simulate
        logger.info(f"WeatherService initialized with {len(self.providers)} providers")

    def enabled_providers(self) -> list[WeatherProviderBase]:
        """Providers whose persisted flag is currently enabled."""
        return [p for p in self.providers if self.is_enabled(p.name)]

    async def _fetch_one(
        self,
        provider: WeatherProviderBase,
        location: Location,
        day: date,
        mode: AggregationMode,
        simulate: bool,
    ) -> FetchResult:
        if mode == AggregationMode.DAY:
            return await provider.fetch_day(day, location, simulate)
        return await provider.fetch_week(location, simulate)

    async def fetch(
        self,
        location: Location,
        day: date,
        mode: AggregationMode,
        simulate: bool | None = None,
    ) -> AggregationResult:
        """
        Fetch and aggregate forecasts from every enabled provider.

        Args:
            location: Place to forecast
            day: Requested date (used in day mode)
            mode: Day or week view
            simulate: Override the service's simulate default

        Returns:
            Ordered buckets plus one error per failed provider
        """
        simulate = self.simulate if simulate is None else simulate
        errors = [e for e in self.unavailable if self.is_enabled(e.provider)]

        # Flags are read once, before any call goes out
        providers = self.enabled_providers()
        if not providers:
            logger.warning("No weather providers enabled")
            return AggregationResult(mode=mode, errors=errors)

        logger.info(
            f"Fetching {mode.value} forecast for {location.name} from "
            f"{', '.join(p.name for p in providers)}"
        )
        results = await asyncio.gather(
            *(self._fetch_one(p, location, day, mode, simulate) for p in providers),
            return_exceptions=True,
        )

        records: list[ForecastRecord] = []
        for provider, result in zip(providers, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"{provider.name} failed unexpectedly: {result}")
                errors.append(
                    ProviderError(provider=provider.name, kind=ErrorKind.TRANSPORT, message=str(result))
                )
            elif not result.ok:
                logger.warning(f"{provider.name} returned no data: {result.error.message}")
                errors.append(result.error)
            else:
                logger.debug(f"{provider.name} returned {len(result.records)} records")
                records.extend(result.records)

        buckets = aggregate_records(records, mode)
        logger.info(f"Aggregated {len(records)} records into {len(buckets)} buckets")
        return AggregationResult(mode=mode, buckets=buckets, errors=errors)

    def fetch_sync(
        self,
        location: Location,
        day: date,
        mode: AggregationMode,
        simulate: bool | None = None,
    ) -> AggregationResult:
        """Blocking wrapper around :meth:`fetch` for callers without an event loop."""
        return asyncio.run(self.fetch(location, day, mode, simulate))


def has_fresh_weather(
    location: Location, now: datetime, max_age: timedelta = CURRENT_WEATHER_MAX_AGE
) -> bool:
    """Whether the location's attached weather is younger than ``max_age``."""
    if not location.weather_data:
        return False
    return now - location.weather_data[0].timestamp < max_age


class CurrentWeatherService:
    """
    Attaches current conditions to saved locations.

    Weather younger than an hour is reused; stale locations are fetched
    concurrently and written back to the location store.
    """

    def __init__(
        self,
        provider: OpenWeatherMapProvider,
        locations: LocationStore,
        clock: Callable[[], datetime] = datetime.now,
        simulate: bool = False,
    ) -> None:
        self.provider = provider
        self.locations = locations
        self.clock = clock
        self.simulate = simulate

    async def refresh(self, simulate: bool | None = None) -> CurrentWeatherResult:
        """
        Load saved locations, refreshing the ones with stale weather.

        Args:
            simulate: Override the service's simulate default

        Returns:
            Locations in store order, the number refreshed, and one error per
            failed lookup (those locations come back without weather)
        """
        simulate = self.simulate if simulate is None else simulate
        saved = self.locations.load_locations()
        now = self.clock()
        stale = [loc for loc in saved if not has_fresh_weather(loc, now)]
        logger.info(f"{len(saved) - len(stale)} location(s) fresh, refreshing {len(stale)}")

        results = await asyncio.gather(
            *(self.provider.fetch_current(loc, simulate) for loc in stale),
            return_exceptions=True,
        )

        updated: dict[str, Location] = {}
        errors: list[ProviderError] = []
        for location, result in zip(stale, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"Current weather for {location.name} failed unexpectedly: {result}")
                errors.append(
                    ProviderError(
                        provider=self.provider.name, kind=ErrorKind.TRANSPORT, message=str(result)
                    )
                )
                updated[location.place_id] = location.with_weather([])
            elif not result.ok:
                logger.warning(f"No current weather for {location.name}: {result.error.message}")
                errors.append(result.error)
                updated[location.place_id] = location.with_weather([])
            else:
                fresh = location.with_weather(result.records)
                self.locations.update_location(fresh)
                updated[location.place_id] = fresh

        return CurrentWeatherResult(
            locations=[updated.get(loc.place_id, loc) for loc in saved],
            errors=errors,
            refreshed=len(stale) - len(errors),
        )

    def refresh_sync(self, simulate: bool | None = None) -> CurrentWeatherResult:
        """Blocking wrapper around :meth:`refresh`."""
        return asyncio.run(self.refresh(simulate))
