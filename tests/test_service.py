"""Tests for forecast aggregation and the multi-provider fan-out."""

import asyncio
from datetime import date, datetime, timedelta

import pytest

from weather_aggregator.models import (
    AggregationMode,
    ErrorKind,
    FetchResult,
    ForecastRecord,
    ProviderError,
    WeatherCondition,
)
from weather_aggregator.providers import OpenWeatherMapProvider, WeatherbitProvider
from weather_aggregator.request_budget import JsonDocumentStore
from weather_aggregator.service import (
    CurrentWeatherService,
    WeatherService,
    aggregate_records,
    bucket_key,
    has_fresh_weather,
    merge_records,
)
from weather_aggregator.stores import LocationStore

DAY = date(2024, 5, 1)


def make_record(
    timestamp,
    condition=WeatherCondition.SUNNY,
    min_temperature=10.0,
    max_temperature=20.0,
    humidity=50.0,
    source="A",
):
    return ForecastRecord(
        condition=condition,
        timestamp=timestamp,
        min_temperature=min_temperature,
        max_temperature=max_temperature,
        humidity=humidity,
        source=source,
    )


class FakeProvider:
    """Minimal provider double returning canned results."""

    def __init__(self, name, result=None, exception=None):
        self.name = name
        self.result = result or FetchResult.success([])
        self.exception = exception
        self.calls = []

    async def fetch_day(self, day, location, simulate=False):
        self.calls.append(("day", day, simulate))
        return self._respond()

    async def fetch_week(self, location, simulate=False):
        self.calls.append(("week", None, simulate))
        return self._respond()

    def _respond(self):
        if self.exception:
            raise self.exception
        return self.result


class TestMergeRecords:
    """Test the per-bucket merge."""

    def test_humidity_mean_excludes_unknown(self):
        """Unknown humidities are left out of the mean."""
        at = datetime(2024, 5, 1, 14)
        records = [make_record(at, humidity=h) for h in (50, -1, 70)]

        merged = merge_records(records, at)

        assert merged.humidity == pytest.approx(60.0)

    def test_all_unknown_humidity_is_zero(self):
        at = datetime(2024, 5, 1, 14)
        merged = merge_records([make_record(at, humidity=-1), make_record(at, humidity=-1)], at)

        assert merged.humidity == 0.0

    def test_temperature_extremes(self):
        """Lowest minimum and highest maximum win."""
        at = datetime(2024, 5, 1, 14)
        records = [
            make_record(at, min_temperature=10, max_temperature=20),
            make_record(at, min_temperature=5, max_temperature=25),
        ]

        merged = merge_records(records, at)

        assert (merged.min_temperature, merged.max_temperature) == (5, 25)
        assert merged.source == "aggregate"

    def test_first_known_condition(self):
        """UNKNOWN never masks a recognized condition."""
        at = datetime(2024, 5, 1, 14)
        records = [
            make_record(at, condition=WeatherCondition.UNKNOWN),
            make_record(at, condition=WeatherCondition.RAIN),
            make_record(at, condition=WeatherCondition.SUNNY),
        ]

        assert merge_records(records, at).condition == WeatherCondition.RAIN

    def test_only_unknown_conditions(self):
        at = datetime(2024, 5, 1, 14)
        records = [make_record(at, condition=WeatherCondition.UNKNOWN)]

        assert merge_records(records, at).condition == WeatherCondition.UNKNOWN


class TestAggregateRecords:
    """Test bucketing by hour and weekday."""

    def test_bucket_keys(self):
        assert bucket_key(datetime(2024, 5, 1, 9, 30), AggregationMode.DAY) == "09:00"
        assert bucket_key(datetime(2024, 5, 1), AggregationMode.WEEK) == "Wednesday"

    def test_day_mode_merges_same_timestamp(self):
        """Records with the same timestamp from different providers share a bucket."""
        at = datetime(2024, 5, 1, 14)
        records = [
            make_record(at, min_temperature=12, max_temperature=16, humidity=40, source="A"),
            make_record(at, min_temperature=11, max_temperature=18, humidity=60, source="B"),
            make_record(datetime(2024, 5, 1, 15), source="A"),
        ]

        buckets = aggregate_records(records, AggregationMode.DAY)

        assert [b.key for b in buckets] == ["14:00", "15:00"]
        first = buckets[0]
        assert first.sources == ["A", "B"]
        assert (first.record.min_temperature, first.record.max_temperature) == (11, 18)
        assert first.record.humidity == pytest.approx(50.0)

    def test_day_mode_earliest_entry_per_hour_wins(self):
        """Different minutes in one hour collapse to the earliest entry."""
        records = [
            make_record(datetime(2024, 5, 1, 14, 30), min_temperature=1, source="late"),
            make_record(datetime(2024, 5, 1, 14, 0), min_temperature=9, source="early"),
        ]

        (bucket,) = aggregate_records(records, AggregationMode.DAY)

        assert bucket.key == "14:00"
        assert bucket.timestamp == datetime(2024, 5, 1, 14, 0)
        assert bucket.record.min_temperature == 9
        assert bucket.sources == ["early"]

    def test_day_mode_truncates_timestamp_to_hour(self):
        (bucket,) = aggregate_records(
            [make_record(datetime(2024, 5, 1, 9, 45))], AggregationMode.DAY
        )

        assert bucket.timestamp == datetime(2024, 5, 1, 9, 0)

    def test_week_mode_merges_same_date(self):
        """Different times on one date merge in week mode."""
        records = [
            make_record(datetime(2024, 5, 1, 0, 0), min_temperature=8, source="A"),
            make_record(datetime(2024, 5, 1, 7, 0), min_temperature=6, source="B"),
        ]

        (bucket,) = aggregate_records(records, AggregationMode.WEEK)

        assert bucket.key == "Wednesday"
        assert bucket.timestamp == datetime(2024, 5, 1)
        assert bucket.record.min_temperature == 6
        assert bucket.sources == ["A", "B"]

    def test_two_weeks_collapse_to_seven_weekdays(self):
        """Fourteen consecutive days give seven buckets; the first week wins."""
        start = datetime(2024, 5, 6)  # Monday
        records = [
            make_record(start + timedelta(days=offset), min_temperature=float(offset))
            for offset in reversed(range(14))
        ]

        buckets = aggregate_records(records, AggregationMode.WEEK)

        assert [b.key for b in buckets] == [
            "Monday",
            "Tuesday",
            "Wednesday",
            "Thursday",
            "Friday",
            "Saturday",
            "Sunday",
        ]
        assert [b.record.min_temperature for b in buckets] == [float(d) for d in range(7)]

    def test_buckets_are_chronological(self):
        records = [
            make_record(datetime(2024, 5, 1, 18)),
            make_record(datetime(2024, 5, 1, 6)),
            make_record(datetime(2024, 5, 1, 12)),
        ]

        buckets = aggregate_records(records, AggregationMode.DAY)

        assert [b.key for b in buckets] == ["06:00", "12:00", "18:00"]

    def test_no_records(self):
        assert aggregate_records([], AggregationMode.DAY) == []


class TestWeatherService:
    """Test the concurrent fan-out."""

    def test_partial_failure_keeps_data(self, amsterdam):
        """One failing provider does not drop the others' data."""
        at = datetime(2024, 5, 1, 14)
        providers = [
            FakeProvider("A", FetchResult.success([make_record(at, source="A")])),
            FakeProvider(
                "B", FetchResult.failure("B", ErrorKind.TRANSPORT, "401 - Invalid API key")
            ),
            FakeProvider("C", FetchResult.success([make_record(at, source="C")])),
        ]
        service = WeatherService(providers)

        result = asyncio.run(service.fetch(amsterdam, DAY, AggregationMode.DAY))

        assert len(result.buckets) == 1
        assert result.buckets[0].sources == ["A", "C"]
        assert result.error_messages == ["B: 401 - Invalid API key"]

    def test_all_failures_give_empty_buckets(self, amsterdam):
        providers = [
            FakeProvider("A", FetchResult.failure("A", ErrorKind.NO_DATA, "no data for the given date")),
            FakeProvider("B", FetchResult.failure("B", ErrorKind.ADMISSION_DENIED, "request limit reached")),
        ]

        result = asyncio.run(WeatherService(providers).fetch(amsterdam, DAY, AggregationMode.DAY))

        assert result.is_empty
        assert result.error_messages == [
            "A: no data for the given date",
            "B: request limit reached",
        ]

    def test_disabled_providers_are_not_called(self, amsterdam):
        enabled = FakeProvider("A")
        disabled = FakeProvider("B")
        service = WeatherService([enabled, disabled], is_enabled=lambda name: name == "A")

        asyncio.run(service.fetch(amsterdam, DAY, AggregationMode.WEEK))

        assert enabled.calls == [("week", None, False)]
        assert disabled.calls == []

    def test_no_enabled_providers(self, amsterdam):
        provider = FakeProvider("A")
        service = WeatherService([provider], is_enabled=lambda name: False)

        result = asyncio.run(service.fetch(amsterdam, DAY, AggregationMode.DAY))

        assert result.is_empty
        assert result.errors == []
        assert provider.calls == []

    def test_unexpected_exception_becomes_error(self, amsterdam):
        """A provider raising is reported, not propagated."""
        at = datetime(2024, 5, 1, 14)
        providers = [
            FakeProvider("A", exception=RuntimeError("boom")),
            FakeProvider("B", FetchResult.success([make_record(at, source="B")])),
        ]

        result = asyncio.run(WeatherService(providers).fetch(amsterdam, DAY, AggregationMode.DAY))

        assert len(result.buckets) == 1
        (error,) = result.errors
        assert error.provider == "A"
        assert error.kind == ErrorKind.TRANSPORT
        assert error.message == "boom"

    def test_unavailable_providers_reported_while_enabled(self, amsterdam):
        """Providers missing credentials show up as errors unless disabled."""
        missing = [
            ProviderError(provider="WeerLive", kind=ErrorKind.CREDENTIAL_MISSING, message="key"),
            ProviderError(provider="Test", kind=ErrorKind.CREDENTIAL_MISSING, message="key"),
        ]
        service = WeatherService(
            [FakeProvider("A")],
            is_enabled=lambda name: name != "Test",
            unavailable=missing,
        )

        result = asyncio.run(service.fetch(amsterdam, DAY, AggregationMode.DAY))

        assert [e.provider for e in result.errors] == ["WeerLive"]

    def test_simulate_flag_passed_through(self, amsterdam):
        provider = FakeProvider("A")
        service = WeatherService([provider], simulate=True)

        asyncio.run(service.fetch(amsterdam, DAY, AggregationMode.DAY))
        asyncio.run(service.fetch(amsterdam, DAY, AggregationMode.DAY, simulate=False))

        assert provider.calls == [("day", DAY, True), ("day", DAY, False)]

    def test_enabled_flags_read_at_fetch_time(self, amsterdam):
        """Toggling a provider between fetches takes effect on the next fetch."""
        flags = {"A": True}
        provider = FakeProvider("A")
        service = WeatherService([provider], is_enabled=lambda name: flags[name])

        service.fetch_sync(amsterdam, DAY, AggregationMode.DAY)
        flags["A"] = False
        service.fetch_sync(amsterdam, DAY, AggregationMode.DAY)

        assert len(provider.calls) == 1


class TestServiceWithProviders:
    """End-to-end aggregation over the simulated provider payloads."""

    def test_week_simulated_across_providers(self, make_provider, amsterdam):
        service = WeatherService(
            [make_provider(OpenWeatherMapProvider), make_provider(WeatherbitProvider)],
            simulate=True,
        )

        result = service.fetch_sync(amsterdam, DAY, AggregationMode.WEEK)

        assert result.errors == []
        assert [b.key for b in result.buckets] == ["Wednesday", "Thursday", "Friday"]
        assert result.buckets[0].sources == ["Open Weather Map", "Weatherbit"]
        wednesday = result.buckets[0].record
        assert wednesday.min_temperature == 8.0
        assert wednesday.max_temperature == 17.5
        assert wednesday.humidity == pytest.approx((66.25 + 61) / 2)
        assert wednesday.condition == WeatherCondition.SUNNY


class TestCurrentWeather:
    """Test attaching current conditions to saved locations."""

    @pytest.fixture
    def locations(self, tmp_path, amsterdam):
        locations = LocationStore(JsonDocumentStore(tmp_path / "places.json"))
        locations.save_location(amsterdam)
        return locations

    @pytest.fixture
    def service(self, make_provider, locations, clock):
        return CurrentWeatherService(
            make_provider(OpenWeatherMapProvider), locations, clock=clock, simulate=True
        )

    def test_freshness(self, amsterdam):
        now = datetime(2024, 5, 1, 12)
        recent = amsterdam.with_weather([make_record(now - timedelta(minutes=59))])
        old = amsterdam.with_weather([make_record(now - timedelta(hours=1))])

        assert not has_fresh_weather(amsterdam, now)
        assert has_fresh_weather(recent, now)
        assert not has_fresh_weather(old, now)

    def test_stale_location_fetched_and_saved(self, service, locations, clock):
        result = service.refresh_sync()

        assert result.errors == []
        assert result.refreshed == 1
        (location,) = result.locations
        (record,) = location.weather_data
        assert record.timestamp == clock.now
        assert record.condition == WeatherCondition.CLOUDY
        assert locations.load_locations()[0].weather_data == (record,)

    def test_recent_weather_reused(self, service, clock):
        service.refresh_sync()
        clock.advance(minutes=30)

        result = service.refresh_sync()

        assert result.refreshed == 0
        assert service.provider.budget.daily_count == 1
        assert result.locations[0].weather_data[0].timestamp == datetime(2024, 5, 1, 12)

    def test_old_weather_refetched(self, service, locations, clock):
        service.refresh_sync()
        clock.advance(hours=2)

        result = service.refresh_sync()

        assert result.refreshed == 1
        assert locations.load_locations()[0].weather_data[0].timestamp == datetime(2024, 5, 1, 14)

    def test_failure_clears_weather_and_reports(self, make_provider, locations, clock):
        provider = make_provider(OpenWeatherMapProvider, daily_limit=1)
        provider.budget.record_call()
        service = CurrentWeatherService(provider, locations, clock=clock)

        result = service.refresh_sync()

        assert result.refreshed == 0
        assert result.locations[0].weather_data == ()
        assert [e.kind for e in result.errors] == [ErrorKind.ADMISSION_DENIED]

    def test_no_saved_locations(self, make_provider, tmp_path, clock):
        empty = LocationStore(JsonDocumentStore(tmp_path / "empty.json"))
        service = CurrentWeatherService(make_provider(OpenWeatherMapProvider), empty, clock=clock)

        result = service.refresh_sync()

        assert result.locations == [] and result.errors == []
