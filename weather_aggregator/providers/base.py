"""Base classes shared by all weather and geocoding providers."""

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import date, datetime
from importlib.resources import files
from typing import Any, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from weather_aggregator.config import (
    AppSettings,
    ProviderConfig,
    get_provider_config,
    get_settings,
    require_api_key,
)
from weather_aggregator.exceptions import MalformedResponseError, ProviderCallError
from weather_aggregator.http_cache import request
from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import (
    HUMIDITY_UNKNOWN,
    ErrorKind,
    FetchResult,
    ForecastRecord,
    Location,
    WeatherCondition,
)
from weather_aggregator.request_budget import JsonDocumentStore, RequestBudget

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

NO_ERROR_INFO = "Could not get error information."
LIMIT_REACHED = "request limit reached"
NO_DATA_FOR_DATE = "no data for the given date"


def load_fixture(filename: str) -> Any:
    """Load a bundled canned payload used in simulate mode."""
    resource = files("weather_aggregator").joinpath("fixtures", filename)
    return json.loads(resource.read_text(encoding="utf-8"))


def as_int(value: Any) -> int | None:
    """Coerce a provider code to int, or None when it is not numeric."""
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def as_key(value: Any) -> str:
    """Normalize a provider condition string for table lookup."""
    return value.strip().lower() if isinstance(value, str) else ""


class BaseProvider(ABC):
    """
    Plumbing shared by every provider: configuration, API key, request budget,
    HTTP transport and simulation fixtures.

    Subclasses set ``provider_id`` to their key in ``providers.yaml``.
    """

    provider_id: str
    service_type: str = "weather"

    def __init__(
        self,
        store: JsonDocumentStore,
        *,
        api_key: str | None = None,
        config: ProviderConfig | None = None,
        settings: AppSettings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the provider.

        Args:
            store: Shared document holding request counts
            api_key: API key (if None, read from the environment)
            config: Provider configuration (if None, loaded from providers.yaml)
            settings: Application settings (if None, get_settings())
            clock: Source of the current local time

        Raises:
            CredentialMissingError: If no API key is available
        """
        config = config or get_provider_config(self.service_type, self.provider_id)
        if config is None:
            raise ValueError(f"Provider configuration not found: {self.provider_id}")

        self.config = config
        self.settings = settings or get_settings()
        self.name = config.name
        self.endpoint = config.endpoint
        self.timeout_s = config.timeout_s
        self.clock = clock
        self.store = store
        self.api_key = api_key or require_api_key(config.name)
        self.budget = RequestBudget(
            config.name, config.daily_limit, config.monthly_limit, store, clock=clock
        )
        logger.debug(f"Initialized {self.name} provider: {self.endpoint}")

    async def _call(
        self,
        url: str,
        params: dict[str, Any] | None,
        fixture: str,
        simulate: bool = False,
    ) -> Any:
        """
        Run one admitted, counted request and return the decoded JSON body.

        Args:
            url: Request URL
            params: Query parameters
            fixture: Bundled payload substituted when simulating
            simulate: Use the fixture instead of the network

        Returns:
            Decoded JSON payload

        Raises:
            ProviderCallError: If admission is denied or the call fails
        """
        if not self.budget.can_admit():
            raise ProviderCallError(ErrorKind.ADMISSION_DENIED, LIMIT_REACHED)

        if simulate:
            logger.info(f"{self.name}: using simulated payload {fixture}")
            self.budget.record_call()
            return load_fixture(fixture)

        try:
            response = await asyncio.to_thread(
                request,
                "GET",
                url,
                params=params,
                timeout=self.timeout_s,
                cache=self.settings.cache,
            )
        except requests.RequestException as e:
            logger.error(f"{self.name} request failed: {e}")
            raise ProviderCallError(ErrorKind.TRANSPORT, str(e)) from e

        if not response.ok:
            message = self.error_message(response.status_code, response.text)
            logger.error(f"{self.name} API error: {message}")
            raise ProviderCallError(ErrorKind.TRANSPORT, message)

        self.budget.record_call()
        logger.info(f"{self.name}: request succeeded ({response.status_code})")

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e

    def error_message(self, status: int, text: str) -> str:
        """Build ``"<code> - <message>"`` from a non-success response body."""
        try:
            payload = json.loads(text)
        except ValueError:
            payload = None

        message = None
        if payload is not None:
            try:
                message = self.extract_error(status, payload)
            except (AttributeError, KeyError, TypeError, IndexError):
                message = None
        return message or f"{status} - {NO_ERROR_INFO}"

    def extract_error(self, status: int, payload: Any) -> str | None:
        """Provider-specific error extraction; ``None`` when absent."""
        message = payload.get("message") if isinstance(payload, dict) else None
        return f"{status} - {message}" if message else None

    @staticmethod
    def validate_payload(model: type[M], payload: Any) -> M:
        """Validate the top-level payload structure or fail the call."""
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Unexpected response structure: {e.error_count()} validation error(s)"
            ) from e

    def parse_items(
        self,
        items: Iterable[Any],
        model: type[M],
        convert: Callable[[M], ForecastRecord],
    ) -> list[ForecastRecord]:
        """Validate and convert items one by one, skipping malformed ones."""
        records = []
        for index, raw in enumerate(items):
            try:
                records.append(convert(model.model_validate(raw)))
            except (ValidationError, ValueError) as e:
                logger.warning(f"{self.name}: skipping malformed item {index}: {e}")
        return records


class WeatherProviderBase(BaseProvider):
    """
    Forecast provider contract: ``fetch_day``, ``fetch_week`` and
    ``map_condition``.

    Public fetch methods never raise for admission, transport or payload
    problems; they return a failed ``FetchResult`` instead.
    """

    async def fetch_day(
        self, day: date, location: Location, simulate: bool = False
    ) -> FetchResult:
        """
        Fetch hourly forecasts for a calendar date.

        Args:
            day: Requested date
            location: Place to forecast
            simulate: Use the bundled payload instead of the live API

        Returns:
            Fetch result with one record per forecast hour
        """
        logger.info(f"{self.name}: fetching day forecast for {location.name} on {day}")
        return await self._guarded(self._fetch_day(day, location, simulate))

    async def fetch_week(self, location: Location, simulate: bool = False) -> FetchResult:
        """
        Fetch daily forecasts for the coming days.

        Args:
            location: Place to forecast
            simulate: Use the bundled payload instead of the live API

        Returns:
            Fetch result with one record per forecast date
        """
        logger.info(f"{self.name}: fetching week forecast for {location.name}")
        return await self._guarded(self._fetch_week(location, simulate))

    async def _guarded(self, work) -> FetchResult:
        try:
            records = await work
        except ProviderCallError as e:
            return FetchResult.failure(self.name, e.kind, e.message)
        except MalformedResponseError as e:
            logger.error(f"{self.name}: malformed response: {e}")
            return FetchResult.failure(self.name, ErrorKind.MALFORMED_RESPONSE, str(e))
        except ValidationError as e:
            logger.error(f"{self.name}: response values out of range: {e}")
            return FetchResult.failure(
                self.name,
                ErrorKind.MALFORMED_RESPONSE,
                f"Response values out of range: {e.error_count()} validation error(s)",
            )
        return FetchResult.success(records)

    @abstractmethod
    async def _fetch_day(
        self, day: date, location: Location, simulate: bool
    ) -> list[ForecastRecord]:
        pass

    @abstractmethod
    async def _fetch_week(self, location: Location, simulate: bool) -> list[ForecastRecord]:
        pass

    @staticmethod
    @abstractmethod
    def map_condition(raw: Any) -> WeatherCondition:
        """Map a provider condition code or string; UNKNOWN when unrecognized."""

    def record(
        self,
        condition: Any,
        timestamp: datetime,
        min_temperature: float,
        max_temperature: float,
        humidity: float | None = None,
    ) -> ForecastRecord:
        """Build a ForecastRecord attributed to this provider.

        Timestamps are kept as the location's wall-clock time, so any UTC
        offset the provider reports is dropped.
        """
        return ForecastRecord(
            condition=self.map_condition(condition),
            timestamp=timestamp.replace(tzinfo=None),
            min_temperature=min_temperature,
            max_temperature=max_temperature,
            humidity=HUMIDITY_UNKNOWN if humidity is None else humidity,
            source=self.name,
        )

    @staticmethod
    def select_day(
        records: list[ForecastRecord], day: date, simulate: bool
    ) -> list[ForecastRecord]:
        """
        Keep the records on the requested date.

        When simulating, the first record's date stands in for the requested
        one since canned payloads carry fixed dates.

        Raises:
            ProviderCallError: If nothing falls on the date
        """
        if simulate and records:
            day = records[0].timestamp.date()
        selected = [r for r in records if r.timestamp.date() == day]
        if not selected:
            raise ProviderCallError(ErrorKind.NO_DATA, NO_DATA_FOR_DATE)
        return selected

    def group_by_date(self, records: list[ForecastRecord]) -> list[ForecastRecord]:
        """
        Collapse intra-day records into one record per calendar date.

        The condition comes from the date's first record; min and max span all
        of them; humidity is the mean of the known values.
        """
        by_date: dict[date, list[ForecastRecord]] = {}
        for record in records:
            by_date.setdefault(record.timestamp.date(), []).append(record)

        daily = []
        for day, group in by_date.items():
            humidities = [r.humidity for r in group if r.has_humidity]
            daily.append(
                ForecastRecord(
                    condition=group[0].condition,
                    timestamp=datetime.combine(day, datetime.min.time()),
                    min_temperature=min(r.min_temperature for r in group),
                    max_temperature=max(r.max_temperature for r in group),
                    humidity=sum(humidities) / len(humidities) if humidities else HUMIDITY_UNKNOWN,
                    source=self.name,
                )
            )
        return daily
