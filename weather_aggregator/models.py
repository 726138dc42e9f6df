"""
Pydantic models shared by providers, the aggregation service and the stores.

Provider payloads are validated into provider-specific intermediate models
inside each provider module; everything downstream works on the normalized
models defined here.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

HUMIDITY_UNKNOWN = -1.0


class WeatherCondition(str, Enum):
    """Shared weather-state vocabulary every provider maps into."""

    SUNNY = "sunny"
    RAIN = "rain"
    CLOUDY = "cloudy"
    THUNDERSTORM = "thunderstorm"
    SNOW = "snow"
    PARTLY_CLOUDY = "partly_cloudy"
    HAIL = "hail"
    MIST = "mist"
    STORMY = "stormy"
    WINDY = "windy"
    DRIZZLE = "drizzle"
    FOG = "fog"
    HAZE = "haze"
    DUST = "dust"
    ASH = "ash"
    SQUALL = "squall"
    TORNADO = "tornado"
    SAND = "sand"
    SMOKE = "smoke"
    CLEAR = "clear"
    COLD = "cold"
    ICE = "ice"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        """Human-readable label, e.g. ``Partly cloudy``."""
        return self.value.replace("_", " ").capitalize()


class AggregationMode(str, Enum):
    """Time unit forecasts are bucketed by."""

    DAY = "day"
    WEEK = "week"


class ErrorKind(str, Enum):
    """Why a provider call produced no data."""

    ADMISSION_DENIED = "admission_denied"
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed_response"
    NO_DATA = "no_data"
    CREDENTIAL_MISSING = "credential_missing"


class Location(BaseModel):
    """A named place; two locations are the same place when lat/lon match."""

    model_config = ConfigDict(frozen=True)

    name: str
    state: str = "Unknown"
    country: str = "Unknown"
    place_id: str = ""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    weather_data: tuple["ForecastRecord", ...] = ()

    def same_place(self, other: "Location") -> bool:
        """Check whether both locations point at the same coordinates."""
        return self.latitude == other.latitude and self.longitude == other.longitude

    def with_weather(self, records: list["ForecastRecord"]) -> "Location":
        """Return a copy carrying the given forecast records."""
        return self.model_copy(update={"weather_data": tuple(records)})

    @property
    def coordinates(self) -> str:
        return f"{self.latitude},{self.longitude}"


class ForecastRecord(BaseModel):
    """One normalized forecast reading from one provider."""

    model_config = ConfigDict(frozen=True)

    condition: WeatherCondition
    timestamp: datetime
    min_temperature: float = Field(description="Minimum temperature in Celsius")
    max_temperature: float = Field(description="Maximum temperature in Celsius")
    humidity: float = Field(
        default=HUMIDITY_UNKNOWN,
        description="Relative humidity in percent, or -1 when unavailable",
    )
    source: str = Field(description="Display name of the producing provider")

    @field_validator("humidity")
    @classmethod
    def validate_humidity(cls, v: float) -> float:
        """Humidity is a percentage or exactly the unknown sentinel."""
        if v == HUMIDITY_UNKNOWN or 0 <= v <= 100:
            return v
        raise ValueError(f"Humidity must be within 0-100 or -1, got {v}")

    @property
    def has_humidity(self) -> bool:
        return self.humidity != HUMIDITY_UNKNOWN


class ProviderError(BaseModel):
    """A single provider's failure, surfaced alongside aggregated data."""

    provider: str
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.provider}: {self.message}"


class FetchResult(BaseModel):
    """Internal result from a provider forecast fetch."""

    ok: bool = Field(description="Whether the fetch was successful")
    records: list[ForecastRecord] = Field(default_factory=list)
    error: ProviderError | None = Field(default=None, description="Error if not ok")

    @classmethod
    def success(cls, records: list[ForecastRecord]) -> "FetchResult":
        return cls(ok=True, records=records)

    @classmethod
    def failure(cls, provider: str, kind: ErrorKind, message: str) -> "FetchResult":
        return cls(ok=False, error=ProviderError(provider=provider, kind=kind, message=message))


class LocationSearchResult(BaseModel):
    """Internal result from a geocoding search."""

    ok: bool
    locations: list[Location] = Field(default_factory=list)
    error: ProviderError | None = None


class AggregatedBucket(BaseModel):
    """One hour (day view) or one weekday (week view) of merged forecasts."""

    key: str = Field(description="Hour '00'-'23' or weekday name")
    timestamp: datetime = Field(description="Earliest contributing timestamp, for ordering")
    record: ForecastRecord
    sources: list[str] = Field(default_factory=list)


class AggregationResult(BaseModel):
    """Ordered buckets plus any provider failures collected during the fan-out."""

    mode: AggregationMode
    buckets: list[AggregatedBucket] = Field(default_factory=list)
    errors: list[ProviderError] = Field(default_factory=list)

    @property
    def error_messages(self) -> list[str]:
        return [str(e) for e in self.errors]

    @property
    def is_empty(self) -> bool:
        return not self.buckets


class CurrentWeatherResult(BaseModel):
    """Saved locations with their current conditions attached."""

    locations: list[Location] = Field(default_factory=list)
    errors: list[ProviderError] = Field(default_factory=list)
    refreshed: int = Field(default=0, description="Locations fetched rather than reused")


class SaveLocationResult(str, Enum):
    """Outcome of adding a favorite location."""

    SUCCESS = "success"
    DUPLICATE_LOCATION = "duplicate_location"


Location.model_rebuild()
