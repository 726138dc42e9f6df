"""Geoapify forward geocoding: turn a place name into candidate locations."""

from typing import Any

from pydantic import BaseModel, ValidationError

from weather_aggregator.exceptions import MalformedResponseError, ProviderCallError
from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import ErrorKind, Location, LocationSearchResult, ProviderError
from weather_aggregator.providers.base import BaseProvider

logger = get_logger(__name__)

UNKNOWN = "Unknown"


class GeoapifyResult(BaseModel):
    city: str | None = None
    state: str | None = None
    country: str | None = None
    place_id: str | None = None
    lat: float = 0.0
    lon: float = 0.0

    def to_location(self) -> Location:
        return Location(
            name=self.city or UNKNOWN,
            state=self.state or UNKNOWN,
            country=self.country or UNKNOWN,
            place_id=self.place_id or UNKNOWN,
            latitude=self.lat,
            longitude=self.lon,
        )


class GeoapifyResponse(BaseModel):
    results: list[Any]


class GeocodingProvider(BaseProvider):
    """Provider for the Geoapify geocoding search API."""

    provider_id = "geocoding"
    service_type = "geocoding"

    async def search(self, query: str, simulate: bool = False) -> LocationSearchResult:
        """
        Search for places matching a free-text query.

        Args:
            query: Place name as typed by the user
            simulate: Use the bundled payload instead of the live API

        Returns:
            Search result with candidate locations
        """
        params = {
            "filter": f"countrycode:{self.settings.geocoding_country}",
            "text": query,
            "format": "json",
            "lang": self.settings.language,
            "apiKey": self.api_key,
        }
        logger.info(f"{self.name}: searching for '{query}'")

        try:
            payload = await self._call(
                f"{self.endpoint}/v1/geocode/search", params, "geocoding.json", simulate
            )
            response = self.validate_payload(GeoapifyResponse, payload)
        except ProviderCallError as e:
            return self._failure(e.kind, e.message)
        except MalformedResponseError as e:
            return self._failure(ErrorKind.MALFORMED_RESPONSE, str(e))

        locations = []
        for index, raw in enumerate(response.results):
            try:
                locations.append(GeoapifyResult.model_validate(raw).to_location())
            except ValidationError as e:
                logger.warning(f"{self.name}: skipping malformed result {index}: {e}")
        return LocationSearchResult(ok=True, locations=locations)

    def _failure(self, kind: ErrorKind, message: str) -> LocationSearchResult:
        return LocationSearchResult(
            ok=False, error=ProviderError(provider=self.name, kind=kind, message=message)
        )
