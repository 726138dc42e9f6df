"""JSON-backed favorite locations and provider settings."""

from typing import Any

from pydantic import ValidationError

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import ForecastRecord, Location, SaveLocationResult
from weather_aggregator.request_budget import JsonDocumentStore

logger = get_logger(__name__)


def _location_from_entry(place_id: str, entry: dict[str, Any]) -> Location:
    weather = entry.get("WeatherData") or []
    return Location(
        name=entry["Name"],
        state=entry.get("State") or "Unknown",
        country=entry.get("Country") or "Unknown",
        place_id=place_id,
        latitude=entry["Latitude"],
        longitude=entry["Longitude"],
        weather_data=tuple(ForecastRecord.model_validate(w) for w in weather),
    )


def _entry_from_location(location: Location) -> dict[str, Any]:
    return {
        "Name": location.name,
        "Latitude": location.latitude,
        "Longitude": location.longitude,
        "Country": location.country,
        "State": location.state,
        "WeatherData": [r.model_dump(mode="json") for r in location.weather_data] or None,
    }


class LocationStore:
    """
    Favorite locations kept in ``places.json``::

        {"Locations": {"<place id>": {"Name": ..., "Latitude": ..., "Longitude": ...,
                                      "Country": ..., "State": ..., "WeatherData": null}}}
    """

    def __init__(self, store: JsonDocumentStore) -> None:
        self.store = store

    def load_locations(self) -> list[Location]:
        """Return all saved locations, skipping entries that fail validation."""
        entries = self.store.read().get("Locations")
        if not isinstance(entries, dict):
            return []

        locations = []
        for place_id, entry in entries.items():
            try:
                locations.append(_location_from_entry(place_id, entry))
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid saved location {place_id}: {e}")
        return locations

    def find(self, name: str) -> Location | None:
        """Find a saved location by name (case-insensitive)."""
        wanted = name.strip().lower()
        return next((loc for loc in self.load_locations() if loc.name.lower() == wanted), None)

    def save_location(self, location: Location) -> SaveLocationResult:
        """
        Add a location unless one with the same coordinates is already saved.

        Args:
            location: Location to save; its place id is the document key

        Returns:
            SUCCESS or DUPLICATE_LOCATION
        """
        if any(location.same_place(saved) for saved in self.load_locations()):
            logger.info(f"Location {location.name} already saved")
            return SaveLocationResult.DUPLICATE_LOCATION

        def apply(doc: dict[str, Any]) -> None:
            if not isinstance(doc.get("Locations"), dict):
                doc["Locations"] = {}
            doc["Locations"][location.place_id or location.coordinates] = _entry_from_location(
                location
            )

        self.store.update(apply)
        logger.info(f"Saved location {location.name}")
        return SaveLocationResult.SUCCESS

    def update_location(self, location: Location) -> bool:
        """
        Replace a saved location's record, e.g. after attaching fresh weather.

        Returns:
            False if no entry is stored under the location's key
        """
        key = location.place_id or location.coordinates

        def apply(doc: dict[str, Any]) -> bool:
            entries = doc.get("Locations")
            if not isinstance(entries, dict) or key not in entries:
                return False
            entries[key] = _entry_from_location(location)
            return True

        updated = self.store.update(apply)
        if not updated:
            logger.warning(f"Cannot update {location.name}: not a saved location")
        return updated

    def remove_location(self, place_id: str) -> bool:
        """Remove a saved location; returns False if it was not present."""

        def apply(doc: dict[str, Any]) -> bool:
            entries = doc.get("Locations")
            if isinstance(entries, dict) and place_id in entries:
                del entries[place_id]
                return True
            return False

        removed = self.store.update(apply)
        if removed:
            logger.info(f"Removed location {place_id}")
        return removed


class SettingsStore:
    """
    Simulate mode and per-provider enabled flags, stored next to the request
    counts in the shared application document::

        {"data": {"simulateMode": false}, "status": {"WeerLive": {"enabled": true}}}
    """

    def __init__(self, store: JsonDocumentStore) -> None:
        self.store = store

    @property
    def simulate_mode(self) -> bool:
        data = self.store.read().get("data")
        return bool(data.get("simulateMode", False)) if isinstance(data, dict) else False

    def set_simulate_mode(self, enabled: bool) -> None:
        def apply(doc: dict[str, Any]) -> None:
            if not isinstance(doc.get("data"), dict):
                doc["data"] = {}
            doc["data"]["simulateMode"] = enabled

        self.store.update(apply)

    def is_enabled(self, provider_name: str, default: bool = True) -> bool:
        """Whether a provider is enabled; unknown providers get ``default``."""
        status = self.store.read().get("status")
        if not isinstance(status, dict):
            return default
        entry = status.get(provider_name)
        if not isinstance(entry, dict) or "enabled" not in entry:
            return default
        return bool(entry["enabled"])

    def set_enabled(self, provider_name: str, enabled: bool) -> None:
        def apply(doc: dict[str, Any]) -> None:
            if not isinstance(doc.get("status"), dict):
                doc["status"] = {}
            entry = doc["status"].get(provider_name)
            if not isinstance(entry, dict):
                entry = doc["status"][provider_name] = {}
            entry["enabled"] = enabled

        self.store.update(apply)
        logger.info(f"{provider_name} {'enabled' if enabled else 'disabled'}")
