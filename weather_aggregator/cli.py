"""Command-line interface for weather-aggregator."""

import asyncio
import sys
from datetime import date, datetime
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from weather_aggregator import __version__
from weather_aggregator.config import get_settings
from weather_aggregator.context import AppContext
from weather_aggregator.export import EXPORT_FORMATS, export_result
from weather_aggregator.logging_config import configure_from_env, get_logger
from weather_aggregator.models import AggregationMode, AggregationResult, Location, SaveLocationResult

console = Console()
logger = get_logger(__name__)


def _normalize(name: str) -> str:
    return "".join(c for c in name.lower() if c.isalnum())


def _build_context(simulate: bool) -> AppContext:
    return AppContext(simulate=True if simulate else None)


def _resolve_provider(app: AppContext, name: str) -> str:
    wanted = _normalize(name)
    for display_name in app.weather_provider_names:
        if _normalize(display_name) == wanted:
            return display_name
    console.print(f"❌ Unknown provider: {name}")
    console.print(f"   Known providers: {', '.join(app.weather_provider_names)}")
    sys.exit(1)


def _render_result(result: AggregationResult, location: Location) -> None:
    label = "Time" if result.mode == AggregationMode.DAY else "Day"
    table = Table(title=f"{result.mode.value.capitalize()} forecast for {location.name}")
    table.add_column(label, style="cyan")
    table.add_column("Condition")
    table.add_column("Min °C", justify="right")
    table.add_column("Max °C", justify="right")
    table.add_column("Humidity %", justify="right")
    table.add_column("Sources", style="dim")

    for bucket in result.buckets:
        record = bucket.record
        table.add_row(
            bucket.key,
            record.condition.display_name,
            f"{record.min_temperature:.1f}",
            f"{record.max_temperature:.1f}",
            f"{record.humidity:.0f}",
            ", ".join(bucket.sources),
        )

    if result.is_empty:
        console.print("📭 No forecast data available")
    else:
        console.print(table)

    for message in result.error_messages:
        console.print(f"⚠️  {message}")


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level (default: LOG_LEVEL or WARNING)",
)
def main(log_level: str | None) -> None:
    """Weather Aggregator: combined forecasts from multiple weather providers."""
    configure_from_env(get_settings().data_dir, level=log_level)


@main.command()
@click.argument("name", required=False)
@click.option("--lat", type=click.FloatRange(-90, 90), help="Latitude in decimal degrees")
@click.option("--lon", type=click.FloatRange(-180, 180), help="Longitude in decimal degrees")
@click.option(
    "--date",
    "day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Forecast date (YYYY-MM-DD, default today)",
)
@click.option("--week", is_flag=True, help="Show the week overview instead of one day")
@click.option("--simulate", is_flag=True, help="Use bundled sample payloads")
@click.option(
    "--export-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Also write JSON, CSV and TXT exports to this directory",
)
def forecast(
    name: str | None,
    lat: float | None,
    lon: float | None,
    day: datetime | None,
    week: bool,
    simulate: bool,
    export_dir: Path | None,
) -> None:
    """Show the aggregated forecast for a saved location or coordinates."""
    app = _build_context(simulate)

    if lat is not None and lon is not None:
        location = Location(name=name or f"{lat:.4f},{lon:.4f}", latitude=lat, longitude=lon)
    elif name:
        location = app.locations.find(name)
        if location is None:
            console.print(f"❌ No saved location named '{name}'. Use --lat/--lon or 'locations add'.")
            sys.exit(1)
    else:
        console.print("❌ Give a saved location name or both --lat and --lon")
        sys.exit(1)

    mode = AggregationMode.WEEK if week else AggregationMode.DAY
    target = day.date() if day else date.today()
    console.print(f"🌦️  Fetching {mode.value} forecast for {location.name} ({location.coordinates})")
    if app.simulate:
        console.print("🧪 Simulate mode: using bundled sample data")

    result = app.service.fetch_sync(location, target, mode)
    _render_result(result, location)

    if export_dir:
        for path in export_result(result, location, export_dir, EXPORT_FORMATS):
            console.print(f"💾 Saved {path}")


@main.command()
@click.argument("query")
@click.option("--simulate", is_flag=True, help="Use bundled sample payloads")
def search(query: str, simulate: bool) -> None:
    """Search for places by name."""
    app = _build_context(simulate)
    if app.geocoder is None:
        console.print("❌ Geocoding provider unavailable (is GEOCODING_API_KEY set?)")
        sys.exit(1)

    result = asyncio.run(app.geocoder.search(query, app.simulate))
    if not result.ok:
        console.print(f"❌ {result.error}")
        sys.exit(1)

    table = Table(title=f"Results for '{query}'")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("State")
    table.add_column("Country")
    table.add_column("Coordinates", style="dim")
    for index, location in enumerate(result.locations, start=1):
        table.add_row(str(index), location.name, location.state, location.country, location.coordinates)
    console.print(table)


@main.command()
def budget() -> None:
    """Show request counts and limits per provider."""
    app = _build_context(simulate=False)

    table = Table(title="Request budgets")
    table.add_column("Provider")
    table.add_column("Today", justify="right")
    table.add_column("This month", justify="right")
    table.add_column("Status")
    for status in app.budget_statuses():
        daily_limit = str(status.daily_limit) if status.daily_limit > 0 else "∞"
        monthly_limit = str(status.monthly_limit) if status.monthly_limit > 0 else "∞"
        table.add_row(
            status.provider,
            f"{status.daily_count}/{daily_limit}",
            f"{status.monthly_count}/{monthly_limit}",
            "[red]exhausted[/red]" if status.exhausted else "[green]ok[/green]",
        )
    console.print(table)

    for error in app.unavailable:
        console.print(f"⚠️  {error}")


@main.group()
def providers() -> None:
    """List, enable or disable weather providers."""


@providers.command(name="list")
def list_providers() -> None:
    """Show every weather provider and whether it is used."""
    app = _build_context(simulate=False)
    missing = {e.provider for e in app.unavailable}

    table = Table(title="Weather providers")
    table.add_column("Provider")
    table.add_column("Enabled")
    table.add_column("API key")
    for name in app.weather_provider_names:
        table.add_row(
            name,
            "✅" if app.is_enabled(name) else "❌",
            "missing" if name in missing else "ok",
        )
    console.print(table)


@providers.command()
@click.argument("name")
def enable(name: str) -> None:
    """Enable a provider by name."""
    app = _build_context(simulate=False)
    display_name = _resolve_provider(app, name)
    app.settings_store.set_enabled(display_name, True)
    console.print(f"✅ {display_name} enabled")


@providers.command()
@click.argument("name")
def disable(name: str) -> None:
    """Disable a provider by name."""
    app = _build_context(simulate=False)
    display_name = _resolve_provider(app, name)
    app.settings_store.set_enabled(display_name, False)
    console.print(f"🚫 {display_name} disabled")


@main.group()
def locations() -> None:
    """Manage favorite locations."""


@locations.command(name="list")
@click.option("--current", is_flag=True, help="Attach current weather (refreshed when over 1 h old)")
@click.option("--simulate", is_flag=True, help="Use bundled sample payloads")
def list_locations(current: bool, simulate: bool) -> None:
    """Show saved locations."""
    app = _build_context(simulate)
    errors = []
    if current:
        if app.current_weather is None:
            console.print("❌ Current weather needs Open Weather Map (is OPEN_WEATHER_MAP_API_KEY set?)")
            sys.exit(1)
        refreshed = app.current_weather.refresh_sync()
        saved, errors = refreshed.locations, refreshed.errors
    else:
        saved = app.locations.load_locations()

    if not saved:
        console.print("📭 No saved locations")
        return

    table = Table(title="Saved locations")
    table.add_column("Name")
    table.add_column("State")
    table.add_column("Country")
    table.add_column("Coordinates", style="dim")
    table.add_column("Place id", style="dim")
    if current:
        table.add_column("Now")
        table.add_column("°C", justify="right")
        table.add_column("Hum %", justify="right")
    for location in saved:
        row = [location.name, location.state, location.country, location.coordinates, location.place_id]
        if current:
            row.extend(_current_cells(location))
        table.add_row(*row)
    console.print(table)

    for error in errors:
        console.print(f"⚠️  {error}")


def _current_cells(location: Location) -> list[str]:
    if not location.weather_data:
        return ["-", "-", "-"]
    record = location.weather_data[0]
    return [
        record.condition.display_name,
        f"{record.min_temperature:.0f}-{record.max_temperature:.0f}",
        f"{record.humidity:.0f}",
    ]


@locations.command(name="add")
@click.argument("query")
@click.option("--pick", default=1, show_default=True, help="Which search result to save (1-based)")
@click.option("--simulate", is_flag=True, help="Use bundled sample payloads")
def add_location(query: str, pick: int, simulate: bool) -> None:
    """Search for a place and save it as a favorite."""
    app = _build_context(simulate)
    if app.geocoder is None:
        console.print("❌ Geocoding provider unavailable (is GEOCODING_API_KEY set?)")
        sys.exit(1)

    result = asyncio.run(app.geocoder.search(query, app.simulate))
    if not result.ok:
        console.print(f"❌ {result.error}")
        sys.exit(1)
    if not 1 <= pick <= len(result.locations):
        console.print(f"❌ Search returned {len(result.locations)} result(s), cannot pick #{pick}")
        sys.exit(1)

    location = result.locations[pick - 1]
    outcome = app.locations.save_location(location)
    if outcome == SaveLocationResult.DUPLICATE_LOCATION:
        console.print(f"ℹ️  {location.name} is already saved")
    else:
        console.print(f"⭐ Saved {location.name} ({location.coordinates})")


@locations.command(name="remove")
@click.argument("place_id")
def remove_location(place_id: str) -> None:
    """Remove a saved location by place id."""
    app = _build_context(simulate=False)
    if app.locations.remove_location(place_id):
        console.print(f"🗑️  Removed {place_id}")
    else:
        console.print(f"❌ No saved location with place id {place_id}")
        sys.exit(1)


if __name__ == "__main__":
    main()
