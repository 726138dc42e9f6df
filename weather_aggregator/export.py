"""Write an aggregated forecast to JSON, CSV and plain-text files."""

import csv
import json
from datetime import datetime
from pathlib import Path

from weather_aggregator.logging_config import get_logger
from weather_aggregator.models import AggregatedBucket, AggregationResult, Location

logger = get_logger(__name__)

EXPORT_FORMATS = ("json", "csv", "txt")
CSV_HEADER = ["Place", "Time", "Condition", "Min Temperature", "Max Temperature", "Humidity"]


def display_line(bucket: AggregatedBucket) -> str:
    """One human-readable line per bucket, e.g. ``14:00  Sunny  8.1-16.9 °C  62%``."""
    record = bucket.record
    return (
        f"{bucket.key:<10} {record.condition.display_name:<14} "
        f"{record.min_temperature:.1f}-{record.max_temperature:.1f} °C  "
        f"{record.humidity:.0f}%"
    )


def _write_json(path: Path, result: AggregationResult, location: Location) -> None:
    payload = {
        "location": location.name,
        "mode": result.mode.value,
        "weather_data": [b.model_dump(mode="json") for b in result.buckets],
        "errors": result.error_messages,
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


def _write_csv(path: Path, result: AggregationResult, location: Location) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, delimiter=";")
        writer.writerow(CSV_HEADER)
        for bucket in result.buckets:
            record = bucket.record
            writer.writerow(
                [
                    location.name,
                    bucket.timestamp.isoformat(sep=" "),
                    record.condition.display_name,
                    f"{record.min_temperature:.1f} °C",
                    f"{record.max_temperature:.1f} °C",
                    f"{record.humidity:.1f}",
                ]
            )


def _write_txt(path: Path, result: AggregationResult, location: Location) -> None:
    lines = [f"Location: {location.name}"]
    lines.extend(display_line(b) for b in result.buckets)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


WRITERS = {"json": _write_json, "csv": _write_csv, "txt": _write_txt}


def export_result(
    result: AggregationResult,
    location: Location,
    directory: Path,
    formats: tuple[str, ...] = EXPORT_FORMATS,
    now: datetime | None = None,
) -> list[Path]:
    """
    Export an aggregated forecast.

    Args:
        result: Aggregated forecast to write
        location: Location the forecast is for
        directory: Output directory (created if missing)
        formats: Any of "json", "csv", "txt"
        now: Timestamp used in file names (defaults to the current time)

    Returns:
        Paths of the files written
    """
    unknown = set(formats) - set(WRITERS)
    if unknown:
        raise ValueError(f"Unsupported export format(s): {', '.join(sorted(unknown))}")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = (now or datetime.now()).strftime("%d%m%Y_%H%M%S")
    safe_name = "".join(c if c.isalnum() else "_" for c in location.name)

    written = []
    for fmt in formats:
        path = directory / f"WeatherData_{safe_name}_{stamp}.{fmt}"
        WRITERS[fmt](path, result, location)
        logger.info(f"Weather data exported to {fmt.upper()}: {path}")
        written.append(path)
    return written
