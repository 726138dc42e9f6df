"""
Per-provider request budgets persisted in a shared JSON document.

Each provider owns one entry under ``requestCounts``::

    {"requestCounts": {"WeerLive": {"requestsDay": {"count": 3, "date": "2024-05-01"},
                                     "requestsMonth": {"count": 40, "month": "2024-05"}}}}

All providers share the file, so every read-modify-write goes through a single
store-wide lock.
"""

import json
import os
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from weather_aggregator.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DAY_FORMAT = "%Y-%m-%d"
MONTH_FORMAT = "%Y-%m"


class JsonDocumentStore:
    """A JSON file read and rewritten as a whole under one lock."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_unlocked(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring store {self.path}: top level is not an object")
            return {}
        return data

    def _write_unlocked(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def read(self) -> dict[str, Any]:
        """Return a fresh copy of the whole document."""
        with self._lock:
            return self._read_unlocked()

    def update(self, mutator: Callable[[dict[str, Any]], T]) -> T:
        """
        Apply ``mutator`` to the document and persist it if it changed.

        Args:
            mutator: Function that edits the document in place

        Returns:
            Whatever the mutator returns
        """
        with self._lock:
            data = self._read_unlocked()
            before = json.dumps(data, sort_keys=True)
            result = mutator(data)
            if json.dumps(data, sort_keys=True) != before:
                self._write_unlocked(data)
            return result


class BudgetStatus(BaseModel):
    """Snapshot of a provider's counters for display."""

    provider: str
    daily_count: int
    daily_limit: int
    day: str
    monthly_count: int
    monthly_limit: int
    month: str

    @property
    def exhausted(self) -> bool:
        return _limit_reached(self.daily_count, self.daily_limit) or _limit_reached(
            self.monthly_count, self.monthly_limit
        )


def _limit_reached(count: int, limit: int) -> bool:
    return limit > 0 and count >= limit


def _read_count(section: Any, period_key: str) -> tuple[int, str | None]:
    """Extract (count, period) from a stored section, tolerating bad shapes."""
    if not isinstance(section, dict):
        return 0, None
    count = section.get("count")
    period = section.get(period_key)
    if not isinstance(count, int) or isinstance(count, bool) or count < 0:
        return 0, None
    if not isinstance(period, str):
        return 0, None
    return count, period


class RequestBudget:
    """
    Daily and monthly request counters for one provider.

    Limits <= 0 never block. Counters roll over to zero as soon as the stored
    day or month differs from the clock's, and the rollover is persisted
    immediately.
    """

    def __init__(
        self,
        provider_name: str,
        daily_limit: int,
        monthly_limit: int,
        store: JsonDocumentStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Load persisted counts for a provider.

        Args:
            provider_name: Provider display name, used as the store key
            daily_limit: Maximum calls per calendar day (<= 0 for unlimited)
            monthly_limit: Maximum calls per calendar month (<= 0 for unlimited)
            store: Shared JSON document holding all providers' counts
            clock: Source of the current local time
        """
        self.provider_name = provider_name
        self.daily_limit = daily_limit
        self.monthly_limit = monthly_limit
        self.store = store
        self.clock = clock

        self.daily_count = 0
        self.monthly_count = 0
        self.day = ""
        self.month = ""
        self._sync(increment=False)

    def _sync(self, increment: bool) -> None:
        now = self.clock()
        today = now.strftime(DAY_FORMAT)
        this_month = now.strftime(MONTH_FORMAT)

        def apply(doc: dict[str, Any]) -> tuple[int, int]:
            counts = doc.get("requestCounts")
            if not isinstance(counts, dict):
                counts = doc["requestCounts"] = {}
            entry = counts.get(self.provider_name)
            if not isinstance(entry, dict):
                entry = {}

            day_count, stored_day = _read_count(entry.get("requestsDay"), "date")
            month_count, stored_month = _read_count(entry.get("requestsMonth"), "month")

            if stored_day != today:
                if stored_day is not None:
                    logger.debug(f"{self.provider_name}: daily counter reset ({stored_day} -> {today})")
                day_count = 0
            if stored_month != this_month:
                if stored_month is not None:
                    logger.debug(
                        f"{self.provider_name}: monthly counter reset ({stored_month} -> {this_month})"
                    )
                month_count = 0

            if increment:
                day_count += 1
                month_count += 1

            counts[self.provider_name] = {
                "requestsDay": {"count": day_count, "date": today},
                "requestsMonth": {"count": month_count, "month": this_month},
            }
            return day_count, month_count

        self.daily_count, self.monthly_count = self.store.update(apply)
        self.day = today
        self.month = this_month

    def can_admit(self) -> bool:
        """Check whether another call fits in both the daily and monthly limit."""
        self._sync(increment=False)
        if _limit_reached(self.daily_count, self.daily_limit):
            logger.warning(
                f"{self.provider_name}: daily request limit reached "
                f"({self.daily_count}/{self.daily_limit})"
            )
            return False
        if _limit_reached(self.monthly_count, self.monthly_limit):
            logger.warning(
                f"{self.provider_name}: monthly request limit reached "
                f"({self.monthly_count}/{self.monthly_limit})"
            )
            return False
        return True

    def record_call(self) -> None:
        """Count one successful call against both counters and persist."""
        self._sync(increment=True)
        logger.debug(
            f"{self.provider_name}: {self.daily_count} calls today, "
            f"{self.monthly_count} this month"
        )

    def status(self) -> BudgetStatus:
        """Current counters and limits, after applying any rollover."""
        self._sync(increment=False)
        return BudgetStatus(
            provider=self.provider_name,
            daily_count=self.daily_count,
            daily_limit=self.daily_limit,
            day=self.day,
            monthly_count=self.monthly_count,
            monthly_limit=self.monthly_limit,
            month=self.month,
        )
