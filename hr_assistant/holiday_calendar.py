"""
Company holiday calendar.

Loads the built-in calendar from ``data.holidays`` or a JSON file
(``{"holidays": [{"date": ..., "name": ...}, ...]}``) and answers the
date/range/month/year questions the conversation needs.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path

from data.holidays import COMPANY_HOLIDAYS
from hr_assistant.config import settings
from hr_assistant.date_parser import coerce_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Holiday:
    date: date
    name: str
    type: str = "Company"
    optional: bool = False


def _to_holiday(entry: dict) -> Holiday | None:
    day = coerce_date(entry.get("date"))
    if day is None:
        logger.warning(f"Skipping holiday with invalid date: {entry}")
        return None
    return Holiday(
        date=day,
        name=entry.get("name") or "Holiday",
        type=entry.get("type") or "Company",
        optional=bool(entry.get("optional", False)),
    )


class HolidayCalendar:
    def __init__(self, entries: list[dict] | None = None):
        holidays = [h for h in map(_to_holiday, entries or []) if h]
        self._holidays = sorted(holidays, key=lambda h: h.date)
        self._by_date = {h.date: h for h in self._holidays}

    @classmethod
    def from_file(cls, path: str | Path) -> "HolidayCalendar":
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
        entries = payload.get("holidays", []) if isinstance(payload, dict) else payload
        logger.info(f"Loaded {len(entries)} holidays from {path}")
        return cls(entries)

    def list_holidays(
        self,
        year: int | None = None,
        month: int | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Holiday]:
        result = []
        for holiday in self._holidays:
            if year is not None and holiday.date.year != year:
                continue
            if month is not None and holiday.date.month != month:
                continue
            if start is not None and holiday.date < start:
                continue
            if end is not None and holiday.date > end:
                continue
            result.append(holiday)
        return result

    def get_holiday_dates(self, year: int | None = None, start=None, end=None) -> list[str]:
        """ISO dates of the holidays in the given year and/or range."""
        return [
            h.date.isoformat()
            for h in self.list_holidays(year=year, start=coerce_date(start), end=coerce_date(end))
        ]

    def get_holiday(self, day) -> Holiday | None:
        return self._by_date.get(coerce_date(day))

    def find_conflict(self, start, end=None) -> Holiday | None:
        """First holiday falling on any day of [start, end]."""
        first = coerce_date(start)
        last = coerce_date(end) or first
        if first is None:
            return None
        current = first
        while current <= last:
            holiday = self._by_date.get(current)
            if holiday is not None:
                return holiday
            current += timedelta(days=1)
        return None

    def __len__(self) -> int:
        return len(self._holidays)


def load_holiday_calendar(path: str | None = None) -> HolidayCalendar:
    """Calendar from the configured JSON file, or the built-in list."""
    path = path or settings.holidays_file
    if path:
        return HolidayCalendar.from_file(path)
    return HolidayCalendar(COMPANY_HOLIDAYS)
