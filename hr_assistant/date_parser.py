"""
Natural-language date and duration parsing.

Turns fragments such as "tomorrow", "next friday", "15th to 17th November",
"15-04-2026" or "2 days" into calendar dates, date ranges and day counts.

Parsing never raises for text it recognises. Problems such as an invalid
day for a month or an end date before the start date are reported through
``DateParseResult.errors`` so the conversation can ask the user to correct
them instead of failing.

Numeric dates are always read day-first (15-04-2026 is 15 April).
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

MONTHS = {
    "jan": 1,
    "january": 1,
    "feb": 2,
    "february": 2,
    "mar": 3,
    "march": 3,
    "apr": 4,
    "april": 4,
    "may": 5,
    "jun": 6,
    "june": 6,
    "jul": 7,
    "july": 7,
    "aug": 8,
    "august": 8,
    "sep": 9,
    "sept": 9,
    "september": 9,
    "oct": 10,
    "october": 10,
    "nov": 11,
    "november": 11,
    "dec": 12,
    "december": 12,
}

# Index matches date.weekday()
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

# Longest names first so "september" is preferred over "sep"
_MONTH_ALT = "|".join(sorted(MONTHS, key=len, reverse=True))
_ORD = r"(?:st|nd|rd|th)"

_MONTH_NAME = re.compile(rf"\b(?:{_MONTH_ALT})\b", re.IGNORECASE)

_RELATIVE = [
    (re.compile(r"\bday\s+after\s+tomorrow\b"), 2),
    (re.compile(r"\btomorrow\b"), 1),
    (re.compile(r"\byesterday\b"), -1),
    (re.compile(r"\btoday\b"), 0),
]

_WEEKDAY_PHRASE = re.compile(rf"\b(this|next|coming)\s+({'|'.join(WEEKDAYS)})\b")

_ISO = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_NUMERIC_WITH_YEAR = re.compile(r"(?<![\d./-])(\d{1,2})[./-](\d{1,2})[./-](\d{4})\b")
_NUMERIC_NO_YEAR = re.compile(
    r"(?<![\d./-])(\d{1,2})[./-](\d{1,2})(?![\d./-])(?!\s*(?:days?|hours?|hrs?)\b)"
)
_DAY_FIRST = re.compile(
    rf"\b(\d{{1,2}})\s*{_ORD}?\s+(?:of\s+)?({_MONTH_ALT})\b(?:\s*,?\s*(\d{{4}})\b)?"
)
_MONTH_FIRST = re.compile(
    rf"\b({_MONTH_ALT})\s+(\d{{1,2}})\s*{_ORD}?\b(?:\s*,?\s*(\d{{4}})\b)?"
)
_LONE_DAY = re.compile(
    rf"(?<![\d./-])\b(\d{{1,2}}){_ORD}?\b(?![./-]\d)"
    r"(?!\s*(?:days?|weeks?|months?|years?|hours?|hrs?|half)\b)"
)
_SPECIFIC_MONTH = re.compile(r"\b(this|next)\s+month\b")

_DATE_TOKEN = (
    r"(?:\d{4}-\d{1,2}-\d{1,2}"
    r"|\d{1,2}[./-]\d{1,2}[./-]\d{4}"
    r"|\d{1,2}[./-](?:1[0-2]|0?[1-9])(?![\d./-])"
    rf"|(?:{_MONTH_ALT})\s+\d{{1,2}}{_ORD}?(?:\s*,?\s*\d{{4}})?"
    rf"|\d{{1,2}}{_ORD}?(?:\s+(?:of\s+)?(?:{_MONTH_ALT}))?(?:\s*,?\s*\d{{4}})?"
    r")"
)
_TOKEN_RANGE = re.compile(
    rf"(?<![\d./-])\b(?P<left>{_DATE_TOKEN})(?:\s*(?:\bto\b|\btill\b|\buntil\b|\bthrough\b|–|—)\s*|\s+-\s+)"
    rf"(?P<right>{_DATE_TOKEN})(?![\d/])(?![.-]\d)\b"
    r"(?!\s*(?:days?|weeks?|months?|hours?|hrs?)\b)"
)
_FROM_RANGE = re.compile(
    r"\bfrom\s+(?P<left>.+?)\s+(?:to|till|until|through)\s+(?P<right>.+?)"
    r"(?:\s+(?:for|because|as|since)\b.*)?$"
)

_DURATION = re.compile(r"\b(\d+(?:\.\d+)?)\s*(?:day|days)\b")
_HALF_DAY = re.compile(r"\bhalf(?:[- ]a)?[- ]?days?\b")
_PART_OF_DAY = re.compile(r"\b(?:morning|afternoon)\b")

ERROR_NO_TEXT = "No text provided."
ERROR_UNPARSEABLE = "Unable to understand the requested date."
ERROR_END_BEFORE_START = "End date cannot be earlier than start date."


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range; construction rejects an end before the start."""

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(ERROR_END_BEFORE_START)

    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range((self.end - self.start).days + 1)]


@dataclass
class DateParseResult:
    start_date: date | None = None
    end_date: date | None = None
    errors: list[str] = field(default_factory=list)
    is_range: bool = False

    @property
    def ok(self) -> bool:
        return self.start_date is not None and not self.errors

    @property
    def error(self) -> str | None:
        return self.errors[0] if self.errors else None

    @property
    def date_range(self) -> DateRange | None:
        if not self.ok:
            return None
        return DateRange(self.start_date, self.end_date or self.start_date)


@dataclass(frozen=True)
class DurationSpec:
    days: float | int | None = None
    is_half_day: bool = False
    has_explicit_duration: bool = False


@dataclass(frozen=True)
class _Resolved:
    value: date | None
    error: str | None = None
    # "bare_day" marks a date built from a lone day number; range boundaries
    # of that kind may borrow the month of the other boundary.
    kind: str = "absolute"
    day: int | None = None


def to_iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def coerce_date(value) -> date | None:
    """Accept a date, datetime or ISO string; return None when it cannot be read."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return dateutil_parser.isoparse(value.strip()).date()
        except (ValueError, OverflowError):
            return None
    return None


def _build_date(year: int, month: int, day: int, segment: str) -> _Resolved:
    if not 1 <= month <= 12:
        return _Resolved(None, f'Invalid month in "{segment}".', day=day)
    try:
        candidate = date(year, month, day)
    except ValueError:
        return _Resolved(None, f'Invalid day for the specified month in "{segment}".', day=day)
    return _Resolved(candidate, day=day)


class DateParserService:
    """Date/duration parser used by the conversation flows."""

    def parse_dates(self, text: str, reference_date: date | None = None) -> DateParseResult:
        """Parse a range if one is present, otherwise a single date."""
        reference = reference_date or date.today()
        trimmed = (text or "").strip()
        if not trimmed:
            return DateParseResult(errors=[ERROR_NO_TEXT])

        range_result = self.parse_date_range(trimmed, reference)
        if range_result is not None:
            return range_result

        return self.parse_single_date(trimmed, reference)

    def parse_single_date(self, text: str, reference_date: date | None = None) -> DateParseResult:
        reference = reference_date or date.today()
        trimmed = (text or "").strip()
        if not trimmed:
            return DateParseResult(errors=[ERROR_NO_TEXT])

        resolved = self._parse_single(trimmed, reference)
        if resolved is None:
            return DateParseResult(errors=[ERROR_UNPARSEABLE])
        if resolved.error:
            return DateParseResult(errors=[resolved.error])
        return DateParseResult(start_date=resolved.value, end_date=resolved.value)

    def parse_date_range(self, text: str, reference_date: date | None = None) -> DateParseResult | None:
        """
        Parse "X to Y", "X till Y", "X - Y" or "from X to Y".

        Returns None when the text does not look like a range at all.
        A side without a month name borrows the month and year of the side
        that has one, so "15th to 17th November" stays in November.
        """
        reference = reference_date or date.today()
        normalized = (text or "").strip().lower()
        if not normalized:
            return None

        match = _TOKEN_RANGE.search(normalized) or _FROM_RANGE.search(normalized)
        if not match:
            return None

        left_raw, right_raw = match.group("left"), match.group("right")
        left = self._parse_boundary(left_raw.strip(), reference)
        right = self._parse_boundary(right_raw.strip(), reference)

        # Neither side is a date: "from" was ordinary prose
        if left is None and right is None:
            return None

        left = left or _Resolved(None, f'Could not understand "{left_raw.strip()}".')
        right = right or _Resolved(None, f'Could not understand "{right_raw.strip()}".')

        left_has_month = bool(_MONTH_NAME.search(left_raw))
        right_has_month = bool(_MONTH_NAME.search(right_raw))
        if left_has_month and not right_has_month and left.value and right.kind == "bare_day":
            right = _build_date(left.value.year, left.value.month, right.day, right_raw.strip())
        elif right_has_month and not left_has_month and right.value and left.kind == "bare_day":
            left = _build_date(right.value.year, right.value.month, left.day, left_raw.strip())

        errors = []
        if left.value is None:
            errors.append(left.error or "Unable to parse start date.")
        if right.value is None:
            errors.append(right.error or "Unable to parse end date.")
        if not errors and right.value < left.value:
            errors.append(ERROR_END_BEFORE_START)

        return DateParseResult(
            start_date=left.value, end_date=right.value, errors=errors, is_range=True
        )

    def parse_duration(self, text: str) -> DurationSpec:
        normalized = (text or "").lower()
        days = None
        explicit = False

        match = _DURATION.search(normalized)
        if match:
            value = float(match.group(1))
            if value > 0:
                explicit = True
                if value == 0.5:
                    days = 0.5
                else:
                    days = math.ceil(value)

        is_half_day = bool(_HALF_DAY.search(normalized)) or days == 0.5
        if not is_half_day and days is None and _PART_OF_DAY.search(normalized):
            is_half_day = True

        if is_half_day:
            return DurationSpec(days=0.5, is_half_day=True, has_explicit_duration=True)

        return DurationSpec(days=days, is_half_day=False, has_explicit_duration=explicit)

    def calculate_inclusive_days(
        self,
        start,
        end,
        is_half_day: bool = False,
        exclude_weekends: bool = True,
        holiday_dates: Iterable = (),
    ) -> float | int:
        """
        Count the days in [start, end] by walking the calendar.

        Weekends are skipped when exclude_weekends is set; any date listed in
        holiday_dates is always skipped. A half day is 0.5 regardless of range.
        """
        start_date = coerce_date(start)
        end_date = coerce_date(end)
        if start_date is None or end_date is None:
            return 0
        if is_half_day:
            return 0.5

        holidays = {d.isoformat() for d in map(coerce_date, holiday_dates) if d}
        count = 0
        current = start_date
        while current <= end_date:
            if exclude_weekends and current.weekday() >= 5:
                pass
            elif current.isoformat() in holidays:
                pass
            else:
                count += 1
            current += timedelta(days=1)
        return count

    def project_end_date(self, start, duration_days: float | int) -> date | None:
        """Naive projection: start + ceil(duration) - 1 calendar days."""
        start_date = coerce_date(start)
        if start_date is None or not duration_days or duration_days <= 1:
            return start_date
        return start_date + timedelta(days=math.ceil(duration_days) - 1)

    def reconcile_end_date(self, start, end, working_days: float | int) -> date | None:
        """Push end forward until [start, end] holds the requested number of weekdays."""
        start_date = coerce_date(start)
        end_date = coerce_date(end) or start_date
        if start_date is None or not working_days or working_days <= 1:
            return end_date

        target = math.ceil(working_days)
        # A year of weekends is the most any real request can need to skip.
        for _ in range(366):
            if self.calculate_inclusive_days(start_date, end_date) >= target:
                break
            end_date += timedelta(days=1)
        return end_date

    def is_past_date(self, value, reference_date: date | None = None) -> bool:
        target = coerce_date(value)
        if target is None:
            return False
        return target < (reference_date or date.today())

    def format_human_readable(self, value) -> str:
        parsed = coerce_date(value)
        if parsed is None:
            return str(value)
        return f"{parsed:%B} {parsed.day}, {parsed.year}"

    # Internal resolution

    def _parse_boundary(self, segment: str, reference: date) -> _Resolved | None:
        specific_month = _SPECIFIC_MONTH.search(segment)
        if specific_month:
            day_match = re.search(r"\b(\d{1,2})", segment)
            if not day_match:
                return _Resolved(None, "Could not determine day for range.")
            offset = 1 if specific_month.group(1) == "next" else 0
            month_start = reference.replace(day=1) + relativedelta(months=offset)
            return _build_date(month_start.year, month_start.month, int(day_match.group(1)), segment)

        return self._parse_single(segment, reference)

    def _parse_single(self, text: str, reference: date) -> _Resolved | None:
        normalized = text.lower()

        for pattern, offset in _RELATIVE:
            if pattern.search(normalized):
                return _Resolved(reference + timedelta(days=offset), kind="relative")

        weekday = self._parse_weekday(normalized, reference)
        if weekday is not None:
            return _Resolved(weekday, kind="relative")

        return self._parse_absolute(normalized, reference, text)

    def _parse_weekday(self, normalized: str, reference: date) -> date | None:
        match = _WEEKDAY_PHRASE.search(normalized)
        if not match:
            return None

        keyword, day_name = match.groups()
        target = WEEKDAYS.index(day_name)
        current = reference.weekday()

        if keyword == "this":
            # Current or upcoming occurrence, never a day already gone
            return reference + timedelta(days=(target - current) % 7)

        # next/coming: first occurrence after today, a week out on the same weekday
        return reference + timedelta(days=(target - current) % 7 or 7)

    def _parse_absolute(self, normalized: str, reference: date, raw: str) -> _Resolved | None:
        segment = raw.strip()

        iso = _ISO.search(normalized)
        if iso:
            year, month, day = (int(g) for g in iso.groups())
            return _build_date(year, month, day, segment)

        numeric = _NUMERIC_WITH_YEAR.search(normalized)
        if numeric:
            day, month, year = (int(g) for g in numeric.groups())
            return _build_date(year, month, day, segment)

        numeric = _NUMERIC_NO_YEAR.search(normalized)
        if numeric:
            day, month = (int(g) for g in numeric.groups())
            return _build_date(reference.year, month, day, segment)

        day_first = _DAY_FIRST.search(normalized)
        if day_first:
            day = int(day_first.group(1))
            month = MONTHS[day_first.group(2)]
            year = int(day_first.group(3)) if day_first.group(3) else reference.year
            return _build_date(year, month, day, segment)

        month_first = _MONTH_FIRST.search(normalized)
        if month_first:
            month = MONTHS[month_first.group(1)]
            day = int(month_first.group(2))
            year = int(month_first.group(3)) if month_first.group(3) else reference.year
            return _build_date(year, month, day, segment)

        lone_day = _LONE_DAY.search(normalized)
        if lone_day:
            day = int(lone_day.group(1))
            resolved = _build_date(reference.year, reference.month, day, segment)
            return _Resolved(resolved.value, resolved.error, kind="bare_day", day=day)

        return None


# Global parser instance
date_parser = DateParserService()
