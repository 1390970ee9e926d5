"""
Tests for the company holiday calendar.
"""

import json
from datetime import date

from hr_assistant.holiday_calendar import HolidayCalendar, load_holiday_calendar


class TestHolidayCalendar:
    """Lookups over the built-in calendar."""

    def test_list_by_year(self, holiday_calendar):
        """All holidays of a year, sorted by date."""
        holidays = holiday_calendar.list_holidays(year=2026)
        assert len(holidays) == 11
        assert holidays == sorted(holidays, key=lambda h: h.date)

    def test_list_by_month(self, holiday_calendar):
        """Month filter."""
        names = [h.name for h in holiday_calendar.list_holidays(year=2026, month=11)]
        assert names == ["Deepavali"]

    def test_list_from_date(self, holiday_calendar):
        """Upcoming holidays from a start date."""
        names = [h.name for h in holiday_calendar.list_holidays(start=date(2026, 10, 19))]
        assert names == ["Deepavali", "Christmas"]

    def test_get_holiday(self, holiday_calendar):
        """Single-date lookup."""
        assert holiday_calendar.get_holiday("2026-12-25").name == "Christmas"
        assert holiday_calendar.get_holiday(date(2026, 12, 24)) is None

    def test_find_conflict_in_range(self, holiday_calendar):
        """First holiday inside a range."""
        conflict = holiday_calendar.find_conflict(date(2026, 11, 6), date(2026, 11, 10))
        assert conflict.name == "Deepavali"

    def test_no_conflict(self, holiday_calendar):
        """Ranges without holidays have no conflict."""
        assert holiday_calendar.find_conflict(date(2026, 10, 20), date(2026, 10, 23)) is None

    def test_holiday_dates(self, holiday_calendar):
        """ISO dates inside a range."""
        dates = holiday_calendar.get_holiday_dates(start="2026-11-01", end="2026-12-31")
        assert dates == ["2026-11-09", "2026-12-25"]

    def test_invalid_entries_are_skipped(self):
        """Entries with unreadable dates are ignored."""
        calendar = HolidayCalendar([{"date": "not-a-date", "name": "Bad"}, {"date": "2026-01-01"}])
        assert len(calendar) == 1
        assert calendar.get_holiday("2026-01-01").name == "Holiday"


class TestLoadHolidayCalendar:
    """Loading from a JSON file."""

    def test_from_file(self, tmp_path):
        """A configured file replaces the built-in list."""
        path = tmp_path / "holidays.json"
        path.write_text(
            json.dumps({"holidays": [{"date": "2027-01-01", "name": "New Year", "optional": True}]})
        )

        calendar = load_holiday_calendar(str(path))

        holiday = calendar.get_holiday("2027-01-01")
        assert holiday.name == "New Year"
        assert holiday.optional

    def test_built_in_default(self, monkeypatch):
        """Without a file the built-in calendar is used."""
        from hr_assistant import holiday_calendar as module

        monkeypatch.setattr(module.settings, "holidays_file", None)
        assert load_holiday_calendar().get_holiday("2026-11-09").name == "Deepavali"
