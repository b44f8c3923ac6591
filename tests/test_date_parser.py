"""
Tests for date parser utilities
"""

import pytest
from tdsync.config.settings import settings
from tdsync.utils.date_parser import (
    normalize_date,
    normalize_time,
    iso_to_local_date,
    iso_to_local_time,
    format_event_datetime,
)
from tdsync.utils.date_utils import get_current_year


class TestNormalizeDate:
    """Tests for in-text dates"""

    def test_full_date(self):
        assert normalize_date("2024-03-01") == "2024-03-01"
        assert normalize_date("2024-3-1") == "2024-03-01"

    def test_two_digit_year(self):
        assert normalize_date("24-12-31") == "2024-12-31"

    def test_month_day(self):
        assert normalize_date("05-01") is None
        assert normalize_date("05-01", allow_month_day=True) == f"{get_current_year()}-05-01"

    def test_invalid(self):
        assert normalize_date("2024-13-01") is None
        assert normalize_date("2023-02-29") is None
        assert normalize_date("tomorrow") is None
        assert normalize_date("") is None
        assert normalize_date(None) is None


class TestNormalizeTime:
    """Tests for in-text times"""

    def test_valid(self):
        assert normalize_time("9:05") == "09:05"
        assert normalize_time("23:59") == "23:59"

    def test_out_of_range(self):
        assert normalize_time("24:00") is None
        assert normalize_time("12:60") is None
        assert normalize_time("noon") is None


class TestTodoistDue:
    """Tests for due values coming from Todoist"""

    def test_date_only(self):
        assert iso_to_local_date("2024-03-01") == "2024-03-01"
        assert iso_to_local_time("2024-03-01") is None

    def test_floating_datetime(self):
        assert iso_to_local_date("2024-03-01T10:30:00") == "2024-03-01"
        assert iso_to_local_time("2024-03-01T10:30:00") == "10:30"

    def test_end_of_day_has_no_time(self):
        assert iso_to_local_time("2024-03-01T23:59:59") is None

    def test_utc_datetime_uses_user_timezone(self, monkeypatch):
        monkeypatch.setattr(settings, "USER_TIMEZONE_OFFSET", "2")

        assert iso_to_local_date("2024-03-01T23:30:00Z") == "2024-03-02"
        assert iso_to_local_time("2024-03-01T23:30:00Z") == "01:30"

    def test_empty(self):
        assert iso_to_local_date(None) is None
        assert iso_to_local_time("") is None


@pytest.mark.parametrize("value,expected", [
    ("2024-03-01T10:00:00", "2024-03-01 10:00"),
    ("2024-03-01T10:00:00.000000Z", "2024-03-01 10:00"),
    ("", ""),
])
def test_format_event_datetime(monkeypatch, value, expected):
    monkeypatch.setattr(settings, "USER_TIMEZONE_OFFSET", "0")
    assert format_event_datetime(value) == expected
