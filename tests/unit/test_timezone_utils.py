"""Tests for zerocal.timezone_utils."""

import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from zerocal.timezone_utils import (
    calendar_date_in,
    ensure_timezone_aware,
    get_default_timezone,
    is_date_only,
    parse_timestamp,
    resolve_timezone,
    to_utc,
)

pytestmark = pytest.mark.unit

NEW_YORK = ZoneInfo("America/New_York")


class TestResolveTimezone:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("America/New_York", "America/New_York"),
            ("US/Pacific", "America/Los_Angeles"),
            ("Eastern Standard Time", "America/New_York"),
            ("Asia/Calcutta", "Asia/Kolkata"),
            ("GMT", "UTC"),
            (" Europe/Paris ", "Europe/Paris"),
        ],
    )
    def test_known_names(self, name, expected):
        assert resolve_timezone(name) == ZoneInfo(expected)

    @pytest.mark.parametrize("name", [None, ""])
    def test_missing_name_uses_fallback(self, name):
        assert resolve_timezone(name, "Europe/London") == ZoneInfo("Europe/London")

    def test_unknown_name_logs_and_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING):
            tz = resolve_timezone("Nowhere/Special", "Asia/Tokyo")
        assert tz == ZoneInfo("Asia/Tokyo")
        assert "Nowhere/Special" in caplog.text


class TestGetDefaultTimezone:
    def test_unset_returns_fallback(self):
        assert get_default_timezone() == "UTC"

    def test_env_value_is_used(self, monkeypatch):
        monkeypatch.setenv("ZEROCAL_DEFAULT_TIMEZONE", "US/Eastern")
        assert get_default_timezone() == "America/New_York"

    def test_invalid_env_value_is_ignored(self, monkeypatch, caplog):
        monkeypatch.setenv("ZEROCAL_DEFAULT_TIMEZONE", "Not/AZone")
        with caplog.at_level(logging.WARNING):
            assert get_default_timezone("Europe/Berlin") == "Europe/Berlin"
        assert "ZEROCAL_DEFAULT_TIMEZONE" in caplog.text


class TestParseTimestamp:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2024-01-15T09:00:00Z", datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)),
            ("20240115T090000Z", datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)),
            ("2024-01-15T10:00:00+01:00", datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)),
            ("2024-01-15", datetime(2024, 1, 15, 0, 0, tzinfo=timezone.utc)),
            ("20240115", datetime(2024, 1, 15, 0, 0, tzinfo=timezone.utc)),
            (date(2024, 1, 15), datetime(2024, 1, 15, 0, 0, tzinfo=timezone.utc)),
        ],
    )
    def test_formats(self, value, expected):
        assert parse_timestamp(value) == expected

    def test_naive_values_are_placed_in_tz(self):
        parsed = parse_timestamp("2024-01-15T09:00:00", NEW_YORK)
        assert parsed.tzinfo is NEW_YORK
        assert parsed.hour == 9

    def test_aware_datetime_is_unchanged(self):
        value = datetime(2024, 1, 15, 9, 0, tzinfo=NEW_YORK)
        assert parse_timestamp(value, timezone.utc) is value

    @pytest.mark.parametrize("value", ["", "   ", "tomorrow", "2024-13-45", None, 12])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)


class TestCalendarDate:
    def test_date_only_string_is_literal(self):
        assert calendar_date_in("2024-01-15", NEW_YORK) == date(2024, 1, 15)

    def test_timestamp_is_read_in_zone(self):
        # 02:00 UTC is still the previous evening in New York
        assert calendar_date_in("2024-01-15T02:00:00Z", NEW_YORK) == date(2024, 1, 14)

    def test_naive_datetime_is_wall_clock(self):
        assert calendar_date_in(datetime(2024, 1, 15, 23, 0), NEW_YORK) == date(2024, 1, 15)

    def test_date_object(self):
        assert calendar_date_in(date(2024, 1, 15), NEW_YORK) == date(2024, 1, 15)


def test_is_date_only():
    assert is_date_only("2024-01-15")
    assert is_date_only("20240115")
    assert not is_date_only("2024-01-15T00:00:00")
    assert not is_date_only("20240115T000000Z")


def test_ensure_timezone_aware_and_to_utc():
    naive = datetime(2024, 1, 15, 9, 0)
    assert ensure_timezone_aware(naive).tzinfo is timezone.utc
    assert ensure_timezone_aware(naive, NEW_YORK).tzinfo is NEW_YORK
    assert to_utc(datetime(2024, 1, 15, 4, 0, tzinfo=NEW_YORK)) == datetime(
        2024, 1, 15, 9, 0, tzinfo=timezone.utc
    )
