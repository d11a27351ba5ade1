"""
tests/test_shared/test_time_utils.py — Tests for period parsing, labels, and window filtering.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from migraflow_shared.time_utils import (
    EndMode,
    format_date_label,
    format_period,
    is_in_range,
    next_month_start,
    parse_iso_date,
    parse_period,
    resolve_period_date,
)


class TestParsePeriod:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("oct19", date(2019, 10, 1)),
            ("dec20", date(2020, 12, 1)),
            ("jan00", date(2000, 1, 1)),
            ("OCT19", date(2019, 10, 1)),
            ("Sep99", date(2099, 9, 1)),
        ],
    )
    def test_month_code(self, raw, expected):
        assert parse_period(raw) == expected

    def test_every_month_code(self):
        codes = ["jan", "feb", "mar", "apr", "may", "jun",
                 "jul", "aug", "sep", "oct", "nov", "dec"]
        for month, code in enumerate(codes, start=1):
            assert parse_period(f"{code}21") == date(2021, month, 1)

    def test_iso_month(self):
        assert parse_period("2020-03") == date(2020, 3, 1)
        assert parse_period("2020-3") == date(2020, 3, 1)

    def test_iso_day_resolves_to_its_month(self):
        assert parse_period("2020-03-17") == date(2020, 3, 1)

    def test_generic_fallback(self):
        assert parse_period("October 2019") == date(2019, 10, 1)
        assert parse_period("2019-10-15T08:30:00Z") == date(2019, 10, 1)

    def test_surrounding_whitespace_ignored(self):
        assert parse_period("  nov19 ") == date(2019, 11, 1)

    @pytest.mark.parametrize(
        "raw",
        ["", "   ", "abc12", "2020-13", "2020-00", "2020-02-31", "0000-01", "0000-1",
         "0000-01-15", "may",
         "not a date", "10"],
    )
    def test_unrecognized_returns_none(self, raw):
        assert parse_period(raw) is None

    @pytest.mark.parametrize("raw", [None, 2020, 3.5, ["oct19"], {"id": "oct19"}])
    def test_non_string_never_raises(self, raw):
        assert parse_period(raw) is None

    def test_date_input_snaps_to_month(self):
        assert parse_period(date(2020, 5, 20)) == date(2020, 5, 1)
        assert parse_period(datetime(2020, 5, 20, 13, 0)) == date(2020, 5, 1)


class TestResolvePeriodDate:
    def test_format_rules_take_priority(self):
        assert resolve_period_date("oct19", {"oct19": date(1999, 1, 1)}) == date(2019, 10, 1)

    def test_opaque_id_uses_period_table(self):
        assert resolve_period_date("P-17", {"P-17": date(2020, 6, 15)}) == date(2020, 6, 1)

    def test_unknown_opaque_id(self):
        assert resolve_period_date("P-17", {}) is None
        assert resolve_period_date("P-17") is None


class TestFormatPeriod:
    @pytest.mark.parametrize(
        "raw, label",
        [
            ("oct19", "Oct 2019"),
            ("JAN00", "Jan 2000"),
            ("2020-03", "Mar 2020"),
            ("2020-03-17", "Mar 2020"),
            ("October 2019", "Oct 2019"),
        ],
    )
    def test_labels(self, raw, label):
        assert format_period(raw) == label

    def test_unparsable_echoed(self):
        assert format_period("aggregated") == "aggregated"
        assert format_period("2020-13") == "2020-13"

    @pytest.mark.parametrize("raw", ["oct19", "2020-03", "2020-03-17", "October 2019"])
    def test_label_consistent_with_parsed_date(self, raw):
        parsed = parse_period(raw)
        assert format_period(parsed) == format_period(raw)
        assert format_period(parsed) == format_date_label(parsed)
        assert parse_period(format_period(raw)) == parsed


class TestIsInRange:
    START = date(2024, 1, 1)
    END = date(2025, 1, 1)

    def test_exclusive_is_default(self):
        assert is_in_range(date(2024, 12, 1), self.START, self.END)
        assert not is_in_range(date(2025, 1, 1), self.START, self.END)

    def test_start_is_inclusive_in_both_modes(self):
        for mode in EndMode:
            assert is_in_range(self.START, self.START, self.END, mode)

    def test_before_start(self):
        assert not is_in_range(date(2023, 12, 1), self.START, self.END)

    def test_inclusive_end(self):
        assert is_in_range(date(2025, 1, 1), self.START, self.END, EndMode.INCLUSIVE)
        assert is_in_range(date(2025, 1, 1), self.START, self.END, "inclusive")
        assert not is_in_range(date(2025, 2, 1), self.START, self.END, "inclusive")

    def test_none_never_in_range(self):
        assert not is_in_range(None, self.START, self.END)
        assert not is_in_range(None, self.START, self.END, EndMode.INCLUSIVE)

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            is_in_range(self.START, self.START, self.END, "half-open")


class TestDateHelpers:
    def test_next_month_start(self):
        assert next_month_start(date(2019, 12, 15)) == date(2020, 1, 1)
        assert next_month_start(date(2020, 1, 31)) == date(2020, 2, 1)

    def test_parse_iso_date_keeps_day(self):
        assert parse_iso_date("2020-01-15") == date(2020, 1, 15)
        assert parse_iso_date("2020-01-15T23:00:00Z") == date(2020, 1, 15)

    def test_parse_iso_date_rejects_garbage(self):
        assert parse_iso_date("15/01/2020") is None
        assert parse_iso_date("") is None
        assert parse_iso_date(None) is None
