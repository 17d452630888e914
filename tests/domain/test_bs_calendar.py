"""
Bikram Sambat calendar tests.

Verifies:
- Anchor conversion in both directions
- Fiscal period bounds resolved from a YYYY/YY name
- The month-end marker (day 32) resolves to the real last day
- Years outside the table are rejected rather than extrapolated
- Parsing and formatting of BS date strings
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from fiscal_ledger.domain.calendar import (
    BSDate,
    BikramSambatCalendar,
    derive_year_code,
    parse_period_name,
)
from fiscal_ledger.domain.clock import DeterministicClock
from fiscal_ledger.exceptions import (
    InvalidCalendarDateError,
    InvalidPeriodNameError,
    UnsupportedCalendarYearError,
)


class TestConversion:
    def test_anchor_maps_both_ways(self, calendar: BikramSambatCalendar):
        assert calendar.to_gregorian(BSDate(2080, 1, 1)) == date(2023, 4, 14)
        assert calendar.to_bs(date(2023, 4, 14)) == BSDate(2080, 1, 1)

    def test_start_of_fiscal_year_2082(self, calendar):
        assert calendar.to_gregorian(BSDate(2082, 4, 1)) == date(2025, 7, 16)
        assert calendar.to_bs(date(2025, 7, 16)) == BSDate(2082, 4, 1)

    def test_day_after_anchor(self, calendar):
        assert calendar.to_bs(date(2023, 4, 15)) == BSDate(2080, 1, 2)

    def test_last_day_of_year(self, calendar):
        # Chaitra 2080 has 30 days
        new_year = calendar.to_gregorian(BSDate(2081, 1, 1))
        assert new_year == date(2024, 4, 13)
        assert calendar.to_bs(date(2024, 4, 12)) == BSDate(2080, 12, 30)

    def test_month_rollover(self, calendar):
        # Shrawan 2082 has 32 days
        assert calendar.to_gregorian(BSDate(2082, 4, 32)) == date(2025, 8, 16)
        assert calendar.to_bs(date(2025, 8, 17)) == BSDate(2082, 5, 1)

    def test_month_end_marker_resolves_to_last_day(self, calendar):
        # Ashad 2083 has 31 days, so 32 means the 31st
        assert calendar.days_in_month(2083, 3) == 31
        assert calendar.to_gregorian(BSDate(2083, 3, 32)) == calendar.to_gregorian(
            BSDate(2083, 3, 31)
        )
        assert calendar.to_gregorian(BSDate(2083, 3, 32)) == date(2026, 7, 15)

    def test_day_beyond_month_length_rejected(self, calendar):
        # Baishakh 2083 has 30 days; 31 is not the marker and does not exist
        with pytest.raises(InvalidCalendarDateError):
            calendar.to_gregorian(BSDate(2083, 1, 31))

    def test_year_lengths(self, calendar):
        assert calendar.total_days_in_year(2080) == 365
        assert calendar.total_days_in_year(2082) == 366
        assert calendar.total_days_in_year(2083) == 365

    def test_today_uses_injected_clock(self, calendar):
        clock = DeterministicClock(datetime(2025, 8, 1, 9, 0, tzinfo=timezone.utc))
        assert calendar.today(clock) == BSDate(2082, 4, 17)


class TestSupportedRange:
    def test_supported_years_match_table(self, calendar):
        assert calendar.supported_years == range(2080, 2091)
        assert calendar.first_supported_date == date(2023, 4, 14)

    def test_year_after_table_rejected(self, calendar):
        with pytest.raises(UnsupportedCalendarYearError):
            calendar.days_in_month(2091, 1)

    def test_year_before_table_rejected(self, calendar):
        with pytest.raises(UnsupportedCalendarYearError):
            calendar.to_gregorian(BSDate(2079, 12, 1))

    def test_gregorian_before_table_rejected(self, calendar):
        with pytest.raises(UnsupportedCalendarYearError):
            calendar.to_bs(date(2020, 1, 1))

    def test_gregorian_after_table_rejected(self, calendar):
        with pytest.raises(UnsupportedCalendarYearError):
            calendar.to_bs(calendar.last_supported_date.replace(year=2040))


class TestPeriodBounds:
    def test_bounds_for_2082_83(self, calendar):
        bounds = calendar.period_bounds_from_name("2082/83")

        assert str(bounds.start_bs) == "2082-04-01"
        assert str(bounds.end_bs) == "2083-03-32"
        assert bounds.start_date == date(2025, 7, 16)
        assert bounds.end_date == date(2026, 7, 15)

    def test_consecutive_periods_are_contiguous(self, calendar):
        first = calendar.period_bounds_from_name("2081/82")
        second = calendar.period_bounds_from_name("2082/83")

        assert first.end_date == date(2025, 7, 15)
        assert (second.start_date - first.end_date).days == 1

    @pytest.mark.parametrize("year", range(2080, 2089))
    def test_period_end_is_last_day_of_ashad(self, calendar, year):
        name = f"{year}/{(year + 1) % 100:02d}"
        following = f"{year + 1}/{(year + 2) % 100:02d}"
        bounds = calendar.period_bounds_from_name(name)
        last_ashad = calendar.days_in_month(year + 1, 3)

        assert bounds.end_date == calendar.to_gregorian(BSDate(year + 1, 3, last_ashad))
        assert calendar.period_bounds_from_name(following).start_date == bounds.end_date + timedelta(days=1)

    def test_century_rollover_name(self):
        assert parse_period_name("2099/00") == 2099

    @pytest.mark.parametrize(
        "name",
        ["2082-83", "82/83", "2082/84", "2082/8", "abcd/ef", "", "2082/83 "],
    )
    def test_bad_names_rejected(self, calendar, name):
        with pytest.raises(InvalidPeriodNameError):
            calendar.period_bounds_from_name(name)

    def test_period_outside_table_rejected(self, calendar):
        with pytest.raises(UnsupportedCalendarYearError):
            calendar.period_bounds_from_name("2090/91")

    @pytest.mark.parametrize(
        "bs, expected",
        [
            (BSDate(2082, 4, 1), "2082/83"),
            (BSDate(2083, 3, 31), "2082/83"),
            (BSDate(2082, 3, 31), "2081/82"),
            (BSDate(2082, 12, 30), "2082/83"),
        ],
    )
    def test_fiscal_year_name_for(self, bs, expected):
        assert BikramSambatCalendar.fiscal_year_name_for(bs) == expected

    def test_derive_year_code(self):
        assert derive_year_code("2082/83") == "8283"
        assert derive_year_code("FY82") == "FY82"


class TestText:
    def test_parse_bs_date(self, calendar):
        assert calendar.parse_bs_date("2082-04-01") == BSDate(2082, 4, 1)
        assert calendar.parse_bs_date(" 2082-4-1 ") == BSDate(2082, 4, 1)

    @pytest.mark.parametrize("text", ["2082/04/01", "2082-13-01", "2082-04-00", "not a date"])
    def test_parse_rejects_malformed(self, calendar, text):
        with pytest.raises(InvalidCalendarDateError):
            calendar.parse_bs_date(text)

    def test_parse_rejects_day_past_month_end(self, calendar):
        with pytest.raises(InvalidCalendarDateError):
            calendar.parse_bs_date("2083-01-31")

    def test_parse_rejects_unsupported_year(self, calendar):
        with pytest.raises(UnsupportedCalendarYearError):
            calendar.parse_bs_date("2100-01-01")

    def test_format_variants(self):
        bs = BSDate(2082, 4, 1)
        assert BikramSambatCalendar.format_bs_date(bs) == "2082-04-01"
        assert BikramSambatCalendar.format_bs_date(bs, "DD MMM YYYY") == "1 Shr 2082"
        assert BikramSambatCalendar.format_bs_date(bs, "DD MMMM YYYY") == "1 Shrawan 2082"

    def test_bsdate_validates_structure(self):
        with pytest.raises(InvalidCalendarDateError):
            BSDate(2082, 13, 1)
        with pytest.raises(InvalidCalendarDateError):
            BSDate(2082, 1, 33)

    def test_bsdate_ordering_and_names(self):
        assert BSDate(2082, 3, 31) < BSDate(2082, 4, 1)
        assert BSDate(2082, 4, 1).month_name == "Shrawan"
        assert BSDate(2082, 4, 1).gregorian_span == "July-August"
