"""
BikramSambatCalendar -- table-driven Gregorian <-> Bikram Sambat conversion.

Responsibility:
    Converts dates between the Gregorian calendar and Bikram Sambat (BS),
    the calendar fiscal periods are named and bounded in.  BS months have
    29 to 32 days and the lengths differ per year, so conversion walks a
    bounded table of month lengths from a fixed anchor date pair.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The table itself is
    loaded by ``fiscal_ledger.config.loader`` and injected here.

Invariants enforced:
    - Every BSDate handed out has 1 <= month <= 12 and a day within the
      table's month length.
    - Years outside the table raise ``UnsupportedCalendarYearError``; there
      is no silent 30-day fallback.
    - Round trip: ``to_gregorian(to_bs(d)) == d`` for every supported date.

Failure modes:
    - InvalidCalendarDateError: impossible month/day, unparseable string.
    - UnsupportedCalendarYearError: year outside the table.
    - InvalidPeriodNameError: period name is not ``YYYY/YY``.

Period boundaries:
    A fiscal period named ``"2082/83"`` runs from Shrawan 1, 2082
    (``2082-04-01``) to Ashad 32, 2083 (``2083-03-32``).  Day 32 is the
    month-end marker: it means "last day of the month" whatever that
    month's length is, so ``to_gregorian`` resolves it to the real last day.
"""

import re
from dataclasses import dataclass, field
from datetime import date, timedelta

from fiscal_ledger.domain.clock import Clock
from fiscal_ledger.exceptions import (
    InvalidCalendarDateError,
    InvalidPeriodNameError,
    UnsupportedCalendarYearError,
)

MONTH_END_MARKER = 32
FISCAL_YEAR_START_MONTH = 4

MONTH_NAMES = (
    "Baishakh",
    "Jestha",
    "Ashad",
    "Shrawan",
    "Bhadra",
    "Ashwin",
    "Kartik",
    "Mangsir",
    "Poush",
    "Magh",
    "Falgun",
    "Chaitra",
)

# Approximate Gregorian span of each BS month
GREGORIAN_SPANS = (
    "April-May",
    "May-June",
    "June-July",
    "July-August",
    "August-September",
    "September-October",
    "October-November",
    "November-December",
    "December-January",
    "January-February",
    "February-March",
    "March-April",
)

_PERIOD_NAME_RE = re.compile(r"^(\d{4})/(\d{2})$")
_BS_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


@dataclass(frozen=True, order=True)
class BSDate:
    """
    A Bikram Sambat calendar date.

    Contract:
        Structurally valid on construction (month 1..12, day 1..32).  Whether
        the day exists in that particular month is a question for the
        calendar table -- see ``BikramSambatCalendar.validate``.

    Guarantees:
        - Ordered by (year, month, day).
        - ``str()`` yields the zero-padded ``YYYY-MM-DD`` display form.
    """

    year: int
    month: int
    day: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidCalendarDateError(
                self._raw(), f"month must be 1-12, got {self.month}"
            )
        if not 1 <= self.day <= MONTH_END_MARKER:
            raise InvalidCalendarDateError(
                self._raw(), f"day must be 1-{MONTH_END_MARKER}, got {self.day}"
            )

    def _raw(self) -> str:
        return f"{self.year}-{self.month}-{self.day}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]

    @property
    def gregorian_span(self) -> str:
        return GREGORIAN_SPANS[self.month - 1]


@dataclass(frozen=True)
class CalendarTable:
    """
    Month-length table plus the anchor date pair.

    Contract:
        ``month_days[year]`` holds the twelve month lengths of that BS year.
        Years form a contiguous range and the anchor lies inside it.
        ``anchor_bs`` and ``anchor_ad`` denote the same day.
    """

    anchor_bs: BSDate
    anchor_ad: date
    month_days: dict[int, tuple[int, ...]] = field(hash=False)

    @property
    def first_year(self) -> int:
        return min(self.month_days)

    @property
    def last_year(self) -> int:
        return max(self.month_days)


@dataclass(frozen=True)
class PeriodBounds:
    """Dual-calendar boundaries of a fiscal period."""

    start_bs: BSDate
    end_bs: BSDate
    start_date: date
    end_date: date


class BikramSambatCalendar:
    """
    Converter between Gregorian and Bikram Sambat dates.

    Contract:
        Stateless apart from the injected table; safe to share across
        threads.  One instance is built at startup and passed to services.

    Guarantees:
        - ``to_bs`` and ``to_gregorian`` are exact inverses over the
          supported range.
        - Any lookup outside the table raises ``UnsupportedCalendarYearError``.

    Non-goals:
        - Does not extrapolate beyond the table.
    """

    def __init__(self, table: CalendarTable):
        self._table = table
        self._anchor_bs = table.anchor_bs
        self._anchor_ad = table.anchor_ad

    @property
    def table(self) -> CalendarTable:
        return self._table

    @property
    def supported_years(self) -> range:
        return range(self._table.first_year, self._table.last_year + 1)

    @property
    def first_supported_date(self) -> date:
        return self.to_gregorian(BSDate(self._table.first_year, 1, 1))

    @property
    def last_supported_date(self) -> date:
        last = self._table.last_year
        return self.to_gregorian(BSDate(last, 12, self.days_in_month(last, 12)))

    # ------------------------------------------------------------------
    # Table lookups
    # ------------------------------------------------------------------

    def days_in_month(self, year: int, month: int) -> int:
        """Number of days in a BS month, straight from the table."""
        if not 1 <= month <= 12:
            raise InvalidCalendarDateError(
                f"{year}-{month}", f"month must be 1-12, got {month}"
            )
        months = self._table.month_days.get(year)
        if months is None:
            raise UnsupportedCalendarYearError(
                year, self._table.first_year, self._table.last_year
            )
        return months[month - 1]

    def total_days_in_year(self, year: int) -> int:
        return sum(self.days_in_month(year, month) for month in range(1, 13))

    def validate(self, bs: BSDate) -> BSDate:
        """Check that ``bs`` is a real day in the table; return it unchanged."""
        max_days = self.days_in_month(bs.year, bs.month)
        if bs.day > max_days:
            raise InvalidCalendarDateError(
                str(bs), f"day {bs.day} exceeds {max_days} days in month"
            )
        return bs

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_bs(self, gregorian: date) -> BSDate:
        """Convert a Gregorian date to Bikram Sambat."""
        offset = (gregorian - self._anchor_ad).days

        year = self._anchor_bs.year
        month = self._anchor_bs.month
        day = self._anchor_bs.day + offset

        # Walk forward while the day overflows the current month
        while day > 0:
            month_days = self.days_in_month(year, month)
            if day <= month_days:
                break
            day -= month_days
            month += 1
            if month > 12:
                month = 1
                year += 1

        # Walk backward while the day underflows
        while day <= 0:
            month -= 1
            if month < 1:
                month = 12
                year -= 1
            day += self.days_in_month(year, month)

        return BSDate(year, month, day)

    def to_gregorian(self, bs: BSDate) -> date:
        """
        Convert a Bikram Sambat date to Gregorian.

        Day 32 is the month-end marker and resolves to the month's last
        day.  Any other day beyond the month length is rejected.
        """
        if bs.day == MONTH_END_MARKER:
            bs = BSDate(bs.year, bs.month, self.days_in_month(bs.year, bs.month))
        self.validate(bs)

        anchor = self._anchor_bs
        total = 0

        if bs.year > anchor.year:
            for year in range(anchor.year, bs.year):
                total += self.total_days_in_year(year)
        elif bs.year < anchor.year:
            for year in range(bs.year, anchor.year):
                total -= self.total_days_in_year(year)

        if bs.month > anchor.month:
            for month in range(anchor.month, bs.month):
                total += self.days_in_month(bs.year, month)
        elif bs.month < anchor.month:
            for month in range(bs.month, anchor.month):
                total -= self.days_in_month(bs.year, month)

        total += bs.day - anchor.day

        return self._anchor_ad + timedelta(days=total)

    def today(self, clock: Clock) -> BSDate:
        """Today's BS date according to the injected clock."""
        return self.to_bs(clock.now().date())

    # ------------------------------------------------------------------
    # Fiscal years
    # ------------------------------------------------------------------

    def period_bounds_from_name(self, period_name: str) -> PeriodBounds:
        """
        Resolve the boundaries of a ``YYYY/YY`` fiscal period.

        Raises:
            InvalidPeriodNameError: Name is not ``YYYY/YY`` or the two
                years are not adjacent.
            UnsupportedCalendarYearError: Either year is outside the table.
        """
        start_year = parse_period_name(period_name)

        start_bs = BSDate(start_year, FISCAL_YEAR_START_MONTH, 1)
        end_bs = BSDate(start_year + 1, FISCAL_YEAR_START_MONTH - 1, MONTH_END_MARKER)

        return PeriodBounds(
            start_bs=start_bs,
            end_bs=end_bs,
            start_date=self.to_gregorian(start_bs),
            end_date=self.to_gregorian(end_bs),
        )

    @staticmethod
    def fiscal_year_name_for(bs: BSDate) -> str:
        """Name of the fiscal year containing ``bs``; 2082-04-01 -> "2082/83"."""
        if bs.month >= FISCAL_YEAR_START_MONTH:
            return f"{bs.year}/{(bs.year + 1) % 100:02d}"
        return f"{bs.year - 1}/{bs.year % 100:02d}"

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def parse_bs_date(self, text: str) -> BSDate:
        """Parse and validate a ``YYYY-MM-DD`` BS date string."""
        match = _BS_DATE_RE.match(text.strip())
        if match is None:
            raise InvalidCalendarDateError(text, "expected YYYY-MM-DD")
        year, month, day = (int(part) for part in match.groups())
        if day < 1:
            raise InvalidCalendarDateError(text, f"day must be positive, got {day}")
        if not 1 <= month <= 12:
            raise InvalidCalendarDateError(text, f"month must be 1-12, got {month}")
        max_days = self.days_in_month(year, month)
        if day > max_days:
            raise InvalidCalendarDateError(
                text, f"day {day} exceeds {max_days} days in month"
            )
        return BSDate(year, month, day)

    @staticmethod
    def format_bs_date(bs: BSDate, fmt: str = "YYYY-MM-DD") -> str:
        """Render ``bs`` as ``YYYY-MM-DD``, ``DD MMM YYYY`` or ``DD MMMM YYYY``."""
        if fmt == "DD MMM YYYY":
            return f"{bs.day} {bs.month_name[:3]} {bs.year}"
        if fmt == "DD MMMM YYYY":
            return f"{bs.day} {bs.month_name} {bs.year}"
        return str(bs)


def parse_period_name(period_name: str) -> int:
    """Return the starting BS year of a ``YYYY/YY`` period name."""
    match = _PERIOD_NAME_RE.match(period_name)
    if match is None:
        raise InvalidPeriodNameError(period_name)
    start_year = int(match.group(1))
    if int(match.group(2)) != (start_year + 1) % 100:
        raise InvalidPeriodNameError(
            period_name, "second year must follow the first, e.g. 2082/83"
        )
    return start_year


def derive_year_code(period_name: str) -> str:
    """
    Year code used in document prefixes: ``"2082/83"`` -> ``"8283"``.

    Drops the century digits and the separator.  Names shorter than seven
    characters are used verbatim.
    """
    if len(period_name) < 7:
        return period_name
    return period_name[2:4] + period_name[5:7]
