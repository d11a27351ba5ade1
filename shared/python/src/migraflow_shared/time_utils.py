"""
time_utils.py — Period identifier parsing and date-window filtering.

The migrations API keys every monthly observation by an opaque period id.
Several spellings are seen in the wild:
- Month code + 2-digit year: "oct19", "Dec20"   (year is always 2000+yy)
- ISO month:                 "2019-10", "2019-1"
- ISO day:                   "2019-10-15"        (resolves to its month)
- Anything dateutil accepts, provided it names a year ("October 2019")

Every component resolves period ids through this module; nothing else
parses dates by hand.

Usage:
    from migraflow_shared.time_utils import parse_period, format_period, is_in_range

    parse_period("oct19")                    # date(2019, 10, 1)
    parse_period("2020-03-17")               # date(2020, 3, 1)
    format_period("2020-03")                 # "Mar 2020"
    is_in_range(date(2024, 12, 1), date(2024, 1, 1), date(2025, 1, 1))  # True
"""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from migraflow_shared.constants import MONTH_CODES, MONTH_LABELS, PERIOD_CODE_CENTURY

_MONTH_CODE_RE = re.compile(r"([A-Za-z]{3})(\d{2})")
_ISO_MONTH_RE = re.compile(r"(\d{4})-(\d{1,2})")
_ISO_DAY_RE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")

# Two defaults that differ in year: a string that parses to different years
# under each did not name a year itself.
_FALLBACK_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 1, 1))


class EndMode(str, enum.Enum):
    """How the upper bound of a date window is treated."""

    EXCLUSIVE = "exclusive"   # start <= d < end; end is the first excluded month
    INCLUSIVE = "inclusive"   # start <= d <= end


def first_of_month(d: date) -> date:
    return date(d.year, d.month, 1)


def next_month_start(d: date) -> date:
    """First day of the month after the one containing d."""
    return first_of_month(d) + relativedelta(months=1)


def _parse_month_code(s: str) -> date | None:
    m = _MONTH_CODE_RE.fullmatch(s)
    if not m:
        return None
    month = MONTH_CODES.get(m.group(1).lower())
    if month is None:
        return None
    return date(PERIOD_CODE_CENTURY + int(m.group(2)), month, 1)


def _parse_iso_month(s: str) -> date | None:
    m = _ISO_MONTH_RE.fullmatch(s)
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), 1)
    except ValueError:
        return None


def _parse_iso_day(s: str) -> date | None:
    m = _ISO_DAY_RE.fullmatch(s)
    if not m:
        return None
    try:
        d = date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None
    return first_of_month(d)


def _parse_fallback(s: str) -> date | None:
    try:
        first, second = (date_parser.parse(s, default=d) for d in _FALLBACK_DEFAULTS)
    except (ValueError, OverflowError):
        return None
    if first.year != second.year:
        return None
    return date(first.year, first.month, 1)


def parse_period(raw: Any) -> date | None:
    """
    Resolve a period identifier to the first day of its calendar month.

    Formats are tried in priority order: month code ("oct19"), ISO month
    ("2019-10"), ISO day ("2019-10-15"), then a generic dateutil parse.

    Args:
        raw: Period identifier. Non-string input is treated as unparsable.

    Returns:
        datetime.date (always day 1), or None if the id is not recognized.
        Never raises.
    """
    if isinstance(raw, datetime):
        return first_of_month(raw.date())
    if isinstance(raw, date):
        return first_of_month(raw)
    if not isinstance(raw, str) or not raw.strip():
        return None

    s = raw.strip()
    parsed = _parse_month_code(s)
    if parsed is not None:
        return parsed
    # ISO-shaped ids are never handed to dateutil, even when out of range
    if _ISO_MONTH_RE.fullmatch(s):
        return _parse_iso_month(s)
    if _ISO_DAY_RE.fullmatch(s):
        return _parse_iso_day(s)
    return _parse_fallback(s)


def resolve_period_date(
    period_id: str,
    known_starts: Mapping[str, date] | None = None,
) -> date | None:
    """
    Resolve a period id, consulting the response's own period table last.

    Args:
        period_id:    Period identifier.
        known_starts: Optional id -> start_date map (from TimePeriod records),
                      used only when the id itself is not a recognized format.

    Returns:
        First day of the period's month, or None.
    """
    parsed = parse_period(period_id)
    if parsed is not None:
        return parsed
    if known_starts and period_id in known_starts:
        return first_of_month(known_starts[period_id])
    return None


def format_date_label(d: date) -> str:
    """date(2019, 10, 1) -> "Oct 2019"."""
    return f"{MONTH_LABELS[d.month - 1]} {d.year}"


def format_period(raw: str | date) -> str:
    """
    Render a period id (or a resolved date) as a "Mon YYYY" display label.

    Unparsable ids are echoed back verbatim.
    """
    parsed = parse_period(raw)
    if parsed is None:
        return raw if isinstance(raw, str) else str(raw)
    return format_date_label(parsed)


def is_in_range(
    period_date: date | None,
    start: date,
    end: date,
    mode: EndMode | str = EndMode.EXCLUSIVE,
) -> bool:
    """
    Decide whether a resolved period date falls inside a window.

    Args:
        period_date: Resolved period date; None is never in range.
        start:       Inclusive lower bound.
        end:         Upper bound; see mode.
        mode:        EndMode.EXCLUSIVE (start <= d < end) or
                     EndMode.INCLUSIVE (start <= d <= end).

    Returns:
        True if the period is inside the window.

    Examples:
        is_in_range(date(2025, 1, 1), date(2024, 1, 1), date(2025, 1, 1))               -> False
        is_in_range(date(2025, 1, 1), date(2024, 1, 1), date(2025, 1, 1), "inclusive")  -> True
    """
    if period_date is None:
        return False
    if isinstance(period_date, datetime):
        period_date = period_date.date()
    match EndMode(mode):
        case EndMode.EXCLUSIVE:
            return start <= period_date < end
        case EndMode.INCLUSIVE:
            return start <= period_date <= end


def parse_iso_date(raw: Any) -> date | None:
    """
    Parse an ISO 8601 date or timestamp ("2020-01-01", "2020-01-01T00:00:00Z").

    Unlike parse_period this keeps the day. Returns None on failure.
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return date_parser.isoparse(raw.strip()).date()
    except (ValueError, OverflowError):
        return None
