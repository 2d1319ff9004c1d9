"""Date and number helpers for the loan ledger.

Every date handled by the engine is a plain ``datetime.date`` (UTC calendar
day, no time of day). Parsing never raises: input that cannot be read as a
date yields ``None``, which callers treat as "no date". Month arithmetic
clamps the day of month, so adding one month to Jan 31 gives Feb 28 or 29.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import ROUND_FLOOR, Decimal, InvalidOperation, getcontext
from typing import Any, Optional

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")
ZERO = Decimal("0")
EPS = Decimal("0.000001")


def parse_iso(value: Any) -> Optional[date]:
    """Return ``value`` as a ``date`` or ``None`` when it cannot be parsed.

    Accepts ``date`` and ``datetime`` objects and ``YYYY-MM-DD`` strings.
    Longer ISO timestamps (``2024-01-15T10:00:00``) are truncated to their
    date part.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()[:10]
    parts = text.split("-")
    if len(parts) != 3:
        return None
    try:
        return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError:
        return None


def to_iso(value: Any) -> str:
    """Format a date as ``YYYY-MM-DD``; invalid dates become ``""``."""
    parsed = parse_iso(value)
    return parsed.isoformat() if parsed else ""


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end``, never negative."""
    return max(0, (end - start).days)


def add_days(dt: date, days: int) -> date:
    return date.fromordinal(dt.toordinal() + days)


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(dt: date, years: int) -> date:
    return add_months(dt, years * 12)


def months_between(start: date, end: date) -> int:
    """Calendar month difference between two dates, ignoring the day."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def advance_by_frequency(dt: date, frequency: Any, count: int = 1) -> date:
    """Advance ``dt`` by ``count`` payment periods of ``frequency``.

    Stepping from a fixed anchor with a growing ``count`` keeps month-end
    anchors on their day (Jan 31, Feb 29, Mar 31) instead of drifting.
    """
    name = getattr(frequency, "value", frequency)
    if name == "Weekly":
        return add_days(dt, 7 * count)
    if name == "Biweekly":
        return add_days(dt, 14 * count)
    if name == "Quarterly":
        return add_months(dt, 3 * count)
    if name == "Annual":
        return add_years(dt, count)
    return add_months(dt, count)


def next_by_frequency(dt: date, frequency: Any) -> date:
    return advance_by_frequency(dt, frequency, 1)


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Convert numbers and numeric strings to ``Decimal``.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")``. Missing
    or unreadable values give ``default``.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = str(value).replace(",", "").strip()
        return Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc


def round2(value: Any) -> Decimal:
    """Round to cents, half-up with exact ``.5`` ties going toward +inf."""
    amount = to_decimal(value)
    cents = (amount * 100 + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR)
    return (cents / 100).quantize(CENT)
