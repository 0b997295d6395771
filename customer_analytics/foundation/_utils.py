"""Shared numeric and calendar helpers for the analytics engine."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP


def to_naive_utc(dt: datetime) -> datetime:
    """Drop timezone info after converting to UTC.

    Naive values are assumed to already be UTC and pass through, so aware
    and naive inputs can be compared safely.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def round_half_up(value: float | Decimal, places: int = 0) -> float:
    """Round ``value`` arithmetically (0.5 rounds away from zero).

    Python's built-in ``round`` uses banker's rounding, which would report
    22 instead of 23 for a 22.5 day midpoint.

    Examples
    --------
    >>> round_half_up(22.5)
    23.0
    >>> round_half_up(36.25, 1)
    36.3
    """
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def percentage(count: int | float, total: int | float) -> int:
    """Return ``count / total`` as a rounded whole percentage, 0 if total is 0."""
    if not total:
        return 0
    return int(round_half_up(count / total * 100))


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days elapsed from ``earlier`` to ``later``, truncated toward zero."""
    delta = later - earlier
    if delta.total_seconds() >= 0:
        return delta.days
    return -((-delta).days)


def month_key(dt: datetime) -> str:
    """Year-month key (``YYYY-MM``) for a timestamp."""
    return f"{dt.year:04d}-{dt.month:02d}"


def add_months(year: int, month: int, offset: int) -> tuple[int, int]:
    """Shift a (year, month) pair by ``offset`` months."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1
