"""When do customers order? Hourly, weekday and time-of-day breakdowns."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from customer_analytics.foundation._utils import percentage
from customer_analytics.foundation.records import Order

DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

TIME_OF_DAY_RANGES: tuple[tuple[str, tuple[int, ...]], ...] = (
    ("Morning (6-11)", (6, 7, 8, 9, 10, 11)),
    ("Afternoon (12-17)", (12, 13, 14, 15, 16, 17)),
    ("Evening (18-22)", (18, 19, 20, 21, 22)),
    ("Night (23-5)", (23, 0, 1, 2, 3, 4, 5)),
)

BEST_DAYS = 3
BEST_HOURS = 5


@dataclass(frozen=True)
class TimingBucket:
    label: str
    count: int
    percentage: int
    revenue: Decimal
    average_order_value: Decimal


@dataclass(frozen=True)
class OrderTimingResult:
    weekday_distribution: tuple[TimingBucket, ...]
    time_of_day_distribution: tuple[TimingBucket, ...]
    hourly_distribution: tuple[TimingBucket, ...]
    best_performing_days: tuple[TimingBucket, ...]
    best_performing_hours: tuple[TimingBucket, ...]
    worst_performing_days: tuple[TimingBucket, ...]
    worst_performing_hours: tuple[TimingBucket, ...]
    total_orders: int = 0

    @classmethod
    def empty(cls) -> "OrderTimingResult":
        return cls((), (), (), (), (), (), ())


def hour_label(hour: int) -> str:
    """12-hour clock label, e.g. ``0 -> "12 AM"``, ``13 -> "1 PM"``."""
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12} {suffix}"


def weekday_index(order: Order) -> int:
    """Day of week with Sunday as 0."""
    return (order.date_created.weekday() + 1) % 7


def _buckets(
    labels: Sequence[str],
    counts: Sequence[int],
    revenue: Sequence[Decimal],
    total: int,
) -> tuple[TimingBucket, ...]:
    return tuple(
        TimingBucket(
            label=label,
            count=count,
            percentage=percentage(count, total),
            revenue=amount,
            average_order_value=amount / count if count else Decimal("0"),
        )
        for label, count, amount in zip(labels, counts, revenue)
    )


def _rank(buckets: Sequence[TimingBucket], limit: int):
    descending = sorted(buckets, key=lambda b: b.count, reverse=True)
    return tuple(descending[:limit]), tuple(list(reversed(descending))[:limit])


def analyze_order_timing(orders: Sequence[Order]) -> OrderTimingResult:
    """Bucket dated orders by hour, weekday and time of day.

    Orders without a date are skipped. An unparsable total was already
    normalised to zero, so such orders still count but add no revenue.
    Percentages are relative to the number of dated orders.
    """
    dated = [order for order in orders if order.date_created is not None]
    if not dated:
        return OrderTimingResult.empty()

    hour_counts = [0] * 24
    hour_revenue = [Decimal("0")] * 24
    day_counts = [0] * 7
    day_revenue = [Decimal("0")] * 7
    range_counts = [0] * len(TIME_OF_DAY_RANGES)
    range_revenue = [Decimal("0")] * len(TIME_OF_DAY_RANGES)

    for order in dated:
        hour = order.date_created.hour
        day = weekday_index(order)
        hour_counts[hour] += 1
        hour_revenue[hour] += order.total
        day_counts[day] += 1
        day_revenue[day] += order.total
        for index, (_, hours) in enumerate(TIME_OF_DAY_RANGES):
            if hour in hours:
                range_counts[index] += 1
                range_revenue[index] += order.total
                break

    total = len(dated)
    hourly = _buckets([hour_label(h) for h in range(24)], hour_counts, hour_revenue, total)
    weekdays = _buckets(DAY_NAMES, day_counts, day_revenue, total)
    time_of_day = _buckets(
        [name for name, _ in TIME_OF_DAY_RANGES], range_counts, range_revenue, total
    )

    best_days, worst_days = _rank(weekdays, BEST_DAYS)
    best_hours, worst_hours = _rank(hourly, BEST_HOURS)

    return OrderTimingResult(
        weekday_distribution=weekdays,
        time_of_day_distribution=time_of_day,
        hourly_distribution=hourly,
        best_performing_days=best_days,
        best_performing_hours=best_hours,
        worst_performing_days=worst_days,
        worst_performing_hours=worst_hours,
        total_orders=total,
    )
