"""Purchase frequency: how many days pass between a customer's orders.

Inter-purchase gaps below one day (split or duplicate checkouts) and above
a year (effectively a reactivation) are discarded as noise before any
statistic is computed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Hashable, Sequence

from customer_analytics.analyses.segmentation import SEGMENTS, classify_customer
from customer_analytics.foundation._utils import days_between, percentage, round_half_up
from customer_analytics.foundation.records import Customer, Order

logger = logging.getLogger(__name__)

MIN_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 365
MAX_RECOMMENDATIONS = 5
MEAN_MEDIAN_DIVERGENCE_DAYS = 5
DEFAULT_CAMPAIGN_DAYS = (7, 14, 30)

# (min, max, label), inclusive on both ends.
DAY_RANGES: tuple[tuple[int, int, str], ...] = (
    (0, 7, "0-7 days"),
    (8, 14, "8-14 days"),
    (15, 30, "15-30 days"),
    (31, 60, "31-60 days"),
    (61, 90, "61-90 days"),
    (91, 180, "91-180 days"),
    (181, 365, "181-365 days"),
)


@dataclass(frozen=True)
class IntervalBucket:
    label: str
    min_days: int
    max_days: int
    count: int
    percentage: int

    @property
    def midpoint(self) -> int:
        return int(round_half_up((self.min_days + self.max_days) / 2))


@dataclass(frozen=True)
class SegmentFrequency:
    segment: str
    average_days: float
    next_purchase_prediction: int
    customers: int


@dataclass(frozen=True)
class PurchaseFrequencyResult:
    """Inter-purchase interval statistics.

    Attributes
    ----------
    days_between_distribution:
        Histogram over :data:`DAY_RANGES`.
    segment_frequency:
        Per lifecycle segment average gap and predicted next purchase.
    average_days_between, median_days_between:
        Mean and median of all retained gaps, one decimal place.
    recommended_campaign_days:
        Up to five follow-up intervals, ascending.
    interval_count:
        Number of retained gaps.
    """

    days_between_distribution: tuple[IntervalBucket, ...]
    segment_frequency: tuple[SegmentFrequency, ...]
    average_days_between: float
    median_days_between: float
    recommended_campaign_days: tuple[int, ...]
    interval_count: int = 0

    @classmethod
    def empty(cls) -> "PurchaseFrequencyResult":
        return cls((), (), 0.0, 0.0, ())


def customer_intervals(orders: Sequence[Order]) -> dict[Hashable, list[int]]:
    """Retained day gaps between consecutive orders, per customer.

    Only customers with at least two dated orders appear in the result.
    """
    by_customer: dict[Hashable, list[Order]] = {}
    for order in orders:
        if order.customer_id is None or order.date_created is None:
            continue
        by_customer.setdefault(order.customer_id, []).append(order)

    intervals: dict[Hashable, list[int]] = {}
    for customer_id, customer_orders in by_customer.items():
        if len(customer_orders) < 2:
            continue
        ordered = sorted(customer_orders, key=lambda o: o.date_created)
        gaps = [
            days_between(current.date_created, previous.date_created)
            for previous, current in zip(ordered, ordered[1:])
        ]
        intervals[customer_id] = [
            gap for gap in gaps if MIN_INTERVAL_DAYS <= gap <= MAX_INTERVAL_DAYS
        ]
    return intervals


def median(values: Sequence[float]) -> float:
    """Median of ``values`` (mean of the two middle values for even length)."""
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return float(ordered[mid])


def _histogram(gaps: Sequence[int]) -> tuple[IntervalBucket, ...]:
    counts = [0] * len(DAY_RANGES)
    for gap in gaps:
        for index, (low, high, _) in enumerate(DAY_RANGES):
            if low <= gap <= high:
                counts[index] += 1
                break
    return tuple(
        IntervalBucket(
            label=label,
            min_days=low,
            max_days=high,
            count=count,
            percentage=percentage(count, len(gaps)),
        )
        for (low, high, label), count in zip(DAY_RANGES, counts)
    )


def _segment_frequency(
    intervals: dict[Hashable, list[int]],
    customers: Sequence[Customer],
    now: datetime,
) -> tuple[SegmentFrequency, ...]:
    averages: dict[str, list[float]] = {name: [] for name in SEGMENTS}
    for customer in customers:
        gaps = intervals.get(customer.customer_id)
        if not gaps:
            continue
        segment = classify_customer(customer, now)
        if segment is None:
            continue
        averages[segment].append(sum(gaps) / len(gaps))

    result = []
    for segment, values in averages.items():
        if not values:
            continue
        average = sum(values) / len(values)
        result.append(
            SegmentFrequency(
                segment=segment,
                average_days=round_half_up(average, 1),
                next_purchase_prediction=int(round_half_up(average)),
                customers=len(values),
            )
        )
    return tuple(result)


def recommend_campaign_days(
    mean_days: float,
    median_days: float,
    distribution: Sequence[IntervalBucket],
    segment_frequency: Sequence[SegmentFrequency] = (),
) -> tuple[int, ...]:
    """Suggest follow-up intervals from the interval statistics."""
    days: list[int] = []

    def add(value: int) -> None:
        if value > 0 and value not in days:
            days.append(value)

    if median_days > 0:
        add(int(round_half_up(median_days)))
    if abs(mean_days - median_days) > MEAN_MEDIAN_DIVERGENCE_DAYS:
        add(int(round_half_up(mean_days)))

    peak: IntervalBucket | None = None
    for bucket in distribution:
        if bucket.count > (peak.count if peak else 0):
            peak = bucket
    if peak is not None:
        add(peak.midpoint)

    for segment in segment_frequency:
        add(segment.next_purchase_prediction)

    return tuple(sorted(days)[:MAX_RECOMMENDATIONS])


def analyze_purchase_frequency(
    orders: Sequence[Order],
    customers: Sequence[Customer] | None = None,
    now: datetime | None = None,
) -> PurchaseFrequencyResult:
    """Compute inter-purchase interval statistics.

    Parameters
    ----------
    orders:
        Orders to analyse. Orders lacking a customer id or date are ignored.
    customers:
        Optional customer population. With ``now`` it enables the per
        segment frequency section.
    now:
        Reference instant used to classify customers into segments.

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> orders = [
    ...     Order("O1", 1, datetime(2024, 1, 5), Decimal("20.00")),
    ...     Order("O2", 1, datetime(2024, 2, 10), Decimal("30")),
    ... ]
    >>> result = analyze_purchase_frequency(orders)
    >>> result.average_days_between, result.median_days_between
    (36.0, 36.0)
    """
    if not orders:
        return PurchaseFrequencyResult.empty()

    intervals = customer_intervals(orders)
    gaps = [gap for customer_gaps in intervals.values() for gap in customer_gaps]

    if not gaps:
        logger.info("No repeat purchases within %d days", MAX_INTERVAL_DAYS)
        return PurchaseFrequencyResult(
            days_between_distribution=_histogram(gaps),
            segment_frequency=(),
            average_days_between=0.0,
            median_days_between=0.0,
            recommended_campaign_days=DEFAULT_CAMPAIGN_DAYS,
        )

    mean_days = sum(gaps) / len(gaps)
    median_days = median(gaps)
    distribution = _histogram(gaps)

    segment_frequency: tuple[SegmentFrequency, ...] = ()
    if customers is not None and now is not None:
        segment_frequency = _segment_frequency(intervals, customers, now)

    return PurchaseFrequencyResult(
        days_between_distribution=distribution,
        segment_frequency=segment_frequency,
        average_days_between=round_half_up(mean_days, 1),
        median_days_between=round_half_up(median_days, 1),
        recommended_campaign_days=recommend_campaign_days(
            mean_days, median_days, distribution, segment_frequency
        ),
        interval_count=len(gaps),
    )
