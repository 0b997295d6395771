"""Lifecycle segmentation of customers.

Answers "where is each customer in their lifecycle right now?" using only
recency and order count. Every customer who has ordered lands in exactly
one segment; rules are checked in a fixed order and the first match wins:

1. ``new``       first order within the last 30 days
2. ``one-time``  a single order, placed more than 30 days ago
3. ``loyal``     3+ orders, last order within 60 days
4. ``active``    last order within 60 days
5. ``at-risk``   last order 61-120 days ago
6. ``lost``      last order more than 120 days ago
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Hashable, Sequence

from customer_analytics.foundation._utils import days_between, percentage
from customer_analytics.foundation.records import Customer

NEW_CUSTOMER_DAYS = 30
ONE_TIME_GRACE_DAYS = 30
ACTIVE_DAYS = 60
AT_RISK_DAYS = 120
LOYAL_MIN_ORDERS = 3
TOP_CUSTOMERS_LIMIT = 10

# Report order of segments.
SEGMENTS = ("loyal", "active", "at-risk", "lost", "new", "one-time")


@dataclass(frozen=True)
class SegmentSummary:
    name: str
    count: int
    percentage: int
    customer_ids: tuple[Hashable, ...]


@dataclass(frozen=True)
class SegmentationResult:
    """Lifecycle segmentation results.

    Attributes
    ----------
    total_customers:
        Size of the input population, segmented or not.
    segmented_customers:
        Customers assigned to a segment (those who have ordered).
    segments:
        One summary per name in :data:`SEGMENTS`, in that order.
    active_customers:
        Loyal plus active customers.
    average_order_value:
        Total spend divided by total orders across the population.
    customer_lifetime_value:
        Total spend divided by the population size.
    top_spending_customers, most_frequent_customers:
        Up to 10 customer ids each.
    """

    total_customers: int
    segmented_customers: int
    segments: tuple[SegmentSummary, ...]
    new_customers: int
    active_customers: int
    at_risk_customers: int
    lost_customers: int
    average_order_value: Decimal
    customer_lifetime_value: Decimal
    top_spending_customers: tuple[Hashable, ...]
    most_frequent_customers: tuple[Hashable, ...]

    def __post_init__(self) -> None:
        if sum(s.count for s in self.segments) != self.segmented_customers:
            raise ValueError(
                "Segment counts must sum to the number of segmented customers"
            )

    @classmethod
    def empty(cls) -> "SegmentationResult":
        return cls(
            total_customers=0,
            segmented_customers=0,
            segments=tuple(SegmentSummary(name, 0, 0, ()) for name in SEGMENTS),
            new_customers=0,
            active_customers=0,
            at_risk_customers=0,
            lost_customers=0,
            average_order_value=Decimal("0"),
            customer_lifetime_value=Decimal("0"),
            top_spending_customers=(),
            most_frequent_customers=(),
        )

    def segment(self, name: str) -> SegmentSummary:
        for summary in self.segments:
            if summary.name == name:
                return summary
        raise KeyError(name)


def classify_customer(customer: Customer, now: datetime) -> str | None:
    """Return the lifecycle segment for ``customer``, or ``None`` if the
    customer has never ordered.

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> c = Customer("C1", 4, Decimal("200"), datetime(2023, 1, 1), datetime(2024, 5, 20))
    >>> classify_customer(c, datetime(2024, 6, 1))
    'loyal'
    """
    if not customer.has_ordered:
        return None

    days_since_last = days_between(now, customer.last_order_date)

    if (
        customer.first_order_date is not None
        and days_between(now, customer.first_order_date) <= NEW_CUSTOMER_DAYS
    ):
        return "new"
    if customer.order_count == 1 and days_since_last > ONE_TIME_GRACE_DAYS:
        return "one-time"
    if customer.order_count >= LOYAL_MIN_ORDERS and days_since_last <= ACTIVE_DAYS:
        return "loyal"
    if days_since_last <= ACTIVE_DAYS:
        return "active"
    if days_since_last <= AT_RISK_DAYS:
        return "at-risk"
    return "lost"


def segment_customers(
    customers: Sequence[Customer], now: datetime
) -> SegmentationResult:
    """Assign every customer who has ordered to exactly one segment.

    Percentages are relative to the number of segmented customers, so
    customers who never ordered do not dilute them.
    """
    if not customers:
        return SegmentationResult.empty()

    members: dict[str, list[Hashable]] = {name: [] for name in SEGMENTS}
    for customer in customers:
        segment = classify_customer(customer, now)
        if segment is None:
            continue
        members[segment].append(customer.customer_id)

    segmented = sum(len(ids) for ids in members.values())
    segments = tuple(
        SegmentSummary(
            name=name,
            count=len(ids),
            percentage=percentage(len(ids), segmented),
            customer_ids=tuple(ids),
        )
        for name, ids in members.items()
    )

    total_orders = sum(c.order_count for c in customers)
    total_spent = sum((c.total_spent for c in customers), Decimal("0"))
    average_order_value = total_spent / total_orders if total_orders else Decimal("0")
    customer_lifetime_value = total_spent / len(customers)

    top_spending = sorted(customers, key=lambda c: c.total_spent, reverse=True)
    most_frequent = sorted(customers, key=lambda c: c.order_count, reverse=True)

    return SegmentationResult(
        total_customers=len(customers),
        segmented_customers=segmented,
        segments=segments,
        new_customers=len(members["new"]),
        active_customers=len(members["loyal"]) + len(members["active"]),
        at_risk_customers=len(members["at-risk"]),
        lost_customers=len(members["lost"]),
        average_order_value=average_order_value,
        customer_lifetime_value=customer_lifetime_value,
        top_spending_customers=tuple(
            c.customer_id for c in top_spending[:TOP_CUSTOMERS_LIMIT]
        ),
        most_frequent_customers=tuple(
            c.customer_id for c in most_frequent[:TOP_CUSTOMERS_LIMIT]
        ),
    )
