"""Acquisition cohorts and month-by-month retention curves.

Customers are grouped by the calendar month of their first order. For
each cohort the retention curve tracks, for month offsets 0 through 12,
the share of cohort members who placed at least one order in that month.

Quick Start
-----------
>>> from datetime import datetime
>>> from decimal import Decimal
>>> from customer_analytics.foundation.records import Customer, Order
>>> customers = [Customer("C1", 2, Decimal("50"), datetime(2024, 1, 5), datetime(2024, 2, 10))]
>>> orders = [
...     Order("O1", "C1", datetime(2024, 1, 5), Decimal("20")),
...     Order("O2", "C1", datetime(2024, 2, 10), Decimal("30")),
... ]
>>> cohorts = analyze_cohort_retention(customers, orders, now=datetime(2024, 6, 1))
>>> cohorts[0].cohort_id, cohorts[0].retention_rates[1].rate
('2024-01', 100.0)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Hashable, Sequence

from customer_analytics.foundation._utils import add_months, month_key, round_half_up
from customer_analytics.foundation.records import Customer, Order

logger = logging.getLogger(__name__)

DEFAULT_MAX_COHORTS = 12
DEFAULT_RETENTION_MONTHS = 12

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True)
class RetentionPoint:
    """Cohort activity in one month after acquisition.

    Attributes
    ----------
    month:
        Months since acquisition (0 = acquisition month).
    rate:
        Percentage of the cohort active this month, one decimal place.
        Always 100.0 for month 0.
    customers:
        Number of cohort members active this month.
    value:
        Revenue from cohort members this month.
    observed:
        False when the month starts after the reference instant, so a zero
        rate means "not yet happened" rather than churn.
    """

    month: int
    rate: float
    customers: int
    value: Decimal
    observed: bool = True

    def __post_init__(self) -> None:
        if self.month < 0:
            raise ValueError(f"month must be >= 0, got {self.month}")
        if not 0 <= self.rate <= 100:
            raise ValueError(f"rate must be between 0 and 100, got {self.rate}")
        if self.customers < 0:
            raise ValueError(f"customers must be >= 0, got {self.customers}")


@dataclass(frozen=True)
class CohortRetention:
    """Retention curve and value for one acquisition cohort."""

    cohort_id: str
    label: str
    customer_ids: frozenset
    retention_rates: tuple[RetentionPoint, ...]
    total_value: Decimal
    average_customer_value: Decimal

    @property
    def initial_customers(self) -> int:
        return len(self.customer_ids)


def cohort_label(cohort_id: str) -> str:
    """Display label for a ``YYYY-MM`` key, e.g. ``"Jan 2024"``."""
    year, month = cohort_id.split("-")
    return f"{MONTH_ABBREVIATIONS[int(month) - 1]} {year}"


def group_customers_by_month(
    customers: Sequence[Customer],
) -> dict[str, list[Hashable]]:
    """Group customer ids by the ``YYYY-MM`` of their first order.

    Customers without a first order date are not assigned to any cohort.
    Keys are returned in chronological order.
    """
    cohorts: dict[str, list[Hashable]] = {}
    for customer in customers:
        if customer.first_order_date is None:
            continue
        members = cohorts.setdefault(month_key(customer.first_order_date), [])
        if customer.customer_id not in members:
            members.append(customer.customer_id)
    return dict(sorted(cohorts.items()))


def _cents(value: Decimal) -> Decimal:
    return Decimal(str(round_half_up(value, 2)))


def analyze_cohort_retention(
    customers: Sequence[Customer],
    orders: Sequence[Order],
    now: datetime,
    max_cohorts: int = DEFAULT_MAX_COHORTS,
    months: int = DEFAULT_RETENTION_MONTHS,
) -> list[CohortRetention]:
    """Build retention curves for each monthly acquisition cohort.

    Parameters
    ----------
    customers:
        Customer population; only those with ``first_order_date`` form cohorts.
    orders:
        Orders used to detect activity. Orders without a date or customer id
        are ignored.
    now:
        Reference instant; months starting after it are marked unobserved.
    max_cohorts:
        Only the most recent ``max_cohorts`` cohorts are returned.
    months:
        Last month offset to compute (inclusive).

    Returns
    -------
    list[CohortRetention]
        Cohorts in chronological order.
    """
    cohorts = group_customers_by_month(customers)
    if not cohorts:
        return []

    # (customer_id, YYYY-MM) -> revenue in that month
    activity: dict[tuple[Hashable, str], Decimal] = {}
    for order in orders:
        if order.date_created is None or order.customer_id is None:
            continue
        key = (order.customer_id, month_key(order.date_created))
        activity[key] = activity.get(key, Decimal("0")) + order.total

    now_key = month_key(now)
    results: list[CohortRetention] = []
    for cohort_id, member_ids in cohorts.items():
        size = len(member_ids)
        year, month = (int(part) for part in cohort_id.split("-"))

        points: list[RetentionPoint] = []
        for offset in range(months + 1):
            target_year, target_month = add_months(year, month, offset)
            target_key = f"{target_year:04d}-{target_month:02d}"

            active = 0
            value = Decimal("0")
            for member_id in member_ids:
                revenue = activity.get((member_id, target_key))
                if revenue is None:
                    continue
                active += 1
                value += revenue

            if offset == 0:
                # The cohort exists because of month-0 acquisition.
                rate = 100.0
                active = size
            else:
                rate = round_half_up(active / size * 100, 1)

            points.append(
                RetentionPoint(
                    month=offset,
                    rate=rate,
                    customers=active,
                    value=_cents(value),
                    observed=target_key <= now_key,
                )
            )

        total_value = sum((p.value for p in points), Decimal("0"))
        results.append(
            CohortRetention(
                cohort_id=cohort_id,
                label=cohort_label(cohort_id),
                customer_ids=frozenset(member_ids),
                retention_rates=tuple(points),
                total_value=_cents(total_value),
                average_customer_value=_cents(total_value / size),
            )
        )

    if len(results) > max_cohorts:
        logger.info(
            "Keeping the %d most recent of %d cohorts", max_cohorts, len(results)
        )
    return results[-max_cohorts:]
