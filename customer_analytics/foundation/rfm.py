"""RFM (Recency-Frequency-Monetary) scoring utilities.

RFM analysis segments customers based on three dimensions:
- Recency: How recently did the customer make a purchase?
- Frequency: How often do they purchase?
- Monetary: How much do they spend?

Scores are rank based: the eligible population is ranked once per
dimension and cut into five equally sized groups of ``ceil(N / 5)``
customers. The best group scores 5, the worst 1. Each customer's three
scores are then mapped to a named archetype through a fixed decision
table evaluated top to bottom.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Hashable, Iterable, Sequence

from customer_analytics.foundation._utils import days_between, percentage
from customer_analytics.foundation.records import Customer

logger = logging.getLogger(__name__)

QUINTILES = 5
MIN_SCORE = 1
MAX_SCORE = 5

# Evaluated in order, first match wins. The rows overlap (e.g. "Cant Lose
# Them" is shadowed by "At Risk" whenever F and M are >= 2), so the order
# is part of the behaviour and must not be rearranged.
SEGMENT_RULES: tuple[tuple[str, Callable[[int, int, int], bool]], ...] = (
    ("Champions", lambda r, f, m: r >= 4 and f >= 4 and m >= 4),
    ("Loyal Customers", lambda r, f, m: r >= 3 and f >= 3 and m >= 3),
    ("Potential Loyalists", lambda r, f, m: r >= 3 and f >= 1 and m >= 2),
    ("At Risk", lambda r, f, m: r <= 2 and f >= 2 and m >= 2),
    ("Cant Lose Them", lambda r, f, m: r <= 1 and f >= 4 and m >= 4),
    ("New Customers", lambda r, f, m: r >= 4 and f <= 1 and m >= 1),
    ("Promising", lambda r, f, m: r >= 3 and f <= 1 and m <= 1),
    ("Needs Attention", lambda r, f, m: r >= 2 and f >= 2 and m >= 2),
    ("About To Sleep", lambda r, f, m: r >= 2 and f <= 1 and m <= 2),
)
DEFAULT_SEGMENT = "Hibernating"


@dataclass(frozen=True)
class RFMRecord:
    """RFM scores (1-5) for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency_score:
        Recency score (5 = most recent)
    frequency_score:
        Frequency score (5 = most orders)
    monetary_score:
        Monetary score (5 = highest spend)
    rfm_score:
        Composite ``recency * 100 + frequency * 10 + monetary`` (e.g. 555)
    rfm_segment:
        Named archetype from :data:`SEGMENT_RULES`
    calculation_date:
        Timestamp of the scoring run this record belongs to
    """

    customer_id: Hashable
    recency_score: int
    frequency_score: int
    monetary_score: int
    rfm_score: int
    rfm_segment: str
    calculation_date: datetime

    def __post_init__(self) -> None:
        """Validate RFM scores."""
        for score_name, score_value in [
            ("recency_score", self.recency_score),
            ("frequency_score", self.frequency_score),
            ("monetary_score", self.monetary_score),
        ]:
            if not MIN_SCORE <= score_value <= MAX_SCORE:
                raise ValueError(
                    f"{score_name} must be between 1 and 5: {score_value} (customer_id={self.customer_id})"
                )
        expected = (
            self.recency_score * 100 + self.frequency_score * 10 + self.monetary_score
        )
        if self.rfm_score != expected:
            raise ValueError(
                f"rfm_score ({self.rfm_score}) does not match r/f/m scores ({expected}) (customer_id={self.customer_id})"
            )


@dataclass(frozen=True)
class RFMBatch:
    """All RFM records produced by one scoring run."""

    calculation_date: datetime
    records: tuple[RFMRecord, ...]


@dataclass(frozen=True)
class DistributionBucket:
    label: str
    count: int
    percentage: int = 0


@dataclass(frozen=True)
class RFMSummary:
    """Reporting view of the latest RFM batch."""

    calculation_date: datetime | None
    rfm_distribution: tuple[DistributionBucket, ...]
    recency_distribution: tuple[DistributionBucket, ...]
    frequency_distribution: tuple[DistributionBucket, ...]
    monetary_distribution: tuple[DistributionBucket, ...]

    @classmethod
    def empty(cls) -> "RFMSummary":
        return cls(None, (), (), (), ())


def score_rfm_segment(recency: int, frequency: int, monetary: int) -> str:
    """Map three scores to an RFM archetype.

    Examples
    --------
    >>> score_rfm_segment(5, 5, 5)
    'Champions'
    >>> score_rfm_segment(1, 5, 5)
    'At Risk'
    >>> score_rfm_segment(1, 1, 1)
    'Hibernating'
    """
    for segment, rule in SEGMENT_RULES:
        if rule(recency, frequency, monetary):
            return segment
    return DEFAULT_SEGMENT


def _quintile_scores(
    ranked: Sequence[Customer], quintile_size: int
) -> dict[Hashable, int]:
    scores: dict[Hashable, int] = {}
    for index, customer in enumerate(ranked):
        # Duplicate ids keep their best (first) rank.
        if customer.customer_id in scores:
            continue
        score = QUINTILES - index // quintile_size
        scores[customer.customer_id] = min(MAX_SCORE, max(MIN_SCORE, score))
    return scores


def calculate_rfm_records(customers: Sequence[Customer], now: datetime) -> RFMBatch:
    """Score every customer who has ordered.

    Customers with ``order_count == 0`` or no ``last_order_date`` never
    receive a record. Rankings use stable sorts, so ties keep their input
    order and the same snapshot always yields the same scores.

    Parameters
    ----------
    customers:
        Full customer population.
    now:
        Reference instant for recency; also stamped as ``calculation_date``.

    Returns
    -------
    RFMBatch
        Records in input order, all sharing ``calculation_date == now``.

    Examples
    --------
    >>> from decimal import Decimal
    >>> from datetime import datetime
    >>> c = Customer("C1", 3, Decimal("90"), datetime(2024, 1, 1), datetime(2024, 3, 1))
    >>> batch = calculate_rfm_records([c], datetime(2024, 3, 10))
    >>> batch.records[0].rfm_score
    555
    """
    eligible = [c for c in customers if c.has_ordered]
    if not eligible:
        return RFMBatch(calculation_date=now, records=())

    quintile_size = math.ceil(len(eligible) / QUINTILES)

    by_recency = sorted(eligible, key=lambda c: days_between(now, c.last_order_date))
    by_frequency = sorted(eligible, key=lambda c: c.order_count, reverse=True)
    by_monetary = sorted(eligible, key=lambda c: c.total_spent, reverse=True)

    recency_scores = _quintile_scores(by_recency, quintile_size)
    frequency_scores = _quintile_scores(by_frequency, quintile_size)
    monetary_scores = _quintile_scores(by_monetary, quintile_size)

    records: list[RFMRecord] = []
    for customer in eligible:
        r = recency_scores.get(customer.customer_id, MIN_SCORE)
        f = frequency_scores.get(customer.customer_id, MIN_SCORE)
        m = monetary_scores.get(customer.customer_id, MIN_SCORE)
        records.append(
            RFMRecord(
                customer_id=customer.customer_id,
                recency_score=r,
                frequency_score=f,
                monetary_score=m,
                rfm_score=r * 100 + f * 10 + m,
                rfm_segment=score_rfm_segment(r, f, m),
                calculation_date=now,
            )
        )

    logger.info("Calculated RFM scores for %d customers", len(records))
    return RFMBatch(calculation_date=now, records=tuple(records))


def latest_batch(records: Iterable[RFMRecord]) -> list[RFMRecord]:
    """Return only the records of the most recent calculation run."""
    records = list(records)
    if not records:
        return []
    latest = max(r.calculation_date for r in records)
    return [r for r in records if r.calculation_date == latest]


def _score_distribution(scores: Iterable[int]) -> tuple[DistributionBucket, ...]:
    counts = Counter(scores)
    total = sum(counts.values())
    return tuple(
        DistributionBucket(
            label=f"Score {score}",
            count=counts.get(score, 0),
            percentage=percentage(counts.get(score, 0), total),
        )
        for score in range(MIN_SCORE, MAX_SCORE + 1)
    )


def summarize_rfm(records: Iterable[RFMRecord]) -> RFMSummary:
    """Summarise the latest batch into segment and score distributions.

    Segments are listed in order of first appearance; percentages are of
    the latest batch size.
    """
    latest = latest_batch(records)
    if not latest:
        return RFMSummary.empty()

    segment_counts: dict[str, int] = {}
    for record in latest:
        segment_counts[record.rfm_segment] = segment_counts.get(record.rfm_segment, 0) + 1

    rfm_distribution = tuple(
        DistributionBucket(
            label=segment, count=count, percentage=percentage(count, len(latest))
        )
        for segment, count in segment_counts.items()
    )

    return RFMSummary(
        calculation_date=latest[0].calculation_date,
        rfm_distribution=rfm_distribution,
        recency_distribution=_score_distribution(r.recency_score for r in latest),
        frequency_distribution=_score_distribution(r.frequency_score for r in latest),
        monetary_distribution=_score_distribution(r.monetary_score for r in latest),
    )
