"""The merged customer analytics report and its serialisation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Hashable, Iterable

from customer_analytics.analyses.order_timing import OrderTimingResult, TimingBucket
from customer_analytics.analyses.product_affinity import (
    ProductAffinityResult,
    ProductPair,
)
from customer_analytics.analyses.purchase_frequency import PurchaseFrequencyResult
from customer_analytics.analyses.segmentation import SegmentationResult
from customer_analytics.foundation._utils import round_half_up
from customer_analytics.foundation.cohorts import CohortRetention
from customer_analytics.foundation.rfm import DistributionBucket, RFMSummary


def _money(value: Decimal) -> float:
    return round_half_up(value, 2)


def _sorted_ids(ids: Iterable[Hashable]) -> list[Hashable]:
    return sorted(ids, key=lambda v: (isinstance(v, str), v))


def _distribution(buckets: Iterable[DistributionBucket]) -> list[dict[str, Any]]:
    return [
        {"label": b.label, "count": b.count, "percentage": b.percentage}
        for b in buckets
    ]


def _timing(buckets: Iterable[TimingBucket]) -> list[dict[str, Any]]:
    return [
        {
            "label": b.label,
            "count": b.count,
            "percentage": b.percentage,
            "revenue": _money(b.revenue),
            "average_order_value": _money(b.average_order_value),
        }
        for b in buckets
    ]


def _pair(pair: ProductPair) -> dict[str, Any]:
    return {
        "product1_id": pair.product1_id,
        "product1_name": pair.product1_name,
        "product2_id": pair.product2_id,
        "product2_name": pair.product2_name,
        "cooccurrence_count": pair.cooccurrence_count,
        "support_percentage": pair.support_percentage,
        "confidence_percentage": pair.confidence_percentage,
        "lift_score": pair.lift_score,
    }


def serialise_segmentation(result: SegmentationResult) -> dict[str, Any]:
    return {
        "total_customers": result.total_customers,
        "segmented_customers": result.segmented_customers,
        "new_customers": result.new_customers,
        "active_customers": result.active_customers,
        "at_risk_customers": result.at_risk_customers,
        "lost_customers": result.lost_customers,
        "customer_segments": [
            {
                "name": s.name,
                "count": s.count,
                "percentage": s.percentage,
                "customer_ids": list(s.customer_ids),
            }
            for s in result.segments
        ],
        "average_order_value": _money(result.average_order_value),
        "customer_lifetime_value": _money(result.customer_lifetime_value),
        "top_spending_customers": list(result.top_spending_customers),
        "most_frequent_customers": list(result.most_frequent_customers),
    }


def serialise_rfm(summary: RFMSummary) -> dict[str, Any]:
    return {
        "calculation_date": (
            summary.calculation_date.isoformat() if summary.calculation_date else None
        ),
        "rfm_distribution": _distribution(summary.rfm_distribution),
        "recency_distribution": _distribution(summary.recency_distribution),
        "frequency_distribution": _distribution(summary.frequency_distribution),
        "monetary_distribution": _distribution(summary.monetary_distribution),
    }


def serialise_cohorts(cohorts: Iterable[CohortRetention]) -> list[dict[str, Any]]:
    return [
        {
            "cohort_id": c.cohort_id,
            "month": c.label,
            "initial_customers": c.initial_customers,
            "customer_ids": _sorted_ids(c.customer_ids),
            "retention_rates": [
                {
                    "month": p.month,
                    "rate": p.rate,
                    "customers": p.customers,
                    "value": _money(p.value),
                    "observed": p.observed,
                }
                for p in c.retention_rates
            ],
            "total_value": _money(c.total_value),
            "average_customer_value": _money(c.average_customer_value),
        }
        for c in cohorts
    ]


def serialise_purchase_frequency(result: PurchaseFrequencyResult) -> dict[str, Any]:
    return {
        "days_between_distribution": [
            {"label": b.label, "count": b.count, "percentage": b.percentage}
            for b in result.days_between_distribution
        ],
        "segment_frequency": [
            {
                "segment": s.segment,
                "average_days": s.average_days,
                "next_purchase_prediction": s.next_purchase_prediction,
                "customers": s.customers,
            }
            for s in result.segment_frequency
        ],
        "average_days_between": result.average_days_between,
        "median_days_between": result.median_days_between,
        "recommended_campaign_days": list(result.recommended_campaign_days),
        "interval_count": result.interval_count,
    }


def serialise_product_affinity(result: ProductAffinityResult) -> dict[str, Any]:
    return {
        "frequently_bought_together": [
            _pair(p) for p in result.frequently_bought_together
        ],
        "cross_sell_opportunities": list(result.cross_sell_opportunities),
        "category_preferences": list(result.category_preferences),
        "recommendations_status": result.recommendations_status,
        "total_orders": result.total_orders,
        "pairs_considered": result.pairs_considered,
    }


def serialise_order_timing(result: OrderTimingResult) -> dict[str, Any]:
    return {
        "weekday_distribution": _timing(result.weekday_distribution),
        "time_of_day_distribution": _timing(result.time_of_day_distribution),
        "hourly_distribution": _timing(result.hourly_distribution),
        "best_performing_days": _timing(result.best_performing_days),
        "best_performing_hours": _timing(result.best_performing_hours),
        "worst_performing_days": _timing(result.worst_performing_days),
        "worst_performing_hours": _timing(result.worst_performing_hours),
        "total_orders": result.total_orders,
    }


@dataclass(frozen=True)
class CustomerAnalyticsReport:
    """Fully resolved output of one analytics run.

    Attributes
    ----------
    generated_at:
        The reference instant shared by every analyzer.
    analyzer_errors:
        Analyzer name -> error message for sections replaced by defaults.
        Upstream fetch failures are recorded under ``"data_source"``.
    """

    generated_at: datetime
    segmentation: SegmentationResult
    rfm: RFMSummary
    cohorts: tuple[CohortRetention, ...]
    purchase_frequency: PurchaseFrequencyResult
    product_affinity: ProductAffinityResult
    order_timing: OrderTimingResult
    analyzer_errors: dict[str, str] = field(default_factory=dict)

    @classmethod
    def empty(
        cls, now: datetime, errors: dict[str, str] | None = None
    ) -> "CustomerAnalyticsReport":
        """The all-zero report returned when no data could be analysed."""
        return cls(
            generated_at=now,
            segmentation=SegmentationResult.empty(),
            rfm=RFMSummary.empty(),
            cohorts=(),
            purchase_frequency=PurchaseFrequencyResult.empty(),
            product_affinity=ProductAffinityResult.empty(),
            order_timing=OrderTimingResult.empty(),
            analyzer_errors=dict(errors or {}),
        )

    @property
    def is_complete(self) -> bool:
        return not self.analyzer_errors

    def to_serialisable(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation of the report."""
        return {
            "generated_at": self.generated_at.isoformat(),
            "segmentation": serialise_segmentation(self.segmentation),
            "rfm": serialise_rfm(self.rfm),
            "cohort_analysis": serialise_cohorts(self.cohorts),
            "purchase_frequency": serialise_purchase_frequency(self.purchase_frequency),
            "product_affinity": serialise_product_affinity(self.product_affinity),
            "order_timing": serialise_order_timing(self.order_timing),
            "analyzer_errors": dict(sorted(self.analyzer_errors.items())),
        }
