"""Pandas DataFrame adapters for the customer analytics report."""

from typing import Any, Dict, List, Sequence

import pandas as pd  # type: ignore

from customer_analytics.orchestration.report import CustomerAnalyticsReport

BUCKET_COLUMNS = ["label", "count", "percentage"]
TIMING_COLUMNS = ["label", "count", "percentage", "revenue", "average_order_value"]


def _frame(rows: List[Dict[str, Any]], columns: Sequence[str]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=list(columns))
    return pd.DataFrame(rows, columns=list(columns))


def report_to_dataframes(report: CustomerAnalyticsReport) -> Dict[str, pd.DataFrame]:
    """Flatten a report into one DataFrame per table.

    Args:
        report: Report produced by the orchestrator

    Returns:
        Dictionary with keys:
        - 'segments': name, count, percentage
        - 'rfm_segments': label, count, percentage
        - 'rfm_scores': dimension, label, count, percentage
        - 'cohort_retention': one row per cohort and month offset
        - 'days_between': label, count, percentage
        - 'segment_frequency': segment, average_days, next_purchase_prediction, customers
        - 'product_pairs': one row per frequently bought together pair
        - 'weekday', 'time_of_day', 'hourly': order timing buckets

    Example:
        >>> tables = report_to_dataframes(report)
        >>> tables["cohort_retention"].pivot(index="cohort_id", columns="month", values="rate")
    """
    data = report.to_serialisable()
    segmentation = data["segmentation"]
    rfm = data["rfm"]
    frequency = data["purchase_frequency"]
    timing = data["order_timing"]

    segments = _frame(
        [
            {"name": s["name"], "count": s["count"], "percentage": s["percentage"]}
            for s in segmentation["customer_segments"]
        ],
        ["name", "count", "percentage"],
    )

    rfm_scores = _frame(
        [
            {"dimension": dimension, **bucket}
            for dimension in ("recency", "frequency", "monetary")
            for bucket in rfm[f"{dimension}_distribution"]
        ],
        ["dimension"] + BUCKET_COLUMNS,
    )

    retention_columns = [
        "cohort_id",
        "cohort_label",
        "initial_customers",
        "month",
        "rate",
        "customers",
        "value",
        "observed",
    ]
    retention = _frame(
        [
            {
                "cohort_id": cohort["cohort_id"],
                "cohort_label": cohort["month"],
                "initial_customers": cohort["initial_customers"],
                **point,
            }
            for cohort in data["cohort_analysis"]
            for point in cohort["retention_rates"]
        ],
        retention_columns,
    )

    pair_columns = [
        "product1_id",
        "product1_name",
        "product2_id",
        "product2_name",
        "cooccurrence_count",
        "support_percentage",
        "confidence_percentage",
        "lift_score",
    ]

    return {
        "segments": segments,
        "rfm_segments": _frame(rfm["rfm_distribution"], BUCKET_COLUMNS),
        "rfm_scores": rfm_scores,
        "cohort_retention": retention,
        "days_between": _frame(frequency["days_between_distribution"], BUCKET_COLUMNS),
        "segment_frequency": _frame(
            frequency["segment_frequency"],
            ["segment", "average_days", "next_purchase_prediction", "customers"],
        ),
        "product_pairs": _frame(
            data["product_affinity"]["frequently_bought_together"], pair_columns
        ),
        "weekday": _frame(timing["weekday_distribution"], TIMING_COLUMNS),
        "time_of_day": _frame(timing["time_of_day_distribution"], TIMING_COLUMNS),
        "hourly": _frame(timing["hourly_distribution"], TIMING_COLUMNS),
    }
