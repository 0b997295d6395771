"""Foundational building blocks for the customer analytics engine.

This package exposes the normalised customer/order/product records,
RFM (Recency-Frequency-Monetary) scoring and acquisition cohort retention.
"""

from .cohorts import (
    CohortRetention,
    RetentionPoint,
    analyze_cohort_retention,
    group_customers_by_month,
)
from .records import (
    Customer,
    LineItem,
    Order,
    Product,
    decode_line_items,
    parse_amount,
    parse_customers,
    parse_orders,
    parse_products,
    parse_timestamp,
    refresh_customer_aggregates,
)
from .rfm import (
    RFMBatch,
    RFMRecord,
    RFMSummary,
    calculate_rfm_records,
    latest_batch,
    score_rfm_segment,
    summarize_rfm,
)

__all__ = [
    "CohortRetention",
    "RetentionPoint",
    "analyze_cohort_retention",
    "group_customers_by_month",
    "Customer",
    "LineItem",
    "Order",
    "Product",
    "decode_line_items",
    "parse_amount",
    "parse_customers",
    "parse_orders",
    "parse_products",
    "parse_timestamp",
    "refresh_customer_aggregates",
    "RFMBatch",
    "RFMRecord",
    "RFMSummary",
    "calculate_rfm_records",
    "latest_batch",
    "score_rfm_segment",
    "summarize_rfm",
]
