"""Customer behaviour analyses.

Each analyzer is a pure function over the shared customer/order/product
snapshot:

1. Lifecycle segmentation - which stage each customer is in
2. Purchase frequency - time between repeat purchases
3. Product affinity - products bought together
4. Order timing - when orders are placed
"""

from .order_timing import OrderTimingResult, TimingBucket, analyze_order_timing
from .product_affinity import (
    ProductAffinityResult,
    ProductPair,
    analyze_product_affinity,
)
from .purchase_frequency import (
    IntervalBucket,
    PurchaseFrequencyResult,
    SegmentFrequency,
    analyze_purchase_frequency,
)
from .segmentation import (
    SegmentationResult,
    SegmentSummary,
    classify_customer,
    segment_customers,
)

__all__ = [
    # Order timing
    "OrderTimingResult",
    "TimingBucket",
    "analyze_order_timing",
    # Product affinity
    "ProductAffinityResult",
    "ProductPair",
    "analyze_product_affinity",
    # Purchase frequency
    "IntervalBucket",
    "PurchaseFrequencyResult",
    "SegmentFrequency",
    "analyze_purchase_frequency",
    # Segmentation
    "SegmentationResult",
    "SegmentSummary",
    "classify_customer",
    "segment_customers",
]
