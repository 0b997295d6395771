"""Market-basket analysis: which products are bought together.

For every pair of distinct products that share an order the analyzer
reports:

- support:    share of all orders containing both products
- confidence: the stronger of P(B | A) and P(A | B)
- lift:       support / (support(A) * support(B)); above 1 means the pair
              co-occurs more often than independent purchases would

Pairs seen in fewer than two orders are discarded as noise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, Mapping, Sequence

from customer_analytics.foundation._utils import round_half_up
from customer_analytics.foundation.records import Order, Product, product_label

logger = logging.getLogger(__name__)

MIN_PAIR_COUNT = 2
TOP_PAIRS = 10
NOT_COMPUTED = "not_computed"


@dataclass(frozen=True)
class ProductPair:
    """Co-occurrence statistics for an unordered product pair."""

    product1_id: Hashable
    product1_name: str
    product2_id: Hashable
    product2_name: str
    cooccurrence_count: int
    support: float
    confidence: float
    lift: float

    @property
    def support_percentage(self) -> float:
        return round_half_up(self.support * 100, 1)

    @property
    def confidence_percentage(self) -> float:
        return round_half_up(self.confidence * 100, 1)

    @property
    def lift_score(self) -> float:
        return round_half_up(self.lift, 2)


@dataclass(frozen=True)
class ProductAffinityResult:
    """Product affinity results.

    Cross-sell and category preference sections need a trained
    recommender; until one exists they stay empty and
    ``recommendations_status`` says so.
    """

    frequently_bought_together: tuple[ProductPair, ...]
    cross_sell_opportunities: tuple = ()
    category_preferences: tuple = ()
    recommendations_status: str = NOT_COMPUTED
    total_orders: int = 0
    pairs_considered: int = 0

    @classmethod
    def empty(cls) -> "ProductAffinityResult":
        return cls(frequently_bought_together=())


def _id_sort_key(product_id: Hashable) -> tuple[bool, str | Hashable]:
    # Keeps mixed int/str ids comparable.
    return (isinstance(product_id, str), product_id)


def count_cooccurrences(
    orders: Sequence[Order],
) -> tuple[dict[Hashable, int], dict[tuple[Hashable, Hashable], int]]:
    """Count per-product order occurrences and pair co-occurrences.

    A product listed twice on the same order counts once for that order.
    """
    product_counts: dict[Hashable, int] = {}
    pair_counts: dict[tuple[Hashable, Hashable], int] = {}

    for order in orders:
        product_ids = order.product_ids
        for product_id in product_ids:
            product_counts[product_id] = product_counts.get(product_id, 0) + 1
        for i, first in enumerate(product_ids):
            for second in product_ids[i + 1 :]:
                pair = tuple(sorted((first, second), key=_id_sort_key))
                pair_counts[pair] = pair_counts.get(pair, 0) + 1

    return product_counts, pair_counts


def analyze_product_affinity(
    orders: Sequence[Order],
    products: Sequence[Product],
    min_pair_count: int = MIN_PAIR_COUNT,
    top_n: int = TOP_PAIRS,
) -> ProductAffinityResult:
    """Mine frequently co-purchased product pairs.

    Parameters
    ----------
    orders:
        Orders with decoded line items. Every order counts toward the
        support denominator, including orders without items.
    products:
        Product catalogue used for display names. Unknown ids are labelled
        ``"Product {id}"``.
    min_pair_count:
        Pairs seen fewer times are discarded.
    top_n:
        Number of pairs reported, ranked by lift.

    Examples
    --------
    >>> from customer_analytics.foundation.records import LineItem
    >>> orders = [
    ...     Order("O1", line_items=(LineItem(7), LineItem(9))),
    ...     Order("O2", line_items=(LineItem(7), LineItem(9))),
    ... ]
    >>> pair = analyze_product_affinity(orders, []).frequently_bought_together[0]
    >>> pair.support, pair.confidence, pair.lift
    (1.0, 1.0, 1.0)
    """
    total_orders = len(orders)
    if total_orders == 0:
        return ProductAffinityResult.empty()

    names: Mapping[Hashable, str] = {p.product_id: p.name for p in products}
    product_counts, pair_counts = count_cooccurrences(orders)

    pairs: list[ProductPair] = []
    for (first, second), count in pair_counts.items():
        if count < min_pair_count:
            continue
        first_count = product_counts.get(first, 0)
        second_count = product_counts.get(second, 0)
        support = count / total_orders
        first_support = first_count / total_orders
        second_support = second_count / total_orders

        confidence = max(
            count / first_count if first_count else 0.0,
            count / second_count if second_count else 0.0,
        )
        lift = (
            support / (first_support * second_support)
            if first_support > 0 and second_support > 0
            else 0.0
        )
        pairs.append(
            ProductPair(
                product1_id=first,
                product1_name=product_label(first, names),
                product2_id=second,
                product2_name=product_label(second, names),
                cooccurrence_count=count,
                support=support,
                confidence=confidence,
                lift=lift,
            )
        )

    pairs.sort(
        key=lambda p: (
            -p.lift,
            -p.cooccurrence_count,
            _id_sort_key(p.product1_id),
            _id_sort_key(p.product2_id),
        )
    )
    logger.debug(
        "Found %d product pairs with at least %d co-occurrences",
        len(pairs),
        min_pair_count,
    )

    return ProductAffinityResult(
        frequently_bought_together=tuple(pairs[:top_n]),
        total_orders=total_orders,
        pairs_considered=len(pairs),
    )
