"""Tests for product co-purchase analysis."""

import pytest

from customer_analytics.analyses.product_affinity import (
    ProductAffinityResult,
    analyze_product_affinity,
    count_cooccurrences,
)
from customer_analytics.foundation.records import (
    LineItem,
    Order,
    Product,
    decode_line_items,
)


def _basket(order_id, *product_ids):
    return Order(order_id, line_items=tuple(LineItem(pid) for pid in product_ids))


class TestCountCooccurrences:
    def test_duplicate_items_count_once(self):
        product_counts, pair_counts = count_cooccurrences(
            [_basket("O1", 7, 9, 7), _basket("O2", 9, 7)]
        )
        assert product_counts == {7: 2, 9: 2}
        assert pair_counts == {(7, 9): 2}


class TestAnalyzeProductAffinity:
    """Test pair mining and ranking."""

    def test_always_bought_together(self):
        result = analyze_product_affinity([_basket("O1", 7, 9), _basket("O2", 7, 9)], [])

        [pair] = result.frequently_bought_together
        assert (pair.product1_id, pair.product2_id) == (7, 9)
        assert pair.cooccurrence_count == 2
        assert (pair.support, pair.confidence, pair.lift) == (1.0, 1.0, 1.0)
        assert pair.support_percentage == 100.0
        assert pair.confidence_percentage == 100.0
        assert pair.lift_score == 1.0

    def test_names_from_catalogue(self):
        result = analyze_product_affinity(
            [_basket("O1", 7, 9), _basket("O2", 9, 7)], [Product(7, "Coffee Beans")]
        )
        [pair] = result.frequently_bought_together
        assert pair.product1_name == "Coffee Beans"
        assert pair.product2_name == "Product 9"

    def test_single_cooccurrence_not_reported(self):
        result = analyze_product_affinity(
            [_basket("O1", 7, 9), _basket("O2", 7), _basket("O3", 9)], []
        )
        assert result.frequently_bought_together == ()
        assert result.total_orders == 3

    def test_ranked_by_lift(self):
        orders = [
            _basket("O1", 1, 2),
            _basket("O2", 1, 2),
            _basket("O3", 3, 4),
            _basket("O4", 3, 4),
            _basket("O5", 1),
            _basket("O6", 3),
            _basket("O7", 5, 6),
            _basket("O8", 5, 6),
        ]
        result = analyze_product_affinity(orders, [], top_n=2)

        ranked = [(p.product1_id, p.product2_id) for p in result.frequently_bought_together]
        # (5, 6) never appear apart; (1, 2) and (3, 4) tie on lift and count.
        assert ranked == [(5, 6), (1, 2)]
        assert result.pairs_considered == 3
        assert result.frequently_bought_together[0].lift == pytest.approx(4.0)
        assert result.frequently_bought_together[1].lift_score == 2.67

    def test_orders_without_items_count_toward_support(self):
        result = analyze_product_affinity(
            [_basket("O1", 7, 9), _basket("O2", 7, 9), _basket("O3"), _basket("O4")], []
        )
        [pair] = result.frequently_bought_together
        assert pair.support == 0.5
        assert pair.lift == 2.0

    def test_mixed_id_types(self):
        result = analyze_product_affinity([_basket("O1", "a", 1), _basket("O2", 1, "a")], [])
        [pair] = result.frequently_bought_together
        assert (pair.product1_id, pair.product2_id) == (1, "a")

    def test_order_with_unusable_product_ids_still_analysed(self):
        orders = [
            _basket("O1", 7, 9),
            _basket("O2", 7, 9),
            Order("O3", line_items=decode_line_items('[{"product_id": [1, 2]}]')),
        ]
        result = analyze_product_affinity(orders, [])

        [pair] = result.frequently_bought_together
        assert (pair.product1_id, pair.product2_id) == (7, 9)
        assert pair.cooccurrence_count == 2
        assert result.total_orders == 3

    def test_min_pair_count_configurable(self):
        result = analyze_product_affinity([_basket("O1", 7, 9)], [], min_pair_count=1)
        assert len(result.frequently_bought_together) == 1

    def test_recommendation_sections_not_computed(self):
        result = analyze_product_affinity([_basket("O1", 7, 9), _basket("O2", 7, 9)], [])
        assert result.cross_sell_opportunities == ()
        assert result.category_preferences == ()
        assert result.recommendations_status == "not_computed"

    def test_no_orders(self):
        assert analyze_product_affinity([], []) == ProductAffinityResult.empty()
