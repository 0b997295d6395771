"""Tests for record normalisation and customer re-aggregation."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from customer_analytics.foundation.records import (
    Customer,
    LineItem,
    Order,
    decode_line_items,
    parse_amount,
    parse_customers,
    parse_orders,
    parse_products,
    parse_timestamp,
    refresh_customer_aggregates,
)


class TestParseTimestamp:
    """Test timestamp coercion."""

    def test_iso_string(self):
        assert parse_timestamp("2024-01-05T10:30:00") == datetime(2024, 1, 5, 10, 30)

    def test_trailing_z_is_utc(self):
        assert parse_timestamp("2024-01-05T10:30:00Z") == datetime(2024, 1, 5, 10, 30)

    def test_offset_converted_to_utc(self):
        """Aware values are converted to UTC and made naive."""
        assert parse_timestamp("2024-01-05T01:00:00+02:00") == datetime(2024, 1, 4, 23, 0)

    def test_date_becomes_midnight(self):
        assert parse_timestamp(date(2024, 3, 1)) == datetime(2024, 3, 1)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", 12345])
    def test_unusable_values_are_missing(self, value):
        assert parse_timestamp(value) is None


class TestParseAmount:
    """Test monetary amount parsing."""

    def test_decimal_string(self):
        assert parse_amount("20.00") == Decimal("20.00")

    def test_numeric(self):
        assert parse_amount(30) == Decimal("30")
        assert parse_amount(1.5) == Decimal("1.5")

    @pytest.mark.parametrize("value", ["not-a-number", "", None, True, "NaN", "Infinity", [1]])
    def test_unusable_values_are_zero(self, value):
        assert parse_amount(value) == Decimal("0")


class TestDecodeLineItems:
    """Test line item decoding."""

    def test_json_string(self):
        items = decode_line_items('[{"product_id": 7, "quantity": 2, "price": "4.50"}]')
        assert items == (LineItem(7, 2, Decimal("4.50")),)

    def test_list_of_mappings(self):
        items = decode_line_items([{"product_id": 7}, {"product_id": 9}])
        assert [item.product_id for item in items] == [7, 9]
        assert items[0].quantity == 1

    def test_invalid_json_yields_no_items(self):
        assert decode_line_items("[{broken") == ()

    def test_non_list_yields_no_items(self):
        assert decode_line_items({"product_id": 7}) == ()
        assert decode_line_items(None) == ()

    def test_items_without_product_id_dropped(self):
        items = decode_line_items([{"quantity": 3}, {"product_id": 5}, "junk"])
        assert items == (LineItem(5),)

    def test_items_with_unusable_product_id_dropped(self):
        items = decode_line_items(
            [
                {"product_id": [1, 2]},
                {"product_id": {"a": 1}},
                {"product_id": True},
                {"product_id": 5},
            ]
        )
        assert items == (LineItem(5),)


class TestCustomer:
    """Test Customer validation and derived values."""

    def test_negative_order_count_raises(self):
        with pytest.raises(ValueError, match="order_count cannot be negative"):
            Customer("C1", order_count=-1)

    def test_negative_spend_raises(self):
        with pytest.raises(ValueError, match="total_spent cannot be negative"):
            Customer("C1", order_count=1, total_spent=Decimal("-5"))

    def test_average_order_value(self):
        assert Customer("C1", 4, Decimal("100")).average_order_value == Decimal("25")
        assert Customer("C2").average_order_value == Decimal("0")

    def test_has_ordered_requires_last_order_date(self):
        assert not Customer("C1", 2, Decimal("10")).has_ordered
        assert Customer("C1", 2, Decimal("10"), last_order_date=datetime(2024, 1, 1)).has_ordered


class TestOrder:
    def test_product_ids_are_distinct(self):
        order = Order("O1", line_items=(LineItem(7), LineItem(9), LineItem(7)))
        assert order.product_ids == [7, 9]


class TestParseRecords:
    """Test parsing of raw persistence-layer rows."""

    def test_parse_customers(self):
        [customer] = parse_customers(
            [
                {
                    "id": 42,
                    "order_count": "3",
                    "total_spent": "99.90",
                    "first_order_date": "2024-01-01T00:00:00Z",
                    "last_order_date": "garbage",
                    "email": "a@example.com",
                }
            ]
        )
        assert customer.customer_id == 42
        assert customer.order_count == 3
        assert customer.total_spent == Decimal("99.90")
        assert customer.first_order_date == datetime(2024, 1, 1)
        assert customer.last_order_date is None
        assert not customer.has_ordered

    def test_malformed_counts_degrade(self):
        [customer] = parse_customers(
            [{"customer_id": "C1", "order_count": "many", "total_spent": "-10"}]
        )
        assert customer.order_count == 0
        assert customer.total_spent == Decimal("0")

    def test_missing_identifier_raises(self):
        with pytest.raises(ValueError, match="Record missing identifier"):
            parse_customers([{"customer_id": "C1"}, {"order_count": 2}])

    def test_non_mapping_row_raises(self):
        with pytest.raises(ValueError, match="Record is not a mapping"):
            parse_customers([None])
        with pytest.raises(ValueError, match="Record is not a mapping"):
            parse_orders([{"id": "O1"}, "O2"])

    def test_parse_orders(self):
        [order] = parse_orders(
            [
                {
                    "order_id": "O1",
                    "customer_id": "C1",
                    "date_created": "2024-01-05T10:00:00",
                    "total": "not-a-number",
                    "line_items": '[{"product_id": 7}]',
                }
            ]
        )
        assert order.total == Decimal("0")
        assert order.date_created == datetime(2024, 1, 5, 10)
        assert order.product_ids == [7]

    def test_empty_customer_reference_is_none(self):
        [order] = parse_orders([{"id": "O1", "customer_id": ""}])
        assert order.customer_id is None

    def test_records_pass_through(self):
        order = Order("O1")
        assert parse_orders([order]) == [order]

    def test_product_default_name(self):
        products = parse_products([{"id": 9}, {"product_id": 7, "name": "Beans"}])
        assert [p.name for p in products] == ["Product 9", "Beans"]


class TestRefreshCustomerAggregates:
    """Test re-aggregation of customer totals from orders."""

    def test_recomputes_from_orders(self):
        customers = [Customer("C1"), Customer("C2")]
        orders = [
            Order("O1", "C1", datetime(2024, 1, 5), Decimal("20")),
            Order("O2", "C1", datetime(2024, 2, 10), Decimal("30")),
            Order("O3", "C1", None, Decimal("5")),
            Order("O4", "C9", datetime(2024, 3, 1), Decimal("10")),
            Order("O5", None, datetime(2024, 3, 1), Decimal("99")),
        ]

        refreshed = refresh_customer_aggregates(customers, orders)

        assert [c.customer_id for c in refreshed] == ["C1", "C2", "C9"]
        c1, c2, c9 = refreshed
        assert c1.order_count == 3
        assert c1.total_spent == Decimal("55")
        assert c1.first_order_date == datetime(2024, 1, 5)
        assert c1.last_order_date == datetime(2024, 2, 10)
        assert c2 is customers[1]
        assert c9.order_count == 1
        assert c9.first_order_date == datetime(2024, 3, 1)

    def test_inputs_not_mutated(self):
        customers = [Customer("C1")]
        refresh_customer_aggregates(customers, [Order("O1", "C1", datetime(2024, 1, 1), Decimal("5"))])
        assert customers[0].order_count == 0
