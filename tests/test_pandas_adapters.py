"""Tests for the pandas DataFrame adapters."""

from datetime import datetime
from decimal import Decimal

import pandas as pd
import pytest

from customer_analytics.orchestration.coordinator import compute_customer_analytics
from customer_analytics.orchestration.report import CustomerAnalyticsReport
from customer_analytics.pandas import (
    dataframe_to_customers,
    dataframe_to_orders,
    dataframe_to_products,
    report_to_dataframes,
)

NOW = datetime(2024, 6, 1)


class TestDataFrameToRecords:
    """Test DataFrame input adapters."""

    def test_customers(self):
        df = pd.DataFrame(
            {
                "customer_id": [1, 2],
                "order_count": [2, 0],
                "total_spent": [50.5, 0.0],
                "first_order_date": pd.to_datetime(["2024-01-05", None]),
                "last_order_date": ["2024-02-10T10:00:00Z", None],
            }
        )

        first, second = dataframe_to_customers(df)

        assert first.customer_id == 1
        assert type(first.customer_id) is int
        assert first.total_spent == Decimal("50.5")
        assert first.first_order_date == datetime(2024, 1, 5)
        assert first.last_order_date == datetime(2024, 2, 10, 10)
        assert second.first_order_date is None
        assert not second.has_ordered

    def test_orders(self):
        df = pd.DataFrame(
            {
                "order_id": ["O1", "O2"],
                "customer_id": [1, 1],
                "date_created": ["2024-01-05T10:00:00", "2024-02-10T10:00:00"],
                "total": ["20.00", "not-a-number"],
                "line_items": ['[{"product_id": 7}, {"product_id": 9}]', None],
            }
        )

        first, second = dataframe_to_orders(df)

        assert first.product_ids == [7, 9]
        assert first.total == Decimal("20.00")
        assert second.total == Decimal("0")
        assert second.line_items == ()

    def test_products(self):
        df = pd.DataFrame({"id": [7, 9], "name": ["Beans", None]})
        assert [p.name for p in dataframe_to_products(df)] == ["Beans", "Product 9"]

    def test_missing_id_column(self):
        with pytest.raises(ValueError, match="needs one of the columns"):
            dataframe_to_orders(pd.DataFrame({"total": [1]}))

    def test_empty_frames(self):
        assert dataframe_to_customers(pd.DataFrame(columns=["customer_id"])) == []


class TestReportToDataFrames:
    """Test report flattening."""

    def test_tables(self, customers, orders, products, now):
        report = compute_customer_analytics(customers, orders, products, now)

        tables = report_to_dataframes(report)

        assert set(tables) == {
            "segments",
            "rfm_segments",
            "rfm_scores",
            "cohort_retention",
            "days_between",
            "segment_frequency",
            "product_pairs",
            "weekday",
            "time_of_day",
            "hourly",
        }
        assert list(tables["segments"]["name"]) == [
            "loyal",
            "active",
            "at-risk",
            "lost",
            "new",
            "one-time",
        ]
        assert len(tables["rfm_scores"]) == 15
        assert len(tables["cohort_retention"]) == len(report.cohorts) * 13
        assert len(tables["hourly"]) == 24
        assert tables["product_pairs"].iloc[0]["cooccurrence_count"] == 3

    def test_empty_report(self):
        tables = report_to_dataframes(CustomerAnalyticsReport.empty(NOW))
        assert tables["cohort_retention"].empty
        assert "rate" in tables["cohort_retention"].columns
        assert tables["weekday"].empty
