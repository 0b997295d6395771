"""Tests for acquisition cohorts and retention curves."""

from datetime import datetime
from decimal import Decimal

from customer_analytics.foundation.cohorts import (
    analyze_cohort_retention,
    cohort_label,
    group_customers_by_month,
)
from customer_analytics.foundation.records import Customer, Order

NOW = datetime(2024, 6, 1)


def _customer(customer_id, first):
    return Customer(customer_id, 1, Decimal("10"), first, first)


class TestGrouping:
    def test_groups_by_first_order_month(self):
        customers = [
            _customer("C2", datetime(2024, 2, 3)),
            _customer("C1", datetime(2024, 1, 5)),
            _customer("C3", datetime(2024, 1, 31)),
            Customer("C4"),
        ]
        assert group_customers_by_month(customers) == {
            "2024-01": ["C1", "C3"],
            "2024-02": ["C2"],
        }

    def test_cohort_label(self):
        assert cohort_label("2024-01") == "Jan 2024"
        assert cohort_label("2023-12") == "Dec 2023"


class TestAnalyzeCohortRetention:
    """Test retention curve construction."""

    def test_single_customer_curve(self):
        customers = [
            Customer("C1", 2, Decimal("50"), datetime(2024, 1, 5), datetime(2024, 2, 10))
        ]
        orders = [
            Order("O1", "C1", datetime(2024, 1, 5), Decimal("20")),
            Order("O2", "C1", datetime(2024, 2, 10), Decimal("30")),
        ]

        [cohort] = analyze_cohort_retention(customers, orders, now=NOW)

        assert cohort.cohort_id == "2024-01"
        assert cohort.label == "Jan 2024"
        assert cohort.initial_customers == 1
        assert len(cohort.retention_rates) == 13
        month0, month1, month2 = cohort.retention_rates[:3]
        assert (month0.rate, month0.customers, month0.value) == (100.0, 1, Decimal("20.00"))
        assert (month1.rate, month1.value) == (100.0, Decimal("30.00"))
        assert month2.rate == 0.0
        assert cohort.total_value == Decimal("50.00")
        assert cohort.average_customer_value == Decimal("50.00")

    def test_month_zero_is_always_full(self):
        """Month 0 reports the whole cohort even with no orders on record."""
        customers = [_customer("C1", datetime(2024, 1, 5)), _customer("C2", datetime(2024, 1, 9))]
        [cohort] = analyze_cohort_retention(customers, [], now=NOW)
        assert cohort.retention_rates[0].rate == 100.0
        assert cohort.retention_rates[0].customers == 2

    def test_partial_retention_rounded_to_one_decimal(self):
        customers = [_customer(f"C{i}", datetime(2024, 1, 5)) for i in range(3)]
        orders = [Order("O1", "C0", datetime(2024, 2, 1), Decimal("12.345"))]
        [cohort] = analyze_cohort_retention(customers, orders, now=NOW)
        assert cohort.retention_rates[1].rate == 33.3
        assert cohort.retention_rates[1].customers == 1
        assert cohort.retention_rates[1].value == Decimal("12.35")

    def test_future_months_marked_unobserved(self):
        [cohort] = analyze_cohort_retention([_customer("C1", datetime(2024, 1, 5))], [], now=NOW)
        observed = [p.observed for p in cohort.retention_rates]
        # Jan..Jun 2024 have started; Jul 2024 onwards has not.
        assert observed == [True] * 6 + [False] * 7

    def test_keeps_most_recent_cohorts(self):
        customers = [
            _customer(f"C{m}", datetime(2023 + (m - 1) // 12, (m - 1) % 12 + 1, 1))
            for m in range(1, 15)
        ]
        cohorts = analyze_cohort_retention(customers, [], now=NOW, max_cohorts=12)
        assert len(cohorts) == 12
        assert cohorts[0].cohort_id == "2023-03"
        assert cohorts[-1].cohort_id == "2024-02"

    def test_retention_months_configurable(self):
        [cohort] = analyze_cohort_retention(
            [_customer("C1", datetime(2024, 1, 5))], [], now=NOW, months=3
        )
        assert [p.month for p in cohort.retention_rates] == [0, 1, 2, 3]

    def test_no_cohorts(self):
        assert analyze_cohort_retention([Customer("C1")], [], now=NOW) == []
