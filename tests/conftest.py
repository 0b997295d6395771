"""Shared fixtures for the customer analytics test suite."""

from datetime import datetime
from decimal import Decimal

import pytest
import structlog

from customer_analytics.foundation.records import Customer, LineItem, Order, Product

NOW = datetime(2024, 6, 1)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI runs."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def customers():
    """One customer per lifecycle segment plus one who never ordered."""
    return [
        Customer("C1", 4, Decimal("400"), datetime(2023, 6, 1), datetime(2024, 5, 20)),
        Customer("C2", 2, Decimal("100"), datetime(2024, 1, 10), datetime(2024, 5, 1)),
        Customer("C3", 2, Decimal("80"), datetime(2023, 10, 1), datetime(2024, 2, 15)),
        Customer("C4", 1, Decimal("50"), datetime(2023, 6, 15), datetime(2023, 6, 15)),
        Customer("C5", 1, Decimal("30"), datetime(2024, 5, 25), datetime(2024, 5, 25)),
        Customer("C6", 2, Decimal("60"), datetime(2023, 1, 1), datetime(2023, 12, 1)),
        Customer("C7"),
    ]


@pytest.fixture
def orders():
    return [
        Order("O1", "C1", datetime(2024, 4, 14, 10, 0), Decimal("100"), (LineItem(7), LineItem(9))),
        Order("O2", "C1", datetime(2024, 5, 20, 14, 30), Decimal("120"), (LineItem(7), LineItem(9), LineItem(11))),
        Order("O3", "C2", datetime(2024, 1, 10, 9, 15), Decimal("40"), (LineItem(11),)),
        Order("O4", "C2", datetime(2024, 5, 1, 19, 45), Decimal("60"), (LineItem(7), LineItem(9))),
        Order("O5", "C3", datetime(2024, 2, 15, 23, 30), Decimal("80"), (LineItem(9),)),
        Order("O6", "C5", datetime(2024, 5, 25, 8, 0), Decimal("0"), ()),
        Order("O7", None, None, Decimal("10"), (LineItem(7),)),
    ]


@pytest.fixture
def products():
    return [
        Product(7, "Coffee Beans"),
        Product(9, "Grinder"),
        Product(11, "Filter Papers"),
    ]
