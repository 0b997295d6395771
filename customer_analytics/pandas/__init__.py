"""Pandas DataFrame adapters for the customer analytics engine."""

from .records import (
    dataframe_to_customers,
    dataframe_to_orders,
    dataframe_to_products,
)
from .report import report_to_dataframes

__all__ = [
    # Input adapters
    "dataframe_to_customers",
    "dataframe_to_orders",
    "dataframe_to_products",
    # Report adapters
    "report_to_dataframes",
]
