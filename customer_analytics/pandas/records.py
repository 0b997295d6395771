"""Pandas DataFrame adapters for customer, order and product records.

These accept tables as they arrive from CSV uploads or warehouse exports
and hand each row to the same parsers the JSON data source uses, so
malformed cells degrade exactly as they do elsewhere.
"""

from typing import List

import pandas as pd  # type: ignore

from customer_analytics.foundation.records import (
    Customer,
    Order,
    Product,
    parse_customers,
    parse_orders,
    parse_products,
)
from ._utils import dataframe_records, require_columns


def dataframe_to_customers(customers_df: pd.DataFrame) -> List[Customer]:
    """Convert a customer table to :class:`Customer` records.

    Args:
        customers_df: DataFrame with a ``customer_id`` (or ``id``) column and
            optional ``order_count``, ``total_spent``, ``first_order_date``,
            ``last_order_date``, ``email``, ``first_name``, ``last_name``

    Returns:
        Customers in row order

    Raises:
        ValueError: If no identifier column exists or a row has no identifier

    Example:
        >>> df = pd.DataFrame({"customer_id": [1], "order_count": [2]})
        >>> dataframe_to_customers(df)[0].order_count
        2
    """
    require_columns(customers_df, ["customer_id", "id"], any_of=True)
    if customers_df.empty:
        return []
    return parse_customers(dataframe_records(customers_df))


def dataframe_to_orders(orders_df: pd.DataFrame) -> List[Order]:
    """Convert an order table to :class:`Order` records.

    ``line_items`` cells may hold lists of dicts or JSON strings; totals may
    be numeric or decimal strings.

    Raises:
        ValueError: If no identifier column exists or a row has no identifier
    """
    require_columns(orders_df, ["order_id", "id"], any_of=True)
    if orders_df.empty:
        return []
    return parse_orders(dataframe_records(orders_df))


def dataframe_to_products(products_df: pd.DataFrame) -> List[Product]:
    """Convert a product table to :class:`Product` records."""
    require_columns(products_df, ["product_id", "id"], any_of=True)
    if products_df.empty:
        return []
    return parse_products(dataframe_records(products_df))
