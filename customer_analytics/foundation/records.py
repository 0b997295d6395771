"""Customer, order and product records consumed by the analytics engine.

The persistence layer hands the engine loosely-typed rows: timestamps as
ISO strings, order totals as decimal strings, line items sometimes still
JSON-encoded. This module normalises those rows into immutable records so
that every analyzer sees the same clean snapshot. Malformed values degrade
to neutral ones (``None``, ``Decimal("0")``, an empty tuple) rather than
failing the whole run.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Hashable, Iterable, Mapping, Sequence

from customer_analytics.foundation._utils import to_naive_utc

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce ``value`` to a naive UTC datetime, returning ``None`` when it
    is missing or cannot be parsed.

    Accepts datetimes, dates (interpreted as midnight) and ISO-8601 strings,
    including a trailing ``Z`` for UTC. Aware values are converted to UTC.

    Examples
    --------
    >>> parse_timestamp("2024-01-05T10:30:00")
    datetime.datetime(2024, 1, 5, 10, 30)
    >>> parse_timestamp("2024-01-05T10:30:00+02:00")
    datetime.datetime(2024, 1, 5, 8, 30)
    >>> parse_timestamp("not a date") is None
    True
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            logger.warning("Unparsable timestamp %r treated as missing", value)
            return None
    logger.warning("Unsupported timestamp type %s treated as missing", type(value))
    return None


def parse_amount(value: Any) -> Decimal:
    """Parse a monetary amount, degrading anything unusable to zero.

    Examples
    --------
    >>> parse_amount("20.00")
    Decimal('20.00')
    >>> parse_amount(30)
    Decimal('30')
    >>> parse_amount("not-a-number")
    Decimal('0')
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            logger.debug("Unparsable amount %r treated as zero", value)
            return ZERO
    else:
        logger.debug("Unsupported amount type %s treated as zero", type(value))
        return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


@dataclass(frozen=True)
class LineItem:
    """A single product line on an order."""

    product_id: Hashable
    quantity: int = 1
    price: Decimal = ZERO


def decode_line_items(value: Any) -> tuple[LineItem, ...]:
    """Decode order line items that may still be JSON-encoded.

    A decode failure yields an empty tuple for that order only. Items
    without a string or integer ``product_id`` are dropped.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("Failed to decode line_items string; using no items")
            return ()
    if not isinstance(value, (list, tuple)):
        logger.warning("line_items of type %s ignored", type(value).__name__)
        return ()

    items: list[LineItem] = []
    for raw in value:
        if isinstance(raw, LineItem):
            items.append(raw)
            continue
        if not isinstance(raw, Mapping) or raw.get("product_id") is None:
            continue
        product_id = raw["product_id"]
        if isinstance(product_id, bool) or not isinstance(product_id, (str, int)):
            logger.warning(
                "Line item with product_id of type %s dropped", type(product_id).__name__
            )
            continue
        try:
            quantity = int(raw.get("quantity", 1) or 0)
        except (TypeError, ValueError):
            quantity = 0
        items.append(
            LineItem(
                product_id=product_id,
                quantity=quantity,
                price=parse_amount(raw.get("price")),
            )
        )
    return tuple(items)


@dataclass(frozen=True)
class Customer:
    """Aggregated customer record.

    Attributes
    ----------
    customer_id:
        Unique, immutable identifier.
    order_count:
        Number of orders placed. Only changes through re-aggregation.
    total_spent:
        Lifetime spend.
    first_order_date, last_order_date:
        Absent when the customer has never ordered; such customers are
        excluded from lifecycle and RFM scoring.
    """

    customer_id: Hashable
    order_count: int = 0
    total_spent: Decimal = ZERO
    first_order_date: datetime | None = None
    last_order_date: datetime | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    def __post_init__(self) -> None:
        for name in ("first_order_date", "last_order_date"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_naive_utc(value))
        if self.order_count < 0:
            raise ValueError(
                f"order_count cannot be negative: {self.order_count} (customer_id={self.customer_id})"
            )
        if self.total_spent < 0:
            raise ValueError(
                f"total_spent cannot be negative: {self.total_spent} (customer_id={self.customer_id})"
            )

    @property
    def average_order_value(self) -> Decimal:
        if self.order_count == 0:
            return ZERO
        return self.total_spent / self.order_count

    @property
    def has_ordered(self) -> bool:
        return self.order_count > 0 and self.last_order_date is not None


@dataclass(frozen=True)
class Order:
    """A normalised order."""

    order_id: Hashable
    customer_id: Hashable | None = None
    date_created: datetime | None = None
    total: Decimal = ZERO
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.date_created is not None:
            object.__setattr__(self, "date_created", to_naive_utc(self.date_created))

    @property
    def product_ids(self) -> list[Hashable]:
        """Distinct product ids on the order, in line-item order."""
        return list(dict.fromkeys(item.product_id for item in self.line_items))


@dataclass(frozen=True)
class Product:
    product_id: Hashable
    name: str


def product_label(product_id: Hashable, names: Mapping[Hashable, str]) -> str:
    return names.get(product_id) or f"Product {product_id}"


def _as_mapping(record: Any, idx: int) -> dict[str, Any]:
    if not isinstance(record, Mapping):
        raise ValueError(
            "Record is not a mapping",
            {"record_type": type(record).__name__, "record_index": idx},
        )
    return dict(record)


def _require_id(data: Mapping[str, Any], keys: Sequence[str], idx: int) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    raise ValueError(
        "Record missing identifier",
        {"expected_fields": list(keys), "record_index": idx},
    )


def parse_customers(records: Iterable[Mapping[str, Any] | Customer]) -> list[Customer]:
    """Normalise raw customer rows into :class:`Customer` records."""
    customers: list[Customer] = []
    for idx, record in enumerate(records):
        if isinstance(record, Customer):
            customers.append(record)
            continue
        data = _as_mapping(record, idx)
        try:
            order_count = max(0, int(data.get("order_count") or 0))
        except (TypeError, ValueError):
            order_count = 0
        total_spent = parse_amount(data.get("total_spent"))
        customers.append(
            Customer(
                customer_id=_require_id(data, ("customer_id", "id"), idx),
                order_count=order_count,
                total_spent=total_spent if total_spent >= 0 else ZERO,
                first_order_date=parse_timestamp(data.get("first_order_date")),
                last_order_date=parse_timestamp(data.get("last_order_date")),
                email=data.get("email"),
                first_name=data.get("first_name"),
                last_name=data.get("last_name"),
            )
        )
    return customers


def parse_orders(records: Iterable[Mapping[str, Any] | Order]) -> list[Order]:
    """Normalise raw order rows into :class:`Order` records."""
    orders: list[Order] = []
    for idx, record in enumerate(records):
        if isinstance(record, Order):
            orders.append(record)
            continue
        data = _as_mapping(record, idx)
        orders.append(
            Order(
                order_id=_require_id(data, ("order_id", "id"), idx),
                customer_id=data.get("customer_id") or None,
                date_created=parse_timestamp(data.get("date_created")),
                total=parse_amount(data.get("total")),
                line_items=decode_line_items(data.get("line_items")),
            )
        )
    return orders


def parse_products(records: Iterable[Mapping[str, Any] | Product]) -> list[Product]:
    """Normalise raw product rows into :class:`Product` records."""
    products: list[Product] = []
    for idx, record in enumerate(records):
        if isinstance(record, Product):
            products.append(record)
            continue
        data = _as_mapping(record, idx)
        product_id = _require_id(data, ("product_id", "id"), idx)
        products.append(
            Product(product_id=product_id, name=data.get("name") or f"Product {product_id}")
        )
    return products


def refresh_customer_aggregates(
    customers: Sequence[Customer], orders: Iterable[Order]
) -> list[Customer]:
    """Recompute order aggregates for each customer from their orders.

    ``order_count`` and ``total_spent`` count every order attributed to the
    customer; first/last order dates use dated orders only. Orders for
    unknown customers create new customer records (appended in first-seen
    order). Customers without orders are kept unchanged. Input records are
    never mutated.
    """
    grouped: dict[Hashable, dict[str, Any]] = {}
    for order in orders:
        if order.customer_id is None:
            continue
        data = grouped.setdefault(
            order.customer_id,
            {"count": 0, "spent": ZERO, "first": None, "last": None},
        )
        data["count"] += 1
        data["spent"] += max(order.total, ZERO)
        ts = order.date_created
        if ts is not None:
            if data["first"] is None or ts < data["first"]:
                data["first"] = ts
            if data["last"] is None or ts > data["last"]:
                data["last"] = ts

    refreshed: list[Customer] = []
    known = set()
    for customer in customers:
        known.add(customer.customer_id)
        data = grouped.get(customer.customer_id)
        if data is None:
            refreshed.append(customer)
            continue
        refreshed.append(
            replace(
                customer,
                order_count=data["count"],
                total_spent=data["spent"],
                first_order_date=data["first"],
                last_order_date=data["last"],
            )
        )

    for customer_id, data in grouped.items():
        if customer_id in known:
            continue
        refreshed.append(
            Customer(
                customer_id=customer_id,
                order_count=data["count"],
                total_spent=data["spent"],
                first_order_date=data["first"],
                last_order_date=data["last"],
            )
        )
    return refreshed
