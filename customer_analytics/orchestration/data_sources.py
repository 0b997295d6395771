"""Data sources feeding the analytics engine.

The engine performs no I/O of its own. A :class:`DataSource` supplies the
customer, order and product collections; an optional :class:`RFMStore`
keeps RFM batches between runs. Both are injected into the orchestrator.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from customer_analytics.foundation.records import (
    Customer,
    Order,
    Product,
    parse_customers,
    parse_orders,
    parse_products,
)
from customer_analytics.foundation.rfm import RFMBatch, RFMRecord, latest_batch

logger = structlog.get_logger(__name__)

MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM
TRANSIENT_ERRORS = (ConnectionError, TimeoutError)


class DataSource(Protocol):
    """Supplier of the three input collections."""

    def fetch_customers(self) -> Sequence[Customer]: ...

    def fetch_orders(
        self, start_date: date | None = None, end_date: date | None = None
    ) -> Sequence[Order]: ...

    def fetch_products(self) -> Sequence[Product]: ...


class RFMStore(Protocol):
    """Write-through store of RFM scoring runs."""

    def save_batch(self, batch: RFMBatch) -> None: ...

    def latest(self) -> list[RFMRecord]: ...


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time())


def filter_orders_by_date(
    orders: Iterable[Order],
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Order]:
    """Keep orders with ``start_date <= date_created < end_date + 1 day``.

    Without bounds every order is returned. With any bound, undated orders
    are dropped. Bounds are UTC calendar days.
    """
    orders = list(orders)
    if start_date is None and end_date is None:
        return orders

    kept: list[Order] = []
    for order in orders:
        ts = order.date_created
        if ts is None:
            continue
        if start_date is not None and ts < _midnight(start_date):
            continue
        if end_date is not None and ts >= _midnight(end_date + timedelta(days=1)):
            continue
        kept.append(order)
    return kept


class InMemoryDataSource:
    """Data source over already-loaded records or raw mappings."""

    def __init__(
        self,
        customers: Iterable[Customer | Mapping[str, Any]] = (),
        orders: Iterable[Order | Mapping[str, Any]] = (),
        products: Iterable[Product | Mapping[str, Any]] = (),
    ) -> None:
        self._customers = parse_customers(customers)
        self._orders = parse_orders(orders)
        self._products = parse_products(products)

    def fetch_customers(self) -> list[Customer]:
        return list(self._customers)

    def fetch_orders(
        self, start_date: date | None = None, end_date: date | None = None
    ) -> list[Order]:
        return filter_orders_by_date(self._orders, start_date, end_date)

    def fetch_products(self) -> list[Product]:
        return list(self._products)


class JsonFileDataSource:
    """Data source reading ``customers.json``, ``orders.json`` and
    ``products.json`` from a directory.

    Each file holds a JSON list of records. A missing products file is
    treated as an empty catalogue; missing customer or order files raise
    ``FileNotFoundError``.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _load(self, name: str, required: bool = True) -> list[dict[str, Any]]:
        path = (self.directory / name).resolve()
        if not path.exists() and not required:
            return []
        size = path.stat().st_size
        if size > MAX_INPUT_BYTES:
            raise ValueError(
                f"Input file {path} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
            )
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, list):
            raise ValueError(f"Expected a list of records in {path}")
        logger.debug("records_loaded", file=str(path), count=len(payload))
        return payload

    def fetch_customers(self) -> list[Customer]:
        return parse_customers(self._load("customers.json"))

    def fetch_orders(
        self, start_date: date | None = None, end_date: date | None = None
    ) -> list[Order]:
        orders = parse_orders(self._load("orders.json"))
        return filter_orders_by_date(orders, start_date, end_date)

    def fetch_products(self) -> list[Product]:
        return parse_products(self._load("products.json", required=False))


class InMemoryRFMStore:
    """RFM store keeping every batch; readers only see the latest one."""

    def __init__(self) -> None:
        self._records: list[RFMRecord] = []

    def save_batch(self, batch: RFMBatch) -> None:
        self._records.extend(batch.records)
        logger.info(
            "rfm_batch_saved",
            calculation_date=batch.calculation_date.isoformat(),
            records=len(batch.records),
        )

    def latest(self) -> list[RFMRecord]:
        return latest_batch(self._records)


@dataclass(frozen=True)
class Snapshot:
    """Read-only inputs shared by every analyzer in one run."""

    customers: tuple[Customer, ...]
    orders: tuple[Order, ...]
    products: tuple[Product, ...]


def fetch_snapshot(
    source: DataSource,
    start_date: date | None = None,
    end_date: date | None = None,
    attempts: int = 3,
    wait=None,
) -> Snapshot:
    """Fetch customers, orders and products once.

    Transient ``ConnectionError``/``TimeoutError`` failures are retried
    with exponential backoff; the last error is re-raised.
    """
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait if wait is not None else wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )

    def _fetch(name: str, fn, *args):
        for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "fetch_retry",
                        collection=name,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return fn(*args)

    customers = _fetch("customers", source.fetch_customers)
    orders = _fetch("orders", source.fetch_orders, start_date, end_date)
    products = _fetch("products", source.fetch_products)

    logger.info(
        "snapshot_fetched",
        customers=len(customers),
        orders=len(orders),
        products=len(products),
        start_date=start_date.isoformat() if start_date else None,
        end_date=end_date.isoformat() if end_date else None,
    )
    return Snapshot(tuple(customers), tuple(orders), tuple(products))
