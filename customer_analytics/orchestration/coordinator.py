"""Analytics orchestrator.

Runs every analyzer against one read-only snapshot and one reference
instant, then merges the results into a :class:`CustomerAnalyticsReport`.

Design:
- Each analyzer call yields an :class:`AnalyzerOutcome` (value or error)
- Failures are replaced with the analyzer's default in one place
  (:func:`collapse_outcomes`), so a single failing analyzer never aborts the run
- The async orchestrator fans analyzers out to worker threads with
  ``asyncio.gather``; the merged report does not depend on completion order
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable

import structlog
from opentelemetry import trace

from customer_analytics.analyses.order_timing import (
    OrderTimingResult,
    analyze_order_timing,
)
from customer_analytics.analyses.product_affinity import (
    ProductAffinityResult,
    analyze_product_affinity,
)
from customer_analytics.analyses.purchase_frequency import (
    PurchaseFrequencyResult,
    analyze_purchase_frequency,
)
from customer_analytics.analyses.segmentation import (
    SegmentationResult,
    segment_customers,
)
from customer_analytics.config import AnalyticsConfig, AnalyticsRequest
from customer_analytics.foundation._utils import to_naive_utc
from customer_analytics.foundation.cohorts import analyze_cohort_retention
from customer_analytics.foundation.records import (
    Customer,
    Order,
    Product,
    parse_customers,
    parse_orders,
    parse_products,
)
from customer_analytics.foundation.rfm import (
    RFMBatch,
    RFMSummary,
    calculate_rfm_records,
    summarize_rfm,
)
from customer_analytics.orchestration.data_sources import (
    DataSource,
    RFMStore,
    Snapshot,
    fetch_snapshot,
)
from customer_analytics.orchestration.report import CustomerAnalyticsReport

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

ANALYZERS = (
    "segmentation",
    "rfm",
    "cohorts",
    "purchase_frequency",
    "product_affinity",
    "order_timing",
)


@dataclass(frozen=True)
class AnalyzerOutcome:
    """Result of one analyzer run: either ``value`` or ``error`` is set."""

    name: str
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_now(now: datetime | None = None) -> datetime:
    """Normalise the reference instant to naive UTC, defaulting to now."""
    if now is None:
        now = datetime.now(timezone.utc)
    return to_naive_utc(now)


def run_analyzer(name: str, fn: Callable[[], Any]) -> AnalyzerOutcome:
    """Run one analyzer, converting any exception into a failed outcome."""
    start = time.time()
    with tracer.start_as_current_span(f"analyzer.{name}") as span:
        try:
            value = fn()
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            span.set_attribute("success", False)
            span.record_exception(e)
            logger.error(
                "analyzer_failed",
                analyzer=name,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=duration_ms,
            )
            return AnalyzerOutcome(name, error=f"{type(e).__name__}: {e}")

        duration_ms = (time.time() - start) * 1000
        span.set_attribute("success", True)
        logger.info("analyzer_succeeded", analyzer=name, duration_ms=duration_ms)
        return AnalyzerOutcome(name, value=value)


def analyzer_tasks(
    snapshot: Snapshot, now: datetime, config: AnalyticsConfig
) -> dict[str, Callable[[], Any]]:
    """Zero-argument callables for every analyzer, keyed by analyzer name."""
    customers, orders, products = snapshot.customers, snapshot.orders, snapshot.products
    return {
        "segmentation": lambda: segment_customers(customers, now),
        "rfm": lambda: calculate_rfm_records(customers, now),
        "cohorts": lambda: analyze_cohort_retention(
            customers,
            orders,
            now,
            max_cohorts=config.max_cohorts,
            months=config.retention_months,
        ),
        "purchase_frequency": lambda: analyze_purchase_frequency(
            orders, customers, now
        ),
        "product_affinity": lambda: analyze_product_affinity(
            orders,
            products,
            min_pair_count=config.min_pair_count,
            top_n=config.top_product_pairs,
        ),
        "order_timing": lambda: analyze_order_timing(orders),
    }


def _defaults() -> dict[str, Any]:
    return {
        "segmentation": SegmentationResult.empty(),
        "rfm": RFMSummary.empty(),
        "cohorts": (),
        "purchase_frequency": PurchaseFrequencyResult.empty(),
        "product_affinity": ProductAffinityResult.empty(),
        "order_timing": OrderTimingResult.empty(),
    }


def collapse_outcomes(
    outcomes: Iterable[AnalyzerOutcome], now: datetime
) -> CustomerAnalyticsReport:
    """Merge analyzer outcomes into a report.

    Failed analyzers contribute their default section and an entry in
    ``analyzer_errors``. The RFM outcome may carry an :class:`RFMBatch`,
    which is summarised here.
    """
    sections = _defaults()
    errors: dict[str, str] = {}
    for outcome in outcomes:
        if not outcome.ok:
            errors[outcome.name] = outcome.error
            continue
        value = outcome.value
        if outcome.name == "rfm" and isinstance(value, RFMBatch):
            value = summarize_rfm(value.records)
        elif outcome.name == "cohorts":
            value = tuple(value)
        sections[outcome.name] = value

    return CustomerAnalyticsReport(
        generated_at=now,
        segmentation=sections["segmentation"],
        rfm=sections["rfm"],
        cohorts=sections["cohorts"],
        purchase_frequency=sections["purchase_frequency"],
        product_affinity=sections["product_affinity"],
        order_timing=sections["order_timing"],
        analyzer_errors=errors,
    )


def _rfm_batch(outcomes: Iterable[AnalyzerOutcome]) -> RFMBatch | None:
    for outcome in outcomes:
        if outcome.name == "rfm" and outcome.ok and isinstance(outcome.value, RFMBatch):
            return outcome.value
    return None


def compute_customer_analytics(
    customers: Iterable[Customer | Mapping[str, Any]],
    orders: Iterable[Order | Mapping[str, Any]],
    products: Iterable[Product | Mapping[str, Any]] = (),
    now: datetime | None = None,
    config: AnalyticsConfig | None = None,
) -> CustomerAnalyticsReport:
    """Compute the full customer analytics report synchronously.

    Inputs may be typed records or raw mappings. Rows that are not
    mappings or lack an identifier cannot be parsed; in that case the
    default report is returned with the error recorded under ``"input"``.

    Examples
    --------
    >>> report = compute_customer_analytics([], [], [], now=datetime(2024, 6, 1))
    >>> report.segmentation.total_customers
    0
    """
    config = config or AnalyticsConfig()
    now = resolve_now(now)
    try:
        snapshot = Snapshot(
            tuple(parse_customers(customers)),
            tuple(parse_orders(orders)),
            tuple(parse_products(products)),
        )
    except (TypeError, ValueError) as e:
        logger.error("input_parse_failed", error=str(e), error_type=type(e).__name__)
        return CustomerAnalyticsReport.empty(
            now, {"input": f"{type(e).__name__}: {e}"}
        )

    outcomes = [
        run_analyzer(name, fn)
        for name, fn in analyzer_tasks(snapshot, now, config).items()
    ]
    return collapse_outcomes(outcomes, now)


class AnalyticsOrchestrator:
    """Fetches a snapshot from a data source and runs every analyzer on it.

    Parameters
    ----------
    data_source:
        Supplier of customers, orders and products.
    rfm_store:
        Optional store that receives each freshly scored RFM batch.
    config:
        Engine configuration; defaults to :class:`AnalyticsConfig` defaults.
    """

    def __init__(
        self,
        data_source: DataSource,
        rfm_store: RFMStore | None = None,
        config: AnalyticsConfig | None = None,
    ) -> None:
        self.data_source = data_source
        self.rfm_store = rfm_store
        self.config = config or AnalyticsConfig()

    async def analyze(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        now: datetime | None = None,
    ) -> CustomerAnalyticsReport:
        """Run one analytics pass.

        Fetch failures yield :meth:`CustomerAnalyticsReport.empty` with the
        error recorded under ``"data_source"``.
        """
        now = resolve_now(now)
        start = time.time()
        logger.info(
            "analysis_started",
            start_date=start_date.isoformat() if start_date else None,
            end_date=end_date.isoformat() if end_date else None,
            now=now.isoformat(),
        )

        try:
            snapshot = await asyncio.to_thread(
                fetch_snapshot,
                self.data_source,
                start_date,
                end_date,
                self.config.fetch_attempts,
            )
        except Exception as e:
            logger.error(
                "data_source_failed", error=str(e), error_type=type(e).__name__
            )
            return CustomerAnalyticsReport.empty(
                now, {"data_source": f"{type(e).__name__}: {e}"}
            )

        tasks = analyzer_tasks(snapshot, now, self.config)
        if self.config.parallel:
            outcomes = await asyncio.gather(
                *(
                    asyncio.to_thread(run_analyzer, name, fn)
                    for name, fn in tasks.items()
                )
            )
        else:
            outcomes = [run_analyzer(name, fn) for name, fn in tasks.items()]

        batch = _rfm_batch(outcomes)
        if batch is not None and self.rfm_store is not None:
            try:
                self.rfm_store.save_batch(batch)
            except Exception as e:
                logger.warning("rfm_store_write_failed", error=str(e))

        report = collapse_outcomes(outcomes, now)
        logger.info(
            "analysis_complete",
            failed=sorted(report.analyzer_errors),
            execution_time_ms=(time.time() - start) * 1000,
        )
        return report

    async def analyze_request(self, request: AnalyticsRequest) -> CustomerAnalyticsReport:
        """Run :meth:`analyze` for a validated request."""
        return await self.analyze(request.start_date, request.end_date, request.now)
