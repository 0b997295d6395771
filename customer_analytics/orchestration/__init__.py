"""Orchestration layer: data sources, the merged report and the orchestrator."""

from .coordinator import (
    AnalyticsOrchestrator,
    AnalyzerOutcome,
    collapse_outcomes,
    compute_customer_analytics,
    run_analyzer,
)
from .data_sources import (
    DataSource,
    InMemoryDataSource,
    InMemoryRFMStore,
    JsonFileDataSource,
    RFMStore,
    Snapshot,
    fetch_snapshot,
    filter_orders_by_date,
)
from .report import CustomerAnalyticsReport

__all__ = [
    "AnalyticsOrchestrator",
    "AnalyzerOutcome",
    "collapse_outcomes",
    "compute_customer_analytics",
    "run_analyzer",
    "DataSource",
    "InMemoryDataSource",
    "InMemoryRFMStore",
    "JsonFileDataSource",
    "RFMStore",
    "Snapshot",
    "fetch_snapshot",
    "filter_orders_by_date",
    "CustomerAnalyticsReport",
]
