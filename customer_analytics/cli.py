"""Command line entry point for the customer analytics engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date, datetime
from pathlib import Path

import structlog
from pydantic import ValidationError

from customer_analytics.config import AnalyticsConfig, AnalyticsRequest
from customer_analytics.observability import configure_logging
from customer_analytics.orchestration.coordinator import AnalyticsOrchestrator
from customer_analytics.orchestration.data_sources import JsonFileDataSource

logger = structlog.get_logger(__name__)


def _resolve_output(path: Path) -> Path:
    output_path = path.resolve()
    cwd = Path.cwd().resolve()
    try:
        output_path.relative_to(cwd)
    except ValueError:
        raise ValueError(
            f"Output path {output_path} must reside within the current working directory"
        )
    return output_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute the customer analytics report from JSON exports"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        required=True,
        help="Directory containing customers.json, orders.json and optionally products.json",
    )
    parser.add_argument(
        "--start",
        type=date.fromisoformat,
        help="Inclusive start date of the order window (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--end",
        type=date.fromisoformat,
        help="Inclusive end date of the order window (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        help="Reference instant for recency calculations (ISO-8601, defaults to now)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path for writing the report as JSON.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for structured logs written to stderr",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run one analytics pass and emit the report as JSON.

    Returns:
        Exit code (0 for success, 2 for an invalid date window or configuration)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        request = AnalyticsRequest(start_date=args.start, end_date=args.end, now=args.now)
    except ValidationError as e:
        logger.error("invalid_request", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 2

    try:
        config = AnalyticsConfig.from_env()
    except ValueError as e:
        logger.error("invalid_config", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 2

    output_path = _resolve_output(args.output) if args.output else None

    orchestrator = AnalyticsOrchestrator(JsonFileDataSource(args.data_dir), config=config)
    report = asyncio.run(orchestrator.analyze_request(request))
    payload = report.to_serialisable()

    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, sort_keys=True)
        logger.info("report_written", path=str(output_path))
    else:  # stdout fallback enables piping in shell usage.
        json.dump(payload, fp=sys.stdout, indent=2, sort_keys=True)
        print()

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
