"""Engine configuration and request models."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "CUSTOMER_ANALYTICS_"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(ENV_PREFIX + name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(
            f"{ENV_PREFIX}{name} must be an integer, got {raw!r}"
        ) from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AnalyticsConfig:
    """Configuration for an analytics run.

    Attributes
    ----------
    max_cohorts:
        Number of most recent acquisition cohorts to report.
    retention_months:
        Last month offset on each retention curve.
    top_product_pairs:
        Number of "frequently bought together" pairs to report.
    min_pair_count:
        Minimum co-occurrences for a product pair to be reported.
    parallel:
        Run analyzers concurrently in the async orchestrator.
    fetch_attempts:
        Attempts per data-source fetch before giving up.
    """

    max_cohorts: int = 12
    retention_months: int = 12
    top_product_pairs: int = 10
    min_pair_count: int = 2
    parallel: bool = True
    fetch_attempts: int = 3

    def __post_init__(self) -> None:
        for name in ("max_cohorts", "top_product_pairs", "min_pair_count", "fetch_attempts"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.retention_months < 0:
            raise ValueError(
                f"retention_months must be >= 0, got {self.retention_months}"
            )

    @classmethod
    def from_env(cls) -> "AnalyticsConfig":
        """Build a config from ``CUSTOMER_ANALYTICS_*`` environment variables."""
        defaults = cls()
        return cls(
            max_cohorts=_env_int("MAX_COHORTS", defaults.max_cohorts),
            retention_months=_env_int("RETENTION_MONTHS", defaults.retention_months),
            top_product_pairs=_env_int("TOP_PRODUCT_PAIRS", defaults.top_product_pairs),
            min_pair_count=_env_int("MIN_PAIR_COUNT", defaults.min_pair_count),
            parallel=_env_bool("PARALLEL", defaults.parallel),
            fetch_attempts=_env_int("FETCH_ATTEMPTS", defaults.fetch_attempts),
        )


class AnalyticsRequest(BaseModel):
    """Request to compute the customer analytics report."""

    start_date: date | None = Field(
        default=None, description="Inclusive start of the order window"
    )
    end_date: date | None = Field(
        default=None,
        description="Inclusive end of the order window (orders before the next day)",
    )
    now: datetime | None = Field(
        default=None,
        description="Reference instant for every time-relative calculation",
    )

    @model_validator(mode="after")
    def _check_window(self) -> "AnalyticsRequest":
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.end_date < self.start_date
        ):
            raise ValueError("end_date must not be before start_date")
        return self
