"""Shared utilities for pandas conversion operations."""

from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd  # type: ignore


def to_python(value: Any) -> Any:
    """Convert a DataFrame cell to a plain Python value.

    Missing cells (``NaN``, ``NaT``, ``None``) become ``None`` and numpy
    scalars are unwrapped, so that record parsing sees the same types it
    would get from a JSON payload.

    Example:
        >>> to_python(np.int64(3))
        3
        >>> to_python(float("nan")) is None
        True
    """
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def dataframe_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Return DataFrame rows as dictionaries of plain Python values."""
    return [
        {key: to_python(value) for key, value in row.items()}
        for row in df.to_dict("records")
    ]


def require_columns(df: pd.DataFrame, required: Sequence[str], any_of: bool = False) -> None:
    """Raise ``ValueError`` when ``df`` lacks the required columns.

    With ``any_of`` a single present column from ``required`` is enough.
    """
    present = set(df.columns)
    if any_of:
        if not present.intersection(required):
            raise ValueError(
                f"DataFrame needs one of the columns: {sorted(required)}"
            )
        return
    missing = set(required) - present
    if missing:
        raise ValueError(f"DataFrame missing required columns: {missing}")
