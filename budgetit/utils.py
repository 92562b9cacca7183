"""Shared utilities for budgetit."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

import pandas as pd
from pydantic import BaseModel


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from negative infinity, like ``Math.round``."""

    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    return int(round_half_up(value))


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Return ``numerator / denominator`` or ``default`` for a zero denominator."""

    if not denominator:
        return default
    return numerator / denominator


def ensure_dataframe(records: Iterable[Mapping[str, Any] | BaseModel] | pd.DataFrame) -> pd.DataFrame:
    """Normalise records (dicts or pydantic models) to a :class:`pandas.DataFrame`."""

    if isinstance(records, pd.DataFrame):
        return records.copy()

    rows = [
        record.model_dump() if isinstance(record, BaseModel) else dict(record)
        for record in records
    ]
    return pd.DataFrame(rows)


def format_currency(value: float, symbol: str = "$") -> str:
    """Return a human-readable currency string."""

    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
