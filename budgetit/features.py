"""Feature engineering helpers for the analytics engine."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

import pandas as pd

from . import utils
from .models import Transaction

FRAME_COLUMNS = ["id", "type", "amount", "date", "category_id", "account_id"]


def transactions_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Return one row per transaction with a ``datetime64`` ``date`` column."""

    df = utils.ensure_dataframe(transactions)
    if df.empty:
        return pd.DataFrame(columns=FRAME_COLUMNS).astype({"amount": float, "date": "datetime64[ns]"})

    df["date"] = pd.to_datetime(df["date"])
    df["amount"] = df["amount"].astype(float)
    return df


def add_engineered_features(transactions: pd.DataFrame, now: datetime) -> pd.DataFrame:
    """Add the derived fields used by pattern and anomaly detection.

    ``month_offset`` counts calendar months back from ``now`` (0 is the
    current month, negative values are future months).
    """

    df = utils.ensure_dataframe(transactions).copy()

    df["is_expense"] = df["type"] == "expense"
    df["month_offset"] = (
        (now.year - df["date"].dt.year) * 12 + now.month - df["date"].dt.month
    ).astype(int)
    df["day"] = df["date"].dt.normalize()

    return df


def expenses_since(frame: pd.DataFrame, start: pd.Timestamp) -> pd.DataFrame:
    """Expense rows dated on or after the calendar day of ``start``."""

    cutoff = start.normalize()
    return frame.loc[frame["is_expense"] & (frame["day"] >= cutoff)].copy()
