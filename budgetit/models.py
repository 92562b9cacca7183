"""Domain records and derived analytics payloads."""

from __future__ import annotations

import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing_extensions import TypedDict

TransactionType = Literal["income", "expense"]
BudgetPeriod = Literal["monthly", "weekly", "yearly"]
Trend = Literal["increasing", "decreasing", "stable"]
Severity = Literal["low", "medium", "high"]
Difficulty = Literal["easy", "moderate", "challenging"]


class Record(BaseModel):
    """Immutable record serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


def _calendar_date(value: object) -> object:
    # ISO timestamps ("2024-05-03T10:00:00.000Z") keep only their date part.
    if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
        return value[:10]
    return value


class Transaction(Record):
    id: str
    type: TransactionType
    amount: float = Field(gt=0)
    date: dt.date
    category_id: str
    account_id: str
    description: Optional[str] = None
    tags: Optional[tuple[str, ...]] = None
    is_recurring: Optional[bool] = None
    recurring_id: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def parse_calendar_date(cls, value: object) -> object:
        return _calendar_date(value)

    @property
    def is_expense(self) -> bool:
        return self.type == "expense"


class Category(Record):
    id: str
    name: str
    icon: str = ""
    color: Optional[str] = None
    budget: Optional[float] = None


class Budget(Record):
    id: str
    category_id: str
    amount: float = Field(ge=0)
    period: BudgetPeriod
    current_spent: float = 0.0
    start_date: dt.date
    end_date: Optional[dt.date] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_calendar_dates(cls, value: object) -> object:
        return _calendar_date(value)


class Currency(Record):
    code: str = Field(min_length=3, max_length=3)
    name: str
    symbol: str
    exchange_rate: float = Field(gt=0)
    is_primary: bool = False
    is_visible: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, value: str) -> str:
        return value.upper()


class SpendingPattern(TypedDict):
    category_id: str
    category_name: str
    average_monthly: float
    trend: Trend
    percent_change: float


class AnomalyDetection(TypedDict):
    transaction: Transaction
    reason: str
    severity: Severity
    date: str
    category_name: str


class SavingSuggestion(TypedDict):
    category_id: str
    category_name: str
    current_monthly_avg: int
    suggested_saving: int
    potential_annual_saving: int
    difficulty: Difficulty


class BudgetAlert(TypedDict):
    category_id: str
    category_name: str
    budget: float
    projected: float
    percent_used: float


class PredictionData(TypedDict):
    patterns: list[SpendingPattern]
    anomalies: list[AnomalyDetection]
    suggestions: list[SavingSuggestion]
    last_updated: str
    next_update: str


class ExchangeRateSnapshot(TypedDict):
    base: str
    rates: dict[str, float]
    fetched_at: str
