"""Predictive spending analytics.

Derives spending patterns, anomalies, saving suggestions, projections and
budget alerts from the transaction history held in a :class:`StorageService`.
All computations are plain aggregations with threshold heuristics; the
thresholds come from :class:`~budgetit.config.AnalyticsThresholds`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Sequence

import numpy as np
import pandas as pd

from . import features, periods, utils
from .config import AnalyticsThresholds
from .models import (
    AnomalyDetection,
    Budget,
    BudgetAlert,
    Category,
    Difficulty,
    PredictionData,
    SavingSuggestion,
    Severity,
    SpendingPattern,
    Transaction,
    Trend,
)
from .storage import StorageKey, StorageService

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "Unknown"
PATTERN_MONTHS = 3
SEVERITY_RANK = {"high": 3, "medium": 2, "low": 1}


def _naive(moment: datetime) -> pd.Timestamp:
    return pd.Timestamp(moment.replace(tzinfo=None))


def next_update_after(now: datetime, month_end_day: int = 28, stale_after_days: int = 3) -> datetime:
    """First day of next month late in a month, otherwise ``stale_after_days`` ahead."""

    if now.day >= month_end_day:
        if now.month == 12:
            return now.replace(year=now.year + 1, month=1, day=1)
        return now.replace(month=now.month + 1, day=1)
    return now + timedelta(days=stale_after_days)


class PredictiveAnalyticsService:
    """Analytics engine over an injected storage adapter.

    ``categories`` pins the category list; when omitted it is re-read from
    the categories bucket on every analysis. ``clock`` supplies "now" for
    calls that do not pass one explicitly.
    """

    def __init__(
        self,
        storage: StorageService,
        categories: Optional[Sequence[Category]] = None,
        thresholds: Optional[AnalyticsThresholds] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.storage = storage
        self._pinned_categories = list(categories) if categories is not None else None
        self.categories: list[Category] = list(self._pinned_categories or [])
        self.thresholds = thresholds or AnalyticsThresholds()
        self.clock = clock

    # -- data access -----------------------------------------------------

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    def load_categories(self) -> list[Category]:
        if self._pinned_categories is None:
            self.categories = self.storage.get(StorageKey.CATEGORIES, [])
        return self.categories

    def category_name(self, category_id: str) -> str:
        for category in self.categories:
            if category.id == category_id:
                return category.name
        return UNKNOWN_CATEGORY

    def _transactions(self) -> list[Transaction]:
        return self.storage.get(StorageKey.TRANSACTIONS, [])

    def _budgets(self) -> list[Budget]:
        return self.storage.get(StorageKey.BUDGETS, [])

    def _safely(self, section: str, compute: Callable[..., list[Any]], *args: Any) -> list[Any]:
        try:
            return compute(*args)
        except Exception:
            logger.exception("Could not compute %s; returning an empty list", section)
            return []

    # -- cached predictions ----------------------------------------------

    def analyze_predictions(self, now: Optional[datetime] = None) -> PredictionData:
        """Recompute every insight, persist it and return it."""

        moment = self._now(now)
        self.load_categories()
        transactions = self._transactions()

        patterns = self._safely("spending patterns", self.detect_spending_patterns, transactions, moment)
        anomalies = self._safely("anomalies", self.detect_anomalies, transactions, moment)
        suggestions = self._safely("saving suggestions", self.generate_saving_suggestions, patterns)

        prediction: PredictionData = {
            "patterns": patterns,
            "anomalies": anomalies,
            "suggestions": suggestions,
            "last_updated": moment.isoformat(),
            "next_update": next_update_after(
                moment, self.thresholds.month_end_day, self.thresholds.stale_after_days
            ).isoformat(),
        }
        self.storage.set(StorageKey.PREDICTION_DATA, prediction)
        logger.info(
            "Analysed %d transactions: %d patterns, %d anomalies, %d suggestions",
            len(transactions),
            len(patterns),
            len(anomalies),
            len(suggestions),
        )
        return prediction

    def get_prediction_data(self, now: Optional[datetime] = None) -> PredictionData:
        """Return cached predictions, recomputing when missing or stale."""

        moment = self._now(now)
        cached = self.storage.get(StorageKey.PREDICTION_DATA, None)
        if cached is None or self.is_stale(cached, moment):
            return self.analyze_predictions(moment)
        return cached

    def is_stale(self, prediction: PredictionData, now: datetime) -> bool:
        try:
            last_updated = datetime.fromisoformat(prediction["last_updated"])
            age = now - last_updated
        except (KeyError, TypeError, ValueError):
            return True

        if age > timedelta(days=self.thresholds.stale_after_days):
            return True
        return (now.year, now.month) != (last_updated.year, last_updated.month)

    # -- insights --------------------------------------------------------

    def _classify_trend(self, current: float, last: float, two_ago: float) -> tuple[Trend, float]:
        if current > 0 and last > 0:
            older = last
        elif current > 0 and two_ago > 0:
            older = two_ago
        else:
            return "stable", 0.0

        percent_change = (current - older) / older * 100
        limit = self.thresholds.trend_threshold_pct
        if percent_change > limit:
            return "increasing", percent_change
        if percent_change < -limit:
            return "decreasing", percent_change
        return "stable", percent_change

    def detect_spending_patterns(
        self, transactions: Sequence[Transaction], now: datetime
    ) -> list[SpendingPattern]:
        """Per-category expense totals for the current and two previous months."""

        buckets: dict[str, list[float]] = {
            category.id: [0.0] * PATTERN_MONTHS for category in self.categories
        }

        frame = features.transactions_frame(transactions)
        if not frame.empty:
            frame = features.add_engineered_features(frame, now)
            recent = frame.loc[
                frame["is_expense"] & frame["month_offset"].between(0, PATTERN_MONTHS - 1)
            ]
            totals = recent.groupby(["category_id", "month_offset"], sort=False)["amount"].sum()
            for (category_id, offset), amount in totals.items():
                buckets.setdefault(str(category_id), [0.0] * PATTERN_MONTHS)[int(offset)] += float(amount)

        patterns: list[SpendingPattern] = []
        for category_id, monthly in buckets.items():
            if not any(amount > 0 for amount in monthly):
                continue
            current, last, two_ago = monthly
            trend, percent_change = self._classify_trend(current, last, two_ago)
            patterns.append(
                {
                    "category_id": category_id,
                    "category_name": self.category_name(category_id),
                    "average_monthly": sum(monthly) / PATTERN_MONTHS,
                    "trend": trend,
                    "percent_change": utils.round_half_up(percent_change, 1),
                }
            )

        patterns.sort(key=lambda pattern: pattern["average_monthly"], reverse=True)
        return patterns

    def _severity(self, amount: float, average: float) -> Severity:
        if amount > average * self.thresholds.high_severity_multiplier:
            return "high"
        if amount > average * self.thresholds.medium_severity_multiplier:
            return "medium"
        return "low"

    def detect_anomalies(
        self, transactions: Sequence[Transaction], now: datetime
    ) -> list[AnomalyDetection]:
        """Flag recent expenses far above their category's average."""

        transactions = list(transactions)
        frame = features.transactions_frame(transactions)
        if frame.empty:
            return []

        limits = self.thresholds
        reference = _naive(now)
        frame = features.add_engineered_features(frame, now)
        recent = features.expenses_since(
            frame, reference - pd.DateOffset(months=limits.anomaly_lookback_months)
        )
        if recent.empty:
            return []

        averages = recent.groupby("category_id")["amount"].mean()
        window_start = (reference - pd.DateOffset(months=limits.anomaly_window_months)).normalize()
        window = recent.loc[recent["day"] >= window_start]

        anomalies: list[AnomalyDetection] = []
        for position, row in window.iterrows():
            average = float(averages.get(row["category_id"], 0.0))
            amount = float(row["amount"])
            if average <= 0:
                continue
            if amount <= average * limits.anomaly_multiplier or amount <= limits.anomaly_min_amount:
                continue

            transaction = transactions[int(position)]
            ratio = utils.round_half_up(amount / average, 1)
            anomalies.append(
                {
                    "transaction": transaction,
                    "reason": f"Spending {ratio}x higher than the average for this category",
                    "severity": self._severity(amount, average),
                    "date": transaction.date.isoformat(),
                    "category_name": self.category_name(transaction.category_id),
                }
            )

        anomalies.sort(key=lambda item: (SEVERITY_RANK[item["severity"]], item["date"]), reverse=True)
        return anomalies

    def _saving_for(self, pattern: SpendingPattern) -> tuple[int, Difficulty]:
        limits = self.thresholds
        average = pattern["average_monthly"]

        if pattern["trend"] == "increasing":
            return utils.round_int(average * limits.increasing_saving_rate), "easy"
        if pattern["trend"] == "stable" and average > limits.stable_min_average:
            difficulty: Difficulty = "moderate" if average > limits.stable_moderate_average else "easy"
            return utils.round_int(average * limits.stable_saving_rate), difficulty
        if average > limits.decreasing_min_average:
            return utils.round_int(average * limits.decreasing_saving_rate), "challenging"
        return 0, "moderate"

    def generate_saving_suggestions(self, patterns: Sequence[SpendingPattern]) -> list[SavingSuggestion]:
        """Suggest cuts for the biggest spending categories."""

        suggestions: list[SavingSuggestion] = []
        for pattern in list(patterns)[: self.thresholds.suggestion_top_n]:
            if pattern["average_monthly"] < self.thresholds.suggestion_min_average:
                continue

            saving, difficulty = self._saving_for(pattern)
            if saving < self.thresholds.suggestion_min_saving:
                continue

            suggestions.append(
                {
                    "category_id": pattern["category_id"],
                    "category_name": pattern["category_name"],
                    "current_monthly_avg": utils.round_int(pattern["average_monthly"]),
                    "suggested_saving": saving,
                    "potential_annual_saving": saving * 12,
                    "difficulty": difficulty,
                }
            )
        return suggestions

    def project_future_spending(
        self, months: int = 3, now: Optional[datetime] = None
    ) -> dict[str, list[int]]:
        """Extrapolate each category's monthly average with a damped growth factor."""

        moment = self._now(now)
        self.load_categories()
        patterns = self.detect_spending_patterns(self._transactions(), moment)

        projections: dict[str, list[int]] = {}
        for pattern in patterns:
            growth = float(
                np.clip(
                    1 + pattern["percent_change"] / 100,
                    self.thresholds.growth_floor,
                    self.thresholds.growth_ceiling,
                )
            )
            amount = pattern["average_monthly"]
            values: list[int] = []
            for _ in range(months):
                values.append(utils.round_int(amount))
                amount *= growth
            projections[pattern["category_id"]] = values
        return projections

    def generate_budget_alerts(self, now: Optional[datetime] = None) -> list[BudgetAlert]:
        """Alert on budgets that are exceeded or on track to be exceeded.

        Spend is recomputed from transactions in the budget's current period;
        the stored ``current_spent`` is ignored.
        """

        moment = self._now(now)
        today = moment.date()
        limits = self.thresholds
        self.load_categories()
        transactions = self._transactions()

        alerts: list[BudgetAlert] = []
        for budget in self._budgets():
            spent = sum(
                t.amount
                for t in transactions
                if t.category_id == budget.category_id
                and t.is_expense
                and periods.in_current_period(t.date, budget.period, today)
            )
            period_share = utils.safe_ratio(
                periods.days_passed(budget.period, today),
                periods.days_in_period(budget.period, today),
            )
            projected = utils.round_int(spent / period_share) if period_share > 0 else spent

            percent_used = utils.safe_ratio(spent, budget.amount) * 100
            percent_projected = utils.safe_ratio(projected, budget.amount) * 100

            exceeded = percent_used >= limits.budget_exceeded_pct
            early_warning = (
                percent_used >= limits.budget_warning_pct
                and period_share < limits.budget_warning_period_share
            )
            projected_overrun = (
                percent_projected > limits.budget_projected_pct
                and period_share >= limits.budget_projection_min_period_share
            )
            if exceeded or early_warning or projected_overrun:
                alerts.append(
                    {
                        "category_id": budget.category_id,
                        "category_name": self.category_name(budget.category_id),
                        "budget": budget.amount,
                        "projected": projected,
                        "percent_used": utils.round_half_up(percent_used, 1),
                    }
                )
        return alerts
