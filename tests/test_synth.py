"""Regression tests for the sample dataset and the end-to-end pipeline."""

from __future__ import annotations

from datetime import date, datetime

import pandas as pd
import pytest

from budgetit import analytics, features, synth
from budgetit.currency import CurrencyBook
from budgetit.storage import StorageKey, StorageService

TODAY = date(2024, 5, 15)


def test_generate_transactions_is_deterministic() -> None:
    first = synth.generate_transactions(TODAY, days=45, seed=123)
    second = synth.generate_transactions(TODAY, days=45, seed=123)

    assert first == second
    assert len({t.id for t in first}) == len(first)
    assert all(t.date <= TODAY for t in first)
    assert [(t.date, t.id) for t in first] == sorted((t.date, t.id) for t in first)


def test_generate_transactions_shape() -> None:
    ledger = synth.generate_transactions(TODAY, days=60, seed=7)

    salaries = [t for t in ledger if t.category_id == "cat-7"]
    assert [t.date for t in salaries] == [date(2024, 4, 15), date(2024, 5, 15)]
    assert all(t.amount == 2100.0 and t.type == "income" for t in salaries)

    daily = [t for t in ledger if t.is_expense and t.category_id not in {"cat-3", "cat-8"}]
    assert all(5 <= t.amount <= 55 for t in daily)

    bills = [t for t in ledger if t.description == "Electricity bill"]
    assert len(bills) == 4
    assert all(t.tags == ("home", "bills") for t in bills)


def test_generate_transactions_rejects_empty_range() -> None:
    with pytest.raises(ValueError):
        synth.generate_transactions(TODAY, days=0)


def test_categories_and_budgets() -> None:
    categories = synth.generate_categories()
    budgets = synth.generate_budgets(TODAY)

    assert [c.id for c in categories] == [f"cat-{i}" for i in range(1, 13)]
    assert {b.category_id: b.amount for b in budgets} == synth.BUDGET_LIMITS
    assert all(b.period == "monthly" and b.start_date == TODAY for b in budgets)


def test_features_add_engineered_features_creates_columns() -> None:
    frame = features.transactions_frame(synth.generate_transactions(TODAY, days=60))
    enriched = features.add_engineered_features(frame, datetime(2024, 5, 15, 12, 0))

    assert {"is_expense", "month_offset", "day"}.issubset(enriched.columns)
    assert set(enriched["month_offset"]) == {0, 1, 2}
    assert pd.api.types.is_datetime64_any_dtype(enriched["day"])

    recent = features.expenses_since(enriched, pd.Timestamp(2024, 5, 1, 18, 30))
    assert recent["is_expense"].all()
    assert (recent["day"] >= pd.Timestamp(2024, 5, 1)).all()


def test_transactions_frame_empty_is_typed() -> None:
    frame = features.transactions_frame([])
    assert frame.empty
    assert pd.api.types.is_datetime64_any_dtype(frame["date"])


def test_seeded_storage_runs_through_analytics() -> None:
    store = StorageService()
    synth.seed_storage(store, TODAY)
    now = datetime(2024, 5, 15, 12, 0)

    service = analytics.PredictiveAnalyticsService(store, clock=lambda: now)
    data = service.analyze_predictions(now)

    assert data["last_updated"] == now.isoformat()
    assert data["patterns"]
    assert {p["category_id"] for p in data["patterns"]} <= {f"cat-{i}" for i in range(1, 13)}
    assert all(p["average_monthly"] > 0 for p in data["patterns"])
    assert store.get(StorageKey.PREDICTION_DATA, None) == data

    projections = service.project_future_spending(3, now)
    assert len(projections) == 3
    assert all(value >= 0 for value in projections)

    for alert in service.generate_budget_alerts(now):
        assert alert["category_id"] in synth.BUDGET_LIMITS
        assert alert["budget"] == synth.BUDGET_LIMITS[alert["category_id"]]

    assert CurrencyBook.load(store).primary_code == "ARS"
