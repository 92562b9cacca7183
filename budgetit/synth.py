"""Deterministic sample data for demos and tests.

Produces a category catalogue, monthly budgets and roughly two months of
income and expense transactions ending on a given day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

import numpy as np

from .currency import DEFAULT_CURRENCIES
from .models import Budget, Category, Transaction
from .storage import StorageKey, StorageService

DEFAULT_SEED = 7
DEFAULT_DAYS = 60
PRIMARY_ACCOUNT = "acc-1"
SAVINGS_ACCOUNT = "acc-2"


@dataclass(frozen=True)
class CategoryProfile:
    """Static metadata for a sample category."""

    id: str
    name: str
    icon: str
    color: str
    descriptions: tuple[str, ...] = ()
    daily_spend: bool = False


CATALOGUE = (
    CategoryProfile("cat-1", "Food", "Utensils", "#FF5733", ("Supermarket", "Restaurant", "Cafe", "Food delivery"), True),
    CategoryProfile("cat-2", "Transport", "Car", "#33A8FF", ("Fuel", "Public transport", "Taxi", "Toll"), True),
    CategoryProfile("cat-3", "Housing", "Home", "#33FF57", ("Rent", "Mortgage", "Water", "Gas", "Internet"), True),
    CategoryProfile("cat-4", "Entertainment", "Film", "#FF33A8", ("Cinema", "Concert", "Streaming subscription", "Video game"), True),
    CategoryProfile("cat-5", "Health", "Heart", "#33FFC7", ("Pharmacy", "Doctor", "Health insurance"), True),
    CategoryProfile("cat-6", "Education", "GraduationCap", "#C733FF", ("Books", "Online course", "School supplies"), True),
    CategoryProfile("cat-7", "Salary", "Briefcase", "#FFD700"),
    CategoryProfile("cat-8", "Investments", "TrendingUp", "#00FF00"),
    CategoryProfile("cat-9", "Gifts", "Gift", "#FF00FF"),
    CategoryProfile("cat-10", "Shopping", "ShoppingBag", "#964B00"),
    CategoryProfile("cat-11", "Utilities", "Lightbulb", "#FFA500"),
    CategoryProfile("cat-12", "Other income", "Plus", "#008000"),
)

DAILY_SPEND_CATEGORIES = tuple(profile for profile in CATALOGUE if profile.daily_spend)

BUDGET_LIMITS = {
    "cat-1": 400.0,
    "cat-2": 150.0,
    "cat-3": 800.0,
    "cat-4": 100.0,
    "cat-5": 100.0,
}


def _uuid4_from_rng(rng: np.random.Generator) -> str:
    raw = bytearray(rng.bytes(16))
    raw[6] = (raw[6] & 0x0F) | 0x40  # version 4
    raw[8] = (raw[8] & 0x3F) | 0x80  # variant 10
    return str(UUID(bytes=bytes(raw)))


def generate_categories() -> list[Category]:
    return [
        Category(id=profile.id, name=profile.name, icon=profile.icon, color=profile.color)
        for profile in CATALOGUE
    ]


def generate_budgets(today: date) -> list[Budget]:
    return [
        Budget(
            id=f"budget-{index}",
            category_id=category_id,
            amount=limit,
            period="monthly",
            start_date=today,
        )
        for index, (category_id, limit) in enumerate(BUDGET_LIMITS.items(), start=1)
    ]


def generate_transactions(
    today: date,
    *,
    days: int = DEFAULT_DAYS,
    seed: int | None = DEFAULT_SEED,
) -> list[Transaction]:
    """Generate a deterministic ledger covering ``days`` days up to ``today``."""

    if days <= 0:
        raise ValueError("days must be positive")

    rng = np.random.default_rng(seed)
    transactions: list[Transaction] = []

    def add(**fields: object) -> None:
        transactions.append(Transaction(id=_uuid4_from_rng(rng), **fields))

    for offset in range(days):
        day = today - timedelta(days=offset)

        # Salary every 30 days.
        if offset % 30 == 0:
            add(
                type="income",
                amount=2100.0,
                date=day,
                category_id="cat-7",
                account_id=PRIMARY_ACCOUNT,
                description="Monthly salary",
                is_recurring=True,
                recurring_id="rec-1",
            )

        # 70% chance of a small daily expense.
        if rng.random() > 0.3:
            profile = DAILY_SPEND_CATEGORIES[int(rng.integers(0, len(DAILY_SPEND_CATEGORIES)))]
            add(
                type="expense",
                amount=float(rng.integers(5, 56)),
                date=day,
                category_id=profile.id,
                account_id=PRIMARY_ACCOUNT,
                description=str(rng.choice(profile.descriptions)),
            )

        # Utility bill every 15 days.
        if offset % 15 == 3:
            add(
                type="expense",
                amount=120.0,
                date=day,
                category_id="cat-3",
                account_id=PRIMARY_ACCOUNT,
                description="Electricity bill",
                tags=("home", "bills"),
            )

        # Transfer to savings five days after payday.
        if offset % 30 == 5:
            add(
                type="expense",
                amount=300.0,
                date=day,
                category_id="cat-8",
                account_id=PRIMARY_ACCOUNT,
                description="Transfer to savings",
            )
            add(
                type="income",
                amount=300.0,
                date=day,
                category_id="cat-8",
                account_id=SAVINGS_ACCOUNT,
                description="Transfer from current account",
            )

    transactions.sort(key=lambda t: (t.date, t.id))
    return transactions


def seed_storage(
    storage: StorageService,
    today: date,
    *,
    days: int = DEFAULT_DAYS,
    seed: int | None = DEFAULT_SEED,
) -> None:
    """Write sample categories, budgets, transactions and currencies."""

    storage.set(StorageKey.CATEGORIES, generate_categories())
    storage.set(StorageKey.BUDGETS, generate_budgets(today))
    storage.set(StorageKey.TRANSACTIONS, generate_transactions(today, days=days, seed=seed))
    storage.set(StorageKey.CURRENCIES, list(DEFAULT_CURRENCIES))
