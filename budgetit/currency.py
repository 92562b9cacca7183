"""Currency table anchored on a single primary currency.

Each currency's ``exchange_rate`` is expressed relative to the primary
currency, whose own rate is always 1. At most two currencies are visible at
once and the primary is always one of them.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from . import utils
from .errors import CurrencyError
from .models import Currency, ExchangeRateSnapshot
from .storage import StorageKey, StorageService

logger = logging.getLogger(__name__)

MAX_VISIBLE = 2

DEFAULT_CURRENCIES = (
    Currency(code="ARS", name="Argentine Peso", symbol="$", exchange_rate=1.0, is_primary=True, is_visible=True),
    Currency(code="USD", name="US Dollar", symbol="US$", exchange_rate=0.0011, is_primary=False, is_visible=True),
)


class CurrencyBook:
    def __init__(self, currencies: Iterable[Currency]) -> None:
        items = list(currencies)
        primaries = [c for c in items if c.is_primary]
        if len(primaries) != 1:
            raise CurrencyError(f"Exactly one primary currency is required, got {len(primaries)}")

        codes = [c.code for c in items]
        if len(set(codes)) != len(codes):
            raise CurrencyError("Currency codes must be unique")

        self._currencies = [
            c.model_copy(update={"exchange_rate": 1.0, "is_visible": True}) if c.is_primary else c
            for c in items
        ]
        self._enforce_visible_limit()

    # -- persistence -----------------------------------------------------

    @classmethod
    def load(cls, storage: StorageService) -> "CurrencyBook":
        """Build a book from the currencies bucket, or the defaults when empty."""

        stored = storage.get(StorageKey.CURRENCIES, [])
        if not stored:
            return cls(DEFAULT_CURRENCIES)
        try:
            return cls(stored)
        except CurrencyError:
            logger.warning("Stored currencies are inconsistent; using defaults", exc_info=True)
            return cls(DEFAULT_CURRENCIES)

    def save(self, storage: StorageService) -> None:
        storage.set(StorageKey.CURRENCIES, self._currencies)

    # -- queries ---------------------------------------------------------

    @property
    def currencies(self) -> list[Currency]:
        return list(self._currencies)

    @property
    def primary(self) -> Currency:
        return next(c for c in self._currencies if c.is_primary)

    @property
    def primary_code(self) -> str:
        return self.primary.code

    @property
    def visible_codes(self) -> list[str]:
        return [c.code for c in self._currencies if c.is_visible]

    def get(self, code: str) -> Optional[Currency]:
        for currency in self._currencies:
            if currency.code == code:
                return currency
        return None

    def rate(self, code: str) -> Optional[float]:
        currency = self.get(code)
        return currency.exchange_rate if currency else None

    # -- conversion ------------------------------------------------------

    def convert_amount(self, amount: float, from_code: str, to_code: str) -> float:
        """Convert through the primary-relative rates; unknown codes are a no-op."""

        if from_code == to_code:
            return amount

        from_rate = self.rate(from_code)
        to_rate = self.rate(to_code)
        if from_rate is None or to_rate is None:
            return amount

        return amount * (from_rate / to_rate)

    def format_amount(self, amount: float, code: Optional[str] = None) -> str:
        currency = self.get(code or self.primary_code)
        if currency is None:
            return str(amount)
        return utils.format_currency(amount, currency.symbol)

    def set_primary_and_recalculate(self, code: str) -> None:
        """Make ``code`` the primary currency and re-base every rate on it."""

        new_primary = self.get(code)
        if new_primary is None:
            logger.warning("Cannot make unknown currency %s primary", code)
            return

        anchor = new_primary.exchange_rate
        rebased = []
        for currency in self._currencies:
            if currency.code == code:
                rebased.append(currency.model_copy(update={"is_primary": True, "exchange_rate": 1.0}))
            else:
                rebased.append(
                    currency.model_copy(
                        update={"is_primary": False, "exchange_rate": currency.exchange_rate / anchor}
                    )
                )
        self._currencies = rebased

        if not new_primary.is_visible:
            visible = self.visible_codes
            if len(visible) >= MAX_VISIBLE:
                self._set_visible(visible[-1], False)
            self._set_visible(code, True)

        logger.info("Primary currency changed to %s; exchange rates recalculated", code)

    def apply_exchange_rates(self, snapshot: ExchangeRateSnapshot) -> list[str]:
        """Update rates from a quote table; returns the codes that changed."""

        rates = snapshot["rates"]
        primary_quote = rates.get(self.primary_code)
        if not primary_quote:
            logger.warning("Rate table has no quote for primary currency %s", self.primary_code)
            return []

        updated: list[str] = []
        refreshed = []
        for currency in self._currencies:
            quote = rates.get(currency.code)
            if currency.is_primary or not quote:
                refreshed.append(currency)
                continue
            refreshed.append(currency.model_copy(update={"exchange_rate": quote / primary_quote}))
            updated.append(currency.code)
        self._currencies = refreshed
        return updated

    # -- management ------------------------------------------------------

    def _replace(self, code: str, **changes: object) -> None:
        self._currencies = [
            c.model_copy(update=changes) if c.code == code else c for c in self._currencies
        ]

    def _set_visible(self, code: str, visible: bool) -> None:
        self._replace(code, is_visible=visible)

    def _enforce_visible_limit(self) -> None:
        visible = self.visible_codes
        if len(visible) <= MAX_VISIBLE:
            return
        keep = [self.primary_code] + [c for c in visible if c != self.primary_code][: MAX_VISIBLE - 1]
        for code in visible:
            if code not in keep:
                self._set_visible(code, False)

    def upsert_currency(self, currency: Currency) -> None:
        """Add a currency or update an existing one.

        A primary submission takes rate 1 and clears the flag on the others
        without re-basing their rates; use :meth:`set_primary_and_recalculate`
        to switch the anchor while keeping relative values.
        """

        if currency.is_primary:
            currency = currency.model_copy(update={"exchange_rate": 1.0, "is_visible": True})
            self._currencies = [c.model_copy(update={"is_primary": False}) for c in self._currencies]

        existing = self.get(currency.code)
        if existing is not None:
            if existing.is_primary and not currency.is_primary:
                raise CurrencyError("Choose another primary currency before demoting this one")
            self._currencies = [currency if c.code == currency.code else c for c in self._currencies]
        else:
            wants_visible = currency.is_visible
            self._currencies.append(currency.model_copy(update={"is_visible": False}))
            if wants_visible and (currency.is_primary or len(self.visible_codes) < MAX_VISIBLE):
                self._set_visible(currency.code, True)

        self._enforce_visible_limit()

    def delete_currency(self, code: str) -> None:
        if code == self.primary_code:
            raise CurrencyError("The primary currency cannot be deleted")
        self._currencies = [c for c in self._currencies if c.code != code]

    def toggle_visibility(self, code: str) -> None:
        currency = self.get(code)
        if currency is None:
            raise CurrencyError(f"Unknown currency {code}")

        if currency.is_visible:
            if currency.is_primary:
                raise CurrencyError("The primary currency must always be visible")
            self._set_visible(code, False)
            return

        if len(self.visible_codes) >= MAX_VISIBLE:
            raise CurrencyError(f"At most {MAX_VISIBLE} currencies can be visible")
        self._set_visible(code, True)
