"""Exchange-rate table fetched from a public API and cached in storage."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import requests
from pydantic import TypeAdapter, ValidationError

from .config import DEFAULT_RATES_URL, Settings
from .errors import ExchangeRateError
from .models import ExchangeRateSnapshot
from .storage import StorageKey, StorageService

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10

RATE_TABLE = TypeAdapter(dict[str, float])


class ExchangeRateFetcher:
    """Fetch a ``{code: rate}`` table and cache it for ``ttl``.

    When the remote call fails the last cached table is returned whatever its
    age; only when nothing was ever cached does :meth:`get_rates` raise.
    """

    def __init__(
        self,
        storage: StorageService,
        session: Optional[requests.Session] = None,
        url: str = DEFAULT_RATES_URL,
        ttl: timedelta = timedelta(hours=6),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.storage = storage
        self.session = session or requests.Session()
        self.url = url
        self.ttl = ttl
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        storage: StorageService,
        settings: Settings,
        session: Optional[requests.Session] = None,
    ) -> "ExchangeRateFetcher":
        return cls(
            storage,
            session=session,
            url=settings.rates_url,
            ttl=timedelta(hours=settings.rates_ttl_hours),
        )

    def cached(self) -> Optional[ExchangeRateSnapshot]:
        return self.storage.get(StorageKey.EXCHANGE_RATES, None)

    def _is_fresh(self, snapshot: ExchangeRateSnapshot, now: datetime) -> bool:
        try:
            fetched_at = datetime.fromisoformat(snapshot["fetched_at"])
            return now - fetched_at < self.ttl
        except (TypeError, ValueError):
            return False

    def _fetch(self, now: datetime) -> ExchangeRateSnapshot:
        response = self.session.get(
            self.url,
            headers={"Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()

        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict) or not rates:
            raise ExchangeRateError("Invalid data format from exchange rate API")

        try:
            table = RATE_TABLE.validate_python(rates)
        except ValidationError as exc:
            raise ExchangeRateError(f"Invalid rate values from exchange rate API: {exc.error_count()} errors") from exc

        return {
            "base": str(data.get("base", "")),
            "rates": table,
            "fetched_at": now.isoformat(),
        }

    def get_rates(self, now: Optional[datetime] = None, ignore_cache: bool = False) -> ExchangeRateSnapshot:
        moment = now if now is not None else self.clock()
        cached = self.cached()

        if not ignore_cache and cached is not None and self._is_fresh(cached, moment):
            return cached

        try:
            snapshot = self._fetch(moment)
        except (requests.RequestException, ExchangeRateError, ValueError) as exc:
            if cached is None:
                raise ExchangeRateError(f"Failed to fetch exchange rates: {exc}") from exc
            logger.warning("Using cached exchange rates from %s: %s", cached["fetched_at"], exc)
            return cached

        self.storage.set(StorageKey.EXCHANGE_RATES, snapshot)
        logger.info("Fetched %d exchange rates against %s", len(snapshot["rates"]), snapshot["base"])
        return snapshot

    def refresh(self, now: Optional[datetime] = None) -> ExchangeRateSnapshot:
        return self.get_rates(now, ignore_cache=True)
