"""Tests for the cached exchange-rate fetcher."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import requests

from budgetit.config import Settings
from budgetit.errors import ExchangeRateError
from budgetit.exchange_rates import ExchangeRateFetcher
from budgetit.storage import StorageKey, StorageService

NOW = datetime(2024, 5, 15, 12, 0)


class FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP error! status: {self.status_code}")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls = 0

    def get(self, url, headers=None, timeout=None):
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _fetcher(session: FakeSession, store: StorageService | None = None) -> ExchangeRateFetcher:
    return ExchangeRateFetcher(store or StorageService(), session=session, clock=lambda: NOW)


def test_fetch_stores_snapshot() -> None:
    session = FakeSession(FakeResponse({"base": "USD", "rates": {"USD": 1, "EUR": 0.92}}))
    fetcher = _fetcher(session)

    snapshot = fetcher.get_rates()

    assert snapshot == {"base": "USD", "rates": {"USD": 1.0, "EUR": 0.92}, "fetched_at": NOW.isoformat()}
    assert fetcher.storage.get(StorageKey.EXCHANGE_RATES, None) == snapshot


def test_fresh_cache_skips_network() -> None:
    session = FakeSession(FakeResponse({"base": "USD", "rates": {"EUR": 0.92}}))
    fetcher = _fetcher(session)
    fetcher.get_rates()

    cached = fetcher.get_rates(NOW + timedelta(hours=5))

    assert session.calls == 1
    assert cached["rates"] == {"EUR": 0.92}


def test_expired_cache_is_refetched() -> None:
    session = FakeSession(
        FakeResponse({"base": "USD", "rates": {"EUR": 0.92}}),
        FakeResponse({"base": "USD", "rates": {"EUR": 0.95}}),
    )
    fetcher = _fetcher(session)
    fetcher.get_rates()

    later = NOW + timedelta(hours=7)
    snapshot = fetcher.get_rates(later)

    assert session.calls == 2
    assert snapshot["rates"] == {"EUR": 0.95}
    assert snapshot["fetched_at"] == later.isoformat()


def test_failure_falls_back_to_stale_cache() -> None:
    session = FakeSession(
        FakeResponse({"base": "USD", "rates": {"EUR": 0.92}}),
        requests.ConnectionError("offline"),
        FakeResponse({}, status_code=503),
    )
    fetcher = _fetcher(session)
    first = fetcher.get_rates()

    assert fetcher.get_rates(NOW + timedelta(days=2)) == first
    assert fetcher.refresh() == first


def test_invalid_payload_without_cache_raises() -> None:
    fetcher = _fetcher(FakeSession(FakeResponse({"result": "error"})))
    with pytest.raises(ExchangeRateError):
        fetcher.get_rates()


def test_network_error_without_cache_raises() -> None:
    fetcher = _fetcher(FakeSession(requests.Timeout("slow")))
    with pytest.raises(ExchangeRateError):
        fetcher.get_rates()


def test_invalid_rate_value_falls_back_to_cache() -> None:
    session = FakeSession(
        FakeResponse({"base": "USD", "rates": {"USD": 1.0}}),
        FakeResponse({"base": "USD", "rates": {"USD": 1.0, "ARS": None}}),
    )
    fetcher = _fetcher(session)
    first = fetcher.get_rates()

    assert fetcher.refresh() == first
    assert session.calls == 2


def test_invalid_rate_value_without_cache_raises() -> None:
    fetcher = _fetcher(FakeSession(FakeResponse({"rates": {"ARS": "lots"}})))
    with pytest.raises(ExchangeRateError):
        fetcher.get_rates()


def test_from_settings_uses_url_and_ttl() -> None:
    settings = Settings(rates_url="https://rates.example/latest", rates_ttl_hours=1.5)
    session = FakeSession()

    fetcher = ExchangeRateFetcher.from_settings(StorageService(), settings, session=session)

    assert fetcher.url == "https://rates.example/latest"
    assert fetcher.ttl == timedelta(hours=1.5)
    assert fetcher.session is session
