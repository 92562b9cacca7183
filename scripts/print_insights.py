"""Utility script to print predictions, projections and budget alerts for sample data."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from budgetit import analytics, config, currency, errors, exchange_rates, log_config, storage, synth

logger = logging.getLogger(__name__)


def _default_serializer(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serialisable")


def main() -> None:
    parser = argparse.ArgumentParser(description="Print budgetit insights for sample data")
    parser.add_argument("--config", type=Path, default=None, help="Optional YAML settings file")
    parser.add_argument("--with-rates", action="store_true", help="Fetch live exchange rates into the currency table")
    args = parser.parse_args()

    settings = config.load_settings(args.config)
    log_config.setup_logging(settings.log_level, settings.log_file, settings.log_format)

    now = datetime.now()
    store = storage.StorageService()
    synth.seed_storage(store, now.date(), seed=synth.DEFAULT_SEED)

    book = currency.CurrencyBook.load(store)
    if args.with_rates:
        fetcher = exchange_rates.ExchangeRateFetcher.from_settings(store, settings)
        try:
            book.apply_exchange_rates(fetcher.get_rates(now))
            book.save(store)
        except errors.ExchangeRateError as exc:
            logger.warning("Keeping default exchange rates: %s", exc)

    service = analytics.PredictiveAnalyticsService(store, thresholds=settings.thresholds)
    payload = {
        "predictions": service.get_prediction_data(now),
        "projections": service.project_future_spending(3, now),
        "budget_alerts": service.generate_budget_alerts(now),
        "currencies": book.currencies,
    }
    print(json.dumps(payload, indent=2, default=_default_serializer))


if __name__ == "__main__":
    main()
