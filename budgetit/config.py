"""Settings and analytics thresholds for budgetit."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_RATES_URL = "https://api.exchangerate-api.com/v4/latest/USD"


@dataclass(frozen=True)
class AnalyticsThresholds:
    """Heuristic constants used by the predictive analytics engine."""

    # Anomaly detection
    anomaly_lookback_months: int = 3
    anomaly_window_months: int = 1
    anomaly_multiplier: float = 2.0
    anomaly_min_amount: float = 50.0
    medium_severity_multiplier: float = 3.0
    high_severity_multiplier: float = 5.0

    # Spending patterns
    trend_threshold_pct: float = 10.0

    # Saving suggestions
    suggestion_top_n: int = 5
    suggestion_min_average: float = 50.0
    suggestion_min_saving: float = 10.0
    increasing_saving_rate: float = 0.15
    stable_saving_rate: float = 0.10
    stable_min_average: float = 100.0
    stable_moderate_average: float = 300.0
    decreasing_saving_rate: float = 0.05
    decreasing_min_average: float = 200.0

    # Projections
    growth_floor: float = 0.8
    growth_ceiling: float = 1.2

    # Budget alerts
    budget_exceeded_pct: float = 100.0
    budget_warning_pct: float = 80.0
    budget_warning_period_share: float = 0.75
    budget_projected_pct: float = 105.0
    budget_projection_min_period_share: float = 0.3

    # Cache
    stale_after_days: int = 3
    month_end_day: int = 28

    @classmethod
    def from_mapping(cls, overrides: Mapping[str, Any] | None) -> "AnalyticsThresholds":
        if not overrides:
            return cls()
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(f"Unknown analytics thresholds: {', '.join(unknown)}")
        return cls(**dict(overrides))


@dataclass(frozen=True)
class Settings:
    storage_dir: Path = Path("data") / "storage"
    log_level: str = "INFO"
    log_format: str = "text"
    log_file: str | None = None
    rates_url: str = DEFAULT_RATES_URL
    rates_ttl_hours: float = 6.0
    thresholds: AnalyticsThresholds = field(default_factory=AnalyticsThresholds)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")
    return data


def load_settings(path: str | Path | None = None) -> Settings:
    """Build :class:`Settings` from an optional YAML file and the environment.

    Environment variables (``BUDGETIT_STORAGE_DIR``, ``BUDGETIT_LOG_LEVEL``,
    ``BUDGETIT_RATES_URL``) take precedence over the file. A ``.env`` file in
    the working directory is loaded first.
    """

    load_dotenv()
    raw = _read_yaml(Path(path)) if path is not None else {}

    storage = raw.get("storage") or {}
    log_section = raw.get("logging") or {}
    rates = raw.get("exchange_rates") or {}

    settings = Settings(
        storage_dir=Path(os.getenv("BUDGETIT_STORAGE_DIR", storage.get("directory", Settings.storage_dir))),
        log_level=os.getenv("BUDGETIT_LOG_LEVEL", log_section.get("level", "INFO")),
        log_format=log_section.get("format", "text"),
        log_file=log_section.get("file"),
        rates_url=os.getenv("BUDGETIT_RATES_URL", rates.get("url", DEFAULT_RATES_URL)),
        rates_ttl_hours=float(rates.get("ttl_hours", 6.0)),
        thresholds=AnalyticsThresholds.from_mapping(raw.get("analytics")),
    )
    logger.debug("Loaded settings from %s", path or "environment")
    return settings
