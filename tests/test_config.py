"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from budgetit.config import DEFAULT_RATES_URL, AnalyticsThresholds, load_settings
from budgetit.errors import ConfigurationError

ENV_VARS = ("BUDGETIT_STORAGE_DIR", "BUDGETIT_LOG_LEVEL", "BUDGETIT_RATES_URL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_file() -> None:
    settings = load_settings()
    assert settings.log_level == "INFO"
    assert settings.rates_url == DEFAULT_RATES_URL
    assert settings.thresholds == AnalyticsThresholds()


def test_yaml_sections_are_applied(tmp_path) -> None:
    path = _write(
        tmp_path,
        "storage:\n"
        "  directory: /tmp/budgetit\n"
        "logging:\n"
        "  level: DEBUG\n"
        "  format: json\n"
        "exchange_rates:\n"
        "  ttl_hours: 12\n"
        "analytics:\n"
        "  anomaly_multiplier: 2.5\n"
        "  suggestion_top_n: 3\n",
    )

    settings = load_settings(path)

    assert settings.storage_dir == Path("/tmp/budgetit")
    assert settings.log_level == "DEBUG"
    assert settings.log_format == "json"
    assert settings.rates_ttl_hours == 12.0
    assert settings.thresholds.anomaly_multiplier == 2.5
    assert settings.thresholds.suggestion_top_n == 3
    assert settings.thresholds.anomaly_min_amount == 50.0


def test_environment_overrides_file(tmp_path, monkeypatch) -> None:
    path = _write(tmp_path, "logging:\n  level: DEBUG\n")
    monkeypatch.setenv("BUDGETIT_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("BUDGETIT_STORAGE_DIR", str(tmp_path / "store"))

    settings = load_settings(path)

    assert settings.log_level == "WARNING"
    assert settings.storage_dir == tmp_path / "store"


def test_unknown_threshold_is_rejected(tmp_path) -> None:
    path = _write(tmp_path, "analytics:\n  anomaly_factor: 4\n")
    with pytest.raises(ConfigurationError, match="anomaly_factor"):
        load_settings(path)


def test_missing_or_malformed_file_is_rejected(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "absent.yaml")
    with pytest.raises(ConfigurationError):
        load_settings(_write(tmp_path, "- just\n- a list\n"))
