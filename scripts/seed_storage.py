"""Write deterministic sample data into a JSON-file storage directory."""

from __future__ import annotations

import argparse
import logging
from datetime import date
from pathlib import Path

from budgetit import config, log_config, storage, synth

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a storage directory with sample budgetit data")
    parser.add_argument("--config", type=Path, default=None, help="Optional YAML settings file")
    parser.add_argument("--output", type=Path, default=None, help="Storage directory (overrides settings)")
    parser.add_argument("--days", type=int, default=synth.DEFAULT_DAYS)
    parser.add_argument("--seed", type=int, default=synth.DEFAULT_SEED)
    args = parser.parse_args()

    settings = config.load_settings(args.config)
    log_config.setup_logging(settings.log_level, settings.log_file, settings.log_format)

    directory = args.output or settings.storage_dir
    store = storage.StorageService(storage.JsonFileBackend(directory))
    synth.seed_storage(store, date.today(), days=args.days, seed=args.seed)
    logger.info("Wrote sample data to %s", directory)


if __name__ == "__main__":
    main()
