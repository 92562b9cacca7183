"""Key/value storage adapter with typed buckets.

Every bucket is a JSON document stored under a string key. Buckets listed in
``BUCKET_SCHEMAS`` are validated with pydantic when read, so a corrupt or
outdated document is rejected here (and replaced by the caller's default)
instead of surfacing deep inside the analytics code. List buckets drop
invalid records one by one and keep the rest.
"""

from __future__ import annotations

import io
import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Protocol, TypeVar

import pandas as pd
from pydantic import TypeAdapter, ValidationError
from typing_extensions import TypedDict

from .models import Budget, Category, Currency, ExchangeRateSnapshot, PredictionData, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORAGE_VERSION = "1.0.0"
BACKUP_PREFIX = "budgetit_backup_"
MAX_BACKUPS = 5
STORAGE_LIMIT_BYTES = 5 * 1024 * 1024


class StorageKey(str, Enum):
    TRANSACTIONS = "budgetit_transactions"
    ACCOUNTS = "budgetit_accounts"
    CARDS = "budgetit_cards"
    BUDGETS = "budgetit_budgets"
    FINANCIAL_GOALS = "budgetit_goals"
    RECURRING_TRANSACTIONS = "budgetit_recurring"
    CATEGORIES = "budgetit_categories"
    DASHBOARD_LAYOUT = "budgetit_dashboard_layout"
    CURRENCIES = "budgetit_currencies"
    SETTINGS = "budgetit_settings"
    TAGS = "budgetit_tags"
    EXCHANGE_RATES = "budgetit_exchange_rates"
    USER_PREFERENCES = "budgetit_user_preferences"
    PREDICTION_DATA = "budgetit_prediction_data"


BUCKET_SCHEMAS: dict[StorageKey, TypeAdapter[Any]] = {
    StorageKey.TRANSACTIONS: TypeAdapter(list[Transaction]),
    StorageKey.CATEGORIES: TypeAdapter(list[Category]),
    StorageKey.BUDGETS: TypeAdapter(list[Budget]),
    StorageKey.CURRENCIES: TypeAdapter(list[Currency]),
    StorageKey.PREDICTION_DATA: TypeAdapter(PredictionData),
    StorageKey.EXCHANGE_RATES: TypeAdapter(ExchangeRateSnapshot),
}

# List buckets are validated record by record so one bad entry is dropped alone.
RECORD_SCHEMAS: dict[StorageKey, TypeAdapter[Any]] = {
    StorageKey.TRANSACTIONS: TypeAdapter(Transaction),
    StorageKey.CATEGORIES: TypeAdapter(Category),
    StorageKey.BUDGETS: TypeAdapter(Budget),
    StorageKey.CURRENCIES: TypeAdapter(Currency),
}


class ImportResult(TypedDict):
    success: bool
    message: str


class StorageUsage(TypedDict):
    used: int
    limit: int
    percent_used: float


class StorageBackend(Protocol):
    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, raw: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


class MemoryBackend:
    """Volatile backend holding raw JSON strings in a dict."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def write(self, key: str, raw: str) -> None:
        self._items[key] = raw

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))


class JsonFileBackend:
    """Backend storing each bucket as ``<directory>/<key>.json``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, raw: str) -> None:
        self._path(key).write_text(raw, encoding="utf-8")

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> Iterator[str]:
        return iter(sorted(path.stem for path in self.directory.glob("*.json")))


def _key_name(key: StorageKey | str) -> str:
    return key.value if isinstance(key, StorageKey) else key


def _schema_for(key: StorageKey | str) -> Optional[TypeAdapter[Any]]:
    try:
        return BUCKET_SCHEMAS.get(StorageKey(_key_name(key)))
    except ValueError:
        return None


def _record_schema_for(key: StorageKey | str) -> Optional[TypeAdapter[Any]]:
    try:
        return RECORD_SCHEMAS.get(StorageKey(_key_name(key)))
    except ValueError:
        return None


def _valid_records(name: str, schema: TypeAdapter[Any], items: list[Any]) -> list[tuple[Any, Any]]:
    """Pair each valid raw item with its parsed record, logging rejected indices."""

    valid = []
    for index, item in enumerate(items):
        try:
            valid.append((item, schema.validate_python(item)))
        except ValidationError as exc:
            logger.warning(
                "Dropping invalid record %d in bucket %s: %d errors", index, name, exc.error_count()
            )
    return valid


def _merge(existing: Any, incoming: Any) -> Any:
    if isinstance(existing, list) and isinstance(incoming, list):
        def identity(item: Any) -> Any:
            if isinstance(item, dict):
                return item.get("id", item.get("code"))
            return None

        seen = {identity(item) for item in existing} - {None}
        merged = list(existing)
        for item in incoming:
            ident = identity(item)
            if ident is None or ident not in seen:
                merged.append(item)
                if ident is not None:
                    seen.add(ident)
        return merged
    if isinstance(existing, dict) and isinstance(incoming, dict):
        return {**existing, **incoming}
    return incoming


class StorageService:
    """Persist JSON buckets through a pluggable backend."""

    def __init__(self, backend: StorageBackend | None = None) -> None:
        self.backend: StorageBackend = backend if backend is not None else MemoryBackend()

    def get(self, key: StorageKey | str, default: T) -> Any | T:
        """Return the decoded bucket, or ``default`` if it is absent or invalid."""

        name = _key_name(key)
        try:
            raw = self.backend.read(name)
        except OSError:
            logger.warning("Could not read bucket %s", name, exc_info=True)
            return default
        if raw is None:
            return default

        schema = _schema_for(key)
        records = _record_schema_for(key)
        try:
            if records is not None:
                items = json.loads(raw)
                if not isinstance(items, list):
                    raise ValueError(f"Bucket {name} does not hold a list")
                return [record for _, record in _valid_records(name, records, items)]
            if schema is not None:
                return schema.validate_json(raw)
            return json.loads(raw)
        except (ValidationError, ValueError):
            logger.warning("Discarding unreadable data in bucket %s", name)
            return default

    def set(self, key: StorageKey | str, value: Any) -> None:
        name = _key_name(key)
        schema = _schema_for(key)
        if schema is not None:
            raw = schema.dump_json(value, by_alias=True).decode("utf-8")
        else:
            raw = json.dumps(value)
        self.backend.write(name, raw)

    def remove(self, key: StorageKey | str) -> None:
        self.backend.delete(_key_name(key))

    def has(self, key: StorageKey | str) -> bool:
        return self.backend.read(_key_name(key)) is not None

    def update(self, key: StorageKey | str, update_fn: Callable[[Any], Any], default: Any) -> None:
        """Apply ``update_fn`` to the current value and store the result."""

        self.set(key, update_fn(self.get(key, default)))

    def _raw_json(self, name: str) -> Any:
        raw = self.backend.read(name)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Skipping non-JSON bucket %s", name)
            return None

    def export_all(self, now: datetime | None = None) -> str:
        """Serialise every known bucket into a versioned JSON document."""

        stamp = (now or datetime.now()).isoformat()
        data: dict[str, Any] = {}
        for key in StorageKey:
            value = self._raw_json(key.value)
            if value is not None:
                data[key.value] = value
        return json.dumps({"version": STORAGE_VERSION, "timestamp": stamp, "data": data})

    def _migrate(self, payload: dict[str, Any]) -> dict[str, Any]:
        if payload["version"] == STORAGE_VERSION:
            return payload
        logger.info("Migrating data from version %s to %s", payload["version"], STORAGE_VERSION)
        return {**payload, "version": STORAGE_VERSION}

    def _checked(self, name: str, value: Any) -> Any:
        """Return ``value`` with invalid records removed, or ``None`` to skip the bucket."""

        records = _record_schema_for(name)
        if records is not None:
            if not isinstance(value, list):
                logger.warning("Skipping bucket %s: expected a list", name)
                return None
            return [item for item, _ in _valid_records(name, records, value)]

        schema = _schema_for(name)
        if schema is not None:
            try:
                schema.validate_python(value)
            except ValidationError:
                logger.warning("Skipping invalid bucket %s", name)
                return None
        return value

    def import_data(self, text: str, overwrite: bool = False) -> ImportResult:
        """Load buckets from an :meth:`export_all` document.

        With ``overwrite`` each bucket is replaced; otherwise lists are merged
        by ``id``/``code`` and dicts are shallow-merged.
        """

        try:
            payload = json.loads(text)
        except ValueError:
            logger.warning("Import payload is not valid JSON")
            return {"success": False, "message": "Could not parse the import file"}

        if not isinstance(payload, dict) or not payload.get("version") or not isinstance(payload.get("data"), dict):
            return {"success": False, "message": "Invalid data format"}

        migrated = self._migrate(payload)
        imported = 0
        for name, value in migrated["data"].items():
            value = self._checked(name, value)
            if value is None:
                continue
            if not overwrite:
                existing = self._raw_json(name)
                if existing is not None:
                    value = _merge(existing, value)
            self.backend.write(name, json.dumps(value))
            imported += 1

        return {"success": True, "message": f"Imported {imported} data sets"}

    def create_backup(self, now: datetime | None = None) -> str:
        """Store a full export under a timestamped key and prune old backups."""

        moment = now or datetime.now()
        stamp = moment.isoformat().replace(":", "-").replace(".", "-")
        key = f"{BACKUP_PREFIX}{stamp}"
        self.set(key, self.export_all(moment))
        self._cleanup_backups()
        return key

    def backup_keys(self) -> list[str]:
        """Return backup keys, most recent first."""

        keys = [key for key in self.backend.keys() if key.startswith(BACKUP_PREFIX)]
        return sorted(keys, reverse=True)

    def _cleanup_backups(self) -> None:
        for key in self.backup_keys()[MAX_BACKUPS:]:
            self.remove(key)

    def export_to_csv(self, key: StorageKey | str) -> str:
        """Render a list bucket as CSV with the first record's keys as header."""

        data = self._raw_json(_key_name(key))
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return ""

        headers = list(data[0].keys())
        frame = pd.DataFrame(data).reindex(columns=headers)
        buffer = io.StringIO()
        frame.to_csv(buffer, index=False, lineterminator="\n")
        return buffer.getvalue().rstrip("\n")

    def storage_usage(self) -> StorageUsage:
        """Estimate space used, counting two bytes per character."""

        used = 0
        for key in self.backend.keys():
            raw = self.backend.read(key)
            used += len(raw or "") * 2
        return {
            "used": used,
            "limit": STORAGE_LIMIT_BYTES,
            "percent_used": used / STORAGE_LIMIT_BYTES * 100,
        }
