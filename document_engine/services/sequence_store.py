"""
Year-scoped document numbering.

The counter record is a single JSON value stored under one key:

    {"invoice": 12, "quotation": 40, "proforma": 3, "lastYear": 2025}

All counters reset together the first time a number is requested in a new
calendar year. Reads never fail: an unreadable or corrupt record is treated as
all counters at zero for the current year, so numbering never blocks document
creation. The read-modify-write of ``get_next`` is not protected against other
processes sharing the same storage.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from psycopg_pool import ConnectionPool

from document_engine.config import EngineConfig
from document_engine.enums import DocumentType
from document_engine.errors import PersistenceError
from document_engine.services.document_number import DocumentNumber

logger = logging.getLogger(__name__)

SEQUENCE_KEY = "document_sequences"


class MemoryStorage:
    """Key/value storage kept in a dict; used for previews and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStorage:
    """Key/value storage persisted as one JSON object in a local file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"Unexpected content in {self.path}")
        return data

    def read(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else json.dumps(value)

    def write(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except PersistenceError:
            logger.warning("Overwriting unreadable storage file %s", self.path)
            data = {}
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".seq-", suffix=".json", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            try:
                os.remove(tmp_path)
            except OSError:
                logger.debug("Temporary file %s already gone.", tmp_path)
            raise PersistenceError(f"Cannot write {self.path}: {exc}") from exc


class PostgresStorage:
    """Key/value storage on a settings table reached through a connection pool."""

    def __init__(self, pool, table: str = "app.document_settings"):
        self.pool = pool
        self.table = table

    @classmethod
    def from_url(cls, database_url: str, **kwargs: Any) -> "PostgresStorage":
        return cls(ConnectionPool(conninfo=database_url, min_size=1, max_size=2), **kwargs)

    def ensure_schema(self) -> None:
        query = f"CREATE TABLE IF NOT EXISTS {self.table} (clave TEXT PRIMARY KEY, valor TEXT NOT NULL)"
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query)
                    conn.commit()
        except Exception as exc:
            raise PersistenceError(f"Cannot create {self.table}: {exc}") from exc

    def read(self, key: str) -> Optional[str]:
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"SELECT valor FROM {self.table} WHERE clave = %s", (key,))
                    row = cur.fetchone()
        except Exception as exc:
            raise PersistenceError(f"Cannot read {key} from {self.table}: {exc}") from exc
        if not row:
            return None
        return row.get("valor") if isinstance(row, dict) else row[0]

    def write(self, key: str, value: str) -> None:
        query = f"""
            INSERT INTO {self.table} (clave, valor) VALUES (%s, %s)
            ON CONFLICT (clave) DO UPDATE SET valor = EXCLUDED.valor
        """
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, (key, value))
                    conn.commit()
        except Exception as exc:
            raise PersistenceError(f"Cannot write {key} to {self.table}: {exc}") from exc


@dataclass(frozen=True)
class SequenceCounters:
    invoice: int = 0
    quotation: int = 0
    proforma: int = 0
    last_year: int = 0

    @classmethod
    def fresh(cls, year: int) -> "SequenceCounters":
        return cls(last_year=year)

    @classmethod
    def from_dict(cls, data: Any) -> "SequenceCounters":
        if not isinstance(data, dict):
            raise TypeError("sequence record must be an object")
        values = {}
        for doc_type in DocumentType:
            values[doc_type.value] = _non_negative_int(data.get(doc_type.value, 0))
        return cls(last_year=_non_negative_int(data["lastYear"]), **values)

    def to_dict(self) -> Dict[str, int]:
        return {
            "invoice": self.invoice,
            "quotation": self.quotation,
            "proforma": self.proforma,
            "lastYear": self.last_year,
        }

    def get(self, doc_type: DocumentType) -> int:
        return getattr(self, doc_type.value)

    def incremented(self, doc_type: DocumentType) -> "SequenceCounters":
        return replace(self, **{doc_type.value: self.get(doc_type) + 1})


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"counter must be a number, got {value!r}")
    if value < 0 or int(value) != value:
        raise ValueError(f"counter must be a non-negative integer, got {value!r}")
    return int(value)


class SequenceStore:
    def __init__(
        self,
        storage,
        clock: Optional[Callable[[], datetime]] = None,
        key: str = SEQUENCE_KEY,
    ):
        self.storage = storage
        self.clock = clock or datetime.now
        self.key = key

    def _current_year(self) -> int:
        return self.clock().year

    def load(self) -> SequenceCounters:
        """Counters for the current year, with rollover and corruption handled."""
        current_year = self._current_year()
        defaults = SequenceCounters.fresh(current_year)

        try:
            raw = self.storage.read(self.key)
        except PersistenceError as exc:
            logger.warning("Sequence record unreadable, starting from zero: %s", exc)
            return defaults
        if not raw:
            return defaults

        try:
            counters = SequenceCounters.from_dict(json.loads(raw))
        except (ValueError, TypeError, KeyError, OverflowError) as exc:
            logger.warning("Sequence record corrupt, starting from zero: %s", exc)
            return defaults

        if counters.last_year != current_year:
            logger.info("Year rollover %s -> %s, all counters reset.", counters.last_year, current_year)
            return defaults
        return counters

    def _save(self, counters: SequenceCounters) -> None:
        self.storage.write(self.key, json.dumps(counters.to_dict()))

    def get_next(self, doc_type: Union[DocumentType, str]) -> DocumentNumber:
        """Assign the next number for ``doc_type``. The counter is advanced permanently."""
        doc_type = DocumentType.from_value(doc_type)
        counters = self.load().incremented(doc_type)
        self._save(counters)
        number = DocumentNumber(doc_type, counters.last_year, counters.get(doc_type))
        logger.info("Issued document number %s", number)
        return number

    def peek_next(self, doc_type: Union[DocumentType, str]) -> DocumentNumber:
        """Number the next ``get_next`` call would assign; nothing is persisted."""
        doc_type = DocumentType.from_value(doc_type)
        counters = self.load()
        return DocumentNumber(doc_type, counters.last_year, counters.get(doc_type) + 1)


def build_sequence_store(config: EngineConfig, clock: Optional[Callable[[], datetime]] = None) -> SequenceStore:
    if config.database_url:
        storage = PostgresStorage.from_url(config.database_url)
        storage.ensure_schema()
    else:
        storage = JsonFileStorage(config.sequence_store_path)
    return SequenceStore(storage, clock=clock)
