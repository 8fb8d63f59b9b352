"""Persistence for the scraped collection: one key holding an ordered record list."""

import json
import logging
import os
import tempfile
import threading
from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import psycopg2
from psycopg2 import extras, pool

from mapscrape.core.config import Settings, get_settings
from mapscrape.models import Record

logger = logging.getLogger(__name__)

DEFAULT_KEY = "gmes_results"

Listener = Callable[[List[Record]], None]
Mutator = Callable[[List[Record]], Tuple[List[Record], bool]]

_connection_pool: Optional[pool.SimpleConnectionPool] = None

_listeners: Dict[str, List[Tuple[int, Listener]]] = defaultdict(list)
_listeners_lock = threading.Lock()


class StoreError(RuntimeError):
    """Raised when the backing storage cannot be read or written."""


class Store:
    """Whole-list key/value cell with change notifications.

    ``set`` is last-write-wins. ``update`` runs read-modify-write while the
    backend holds its lock so concurrent scrapes cannot drop each other's
    additions.
    """

    def __init__(self, key: str = DEFAULT_KEY) -> None:
        self.key = key

    @property
    def channel(self) -> str:
        raise NotImplementedError

    def _read(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _write(self, items: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    def _locked_update(self, mutator: Callable[[List[Dict[str, Any]]], Optional[List[Dict[str, Any]]]]) -> None:
        raise NotImplementedError

    def get(self) -> List[Record]:
        return _to_records(self._read())

    def set(self, records: List[Record]) -> None:
        self._write([record.to_dict() for record in records])
        self._notify(list(records))

    def update(self, mutator: Mutator) -> List[Record]:
        """Apply ``mutator`` to the current list atomically; persist only when it reports a change."""
        result: Dict[str, Any] = {}

        def apply(items: List[Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
            records, changed = mutator(_to_records(items))
            result["records"] = records
            result["changed"] = changed
            return [record.to_dict() for record in records] if changed else None

        self._locked_update(apply)
        if result.get("changed"):
            self._notify(list(result["records"]))
        return result.get("records", [])

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new list whenever another handle writes this key."""
        entry = (id(self), listener)
        with _listeners_lock:
            _listeners[self.channel].append(entry)

        def unsubscribe() -> None:
            with _listeners_lock:
                if entry in _listeners[self.channel]:
                    _listeners[self.channel].remove(entry)

        return unsubscribe

    def _notify(self, records: List[Record]) -> None:
        with _listeners_lock:
            targets = [listener for owner, listener in _listeners[self.channel] if owner != id(self)]
        for listener in targets:
            try:
                listener(list(records))
            except Exception:  # noqa: BLE001
                logger.exception("Store listener failed for %s", self.channel)


def _to_records(items: Any) -> List[Record]:
    if not isinstance(items, list):
        logger.warning("Stored value is not a list; treating it as empty")
        return []
    return [Record.from_dict(item) for item in items if isinstance(item, dict)]


# ---------- JSON file backend ----------

_file_locks: Dict[str, threading.RLock] = defaultdict(threading.RLock)
_file_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    with _file_locks_guard:
        return _file_locks[str(path)]


class JsonFileStore(Store):
    """Stores ``{key: [records]}`` in a JSON file, replaced atomically on write."""

    def __init__(self, path: os.PathLike, key: str = DEFAULT_KEY) -> None:
        super().__init__(key)
        self.path = Path(path).expanduser().resolve()
        self._lock = _lock_for(self.path)

    @property
    def channel(self) -> str:
        return f"file:{self.path}:{self.key}"

    def _load_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Unable to read {self.path}: {exc}") from exc
        if not isinstance(document, dict):
            raise StoreError(f"{self.path} does not hold a JSON object")
        return document

    def _dump_document(self, document: Dict[str, Any]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            raise StoreError(f"Unable to write {self.path}: {exc}") from exc
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug("Wrote %d records to %s", len(document.get(self.key) or []), self.path)

    def _read(self) -> List[Dict[str, Any]]:
        with self._lock:
            return self._load_document().get(self.key) or []

    def _write(self, items: List[Dict[str, Any]]) -> None:
        with self._lock:
            document = self._load_document()
            document[self.key] = items
            self._dump_document(document)

    def _locked_update(self, mutator) -> None:
        with self._lock:
            document = self._load_document()
            updated = mutator(document.get(self.key) or [])
            if updated is not None:
                document[self.key] = updated
                self._dump_document(document)


# ---------- PostgreSQL backend ----------


def init_pool(database_url: Optional[str] = None, minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        dsn = database_url or get_settings().database_url
        if not dsn:
            raise StoreError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=dsn,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection(database_url: Optional[str] = None):
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool(database_url)
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value JSONB NOT NULL DEFAULT '[]'::jsonb,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_SELECT_VALUE = "SELECT value FROM kv_store WHERE key = %(key)s;"

_ENSURE_ROW = """
INSERT INTO kv_store (key, value) VALUES (%(key)s, '[]'::jsonb)
ON CONFLICT (key) DO NOTHING;
"""

_SELECT_VALUE_FOR_UPDATE = "SELECT value FROM kv_store WHERE key = %(key)s FOR UPDATE;"

_UPSERT_VALUE = """
INSERT INTO kv_store (key, value, updated_at) VALUES (%(key)s, %(value)s, NOW())
ON CONFLICT (key) DO UPDATE SET
    value = EXCLUDED.value,
    updated_at = NOW();
"""


class PostgresStore(Store):
    """Keeps the list as a JSONB value in ``kv_store``; updates lock the row."""

    def __init__(self, database_url: Optional[str] = None, key: str = DEFAULT_KEY) -> None:
        super().__init__(key)
        self.database_url = database_url
        self._schema_ready = False

    @property
    def channel(self) -> str:
        return f"postgres:{self.key}"

    def _ensure_schema(self, cur) -> None:
        if not self._schema_ready:
            cur.execute(_CREATE_TABLE)
            self._schema_ready = True

    def _read(self) -> List[Dict[str, Any]]:
        try:
            with get_connection(self.database_url) as conn:
                with conn.cursor() as cur:
                    self._ensure_schema(cur)
                    cur.execute(_SELECT_VALUE, {"key": self.key})
                    row = cur.fetchone()
                conn.commit()
        except psycopg2.Error as exc:
            raise StoreError(f"Unable to read key {self.key}: {exc}") from exc
        return row[0] if row and row[0] is not None else []

    def _write(self, items: List[Dict[str, Any]]) -> None:
        try:
            with get_connection(self.database_url) as conn:
                with conn.cursor() as cur:
                    self._ensure_schema(cur)
                    cur.execute(_UPSERT_VALUE, {"key": self.key, "value": extras.Json(items)})
                conn.commit()
        except psycopg2.Error as exc:
            raise StoreError(f"Unable to write key {self.key}: {exc}") from exc
        logger.debug("Stored %d records under %s", len(items), self.key)

    def _locked_update(self, mutator) -> None:
        try:
            with get_connection(self.database_url) as conn:
                try:
                    with conn.cursor() as cur:
                        self._ensure_schema(cur)
                        cur.execute(_ENSURE_ROW, {"key": self.key})
                        cur.execute(_SELECT_VALUE_FOR_UPDATE, {"key": self.key})
                        row = cur.fetchone()
                        current = row[0] if row and row[0] is not None else []
                        updated = mutator(current)
                        if updated is not None:
                            cur.execute(_UPSERT_VALUE, {"key": self.key, "value": extras.Json(updated)})
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
        except psycopg2.Error as exc:
            raise StoreError(f"Unable to update key {self.key}: {exc}") from exc


def build_store(settings: Optional[Settings] = None) -> Store:
    """Create the store backend selected by ``STORE_BACKEND``."""
    settings = settings or get_settings()
    if settings.store_backend == "postgres":
        return PostgresStore(settings.database_url or None, key=settings.store_key)
    return JsonFileStore(settings.store_path, key=settings.store_key)
