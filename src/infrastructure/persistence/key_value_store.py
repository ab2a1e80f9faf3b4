"""
Key/value stores used by recovery strategies.

Two implementations are provided: an in-memory store (process lifetime)
and a SQLite-backed store whose contents survive a process restart. Values
must be JSON serializable.
"""

import asyncio
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..error_handling import PersistenceError


@contextmanager
def sqlite_connection(db_path: str):
    """Connection that commits (or rolls back) and is closed on exit."""
    with closing(sqlite3.connect(db_path)) as conn:
        with conn:
            yield conn


class KeyValueStore(ABC):
    """Async key/value persistence boundary."""

    name: str = "kv"

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value or ``default``."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` (last writer wins)."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""

    @abstractmethod
    async def pop(self, key: str, default: Any = None) -> Any:
        """Atomically read and delete ``key``."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """Stored keys starting with ``prefix``, sorted."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete everything."""


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store."""

    def __init__(self, name: str = "memory", initial: Optional[Dict[str, Any]] = None):
        self.name = name
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()
        for key, value in (initial or {}).items():
            self._data[key] = json.loads(json.dumps(value))

    async def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        try:
            # Round trip so callers can't mutate stored state and
            # non-serializable values fail the same way as on disk
            encoded = json.loads(json.dumps(value))
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                f"Value for {key} is not serializable: {str(e)}",
                backend=self.name,
                key=key
            )
        with self._lock:
            self._data[key] = encoded

    async def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    async def pop(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.pop(key, default)

    async def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    async def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class SqliteKeyValueStore(KeyValueStore):
    """SQLite-backed store whose contents survive a restart."""

    def __init__(self, db_path: str, name: str = "sqlite", table: str = "kv_store"):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self.name = name
        self.db_path = db_path
        self.table = table
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._initialize_database()

    def _initialize_database(self):
        """Create the backing table."""
        with sqlite_connection(self.db_path) as conn:
            conn.execute(f'''
                CREATE TABLE IF NOT EXISTS {self.table} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL DEFAULT (julianday('now'))
                )
            ''')
            conn.commit()

    async def _run(self, operation: str, key: Optional[str], func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise PersistenceError(
                f"{self.name} {operation} failed: {str(e)}",
                backend=self.name,
                key=key
            )

    async def get(self, key: str, default: Any = None) -> Any:
        return await self._run("get", key, self._get_sync, key, default)

    async def set(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                f"Value for {key} is not serializable: {str(e)}",
                backend=self.name,
                key=key
            )
        await self._run("set", key, self._set_sync, key, encoded)

    async def remove(self, key: str) -> None:
        await self._run("remove", key, self._remove_sync, key)

    async def pop(self, key: str, default: Any = None) -> Any:
        return await self._run("pop", key, self._pop_sync, key, default)

    async def keys(self, prefix: str = "") -> List[str]:
        return await self._run("keys", None, self._keys_sync, prefix)

    async def clear(self) -> None:
        await self._run("clear", None, self._clear_sync)

    def _get_sync(self, key: str, default: Any) -> Any:
        with self._lock, sqlite_connection(self.db_path) as conn:
            row = conn.execute(
                f"SELECT value FROM {self.table} WHERE key = ?", (key,)
            ).fetchone()
        return json.loads(row[0]) if row else default

    def _set_sync(self, key: str, encoded: str):
        with self._lock, sqlite_connection(self.db_path) as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {self.table} (key, value, updated_at) "
                f"VALUES (?, ?, julianday('now'))",
                (key, encoded)
            )
            conn.commit()

    def _remove_sync(self, key: str):
        with self._lock, sqlite_connection(self.db_path) as conn:
            conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
            conn.commit()

    def _pop_sync(self, key: str, default: Any) -> Any:
        # IMMEDIATE takes the write lock up front so two processes
        # starting together cannot both read the value
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        try:
            with self._lock:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    f"SELECT value FROM {self.table} WHERE key = ?", (key,)
                ).fetchone()
                if row:
                    conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
                conn.execute("COMMIT")
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()
        return json.loads(row[0]) if row else default

    def _keys_sync(self, prefix: str) -> List[str]:
        with self._lock, sqlite_connection(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT key FROM {self.table} WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix)
            ).fetchall()
        return [row[0] for row in rows]

    def _clear_sync(self):
        with self._lock, sqlite_connection(self.db_path) as conn:
            conn.execute(f"DELETE FROM {self.table}")
            conn.commit()
