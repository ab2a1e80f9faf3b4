"""
Design document persistence with rolling backups.
"""

import asyncio
import hashlib
import json
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..error_handling import PersistenceError
from .key_value_store import sqlite_connection


@dataclass(frozen=True)
class BackupMetadata:
    """A stored backup of one project's design."""
    project_id: str
    timestamp: float
    checksum: str
    size: int = 0


def calculate_checksum(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


class DesignPersistence(ABC):
    """Document persistence boundary used by the recovery strategies."""

    name: str = "designs"

    @abstractmethod
    async def save_design(self, project_id: str, design: Dict[str, Any], backup: bool = True) -> None:
        """Persist ``design`` as the current version of ``project_id``."""

    @abstractmethod
    async def load_design(self, project_id: str) -> Optional[Dict[str, Any]]:
        """Current design of ``project_id`` or None."""

    @abstractmethod
    async def list_backups(self, project_id: str) -> List[BackupMetadata]:
        """Backups of ``project_id``, newest first."""

    @abstractmethod
    async def restore_from_backup(self, project_id: str, timestamp: float) -> Dict[str, Any]:
        """Load the backup taken at ``timestamp``; raises PersistenceError when unusable."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete every design and backup."""


class SqliteDesignPersistence(DesignPersistence):
    """
    SQLite-backed design persistence.

    Every save (unless ``backup=False``) also records a checksummed backup;
    only the newest ``max_backups`` backups per project are retained.
    """

    def __init__(self, db_path: str, max_backups: int = 10, name: str = "designs"):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self.db_path = db_path
        self.max_backups = max_backups
        self.name = name
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._initialize_database()

    def _initialize_database(self):
        """Initialize SQLite tables for designs and their backups."""
        with sqlite_connection(self.db_path) as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS designs (
                    project_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS design_backups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_id TEXT NOT NULL,
                    timestamp REAL NOT NULL,
                    checksum TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            ''')

            conn.execute('''
                CREATE INDEX IF NOT EXISTS idx_design_backups_project
                ON design_backups (project_id, timestamp)
            ''')

            conn.commit()

    async def save_design(self, project_id: str, design: Dict[str, Any], backup: bool = True) -> None:
        try:
            payload = json.dumps(design, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                f"Design for {project_id} is not serializable: {str(e)}",
                backend=self.name,
                key=project_id
            )
        await self._run("save_design", project_id, self._save_sync, project_id, payload, backup)

    async def load_design(self, project_id: str) -> Optional[Dict[str, Any]]:
        return await self._run("load_design", project_id, self._load_sync, project_id)

    async def list_backups(self, project_id: str) -> List[BackupMetadata]:
        return await self._run("list_backups", project_id, self._list_backups_sync, project_id)

    async def restore_from_backup(self, project_id: str, timestamp: float) -> Dict[str, Any]:
        return await self._run(
            "restore_from_backup", project_id, self._restore_sync, project_id, timestamp
        )

    async def clear(self) -> None:
        await self._run("clear", None, self._clear_sync)

    async def _run(self, operation: str, key: Optional[str], func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise PersistenceError(
                f"{self.name} {operation} failed: {str(e)}",
                backend=self.name,
                key=key
            )

    def _save_sync(self, project_id: str, payload: str, backup: bool):
        now = time.time()
        with self._lock, sqlite_connection(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO designs (project_id, data, updated_at) VALUES (?, ?, ?)",
                (project_id, payload, now)
            )

            if backup:
                conn.execute(
                    "INSERT INTO design_backups (project_id, timestamp, checksum, data) "
                    "VALUES (?, ?, ?, ?)",
                    (project_id, now, calculate_checksum(payload), payload)
                )
                # Keep only the newest max_backups rows for this project
                conn.execute(
                    '''
                    DELETE FROM design_backups
                    WHERE project_id = ? AND id NOT IN (
                        SELECT id FROM design_backups
                        WHERE project_id = ?
                        ORDER BY timestamp DESC, id DESC
                        LIMIT ?
                    )
                    ''',
                    (project_id, project_id, self.max_backups)
                )

            conn.commit()

    def _load_sync(self, project_id: str) -> Optional[Dict[str, Any]]:
        with self._lock, sqlite_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT data FROM designs WHERE project_id = ?", (project_id,)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def _list_backups_sync(self, project_id: str) -> List[BackupMetadata]:
        with self._lock, sqlite_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT timestamp, checksum, length(data) FROM design_backups "
                "WHERE project_id = ? ORDER BY timestamp DESC, id DESC",
                (project_id,)
            ).fetchall()
        return [
            BackupMetadata(project_id=project_id, timestamp=row[0], checksum=row[1], size=row[2])
            for row in rows
        ]

    def _restore_sync(self, project_id: str, timestamp: float) -> Dict[str, Any]:
        with self._lock, sqlite_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT checksum, data FROM design_backups "
                "WHERE project_id = ? AND timestamp = ? ORDER BY id DESC LIMIT 1",
                (project_id, timestamp)
            ).fetchone()

        if not row:
            raise PersistenceError(
                f"No backup for {project_id} at {timestamp}",
                backend=self.name,
                key=project_id
            )

        checksum, payload = row
        if calculate_checksum(payload) != checksum:
            raise PersistenceError(
                f"Backup checksum mismatch for {project_id} at {timestamp}",
                backend=self.name,
                key=project_id
            )

        try:
            return json.loads(payload)
        except ValueError as e:
            raise PersistenceError(
                f"Backup for {project_id} at {timestamp} is not valid JSON: {str(e)}",
                backend=self.name,
                key=project_id
            )

    def _clear_sync(self):
        with self._lock, sqlite_connection(self.db_path) as conn:
            conn.execute("DELETE FROM designs")
            conn.execute("DELETE FROM design_backups")
            conn.commit()
