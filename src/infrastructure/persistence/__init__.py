"""
Persistence boundary used by the recovery strategies.
"""

from .key_value_store import KeyValueStore, InMemoryKeyValueStore, SqliteKeyValueStore
from .design_persistence import (
    DesignPersistence,
    SqliteDesignPersistence,
    BackupMetadata,
    calculate_checksum
)

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SqliteKeyValueStore",
    "DesignPersistence",
    "SqliteDesignPersistence",
    "BackupMetadata",
    "calculate_checksum"
]
