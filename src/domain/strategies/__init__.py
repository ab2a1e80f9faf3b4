"""
Recovery strategies, ordered here by default priority.
"""

from .base import RecoveryStrategy, HIGH_SEVERITIES
from .auto_save import AutoSaveStrategy
from .component_reset import ComponentResetStrategy, RemountSignal
from .backup_restore import BackupRestoreStrategy, is_valid_design, is_valid_audio
from .soft_reload import (
    SoftReloadStrategy,
    PendingRestoration,
    check_pending_restoration,
    consume_restoration,
    PENDING_RESTORATION_FLAG,
    PENDING_RESTORATION_DATA
)
from .hard_reset import HardResetStrategy

__all__ = [
    "RecoveryStrategy",
    "HIGH_SEVERITIES",
    "AutoSaveStrategy",
    "ComponentResetStrategy",
    "RemountSignal",
    "BackupRestoreStrategy",
    "is_valid_design",
    "is_valid_audio",
    "SoftReloadStrategy",
    "PendingRestoration",
    "check_pending_restoration",
    "consume_restoration",
    "PENDING_RESTORATION_FLAG",
    "PENDING_RESTORATION_DATA",
    "HardResetStrategy"
]
