"""
Domain entities for the recovery engine.
"""

from .error_record import ErrorRecord, ErrorCategory, ErrorSeverity, compute_error_hash
from .recovery import (
    NextAction,
    RecoveryContext,
    RecoveryResult,
    RecoveryAttempt,
    PreservedDataManifest,
    generate_session_id
)
from .events import (
    RecoveryEvent,
    RecoveryStarted,
    RecoveryProgress,
    RecoveryCompleted,
    RecoveryFailed
)

__all__ = [
    'ErrorRecord',
    'ErrorCategory',
    'ErrorSeverity',
    'compute_error_hash',
    'NextAction',
    'RecoveryContext',
    'RecoveryResult',
    'RecoveryAttempt',
    'PreservedDataManifest',
    'generate_session_id',
    'RecoveryEvent',
    'RecoveryStarted',
    'RecoveryProgress',
    'RecoveryCompleted',
    'RecoveryFailed'
]
