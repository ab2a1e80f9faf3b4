"""
Recovery lifecycle events published on the notification channel.

The event set is closed: subscribers can match on ``kind`` (or on the
class) exhaustively.
"""

from dataclasses import dataclass
from typing import Union, Literal

from .error_record import ErrorRecord
from .recovery import RecoveryResult


@dataclass(frozen=True)
class RecoveryStarted:
    strategy: str
    error: ErrorRecord
    kind: Literal["started"] = "started"


@dataclass(frozen=True)
class RecoveryProgress:
    strategy: str
    step: str
    percent: int
    message: str
    index: int = 0
    total: int = 0
    can_cancel: bool = False
    kind: Literal["progress"] = "progress"


@dataclass(frozen=True)
class RecoveryCompleted:
    result: RecoveryResult
    duration: float
    kind: Literal["completed"] = "completed"


@dataclass(frozen=True)
class RecoveryFailed:
    error: BaseException
    duration: float
    kind: Literal["failed"] = "failed"


RecoveryEvent = Union[RecoveryStarted, RecoveryProgress, RecoveryCompleted, RecoveryFailed]
