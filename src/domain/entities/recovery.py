"""
Recovery entities: context snapshot, strategy results and attempt history.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Any, Optional, Mapping


class NextAction(str, Enum):
    """Directive a strategy gives the orchestrator about what happens next."""
    CONTINUE = "continue"
    RELOAD = "reload"
    RESET = "reset"


def generate_session_id() -> str:
    return f"recovery_{int(time.time() * 1000)}"


@dataclass
class RecoveryContext:
    """
    Snapshot of recoverable application state.

    A context always carries a session identifier, even when every optional
    field is unavailable.
    """

    session_id: str = field(default_factory=generate_session_id)
    project_id: Optional[str] = None
    current_design: Optional[Dict[str, Any]] = None
    current_audio: Optional[Dict[str, Any]] = None
    user_preferences: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.session_id:
            self.session_id = generate_session_id()

    @classmethod
    def minimal(cls) -> "RecoveryContext":
        """Degraded context holding only a session identifier."""
        return cls()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RecoveryContext":
        """Build a context from a provider's mapping, ignoring unknown keys."""
        def _mapping_or_none(value):
            return dict(value) if isinstance(value, Mapping) else None

        session_id = data.get("session_id") or data.get("sessionId")
        project_id = data.get("project_id") or data.get("projectId")
        return cls(
            session_id=str(session_id) if session_id else generate_session_id(),
            project_id=str(project_id) if project_id else None,
            current_design=_mapping_or_none(data.get("current_design")),
            current_audio=_mapping_or_none(data.get("current_audio")),
            user_preferences=_mapping_or_none(data.get("user_preferences")),
        )

    @property
    def has_design(self) -> bool:
        return bool(self.current_design)


@dataclass
class PreservedDataManifest:
    """What a strategy managed to save or restore, and what it could not."""

    saved: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def any_saved(self) -> bool:
        return len(self.saved) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "saved": list(self.saved),
            "failed": list(self.failed),
            "timestamp": self.timestamp,
            "details": dict(self.details),
        }


@dataclass
class RecoveryResult:
    """Outcome of a single strategy, or of a whole recovery run."""

    success: bool
    strategy: str
    message: str = ""
    requires_user_action: bool = False
    next_action: Optional[NextAction] = None
    preserved_data: Optional[PreservedDataManifest] = None

    @property
    def effective_next_action(self) -> NextAction:
        """A failed result without a directive means 'try the next strategy'."""
        if self.next_action is None:
            return NextAction.CONTINUE
        return self.next_action

    @property
    def stops_escalation(self) -> bool:
        return self.success or self.effective_next_action in (NextAction.RELOAD, NextAction.RESET)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "strategy": self.strategy,
            "message": self.message,
            "requires_user_action": self.requires_user_action,
            "next_action": self.next_action.value if self.next_action else None,
            "preserved_data": self.preserved_data.to_dict() if self.preserved_data else None,
        }


@dataclass(frozen=True)
class RecoveryAttempt:
    """History entry for one strategy execution."""

    timestamp: float
    error_id: str
    strategy: str
    success: bool
    duration: float
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "error_id": self.error_id,
            "strategy": self.strategy,
            "success": self.success,
            "duration": round(self.duration, 4),
            "message": self.message,
        }
