"""
Error record entity consumed by the recovery orchestrator.
"""

import hashlib
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Any, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def coerce(cls, value: Any) -> "ErrorSeverity":
        """Map a raw value onto the taxonomy, defaulting to MEDIUM."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.MEDIUM


class ErrorCategory(Enum):
    """Error categories for classification."""
    RENDERING = "rendering"
    RUNTIME = "runtime"
    PERSISTENCE = "persistence"
    NETWORK = "network"
    GLOBAL = "global"
    DATA = "data"
    PERFORMANCE = "performance"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: Any) -> "ErrorCategory":
        """Map a raw value onto the taxonomy, defaulting to UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


def _innermost_frame(stack: Optional[str]) -> str:
    # The same fault reached through different callers hashes identically
    lines = [line.strip() for line in (stack or "").splitlines() if line.strip()]
    frames = [line for line in lines if line.startswith("File ")]
    if frames:
        return frames[-1]
    return lines[0] if lines else ""


def compute_error_hash(message: str, stack: Optional[str], category: ErrorCategory) -> str:
    """Content hash used to deduplicate repeated occurrences of one fault."""
    digest = hashlib.sha1()
    digest.update(message.encode("utf-8"))
    digest.update(b"\x00")
    digest.update(_innermost_frame(stack).encode("utf-8"))
    digest.update(b"\x00")
    digest.update(category.value.encode("utf-8"))
    return digest.hexdigest()[:16]


@dataclass(frozen=True)
class ErrorRecord:
    """
    Immutable description of a fault.

    Records are produced by the error store and are read-only to the
    orchestrator and its strategies. A repeated occurrence of the same
    logical fault is represented by a copy with an incremented ``count``
    (see ``with_occurrence``), never by a new identifier.
    """

    message: str
    category: ErrorCategory = ErrorCategory.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    id: str = field(default_factory=lambda: f"err_{uuid.uuid4().hex[:12]}")
    timestamp: float = field(default_factory=time.time)
    context: Dict[str, Any] = field(default_factory=dict)
    stack: Optional[str] = None
    count: int = 1
    resolved: bool = False
    hash: str = ""

    def __post_init__(self):
        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "category", ErrorCategory.coerce(self.category))
        object.__setattr__(self, "severity", ErrorSeverity.coerce(self.severity))
        object.__setattr__(self, "context", dict(self.context or {}))
        if not self.hash:
            object.__setattr__(
                self, "hash", compute_error_hash(self.message, self.stack, self.category)
            )

    @property
    def is_forced_reset(self) -> bool:
        """Whether the reporter explicitly asked for a destructive reset."""
        return bool(self.context.get("force_reset"))

    def with_occurrence(self, context: Optional[Dict[str, Any]] = None) -> "ErrorRecord":
        """Return a copy representing one more occurrence of this fault."""
        merged = dict(self.context)
        if context:
            merged.update(context)
        return replace(self, count=self.count + 1, timestamp=time.time(), context=merged)

    def mark_resolved(self) -> "ErrorRecord":
        return replace(self, resolved=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp,
            "count": self.count,
            "resolved": self.resolved,
            "hash": self.hash,
            "context": self.context,
        }
