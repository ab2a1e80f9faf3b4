"""
Recovery strategy contract.
"""

import logging
from abc import ABC, abstractmethod
from typing import FrozenSet

from ..entities.error_record import ErrorRecord, ErrorSeverity
from ..entities.recovery import RecoveryContext, RecoveryResult


HIGH_SEVERITIES: FrozenSet[ErrorSeverity] = frozenset({ErrorSeverity.HIGH, ErrorSeverity.CRITICAL})


class RecoveryStrategy(ABC):
    """
    A polymorphic unit of remediation.

    Strategies are identified by a unique ``name`` and ordered by
    ``priority`` (lower executes first). ``execute`` is expected to convert
    its own internal failures into an unsuccessful RecoveryResult; anything
    that still escapes is caught by the orchestrator and recorded as a
    failed attempt.
    """

    name: str = ""
    priority: int = 100

    def __init__(self):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @abstractmethod
    def can_handle(self, error: ErrorRecord) -> bool:
        """Whether this strategy applies to ``error``."""

    @abstractmethod
    async def execute(self, error: ErrorRecord, context: RecoveryContext) -> RecoveryResult:
        """Run the remediation and report what happened."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, priority={self.priority})"
