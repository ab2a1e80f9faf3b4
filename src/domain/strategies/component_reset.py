"""
Component-reset strategy: ask the host UI to remount without a reload.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from ..entities.error_record import ErrorRecord, ErrorCategory
from ..entities.recovery import RecoveryContext, RecoveryResult, NextAction
from ..services.event_channel import EventChannel
from .base import RecoveryStrategy, HIGH_SEVERITIES


@dataclass(frozen=True)
class RemountSignal:
    """Structured request for the host UI to remount its component tree."""
    error_id: str
    category: str
    reason: str
    session_id: str
    component: Optional[str] = None
    timestamp: float = 0.0


class ComponentResetStrategy(RecoveryStrategy):
    """Broadcast a remount signal and give handlers a moment to run."""

    name = "component-reset"
    priority = 2

    def __init__(self, signals: EventChannel, settle_delay: float = 0.1):
        super().__init__()
        self.signals = signals
        self.settle_delay = settle_delay

    def can_handle(self, error: ErrorRecord) -> bool:
        return error.category == ErrorCategory.RENDERING and error.severity in HIGH_SEVERITIES

    async def execute(self, error: ErrorRecord, context: RecoveryContext) -> RecoveryResult:
        signal = RemountSignal(
            error_id=error.id,
            category=error.category.value,
            reason=error.message,
            session_id=context.session_id,
            component=error.context.get("component"),
            timestamp=time.time()
        )

        try:
            delivered = self.signals.publish(signal)
        except Exception as e:
            self.logger.error(f"Failed to dispatch remount signal: {str(e)}")
            return RecoveryResult(
                success=False,
                strategy=self.name,
                message=f"Component reset failed: {str(e)}",
                next_action=NextAction.CONTINUE
            )

        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

        self.logger.info(f"Remount signal dispatched to {delivered} handler(s) for {error.id}")

        return RecoveryResult(
            success=True,
            strategy=self.name,
            message=f"Component remount requested ({delivered} handler(s) notified)",
            next_action=NextAction.CONTINUE
        )
