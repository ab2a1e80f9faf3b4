"""
UI-facing recovery status derived from orchestrator events.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from ...domain.entities.events import (
    RecoveryEvent, RecoveryStarted, RecoveryProgress, RecoveryCompleted, RecoveryFailed
)
from ...domain.entities.recovery import RecoveryResult, NextAction


class RecoveryStatusTracker:
    """
    Keeps the state a notification banner needs.

    Successful recoveries hide themselves after ``auto_dismiss`` seconds.
    Failures stay visible until ``dismiss()``. Dismissing only hides the
    notification; it never cancels a running recovery.
    """

    def __init__(self, auto_dismiss: float = 3.0):
        self.auto_dismiss = auto_dismiss
        self.is_recovering = False
        self.visible = False
        self.strategy: Optional[str] = None
        self.step: Optional[str] = None
        self.progress = 0
        self.message = ""
        self.last_result: Optional[RecoveryResult] = None
        self.last_error: Optional[str] = None
        self.recommend_hard_reset = False

        self._dismiss_handle: Optional[asyncio.TimerHandle] = None
        self._listeners: List[Callable[["RecoveryStatusTracker"], None]] = []
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def attach(self, orchestrator) -> Callable[[], None]:
        """Follow ``orchestrator``'s events. Returns a detach function."""
        return orchestrator.subscribe(self.handle_event)

    def on_change(self, listener: Callable[["RecoveryStatusTracker"], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def handle_event(self, event: RecoveryEvent):
        if isinstance(event, RecoveryStarted):
            self._cancel_auto_dismiss()
            self.is_recovering = True
            self.visible = True
            self.strategy = event.strategy
            self.step = "started"
            self.progress = 0
            self.message = f"Recovering from: {event.error.message}"
            self.last_error = None
            self.recommend_hard_reset = False

        elif isinstance(event, RecoveryProgress):
            self.strategy = event.strategy
            self.step = event.step
            self.progress = event.percent
            self.message = event.message

        elif isinstance(event, RecoveryCompleted):
            result = event.result
            self.is_recovering = False
            self.visible = True
            self.strategy = result.strategy
            self.step = "completed"
            self.progress = 100
            self.message = result.message
            self.last_result = result
            self.recommend_hard_reset = (
                not result.success and result.effective_next_action == NextAction.RESET
            )
            if result.success:
                self._schedule_auto_dismiss()

        elif isinstance(event, RecoveryFailed):
            self.is_recovering = False
            self.visible = True
            self.step = "failed"
            self.last_error = str(event.error)
            self.message = f"Recovery failed: {self.last_error}"
            self.recommend_hard_reset = True

        self._notify()

    def dismiss(self):
        self._cancel_auto_dismiss()
        if self.visible:
            self.visible = False
            self._notify()

    def snapshot(self) -> Dict[str, Any]:
        return {
            'is_recovering': self.is_recovering,
            'visible': self.visible,
            'strategy': self.strategy,
            'step': self.step,
            'progress': self.progress,
            'message': self.message,
            'last_result': self.last_result.to_dict() if self.last_result else None,
            'last_error': self.last_error,
            'recommend_hard_reset': self.recommend_hard_reset
        }

    def _schedule_auto_dismiss(self):
        if self.auto_dismiss <= 0:
            self.visible = False
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Nothing to schedule on; the host dismisses manually
            return
        self._dismiss_handle = loop.call_later(self.auto_dismiss, self.dismiss)

    def _cancel_auto_dismiss(self):
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                self.logger.error(f"Status listener failed: {str(e)}")
