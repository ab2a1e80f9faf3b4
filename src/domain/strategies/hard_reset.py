"""
Hard-reset strategy: last resort, wipes local state and reloads.
"""

from typing import Iterable, List, Optional

from ..entities.error_record import ErrorRecord
from ..entities.recovery import RecoveryContext, RecoveryResult, NextAction, PreservedDataManifest
from .base import RecoveryStrategy, HIGH_SEVERITIES

from ...infrastructure.process import ProcessControl


class HardResetStrategy(RecoveryStrategy):
    """
    Destructive and irreversible.

    Every storage backend is cleared independently (anything exposing an
    async ``clear()`` and a ``name``), then the application is reloaded.
    The result always carries ``next_action=reload``.
    """

    name = "hard-reset"
    priority = 100

    def __init__(self, backends: Iterable, process_control: ProcessControl):
        super().__init__()
        self.backends: List = list(backends)
        self.process_control = process_control

    def can_handle(self, error: ErrorRecord) -> bool:
        return error.severity in HIGH_SEVERITIES or error.is_forced_reset

    async def execute(self, error: ErrorRecord, context: RecoveryContext) -> RecoveryResult:
        self.logger.warning(
            f"Hard reset requested for {error.id} ({error.severity.value}/{error.category.value}): "
            f"clearing {len(self.backends)} storage backend(s), unsaved data will be lost"
        )

        manifest = PreservedDataManifest()
        for backend in self.backends:
            label = getattr(backend, "name", backend.__class__.__name__)
            try:
                await backend.clear()
                manifest.saved.append(f"Cleared {label}")
            except Exception as e:
                manifest.failed.append(f"Clear {label}")
                self.logger.error(f"Failed to clear {label} during hard reset: {str(e)}")

        reload_error: Optional[Exception] = None
        try:
            await self.process_control.reload()
        except Exception as e:
            reload_error = e
            self.logger.error(f"Reload after hard reset failed: {str(e)}")

        if reload_error is not None:
            return RecoveryResult(
                success=False,
                strategy=self.name,
                message=f"Local state cleared but reload failed: {str(reload_error)}. Restart the application manually.",
                requires_user_action=True,
                next_action=NextAction.RELOAD,
                preserved_data=manifest
            )

        message = "Local state cleared, reloading application"
        if manifest.failed:
            message += f". Could not clear: {', '.join(manifest.failed)}"

        return RecoveryResult(
            success=True,
            strategy=self.name,
            message=message,
            next_action=NextAction.RELOAD,
            preserved_data=manifest
        )
