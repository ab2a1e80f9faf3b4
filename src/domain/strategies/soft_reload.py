"""
Soft-reload strategy and its startup companions.

Before reloading, the current document is parked in a reload-surviving
store together with a ``pending_restoration`` flag. On the next boot the
shell calls ``check_pending_restoration`` to read it and then
``consume_restoration``, which rehydrates the document before clearing
the flag.
"""

import asyncio
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from ..entities.error_record import ErrorRecord, ErrorCategory
from ..entities.recovery import RecoveryContext, RecoveryResult, NextAction, PreservedDataManifest
from .base import RecoveryStrategy, HIGH_SEVERITIES
from .auto_save import DESIGN_KEY_PREFIX, timestamp_token

from ...infrastructure.persistence import KeyValueStore, DesignPersistence
from ...infrastructure.process import ProcessControl, schedule_fallback_reload


PENDING_RESTORATION_FLAG = "pending_restoration"
PENDING_RESTORATION_DATA = "pending_restoration_data"

MODULE_LOAD_PATTERN = re.compile(
    r"ChunkLoadError|Loading chunk|Failed to fetch dynamically imported module"
    r"|ModuleNotFoundError|ImportError|No module named",
    re.IGNORECASE
)


@dataclass(frozen=True)
class PendingRestoration:
    """Outcome of the startup restoration check."""
    has_data: bool
    data: Optional[Dict[str, Any]] = None


async def check_pending_restoration(store: KeyValueStore) -> PendingRestoration:
    """
    Look for a document parked by a soft reload.

    Read only: the flag stays set until ``consume_restoration`` has written
    the document back, so a boot that dies in between finds it again.
    """
    flag = await store.get(PENDING_RESTORATION_FLAG)
    if not flag:
        return PendingRestoration(has_data=False)

    data = await store.get(PENDING_RESTORATION_DATA)
    if not isinstance(data, dict):
        # Orphaned flag
        await store.remove(PENDING_RESTORATION_FLAG)
        return PendingRestoration(has_data=False)

    return PendingRestoration(has_data=True, data=data)


async def consume_restoration(
    store: KeyValueStore,
    data: Dict[str, Any],
    design_persistence: Optional[DesignPersistence] = None,
    fallback_store: Optional[KeyValueStore] = None
) -> Optional[str]:
    """
    Rehydrate a parked document, then clear the flag and the payload.

    The design goes back through the document persistence when the payload
    names a project, otherwise to ``fallback_store`` under a
    ``recovery_design_<session>_<ts>`` key. Returns the project id or key
    it was written to, or None when nothing could be written.

    A write failure propagates and leaves the flag in place for the next boot.
    """
    location = None
    design = data.get("design")
    project_id = data.get("project_id")

    if design and project_id and design_persistence is not None:
        await design_persistence.save_design(project_id, design)
        location = project_id
    elif design and fallback_store is not None:
        owner = project_id or data.get("session_id") or "restored"
        location = f"{DESIGN_KEY_PREFIX}{owner}_{timestamp_token()}"
        await fallback_store.set(location, design)

    # Cleared only after the write succeeds
    await store.pop(PENDING_RESTORATION_FLAG)
    await store.remove(PENDING_RESTORATION_DATA)
    return location


class SoftReloadStrategy(RecoveryStrategy):
    """Park the current document, then reload (or relaunch) the application."""

    name = "soft-reload"
    priority = 4

    RELEVANT_CATEGORIES = frozenset({ErrorCategory.RENDERING, ErrorCategory.RUNTIME})

    def __init__(
        self,
        store: KeyValueStore,
        process_control: ProcessControl,
        fallback_delay: Optional[float] = 2.0
    ):
        super().__init__()
        self.store = store
        self.process_control = process_control
        self.fallback_delay = fallback_delay
        self._fallback_tasks: Set[asyncio.Task] = set()

    def can_handle(self, error: ErrorRecord) -> bool:
        if error.category in self.RELEVANT_CATEGORIES and error.severity in HIGH_SEVERITIES:
            return True
        return bool(MODULE_LOAD_PATTERN.search(error.message))

    async def execute(self, error: ErrorRecord, context: RecoveryContext) -> RecoveryResult:
        manifest = PreservedDataManifest()
        await self._preserve(error, context, manifest)

        triggered = await self._trigger_reload()

        if not triggered:
            return RecoveryResult(
                success=False,
                strategy=self.name,
                message="Soft reload could not be triggered",
                next_action=NextAction.CONTINUE,
                preserved_data=manifest
            )

        self._schedule_fallback()

        message = "Application reload triggered"
        if manifest.saved:
            message += f"; preserved for restoration: {', '.join(manifest.saved)}"
        if manifest.failed:
            message += f"; not preserved: {', '.join(manifest.failed)}"

        return RecoveryResult(
            success=True,
            strategy=self.name,
            message=message,
            next_action=NextAction.RELOAD,
            preserved_data=manifest
        )

    async def _preserve(self, error: ErrorRecord, context: RecoveryContext, manifest: PreservedDataManifest):
        payload = {
            "timestamp": time.time(),
            "error_id": error.id,
            "session_id": context.session_id,
            "project_id": context.project_id,
            "design": context.current_design,
            "audio": context.current_audio,
            "preferences": context.user_preferences,
        }

        try:
            await self.store.set(PENDING_RESTORATION_DATA, payload)
            # Flag last: a flag must never point at a missing payload
            await self.store.set(PENDING_RESTORATION_FLAG, True)
            manifest.saved.append("Pending restoration state")
        except Exception as e:
            manifest.failed.append("Pending restoration state")
            self.logger.error(f"Failed to store state for restoration after reload: {str(e)}")

    async def _trigger_reload(self) -> bool:
        if self.process_control.supports_relaunch:
            try:
                await self.process_control.relaunch()
                return True
            except Exception as e:
                self.logger.warning(f"Relaunch failed, falling back to reload: {str(e)}")

        try:
            await self.process_control.reload()
            return True
        except Exception as e:
            self.logger.error(f"Reload failed: {str(e)}")
            return False

    def _schedule_fallback(self):
        if not self.fallback_delay or self.fallback_delay <= 0:
            return

        task = asyncio.ensure_future(
            schedule_fallback_reload(self.process_control, self.fallback_delay, self.logger)
        )
        self._fallback_tasks.add(task)
        task.add_done_callback(self._fallback_tasks.discard)

    def cancel_pending_fallbacks(self) -> int:
        """Cancel fallback reload timers that have not fired yet."""
        pending = [task for task in self._fallback_tasks if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)
