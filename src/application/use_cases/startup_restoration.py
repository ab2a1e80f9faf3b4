"""
Startup restoration use case.

Run once at boot, before the orchestrator is built, to bring back the
document parked by a soft reload.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...domain.strategies.soft_reload import check_pending_restoration, consume_restoration
from ...domain.strategies.backup_restore import (
    USER_PREFERENCES_KEY,
    CURRENT_AUDIO_KEY,
    is_valid_audio
)
from ...infrastructure.persistence import KeyValueStore, DesignPersistence


@dataclass
class RestorationReport:
    """What the startup check found and put back."""
    found: bool
    restored: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    project_id: Optional[str] = None
    session_id: Optional[str] = None
    error_id: Optional[str] = None
    design_location: Optional[str] = None
    # Parked design that could not be written anywhere, handed to the shell
    unsaved_design: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'found': self.found,
            'restored': list(self.restored),
            'failed': list(self.failed),
            'project_id': self.project_id,
            'session_id': self.session_id,
            'error_id': self.error_id,
            'design_location': self.design_location
        }


class StartupRestoration:
    """
    Use case for rehydrating state after a soft reload.

    The pending flag is cleared only once the design has been written back,
    so a boot that fails part way is retried by the next one. Designs
    without a project fall back to a ``recovery_design_`` key in ``kv_store``.
    """

    def __init__(
        self,
        reload_store: KeyValueStore,
        design_persistence: Optional[DesignPersistence] = None,
        kv_store: Optional[KeyValueStore] = None
    ):
        self.reload_store = reload_store
        self.design_persistence = design_persistence
        self.kv_store = kv_store
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    async def execute(self) -> RestorationReport:
        pending = await check_pending_restoration(self.reload_store)
        if not pending.has_data:
            self.logger.debug("No pending restoration")
            return RestorationReport(found=False)

        data = pending.data
        report = RestorationReport(
            found=True,
            project_id=data.get("project_id"),
            session_id=data.get("session_id"),
            error_id=data.get("error_id")
        )

        await self._restore_side_data(data, report)

        try:
            report.design_location = await consume_restoration(
                self.reload_store, data, self.design_persistence, self.kv_store
            )
        except Exception as e:
            report.failed.append("Design data")
            self.logger.error(f"Failed to restore design after reload, kept for next start: {str(e)}")
        else:
            if report.design_location:
                report.restored.append("Design data")
            elif data.get("design"):
                report.failed.append("Design data (no project or persistence)")
                report.unsaved_design = data.get("design")

        self.logger.info(
            f"Startup restoration for session {report.session_id}: "
            f"restored={report.restored} failed={report.failed}"
        )
        return report

    async def _restore_side_data(self, data: Dict[str, Any], report: RestorationReport):
        if self.kv_store is None:
            return

        preferences = data.get("preferences")
        if isinstance(preferences, dict) and preferences:
            try:
                await self.kv_store.set(USER_PREFERENCES_KEY, preferences)
                report.restored.append("User preferences")
            except Exception as e:
                report.failed.append("User preferences")
                self.logger.error(f"Failed to restore preferences after reload: {str(e)}")

        audio = data.get("audio")
        if is_valid_audio(audio):
            try:
                await self.kv_store.set(CURRENT_AUDIO_KEY, audio)
                report.restored.append("Audio data")
            except Exception as e:
                report.failed.append("Audio data")
                self.logger.error(f"Failed to restore audio after reload: {str(e)}")
