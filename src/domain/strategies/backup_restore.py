"""
Backup-restore strategy: roll corrupted state back to the newest valid backup.
"""

from datetime import datetime
from typing import Any, Optional

from ..entities.error_record import ErrorRecord, ErrorCategory
from ..entities.recovery import RecoveryContext, RecoveryResult, NextAction, PreservedDataManifest
from .base import RecoveryStrategy, HIGH_SEVERITIES
from .auto_save import PREFERENCES_KEY_PREFIX, EMERGENCY_BACKUP_KEY, audio_key

from ...infrastructure.persistence import KeyValueStore, DesignPersistence


USER_PREFERENCES_KEY = "user_preferences"
CURRENT_AUDIO_KEY = "current_audio"


def is_valid_design(design: Any) -> bool:
    """A restored design must be a non-empty mapping carrying graph content."""
    return (
        isinstance(design, dict)
        and bool(design)
        and any(design.get(key) for key in ("nodes", "edges", "elements"))
    )


def is_valid_audio(audio: Any) -> bool:
    return isinstance(audio, dict) and any(audio.get(key) for key in ("url", "blob", "data"))


class BackupRestoreStrategy(RecoveryStrategy):
    """
    Restore design, preferences and audio from their backups.

    Each artifact is restored independently and every failure is recorded by
    name in the manifest. When nothing at all could be restored the result
    escalates with ``next_action=reset``.
    """

    name = "backup-restore"
    priority = 3

    RELEVANT_CATEGORIES = frozenset({ErrorCategory.PERSISTENCE, ErrorCategory.DATA})

    def __init__(self, store: KeyValueStore, design_persistence: Optional[DesignPersistence] = None):
        super().__init__()
        self.store = store
        self.design_persistence = design_persistence

    def can_handle(self, error: ErrorRecord) -> bool:
        return error.category in self.RELEVANT_CATEGORIES or error.severity in HIGH_SEVERITIES

    async def execute(self, error: ErrorRecord, context: RecoveryContext) -> RecoveryResult:
        self.logger.info(f"Starting backup restore recovery for {error.id}")

        manifest = PreservedDataManifest()

        if context.project_id:
            await self._restore_design(context.project_id, manifest)

        await self._restore_preferences(manifest)
        await self._restore_audio(context.session_id, manifest)
        await self._read_emergency_backup(manifest)

        success = manifest.any_saved
        message = self._build_result_message(manifest, success)

        self.logger.info(
            f"Backup restore completed for {error.id}: restored={manifest.saved} failed={manifest.failed}"
        )

        return RecoveryResult(
            success=success,
            strategy=self.name,
            message=message,
            requires_user_action=not success,
            next_action=NextAction.CONTINUE if success else NextAction.RESET,
            preserved_data=manifest
        )

    async def _restore_design(self, project_id: str, manifest: PreservedDataManifest):
        if self.design_persistence is None:
            manifest.failed.append("Design data (no persistence configured)")
            return

        try:
            backups = await self.design_persistence.list_backups(project_id)
        except Exception as e:
            manifest.failed.append("Design data (backup system error)")
            self.logger.error(f"Listing backups for {project_id} failed: {str(e)}")
            return

        if not backups:
            manifest.failed.append("Design data (no backups found)")
            return

        # Newest first; fall back to older backups when one is unusable
        for backup in sorted(backups, key=lambda b: b.timestamp, reverse=True):
            try:
                design = await self.design_persistence.restore_from_backup(project_id, backup.timestamp)
                if not is_valid_design(design):
                    self.logger.warning(f"Backup {backup.timestamp} for {project_id} failed validation")
                    continue

                await self.design_persistence.save_design(project_id, design, backup=False)
                taken_at = datetime.fromtimestamp(backup.timestamp).isoformat(timespec="seconds")
                manifest.saved.append(f"Design data (from {taken_at})")
                manifest.details["design_backup_timestamp"] = backup.timestamp
                return
            except Exception as e:
                self.logger.warning(f"Failed to restore backup {backup.timestamp} for {project_id}: {str(e)}")

        manifest.failed.append("Design data (all backups corrupted)")

    async def _restore_preferences(self, manifest: PreservedDataManifest):
        try:
            keys = await self.store.keys(PREFERENCES_KEY_PREFIX)
            if not keys:
                manifest.failed.append("User preferences (no backups found)")
                return

            most_recent_key = sorted(keys)[-1]
            preferences = await self.store.get(most_recent_key)

            if not isinstance(preferences, dict):
                manifest.failed.append("User preferences (backup corrupted)")
                return

            await self.store.set(USER_PREFERENCES_KEY, preferences)
            manifest.saved.append("User preferences")
            manifest.details["preferences_key"] = most_recent_key
        except Exception as e:
            manifest.failed.append("User preferences (restore error)")
            self.logger.error(f"User preferences restoration failed: {str(e)}")

    async def _restore_audio(self, session_id: str, manifest: PreservedDataManifest):
        try:
            audio = await self.store.get(audio_key(session_id))

            if audio is None:
                manifest.failed.append("Audio data (no backup found)")
                return

            if not is_valid_audio(audio):
                manifest.failed.append("Audio data (invalid format)")
                return

            await self.store.set(CURRENT_AUDIO_KEY, audio)
            manifest.saved.append("Audio data")
        except Exception as e:
            manifest.failed.append("Audio data (restore error)")
            self.logger.error(f"Audio data restoration failed: {str(e)}")

    async def _read_emergency_backup(self, manifest: PreservedDataManifest):
        # Informational only: the manifest describes an earlier auto-save
        try:
            emergency_backup = await self.store.get(EMERGENCY_BACKUP_KEY)
        except Exception as e:
            self.logger.warning(f"Failed to read emergency backup: {str(e)}")
            return

        if emergency_backup:
            manifest.details["emergency_backup"] = emergency_backup

    @staticmethod
    def _build_result_message(manifest: PreservedDataManifest, success: bool) -> str:
        if not success:
            return "Unable to restore any data from backups. Consider hard reset."

        message = f"Restored from backup: {', '.join(manifest.saved)}"
        if manifest.failed:
            message += f". Failed to restore: {', '.join(manifest.failed)}"
        return message
