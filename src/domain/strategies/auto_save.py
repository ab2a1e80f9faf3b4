"""
Auto-save strategy: preserve user work before anything else happens.
"""

import time
from typing import Any, Dict, Optional

from ..entities.error_record import ErrorRecord
from ..entities.recovery import RecoveryContext, RecoveryResult, PreservedDataManifest
from .base import RecoveryStrategy

from ...infrastructure.persistence import KeyValueStore, DesignPersistence


DESIGN_KEY_PREFIX = "recovery_design_"
AUDIO_KEY_PREFIX = "recovery_audio_"
PREFERENCES_KEY_PREFIX = "recovery_preferences_"
EMERGENCY_BACKUP_KEY = "recovery_emergency_backup"

DESIGN_LABEL = "Design data"
DESIGN_EMERGENCY_LABEL = "Design data (emergency backup)"
AUDIO_LABEL = "Audio data"
PREFERENCES_LABEL = "User preferences"
EMERGENCY_LABEL = "Emergency recovery info"


def timestamp_token(now: Optional[float] = None) -> str:
    """Zero-padded epoch milliseconds so lexical key order is chronological."""
    millis = int((now if now is not None else time.time()) * 1000)
    return f"{millis:015d}"


def audio_key(session_id: str) -> str:
    return f"{AUDIO_KEY_PREFIX}{session_id}"


class AutoSaveStrategy(RecoveryStrategy):
    """
    Damage control: runs first for every critical error.

    Design, audio, preferences and an emergency manifest are each persisted
    independently; one failing never prevents the others. A design that
    cannot be written through the document persistence is written to the
    ephemeral store under a ``recovery_design_`` key instead.
    """

    name = "auto-save"
    priority = 1

    def __init__(self, store: KeyValueStore, design_persistence: Optional[DesignPersistence] = None):
        super().__init__()
        self.store = store
        self.design_persistence = design_persistence

    def can_handle(self, error: ErrorRecord) -> bool:
        return True

    async def execute(self, error: ErrorRecord, context: RecoveryContext) -> RecoveryResult:
        self.logger.info(f"Starting auto-save recovery for {error.id}")

        manifest = PreservedDataManifest()

        if context.current_design:
            await self._save_design(context, manifest)

        if context.current_audio:
            await self._save_audio(context, manifest)

        if context.user_preferences:
            await self._save_preferences(context.user_preferences, manifest)

        await self._create_emergency_backup(error, context, manifest)

        success = manifest.any_saved
        message = self._build_result_message(manifest)

        self.logger.info(
            f"Auto-save recovery completed for {error.id}: saved={manifest.saved} failed={manifest.failed}"
        )

        return RecoveryResult(
            success=success,
            strategy=self.name,
            message=message,
            preserved_data=manifest
        )

    async def _save_design(self, context: RecoveryContext, manifest: PreservedDataManifest):
        if context.project_id and self.design_persistence is not None:
            try:
                await self.design_persistence.save_design(context.project_id, context.current_design)
                manifest.saved.append(DESIGN_LABEL)
                self.logger.info(f"Design for {context.project_id} saved during auto-save")
                return
            except Exception as e:
                manifest.failed.append(DESIGN_LABEL)
                self.logger.warning(f"Failed to save design during auto-save: {str(e)}")

        owner = context.project_id or context.session_id
        emergency_key = f"{DESIGN_KEY_PREFIX}{owner}_{timestamp_token()}"
        try:
            await self.store.set(emergency_key, context.current_design)
            manifest.saved.append(DESIGN_EMERGENCY_LABEL)
            manifest.details["design_key"] = emergency_key
            self.logger.info(f"Design saved to emergency key {emergency_key}")
        except Exception as e:
            if DESIGN_LABEL not in manifest.failed:
                manifest.failed.append(DESIGN_LABEL)
            self.logger.error(f"Emergency design backup failed: {str(e)}")

    async def _save_audio(self, context: RecoveryContext, manifest: PreservedDataManifest):
        try:
            await self.store.set(audio_key(context.session_id), context.current_audio)
            manifest.saved.append(AUDIO_LABEL)
        except Exception as e:
            manifest.failed.append(AUDIO_LABEL)
            self.logger.warning(f"Failed to save audio during auto-save: {str(e)}")

    async def _save_preferences(self, preferences: Dict[str, Any], manifest: PreservedDataManifest):
        try:
            await self.store.set(f"{PREFERENCES_KEY_PREFIX}{timestamp_token()}", preferences)
            manifest.saved.append(PREFERENCES_LABEL)
        except Exception as e:
            manifest.failed.append(PREFERENCES_LABEL)
            self.logger.warning(f"Failed to save user preferences during auto-save: {str(e)}")

    async def _create_emergency_backup(
        self,
        error: ErrorRecord,
        context: RecoveryContext,
        manifest: PreservedDataManifest
    ):
        emergency_backup = {
            "timestamp": time.time(),
            "error_id": error.id,
            "error_category": error.category.value,
            "session_id": context.session_id,
            "project_id": context.project_id,
            "has_design_data": bool(context.current_design),
            "has_audio_data": bool(context.current_audio),
            "has_preferences": bool(context.user_preferences),
            "saved": list(manifest.saved),
            "failed": list(manifest.failed),
        }

        try:
            await self.store.set(EMERGENCY_BACKUP_KEY, emergency_backup)
            manifest.saved.append(EMERGENCY_LABEL)
        except Exception as e:
            manifest.failed.append(EMERGENCY_LABEL)
            self.logger.warning(f"Failed to create emergency backup: {str(e)}")

    @staticmethod
    def _build_result_message(manifest: PreservedDataManifest) -> str:
        if not manifest.saved:
            return "Unable to save any data during recovery"

        message = f"Saved: {', '.join(manifest.saved)}"
        if manifest.failed:
            message += f". Failed to save: {', '.join(manifest.failed)}"
        return message
