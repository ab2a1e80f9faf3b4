"""
Tests for the built-in recovery strategies.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from src.domain.entities.error_record import ErrorCategory, ErrorSeverity
from src.domain.entities.recovery import RecoveryContext, NextAction
from src.domain.services.event_channel import EventChannel
from src.domain.strategies import (
    AutoSaveStrategy,
    ComponentResetStrategy,
    RemountSignal,
    BackupRestoreStrategy,
    SoftReloadStrategy,
    HardResetStrategy,
    is_valid_design,
    is_valid_audio,
    check_pending_restoration,
    consume_restoration,
    PENDING_RESTORATION_FLAG,
    PENDING_RESTORATION_DATA
)
from src.domain.strategies.auto_save import (
    DESIGN_KEY_PREFIX, PREFERENCES_KEY_PREFIX, EMERGENCY_BACKUP_KEY, audio_key, timestamp_token
)
from src.infrastructure.process import CallbackProcessControl


class TestAutoSaveStrategy:
    """Test data preservation."""

    async def test_saves_everything_through_primary_persistence(
        self, kv_store, design_persistence, sample_context, make_error
    ):
        strategy = AutoSaveStrategy(kv_store, design_persistence)

        result = await strategy.execute(make_error(), sample_context)

        assert result.success
        assert result.strategy == "auto-save"
        assert result.preserved_data.saved == [
            "Design data", "Audio data", "User preferences", "Emergency recovery info"
        ]
        assert await design_persistence.load_design("project-1") == sample_context.current_design
        assert await kv_store.get(audio_key(sample_context.session_id)) == sample_context.current_audio
        assert len(await kv_store.keys(PREFERENCES_KEY_PREFIX)) == 1

    async def test_emergency_manifest_describes_the_save(self, kv_store, sample_context, make_error):
        error = make_error()
        strategy = AutoSaveStrategy(kv_store)

        await strategy.execute(error, sample_context)

        manifest = await kv_store.get(EMERGENCY_BACKUP_KEY)
        assert manifest["error_id"] == error.id
        assert manifest["error_category"] == "rendering"
        assert manifest["has_design_data"] is True
        assert manifest["project_id"] == "project-1"

    async def test_design_without_project_goes_to_ephemeral_key(self, kv_store, sample_design, make_error):
        context = RecoveryContext(session_id="s-1", current_design=sample_design)
        strategy = AutoSaveStrategy(kv_store)

        result = await strategy.execute(make_error(), context)

        keys = await kv_store.keys(DESIGN_KEY_PREFIX)
        assert len(keys) == 1
        assert keys[0].startswith(f"{DESIGN_KEY_PREFIX}s-1_")
        assert await kv_store.get(keys[0]) == sample_design
        assert "Design data (emergency backup)" in result.preserved_data.saved
        assert result.preserved_data.details["design_key"] == keys[0]

    async def test_persistence_failure_falls_back_to_ephemeral_store(
        self, kv_store, sample_context, make_error
    ):
        persistence = Mock()

        async def _fail(*args, **kwargs):
            raise RuntimeError("database locked")

        persistence.save_design = Mock(side_effect=_fail)
        strategy = AutoSaveStrategy(kv_store, persistence)

        result = await strategy.execute(make_error(), sample_context)

        assert result.success
        assert "Design data" in result.preserved_data.failed
        assert "Design data (emergency backup)" in result.preserved_data.saved
        assert "Audio data" in result.preserved_data.saved

    async def test_failing_store_reports_nothing_saved(self, failing_store, sample_context, make_error):
        strategy = AutoSaveStrategy(failing_store)

        result = await strategy.execute(make_error(), sample_context)

        assert not result.success
        assert result.message == "Unable to save any data during recovery"
        assert result.preserved_data.failed == [
            "Design data", "Audio data", "User preferences", "Emergency recovery info"
        ]

    async def test_message_lists_saved_and_failed(self, kv_store, sample_context, make_error):
        persistence = Mock()

        async def _fail(*args, **kwargs):
            raise RuntimeError("read only")

        persistence.save_design = Mock(side_effect=_fail)
        strategy = AutoSaveStrategy(kv_store, persistence)

        result = await strategy.execute(make_error(), sample_context)

        assert result.message.startswith("Saved: Design data (emergency backup), Audio data")
        assert result.message.endswith("Failed to save: Design data")

    async def test_empty_context_still_writes_manifest(self, kv_store, make_error):
        strategy = AutoSaveStrategy(kv_store)

        result = await strategy.execute(make_error(), RecoveryContext.minimal())

        assert result.success
        assert result.preserved_data.saved == ["Emergency recovery info"]

    def test_applies_to_every_error(self, kv_store, make_error):
        strategy = AutoSaveStrategy(kv_store)

        assert strategy.can_handle(make_error(category=ErrorCategory.NETWORK, severity=ErrorSeverity.LOW))

    def test_timestamp_token_orders_lexically(self):
        assert timestamp_token(9.999) < timestamp_token(10.0)
        assert len(timestamp_token(1.0)) == 15


class TestComponentResetStrategy:
    """Test remount signalling."""

    def setup_method(self):
        self.signals = EventChannel("remount")
        self.received = []
        self.signals.subscribe(self.received.append)
        self.strategy = ComponentResetStrategy(self.signals, settle_delay=0)

    async def test_publishes_remount_signal(self, sample_context, make_error):
        error = make_error(context={"component": "Canvas"})

        result = await self.strategy.execute(error, sample_context)

        assert result.success
        assert result.next_action == NextAction.CONTINUE
        assert len(self.received) == 1
        signal = self.received[0]
        assert isinstance(signal, RemountSignal)
        assert signal.error_id == error.id
        assert signal.component == "Canvas"
        assert signal.session_id == sample_context.session_id

    async def test_dispatch_failure_is_reported(self, sample_context, make_error, mocker):
        mocker.patch.object(self.signals, "publish", side_effect=RuntimeError("channel closed"))
        strategy = ComponentResetStrategy(self.signals, settle_delay=0)

        result = await strategy.execute(make_error(), sample_context)

        assert not result.success
        assert result.next_action == NextAction.CONTINUE
        assert "channel closed" in result.message

    def test_applies_only_to_severe_rendering_errors(self, make_error):
        assert self.strategy.can_handle(make_error(severity=ErrorSeverity.HIGH))
        assert not self.strategy.can_handle(make_error(severity=ErrorSeverity.MEDIUM))
        assert not self.strategy.can_handle(make_error(category=ErrorCategory.RUNTIME))


class TestBackupRestoreStrategy:
    """Test restoration from backups."""

    async def test_restores_newest_valid_backup(self, kv_store, design_persistence, sample_design, make_error):
        await design_persistence.save_design("project-1", sample_design)
        strategy = BackupRestoreStrategy(kv_store, design_persistence)
        context = RecoveryContext(session_id="s-1", project_id="project-1")

        result = await strategy.execute(make_error(), context)

        assert result.success
        assert result.next_action == NextAction.CONTINUE
        assert result.preserved_data.saved[0].startswith("Design data (from ")
        assert await design_persistence.load_design("project-1") == sample_design

    async def test_skips_invalid_backups(self, kv_store, design_persistence, sample_design, make_error):
        await design_persistence.save_design("project-1", sample_design)
        await asyncio.sleep(0.01)
        await design_persistence.save_design("project-1", {"title": "no graph content"})
        strategy = BackupRestoreStrategy(kv_store, design_persistence)
        context = RecoveryContext(session_id="s-1", project_id="project-1")

        result = await strategy.execute(make_error(), context)

        assert result.success
        assert await design_persistence.load_design("project-1") == sample_design

    async def test_restores_preferences_and_audio(self, kv_store, sample_audio, make_error):
        await kv_store.set(f"{PREFERENCES_KEY_PREFIX}{timestamp_token(1.0)}", {"theme": "light"})
        await kv_store.set(f"{PREFERENCES_KEY_PREFIX}{timestamp_token(2.0)}", {"theme": "dark"})
        await kv_store.set(audio_key("s-1"), sample_audio)
        strategy = BackupRestoreStrategy(kv_store)

        result = await strategy.execute(make_error(), RecoveryContext(session_id="s-1"))

        assert result.success
        assert result.preserved_data.saved == ["User preferences", "Audio data"]
        assert await kv_store.get("user_preferences") == {"theme": "dark"}
        assert await kv_store.get("current_audio") == sample_audio

    async def test_invalid_audio_is_rejected(self, kv_store, make_error):
        await kv_store.set(audio_key("s-1"), {"duration": 3})
        strategy = BackupRestoreStrategy(kv_store)

        result = await strategy.execute(make_error(), RecoveryContext(session_id="s-1"))

        assert "Audio data (invalid format)" in result.preserved_data.failed

    async def test_nothing_restored_escalates_to_reset(self, kv_store, design_persistence, make_error):
        strategy = BackupRestoreStrategy(kv_store, design_persistence)
        context = RecoveryContext(session_id="s-1", project_id="project-1")

        result = await strategy.execute(make_error(), context)

        assert not result.success
        assert result.requires_user_action
        assert result.next_action == NextAction.RESET
        assert "Design data (no backups found)" in result.preserved_data.failed
        assert result.message == "Unable to restore any data from backups. Consider hard reset."

    async def test_emergency_manifest_is_informational(self, kv_store, make_error):
        await kv_store.set(EMERGENCY_BACKUP_KEY, {"error_id": "err_1"})
        strategy = BackupRestoreStrategy(kv_store)

        result = await strategy.execute(make_error(), RecoveryContext(session_id="s-1"))

        assert not result.success
        assert result.preserved_data.details["emergency_backup"] == {"error_id": "err_1"}

    def test_applicability(self, kv_store, make_error):
        strategy = BackupRestoreStrategy(kv_store)

        assert strategy.can_handle(make_error(category=ErrorCategory.DATA, severity=ErrorSeverity.LOW))
        assert strategy.can_handle(make_error(category=ErrorCategory.NETWORK, severity=ErrorSeverity.HIGH))
        assert not strategy.can_handle(make_error(category=ErrorCategory.NETWORK, severity=ErrorSeverity.MEDIUM))

    def test_validators(self, sample_design, sample_audio):
        assert is_valid_design(sample_design)
        assert not is_valid_design({})
        assert not is_valid_design({"nodes": []})
        assert is_valid_audio(sample_audio)
        assert not is_valid_audio("blob:recording-1")


class TestSoftReloadStrategy:
    """Test state parking and reload triggering."""

    async def test_parks_state_then_reloads(self, reload_store, process_control, reload_callback,
                                            sample_context, make_error):
        error = make_error()
        strategy = SoftReloadStrategy(reload_store, process_control, fallback_delay=0)

        result = await strategy.execute(error, sample_context)

        assert result.success
        assert result.next_action == NextAction.RELOAD
        reload_callback.assert_called_once()
        assert await reload_store.get(PENDING_RESTORATION_FLAG) is True
        payload = await reload_store.get(PENDING_RESTORATION_DATA)
        assert payload["error_id"] == error.id
        assert payload["project_id"] == "project-1"
        assert payload["design"] == sample_context.current_design

    async def test_prefers_relaunch_when_supported(self, reload_store, sample_context, make_error):
        reload_callback = Mock()
        relaunch_callback = Mock()
        control = CallbackProcessControl(reload_callback, relaunch_callback)
        strategy = SoftReloadStrategy(reload_store, control, fallback_delay=0)

        await strategy.execute(make_error(), sample_context)

        relaunch_callback.assert_called_once()
        reload_callback.assert_not_called()

    async def test_relaunch_failure_falls_back_to_reload(self, reload_store, sample_context, make_error):
        reload_callback = Mock()
        control = CallbackProcessControl(reload_callback, Mock(side_effect=OSError("no exec")))
        strategy = SoftReloadStrategy(reload_store, control, fallback_delay=0)

        result = await strategy.execute(make_error(), sample_context)

        assert result.success
        reload_callback.assert_called_once()

    async def test_reload_failure_continues_escalation(self, reload_store, sample_context, make_error):
        control = CallbackProcessControl(Mock(side_effect=RuntimeError("reload refused")))
        strategy = SoftReloadStrategy(reload_store, control, fallback_delay=0)

        result = await strategy.execute(make_error(), sample_context)

        assert not result.success
        assert result.next_action == NextAction.CONTINUE
        assert result.message == "Soft reload could not be triggered"

    async def test_reloads_even_when_parking_fails(self, failing_store, process_control, reload_callback,
                                                   sample_context, make_error):
        strategy = SoftReloadStrategy(failing_store, process_control, fallback_delay=0)

        result = await strategy.execute(make_error(), sample_context)

        assert result.success
        assert result.preserved_data.failed == ["Pending restoration state"]
        reload_callback.assert_called_once()

    async def test_fallback_reload_can_be_cancelled(self, reload_store, process_control, reload_callback,
                                                    sample_context, make_error):
        strategy = SoftReloadStrategy(reload_store, process_control, fallback_delay=30)

        await strategy.execute(make_error(), sample_context)

        assert strategy.cancel_pending_fallbacks() == 1
        await asyncio.sleep(0)
        assert reload_callback.call_count == 1

    async def test_fallback_reload_fires(self, reload_store, process_control, reload_callback,
                                         sample_context, make_error):
        strategy = SoftReloadStrategy(reload_store, process_control, fallback_delay=0.01)

        await strategy.execute(make_error(), sample_context)
        await asyncio.sleep(0.05)

        assert reload_callback.call_count == 2

    def test_applicability(self, reload_store, process_control, make_error):
        strategy = SoftReloadStrategy(reload_store, process_control)

        assert strategy.can_handle(make_error(category=ErrorCategory.RUNTIME, severity=ErrorSeverity.HIGH))
        assert strategy.can_handle(make_error(
            message="ChunkLoadError: Loading chunk 7 failed",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.MEDIUM
        ))
        assert not strategy.can_handle(make_error(category=ErrorCategory.NETWORK, severity=ErrorSeverity.HIGH))


class TestPendingRestoration:
    """Test the startup restoration helpers."""

    async def test_check_leaves_document_restorable(
        self, reload_store, process_control, design_persistence, sample_context, make_error
    ):
        strategy = SoftReloadStrategy(reload_store, process_control, fallback_delay=0)
        await strategy.execute(make_error(), sample_context)

        first = await check_pending_restoration(reload_store)
        second = await check_pending_restoration(reload_store)

        assert first.has_data
        assert second.has_data
        assert second.data["design"] == sample_context.current_design

        location = await consume_restoration(reload_store, second.data, design_persistence)

        assert location == "project-1"
        assert await design_persistence.load_design("project-1") == sample_context.current_design
        assert not (await check_pending_restoration(reload_store)).has_data
        assert await reload_store.keys() == []

    async def test_orphaned_flag_is_dropped(self, reload_store):
        await reload_store.set(PENDING_RESTORATION_FLAG, True)

        assert not (await check_pending_restoration(reload_store)).has_data
        assert await reload_store.get(PENDING_RESTORATION_FLAG) is None

    async def test_consume_writes_design_then_clears(
        self, reload_store, design_persistence, sample_design
    ):
        data = {"project_id": "p1", "design": sample_design}
        await reload_store.set(PENDING_RESTORATION_DATA, data)
        await reload_store.set(PENDING_RESTORATION_FLAG, True)

        location = await consume_restoration(reload_store, data, design_persistence)

        assert location == "p1"
        assert await design_persistence.load_design("p1") == sample_design
        assert await reload_store.get(PENDING_RESTORATION_DATA) is None
        assert await reload_store.get(PENDING_RESTORATION_FLAG) is None

    async def test_consume_without_project_uses_fallback_store(
        self, reload_store, kv_store, design_persistence, sample_design
    ):
        data = {"session_id": "s-1", "project_id": None, "design": sample_design}
        await reload_store.set(PENDING_RESTORATION_DATA, data)
        await reload_store.set(PENDING_RESTORATION_FLAG, True)

        location = await consume_restoration(reload_store, data, design_persistence, kv_store)

        assert location.startswith(f"{DESIGN_KEY_PREFIX}s-1_")
        assert await kv_store.get(location) == sample_design
        assert await reload_store.keys() == []

    async def test_consume_without_any_target(self, reload_store, sample_design):
        data = {"project_id": None, "design": sample_design}
        await reload_store.set(PENDING_RESTORATION_DATA, data)

        assert await consume_restoration(reload_store, data) is None
        assert await reload_store.get(PENDING_RESTORATION_DATA) is None

    async def test_failed_write_keeps_flag_for_next_boot(self, reload_store, sample_design):
        data = {"project_id": "p1", "design": sample_design}
        await reload_store.set(PENDING_RESTORATION_DATA, data)
        await reload_store.set(PENDING_RESTORATION_FLAG, True)
        persistence = Mock()
        persistence.save_design = AsyncMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            await consume_restoration(reload_store, data, persistence)

        pending = await check_pending_restoration(reload_store)
        assert pending.has_data
        assert pending.data == data


class TestHardResetStrategy:
    """Test the destructive last resort."""

    async def test_clears_every_backend_and_reloads(self, kv_store, reload_store, process_control,
                                                    reload_callback, make_error):
        await kv_store.set("a", 1)
        await reload_store.set("b", 2)
        strategy = HardResetStrategy([kv_store, reload_store], process_control)

        result = await strategy.execute(make_error(), RecoveryContext.minimal())

        assert result.success
        assert result.next_action == NextAction.RELOAD
        assert result.message == "Local state cleared, reloading application"
        assert result.preserved_data.saved == ["Cleared recovery-store", "Cleared reload-store"]
        assert await kv_store.keys() == []
        assert await reload_store.keys() == []
        reload_callback.assert_called_once()

    async def test_warns_before_clearing(self, process_control, make_error, caplog):
        levels_at_clear = []
        backend = Mock()
        backend.name = "recovery-store"
        backend.clear = AsyncMock(side_effect=lambda: levels_at_clear.append(
            [record.levelno for record in caplog.records]
        ))
        strategy = HardResetStrategy([backend], process_control)

        with caplog.at_level(logging.WARNING, logger="src.domain.strategies.hard_reset"):
            await strategy.execute(make_error(), RecoveryContext.minimal())

        backend.clear.assert_awaited_once()
        assert levels_at_clear[0] == [logging.WARNING]
        warning = caplog.records[0]
        assert warning.name.endswith("HardResetStrategy")
        assert "unsaved data will be lost" in warning.getMessage()

    async def test_backend_failures_are_independent(self, kv_store, failing_store, process_control, make_error):
        await kv_store.set("a", 1)
        strategy = HardResetStrategy([failing_store, kv_store], process_control)

        result = await strategy.execute(make_error(), RecoveryContext.minimal())

        assert result.success
        assert result.preserved_data.failed == ["Clear failing"]
        assert result.preserved_data.saved == ["Cleared recovery-store"]
        assert "Could not clear: Clear failing" in result.message

    async def test_reload_failure_requires_user_action(self, kv_store, make_error):
        control = CallbackProcessControl(Mock(side_effect=RuntimeError("no reload")))
        strategy = HardResetStrategy([kv_store], control)

        result = await strategy.execute(make_error(), RecoveryContext.minimal())

        assert not result.success
        assert result.requires_user_action
        assert result.next_action == NextAction.RELOAD

    def test_forced_reset_applies_at_any_severity(self, process_control, make_error):
        strategy = HardResetStrategy([], process_control)

        assert strategy.can_handle(make_error(severity=ErrorSeverity.LOW, context={"force_reset": True}))
        assert not strategy.can_handle(make_error(severity=ErrorSeverity.LOW))

    def test_ranks_last(self):
        assert HardResetStrategy.priority > SoftReloadStrategy.priority > BackupRestoreStrategy.priority
        assert BackupRestoreStrategy.priority > ComponentResetStrategy.priority > AutoSaveStrategy.priority

