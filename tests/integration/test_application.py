"""
Integration tests for the application shell.
"""

import asyncio
from unittest.mock import Mock

import pytest
import yaml

from src.domain.strategies import PENDING_RESTORATION_DATA, PENDING_RESTORATION_FLAG
from src.infrastructure.persistence import SqliteKeyValueStore
from src.infrastructure.process import CallbackProcessControl
from src.main import RecoveryApplication


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "recovery.yaml"
    path.write_text(yaml.safe_dump({
        "cooldown_seconds": 0,
        "component_reset_delay": 0,
        "soft_reload_fallback_delay": 0,
        "data_dir": str(tmp_path / "data"),
        "status_auto_dismiss": 0
    }))
    return str(path)


@pytest.mark.integration
class TestRecoveryApplication:
    """Boot, fault routing and shutdown."""

    async def test_start_restores_parked_design(self, config_path, tmp_path, sample_design):
        reload_store = SqliteKeyValueStore(str(tmp_path / "data" / "pending_restoration.db"))
        await reload_store.set(PENDING_RESTORATION_DATA, {
            "session_id": "recovery_1",
            "project_id": "project-1",
            "design": sample_design
        })
        await reload_store.set(PENDING_RESTORATION_FLAG, True)

        app = RecoveryApplication(config_path, process_control=CallbackProcessControl(Mock()))
        await app.start()

        status = app.get_status()
        assert status["status"] == "running"
        assert status["restoration"]["found"]
        assert status["restoration"]["restored"] == ["Design data"]
        assert await app.engine.design_persistence.load_design("project-1") == sample_design

        await app.stop()
        assert app.get_status()["status"] == "stopped"

    async def test_loop_exceptions_trigger_recovery(self, config_path):
        app = RecoveryApplication(config_path, process_control=CallbackProcessControl(Mock()))
        await app.start()
        loop = asyncio.get_running_loop()

        try:
            loop.call_exception_handler({"message": "Task exception was never retrieved",
                                         "exception": RuntimeError("background job died")})
            await asyncio.sleep(0)
            await app.engine.wait_idle()
        finally:
            loop.set_exception_handler(None)

        record = app.engine.error_store.get_errors()[0]
        assert record.category.value == "global"
        assert record.severity.value == "critical"
        assert [a.strategy for a in app.engine.orchestrator.get_history()] == ["auto-save"]
        assert app.get_status()["recovery"]["step"] == "completed"

    async def test_run_stops_on_request(self, config_path):
        app = RecoveryApplication(config_path, process_control=CallbackProcessControl(Mock()))

        task = asyncio.ensure_future(app.run())
        await asyncio.sleep(0.05)
        app.request_shutdown()
        await asyncio.wait_for(task, timeout=1)

        assert app.state.status == "stopped"

    def test_built_outside_event_loop(self, config_path):
        app = RecoveryApplication(config_path, process_control=CallbackProcessControl(Mock()))

        async def run_then_stop():
            task = asyncio.ensure_future(app.run())
            await asyncio.sleep(0.05)
            app.request_shutdown()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(run_then_stop())

        assert app.state.status == "stopped"

    async def test_shutdown_requested_before_run(self, config_path):
        app = RecoveryApplication(config_path, process_control=CallbackProcessControl(Mock()))
        app.request_shutdown()

        await asyncio.wait_for(app.run(), timeout=1)

        assert app.state.status == "stopped"
