"""
pytest configuration file for the recovery engine tests.
Provides shared fixtures and test configuration.
"""

import asyncio
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest

from src.domain.entities.error_record import ErrorRecord, ErrorCategory, ErrorSeverity
from src.domain.entities.recovery import RecoveryContext, RecoveryResult, NextAction
from src.domain.strategies.base import RecoveryStrategy
from src.infrastructure.persistence import InMemoryKeyValueStore, SqliteDesignPersistence
from src.infrastructure.process import CallbackProcessControl


class StubStrategy(RecoveryStrategy):
    """Configurable strategy that records every execution."""

    def __init__(
        self,
        name: str,
        priority: int = 10,
        result: Optional[RecoveryResult] = None,
        applies: bool = True,
        raises: Optional[BaseException] = None,
        delay: float = 0.0
    ):
        super().__init__()
        self.name = name
        self.priority = priority
        self.result = result
        self.applies = applies
        self.raises = raises
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    def can_handle(self, error: ErrorRecord) -> bool:
        return self.applies

    async def execute(self, error: ErrorRecord, context: RecoveryContext) -> RecoveryResult:
        self.calls.append({"error": error, "context": context})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.result is not None:
            return self.result
        return RecoveryResult(success=True, strategy=self.name, message=f"{self.name} ok")


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


# Data fixtures
@pytest.fixture
def sample_design():
    """Small valid design document."""
    return {
        "nodes": [{"id": "api", "type": "service"}, {"id": "db", "type": "database"}],
        "edges": [{"source": "api", "target": "db"}]
    }


@pytest.fixture
def sample_audio():
    return {"url": "blob:recording-1", "duration": 12.5}


@pytest.fixture
def sample_preferences():
    return {"theme": "dark", "grid": True}


@pytest.fixture
def sample_context(sample_design, sample_audio, sample_preferences):
    """Fully populated recovery context."""
    return RecoveryContext(
        session_id="recovery_1700000000000",
        project_id="project-1",
        current_design=sample_design,
        current_audio=sample_audio,
        user_preferences=sample_preferences
    )


@pytest.fixture
def make_error():
    """Factory for error records."""
    def _make_error(
        message: str = "Render loop crashed",
        category=ErrorCategory.RENDERING,
        severity=ErrorSeverity.CRITICAL,
        context: Optional[Dict[str, Any]] = None
    ) -> ErrorRecord:
        return ErrorRecord(message=message, category=category, severity=severity, context=context or {})

    return _make_error


@pytest.fixture
def make_strategy():
    """Factory for stub strategies."""
    return StubStrategy


@pytest.fixture
def fake_clock():
    return FakeClock()


# Infrastructure fixtures
@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore(name="recovery-store")


@pytest.fixture
def reload_store():
    return InMemoryKeyValueStore(name="reload-store")


@pytest.fixture
def design_persistence(tmp_path):
    return SqliteDesignPersistence(str(tmp_path / "designs.db"), max_backups=5)


@pytest.fixture
def reload_callback():
    return Mock(name="reload")


@pytest.fixture
def process_control(reload_callback):
    return CallbackProcessControl(reload_callback=reload_callback)


@pytest.fixture
def failing_store():
    """Store whose every call fails."""
    store = Mock(name="failing_store")
    store.name = "failing"

    async def _fail(*args, **kwargs):
        raise RuntimeError("storage unavailable")

    for method in ("get", "set", "remove", "pop", "keys", "clear"):
        setattr(store, method, Mock(side_effect=_fail))
    return store


# Test markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
