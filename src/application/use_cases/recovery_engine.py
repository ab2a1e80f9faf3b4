"""
Composition root: wires stores, process control and strategies into a
single recovery orchestrator.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Union

from ..config.settings import RecoverySettings
from ...domain.entities.error_record import ErrorRecord, ErrorCategory, ErrorSeverity
from ...domain.entities.recovery import RecoveryResult
from ...domain.services import EventChannel, RecoveryOrchestrator, ContextProvider
from ...domain.strategies import (
    AutoSaveStrategy,
    ComponentResetStrategy,
    BackupRestoreStrategy,
    SoftReloadStrategy,
    HardResetStrategy,
    RemountSignal
)
from ...infrastructure.error_handling import ErrorStore
from ...infrastructure.persistence import (
    KeyValueStore,
    DesignPersistence,
    SqliteKeyValueStore,
    SqliteDesignPersistence
)
from ...infrastructure.process import ProcessControl


@dataclass
class RecoveryEngine:
    """Everything the host shell needs to drive recovery."""
    orchestrator: RecoveryOrchestrator
    error_store: ErrorStore
    kv_store: KeyValueStore
    reload_store: KeyValueStore
    design_persistence: DesignPersistence
    remount_signals: EventChannel
    process_control: ProcessControl
    settings: RecoverySettings
    _pending: Set[asyncio.Task] = field(default_factory=set, repr=False)
    _detach: Optional[Callable[[], None]] = field(default=None, repr=False)

    async def report(
        self,
        error: Union[BaseException, str],
        category: Union[ErrorCategory, str] = ErrorCategory.UNKNOWN,
        severity: Optional[Union[ErrorSeverity, str]] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> RecoveryResult:
        """Record a fault and run recovery for it right away."""
        record = self.error_store.add_error(error, category, severity, context)
        return await self.orchestrator.handle_error(record)

    def forward_errors(self) -> Callable[[], None]:
        """
        Route every new ErrorStore record into the orchestrator.

        Records added from synchronous code are scheduled on the running
        loop. Returns a function that stops forwarding.
        """
        if self._detach is not None:
            return self._detach

        logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

        def _on_error(record: ErrorRecord):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(f"No running event loop, recovery not scheduled for {record.id}")
                return
            task = loop.create_task(self.orchestrator.handle_error(record))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        unsubscribe = self.error_store.on_error_added(_on_error)

        def detach():
            unsubscribe()
            self._detach = None

        self._detach = detach
        return detach

    def on_remount(self, handler: Callable[[RemountSignal], None]) -> Callable[[], None]:
        """Subscribe the host UI to component remount requests."""
        return self.remount_signals.subscribe(handler)

    async def wait_idle(self):
        """Wait for forwarded recoveries to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_recovery_engine(
    settings: RecoverySettings,
    process_control: ProcessControl,
    context_provider: Optional[ContextProvider] = None,
    kv_store: Optional[KeyValueStore] = None,
    reload_store: Optional[KeyValueStore] = None,
    design_persistence: Optional[DesignPersistence] = None,
    error_store: Optional[ErrorStore] = None,
    clock: Optional[Callable[[], float]] = None
) -> RecoveryEngine:
    """
    Build the recovery engine with the five standard strategies.

    Stores that are not supplied are created as SQLite databases under
    ``settings.data_dir``.
    """
    logger = logging.getLogger(__name__)

    if kv_store is None or reload_store is None or design_persistence is None:
        Path(settings.data_dir).mkdir(parents=True, exist_ok=True)

    # Explicit None checks: an empty store is falsy
    if kv_store is None:
        kv_store = SqliteKeyValueStore(settings.kv_store_path, name="recovery-store")
    if reload_store is None:
        reload_store = SqliteKeyValueStore(settings.reload_store_path, name="reload-store")
    if design_persistence is None:
        design_persistence = SqliteDesignPersistence(settings.design_db_path, max_backups=settings.max_backups)
    if error_store is None:
        error_store = ErrorStore()

    remount_signals: EventChannel = EventChannel("remount-signals")

    orchestrator_kwargs = {}
    if clock is not None:
        orchestrator_kwargs["clock"] = clock

    orchestrator = RecoveryOrchestrator(
        context_provider=context_provider,
        cooldown_seconds=settings.cooldown_seconds,
        max_attempts=settings.max_attempts,
        history_limit=settings.history_limit,
        preferred_order=settings.preferred_order,
        critical_severities=settings.critical_severities,
        critical_categories=settings.critical_categories,
        **orchestrator_kwargs
    )

    strategies: List = [
        AutoSaveStrategy(kv_store, design_persistence),
        ComponentResetStrategy(remount_signals, settle_delay=settings.component_reset_delay),
        BackupRestoreStrategy(kv_store, design_persistence),
        SoftReloadStrategy(reload_store, process_control, fallback_delay=settings.soft_reload_fallback_delay),
        HardResetStrategy([kv_store, reload_store, design_persistence], process_control)
    ]
    for strategy in strategies:
        orchestrator.register_strategy(strategy)

    logger.info(f"Recovery engine ready with strategies: {', '.join(orchestrator.registry.names())}")

    return RecoveryEngine(
        orchestrator=orchestrator,
        error_store=error_store,
        kv_store=kv_store,
        reload_store=reload_store,
        design_persistence=design_persistence,
        remount_signals=remount_signals,
        process_control=process_control,
        settings=settings
    )
