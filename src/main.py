"""
Application shell for the recovery engine.
Restores parked state at boot, wires global fault sources into the
orchestrator and runs until asked to stop.
"""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Any

from src.application.config.settings import ConfigManager
from src.application.use_cases import (
    RecoveryEngine,
    StartupRestoration,
    RecoveryStatusTracker,
    build_recovery_engine
)
from src.domain.entities.error_record import ErrorCategory, ErrorSeverity
from src.domain.services import ContextProvider
from src.infrastructure.error_handling import RecoveryEngineError
from src.infrastructure.monitoring.logger import setup_logging
from src.infrastructure.persistence import SqliteKeyValueStore, SqliteDesignPersistence
from src.infrastructure.process import ProcessControl, ExecProcessControl


@dataclass
class ApplicationState:
    """Application state tracking."""
    status: str = "stopped"  # stopped, starting, running, stopping, error
    start_time: Optional[datetime] = None
    last_error: Optional[str] = None
    restoration: Dict[str, Any] = field(default_factory=dict)


class RecoveryApplication:
    """
    Host shell around the recovery engine.

    Boot sequence:
    1. Load configuration
    2. Run the startup restoration check (clears the pending flag once restored)
    3. Build the orchestrator and its strategies
    4. Forward uncaught loop exceptions into the error store
    """

    def __init__(
        self,
        config_path: str = "config/recovery.yaml",
        process_control: Optional[ProcessControl] = None,
        context_provider: Optional[ContextProvider] = None
    ):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

        self.config_manager = ConfigManager(config_path)
        self.settings = self.config_manager.get_settings()

        self.process_control = process_control or ExecProcessControl()
        self.context_provider = context_provider

        self.state = ApplicationState()
        self.engine: Optional[RecoveryEngine] = None
        self.status_tracker = RecoveryStatusTracker(auto_dismiss=self.settings.status_auto_dismiss)
        # Created in run() so it binds to the loop that awaits it
        self._shutdown: Optional[asyncio.Event] = None
        self._shutdown_requested = False

    async def start(self):
        """Restore parked state and bring the engine up."""
        self.state.status = "starting"

        try:
            Path(self.settings.data_dir).mkdir(parents=True, exist_ok=True)
            kv_store = SqliteKeyValueStore(self.settings.kv_store_path, name="recovery-store")
            reload_store = SqliteKeyValueStore(self.settings.reload_store_path, name="reload-store")
            design_persistence = SqliteDesignPersistence(
                self.settings.design_db_path, max_backups=self.settings.max_backups
            )

            report = await StartupRestoration(reload_store, design_persistence, kv_store).execute()
            self.state.restoration = report.to_dict()

            self.engine = build_recovery_engine(
                self.settings,
                self.process_control,
                context_provider=self.context_provider,
                kv_store=kv_store,
                reload_store=reload_store,
                design_persistence=design_persistence
            )
        except RecoveryEngineError as e:
            self.state.status = "error"
            self.state.last_error = str(e)
            self.logger.error(f"Failed to start recovery engine: {str(e)}")
            raise

        self.engine.forward_errors()
        self.status_tracker.attach(self.engine.orchestrator)
        self._install_exception_handler(asyncio.get_running_loop())

        self.state.status = "running"
        self.state.start_time = datetime.now()
        self.logger.info("Recovery engine started")

    def _install_exception_handler(self, loop: asyncio.AbstractEventLoop):
        """Route unhandled loop exceptions into the error store."""
        def exception_handler(loop, context):
            exception = context.get("exception")
            message = context.get("message", "Unhandled exception in event loop")
            self.logger.error(f"Unhandled loop error: {message}")
            if self.engine is not None:
                self.engine.error_store.add_error(
                    exception or message,
                    ErrorCategory.GLOBAL,
                    ErrorSeverity.CRITICAL,
                    {"source": "event_loop"}
                )

        loop.set_exception_handler(exception_handler)

    def _setup_signal_handlers(self, loop: asyncio.AbstractEventLoop):
        """Setup signal handlers for graceful shutdown."""
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform; KeyboardInterrupt still works
                pass

    def request_shutdown(self):
        self.logger.info("Shutdown requested")
        self._shutdown_requested = True
        if self._shutdown is not None:
            self._shutdown.set()

    async def run(self):
        """Start and run until a shutdown is requested."""
        self._shutdown = asyncio.Event()
        if self._shutdown_requested:
            self._shutdown.set()

        await self.start()
        self._setup_signal_handlers(asyncio.get_running_loop())
        await self._shutdown.wait()
        await self.stop()

    async def stop(self):
        self.state.status = "stopping"
        if self.engine is not None:
            await self.engine.wait_idle()
        self.state.status = "stopped"
        self.logger.info("Recovery engine stopped")

    def get_status(self) -> Dict[str, Any]:
        """Get current application status."""
        orchestrator = self.engine.orchestrator if self.engine else None
        return {
            'status': self.state.status,
            'start_time': self.state.start_time.isoformat() if self.state.start_time else None,
            'last_error': self.state.last_error,
            'restoration': self.state.restoration,
            'recovery_in_progress': orchestrator.is_recovery_in_progress() if orchestrator else False,
            'recovery': self.status_tracker.snapshot(),
            'uptime': (datetime.now() - self.state.start_time).total_seconds() if self.state.start_time else 0
        }


def main():
    """Main application entry point."""
    settings = ConfigManager().get_settings()
    setup_logging(
        log_level=settings.log_level,
        log_dir=settings.log_dir,
        enable_json=settings.log_json
    )

    try:
        asyncio.run(RecoveryApplication().run())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    except Exception as e:
        logging.error(f"Fatal error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
