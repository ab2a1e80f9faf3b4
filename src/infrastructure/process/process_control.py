"""
Process control primitives used by the reload and reset strategies.
"""

import asyncio
import inspect
import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import Callable, Optional, List

from ..error_handling import ProcessControlError


class ProcessControl(ABC):
    """Reload / relaunch boundary."""

    @property
    def supports_relaunch(self) -> bool:
        return False

    @abstractmethod
    async def reload(self) -> None:
        """Restart the application in place."""

    async def relaunch(self) -> None:
        """Restart the whole application process, where the host supports it."""
        raise ProcessControlError("Relaunch is not supported", operation="relaunch")


class CallbackProcessControl(ProcessControl):
    """
    Delegates reload and relaunch to host-supplied callables.

    Callbacks may be plain functions or coroutine functions.
    """

    def __init__(
        self,
        reload_callback: Callable[[], object],
        relaunch_callback: Optional[Callable[[], object]] = None
    ):
        self._reload_callback = reload_callback
        self._relaunch_callback = relaunch_callback
        self.reload_count = 0
        self.relaunch_count = 0

    @property
    def supports_relaunch(self) -> bool:
        return self._relaunch_callback is not None

    async def reload(self) -> None:
        self.reload_count += 1
        await self._invoke(self._reload_callback)

    async def relaunch(self) -> None:
        if self._relaunch_callback is None:
            return await super().relaunch()
        self.relaunch_count += 1
        await self._invoke(self._relaunch_callback)

    @staticmethod
    async def _invoke(callback: Callable[[], object]):
        result = callback()
        if inspect.isawaitable(result):
            await result


class ExecProcessControl(ProcessControl):
    """
    Replaces the running interpreter with a fresh copy of itself.

    ``reload`` and ``relaunch`` both re-exec the current command line; a
    relaunch flushes logging handlers first. When ``os.execv`` fails the
    error is raised as ProcessControlError so the caller can fall back.
    """

    def __init__(self, argv: Optional[List[str]] = None, executable: Optional[str] = None):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self.executable = executable or sys.executable
        self.argv = list(argv) if argv is not None else list(sys.argv)

    @property
    def supports_relaunch(self) -> bool:
        return True

    async def reload(self) -> None:
        self._exec("reload")

    async def relaunch(self) -> None:
        logging.shutdown()
        self._exec("relaunch")

    def _exec(self, operation: str):
        self.logger.warning(f"Re-executing process for {operation}: {self.argv}")
        try:
            os.execv(self.executable, [self.executable] + self.argv)
        except OSError as e:
            raise ProcessControlError(f"{operation} failed: {str(e)}", operation=operation)


async def schedule_fallback_reload(
    process_control: ProcessControl,
    delay: float,
    logger: Optional[logging.Logger] = None
) -> None:
    """Reload after ``delay`` seconds if the process is still alive by then."""
    await asyncio.sleep(delay)
    log = logger or logging.getLogger(__name__)
    log.warning(f"Primary reload did not take effect after {delay}s, forcing reload")
    try:
        await process_control.reload()
    except Exception as e:
        log.error(f"Fallback reload failed: {str(e)}")
