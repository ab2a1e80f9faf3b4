"""
Recovery orchestration: gating, strategy escalation and attempt history.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Sequence

from ..entities.error_record import ErrorRecord, ErrorSeverity, ErrorCategory
from ..entities.recovery import RecoveryContext, RecoveryResult, RecoveryAttempt, NextAction
from ..entities.events import (
    RecoveryEvent, RecoveryStarted, RecoveryProgress, RecoveryCompleted, RecoveryFailed
)
from ..strategies.base import RecoveryStrategy
from .event_channel import EventChannel
from .strategy_registry import StrategyRegistry
from .context_resolver import ContextResolver, ContextProvider

from ...infrastructure.error_handling.exceptions import NoApplicableStrategyError
from ...infrastructure.monitoring.logger import get_recovery_logger
from ...infrastructure.monitoring.metrics import RecoveryMetrics


DEFAULT_CRITICAL_SEVERITIES = (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL)
DEFAULT_CRITICAL_CATEGORIES = (ErrorCategory.RUNTIME, ErrorCategory.RENDERING, ErrorCategory.GLOBAL)

NONE_STRATEGY = "none"
SYSTEM_STRATEGY = "system"


def system_failure_result(message: str) -> RecoveryResult:
    """Terminal result used when the engine itself cannot recover."""
    return RecoveryResult(
        success=False,
        strategy=SYSTEM_STRATEGY,
        message=message,
        requires_user_action=True,
        next_action=NextAction.RESET
    )


class RecoveryOrchestrator:
    """
    Drives an error through the registered recovery strategies.

    ``handle_error`` applies three gates in order (criticality, a
    single-flight guard and a cooldown window), resolves a fresh context,
    then runs applicable strategies one at a time until one succeeds or
    directs a reload/reset. Every execution is recorded in a bounded
    history and lifecycle events are published to subscribers.

    ``handle_error`` never raises.
    """

    def __init__(
        self,
        registry: Optional[StrategyRegistry] = None,
        context_provider: Optional[ContextProvider] = None,
        cooldown_seconds: float = 10.0,
        max_attempts: int = 5,
        history_limit: int = 50,
        preferred_order: Sequence[str] = (),
        critical_severities: Iterable = DEFAULT_CRITICAL_SEVERITIES,
        critical_categories: Iterable = DEFAULT_CRITICAL_CATEGORIES,
        events: Optional[EventChannel] = None,
        metrics: Optional[RecoveryMetrics] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.registry = registry if registry is not None else StrategyRegistry()
        self.context_resolver = ContextResolver(context_provider)
        self.cooldown_seconds = cooldown_seconds
        self.max_attempts = max(1, int(max_attempts))
        self.preferred_order = list(preferred_order)
        self.critical_severities = frozenset(ErrorSeverity.coerce(s) for s in critical_severities)
        self.critical_categories = frozenset(ErrorCategory.coerce(c) for c in critical_categories)
        self.events: EventChannel = events or EventChannel("recovery-events")
        self._metrics = metrics or RecoveryMetrics()
        self._clock = clock

        self._history: Deque[RecoveryAttempt] = deque(maxlen=max(1, int(history_limit)))
        self._in_progress = False
        self._last_attempt_time: Optional[float] = None

        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self.recovery_logger = get_recovery_logger()

    # Registration

    def register_strategy(self, strategy: RecoveryStrategy):
        self.registry.register(strategy)

    def unregister_strategy(self, name: str) -> bool:
        return self.registry.unregister(name)

    def get_strategies(self) -> List[RecoveryStrategy]:
        return self.registry.all()

    def set_context_provider(self, provider: Optional[ContextProvider]):
        self.context_resolver.set_provider(provider)

    # Observation

    def subscribe(self, listener: Callable[[RecoveryEvent], None]) -> Callable[[], None]:
        return self.events.subscribe(listener)

    def get_history(self) -> List[RecoveryAttempt]:
        """Recorded attempts, oldest first."""
        return list(self._history)

    def is_recovery_in_progress(self) -> bool:
        return self._in_progress

    @property
    def metrics(self) -> RecoveryMetrics:
        return self._metrics

    def is_critical(self, error: ErrorRecord) -> bool:
        return error.severity in self.critical_severities or error.category in self.critical_categories

    # Recovery

    async def handle_error(self, error: ErrorRecord) -> RecoveryResult:
        self._metrics.errors_received.increment()

        # Everything up to the guard runs before the first suspension point
        try:
            rejection = self._admit(error)
        except Exception as e:
            self.logger.error(f"Failed to evaluate recovery gates for {getattr(error, 'id', '?')}: {str(e)}")
            return system_failure_result(f"Recovery failed: {str(e)}")

        if rejection is not None:
            return rejection

        started = self._clock()
        self._metrics.in_progress.set_value(1)
        try:
            return await self._run(error, started)
        except Exception as e:
            duration = self._clock() - started
            self.logger.error(f"Recovery for {error.id} failed: {str(e)}", extra={"error_id": error.id})
            self._metrics.record_run(False, duration)
            self._publish(RecoveryFailed(error=e, duration=duration))
            return system_failure_result(str(e) or e.__class__.__name__)
        finally:
            self._in_progress = False
            self._metrics.in_progress.set_value(0)

    def _admit(self, error: ErrorRecord) -> Optional[RecoveryResult]:
        if not self.is_critical(error):
            self._metrics.errors_skipped.increment()
            self.recovery_logger.log_recovery_skipped(error.id, "not critical", severity=error.severity.value,
                                                      error_category=error.category.value)
            return RecoveryResult(
                success=False,
                strategy=NONE_STRATEGY,
                message="Error does not require recovery",
                next_action=NextAction.CONTINUE
            )

        if self._in_progress:
            self._metrics.errors_rejected.increment()
            self.recovery_logger.log_recovery_skipped(error.id, "in progress")
            return RecoveryResult(
                success=False,
                strategy=NONE_STRATEGY,
                message="Recovery already in progress"
            )

        now = self._clock()
        if self._last_attempt_time is not None:
            elapsed = now - self._last_attempt_time
            if elapsed < self.cooldown_seconds:
                remaining = self.cooldown_seconds - elapsed
                self._metrics.errors_throttled.increment()
                self.recovery_logger.log_recovery_skipped(error.id, "cooldown", remaining=round(remaining, 3))
                return RecoveryResult(
                    success=False,
                    strategy=NONE_STRATEGY,
                    message=f"Recovery throttled: cooldown active ({remaining:.1f}s remaining)",
                    next_action=NextAction.CONTINUE
                )

        self._in_progress = True
        self._last_attempt_time = now
        return None

    async def _run(self, error: ErrorRecord, started: float) -> RecoveryResult:
        context = await self.context_resolver.resolve()

        strategies = self.registry.ordered_for(error, self.preferred_order)
        if not strategies:
            raise NoApplicableStrategyError(error_id=error.id, registered=self.registry.names())

        strategies = strategies[:self.max_attempts]
        total = len(strategies)
        names = [strategy.name for strategy in strategies]

        self.recovery_logger.log_recovery_started(error.id, names, session_id=context.session_id)
        self._publish(RecoveryStarted(strategy=names[0], error=error))

        final: Optional[RecoveryResult] = None
        for index, strategy in enumerate(strategies):
            self._publish(RecoveryProgress(
                strategy=strategy.name,
                step="executing",
                percent=int(index * 100 / total),
                message=f"Attempting {strategy.name} recovery",
                index=index,
                total=total
            ))

            result = await self._execute_strategy(strategy, error, context)

            self._publish(RecoveryProgress(
                strategy=strategy.name,
                step="succeeded" if result.success else "failed",
                percent=int((index + 1) * 100 / total),
                message=result.message,
                index=index,
                total=total
            ))

            if result.stops_escalation:
                final = result
                break

        if final is None:
            final = system_failure_result("All recovery strategies failed")

        duration = self._clock() - started
        self._metrics.record_run(final.success, duration)
        self.recovery_logger.log_recovery_completed(
            final.strategy, final.success, duration,
            error_id=error.id,
            next_action=final.effective_next_action.value
        )
        self._publish(RecoveryCompleted(result=final, duration=duration))
        return final

    async def _execute_strategy(
        self,
        strategy: RecoveryStrategy,
        error: ErrorRecord,
        context: RecoveryContext
    ) -> RecoveryResult:
        started = self._clock()
        try:
            result = await strategy.execute(error, context)
            if not isinstance(result, RecoveryResult):
                raise TypeError(f"{strategy.name} returned {type(result).__name__} instead of RecoveryResult")
        except Exception as e:
            self.logger.error(
                f"Strategy {strategy.name} raised during recovery of {error.id}: {str(e)}",
                extra={"error_id": error.id, "strategy": strategy.name}
            )
            result = RecoveryResult(
                success=False,
                strategy=strategy.name,
                message=f"Strategy error: {str(e)}",
                next_action=NextAction.CONTINUE
            )
        duration = self._clock() - started

        self._history.append(RecoveryAttempt(
            timestamp=time.time(),
            error_id=error.id,
            strategy=strategy.name,
            success=result.success,
            duration=duration,
            message=result.message
        ))
        self._metrics.record_strategy(strategy.name, result.success)
        self.recovery_logger.log_strategy_result(
            strategy.name, result.success, duration,
            error_id=error.id,
            next_action=result.effective_next_action.value
        )
        return result

    def _publish(self, event: RecoveryEvent):
        self.events.publish(event)
