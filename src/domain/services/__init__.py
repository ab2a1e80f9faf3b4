"""
Domain services for recovery orchestration.
"""

from .event_channel import EventChannel
from .strategy_registry import StrategyRegistry
from .context_resolver import ContextResolver, ContextProvider
from .recovery_orchestrator import (
    RecoveryOrchestrator,
    system_failure_result,
    DEFAULT_CRITICAL_SEVERITIES,
    DEFAULT_CRITICAL_CATEGORIES,
    NONE_STRATEGY,
    SYSTEM_STRATEGY
)

__all__ = [
    "EventChannel",
    "StrategyRegistry",
    "ContextResolver",
    "ContextProvider",
    "RecoveryOrchestrator",
    "system_failure_result",
    "DEFAULT_CRITICAL_SEVERITIES",
    "DEFAULT_CRITICAL_CATEGORIES",
    "NONE_STRATEGY",
    "SYSTEM_STRATEGY"
]
