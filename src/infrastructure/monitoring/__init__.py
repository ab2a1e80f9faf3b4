"""
Monitoring infrastructure for the recovery engine.
Provides structured logging setup and recovery metrics.
"""

from .logger import (
    setup_logging,
    get_recovery_logger,
    ContextLogger,
    RecoveryLogger,
    LogCategory
)
from .metrics import (
    MetricsRegistry,
    RecoveryMetrics,
    Counter,
    Gauge,
    Timer
)

__all__ = [
    'setup_logging',
    'get_recovery_logger',
    'ContextLogger',
    'RecoveryLogger',
    'LogCategory',
    'MetricsRegistry',
    'RecoveryMetrics',
    'Counter',
    'Gauge',
    'Timer'
]
