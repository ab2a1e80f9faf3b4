"""
Application use cases for the recovery engine.
"""

from .recovery_engine import RecoveryEngine, build_recovery_engine
from .startup_restoration import StartupRestoration, RestorationReport
from .status_tracker import RecoveryStatusTracker

__all__ = [
    'RecoveryEngine',
    'build_recovery_engine',
    'StartupRestoration',
    'RestorationReport',
    'RecoveryStatusTracker'
]
