"""
Application layer for the recovery engine.
Contains configuration and use cases.
"""

from .config import (
    ConfigManager,
    RecoverySettings,
    get_config_manager,
    get_settings,
    reload_config
)

from .use_cases import (
    RecoveryEngine,
    build_recovery_engine,
    StartupRestoration,
    RestorationReport,
    RecoveryStatusTracker
)

__all__ = [
    'ConfigManager',
    'RecoverySettings',
    'get_config_manager',
    'get_settings',
    'reload_config',
    'RecoveryEngine',
    'build_recovery_engine',
    'StartupRestoration',
    'RestorationReport',
    'RecoveryStatusTracker'
]
