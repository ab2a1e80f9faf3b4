"""
Configuration management for the recovery engine.
"""

from .settings import (
    ConfigManager,
    RecoverySettings,
    RECOVERY_CONFIG_SCHEMA,
    get_config_manager,
    get_settings,
    reload_config
)

__all__ = [
    'ConfigManager',
    'RecoverySettings',
    'RECOVERY_CONFIG_SCHEMA',
    'get_config_manager',
    'get_settings',
    'reload_config'
]
