"""
Error handling infrastructure package.
"""

from .exceptions import (
    RecoveryEngineError,
    ConfigurationError,
    PersistenceError,
    ContextResolutionError,
    NoApplicableStrategyError,
    ProcessControlError
)

from .error_store import ErrorStore

__all__ = [
    # Exceptions
    "RecoveryEngineError",
    "ConfigurationError",
    "PersistenceError",
    "ContextResolutionError",
    "NoApplicableStrategyError",
    "ProcessControlError",

    # Error reporting
    "ErrorStore"
]
