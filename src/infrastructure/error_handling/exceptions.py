"""
Custom exception classes for the recovery engine.
"""

from datetime import datetime
from typing import Optional, Dict, Any

from ...domain.entities.error_record import ErrorCategory, ErrorSeverity


class RecoveryEngineError(Exception):
    """Base exception class for the recovery engine."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.RUNTIME,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.timestamp = datetime.utcnow()
        self.error_id = f"{self.category.value}_{self.timestamp.strftime('%Y%m%d_%H%M%S')}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_id": self.error_id,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat()
        }


class ConfigurationError(RecoveryEngineError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Any = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context.update({
            "config_key": config_key,
            "config_value": str(config_value) if config_value is not None else None
        })

        super().__init__(
            message=message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.UNKNOWN,
            context=context,
            **kwargs
        )


class PersistenceError(RecoveryEngineError):
    """Raised when a key/value store or document persistence call fails."""

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        key: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context.update({
            "backend": backend,
            "key": key
        })

        super().__init__(
            message=message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.PERSISTENCE,
            context=context,
            **kwargs
        )


class ContextResolutionError(RecoveryEngineError):
    """Raised when the context provider fails or returns something unusable."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.RUNTIME,
            **kwargs
        )


class NoApplicableStrategyError(RecoveryEngineError):
    """Raised internally when no registered strategy can handle an error."""

    def __init__(
        self,
        message: str = "No suitable recovery strategy found",
        error_id: Optional[str] = None,
        registered: Optional[list] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context.update({
            "error_id": error_id,
            "registered_strategies": registered or []
        })

        super().__init__(
            message=message,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.RUNTIME,
            context=context,
            **kwargs
        )


class ProcessControlError(RecoveryEngineError):
    """Raised when a reload or relaunch request cannot be issued."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context.update({"operation": operation})

        super().__init__(
            message=message,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.RUNTIME,
            context=context,
            **kwargs
        )
