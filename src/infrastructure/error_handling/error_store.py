"""
Error store: turns raw faults into deduplicated error records.

This is the error-reporting collaborator that feeds the recovery
orchestrator. Repeated occurrences of the same logical fault (same
message, innermost frame and category) bump a counter on the original
record instead of producing a new one.
"""

import logging
import threading
import traceback
from collections import defaultdict
from typing import Dict, Any, Optional, List, Callable, Union

from ...domain.entities.error_record import (
    ErrorRecord,
    ErrorCategory,
    ErrorSeverity,
    compute_error_hash
)
from .exceptions import RecoveryEngineError


ErrorAddListener = Callable[[ErrorRecord], None]


class ErrorStore:
    """Track error records, their occurrence counts and resolution."""

    def __init__(self, max_errors: int = 100):
        self.max_errors = max_errors
        self._errors: List[ErrorRecord] = []
        self._total_errors = 0
        self._resolved_errors = 0
        self._listeners: List[ErrorAddListener] = []
        self._lock = threading.RLock()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def add_error(
        self,
        error: Union[BaseException, str],
        category: Union[ErrorCategory, str] = ErrorCategory.UNKNOWN,
        severity: Optional[Union[ErrorSeverity, str]] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> ErrorRecord:
        """
        Record an error occurrence.

        Args:
            error: Exception instance or plain message
            category: Error category
            severity: Explicit severity; derived from the message when omitted
            context: Additional context merged into the record

        Returns:
            The new record, or the existing record with an incremented count
        """
        category = ErrorCategory.coerce(category)
        message, stack = self._describe(error)

        if severity is None:
            if isinstance(error, RecoveryEngineError):
                severity = error.severity
            else:
                severity = self.determine_severity(message, category)

        error_hash = compute_error_hash(message, stack, category)

        with self._lock:
            for index, existing in enumerate(self._errors):
                if existing.hash == error_hash and not existing.resolved:
                    updated = existing.with_occurrence(context)
                    self._errors[index] = updated
                    return updated

            record = ErrorRecord(
                message=message,
                category=category,
                severity=ErrorSeverity.coerce(severity),
                context=context or {},
                stack=stack,
                hash=error_hash
            )
            self._errors.insert(0, record)
            self._total_errors += 1

            if len(self._errors) > self.max_errors:
                del self._errors[self.max_errors:]

            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(record)
            except Exception as e:
                self.logger.error(f"Error listener failed: {str(e)}")

        return record

    def resolve_error(self, error_id: str) -> bool:
        """Mark an error as resolved."""
        with self._lock:
            for index, existing in enumerate(self._errors):
                if existing.id == error_id and not existing.resolved:
                    self._errors[index] = existing.mark_resolved()
                    self._resolved_errors += 1
                    return True
        return False

    def get_error(self, error_id: str) -> Optional[ErrorRecord]:
        with self._lock:
            for existing in self._errors:
                if existing.id == error_id:
                    return existing
        return None

    def get_errors(self) -> List[ErrorRecord]:
        """Most recent first."""
        with self._lock:
            return list(self._errors)

    def get_unresolved_errors(self) -> List[ErrorRecord]:
        with self._lock:
            return [e for e in self._errors if not e.resolved]

    def clear(self):
        with self._lock:
            self._errors.clear()
            self._total_errors = 0
            self._resolved_errors = 0

    def on_error_added(self, listener: ErrorAddListener) -> Callable[[], None]:
        """Subscribe to new (non-duplicate) records. Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def get_stats(self) -> Dict[str, Any]:
        """Summarise the stored records."""
        with self._lock:
            category_counts = defaultdict(int)
            severity_counts = defaultdict(int)

            for error in self._errors:
                category_counts[error.category.value] += 1
                severity_counts[error.severity.value] += 1

            return {
                "total": self._total_errors,
                "current": len(self._errors),
                "unresolved": len([e for e in self._errors if not e.resolved]),
                "resolved": self._resolved_errors,
                "categories": dict(category_counts),
                "severities": dict(severity_counts),
                "last_error_time": self._errors[0].timestamp if self._errors else None
            }

    @staticmethod
    def determine_severity(message: str, category: ErrorCategory) -> ErrorSeverity:
        """Derive a severity from the message text and category."""
        lower_message = message.lower()

        if (
            "maximum recursion depth" in lower_message
            or "has no attribute" in lower_message
            or "referenced before assignment" in lower_message
            or category == ErrorCategory.RENDERING
        ):
            return ErrorSeverity.CRITICAL

        if (
            "network" in lower_message
            or "connection" in lower_message
            or "timeout" in lower_message
            or category == ErrorCategory.PERFORMANCE
        ):
            return ErrorSeverity.HIGH

        if "warning" in lower_message or "deprecated" in lower_message:
            return ErrorSeverity.MEDIUM

        return ErrorSeverity.LOW

    @staticmethod
    def _describe(error: Union[BaseException, str]):
        if isinstance(error, BaseException):
            stack = None
            if error.__traceback__ is not None:
                stack = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )
            message = str(error) or type(error).__name__
            return message, stack
        return str(error), None
