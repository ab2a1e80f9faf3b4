"""
Structured logging system for the recovery engine.
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
from enum import Enum

import structlog
from structlog.stdlib import LoggerFactory
import colorama
from colorama import Fore, Back, Style


class LogCategory(str, Enum):
    """Log category enumeration."""
    RECOVERY = "recovery"
    STRATEGY = "strategy"
    PERSISTENCE = "persistence"
    PROCESS = "process"
    SYSTEM = "system"


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = "logs",
    enable_console: bool = True,
    enable_file: bool = True,
    enable_json: bool = False,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    console_stream=None
) -> None:
    """
    Setup structured logging configuration.

    Args:
        log_level: Logging level
        log_dir: Directory for log files
        enable_console: Enable console logging
        enable_file: Enable file logging (ignored when log_dir is None)
        enable_json: Enable JSON formatting
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup files to keep
        console_stream: Stream for console output (stdout by default)
    """
    colorama.init()

    level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if enable_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=enable_console))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if enable_console:
        console_handler = logging.StreamHandler(console_stream or sys.stdout)
        console_formatter = ColoredFormatter() if not enable_json else JsonFormatter()
        console_handler.setFormatter(console_formatter)
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

    if enable_file and log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path / "recovery_engine.log",
            maxBytes=max_file_size,
            backupCount=backup_count
        )
        file_formatter = JsonFormatter() if enable_json else DetailedFormatter()
        file_handler.setFormatter(file_formatter)
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

        # Separate error log file
        error_handler = logging.handlers.RotatingFileHandler(
            log_path / "errors.log",
            maxBytes=max_file_size,
            backupCount=backup_count
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        root_logger.addHandler(error_handler)

    root_logger.setLevel(logging.DEBUG if enable_file and log_dir else level)


# Attributes a caller can attach with ``extra=`` to tie a stdlib record to a recovery
RECOVERY_FIELDS = ('error_id', 'strategy', 'session_id', 'next_action')


def recovery_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in RECOVERY_FIELDS if hasattr(record, name)}


class ColoredFormatter(logging.Formatter):
    """Console formatter: level colours, recovery fields dimmed after the message."""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, '')
        reset = Style.RESET_ALL

        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        message = super().format(record)

        fields = recovery_fields(record)
        suffix = ""
        if fields:
            suffix = " " + Style.DIM + " ".join(f"{k}={v}" for k, v in fields.items()) + reset

        return (
            f"{Fore.WHITE}[{timestamp}]{reset} {log_color}{record.levelname:<8}{reset} "
            f"{Fore.BLUE}{record.name.rsplit('.', 1)[-1]:<24}{reset} {message}{suffix}"
        )


class DetailedFormatter(logging.Formatter):
    """File formatter with call site and recovery fields."""

    def format(self, record):
        timestamp = datetime.fromtimestamp(record.created).isoformat()
        message = super().format(record)

        context_info = [f"func={record.funcName}:{record.lineno}"]
        context_info.extend(f"{k}={v}" for k, v in recovery_fields(record).items())

        return f"[{timestamp}] {record.levelname:<8} {record.name:<40} {message} | {' | '.join(context_info)}"


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno,
        }
        log_entry.update(recovery_fields(record))

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class ContextLogger:
    """Logger with context management."""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)
        self._context = {}

    def add_context(self, **kwargs):
        """Add context to all subsequent log messages."""
        self._context.update(kwargs)
        return self

    def clear_context(self):
        self._context.clear()
        return self

    def _log_with_context(self, level: str, message: str, **kwargs):
        log_data = {**self._context, **kwargs}
        getattr(self.logger, level)(message, **log_data)

    def debug(self, message: str, **kwargs):
        self._log_with_context('debug', message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log_with_context('info', message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log_with_context('warning', message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_with_context('error', message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._log_with_context('critical', message, **kwargs)


class RecoveryLogger(ContextLogger):
    """Logger for recovery lifecycle events."""

    def __init__(self):
        super().__init__("recovery")
        self.add_context(category=LogCategory.RECOVERY.value)

    def log_recovery_started(self, error_id: str, strategies: list, **kwargs):
        self.info(
            "Recovery started",
            error_id=error_id,
            strategies=strategies,
            **kwargs
        )

    def log_strategy_result(self, strategy: str, success: bool, duration: float, **kwargs):
        """Log the outcome of one strategy execution."""
        level = 'info' if success else 'warning'

        getattr(self, level)(
            "Strategy finished",
            strategy=strategy,
            success=success,
            duration_ms=round(duration * 1000, 2),
            **kwargs
        )

    def log_recovery_completed(self, strategy: str, success: bool, duration: float, **kwargs):
        level = 'info' if success else 'error'

        getattr(self, level)(
            "Recovery completed",
            strategy=strategy,
            success=success,
            duration_ms=round(duration * 1000, 2),
            **kwargs
        )

    def log_recovery_skipped(self, error_id: str, reason: str, **kwargs):
        self.debug(
            "Recovery skipped",
            error_id=error_id,
            reason=reason,
            **kwargs
        )


def get_recovery_logger() -> RecoveryLogger:
    """Get recovery lifecycle logger."""
    return RecoveryLogger()
