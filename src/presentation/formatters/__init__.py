"""
Output formatters for the recovery engine CLI.
"""

from .console_formatter import ConsoleFormatter

__all__ = ['ConsoleFormatter']
