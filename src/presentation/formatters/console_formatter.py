"""
Console formatting utilities for the recovery engine CLI.
"""

import sys
import json
from typing import Any, Dict, List

from colorama import Fore, Style, init as colorama_init


class ConsoleFormatter:
    """
    Console output formatter with color support and structured output.

    Colors come from colorama and are disabled when stdout is not a
    terminal.
    """

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors and self._supports_color()
        if self.use_colors:
            colorama_init()

    def _supports_color(self) -> bool:
        """Check if terminal supports color output."""
        return hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()

    def _colorize(self, text: str, color: str) -> str:
        """Apply color to text if colors are enabled."""
        if not self.use_colors:
            return text
        return f"{color}{text}{Style.RESET_ALL}"

    def print_success(self, message: str):
        print(self._colorize(f"✓ {message}", Fore.GREEN))

    def print_error(self, message: str):
        print(self._colorize(f"✗ {message}", Fore.RED), file=sys.stderr)

    def print_warning(self, message: str):
        print(self._colorize(f"⚠ {message}", Fore.YELLOW))

    def print_info(self, message: str):
        print(self._colorize(f"ℹ {message}", Fore.BLUE))

    def print_header(self, title: str):
        """Print formatted header."""
        print(f"\n{self._colorize(title, Style.BRIGHT)}")
        print("=" * len(title))

    def print_key_value(self, key: str, value: Any, indent: int = 0):
        """Print key-value pair with formatting."""
        indentation = "  " * indent
        print(f"{indentation}{self._colorize(f'{key}:', Style.BRIGHT)} {value}")

    def print_list(self, items: List[str], bullet: str = "•", indent: int = 0):
        indentation = "  " * indent
        for item in items:
            print(f"{indentation}{self._colorize(bullet, Fore.CYAN)} {item}")

    def print_json(self, data: Dict[str, Any], indent: int = 2):
        print(json.dumps(data, indent=indent, default=str))

    def print_result(self, result: Dict[str, Any]):
        """Print a RecoveryResult dictionary."""
        if result.get('success'):
            self.print_success(f"{result.get('strategy')}: {result.get('message')}")
        else:
            self.print_error(f"{result.get('strategy')}: {result.get('message')}")

        self.print_key_value("Next action", result.get('next_action') or "continue", indent=1)
        self.print_key_value("Requires user action", result.get('requires_user_action'), indent=1)

        preserved = result.get('preserved_data')
        if preserved:
            if preserved.get('saved'):
                self.print_key_value("Saved", "", indent=1)
                self.print_list(preserved['saved'], indent=2)
            if preserved.get('failed'):
                self.print_key_value("Failed", "", indent=1)
                self.print_list(preserved['failed'], bullet="✗", indent=2)

    def print_history(self, attempts: List[Dict[str, Any]]):
        """Print recovery attempts, oldest first."""
        if not attempts:
            self.print_info("No recovery attempts recorded")
            return

        for attempt in attempts:
            status = self._colorize("ok", Fore.GREEN) if attempt['success'] else self._colorize("failed", Fore.RED)
            print(f"  {attempt['strategy']:<16} {status:<6} {attempt['duration'] * 1000:8.1f} ms  {attempt['message']}")
