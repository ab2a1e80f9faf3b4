"""
Main CLI interface for the recovery engine.
"""

import sys
import json
import asyncio
import argparse
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...application.config.settings import ConfigManager, RecoverySettings
from ...application.use_cases import build_recovery_engine, StartupRestoration, RecoveryStatusTracker
from ...domain.entities.error_record import ErrorCategory, ErrorSeverity
from ...domain.entities.recovery import RecoveryContext
from ...infrastructure.error_handling import RecoveryEngineError
from ...infrastructure.monitoring.logger import setup_logging
from ...infrastructure.persistence import SqliteKeyValueStore, SqliteDesignPersistence
from ...infrastructure.process import CallbackProcessControl
from ..formatters.console_formatter import ConsoleFormatter

logger = logging.getLogger(__name__)


SAMPLE_DESIGN = {
    "nodes": [
        {"id": "api", "type": "service"},
        {"id": "db", "type": "database"}
    ],
    "edges": [
        {"source": "api", "target": "db"}
    ]
}


class RecoveryEngineCLI:
    """
    Command line interface for the recovery engine.

    Commands:
    - simulate: submit one synthetic error to a freshly composed engine
    - check-restoration: run the startup restoration check once
    - show-config: print the effective settings
    """

    def __init__(self):
        self.console_formatter = ConsoleFormatter()

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Main entry point for CLI."""
        parser = self._create_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 2

        try:
            settings = ConfigManager(args.config).get_settings()
            if args.data_dir:
                settings = replace(settings, data_dir=args.data_dir)

            self._configure_logging(args.log_level or settings.log_level, settings)

            result = self._execute_command(args, settings)

            if result:
                self._output_result(result, args.output_format)

            return 0

        except RecoveryEngineError as e:
            self.console_formatter.print_error(f"Engine Error: {str(e)}")
            return 1
        except Exception as e:
            self.console_formatter.print_error(f"Unexpected Error: {str(e)}")
            logger.exception("Unexpected error in CLI")
            return 1

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog="recovery-engine",
            description="Recovery orchestration engine CLI",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )

        parser.add_argument(
            '--config',
            default='config/recovery.yaml',
            help='Path to the YAML configuration file'
        )

        parser.add_argument(
            '--data-dir',
            help='Directory for the SQLite stores (overrides configuration)'
        )

        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            help='Set logging level'
        )

        parser.add_argument(
            '--output-format',
            choices=['json', 'text'],
            default='json',
            help='Output format'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        self._add_simulate_parser(subparsers)

        subparsers.add_parser(
            'check-restoration',
            help='Restore state parked by a soft reload, if any'
        )

        subparsers.add_parser(
            'show-config',
            help='Show effective configuration'
        )

        return parser

    def _add_simulate_parser(self, subparsers):
        """Add simulate command parser."""
        parser = subparsers.add_parser(
            'simulate',
            help='Submit a synthetic error and run recovery'
        )

        parser.add_argument(
            '--message',
            default='Simulated render failure',
            help='Error message'
        )

        parser.add_argument(
            '--category',
            choices=[category.value for category in ErrorCategory],
            default=ErrorCategory.RENDERING.value,
            help='Error category'
        )

        parser.add_argument(
            '--severity',
            choices=[severity.value for severity in ErrorSeverity],
            default=ErrorSeverity.HIGH.value,
            help='Error severity'
        )

        parser.add_argument(
            '--project-id',
            default='demo-project',
            help='Project identifier placed in the recovery context'
        )

        parser.add_argument(
            '--design-file',
            help='JSON file holding the current design (a small sample is used otherwise)'
        )

        parser.add_argument(
            '--force-reset',
            action='store_true',
            help='Mark the error so hard reset applies'
        )

        parser.add_argument(
            '--preferred',
            nargs='*',
            default=None,
            help='Preferred strategy order for this run'
        )

    def _configure_logging(self, log_level: str, settings: RecoverySettings):
        """Configure logging."""
        setup_logging(
            log_level=log_level,
            log_dir=settings.log_dir,
            enable_file=False,
            enable_json=settings.log_json,
            console_stream=sys.stderr
        )

    def _execute_command(self, args, settings: RecoverySettings) -> Optional[Dict[str, Any]]:
        """Execute CLI command."""
        if args.command == 'simulate':
            return asyncio.run(self._execute_simulate(args, settings))
        elif args.command == 'check-restoration':
            return asyncio.run(self._execute_check_restoration(settings))
        elif args.command == 'show-config':
            return {'command': 'show-config', 'settings': settings.to_dict()}
        else:
            raise ValueError(f"Unknown command: {args.command}")

    async def _execute_simulate(self, args, settings: RecoverySettings) -> Dict[str, Any]:
        """Execute simulate command."""
        # The simulated process never actually reloads
        settings = replace(settings, soft_reload_fallback_delay=0)
        if args.preferred is not None:
            settings = replace(settings, preferred_order=args.preferred)

        reload_requests: List[str] = []
        process_control = CallbackProcessControl(
            reload_callback=lambda: reload_requests.append(datetime.now().isoformat())
        )

        design = self._load_design(args.design_file)

        def context_provider() -> RecoveryContext:
            return RecoveryContext(
                project_id=args.project_id,
                current_design=design,
                user_preferences={"theme": "dark"}
            )

        engine = build_recovery_engine(settings, process_control, context_provider=context_provider)
        tracker = RecoveryStatusTracker(auto_dismiss=0)
        tracker.attach(engine.orchestrator)

        context = {"source": "cli"}
        if args.force_reset:
            context["force_reset"] = True

        result = await engine.report(args.message, args.category, args.severity, context)

        return {
            'command': 'simulate',
            'result': result.to_dict(),
            'history': [attempt.to_dict() for attempt in engine.orchestrator.get_history()],
            'reload_requests': reload_requests,
            'status': tracker.snapshot(),
            'metrics': engine.orchestrator.metrics.snapshot(),
            'timestamp': datetime.now().isoformat()
        }

    async def _execute_check_restoration(self, settings: RecoverySettings) -> Dict[str, Any]:
        """Execute check-restoration command."""
        Path(settings.data_dir).mkdir(parents=True, exist_ok=True)

        use_case = StartupRestoration(
            reload_store=SqliteKeyValueStore(settings.reload_store_path, name="reload-store"),
            design_persistence=SqliteDesignPersistence(settings.design_db_path, max_backups=settings.max_backups),
            kv_store=SqliteKeyValueStore(settings.kv_store_path, name="recovery-store")
        )
        report = await use_case.execute()

        return {
            'command': 'check-restoration',
            'report': report.to_dict(),
            'timestamp': datetime.now().isoformat()
        }

    @staticmethod
    def _load_design(path: Optional[str]) -> Dict[str, Any]:
        if not path:
            return SAMPLE_DESIGN
        with open(path, 'r') as f:
            return json.load(f)

    def _output_result(self, result: Dict[str, Any], output_format: str):
        """Output result in specified format."""
        if output_format == 'json':
            self.console_formatter.print_json(result)
            return

        command = result['command']
        if command == 'simulate':
            self.console_formatter.print_header("Recovery result")
            self.console_formatter.print_result(result['result'])
            self.console_formatter.print_header("Attempts")
            self.console_formatter.print_history(result['history'])
            if result['reload_requests']:
                self.console_formatter.print_warning(f"Reload requested {len(result['reload_requests'])} time(s)")
        elif command == 'check-restoration':
            report = result['report']
            if not report['found']:
                self.console_formatter.print_info("No pending restoration")
                return
            self.console_formatter.print_header(f"Restored session {report['session_id']}")
            self.console_formatter.print_list(report['restored'])
            if report['failed']:
                self.console_formatter.print_list(report['failed'], bullet="✗")
        else:
            self.console_formatter.print_header("Configuration")
            for key, value in result['settings'].items():
                self.console_formatter.print_key_value(key, value)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    cli = RecoveryEngineCLI()
    return cli.run(argv)


if __name__ == '__main__':
    sys.exit(main())
