"""
Integration tests for the command line interface.
"""

import json
import logging
import sys

import pytest

from src.presentation.cli.main import main


@pytest.fixture(autouse=True)
def restore_logging():
    # setup_logging replaces root handlers and colorama wraps the std streams
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    stdout, stderr = sys.stdout, sys.stderr
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    sys.stdout, sys.stderr = stdout, stderr


def run_cli(capsys, *argv):
    exit_code = main(list(argv))
    out = capsys.readouterr().out
    return exit_code, out


@pytest.mark.integration
class TestRecoveryEngineCLI:
    """Run the CLI commands against a temporary data directory."""

    def test_show_config(self, tmp_path, capsys):
        exit_code, out = run_cli(capsys, "--config", str(tmp_path / "missing.yaml"), "show-config")

        data = json.loads(out)
        assert exit_code == 0
        assert data["command"] == "show-config"
        assert data["settings"]["cooldown_seconds"] == 10.0

    def test_simulate_auto_save(self, tmp_path, capsys):
        exit_code, out = run_cli(
            capsys,
            "--config", str(tmp_path / "missing.yaml"),
            "--data-dir", str(tmp_path / "data"),
            "simulate", "--category", "rendering", "--severity", "critical"
        )

        data = json.loads(out)
        assert exit_code == 0
        assert data["result"]["success"]
        assert data["result"]["strategy"] == "auto-save"
        assert [attempt["strategy"] for attempt in data["history"]] == ["auto-save"]
        assert data["reload_requests"] == []
        assert data["status"]["visible"] is False

    def test_simulate_preferred_hard_reset(self, tmp_path, capsys):
        exit_code, out = run_cli(
            capsys,
            "--config", str(tmp_path / "missing.yaml"),
            "--data-dir", str(tmp_path / "data"),
            "simulate", "--force-reset", "--preferred", "hard-reset"
        )

        data = json.loads(out)
        assert exit_code == 0
        assert data["result"]["strategy"] == "hard-reset"
        assert data["result"]["next_action"] == "reload"
        assert len(data["reload_requests"]) == 1

    def test_check_restoration_without_pending_state(self, tmp_path, capsys):
        exit_code, out = run_cli(
            capsys,
            "--config", str(tmp_path / "missing.yaml"),
            "--data-dir", str(tmp_path / "data"),
            "check-restoration"
        )

        data = json.loads(out)
        assert exit_code == 0
        assert data["report"]["found"] is False

    def test_missing_command_prints_help(self, capsys):
        assert main([]) == 2
