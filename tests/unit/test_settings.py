"""
Tests for configuration loading.
"""

import pytest
import yaml

from src.application.config import ConfigManager, RecoverySettings
from src.infrastructure.error_handling import ConfigurationError


def write_config(path, data):
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestRecoverySettings:
    """Test settings defaults and validation."""

    def test_defaults(self):
        settings = RecoverySettings()

        assert settings.cooldown_seconds == 10.0
        assert settings.max_attempts == 5
        assert settings.history_limit == 50
        assert settings.critical_severities == ["high", "critical"]
        assert settings.critical_categories == ["runtime", "rendering", "global"]

    def test_log_level_is_normalised(self):
        assert RecoverySettings(log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize("overrides", [
        {"cooldown_seconds": -1},
        {"max_attempts": 0},
        {"history_limit": 0},
        {"log_level": "verbose"}
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError):
            RecoverySettings(**overrides)

    def test_unknown_keys_are_rejected(self):
        with pytest.raises(ConfigurationError):
            RecoverySettings.from_dict({"cooldown": 5})

    def test_store_paths(self):
        settings = RecoverySettings(data_dir="/var/lib/recovery")

        assert settings.kv_store_path.endswith("recovery_store.db")
        assert settings.reload_store_path.endswith("pending_restoration.db")
        assert settings.design_db_path.startswith("/var/lib/recovery")


class TestConfigManager:
    """Test YAML loading, schema validation and overrides."""

    def test_missing_file_uses_defaults(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "missing.yaml"), environ={})

        assert manager.get_settings() == RecoverySettings()

    def test_loads_yaml(self, tmp_path):
        path = write_config(tmp_path / "recovery.yaml", {
            "cooldown_seconds": 2.5,
            "preferred_order": ["backup-restore"],
            "critical_categories": ["data"]
        })

        settings = ConfigManager(path, environ={}).get_settings()

        assert settings.cooldown_seconds == 2.5
        assert settings.preferred_order == ["backup-restore"]
        assert settings.critical_categories == ["data"]
        assert settings.max_attempts == 5

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "recovery.yaml"
        path.write_text("")

        assert ConfigManager(str(path), environ={}).get_settings() == RecoverySettings()

    def test_environment_overrides(self, tmp_path):
        path = write_config(tmp_path / "recovery.yaml", {"cooldown_seconds": 2.5})
        environ = {
            "RECOVERY_COOLDOWN_SECONDS": "7",
            "RECOVERY_MAX_ATTEMPTS": "3",
            "RECOVERY_PREFERRED_ORDER": "soft-reload, auto-save",
            "RECOVERY_LOG_JSON": "yes"
        }

        settings = ConfigManager(path, environ=environ).get_settings()

        assert settings.cooldown_seconds == 7.0
        assert settings.max_attempts == 3
        assert settings.preferred_order == ["soft-reload", "auto-save"]
        assert settings.log_json is True

    def test_invalid_environment_value(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(str(tmp_path / "missing.yaml"), environ={"RECOVERY_MAX_ATTEMPTS": "many"})

    def test_template_substitution(self, tmp_path):
        path = write_config(tmp_path / "recovery.yaml", {"data_dir": "${STATE_HOME}/recovery"})

        settings = ConfigManager(path, environ={"STATE_HOME": "/srv"}).get_settings()

        assert settings.data_dir == "/srv/recovery"

    @pytest.mark.parametrize("data", [
        {"max_attempts": 0},
        {"critical_severities": ["urgent"]},
        {"unexpected": True},
        {"log_level": "TRACE"}
    ])
    def test_schema_violations(self, tmp_path, data):
        path = write_config(tmp_path / "recovery.yaml", data)

        with pytest.raises(ConfigurationError):
            ConfigManager(path, environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "recovery.yaml"
        path.write_text("cooldown_seconds: [unclosed")

        with pytest.raises(ConfigurationError):
            ConfigManager(str(path), environ={})

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "recovery.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError):
            ConfigManager(str(path), environ={})

    def test_to_dict_includes_defaults(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "missing.yaml"), environ={})

        data = manager.to_dict()

        assert data["history_limit"] == 50
        assert data["log_level"] == "INFO"
