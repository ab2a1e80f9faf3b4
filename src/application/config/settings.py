"""
Configuration management for the recovery engine.
Handles loading, validation, and environment variable overrides.
"""

import os
import re
import json
import logging
from copy import deepcopy
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml
import jsonschema

from ...domain.entities.error_record import ErrorCategory, ErrorSeverity
from ...infrastructure.error_handling import ConfigurationError


ENV_PREFIX = "RECOVERY_"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

RECOVERY_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "cooldown_seconds": {"type": "number", "minimum": 0},
        "max_attempts": {"type": "integer", "minimum": 1},
        "history_limit": {"type": "integer", "minimum": 1},
        "preferred_order": {"type": "array", "items": {"type": "string"}},
        "critical_severities": {
            "type": "array",
            "items": {"enum": [severity.value for severity in ErrorSeverity]}
        },
        "critical_categories": {
            "type": "array",
            "items": {"enum": [category.value for category in ErrorCategory]}
        },
        "component_reset_delay": {"type": "number", "minimum": 0},
        "soft_reload_fallback_delay": {"type": "number", "minimum": 0},
        "status_auto_dismiss": {"type": "number", "minimum": 0},
        "max_backups": {"type": "integer", "minimum": 1},
        "data_dir": {"type": "string", "minLength": 1},
        "log_dir": {"type": "string", "minLength": 1},
        "log_level": {"enum": LOG_LEVELS},
        "log_json": {"type": "boolean"}
    }
}


@dataclass
class RecoverySettings:
    """Recovery engine settings."""
    cooldown_seconds: float = 10.0
    max_attempts: int = 5
    history_limit: int = 50
    preferred_order: List[str] = field(default_factory=list)
    critical_severities: List[str] = field(default_factory=lambda: ["high", "critical"])
    critical_categories: List[str] = field(default_factory=lambda: ["runtime", "rendering", "global"])
    component_reset_delay: float = 0.1
    soft_reload_fallback_delay: float = 2.0
    status_auto_dismiss: float = 3.0
    max_backups: int = 10
    data_dir: str = "data"
    log_dir: str = "logs"
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self):
        """Validate settings."""
        if self.cooldown_seconds < 0:
            raise ConfigurationError("cooldown_seconds cannot be negative", "cooldown_seconds", self.cooldown_seconds)

        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1", "max_attempts", self.max_attempts)

        if self.history_limit < 1:
            raise ConfigurationError("history_limit must be at least 1", "history_limit", self.history_limit)

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.log_level}", "log_level", self.log_level)
        self.log_level = self.log_level.upper()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecoverySettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @property
    def kv_store_path(self) -> str:
        return str(Path(self.data_dir) / "recovery_store.db")

    @property
    def reload_store_path(self) -> str:
        return str(Path(self.data_dir) / "pending_restoration.db")

    @property
    def design_db_path(self) -> str:
        return str(Path(self.data_dir) / "designs.db")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigManager:
    """
    Configuration manager with validation and environment variable support.

    Features:
    - YAML configuration loading (a missing file means defaults)
    - JSON schema validation
    - RECOVERY_* environment variable overrides
    - ${VAR} template substitution
    - Reloading when the file changes
    """

    def __init__(
        self,
        config_path: str = "config/recovery.yaml",
        schema_path: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None
    ):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self.config_path = Path(config_path)
        self.schema_path = Path(schema_path) if schema_path else None
        self._environ = environ if environ is not None else os.environ
        self._last_modified = 0.0

        self._schema = self._load_schema()
        self._config = self._load_and_validate_config()
        self._settings = RecoverySettings.from_dict(self._config)

        self.logger.info(f"Configuration loaded from {self.config_path if self.config_path.exists() else 'defaults'}")

    def _load_schema(self) -> Dict[str, Any]:
        """Load JSON schema for validation."""
        if self.schema_path is None:
            return RECOVERY_CONFIG_SCHEMA

        try:
            with open(self.schema_path, 'r') as f:
                return json.load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to load schema: {str(e)}")

    def _load_and_validate_config(self) -> Dict[str, Any]:
        """Load and validate configuration from YAML file."""
        config_data: Dict[str, Any] = {}

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    loaded = yaml.safe_load(f)
                self._last_modified = self.config_path.stat().st_mtime
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML configuration: {str(e)}")
            except OSError as e:
                raise ConfigurationError(f"Failed to load configuration: {str(e)}")

            if loaded is not None and not isinstance(loaded, dict):
                raise ConfigurationError(f"Configuration root must be a mapping: {self.config_path}")
            config_data = loaded or {}
        else:
            self.logger.debug(f"Configuration file not found, using defaults: {self.config_path}")

        config_data = self._apply_env_overrides(config_data)
        self._validate_config(config_data)
        return config_data

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply RECOVERY_<FIELD> environment variable overrides."""
        config_copy = deepcopy(config)
        defaults = RecoverySettings()

        for settings_field in fields(RecoverySettings):
            env_var = f"{ENV_PREFIX}{settings_field.name.upper()}"
            env_value = self._environ.get(env_var)
            if env_value is not None:
                default = getattr(defaults, settings_field.name)
                config_copy[settings_field.name] = self._convert_env_value(env_var, env_value, default)

        return self._substitute_env_templates(config_copy)

    @staticmethod
    def _convert_env_value(env_var: str, value: str, default: Any) -> Any:
        """Convert environment variable string to the type of the setting."""
        try:
            if isinstance(default, bool):
                if value.lower() not in ('true', 'false', '1', '0', 'yes', 'no'):
                    raise ValueError(value)
                return value.lower() in ('true', '1', 'yes')
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            if isinstance(default, list):
                return [item.strip() for item in value.split(',') if item.strip()]
        except ValueError:
            raise ConfigurationError(f"Invalid value for {env_var}: {value!r}", env_var, value)
        return value

    def _substitute_env_templates(self, config: Any) -> Any:
        """Substitute ${VAR_NAME} templates with environment variables."""
        if isinstance(config, dict):
            return {k: self._substitute_env_templates(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_templates(item) for item in config]
        elif isinstance(config, str):
            pattern = r'\$\{([^}]+)\}'
            result = config
            for match in re.findall(pattern, config):
                result = result.replace(f'${{{match}}}', self._environ.get(match, ''))
            return result
        else:
            return config

    def _validate_config(self, config: Dict[str, Any]):
        """Validate configuration against JSON schema."""
        try:
            jsonschema.validate(config, self._schema)
        except jsonschema.ValidationError as e:
            key = ".".join(str(part) for part in e.absolute_path) or None
            raise ConfigurationError(f"Configuration validation failed: {e.message}", config_key=key)
        except jsonschema.SchemaError as e:
            raise ConfigurationError(f"Invalid schema: {e.message}")

    def get_settings(self) -> RecoverySettings:
        return self._settings

    def reload_config(self) -> bool:
        """Reload configuration if the file changed."""
        if not self.config_path.exists():
            return False

        current_modified = self.config_path.stat().st_mtime
        if current_modified <= self._last_modified:
            return False

        try:
            config = self._load_and_validate_config()
            self._settings = RecoverySettings.from_dict(config)
            self._config = config
        except Exception as e:
            self.logger.error(f"Failed to reload configuration: {str(e)}")
            raise

        self.logger.info("Configuration reloaded successfully")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Effective settings, defaults included."""
        return self._settings.to_dict()

    def __repr__(self) -> str:
        return f"ConfigManager(config_path={self.config_path})"


# Global configuration manager instance
_config_manager = None


def get_config_manager(config_path: Optional[str] = None) -> ConfigManager:
    """Get global configuration manager instance."""
    global _config_manager
    if _config_manager is None or config_path is not None:
        _config_manager = ConfigManager(config_path or os.getenv("RECOVERY_CONFIG", "config/recovery.yaml"))
    return _config_manager


def get_settings() -> RecoverySettings:
    """Get effective recovery settings."""
    return get_config_manager().get_settings()


def reload_config() -> bool:
    """Reload configuration from file."""
    return get_config_manager().reload_config()
