"""
YAML configuration loading.

The configuration file is optional: a missing or empty file yields an empty
mapping and every command falls back to its defaults. Keys are checked
against CONFIG_KEYS; unknown keys are logged and ignored.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from shared_contacts.utils.paths import CONFIG_DIR_ENV_VAR, DEFAULT_CONFIG_DIR

DEFAULT_CONFIG_FILE = "config.yaml"

# Top-level keys and their expected YAML types
CONFIG_KEYS: dict[str, type] = {
    "db_path": str,
    "config_dir": str,
    "verbose": bool,
    "log_dir": str,
    "log_retention_count": int,
    "audit_log": bool,
    # Contents are checked by SharingConfig.from_dict
    "sharing": dict,
}

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def _check_type(key: str, value: Any, expected: type) -> None:
    # bool is an int subclass
    if expected is int and isinstance(value, bool):
        raise ConfigError(f"Invalid type for '{key}': expected int, got bool")
    if not isinstance(value, expected):
        raise ConfigError(
            f"Invalid type for '{key}': expected {expected.__name__}, "
            f"got {type(value).__name__}"
        )


class ConfigLoader:
    """
    Loads config.yaml from the configuration directory.

    The directory is the constructor argument, else $SHARED_CONTACTS_CONFIG_DIR,
    else ~/.shared-contacts.

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()

        config = loader.load_from_file("/etc/shared-contacts.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        if config_dir is None:
            env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
            config_dir = Path(env_dir) if env_dir else DEFAULT_CONFIG_DIR
        self.config_dir = Path(config_dir)
        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """Load <config_dir>/<config_file>; see load_from_file()."""
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Parse a YAML configuration file.

        Returns:
            The top-level mapping, or {} when the file is missing or empty

        Raises:
            ConfigError: If the file cannot be read, is not valid YAML, or
                does not hold a mapping
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"No configuration file at {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(
                "Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Check the types of known keys and the range of log_retention_count.

        Raises:
            ConfigError: On the first invalid value
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        for key, value in config.items():
            expected = CONFIG_KEYS.get(key)
            if expected is None:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            _check_type(key, value, expected)

        retention = config.get("log_retention_count", 0)
        if retention < 0:
            raise ConfigError(f"log_retention_count must be >= 0, got {retention}")

    def load_and_validate(self) -> dict[str, Any]:
        config = self.load()
        if config:
            self.validate(config)
        return config
