"""
Tests for the config module.

Tests configuration loading, validation, and generation functionality
including YAML parsing, error handling, file operations and the sharing
section.
"""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from shared_contacts.config.generator import generate_default_config, save_config_file
from shared_contacts.config.loader import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
)
from shared_contacts.config.sharing_config import (
    SharingConfig,
    SharingConfigError,
    load_sharing_config,
)


class TestConfigLoaderInitialization:
    """Tests for ConfigLoader initialization."""

    def test_default_config_dir(self):
        """Test that default config dir is used when no argument provided."""
        with patch.dict(os.environ, {}, clear=True):
            loader = ConfigLoader()
            assert loader.config_dir == DEFAULT_CONFIG_DIR

    def test_custom_config_dir_via_argument(self, tmp_path):
        custom_dir = tmp_path / "custom_config"
        loader = ConfigLoader(config_dir=custom_dir)
        assert loader.config_dir == custom_dir

    def test_config_dir_from_environment_variable(self, tmp_path):
        """Test that config dir can be set via environment variable."""
        env_dir = str(tmp_path / "env_config")
        with patch.dict(os.environ, {"SHARED_CONTACTS_CONFIG_DIR": env_dir}):
            loader = ConfigLoader()
            assert loader.config_dir == Path(env_dir)

    def test_argument_takes_precedence_over_environment(self, tmp_path):
        arg_dir = tmp_path / "arg_config"
        env_dir = str(tmp_path / "env_config")
        with patch.dict(os.environ, {"SHARED_CONTACTS_CONFIG_DIR": env_dir}):
            loader = ConfigLoader(config_dir=arg_dir)
            assert loader.config_dir == arg_dir

    def test_default_config_file(self, tmp_path):
        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.config_file == DEFAULT_CONFIG_FILE
        assert loader._get_config_path() == tmp_path / "config.yaml"


class TestConfigLoading:
    """Tests for loading YAML files."""

    def test_missing_file_gives_empty_dict(self, tmp_path):
        assert ConfigLoader(config_dir=tmp_path).load() == {}

    def test_empty_file_gives_empty_dict(self, tmp_path):
        (tmp_path / "config.yaml").write_text("")
        assert ConfigLoader(config_dir=tmp_path).load() == {}

    def test_load_values(self, tmp_path):
        (tmp_path / "config.yaml").write_text(
            "verbose: true\naudit_log: true\nsharing:\n  propagate_default_group: false\n"
        )

        config = ConfigLoader(config_dir=tmp_path).load()

        assert config == {
            "verbose": True,
            "audit_log": True,
            "sharing": {"propagate_default_group": False},
        }

    def test_load_from_explicit_file(self, tmp_path):
        path = tmp_path / "other.yaml"
        path.write_text("db_path: /tmp/x.db\n")

        assert ConfigLoader().load_from_file(path) == {"db_path": "/tmp/x.db"}

    def test_invalid_yaml_raises(self, tmp_path):
        (tmp_path / "config.yaml").write_text("verbose: [unclosed\n")

        with pytest.raises(ConfigError, match="Failed to parse YAML"):
            ConfigLoader(config_dir=tmp_path).load()

    def test_non_mapping_raises(self, tmp_path):
        (tmp_path / "config.yaml").write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="YAML dictionary"):
            ConfigLoader(config_dir=tmp_path).load()


class TestConfigValidation:
    """Tests for ConfigLoader.validate."""

    @pytest.fixture
    def loader(self, tmp_path):
        return ConfigLoader(config_dir=tmp_path)

    def test_valid_config(self, loader):
        loader.validate(
            {
                "db_path": "/tmp/sharing.db",
                "verbose": False,
                "log_dir": "/tmp/logs",
                "log_retention_count": 5,
                "audit_log": True,
                "sharing": {},
            }
        )

    @pytest.mark.parametrize(
        "key,value",
        [
            ("db_path", 5),
            ("verbose", "yes"),
            ("log_retention_count", "10"),
            ("audit_log", 1),
            ("sharing", ["a"]),
        ],
    )
    def test_wrong_types_raise(self, loader, key, value):
        with pytest.raises(ConfigError, match=f"Invalid type for '{key}'"):
            loader.validate({key: value})

    def test_bool_is_not_int(self, loader):
        with pytest.raises(ConfigError, match="got bool"):
            loader.validate({"log_retention_count": True})

    def test_negative_retention_raises(self, loader):
        with pytest.raises(ConfigError, match=">= 0"):
            loader.validate({"log_retention_count": -1})

    def test_unknown_keys_are_warned(self, loader, caplog):
        with caplog.at_level(logging.WARNING, logger="shared_contacts.config.loader"):
            loader.validate({"sync_interval": 5})
        assert "sync_interval" in caplog.text

    def test_non_dict_raises(self, loader):
        with pytest.raises(ConfigError):
            loader.validate(["verbose"])

    def test_load_and_validate(self, tmp_path):
        (tmp_path / "config.yaml").write_text("verbose: 3\n")

        with pytest.raises(ConfigError):
            ConfigLoader(config_dir=tmp_path).load_and_validate()


class TestConfigGenerator:
    def test_generated_config_is_valid_yaml(self):
        assert yaml.safe_load(generate_default_config()) is None

    def test_generated_config_documents_options(self):
        content = generate_default_config()
        for option in (
            "db_path",
            "log_retention_count",
            "audit_log",
            "allow_address_books_management",
            "propagate_default_group",
        ):
            assert option in content


class TestSaveConfigFile:
    """Tests for save_config_file."""

    def test_creates_file_with_private_permissions(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"

        success, error = save_config_file(path)

        assert success is True
        assert error is None
        assert path.read_text() == generate_default_config()
        assert (path.stat().st_mode & 0o777) == 0o600

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("verbose: true\n")

        success, error = save_config_file(path)

        assert success is False
        assert "--force" in error
        assert path.read_text() == "verbose: true\n"

    def test_overwrite(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("verbose: true\n")

        success, _ = save_config_file(path, overwrite=True)

        assert success is True
        assert path.read_text() == generate_default_config()

    def test_os_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        with patch.object(Path, "write_text", side_effect=OSError("read-only")):
            success, error = save_config_file(path)

        assert success is False
        assert "read-only" in error


class TestSharingConfig:
    """Tests for the sharing section."""

    def test_defaults(self):
        config = SharingConfig()
        assert config.allow_address_books_management is True
        assert config.propagate_default_group is True

    def test_from_none(self):
        assert SharingConfig.from_dict(None) == SharingConfig()

    def test_from_dict(self):
        config = SharingConfig.from_dict({"allow_address_books_management": False})
        assert config.allow_address_books_management is False
        assert config.propagate_default_group is True

    def test_non_dict_raises(self):
        with pytest.raises(SharingConfigError, match="must be a dictionary"):
            SharingConfig.from_dict(["a"])

    def test_non_bool_raises(self):
        with pytest.raises(SharingConfigError, match="must be a boolean"):
            SharingConfig.from_dict({"propagate_default_group": "no"})

    def test_sharing_error_is_config_error(self):
        assert issubclass(SharingConfigError, ConfigError)

    def test_unknown_option_is_warned(self, caplog):
        with caplog.at_level(
            logging.WARNING, logger="shared_contacts.config.sharing_config"
        ):
            SharingConfig.from_dict({"share_everything": True})
        assert "share_everything" in caplog.text

    def test_to_dict_round_trip(self):
        config = SharingConfig(propagate_default_group=False)
        assert SharingConfig.from_dict(config.to_dict()) == config


class TestLoadSharingConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_sharing_config(tmp_path) == SharingConfig()

    def test_reads_section(self, tmp_path):
        (tmp_path / "config.yaml").write_text(
            "sharing:\n  allow_address_books_management: false\n"
        )
        config = load_sharing_config(tmp_path)
        assert config.allow_address_books_management is False

    def test_invalid_section_raises(self, tmp_path):
        (tmp_path / "config.yaml").write_text("sharing: 5\n")
        with pytest.raises(SharingConfigError):
            load_sharing_config(tmp_path)
