"""
Sharing configuration section.

Parsed from the ``sharing`` mapping of config.yaml:

    sharing:
      allow_address_books_management: true
      propagate_default_group: true

Notes:
    - A missing section means every option takes its default
    - allow_address_books_management limits sharing to the personal book
      when false
    - propagate_default_group copies the grants of a tenant's all-members
      group to users created in that tenant
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shared_contacts.config.loader import ConfigError, ConfigLoader

logger = logging.getLogger(__name__)


class SharingConfigError(ConfigError):
    """Raised when the sharing section is malformed."""

    pass


@dataclass
class SharingConfig:
    """
    Options controlling how address book sharing behaves.

    Attributes:
        allow_address_books_management: Whether books other than the personal
            book may be shared.
        propagate_default_group: Whether a newly created user receives the
            grants of the tenant's all-members group.

    Usage:
        config = SharingConfig.from_dict({"propagate_default_group": False})
        if config.allow_address_books_management:
            ...
    """

    allow_address_books_management: bool = True
    propagate_default_group: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SharingConfig:
        """
        Create SharingConfig from a dictionary.

        Args:
            data: The ``sharing`` mapping, or None

        Returns:
            SharingConfig instance with defaults for missing options

        Raises:
            SharingConfigError: If the structure or a value type is invalid
        """
        if data is None:
            return cls()

        if not isinstance(data, dict):
            raise SharingConfigError(
                f"sharing configuration must be a dictionary, "
                f"got {type(data).__name__}"
            )

        values: dict[str, bool] = {}
        for key in ("allow_address_books_management", "propagate_default_group"):
            if key not in data:
                continue
            value = data[key]
            if not isinstance(value, bool):
                raise SharingConfigError(
                    f"sharing.{key} must be a boolean, got {type(value).__name__}"
                )
            values[key] = value

        for key in data:
            if key not in ("allow_address_books_management", "propagate_default_group"):
                logger.warning(f"Ignoring unknown sharing option: {key}")

        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "allow_address_books_management": self.allow_address_books_management,
            "propagate_default_group": self.propagate_default_group,
        }


def load_sharing_config(config_dir: Path | str | None = None) -> SharingConfig:
    """
    Load the sharing section from config.yaml in a config directory.

    Returns defaults when the directory, file or section is missing.

    Raises:
        ConfigError: If the file exists but is not valid YAML
        SharingConfigError: If the sharing section is invalid
    """
    loader = ConfigLoader(config_dir=Path(config_dir) if config_dir else None)
    config = loader.load()
    return SharingConfig.from_dict(config.get("sharing"))
