"""
shared_contacts.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from shared_contacts.config.loader import ConfigError, ConfigLoader
from shared_contacts.config.sharing_config import (
    SharingConfig,
    SharingConfigError,
    load_sharing_config,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "SharingConfig",
    "SharingConfigError",
    "load_sharing_config",
]
