"""
Configuration file generator for address book sharing.

Provides functionality to generate a default configuration file with
documentation for every available option.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Shared Contacts Configuration
# =============================
#
# Default options for the shared-contacts command line tool.
# CLI arguments always override these values.
#
# To use this configuration:
#   1. Save as ~/.shared-contacts/config.yaml (or custom location)
#   2. Uncomment and modify options as needed

# Storage
# -------

# Path to the SQLite database holding grants and the local directory
# Default: <config_dir>/sharing.db
# db_path: /path/to/sharing.db


# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Directory for log files
# Default: <project>/logs
# log_dir: /path/to/logs

# Number of log files of each kind to keep
# Default: 10
# log_retention_count: 10

# Write every grant create/update/delete to audit_YYYYMMDD.log
# Default: false
# audit_log: true


# Sharing Behavior
# ----------------

# sharing:
#   # Allow users to create and share address books other than "personal"
#   # Default: true
#   allow_address_books_management: true
#
#   # Copy grants of the tenant's all-members group to newly created users
#   # Default: true
#   propagate_default_group: true
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves
    the configuration with secure permissions.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")

        # Readable/writable by owner only
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
