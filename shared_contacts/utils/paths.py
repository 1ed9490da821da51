"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the shared-contacts configuration
directory across all modules.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".shared-contacts"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "SHARED_CONTACTS_CONFIG_DIR"

# Default database file name inside the config directory
DEFAULT_DB_FILE = "sharing.db"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. SHARED_CONTACTS_CONFIG_DIR environment variable
        3. Default directory (~/.shared-contacts)

    Args:
        config_dir: Optional explicit configuration directory path.
                   Can be a Path object or string.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_db_path(db_path: Path | str | None, config_dir: Path) -> str:
    """
    Resolve the sharing database location.

    An explicit path wins; ":memory:" is passed through untouched.
    Otherwise the database lives in the configuration directory.
    """
    if db_path is None:
        return str(config_dir / DEFAULT_DB_FILE)
    if str(db_path) == ":memory:":
        return ":memory:"
    return str(Path(db_path).expanduser())
