"""CLI package for shared_contacts."""

from shared_contacts.cli.formatters import (
    show_contact,
    show_share_diff,
    show_shared_books,
    show_shares,
)
from shared_contacts.cli.main import (
    ACCESS_CHOICES,
    cli,
    get_config_file,
    parse_book,
)
from shared_contacts.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "ACCESS_CHOICES",
    "DEFAULT_CONFIG_DIR",
    "cli",
    "get_config_file",
    "parse_book",
    "show_contact",
    "show_share_diff",
    "show_shared_books",
    "show_shares",
]
