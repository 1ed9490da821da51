"""
Entry point for running shared_contacts as a module.

Usage:
    python -m shared_contacts --help
    python -m shared_contacts share list --owner 1 personal
    python -m shared_contacts books --user 2
"""

from shared_contacts.cli import cli

if __name__ == "__main__":
    cli()
