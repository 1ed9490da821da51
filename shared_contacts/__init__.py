"""
shared_contacts - Address book sharing for multi-user contact stores.

Lets a user share a personal or owned address book with other users or
groups at a chosen access level, and keeps those grants consistent as
the directory changes.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
