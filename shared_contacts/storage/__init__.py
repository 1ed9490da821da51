"""
shared_contacts.storage - Persistence module

SQLite storage for grants and the local directory.
"""

from shared_contacts.storage.db import SharingDatabase

__all__ = ["SharingDatabase"]
