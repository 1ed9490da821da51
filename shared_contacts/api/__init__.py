"""
shared_contacts.api - Collaborator interfaces and local implementations
"""

from shared_contacts.api.interfaces import BookRegistry, ContactStore, Directory
from shared_contacts.api.local import (
    LocalBookRegistry,
    LocalContactStore,
    LocalDirectory,
)

__all__ = [
    "BookRegistry",
    "ContactStore",
    "Directory",
    "LocalBookRegistry",
    "LocalContactStore",
    "LocalDirectory",
]
