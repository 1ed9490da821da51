"""
Collaborator interfaces consumed by the sharing core.

The sharing core does not own users, groups, address books or contact
records. It reads them through these interfaces. Adapters implement them on
top of whatever directory and contact store the host system uses;
shared_contacts.api.local provides SQLite-backed implementations.
"""

from abc import ABC, abstractmethod
from typing import Optional

from shared_contacts.sharing.models import AddressBook, Contact, Group, User


class Directory(ABC):
    """Users, groups and tenants."""

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        """Get a user by id, or None if not found."""
        pass

    @abstractmethod
    def get_user_by_public_id(self, public_id: str) -> Optional[User]:
        """Get a user by durable public id, or None if not found."""
        pass

    def get_user_public_id(self, user_id: int) -> Optional[str]:
        """Get the public id of a user, or None if not found."""
        user = self.get_user(user_id)
        return user.public_id if user else None

    def get_tenant_id(self, user_id: int) -> Optional[int]:
        """Get the tenant of a user, or None if not found."""
        user = self.get_user(user_id)
        return user.tenant_id if user else None

    @abstractmethod
    def get_group(self, group_id: int) -> Optional[Group]:
        """Get a group by id, or None if not found."""
        pass

    @abstractmethod
    def get_group_members(self, group_id: int) -> list[User]:
        """Get the current members of a group."""
        pass

    @abstractmethod
    def get_tenant_default_group(self, tenant_id: int) -> Optional[Group]:
        """Get the tenant's implicit all-members group, if any."""
        pass


class BookRegistry(ABC):
    """Owned address books and their change tags."""

    @abstractmethod
    def list_user_books(self, user_id: int) -> list[AddressBook]:
        """Get the address books a user owns (the personal book excluded)."""
        pass

    @abstractmethod
    def get_book(self, book_id: int) -> Optional[AddressBook]:
        """Get an owned address book by id, or None if not found."""
        pass

    @abstractmethod
    def get_book_uri(self, owner_user_id: int, book_id: int) -> Optional[str]:
        """
        Get the stable uri of a book.

        book_id 0 names the owner's personal book.
        """
        pass

    @abstractmethod
    def get_ctag(self, owner_user_id: int, storage: str) -> int:
        """Get the change tag of an owner's storage location."""
        pass

    @abstractmethod
    def update_ctag(self, owner_user_id: int, storage: str) -> int:
        """Bump the change tag of an owner's storage location."""
        pass


class ContactStore(ABC):
    """Contact records."""

    @abstractmethod
    def get_contact(self, uuid: str, viewer_user_id: int) -> Optional[Contact]:
        """Get a contact on behalf of a viewer, or None if not found."""
        pass

    @abstractmethod
    def update_contact(self, viewer_user_id: int, contact: Contact) -> bool:
        """Persist a contact's fields on behalf of a viewer."""
        pass
