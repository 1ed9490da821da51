"""
SQLite-backed collaborator implementations.

Implements Directory, BookRegistry and ContactStore over the local tables of
SharingDatabase, so the sharing core can run stand-alone from the command
line and in tests.
"""

import logging
from typing import Any, Optional

from shared_contacts.api.interfaces import BookRegistry, ContactStore, Directory
from shared_contacts.sharing.models import (
    PERSONAL_BOOK_ID,
    STORAGE_PERSONAL,
    AddressBook,
    Contact,
    Group,
    User,
)
from shared_contacts.storage.db import SharingDatabase

logger = logging.getLogger(__name__)


def _user_from_row(row: dict[str, Any]) -> User:
    return User(
        id=row["id"],
        public_id=row["public_id"],
        tenant_id=row["tenant_id"],
        name=row["name"] or "",
        is_super_admin=bool(row["is_super_admin"]),
    )


def _group_from_row(row: dict[str, Any]) -> Group:
    return Group(
        id=row["id"],
        tenant_id=row["tenant_id"],
        name=row["name"],
        is_all=bool(row["is_all"]),
    )


def _book_from_row(row: dict[str, Any]) -> AddressBook:
    return AddressBook(
        id=row["id"],
        owner_user_id=row["owner_user_id"],
        name=row["name"],
        uri=row["uri"],
    )


def _contact_from_row(row: dict[str, Any]) -> Contact:
    return Contact(
        uuid=row["uuid"],
        id_user=row["id_user"],
        id_tenant=row["id_tenant"],
        storage=row["storage"],
        address_book_id=row["address_book_id"],
        full_name=row["full_name"] or "",
        email=row["email"] or "",
    )


class LocalDirectory(Directory):
    """Directory over the users, user_groups and group_members tables."""

    def __init__(self, db: SharingDatabase):
        self.db = db

    def get_user(self, user_id: int) -> Optional[User]:
        row = self.db.get_user(user_id)
        return _user_from_row(row) if row else None

    def get_user_by_public_id(self, public_id: str) -> Optional[User]:
        row = self.db.get_user_by_public_id(public_id)
        return _user_from_row(row) if row else None

    def get_group(self, group_id: int) -> Optional[Group]:
        row = self.db.get_group(group_id)
        return _group_from_row(row) if row else None

    def get_group_members(self, group_id: int) -> list[User]:
        members = []
        for user_id in self.db.get_group_member_ids(group_id):
            user = self.get_user(user_id)
            if user is None:
                logger.warning(f"Group {group_id} lists missing user {user_id}")
                continue
            members.append(user)
        return members

    def get_tenant_default_group(self, tenant_id: int) -> Optional[Group]:
        row = self.db.get_tenant_all_group(tenant_id)
        return _group_from_row(row) if row else None


class LocalBookRegistry(BookRegistry):
    """Book registry over the address_books and ctags tables."""

    def __init__(self, db: SharingDatabase):
        self.db = db

    def list_user_books(self, user_id: int) -> list[AddressBook]:
        return [_book_from_row(row) for row in self.db.get_user_address_books(user_id)]

    def get_book(self, book_id: int) -> Optional[AddressBook]:
        row = self.db.get_address_book(book_id)
        return _book_from_row(row) if row else None

    def get_book_uri(self, owner_user_id: int, book_id: int) -> Optional[str]:
        if book_id == PERSONAL_BOOK_ID:
            return STORAGE_PERSONAL
        book = self.get_book(book_id)
        if book is None or book.owner_user_id != owner_user_id:
            return None
        return book.uri

    def get_ctag(self, owner_user_id: int, storage: str) -> int:
        return self.db.get_ctag(owner_user_id, storage)

    def update_ctag(self, owner_user_id: int, storage: str) -> int:
        ctag = self.db.increment_ctag(owner_user_id, storage)
        logger.debug(f"CTag of {storage} for user {owner_user_id} is now {ctag}")
        return ctag


class LocalContactStore(ContactStore):
    """Contact store over the contacts table."""

    def __init__(self, db: SharingDatabase):
        self.db = db

    def get_contact(self, uuid: str, viewer_user_id: int) -> Optional[Contact]:
        row = self.db.get_contact(uuid)
        return _contact_from_row(row) if row else None

    def update_contact(self, viewer_user_id: int, contact: Contact) -> bool:
        return self.db.update_contact(
            contact.uuid,
            id_user=contact.id_user,
            id_tenant=contact.id_tenant,
            storage=contact.storage,
            address_book_id=contact.address_book_id,
            full_name=contact.full_name,
            email=contact.email,
        )

    def query_contacts(self, predicates: list[dict[str, Any]]) -> list[Contact]:
        """Get the contacts matching storage filter predicates."""
        return [_contact_from_row(row) for row in self.db.query_contacts(predicates)]
