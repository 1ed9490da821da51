"""
Routing of a contact's storage field through shared addresses.

Contacts are stored under a physical location: the owner's personal book,
one of the owner's address books, or the tenant-wide shared pool. Viewers of
a shared book see those contacts under a virtual "Shared-..." address. The
router translates between the two forms and builds the contact query
predicates for a storage a viewer asks to list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Optional

from shared_contacts.sharing.address import (
    decode_address,
    encode_address,
    is_all_shared_address,
    is_shared_address,
)
from shared_contacts.sharing.errors import InvalidArgumentError
from shared_contacts.sharing.models import (
    PERSONAL_BOOK_ID,
    STORAGE_ADDRESSBOOK,
    STORAGE_ALL,
    STORAGE_PERSONAL,
    STORAGE_SHARED,
    AccessLevel,
    Contact,
    storage_key,
)

if TYPE_CHECKING:
    from shared_contacts.api.interfaces import BookRegistry, ContactStore, Directory
    from shared_contacts.sharing.resolver import AccessResolver

logger = logging.getLogger(__name__)

# Contact storages that can be flipped by toggle_shared()
TOGGLE_PAIRS = {
    STORAGE_PERSONAL: STORAGE_SHARED,
    STORAGE_SHARED: STORAGE_PERSONAL,
}


@dataclass(frozen=True)
class StorageLocation:
    """
    Physical location of a contact.

    Attributes:
        owner_user_id: User whose storage holds the contact
        storage: Physical storage kind (personal, addressbook or shared)
        address_book_id: Owned book id when storage is addressbook
    """

    owner_user_id: int
    storage: str
    address_book_id: Optional[int] = None

    @property
    def book_id(self) -> int:
        return self.address_book_id or PERSONAL_BOOK_ID

    @property
    def ctag_storage(self) -> str:
        """Storage name whose change tag tracks this location."""
        if self.storage == STORAGE_SHARED:
            return STORAGE_SHARED
        return storage_key(self.book_id)


def book_predicate(owner_user_id: int, book_id: int) -> dict[str, Any]:
    """Contact query predicate selecting one concrete book."""
    if book_id == PERSONAL_BOOK_ID:
        return {"id_user": owner_user_id, "storage": STORAGE_PERSONAL}
    return {
        "id_user": owner_user_id,
        "storage": STORAGE_ADDRESSBOOK,
        "address_book_id": book_id,
    }


class ContactStorageRouter:
    """
    Translates contact storage between virtual and physical form.

    Usage:
        router = ContactStorageRouter(resolver, directory, books, contacts)

        location = router.resolve_storage("Shared-4-personal", viewer_id)
        filters = router.build_storage_filters(viewer_id, "Shared")
        contact = router.populate_contact(contact, viewer_id)
    """

    def __init__(
        self,
        resolver: AccessResolver,
        directory: Directory,
        books: BookRegistry,
        contacts: ContactStore,
    ):
        self.resolver = resolver
        self.directory = directory
        self.books = books
        self.contacts = contacts

    def list_storage_kinds(self, kinds: list[str]) -> list[str]:
        """Add the shared pool to the storage kinds a host offers."""
        if STORAGE_SHARED not in kinds:
            kinds.append(STORAGE_SHARED)
        return kinds

    def resolve_storage(self, storage: str, viewer_user_id: int) -> StorageLocation:
        """
        Resolve a storage string to the physical location it names.

        Args:
            storage: personal, shared, or a specific shared address
            viewer_user_id: User the storage string is relative to

        Raises:
            InvalidAddressError: If a shared address is malformed
            InvalidArgumentError: If the storage does not name one location
        """
        if is_all_shared_address(storage) or storage == STORAGE_ALL:
            raise InvalidArgumentError(f"{storage!r} does not name a single storage")

        if is_shared_address(storage):
            address = decode_address(storage, current_user_id=viewer_user_id)
            if address.is_personal:
                return StorageLocation(address.owner_user_id, STORAGE_PERSONAL)
            return StorageLocation(
                address.owner_user_id, STORAGE_ADDRESSBOOK, address.address_book_id
            )

        if storage in (STORAGE_PERSONAL, STORAGE_SHARED):
            return StorageLocation(viewer_user_id, storage)

        raise InvalidArgumentError(f"Unknown storage {storage!r}")

    def populate_contact(self, contact: Contact, viewer_user_id: int) -> Contact:
        """
        Present a loaded contact the way a viewer reaches it.

        A contact held in another user's personal book or address book is
        given the shared address of that book when the viewer holds a grant
        on it; any other contact is returned unchanged.
        """
        if contact.id_user == viewer_user_id:
            return contact
        if contact.storage not in (STORAGE_PERSONAL, STORAGE_ADDRESSBOOK):
            return contact

        book_id = contact.book_id()
        access = self.resolver.effective_access(viewer_user_id, contact.id_user, book_id)
        if access is None or access == AccessLevel.NONE:
            return contact

        return replace(contact, storage=encode_address(contact.id_user, book_id))

    def prepare_contact_for_create(self, contact: Contact, viewer_user_id: int) -> Contact:
        """
        Turn a contact addressed to a shared book into its physical form.

        The contact is moved to the book owner, their tenant and the physical
        storage of the book. Contacts with a plain storage are returned
        unchanged.
        """
        if not is_shared_address(contact.storage):
            return contact

        location = self.resolve_storage(contact.storage, viewer_user_id)
        tenant_id = self.directory.get_tenant_id(location.owner_user_id)
        return replace(
            contact,
            id_user=location.owner_user_id,
            id_tenant=contact.id_tenant if tenant_id is None else tenant_id,
            storage=location.storage,
            address_book_id=location.address_book_id,
        )

    def build_storage_filters(
        self, viewer_user_id: int, storage: str
    ) -> list[dict[str, Any]]:
        """
        Build the contact query predicates for listing a storage.

        - shared / all: the viewer's tenant pool plus every book shared with
          the viewer
        - Shared: every book shared with the viewer
        - a specific shared address: that book, if the viewer may see it
        - anything else: no predicates

        Returns:
            Predicates to be ORed; each maps contact columns to values
        """
        viewer = self.directory.get_user(viewer_user_id)
        if viewer is None:
            return []

        if storage in (STORAGE_SHARED, STORAGE_ALL) or is_all_shared_address(storage):
            filters: list[dict[str, Any]] = []
            if not is_all_shared_address(storage):
                filters.append({"storage": STORAGE_SHARED, "id_tenant": viewer.tenant_id})
            for entry in self.resolver.list_shared_books(viewer_user_id):
                address = decode_address(entry.storage_address)
                filters.append(
                    book_predicate(address.owner_user_id, address.address_book_id)
                )
            return filters

        if not is_shared_address(storage):
            return []

        address = decode_address(storage, current_user_id=viewer_user_id)
        if address.owner_user_id != viewer_user_id:
            access = self.resolver.effective_access(
                viewer_user_id, address.owner_user_id, address.address_book_id
            )
            if access is None or access == AccessLevel.NONE:
                return []
        return [book_predicate(address.owner_user_id, address.address_book_id)]

    def toggle_shared(self, viewer_user_id: int, uuids: list[str]) -> bool:
        """
        Move contacts between the viewer's personal book and the shared pool.

        A personal contact must belong to the viewer; a pooled contact must
        be in the viewer's tenant and becomes the viewer's personal contact.
        The change tag of each contact's previous location is bumped.

        Returns:
            True if every contact was toggled
        """
        viewer_tenant = self.directory.get_tenant_id(viewer_user_id)
        all_toggled = True

        for uuid in uuids:
            contact = self.contacts.get_contact(uuid, viewer_user_id)
            if contact is None:
                logger.warning(f"Cannot toggle missing contact {uuid}")
                all_toggled = False
                continue

            target = TOGGLE_PAIRS.get(contact.storage)
            allowed = (
                contact.storage == STORAGE_PERSONAL and contact.id_user == viewer_user_id
            ) or (contact.storage == STORAGE_SHARED and contact.id_tenant == viewer_tenant)
            if target is None or not allowed:
                logger.warning(
                    f"User {viewer_user_id} cannot toggle contact {uuid} "
                    f"in {contact.storage} storage"
                )
                all_toggled = False
                continue

            previous = StorageLocation(contact.id_user, contact.storage)
            updated = replace(
                contact, id_user=viewer_user_id, storage=target, address_book_id=None
            )
            if not self.contacts.update_contact(viewer_user_id, updated):
                logger.warning(f"Failed to store toggled contact {uuid}")
                all_toggled = False
                continue

            self.books.update_ctag(previous.owner_user_id, previous.ctag_storage)
            logger.debug(f"Contact {uuid} moved from {contact.storage} to {target}")

        return all_toggled
