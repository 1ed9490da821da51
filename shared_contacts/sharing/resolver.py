"""
Effective access resolution for shared address books.

Turns the raw grant rows of a viewer into one entry per concrete book, and
answers point access checks for a contact or a book.

Merge order:
    Rows for the same (owner, book) are folded left to right in insertion
    order. The first row seeds the aggregate. A direct grant overwrites it.
    A group grant that is not Read lowers it, or forces None; a group Read
    grant sets Read unless the aggregate is Write or None. A later Write
    group grant therefore never raises an earlier Read, and a None is only
    lifted by a direct grant. The outcome depends on row order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Optional

from shared_contacts.sharing.address import (
    decode_address,
    encode_address,
    is_all_shared_address,
    is_shared_address,
)
from shared_contacts.sharing.models import (
    PERSONAL_BOOK_ID,
    STORAGE_SHARED,
    AccessDecision,
    AccessLevel,
    Contact,
    EffectiveAccessEntry,
    Grant,
    User,
    storage_key,
)

if TYPE_CHECKING:
    from shared_contacts.api.interfaces import BookRegistry, Directory
    from shared_contacts.storage.db import SharingDatabase

logger = logging.getLogger(__name__)


def merge_access(
    aggregate: AccessLevel, incoming: AccessLevel, from_group: bool
) -> AccessLevel:
    """
    Fold one more grant row into a running access aggregate.

    A direct row replaces the aggregate. Group rows never lift a None
    aggregate: once None has been reached through a group row or a direct
    row, only a later direct row changes it. A group Read after None stays
    None, so a grantee who left a book keeps it hidden whatever groups
    share it.

    Args:
        aggregate: Access merged so far for the book
        incoming: Access of the next row
        from_group: Whether the next row exists through group membership

    Returns:
        The new aggregate
    """
    if not from_group:
        return incoming

    if incoming != AccessLevel.READ:
        if aggregate > incoming or incoming == AccessLevel.NONE:
            return incoming
        return aggregate

    if aggregate not in (AccessLevel.WRITE, AccessLevel.NONE):
        return AccessLevel.READ
    return aggregate


def fold_grants(grants: Iterable[Grant]) -> tuple[Optional[AccessLevel], Optional[Grant]]:
    """
    Merge the grants of one book, in the order given.

    Returns:
        (merged access, grant that last set it); (None, None) for no rows
    """
    aggregate: Optional[AccessLevel] = None
    source: Optional[Grant] = None
    for grant in grants:
        if aggregate is None:
            aggregate, source = grant.access, grant
            continue
        merged = merge_access(aggregate, grant.access, grant.is_group_grant())
        if merged != aggregate or not grant.is_group_grant():
            source = grant
        aggregate = merged
    return aggregate, source


class AccessResolver:
    """
    Computes what a viewer can see through shares.

    Usage:
        resolver = AccessResolver(db, directory, books)

        for entry in resolver.list_shared_books(viewer_id):
            print(entry.storage_address, entry.access_level)

        decision = resolver.check_access(viewer_id, contact, AccessLevel.WRITE)
        if decision.definitive and not decision.allowed:
            ...
    """

    def __init__(
        self,
        db: SharingDatabase,
        directory: Directory,
        books: BookRegistry,
    ):
        self.db = db
        self.directory = directory
        self.books = books

    def _grants_for(self, public_id: str) -> list[Grant]:
        return [Grant.from_row(row) for row in self.db.get_grants_for_principal(public_id)]

    def _display_name(self, owner: User, book_id: int) -> Optional[str]:
        if book_id == PERSONAL_BOOK_ID:
            return f"{owner.name or owner.public_id} (personal)"
        book = self.books.get_book(book_id)
        if book is None or book.owner_user_id != owner.id:
            return None
        return book.name

    def list_shared_books(self, viewer_user_id: int) -> list[EffectiveAccessEntry]:
        """
        List the books shared with a viewer.

        Grants on books that no longer exist, or whose owner is gone, are
        skipped. Books whose merged access is None are not listed.

        Args:
            viewer_user_id: The user asking

        Returns:
            One EffectiveAccessEntry per concrete shared book, in the order
            the books were first shared with the viewer
        """
        viewer = self.directory.get_user(viewer_user_id)
        if viewer is None:
            logger.debug(f"Unknown viewer {viewer_user_id}, no shared books")
            return []

        by_book: dict[tuple[int, int], list[Grant]] = {}
        for grant in self._grants_for(viewer.public_id):
            if grant.owner_user_id == viewer.id:
                continue
            by_book.setdefault(grant.book_key(), []).append(grant)

        entries: list[EffectiveAccessEntry] = []
        for (owner_id, book_id), grants in by_book.items():
            access, source = fold_grants(grants)
            if access is None or source is None or access == AccessLevel.NONE:
                continue

            owner = self.directory.get_user(owner_id)
            if owner is None:
                logger.debug(f"Skipping grant on book of missing user {owner_id}")
                continue
            display_name = self._display_name(owner, book_id)
            if display_name is None:
                logger.debug(f"Skipping grant on missing book {book_id}")
                continue

            entries.append(
                EffectiveAccessEntry(
                    storage_address=encode_address(owner_id, book_id),
                    owner_public_id=owner.public_id,
                    access_level=access,
                    group_id=source.group_id,
                    entity_id=book_id,
                    display_name=display_name,
                    ctag=self.books.get_ctag(owner_id, storage_key(book_id)),
                )
            )

        logger.debug(
            f"User {viewer_user_id} sees {len(entries)} shared book(s)"
        )
        return entries

    def effective_access(
        self, viewer_user_id: int, owner_user_id: int, book_id: int
    ) -> Optional[AccessLevel]:
        """
        Merged access of a viewer on one concrete book.

        Grants left behind on a deleted book, or on a book of a deleted
        owner, count as no grant.

        Returns:
            The merged level, or None when the viewer holds no grant on it
        """
        public_id = self.directory.get_user_public_id(viewer_user_id)
        if public_id is None:
            return None
        if self.directory.get_user(owner_user_id) is None:
            logger.debug(f"Ignoring grants on book of missing user {owner_user_id}")
            return None
        if self.books.get_book_uri(owner_user_id, book_id) is None:
            logger.debug(f"Ignoring grants on missing book {book_id}")
            return None
        rows = self.db.get_principal_book_grants(public_id, owner_user_id, book_id)
        access, _ = fold_grants(Grant.from_row(row) for row in rows)
        return access

    def _decide_from_grant(
        self,
        viewer_user_id: int,
        owner_user_id: int,
        book_id: int,
        required: Optional[AccessLevel],
    ) -> AccessDecision:
        access = self.effective_access(viewer_user_id, owner_user_id, book_id)
        if access is None:
            return AccessDecision.no_opinion()
        if access == AccessLevel.NONE:
            return AccessDecision.deny()
        if required is not None:
            # Only a Write grant answers a requirement, and only a Write one
            if required == access == AccessLevel.WRITE:
                return AccessDecision.allow()
            return AccessDecision.deny()
        return AccessDecision.allow()

    def check_access(
        self,
        viewer_user_id: int,
        contact: Contact,
        required: Optional[AccessLevel] = None,
    ) -> AccessDecision:
        """
        Check a viewer's access to a contact.

        Args:
            viewer_user_id: The user asking
            contact: The contact, with physical or shared-address storage
            required: Access the caller needs, if any

        Returns:
            AccessDecision; definitive=False when no grant has an opinion
        """
        if contact.id_user == viewer_user_id:
            return AccessDecision.allow()

        if contact.storage == STORAGE_SHARED:
            viewer = self.directory.get_user(viewer_user_id)
            if viewer is None:
                return AccessDecision.deny()
            if viewer.tenant_id == contact.id_tenant or viewer.is_super_admin:
                return AccessDecision.allow()
            return AccessDecision.deny()

        if is_shared_address(contact.storage) and not is_all_shared_address(
            contact.storage
        ):
            address = decode_address(contact.storage, current_user_id=contact.id_user)
            owner_id, book_id = address.owner_user_id, address.address_book_id
        else:
            owner_id, book_id = contact.id_user, contact.book_id()

        return self._decide_from_grant(viewer_user_id, owner_id, book_id, required)

    def check_book_access(
        self,
        viewer_user_id: int,
        storage: str,
        required: Optional[AccessLevel] = None,
    ) -> AccessDecision:
        """
        Check a viewer's access to a book named by a storage string.

        Storage strings outside the shared namespace, and the bare "all
        shared books" address, get no opinion.

        Raises:
            InvalidAddressError: If the storage is a malformed shared address
        """
        if not is_shared_address(storage) or is_all_shared_address(storage):
            return AccessDecision.no_opinion()

        address = decode_address(storage, current_user_id=viewer_user_id)
        if address.owner_user_id == viewer_user_id:
            return AccessDecision.allow()

        return self._decide_from_grant(
            viewer_user_id, address.owner_user_id, address.address_book_id, required
        )
