"""
Share list reconciliation for owned address books.

An owner submits the complete list of shares a book should have. Group
entries are expanded to one entry per member, the result is diffed against
the stored grants, and the minimal set of deletes, creates and updates is
applied as one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from shared_contacts.config.sharing_config import SharingConfig
from shared_contacts.sharing.address import encode_address
from shared_contacts.sharing.errors import BookNotFoundError, InvalidArgumentError
from shared_contacts.sharing.models import (
    INDIVIDUAL_GRANT,
    PERSONAL_BOOK_ID,
    AccessLevel,
    Grant,
    ShareEntry,
    User,
)
from shared_contacts.utils.logging import get_audit_logger

if TYPE_CHECKING:
    from shared_contacts.api.interfaces import BookRegistry, Directory
    from shared_contacts.storage.db import SharingDatabase

logger = logging.getLogger(__name__)


def grant_uri(owner_public_id: str, book_uri: str) -> str:
    """Provenance uri stored on a grant: principals/<owner>/<book uri>."""
    return f"principals/{owner_public_id}/{book_uri}"


@dataclass
class ShareDiff:
    """
    Operations needed to bring a book's grants to a desired share list.

    Existing grants whose key is still wanted are always rewritten, whether
    or not their level changed.
    """

    to_create: list[ShareEntry] = field(default_factory=list)
    to_update: list[tuple[Grant, ShareEntry]] = field(default_factory=list)
    to_delete: list[Grant] = field(default_factory=list)

    @property
    def has_structural_changes(self) -> bool:
        """True when grants would be created or deleted."""
        return bool(self.to_create or self.to_delete)

    def summary(self) -> str:
        return (
            f"{len(self.to_create)} to create, {len(self.to_update)} to update, "
            f"{len(self.to_delete)} to delete"
        )


@dataclass
class _BookTarget:
    owner: User
    book_id: int
    uri: str

    @property
    def address(self) -> str:
        return encode_address(self.owner.id, self.book_id)


class ShareReconciler:
    """
    Applies owner-submitted share lists to the grant table.

    Usage:
        reconciler = ShareReconciler(db, directory, books)
        ok = reconciler.set_shares(
            owner_user_id=1,
            book_id=0,
            shares=[
                ShareEntry(AccessLevel.WRITE, public_id="bob@example.com"),
                ShareEntry(AccessLevel.READ, group_id=4),
            ],
        )
    """

    def __init__(
        self,
        db: SharingDatabase,
        directory: Directory,
        books: BookRegistry,
        config: Optional[SharingConfig] = None,
    ):
        self.db = db
        self.directory = directory
        self.books = books
        self.config = config or SharingConfig()
        self.audit = get_audit_logger()

    def _resolve_book(self, owner_user_id: int, book_id: int) -> _BookTarget:
        owner = self.directory.get_user(owner_user_id)
        if owner is None:
            raise BookNotFoundError(owner_user_id, book_id)

        if book_id != PERSONAL_BOOK_ID and not self.config.allow_address_books_management:
            raise InvalidArgumentError(
                "Only the personal address book can be shared "
                "(allow_address_books_management is off)"
            )

        uri = self.books.get_book_uri(owner_user_id, book_id)
        if uri is None:
            raise BookNotFoundError(owner_user_id, book_id)
        return _BookTarget(owner=owner, book_id=book_id, uri=uri)

    def expand_shares(self, owner: User, shares: list[ShareEntry]) -> list[ShareEntry]:
        """
        Replace group entries with one entry per group member.

        Member entries carry the originating group id. The owner never
        receives a grant on their own book. Unknown users and groups are
        skipped with a warning. When the same (grantee, group) key appears
        twice the last entry wins.
        """
        expanded: dict[tuple[str, int], ShareEntry] = {}

        for share in shares:
            access = AccessLevel(share.access)

            if share.is_group():
                group = self.directory.get_group(share.group_id)
                if group is None:
                    logger.warning(f"Skipping share for unknown group {share.group_id}")
                    continue
                for member in self.directory.get_group_members(group.id):
                    if member.id == owner.id:
                        continue
                    entry = ShareEntry(access, public_id=member.public_id, group_id=group.id)
                    expanded[entry.share_key()] = entry
                continue

            if not share.public_id:
                logger.warning("Skipping share entry without a grantee")
                continue

            grantee = self.directory.get_user_by_public_id(share.public_id)
            if grantee is None:
                logger.warning(f"Skipping share for unknown user {share.public_id}")
                continue
            if grantee.id == owner.id:
                logger.debug(f"Ignoring share of {owner.public_id} with themselves")
                continue

            entry = ShareEntry(access, public_id=grantee.public_id, group_id=share.group_id)
            expanded[entry.share_key()] = entry

        return list(expanded.values())

    def _diff(self, target: _BookTarget, shares: list[ShareEntry]) -> ShareDiff:
        desired = {
            entry.share_key(): entry for entry in self.expand_shares(target.owner, shares)
        }
        current = [
            Grant.from_row(row)
            for row in self.db.get_grants_for_book(target.owner.id, target.book_id)
        ]
        current_keys = {grant.share_key() for grant in current}

        diff = ShareDiff()
        for grant in current:
            wanted = desired.get(grant.share_key())
            if wanted is None:
                diff.to_delete.append(grant)
            else:
                diff.to_update.append((grant, wanted))
        for key, entry in desired.items():
            if key not in current_keys:
                diff.to_create.append(entry)
        return diff

    def compute_share_diff(
        self,
        owner_user_id: int,
        book_id: Optional[int],
        shares: Optional[list[ShareEntry]],
    ) -> ShareDiff:
        """
        Compute the operations set_shares() would apply, without applying them.

        Raises:
            InvalidArgumentError: If book_id or shares is missing
            BookNotFoundError: If the book does not resolve for the owner
        """
        if book_id is None or shares is None:
            raise InvalidArgumentError("book_id and shares are required")
        return self._diff(self._resolve_book(owner_user_id, book_id), shares)

    def set_shares(
        self,
        owner_user_id: int,
        book_id: Optional[int],
        shares: Optional[list[ShareEntry]],
    ) -> bool:
        """
        Replace the share list of a book.

        Args:
            owner_user_id: User owning the book
            book_id: Owned book id, or PERSONAL_BOOK_ID
            shares: Complete desired share list; an empty list unshares

        Returns:
            True if the grants now match the list, False if applying failed
            (nothing is changed in that case)

        Raises:
            InvalidArgumentError: If book_id or shares is missing
            BookNotFoundError: If the book does not resolve for the owner
        """
        if book_id is None or shares is None:
            raise InvalidArgumentError("book_id and shares are required")

        target = self._resolve_book(owner_user_id, book_id)
        uri = grant_uri(target.owner.public_id, target.uri)
        records: list[str] = []

        try:
            with self.db.transaction():
                diff = self._diff(target, shares)

                for grant in diff.to_delete:
                    self.db.delete_grant(grant.id)
                    records.append(
                        f"DELETE {target.address} principal={grant.principal_id} "
                        f"group={grant.group_id}"
                    )

                for entry in diff.to_create:
                    if entry.public_id is None:
                        raise InvalidArgumentError(
                            f"Share entry without a grantee: {entry}"
                        )
                    self.db.add_grant(
                        entry.public_id,
                        entry.access,
                        owner_user_id=target.owner.id,
                        address_book_id=target.book_id,
                        uri=uri,
                        group_id=entry.group_id,
                    )
                    records.append(
                        f"CREATE {target.address} principal={entry.public_id} "
                        f"group={entry.group_id} access={entry.access.label}"
                    )

                for grant, entry in diff.to_update:
                    self.db.update_grant_access(grant.id, entry.access)
                    records.append(
                        f"UPDATE {target.address} principal={grant.principal_id} "
                        f"group={grant.group_id} access={entry.access.label}"
                    )
        except Exception:
            logger.exception(f"Failed to update shares of {target.address}")
            return False

        for record in records:
            self.audit.info(record)
        logger.info(f"Updated shares of {target.address}: {diff.summary()}")
        return True

    def leave_share(self, user_id: int, owner_user_id: int, book_id: int) -> bool:
        """
        Let a grantee give up a book shared with them.

        Stores an explicit None-access direct grant, or lowers the existing
        direct grant to None, so group grants on the same book stop counting.

        Returns:
            True if the grantee held a grant on the book and now has None,
            False if there was nothing to leave or persisting failed
        """
        public_id = self.directory.get_user_public_id(user_id)
        if public_id is None:
            logger.warning(f"Cannot leave share: unknown user {user_id}")
            return False
        if owner_user_id == user_id:
            logger.warning(f"User {user_id} cannot leave their own address book")
            return False

        address = encode_address(owner_user_id, book_id)
        try:
            with self.db.transaction():
                grants = [
                    Grant.from_row(row)
                    for row in self.db.get_principal_book_grants(
                        public_id, owner_user_id, book_id
                    )
                ]
                if not grants:
                    logger.info(f"{public_id} holds no grant on {address}")
                    return False

                direct = next((g for g in grants if not g.is_group_grant()), None)
                if direct is not None:
                    self.db.update_grant_access(direct.id, AccessLevel.NONE)
                else:
                    self.db.add_grant(
                        public_id,
                        AccessLevel.NONE,
                        owner_user_id=owner_user_id,
                        address_book_id=book_id,
                        uri=grants[0].uri or None,
                        group_id=INDIVIDUAL_GRANT,
                    )
        except Exception:
            logger.exception(f"Failed to leave share {address} for {public_id}")
            return False

        self.audit.info(f"LEAVE {address} principal={public_id} access=none")
        return True

    def get_book_shares(self, owner_user_id: int, book_id: int) -> list[ShareEntry]:
        """
        Get the share list of a book as the owner sees it.

        Direct grants are listed per grantee; group-derived grants collapse
        into one entry per originating group, carrying the level of the
        group's first row.
        """
        entries: list[ShareEntry] = []
        seen_groups: set[int] = set()

        for row in self.db.get_grants_for_book(owner_user_id, book_id):
            grant = Grant.from_row(row)
            if grant.is_group_grant():
                if grant.group_id in seen_groups:
                    continue
                seen_groups.add(grant.group_id)
                entries.append(ShareEntry(grant.access, group_id=grant.group_id))
            else:
                entries.append(ShareEntry(grant.access, public_id=grant.principal_id))

        return entries
