"""
Grant propagation on group and user lifecycle events.

Group shares are stored per member, so every change of group membership,
group existence or user existence has to be mirrored in the grant table.
Each handler is synchronous; the caller runs the directory mutation and the
handler in the same SharingDatabase.transaction().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from shared_contacts.config.sharing_config import SharingConfig
from shared_contacts.sharing.address import encode_address
from shared_contacts.sharing.models import AccessLevel, User
from shared_contacts.utils.logging import get_audit_logger

if TYPE_CHECKING:
    from shared_contacts.api.interfaces import Directory
    from shared_contacts.storage.db import SharingDatabase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserDeletionContext:
    """
    Identity of a user captured before the directory deletes them.

    Returned by before_user_deleted() and handed back to
    after_user_deleted(), when the directory no longer knows the user.
    """

    user_id: int
    public_id: Optional[str]


class GroupPropagation:
    """
    Keeps group-derived grants consistent with the directory.

    Usage:
        propagation = GroupPropagation(db, directory)

        with db.transaction():
            db.add_group_member(group_id, user_id)
            propagation.on_group_members_added(group_id, [user_id])
    """

    def __init__(
        self,
        db: SharingDatabase,
        directory: Directory,
        config: Optional[SharingConfig] = None,
    ):
        self.db = db
        self.directory = directory
        self.config = config or SharingConfig()
        self.audit = get_audit_logger()

    def _users(self, user_ids: list[int]) -> list[User]:
        users = []
        for user_id in user_ids:
            user = self.directory.get_user(user_id)
            if user is None:
                logger.warning(f"Skipping unknown user {user_id}")
                continue
            users.append(user)
        return users

    def _copy_group_grants(self, group_id: int, user: User) -> int:
        """Give one user every (book, access) the group currently holds."""
        held = {
            (row["owner_user_id"], row["address_book_id"])
            for row in self.db.get_grants_for_principal(user.public_id)
            if row["group_id"] == group_id
        }

        created = 0
        for target in self.db.get_group_grant_targets(group_id):
            book_key = (target["owner_user_id"], target["address_book_id"])
            if target["owner_user_id"] == user.id or book_key in held:
                continue
            access = AccessLevel(target["access"])
            self.db.add_grant(
                user.public_id,
                access,
                owner_user_id=target["owner_user_id"],
                address_book_id=target["address_book_id"],
                uri=target["uri"],
                group_id=group_id,
            )
            held.add(book_key)
            created += 1
            self.audit.info(
                f"CREATE {encode_address(*book_key)} "
                f"principal={user.public_id} group={group_id} access={access.label}"
            )
        return created

    def on_group_members_added(self, group_id: int, user_ids: list[int]) -> int:
        """
        Copy the group's grants to new members.

        Returns:
            Number of grants created
        """
        created = 0
        for user in self._users(user_ids):
            created += self._copy_group_grants(group_id, user)
        logger.debug(
            f"Group {group_id}: {created} grant(s) created for {len(user_ids)} new member(s)"
        )
        return created

    def on_group_members_removed(self, group_id: int, user_ids: list[int]) -> int:
        """
        Remove the grants members held through the group.

        Returns:
            Number of grants deleted
        """
        deleted = 0
        for user in self._users(user_ids):
            count = self.db.delete_principal_group_grants(user.public_id, group_id)
            if count:
                self.audit.info(
                    f"DELETE principal={user.public_id} group={group_id} count={count}"
                )
            deleted += count
        logger.debug(f"Group {group_id}: {deleted} grant(s) removed")
        return deleted

    def on_group_deleted(self, group_id: int) -> int:
        """
        Remove every grant that exists through the group.

        Returns:
            Number of grants deleted
        """
        deleted = self.db.delete_group_grants(group_id)
        if deleted:
            self.audit.info(f"DELETE group={group_id} count={deleted}")
        logger.debug(f"Group {group_id} deleted: {deleted} grant(s) removed")
        return deleted

    def before_user_deleted(self, user_id: int) -> UserDeletionContext:
        """Capture the identity of a user about to be deleted."""
        return UserDeletionContext(
            user_id=user_id,
            public_id=self.directory.get_user_public_id(user_id),
        )

    def after_user_deleted(self, context: UserDeletionContext) -> int:
        """
        Remove every grant held by a deleted user, whatever its provenance.

        Returns:
            Number of grants deleted
        """
        if context.public_id is None:
            logger.debug(f"Deleted user {context.user_id} was unknown, no grants to remove")
            return 0

        deleted = self.db.delete_principal_grants(context.public_id)
        if deleted:
            self.audit.info(f"DELETE principal={context.public_id} count={deleted}")
        logger.debug(f"User {context.user_id} deleted: {deleted} grant(s) removed")
        return deleted

    def on_user_groups_replaced(self, user_id: int, group_ids: list[int]) -> tuple[int, int]:
        """
        Mirror a full replacement of a user's group list.

        Groups the user held grants through but no longer belongs to lose
        their rows; groups newly in the list contribute their grants.

        Returns:
            (grants created, grants deleted)
        """
        user = self.directory.get_user(user_id)
        if user is None:
            logger.warning(f"Cannot replace groups of unknown user {user_id}")
            return (0, 0)

        current = set(self.db.get_principal_group_ids(user.public_id))
        wanted = set(group_ids)

        deleted = 0
        for group_id in sorted(current - wanted):
            count = self.db.delete_principal_group_grants(user.public_id, group_id)
            if count:
                self.audit.info(
                    f"DELETE principal={user.public_id} group={group_id} count={count}"
                )
            deleted += count

        created = 0
        for group_id in group_ids:
            if group_id in current:
                continue
            created += self._copy_group_grants(group_id, user)

        logger.debug(
            f"User {user_id} groups replaced: {created} created, {deleted} deleted"
        )
        return (created, deleted)

    def on_user_created(self, user_id: int) -> int:
        """
        Give a new user the grants of their tenant's all-members group.

        Returns:
            Number of grants created
        """
        if not self.config.propagate_default_group:
            return 0

        user = self.directory.get_user(user_id)
        if user is None:
            logger.warning(f"Created user {user_id} is not in the directory")
            return 0

        group = self.directory.get_tenant_default_group(user.tenant_id)
        if group is None:
            return 0

        return self._copy_group_grants(group.id, user)
