"""
Sharing module: the sharing core bound to a host's extension points.

SharingModule owns one instance of each core component and exposes a method
per extension point. register() adds those methods to a HookRegistry under
the point names listed in EXTENSION_POINTS.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from shared_contacts.api.interfaces import BookRegistry, ContactStore, Directory
from shared_contacts.api.local import LocalBookRegistry, LocalContactStore, LocalDirectory
from shared_contacts.config.sharing_config import SharingConfig
from shared_contacts.hooks import HookRegistry, HookResult
from shared_contacts.sharing.address import is_shared_address
from shared_contacts.sharing.models import (
    PERSONAL_BOOK_ID,
    STORAGE_ALL,
    STORAGE_SHARED,
    AccessLevel,
    Contact,
)
from shared_contacts.sharing.propagation import GroupPropagation, UserDeletionContext
from shared_contacts.sharing.reconciler import ShareReconciler
from shared_contacts.sharing.resolver import AccessResolver
from shared_contacts.sharing.router import ContactStorageRouter
from shared_contacts.storage.db import SharingDatabase

logger = logging.getLogger(__name__)

# Name the module's implementations are registered under
HOOK_NAME = "shared_contacts"

EXTENSION_POINTS = (
    "list_storage_kinds",
    "filter_contacts_by_storage",
    "check_access_to_object",
    "check_access_to_book",
    "get_address_books",
    "populate_contact",
    "update_shared_contacts",
    "group_members_added",
    "group_members_removed",
    "group_deleted",
    "before_user_deleted",
    "after_user_deleted",
    "user_groups_replaced",
    "user_created",
)


class SharingModule:
    """
    Address book sharing wired to named extension points.

    Usage:
        db = SharingDatabase(":memory:")
        db.initialize()
        module = SharingModule.from_database(db)

        hooks = HookRegistry()
        module.register(hooks)

        result = hooks.run("check_access_to_object", viewer_id, contact)
    """

    def __init__(
        self,
        db: SharingDatabase,
        directory: Directory,
        books: BookRegistry,
        contacts: ContactStore,
        config: Optional[SharingConfig] = None,
    ):
        self.db = db
        self.config = config or SharingConfig()
        self.directory = directory
        self.books = books
        self.contacts = contacts

        self.resolver = AccessResolver(db, directory, books)
        self.reconciler = ShareReconciler(db, directory, books, self.config)
        self.propagation = GroupPropagation(db, directory, self.config)
        self.router = ContactStorageRouter(self.resolver, directory, books, contacts)

    @classmethod
    def from_database(
        cls, db: SharingDatabase, config: Optional[SharingConfig] = None
    ) -> SharingModule:
        """Build a module whose collaborators are the database's local tables."""
        return cls(
            db,
            LocalDirectory(db),
            LocalBookRegistry(db),
            LocalContactStore(db),
            config,
        )

    def register(self, registry: HookRegistry) -> None:
        """Register every extension point implementation."""
        for point in EXTENSION_POINTS:
            registry.register(point, HOOK_NAME, getattr(self, point))
        logger.debug(f"Registered {len(EXTENSION_POINTS)} sharing hooks")

    # =========================================================================
    # Storage and contacts
    # =========================================================================

    def list_storage_kinds(self, kinds: list[str]) -> HookResult:
        return HookResult.passthrough(self.router.list_storage_kinds(kinds))

    def filter_contacts_by_storage(
        self, viewer_user_id: int, storage: str
    ) -> Optional[HookResult]:
        """
        Contact query predicates for a storage.

        A shared address is answered definitively; the shared pool and the
        "all" listing leave room for other implementations.
        """
        if is_shared_address(storage):
            return HookResult.final(
                self.router.build_storage_filters(viewer_user_id, storage)
            )
        if storage in (STORAGE_SHARED, STORAGE_ALL):
            return HookResult.passthrough(
                self.router.build_storage_filters(viewer_user_id, storage)
            )
        return None

    def populate_contact(self, viewer_user_id: int, contact: Contact) -> HookResult:
        return HookResult.passthrough(self.router.populate_contact(contact, viewer_user_id))

    def update_shared_contacts(self, viewer_user_id: int, uuids: list[str]) -> HookResult:
        return HookResult.final(self.router.toggle_shared(viewer_user_id, uuids))

    # =========================================================================
    # Access checks
    # =========================================================================

    def check_access_to_object(
        self,
        viewer_user_id: int,
        contact: Contact,
        required: Optional[AccessLevel] = None,
    ) -> Optional[HookResult]:
        decision = self.resolver.check_access(viewer_user_id, contact, required)
        if not decision.definitive:
            return None
        return HookResult.final(decision.allowed)

    def check_access_to_book(
        self,
        viewer_user_id: int,
        storage: str,
        required: Optional[AccessLevel] = None,
    ) -> Optional[HookResult]:
        decision = self.resolver.check_book_access(viewer_user_id, storage, required)
        if not decision.definitive:
            return None
        return HookResult.final(decision.allowed)

    # =========================================================================
    # Address book listing
    # =========================================================================

    def list_owned_books(self, owner_user_id: int) -> list[dict[str, Any]]:
        """The owner's personal book followed by their other address books."""
        books: list[dict[str, Any]] = [
            {"entity_id": PERSONAL_BOOK_ID, "name": "Personal", "storage": "personal"}
        ]
        for book in self.books.list_user_books(owner_user_id):
            books.append(
                {"entity_id": book.id, "name": book.name, "storage": book.uri}
            )
        return books

    def get_address_books(
        self, viewer_user_id: int, books: list[dict[str, Any]]
    ) -> HookResult:
        """
        Decorate the viewer's own books with their shares and append the
        books shared with the viewer.

        Each owned book dict must carry an "entity_id" (0 for the personal
        book); it receives a "shares" list. Shared books are appended in
        EffectiveAccessEntry.to_dict() form with "shared": True.
        """
        for book in books:
            book_id = book.get("entity_id")
            if book_id is None:
                continue
            if book_id != PERSONAL_BOOK_ID and not self.config.allow_address_books_management:
                continue
            book["shares"] = [
                share.to_dict()
                for share in self.reconciler.get_book_shares(viewer_user_id, book_id)
            ]

        for entry in self.resolver.list_shared_books(viewer_user_id):
            shared = entry.to_dict()
            shared["shared"] = True
            books.append(shared)

        return HookResult.passthrough(books)

    # =========================================================================
    # Directory events
    # =========================================================================

    def group_members_added(self, group_id: int, user_ids: list[int]) -> HookResult:
        return HookResult.passthrough(
            self.propagation.on_group_members_added(group_id, user_ids)
        )

    def group_members_removed(self, group_id: int, user_ids: list[int]) -> HookResult:
        return HookResult.passthrough(
            self.propagation.on_group_members_removed(group_id, user_ids)
        )

    def group_deleted(self, group_id: int) -> HookResult:
        return HookResult.passthrough(self.propagation.on_group_deleted(group_id))

    def before_user_deleted(self, user_id: int) -> HookResult:
        """Capture the user's identity; pass the value to after_user_deleted."""
        return HookResult.passthrough(self.propagation.before_user_deleted(user_id))

    def after_user_deleted(self, context: UserDeletionContext) -> HookResult:
        return HookResult.passthrough(self.propagation.after_user_deleted(context))

    def user_groups_replaced(self, user_id: int, group_ids: list[int]) -> HookResult:
        return HookResult.passthrough(
            self.propagation.on_user_groups_replaced(user_id, group_ids)
        )

    def user_created(self, user_id: int) -> HookResult:
        return HookResult.passthrough(self.propagation.on_user_created(user_id))
