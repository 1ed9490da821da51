"""
Data models for address book sharing.

Provides the grant row, the share entries exchanged with owners, the merged
per-book view returned to grantees, and the directory records the core reads
from its collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

# Physical storage kinds of a contact
STORAGE_PERSONAL = "personal"
STORAGE_SHARED = "shared"  # tenant-wide shared pool
STORAGE_ADDRESSBOOK = "addressbook"  # owned book, see Contact.address_book_id
STORAGE_ALL = "all"  # listing filter only

# Address book id standing for "the owner's personal book"
PERSONAL_BOOK_ID = 0

# group_id of a grant made directly to a user
INDIVIDUAL_GRANT = 0


class AccessLevel(IntEnum):
    """Access a grantee has on a shared address book (persisted as an integer)."""

    NONE = 0
    READ = 1
    WRITE = 2

    @classmethod
    def parse(cls, value: str | int) -> AccessLevel:
        """
        Parse an access level from its name or integer value.

        Accepts "none", "read", "write" (any case) or 0, 1, 2.

        Raises:
            ValueError: If the value does not name an access level
        """
        if isinstance(value, int):
            return cls(value)
        text = value.strip()
        if text.isdecimal():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(
                f"Invalid access level {value!r}. Must be one of: none, read, write"
            ) from None

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class Grant:
    """
    One stored row of the grant table.

    Attributes:
        principal_id: Public id of the grantee user
        access: Access level granted
        address_book_id: Owned book id, or PERSONAL_BOOK_ID
        owner_user_id: User owning the book
        uri: Provenance uri of the shared book ("principals/<owner>/<book>")
        group_id: 0 for a direct grant, otherwise the originating group
        id: Row id (0 until stored)
    """

    principal_id: str
    access: AccessLevel
    address_book_id: int
    owner_user_id: int
    uri: str = ""
    group_id: int = INDIVIDUAL_GRANT
    id: int = 0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Grant:
        """Create a Grant from a database row mapping."""
        return cls(
            principal_id=row["principal_id"],
            access=AccessLevel(row["access"]),
            address_book_id=row["address_book_id"],
            owner_user_id=row["owner_user_id"],
            uri=row["uri"] or "",
            group_id=row["group_id"],
            id=row["id"],
        )

    def share_key(self) -> tuple[str, int]:
        """Key used when diffing a book's current grants against a desired list."""
        return (self.principal_id, self.group_id)

    def book_key(self) -> tuple[int, int]:
        """Concrete (owner, book) pair this grant points at."""
        return (self.owner_user_id, self.address_book_id)

    def is_group_grant(self) -> bool:
        return self.group_id > INDIVIDUAL_GRANT


@dataclass
class ShareEntry:
    """
    A share requested by (or reported to) a book owner.

    Exactly one of public_id or group_id identifies the grantee. After group
    expansion every entry carries a public_id; group_id then records the
    originating group.
    """

    access: AccessLevel
    public_id: Optional[str] = None
    group_id: int = INDIVIDUAL_GRANT

    def is_group(self) -> bool:
        return self.public_id is None and self.group_id > INDIVIDUAL_GRANT

    def share_key(self) -> tuple[str, int]:
        return (self.public_id or "", self.group_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"access": self.access.label}
        if self.public_id is not None:
            data["public_id"] = self.public_id
        if self.group_id:
            data["group_id"] = self.group_id
        return data


@dataclass
class EffectiveAccessEntry:
    """Merged access of one viewer on one concrete shared book."""

    storage_address: str
    owner_public_id: str
    access_level: AccessLevel
    group_id: int
    entity_id: int
    display_name: str
    ctag: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage": self.storage_address,
            "owner": self.owner_public_id,
            "access": self.access_level.label,
            "group_id": self.group_id,
            "entity_id": self.entity_id,
            "display_name": self.display_name,
            "ctag": self.ctag,
        }


@dataclass(frozen=True)
class AccessDecision:
    """
    Answer of an access check.

    ``definitive`` tells the surrounding pipeline to stop asking other checks;
    a non-definitive decision means "no opinion" and ``allowed`` is ignored.
    """

    allowed: bool
    definitive: bool = True

    @classmethod
    def allow(cls) -> AccessDecision:
        return cls(allowed=True)

    @classmethod
    def deny(cls) -> AccessDecision:
        return cls(allowed=False)

    @classmethod
    def no_opinion(cls) -> AccessDecision:
        return cls(allowed=False, definitive=False)


@dataclass
class User:
    """Directory user as seen by the sharing core."""

    id: int
    public_id: str
    tenant_id: int
    name: str = ""
    is_super_admin: bool = False


@dataclass
class Group:
    """Directory group; ``is_all`` marks the tenant's all-members group."""

    id: int
    tenant_id: int
    name: str
    is_all: bool = False


@dataclass
class AddressBook:
    """An address book owned by a user, other than their personal book."""

    id: int
    owner_user_id: int
    name: str
    uri: str
    shares: list[ShareEntry] = field(default_factory=list)


@dataclass
class Contact:
    """
    The contact fields the sharing core reads and rewrites.

    ``storage`` holds a physical storage kind, or a virtual shared address
    while the contact travels through the request that loaded or creates it.
    """

    uuid: str
    id_user: int
    id_tenant: int
    storage: str = STORAGE_PERSONAL
    address_book_id: Optional[int] = None
    full_name: str = ""
    email: str = ""

    def book_id(self) -> int:
        """Concrete book id of the contact's physical storage."""
        if self.storage == STORAGE_ADDRESSBOOK and self.address_book_id:
            return self.address_book_id
        return PERSONAL_BOOK_ID

    def to_dict(self) -> dict[str, Any]:
        return {
            "uuid": self.uuid,
            "id_user": self.id_user,
            "id_tenant": self.id_tenant,
            "storage": self.storage,
            "address_book_id": self.address_book_id,
            "full_name": self.full_name,
            "email": self.email,
        }


def storage_key(address_book_id: int) -> str:
    """
    Storage name used for change tags of a book.

    The personal book is "personal"; an owned book is "addressbook-<id>".
    """
    if address_book_id == PERSONAL_BOOK_ID:
        return STORAGE_PERSONAL
    return f"{STORAGE_ADDRESSBOOK}-{address_book_id}"
