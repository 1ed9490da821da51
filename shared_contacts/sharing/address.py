"""
Virtual storage addresses for shared address books.

A shared book view is named by a string of the form::

    Shared                      all books shared with the current user
    Shared-<ownerUserId>-<bookId>
    Shared-<ownerUserId>-personal
    Shared-<bookId>             legacy form, owner is the current user

The string form is the stable external format. Inside the package it is
decoded once into a VirtualStorageAddress and never passed around raw.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from shared_contacts.sharing.errors import InvalidAddressError
from shared_contacts.sharing.models import PERSONAL_BOOK_ID

SHARED_TAG = "Shared"
PERSONAL_SEGMENT = "personal"
DELIMITER = "-"

BookRef = Union[int, str]


@dataclass(frozen=True)
class VirtualStorageAddress:
    """
    One concrete shared book: (owner, book).

    Attributes:
        owner_user_id: User owning the book
        address_book_id: Owned book id, or PERSONAL_BOOK_ID for the personal book
    """

    owner_user_id: int
    address_book_id: int = PERSONAL_BOOK_ID

    @property
    def is_personal(self) -> bool:
        return self.address_book_id == PERSONAL_BOOK_ID

    def encode(self) -> str:
        return encode_address(self.owner_user_id, self.address_book_id)

    def __str__(self) -> str:
        return self.encode()


def _is_number(value: str) -> bool:
    # ASCII only, so a decoded address always re-encodes to the same string
    return value.isascii() and value.isdecimal()


def _book_segment(book: BookRef) -> str:
    if book == PERSONAL_SEGMENT or book == PERSONAL_BOOK_ID:
        return PERSONAL_SEGMENT
    if isinstance(book, int) and not isinstance(book, bool) and book > 0:
        return str(book)
    if isinstance(book, str) and _is_number(book) and int(book) > 0:
        return book
    raise InvalidAddressError(str(book), "book must be a positive id or 'personal'")


def encode_address(owner_user_id: int, book: BookRef) -> str:
    """
    Encode an (owner, book) pair.

    Args:
        owner_user_id: Numeric id of the owning user
        book: Book id, PERSONAL_BOOK_ID, or "personal"

    Returns:
        "Shared-<owner>-<bookId>" or "Shared-<owner>-personal"
    """
    if isinstance(owner_user_id, bool) or not isinstance(owner_user_id, int):
        raise InvalidAddressError(str(owner_user_id), "owner must be a user id")
    if owner_user_id <= 0:
        raise InvalidAddressError(str(owner_user_id), "owner must be a user id")
    return DELIMITER.join((SHARED_TAG, str(owner_user_id), _book_segment(book)))


def is_shared_address(value: Optional[str]) -> bool:
    """Check whether a storage string belongs to the shared namespace."""
    if not value:
        return False
    return value.split(DELIMITER, 1)[0] == SHARED_TAG


def is_all_shared_address(value: Optional[str]) -> bool:
    """Check for the bare tag naming "all books shared with me"."""
    return value == SHARED_TAG


def decode_address(
    address: str, current_user_id: Optional[int] = None
) -> VirtualStorageAddress:
    """
    Decode a shared storage address.

    The bare tag is not decodable; check is_all_shared_address() first.

    Args:
        address: Encoded address
        current_user_id: Owner implied by the legacy two-part form

    Returns:
        VirtualStorageAddress for the named book

    Raises:
        InvalidAddressError: On a wrong tag, wrong segment count, a
            non-numeric owner, or a malformed book segment
    """
    if not isinstance(address, str) or not address:
        raise InvalidAddressError(str(address), "empty address")

    parts = address.split(DELIMITER)
    if parts[0] != SHARED_TAG:
        raise InvalidAddressError(address, f"missing {SHARED_TAG!r} tag")

    if len(parts) == 2:
        book_part = parts[1]
        if not _is_number(book_part) or int(book_part) == 0:
            raise InvalidAddressError(address, "legacy form needs a numeric book id")
        if current_user_id is None:
            raise InvalidAddressError(address, "legacy form needs the current user")
        return VirtualStorageAddress(current_user_id, int(book_part))

    if len(parts) != 3:
        raise InvalidAddressError(
            address, f"expected 3 segments, got {len(parts)}"
        )

    owner_part, book_part = parts[1], parts[2]
    if not _is_number(owner_part) or int(owner_part) == 0:
        raise InvalidAddressError(address, "owner must be a numeric user id")

    if book_part == PERSONAL_SEGMENT:
        book_id = PERSONAL_BOOK_ID
    elif _is_number(book_part) and int(book_part) > 0:
        book_id = int(book_part)
    else:
        raise InvalidAddressError(address, "book must be a numeric id or 'personal'")

    return VirtualStorageAddress(int(owner_part), book_id)
