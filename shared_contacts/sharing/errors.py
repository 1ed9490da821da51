"""
Exceptions raised by the sharing core.

Denied access is never an exception; access checks return an AccessDecision.
"""


class SharingError(Exception):
    """Base class for sharing errors."""

    pass


class InvalidAddressError(SharingError, ValueError):
    """Raised when a virtual storage address cannot be decoded."""

    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Invalid storage address {address!r}: {reason}")


class InvalidArgumentError(SharingError, ValueError):
    """Raised when a required argument is missing or malformed."""

    pass


class BookNotFoundError(SharingError):
    """Raised when an operation requires an address book that does not resolve."""

    def __init__(self, owner_user_id: int, book_id: int):
        self.owner_user_id = owner_user_id
        self.book_id = book_id
        super().__init__(
            f"Address book {book_id} of user {owner_user_id} does not exist"
        )
