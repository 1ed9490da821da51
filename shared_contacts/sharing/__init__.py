"""Address book sharing core."""

from shared_contacts.sharing.address import (
    SHARED_TAG,
    VirtualStorageAddress,
    decode_address,
    encode_address,
    is_all_shared_address,
    is_shared_address,
)
from shared_contacts.sharing.errors import (
    BookNotFoundError,
    InvalidAddressError,
    InvalidArgumentError,
    SharingError,
)
from shared_contacts.sharing.models import (
    AccessDecision,
    AccessLevel,
    Contact,
    EffectiveAccessEntry,
    Grant,
    ShareEntry,
)
from shared_contacts.sharing.propagation import GroupPropagation, UserDeletionContext
from shared_contacts.sharing.reconciler import ShareDiff, ShareReconciler
from shared_contacts.sharing.resolver import AccessResolver, merge_access
from shared_contacts.sharing.router import ContactStorageRouter, StorageLocation

__all__ = [
    "AccessDecision",
    "AccessLevel",
    "AccessResolver",
    "BookNotFoundError",
    "Contact",
    "ContactStorageRouter",
    "EffectiveAccessEntry",
    "Grant",
    "GroupPropagation",
    "InvalidAddressError",
    "InvalidArgumentError",
    "SHARED_TAG",
    "ShareDiff",
    "ShareEntry",
    "ShareReconciler",
    "SharingError",
    "StorageLocation",
    "UserDeletionContext",
    "VirtualStorageAddress",
    "decode_address",
    "encode_address",
    "is_all_shared_address",
    "is_shared_address",
    "merge_access",
]
