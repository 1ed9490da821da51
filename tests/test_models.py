"""Tests for sharing data models."""

import pytest

from shared_contacts.sharing.models import (
    STORAGE_ADDRESSBOOK,
    STORAGE_PERSONAL,
    AccessDecision,
    AccessLevel,
    Contact,
    EffectiveAccessEntry,
    Grant,
    ShareEntry,
    storage_key,
)


class TestAccessLevel:
    """Tests for AccessLevel."""

    def test_values_are_ordered(self):
        assert AccessLevel.NONE < AccessLevel.READ < AccessLevel.WRITE
        assert int(AccessLevel.NONE) == 0
        assert int(AccessLevel.WRITE) == 2

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("none", AccessLevel.NONE),
            ("Read", AccessLevel.READ),
            ("WRITE", AccessLevel.WRITE),
            (" write ", AccessLevel.WRITE),
            ("1", AccessLevel.READ),
            (2, AccessLevel.WRITE),
        ],
    )
    def test_parse(self, value, expected):
        assert AccessLevel.parse(value) == expected

    @pytest.mark.parametrize("value", ["admin", "", "3", 7])
    def test_parse_rejects_unknown_levels(self, value):
        with pytest.raises(ValueError):
            AccessLevel.parse(value)

    def test_label(self):
        assert AccessLevel.READ.label == "read"


class TestGrant:
    """Tests for Grant."""

    def test_from_row(self):
        grant = Grant.from_row(
            {
                "id": 4,
                "principal_id": "bob@example.com",
                "access": 2,
                "address_book_id": 0,
                "owner_user_id": 1,
                "uri": None,
                "group_id": 3,
            }
        )
        assert grant.access is AccessLevel.WRITE
        assert grant.uri == ""
        assert grant.id == 4
        assert grant.share_key() == ("bob@example.com", 3)
        assert grant.book_key() == (1, 0)
        assert grant.is_group_grant() is True

    def test_direct_grant_is_not_group_grant(self):
        grant = Grant("bob@example.com", AccessLevel.READ, 0, 1)
        assert grant.is_group_grant() is False

    def test_unstored_grant_has_id_zero(self):
        assert Grant("bob@example.com", AccessLevel.READ, 0, 1).id == 0


class TestShareEntry:
    """Tests for ShareEntry."""

    def test_group_entry(self):
        entry = ShareEntry(AccessLevel.READ, group_id=5)
        assert entry.is_group() is True
        assert entry.to_dict() == {"access": "read", "group_id": 5}

    def test_user_entry(self):
        entry = ShareEntry(AccessLevel.WRITE, public_id="bob@example.com")
        assert entry.is_group() is False
        assert entry.share_key() == ("bob@example.com", 0)
        assert entry.to_dict() == {"access": "write", "public_id": "bob@example.com"}

    def test_expanded_member_entry_is_not_group(self):
        entry = ShareEntry(AccessLevel.READ, public_id="bob@example.com", group_id=5)
        assert entry.is_group() is False
        assert entry.share_key() == ("bob@example.com", 5)


class TestEffectiveAccessEntry:
    def test_to_dict(self):
        entry = EffectiveAccessEntry(
            storage_address="Shared-1-personal",
            owner_public_id="alice@example.com",
            access_level=AccessLevel.READ,
            group_id=0,
            entity_id=0,
            display_name="Alice (personal)",
            ctag=3,
        )
        data = entry.to_dict()
        assert data["storage"] == "Shared-1-personal"
        assert data["access"] == "read"
        assert data["ctag"] == 3


class TestAccessDecision:
    def test_factories(self):
        assert AccessDecision.allow() == AccessDecision(True, True)
        assert AccessDecision.deny() == AccessDecision(False, True)
        assert AccessDecision.no_opinion().definitive is False


class TestContact:
    def test_book_id_of_personal_contact(self):
        contact = Contact("c1", id_user=1, id_tenant=1)
        assert contact.book_id() == 0

    def test_book_id_of_addressbook_contact(self):
        contact = Contact(
            "c1", id_user=1, id_tenant=1, storage=STORAGE_ADDRESSBOOK, address_book_id=9
        )
        assert contact.book_id() == 9

    def test_storage_key(self):
        assert storage_key(0) == STORAGE_PERSONAL
        assert storage_key(9) == "addressbook-9"
