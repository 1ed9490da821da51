"""
Tests for share list reconciliation.

Tests group expansion, the create/update/delete diff, failure atomicity,
leaving a share and the owner's view of a book's shares.
"""

import logging
import sqlite3
from unittest.mock import patch

import pytest

from shared_contacts.api.local import LocalBookRegistry, LocalDirectory
from shared_contacts.config.sharing_config import SharingConfig
from shared_contacts.sharing.errors import BookNotFoundError, InvalidArgumentError
from shared_contacts.sharing.models import AccessLevel, ShareEntry
from shared_contacts.sharing.reconciler import ShareReconciler, grant_uri
from shared_contacts.sharing.resolver import AccessResolver
from shared_contacts.storage.db import SharingDatabase
from shared_contacts.utils.logging import AUDIT_LOGGER_NAME, setup_audit_logger

NONE = AccessLevel.NONE
READ = AccessLevel.READ
WRITE = AccessLevel.WRITE


@pytest.fixture
def db():
    """
    In-memory database with alice (1), bob (2), carol (3), dave (4) and
    group 1 holding alice, bob and carol.
    """
    database = SharingDatabase(":memory:")
    database.initialize()
    for public_id in ("alice", "bob", "carol", "dave"):
        database.add_user(f"{public_id}@example.com", tenant_id=1, name=public_id.title())
    group_id = database.add_group("Sales", tenant_id=1)
    for user_id in (1, 2, 3):
        database.add_group_member(group_id, user_id)
    return database


@pytest.fixture
def reconciler(db):
    return ShareReconciler(db, LocalDirectory(db), LocalBookRegistry(db))


@pytest.fixture
def resolver(db):
    return AccessResolver(db, LocalDirectory(db), LocalBookRegistry(db))


def grant_summary(db, owner_user_id=1, book_id=0):
    return [
        (row["principal_id"], row["group_id"], row["access"])
        for row in db.get_grants_for_book(owner_user_id, book_id)
    ]


class TestSetSharesValidation:
    """Tests for argument and book validation."""

    def test_missing_book_id_raises(self, reconciler):
        with pytest.raises(InvalidArgumentError):
            reconciler.set_shares(1, None, [])

    def test_missing_shares_raises(self, reconciler):
        with pytest.raises(InvalidArgumentError):
            reconciler.set_shares(1, 0, None)

    def test_unknown_owner_raises(self, reconciler):
        with pytest.raises(BookNotFoundError):
            reconciler.set_shares(42, 0, [])

    def test_unknown_book_raises(self, reconciler):
        with pytest.raises(BookNotFoundError):
            reconciler.set_shares(1, 99, [])

    def test_book_of_other_owner_raises(self, db, reconciler):
        book_id = db.add_address_book(2, "Bob's")
        with pytest.raises(BookNotFoundError):
            reconciler.set_shares(1, book_id, [])

    def test_books_management_disabled_allows_only_personal(self, db):
        book_id = db.add_address_book(1, "Clients")
        reconciler = ShareReconciler(
            db,
            LocalDirectory(db),
            LocalBookRegistry(db),
            SharingConfig(allow_address_books_management=False),
        )

        with pytest.raises(InvalidArgumentError):
            reconciler.set_shares(1, book_id, [])
        assert reconciler.set_shares(1, 0, []) is True


class TestSetShares:
    """Tests for ShareReconciler.set_shares."""

    def test_direct_share_creates_grant(self, db, reconciler):
        ok = reconciler.set_shares(1, 0, [ShareEntry(WRITE, public_id="bob@example.com")])

        assert ok is True
        rows = db.get_grants_for_book(1, 0)
        assert len(rows) == 1
        assert rows[0]["principal_id"] == "bob@example.com"
        assert rows[0]["access"] == WRITE
        assert rows[0]["group_id"] == 0
        assert rows[0]["uri"] == grant_uri("alice@example.com", "personal")

    def test_owned_book_grant_uri(self, db, reconciler):
        book_id = db.add_address_book(1, "Clients", uri="clients")
        reconciler.set_shares(1, book_id, [ShareEntry(READ, public_id="bob@example.com")])

        rows = db.get_grants_for_book(1, book_id)
        assert rows[0]["uri"] == "principals/alice@example.com/clients"

    def test_group_share_is_materialized_per_member(self, db, reconciler):
        reconciler.set_shares(1, 0, [ShareEntry(READ, group_id=1)])

        # alice owns the book and is skipped
        assert grant_summary(db) == [
            ("bob@example.com", 1, READ),
            ("carol@example.com", 1, READ),
        ]

    def test_unknown_grantees_are_skipped(self, db, reconciler):
        ok = reconciler.set_shares(
            1,
            0,
            [
                ShareEntry(READ, public_id="nobody@example.com"),
                ShareEntry(READ, group_id=77),
                ShareEntry(WRITE, public_id="dave@example.com"),
            ],
        )

        assert ok is True
        assert grant_summary(db) == [("dave@example.com", 0, WRITE)]

    def test_sharing_with_owner_is_ignored(self, db, reconciler):
        reconciler.set_shares(1, 0, [ShareEntry(WRITE, public_id="alice@example.com")])
        assert grant_summary(db) == []

    def test_direct_and_group_rows_coexist(self, db, reconciler):
        reconciler.set_shares(
            1,
            0,
            [ShareEntry(WRITE, public_id="bob@example.com"), ShareEntry(READ, group_id=1)],
        )

        assert ("bob@example.com", 0, WRITE) in grant_summary(db)
        assert ("bob@example.com", 1, READ) in grant_summary(db)

    def test_level_change_updates_in_place(self, db, reconciler):
        reconciler.set_shares(1, 0, [ShareEntry(READ, public_id="bob@example.com")])
        grant_id = db.get_grants_for_book(1, 0)[0]["id"]

        reconciler.set_shares(1, 0, [ShareEntry(WRITE, public_id="bob@example.com")])

        rows = db.get_grants_for_book(1, 0)
        assert [(r["id"], r["access"]) for r in rows] == [(grant_id, WRITE)]

    def test_missing_entries_are_deleted(self, db, reconciler):
        reconciler.set_shares(
            1,
            0,
            [ShareEntry(READ, public_id="bob@example.com"), ShareEntry(READ, group_id=1)],
        )

        reconciler.set_shares(1, 0, [ShareEntry(READ, group_id=1)])

        assert grant_summary(db) == [
            ("bob@example.com", 1, READ),
            ("carol@example.com", 1, READ),
        ]

    def test_empty_list_unshares(self, db, reconciler):
        reconciler.set_shares(1, 0, [ShareEntry(READ, group_id=1)])
        reconciler.set_shares(1, 0, [])
        assert db.get_grant_count() == 0

    def test_other_books_are_untouched(self, db, reconciler):
        book_id = db.add_address_book(1, "Clients")
        reconciler.set_shares(1, book_id, [ShareEntry(READ, public_id="bob@example.com")])

        reconciler.set_shares(1, 0, [])

        assert len(db.get_grants_for_book(1, book_id)) == 1

    def test_second_run_has_no_structural_changes(self, reconciler):
        shares = [
            ShareEntry(WRITE, public_id="dave@example.com"),
            ShareEntry(READ, group_id=1),
        ]
        reconciler.set_shares(1, 0, shares)

        diff = reconciler.compute_share_diff(1, 0, shares)

        assert diff.to_create == []
        assert diff.to_delete == []
        assert len(diff.to_update) == 3
        assert diff.has_structural_changes is False

    def test_diff_does_not_write(self, db, reconciler):
        diff = reconciler.compute_share_diff(
            1, 0, [ShareEntry(READ, public_id="bob@example.com")]
        )

        assert len(diff.to_create) == 1
        assert db.get_grant_count() == 0

    def test_effective_access_follows_merge_order(self, reconciler, resolver):
        # Direct Write row is stored before the group Read rows
        reconciler.set_shares(
            1,
            0,
            [ShareEntry(WRITE, public_id="bob@example.com"), ShareEntry(READ, group_id=1)],
        )

        assert resolver.effective_access(2, 1, 0) == WRITE
        assert resolver.effective_access(3, 1, 0) == READ


class TestSetSharesFailure:
    """Tests that a failed reconciliation leaves no partial state."""

    def test_persistence_error_rolls_back(self, db, reconciler):
        reconciler.set_shares(1, 0, [ShareEntry(WRITE, public_id="bob@example.com")])
        before = grant_summary(db)

        with patch.object(
            db, "add_grant", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            ok = reconciler.set_shares(
                1, 0, [ShareEntry(READ, public_id="carol@example.com")]
            )

        assert ok is False
        assert grant_summary(db) == before

    def test_non_database_error_is_reported_as_failure(self, db, reconciler):
        reconciler.set_shares(1, 0, [ShareEntry(WRITE, public_id="bob@example.com")])
        before = grant_summary(db)

        with patch.object(db, "add_grant", side_effect=RuntimeError("store down")):
            ok = reconciler.set_shares(
                1,
                0,
                [
                    ShareEntry(WRITE, public_id="bob@example.com"),
                    ShareEntry(READ, public_id="carol@example.com"),
                ],
            )

        assert ok is False
        assert grant_summary(db) == before

    def test_failure_on_update_rolls_back_creates(self, db, reconciler):
        reconciler.set_shares(1, 0, [ShareEntry(READ, public_id="bob@example.com")])
        before = grant_summary(db)

        with patch.object(
            db, "update_grant_access", side_effect=sqlite3.IntegrityError("boom")
        ):
            ok = reconciler.set_shares(
                1,
                0,
                [
                    ShareEntry(WRITE, public_id="bob@example.com"),
                    ShareEntry(READ, public_id="dave@example.com"),
                ],
            )

        assert ok is False
        assert grant_summary(db) == before

    def test_failure_is_logged(self, db, reconciler):
        logger = logging.getLogger("shared_contacts.sharing.reconciler")
        with patch.object(
            db, "add_grant", side_effect=sqlite3.OperationalError("disk I/O error")
        ), patch.object(logger, "exception") as mock_exception:
            reconciler.set_shares(1, 0, [ShareEntry(READ, public_id="bob@example.com")])

        mock_exception.assert_called_once()
        assert "Shared-1-personal" in mock_exception.call_args[0][0]


class TestLeaveShare:
    """Tests for ShareReconciler.leave_share."""

    def test_leaving_group_share_adds_none_row(self, db, reconciler, resolver):
        reconciler.set_shares(1, 0, [ShareEntry(READ, group_id=1)])

        assert reconciler.leave_share(2, 1, 0) is True

        assert ("bob@example.com", 0, NONE) in grant_summary(db)
        assert resolver.effective_access(2, 1, 0) == NONE
        assert resolver.list_shared_books(2) == []
        # carol keeps her access
        assert resolver.effective_access(3, 1, 0) == READ

    def test_leaving_direct_share_lowers_existing_row(self, db, reconciler, resolver):
        reconciler.set_shares(1, 0, [ShareEntry(WRITE, public_id="bob@example.com")])

        assert reconciler.leave_share(2, 1, 0) is True

        assert grant_summary(db) == [("bob@example.com", 0, NONE)]

    def test_leave_keeps_later_group_grants_from_counting(self, db, reconciler, resolver):
        reconciler.set_shares(1, 0, [ShareEntry(WRITE, public_id="bob@example.com")])
        reconciler.leave_share(2, 1, 0)
        db.add_grant("bob@example.com", WRITE, owner_user_id=1, group_id=9)

        assert resolver.effective_access(2, 1, 0) == NONE

    def test_nothing_to_leave(self, reconciler):
        assert reconciler.leave_share(2, 1, 0) is False

    def test_cannot_leave_own_book(self, reconciler):
        assert reconciler.leave_share(1, 1, 0) is False

    def test_unknown_user(self, reconciler):
        assert reconciler.leave_share(42, 1, 0) is False


class TestGetBookShares:
    def test_groups_are_collapsed(self, reconciler):
        reconciler.set_shares(
            1,
            0,
            [ShareEntry(WRITE, public_id="dave@example.com"), ShareEntry(READ, group_id=1)],
        )

        shares = reconciler.get_book_shares(1, 0)

        assert [s.to_dict() for s in shares] == [
            {"access": "write", "public_id": "dave@example.com"},
            {"access": "read", "group_id": 1},
        ]

    def test_unshared_book(self, reconciler):
        assert reconciler.get_book_shares(1, 0) == []


class TestAuditLog:
    @pytest.fixture
    def audit_file(self, tmp_path):
        log_file = tmp_path / "audit.log"
        logger = setup_audit_logger(log_file=log_file)
        yield log_file
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True

    def test_grant_mutations_are_audited(self, reconciler, audit_file):
        reconciler.set_shares(1, 0, [ShareEntry(READ, public_id="bob@example.com")])
        reconciler.set_shares(1, 0, [])

        content = audit_file.read_text()
        assert "CREATE Shared-1-personal principal=bob@example.com group=0 access=read" in content
        assert "DELETE Shared-1-personal principal=bob@example.com group=0" in content

    def test_failed_run_is_not_audited(self, db, reconciler, audit_file):
        with patch.object(
            db, "add_grant", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            reconciler.set_shares(1, 0, [ShareEntry(READ, public_id="bob@example.com")])

        assert "CREATE" not in audit_file.read_text()

    def test_audit_logger_name(self):
        assert AUDIT_LOGGER_NAME == "shared_contacts.audit"
