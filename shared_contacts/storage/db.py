"""
SQLite database module for address book sharing.

Provides persistent storage for the grant table, plus the directory, address
book, change-tag and contact tables backing the local collaborator
implementations.
"""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

# SQL Schema for grants and the local directory
SCHEMA = """
CREATE TABLE IF NOT EXISTS address_book_shares (
    id INTEGER PRIMARY KEY,
    principal_id TEXT NOT NULL,
    access INTEGER NOT NULL DEFAULT 0,
    address_book_id INTEGER NOT NULL DEFAULT 0,
    owner_user_id INTEGER NOT NULL,
    uri TEXT,
    group_id INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(principal_id, owner_user_id, address_book_id, group_id)
);

CREATE INDEX IF NOT EXISTS idx_shares_principal ON address_book_shares(principal_id);
CREATE INDEX IF NOT EXISTS idx_shares_book
    ON address_book_shares(owner_user_id, address_book_id);
CREATE INDEX IF NOT EXISTS idx_shares_group ON address_book_shares(group_id);

CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    public_id TEXT NOT NULL,
    tenant_id INTEGER NOT NULL DEFAULT 0,
    name TEXT,
    is_super_admin BOOLEAN NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(public_id)
);

CREATE TABLE IF NOT EXISTS user_groups (
    id INTEGER PRIMARY KEY,
    tenant_id INTEGER NOT NULL DEFAULT 0,
    name TEXT NOT NULL,
    is_all BOOLEAN NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS group_members (
    id INTEGER PRIMARY KEY,
    group_id INTEGER NOT NULL,
    user_id INTEGER NOT NULL,
    UNIQUE(group_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_group_members_user ON group_members(user_id);

CREATE TABLE IF NOT EXISTS address_books (
    id INTEGER PRIMARY KEY,
    owner_user_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    uri TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(owner_user_id, uri)
);

CREATE INDEX IF NOT EXISTS idx_address_books_owner ON address_books(owner_user_id);

CREATE TABLE IF NOT EXISTS ctags (
    id INTEGER PRIMARY KEY,
    owner_user_id INTEGER NOT NULL,
    storage TEXT NOT NULL,
    ctag INTEGER NOT NULL DEFAULT 1,
    UNIQUE(owner_user_id, storage)
);

CREATE TABLE IF NOT EXISTS contacts (
    id INTEGER PRIMARY KEY,
    uuid TEXT NOT NULL,
    id_user INTEGER NOT NULL,
    id_tenant INTEGER NOT NULL DEFAULT 0,
    storage TEXT NOT NULL DEFAULT 'personal',
    address_book_id INTEGER,
    full_name TEXT,
    email TEXT,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(uuid)
);

CREATE INDEX IF NOT EXISTS idx_contacts_owner ON contacts(id_user, storage);
"""

# Columns of the grant table returned by every grant query
GRANT_COLUMNS = """
    id,
    principal_id,
    access,
    address_book_id,
    owner_user_id,
    uri,
    group_id
"""

# Contact columns that query predicates may reference
CONTACT_FILTER_COLUMNS = frozenset(
    {"id_user", "id_tenant", "storage", "address_book_id", "uuid"}
)

# Contact columns that may be updated
CONTACT_UPDATE_COLUMNS = frozenset(
    {"id_user", "id_tenant", "storage", "address_book_id", "full_name", "email"}
)


class SharingDatabase:
    """
    SQLite database manager for grants and the local directory.

    Provides methods for:
    - Creating, updating and deleting grants
    - Querying grants by book, grantee and originating group
    - Managing the local users, groups, address books, change tags and
      contacts consumed through the collaborator interfaces

    Usage:
        db = SharingDatabase('/path/to/sharing.db')
        db.initialize()

        # Or use in-memory for testing:
        db = SharingDatabase(':memory:')
        db.initialize()

        # Group several writes into one failure-atomic unit
        with db.transaction():
            db.delete_grant(3)
            db.add_grant("bob@example.com", 1, owner_user_id=1, address_book_id=0)
    """

    def __init__(self, db_path: str):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None
        self._active_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        schema persists across operations. For file databases, creates
        a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(
                    ":memory:",
                    detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
                )
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection
        else:
            conn = sqlite3.connect(
                self.db_path,
                detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            )
            conn.row_factory = sqlite3.Row
            return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Inside transaction() the active connection is reused and nothing is
        committed until the transaction ends.

        Yields:
            sqlite3.Connection: Database connection
        """
        if self._active_connection is not None:
            yield self._active_connection
            return

        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Run every database call in the block as one unit.

        Commits when the block exits normally and rolls back all of it when
        the block raises. Nested transaction() calls join the outer one.

        Yields:
            sqlite3.Connection: The connection shared by the block
        """
        if self._active_connection is not None:
            yield self._active_connection
            return

        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        self._active_connection = conn
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._active_connection = None
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """
        Initialize the database schema.

        Creates every table and index if they don't exist.
        """
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # =========================================================================
    # Grant Operations
    # =========================================================================

    def add_grant(
        self,
        principal_id: str,
        access: int,
        owner_user_id: int,
        address_book_id: int = 0,
        uri: Optional[str] = None,
        group_id: int = 0,
    ) -> int:
        """
        Insert a grant row.

        Args:
            principal_id: Public id of the grantee
            access: Access level as stored integer
            owner_user_id: User owning the shared book
            address_book_id: Owned book id, 0 for the personal book
            uri: Provenance uri of the shared book
            group_id: Originating group, 0 for a direct grant

        Returns:
            Row id of the new grant

        Raises:
            sqlite3.IntegrityError: If the same grantee/book/group row exists
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO address_book_shares (
                    principal_id,
                    access,
                    address_book_id,
                    owner_user_id,
                    uri,
                    group_id
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    principal_id,
                    int(access),
                    address_book_id,
                    owner_user_id,
                    uri,
                    group_id,
                ),
            )
            grant_id: int = cursor.lastrowid  # type: ignore[assignment]
            return grant_id

    def update_grant_access(self, grant_id: int, access: int) -> bool:
        """
        Set the access level of a grant.

        Returns:
            True if a grant was updated, False if not found
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE address_book_shares
                SET access = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (int(access), grant_id),
            )
            return cursor.rowcount > 0

    def delete_grant(self, grant_id: int) -> bool:
        """
        Delete a grant by row id.

        Returns:
            True if a grant was deleted, False if not found
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM address_book_shares WHERE id = ?", (grant_id,)
            )
            return cursor.rowcount > 0

    def get_grants_for_book(
        self, owner_user_id: int, address_book_id: int
    ) -> list[dict[str, Any]]:
        """
        Get every grant on one book, in insertion order.

        Args:
            owner_user_id: User owning the book
            address_book_id: Owned book id, 0 for the personal book
        """
        with self.connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT {GRANT_COLUMNS}
                FROM address_book_shares
                WHERE owner_user_id = ? AND address_book_id = ?
                ORDER BY id
                """,  # nosec B608 - constant column list
                (owner_user_id, address_book_id),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_grants_for_principal(self, principal_id: str) -> list[dict[str, Any]]:
        """
        Get every grant held by a grantee, in insertion order.

        Args:
            principal_id: Public id of the grantee
        """
        with self.connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT {GRANT_COLUMNS}
                FROM address_book_shares
                WHERE principal_id = ?
                ORDER BY id
                """,  # nosec B608 - constant column list
                (principal_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_principal_book_grants(
        self, principal_id: str, owner_user_id: int, address_book_id: int
    ) -> list[dict[str, Any]]:
        """
        Get the grants one grantee holds on one book, in insertion order.
        """
        with self.connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT {GRANT_COLUMNS}
                FROM address_book_shares
                WHERE principal_id = ? AND owner_user_id = ? AND address_book_id = ?
                ORDER BY id
                """,  # nosec B608 - constant column list
                (principal_id, owner_user_id, address_book_id),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_group_grant_targets(self, group_id: int) -> list[dict[str, Any]]:
        """
        Get the distinct (book, access) pairs granted through a group.

        Returns:
            List of dicts with owner_user_id, address_book_id, access and uri,
            ordered by the first row that introduced each pair
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT owner_user_id, address_book_id, access, uri
                FROM address_book_shares
                WHERE group_id = ?
                GROUP BY owner_user_id, address_book_id, access, uri
                ORDER BY MIN(id)
                """,
                (group_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_principal_group_ids(self, principal_id: str) -> list[int]:
        """
        Get the groups a grantee currently holds group-derived grants through.
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT DISTINCT group_id
                FROM address_book_shares
                WHERE principal_id = ? AND group_id > 0
                ORDER BY group_id
                """,
                (principal_id,),
            )
            return [row["group_id"] for row in cursor.fetchall()]

    def delete_principal_group_grants(self, principal_id: str, group_id: int) -> int:
        """
        Delete the grants a grantee holds through one group.

        Returns:
            Number of grants deleted
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                DELETE FROM address_book_shares
                WHERE principal_id = ? AND group_id = ?
                """,
                (principal_id, group_id),
            )
            return cursor.rowcount

    def delete_group_grants(self, group_id: int) -> int:
        """
        Delete every grant that exists through a group.

        Returns:
            Number of grants deleted
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM address_book_shares WHERE group_id = ?", (group_id,)
            )
            return cursor.rowcount

    def delete_principal_grants(self, principal_id: str) -> int:
        """
        Delete every grant held by a grantee, whatever its provenance.

        Returns:
            Number of grants deleted
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM address_book_shares WHERE principal_id = ?",
                (principal_id,),
            )
            return cursor.rowcount

    def get_all_grants(self) -> list[dict[str, Any]]:
        """Get all grants in insertion order."""
        with self.connection() as conn:
            cursor = conn.execute(
                f"SELECT {GRANT_COLUMNS} FROM address_book_shares ORDER BY id"  # nosec B608
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_grant_count(self) -> int:
        """Get the total number of grants."""
        with self.connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM address_book_shares")
            result: int = cursor.fetchone()[0]
            return result

    # =========================================================================
    # User Operations
    # =========================================================================

    def add_user(
        self,
        public_id: str,
        tenant_id: int = 0,
        name: str = "",
        is_super_admin: bool = False,
    ) -> int:
        """
        Insert a user.

        Returns:
            Id of the new user

        Raises:
            sqlite3.IntegrityError: If the public id is taken
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (public_id, tenant_id, name, is_super_admin)
                VALUES (?, ?, ?, ?)
                """,
                (public_id, tenant_id, name, is_super_admin),
            )
            user_id: int = cursor.lastrowid  # type: ignore[assignment]
            return user_id

    def get_user(self, user_id: int) -> Optional[dict[str, Any]]:
        """Get a user by id, or None if not found."""
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT id, public_id, tenant_id, name, is_super_admin
                FROM users WHERE id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()
            if row:
                return dict(row)
            return None

    def get_user_by_public_id(self, public_id: str) -> Optional[dict[str, Any]]:
        """Get a user by public id, or None if not found."""
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT id, public_id, tenant_id, name, is_super_admin
                FROM users WHERE public_id = ?
                """,
                (public_id,),
            )
            row = cursor.fetchone()
            if row:
                return dict(row)
            return None

    def delete_user(self, user_id: int) -> bool:
        """
        Delete a user and their group memberships.

        Returns:
            True if a user was deleted, False if not found
        """
        with self.connection() as conn:
            conn.execute("DELETE FROM group_members WHERE user_id = ?", (user_id,))
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    # =========================================================================
    # Group Operations
    # =========================================================================

    def add_group(self, name: str, tenant_id: int = 0, is_all: bool = False) -> int:
        """
        Insert a group.

        Returns:
            Id of the new group
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "INSERT INTO user_groups (name, tenant_id, is_all) VALUES (?, ?, ?)",
                (name, tenant_id, is_all),
            )
            group_id: int = cursor.lastrowid  # type: ignore[assignment]
            return group_id

    def get_group(self, group_id: int) -> Optional[dict[str, Any]]:
        """Get a group by id, or None if not found."""
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT id, tenant_id, name, is_all FROM user_groups WHERE id = ?",
                (group_id,),
            )
            row = cursor.fetchone()
            if row:
                return dict(row)
            return None

    def get_tenant_all_group(self, tenant_id: int) -> Optional[dict[str, Any]]:
        """Get the all-members group of a tenant, or None if it has none."""
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT id, tenant_id, name, is_all
                FROM user_groups
                WHERE tenant_id = ? AND is_all = 1
                ORDER BY id
                LIMIT 1
                """,
                (tenant_id,),
            )
            row = cursor.fetchone()
            if row:
                return dict(row)
            return None

    def delete_group(self, group_id: int) -> bool:
        """
        Delete a group and its memberships.

        Returns:
            True if a group was deleted, False if not found
        """
        with self.connection() as conn:
            conn.execute("DELETE FROM group_members WHERE group_id = ?", (group_id,))
            cursor = conn.execute("DELETE FROM user_groups WHERE id = ?", (group_id,))
            return cursor.rowcount > 0

    def add_group_member(self, group_id: int, user_id: int) -> bool:
        """
        Add a user to a group.

        Returns:
            True if the membership was created, False if it already existed
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO group_members (group_id, user_id)
                VALUES (?, ?)
                """,
                (group_id, user_id),
            )
            return cursor.rowcount > 0

    def remove_group_member(self, group_id: int, user_id: int) -> bool:
        """
        Remove a user from a group.

        Returns:
            True if a membership was removed, False if not found
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM group_members WHERE group_id = ? AND user_id = ?",
                (group_id, user_id),
            )
            return cursor.rowcount > 0

    def get_group_member_ids(self, group_id: int) -> list[int]:
        """Get the ids of a group's members, in the order they joined."""
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT user_id FROM group_members WHERE group_id = ? ORDER BY id",
                (group_id,),
            )
            return [row["user_id"] for row in cursor.fetchall()]

    def get_user_group_ids(self, user_id: int) -> list[int]:
        """Get the ids of the groups a user belongs to."""
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT group_id FROM group_members WHERE user_id = ? ORDER BY group_id",
                (user_id,),
            )
            return [row["group_id"] for row in cursor.fetchall()]

    def set_user_groups(self, user_id: int, group_ids: list[int]) -> None:
        """Replace a user's group memberships."""
        with self.connection() as conn:
            conn.execute("DELETE FROM group_members WHERE user_id = ?", (user_id,))
            conn.executemany(
                "INSERT OR IGNORE INTO group_members (group_id, user_id) VALUES (?, ?)",
                [(group_id, user_id) for group_id in group_ids],
            )

    # =========================================================================
    # Address Book Operations
    # =========================================================================

    def add_address_book(
        self, owner_user_id: int, name: str, uri: Optional[str] = None
    ) -> int:
        """
        Insert an address book owned by a user.

        Args:
            owner_user_id: Owning user
            name: Display name
            uri: Stable uri; defaults to a generated "addressbook-<n>" value

        Returns:
            Id of the new address book
        """
        with self.connection() as conn:
            if uri is None:
                cursor = conn.execute(
                    "SELECT COUNT(*) FROM address_books WHERE owner_user_id = ?",
                    (owner_user_id,),
                )
                uri = f"addressbook-{cursor.fetchone()[0] + 1}"
            cursor = conn.execute(
                "INSERT INTO address_books (owner_user_id, name, uri) VALUES (?, ?, ?)",
                (owner_user_id, name, uri),
            )
            book_id: int = cursor.lastrowid  # type: ignore[assignment]
            return book_id

    def get_address_book(self, book_id: int) -> Optional[dict[str, Any]]:
        """Get an address book by id, or None if not found."""
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT id, owner_user_id, name, uri FROM address_books WHERE id = ?",
                (book_id,),
            )
            row = cursor.fetchone()
            if row:
                return dict(row)
            return None

    def get_user_address_books(self, owner_user_id: int) -> list[dict[str, Any]]:
        """Get the address books owned by a user."""
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT id, owner_user_id, name, uri
                FROM address_books
                WHERE owner_user_id = ?
                ORDER BY id
                """,
                (owner_user_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def delete_address_book(self, book_id: int) -> bool:
        """
        Delete an address book.

        Grants pointing at it are left in place; they resolve to "not found".

        Returns:
            True if a book was deleted, False if not found
        """
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM address_books WHERE id = ?", (book_id,))
            return cursor.rowcount > 0

    # =========================================================================
    # Change Tag Operations
    # =========================================================================

    def get_ctag(self, owner_user_id: int, storage: str) -> int:
        """
        Get the change tag of a storage location.

        Returns:
            Current counter, 0 if the location never changed
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT ctag FROM ctags WHERE owner_user_id = ? AND storage = ?",
                (owner_user_id, storage),
            )
            row = cursor.fetchone()
            if row:
                result: int = row["ctag"]
                return result
            return 0

    def increment_ctag(self, owner_user_id: int, storage: str) -> int:
        """
        Bump the change tag of a storage location.

        Returns:
            The new counter value
        """
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO ctags (owner_user_id, storage, ctag)
                VALUES (?, ?, 1)
                ON CONFLICT(owner_user_id, storage) DO UPDATE SET
                    ctag = ctag + 1
                """,
                (owner_user_id, storage),
            )
            cursor = conn.execute(
                "SELECT ctag FROM ctags WHERE owner_user_id = ? AND storage = ?",
                (owner_user_id, storage),
            )
            result: int = cursor.fetchone()["ctag"]
            return result

    # =========================================================================
    # Contact Operations
    # =========================================================================

    def add_contact(
        self,
        uuid: str,
        id_user: int,
        id_tenant: int = 0,
        storage: str = "personal",
        address_book_id: Optional[int] = None,
        full_name: str = "",
        email: str = "",
    ) -> None:
        """Insert a contact record."""
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO contacts (
                    uuid,
                    id_user,
                    id_tenant,
                    storage,
                    address_book_id,
                    full_name,
                    email
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    uuid,
                    id_user,
                    id_tenant,
                    storage,
                    address_book_id,
                    full_name,
                    email,
                ),
            )

    def get_contact(self, uuid: str) -> Optional[dict[str, Any]]:
        """Get a contact by uuid, or None if not found."""
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT uuid, id_user, id_tenant, storage, address_book_id,
                       full_name, email
                FROM contacts WHERE uuid = ?
                """,
                (uuid,),
            )
            row = cursor.fetchone()
            if row:
                return dict(row)
            return None

    def update_contact(self, uuid: str, **fields: Any) -> bool:
        """
        Update contact columns.

        Args:
            uuid: Contact to update
            **fields: Column values; only CONTACT_UPDATE_COLUMNS are accepted

        Returns:
            True if a contact was updated, False if not found

        Raises:
            ValueError: If an unknown column is given
        """
        unknown = set(fields) - CONTACT_UPDATE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update contact columns: {sorted(unknown)}")
        if not fields:
            return self.get_contact(uuid) is not None

        updates = [f"{column} = ?" for column in fields]
        params: list[Any] = list(fields.values())
        updates.append("updated_at = CURRENT_TIMESTAMP")
        params.append(uuid)

        with self.connection() as conn:
            cursor = conn.execute(
                f"UPDATE contacts SET {', '.join(updates)} WHERE uuid = ?",  # nosec B608
                params,
            )
            return cursor.rowcount > 0

    def query_contacts(self, predicates: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Get contacts matching any of several predicates.

        Each predicate is a mapping of column to value; its terms are ANDed
        and the predicates are ORed. An empty list matches nothing.

        Raises:
            ValueError: If a predicate references an unknown column
        """
        if not predicates:
            return []

        clauses: list[str] = []
        params: list[Any] = []
        for predicate in predicates:
            unknown = set(predicate) - CONTACT_FILTER_COLUMNS
            if unknown or not predicate:
                raise ValueError(f"Invalid contact filter: {predicate!r}")
            terms = []
            for column, value in predicate.items():
                if value is None:
                    terms.append(f"{column} IS NULL")
                else:
                    terms.append(f"{column} = ?")
                    params.append(value)
            clauses.append("(" + " AND ".join(terms) + ")")

        with self.connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT uuid, id_user, id_tenant, storage, address_book_id,
                       full_name, email
                FROM contacts
                WHERE {' OR '.join(clauses)}
                ORDER BY id
                """,  # nosec B608 - columns validated against CONTACT_FILTER_COLUMNS
                params,
            )
            return [dict(row) for row in cursor.fetchall()]
