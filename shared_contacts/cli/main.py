"""
Command-line interface for shared_contacts.

Provides commands to seed a local directory, administer address book shares
and inspect what each user can reach through them.

Usage:
    # Show help
    shared-contacts --help

    # Create config file and database
    shared-contacts init

    # Seed the directory
    shared-contacts user add alice@example.com --tenant 1
    shared-contacts user add bob@example.com --tenant 1
    shared-contacts group add Sales --tenant 1

    # Share alice's personal book
    shared-contacts share set personal --owner 1 --user bob@example.com:write
    shared-contacts share set personal --owner 1 --group 1:read --dry-run

    # Inspect
    shared-contacts books --user 2
    shared-contacts check --user 2 --storage Shared-1-personal --access write
"""

import json
import sqlite3
import sys
from pathlib import Path
from typing import Optional

import click

from shared_contacts import __version__
from shared_contacts.cli.formatters import (
    show_contact,
    show_share_diff,
    show_shared_books,
    show_shares,
)
from shared_contacts.config.generator import save_config_file
from shared_contacts.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from shared_contacts.config.sharing_config import SharingConfig, SharingConfigError
from shared_contacts.hooks import HookRegistry
from shared_contacts.module import SharingModule
from shared_contacts.sharing.address import decode_address, encode_address, is_shared_address
from shared_contacts.sharing.errors import SharingError
from shared_contacts.sharing.models import (
    PERSONAL_BOOK_ID,
    STORAGE_PERSONAL,
    AccessLevel,
    Contact,
    ShareEntry,
)
from shared_contacts.storage.db import SharingDatabase
from shared_contacts.utils import resolve_config_dir
from shared_contacts.utils.logging import (
    cleanup_old_logs,
    get_audit_log_path,
    get_logger,
    setup_audit_logger,
    setup_logging,
)
from shared_contacts.utils.paths import resolve_db_path

# Access level names accepted on the command line
ACCESS_CHOICES = [level.label for level in AccessLevel]


def get_config_file(config_dir: Path, config_file: Optional[str]) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file)
    return config_dir / DEFAULT_CONFIG_FILE


def parse_book(value: str) -> int:
    """Parse a book argument: "personal" or a numeric book id."""
    if value == STORAGE_PERSONAL:
        return PERSONAL_BOOK_ID
    if value.isdecimal():
        return int(value)
    raise click.BadParameter(f"'{value}' is not a book id or 'personal'")


def parse_share_option(
    _ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> list[tuple[str, AccessLevel]]:
    """Parse repeated GRANTEE:LEVEL options."""
    parsed = []
    for value in values:
        grantee, sep, level = value.rpartition(":")
        if not sep or not grantee:
            raise click.BadParameter(f"'{value}' must look like GRANTEE:LEVEL")
        try:
            access = AccessLevel.parse(level)
        except ValueError as e:
            raise click.BadParameter(str(e)) from None
        if param.name == "groups" and not grantee.isdecimal():
            raise click.BadParameter(f"Group id must be numeric, got '{grantee}'")
        parsed.append((grantee, access))
    return parsed


@click.group()
@click.version_option(version=__version__, prog_name="shared-contacts")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="SHARED_CONTACTS_CONFIG_DIR",
    help="Configuration directory path (default: ~/.shared-contacts).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="SHARED_CONTACTS_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(exists=False, dir_okay=False),
    envvar="SHARED_CONTACTS_DB",
    help="Sharing database path (default: <config-dir>/sharing.db).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: Optional[str],
    config_file: Optional[str],
    db_path: Optional[str],
) -> None:
    """
    Address book sharing administration.

    Shares personal and owned address books with users and groups at
    none, read or write access, and shows what each user can reach.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = resolve_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    # Load configuration file
    config = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Show error but don't fail - allow CLI to work without config file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    ctx.obj["config"] = config

    try:
        ctx.obj["sharing_config"] = SharingConfig.from_dict(config.get("sharing"))
    except SharingConfigError as e:
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        ctx.obj["sharing_config"] = SharingConfig()

    # CLI option wins over the config file
    ctx.obj["db_path"] = resolve_db_path(
        db_path or config.get("db_path"), resolved_config_dir
    )

    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = None
    if config.get("log_dir"):
        log_dir = Path(config["log_dir"])

    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    if config.get("audit_log", False):
        setup_audit_logger(get_audit_log_path(log_dir))

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


def open_module(ctx: click.Context) -> tuple[SharingDatabase, SharingModule, HookRegistry]:
    """Open the sharing database and wire the sharing module to a hook registry."""
    db_path = ctx.obj["db_path"]
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    db = SharingDatabase(db_path)
    db.initialize()
    module = SharingModule.from_database(db, ctx.obj["sharing_config"])
    hooks = HookRegistry()
    module.register(hooks)
    return db, module, hooks


def fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


# =============================================================================
# Init Command
# =============================================================================


@cli.command("init")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_command(ctx: click.Context, force: bool) -> None:
    """
    Create the configuration file and the sharing database.

    Examples:

        shared-contacts init

        shared-contacts --config-dir ./demo init --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")
    success, error = save_config_file(config_file, overwrite=force)
    if not success:
        logger.error(f"Failed to create configuration file: {error}")
        fail(str(error))

    open_module(ctx)
    click.echo(click.style("Configuration file created successfully!", fg="green"))
    click.echo(f"Database: {ctx.obj['db_path']}")
    click.echo("\nNext steps:")
    click.echo("1. Add users with 'shared-contacts user add'")
    click.echo("2. Share a book with 'shared-contacts share set'")


# =============================================================================
# User Commands
# =============================================================================


@cli.group("user")
def user_group() -> None:
    """Manage users of the local directory."""


@user_group.command("add")
@click.argument("public_id")
@click.option("--tenant", "-t", type=int, default=0, show_default=True, help="Tenant id.")
@click.option("--name", "-n", default="", help="Display name.")
@click.option("--super-admin", is_flag=True, help="Mark the user as super administrator.")
@click.pass_context
def user_add_command(
    ctx: click.Context, public_id: str, tenant: int, name: str, super_admin: bool
) -> None:
    """
    Add a user and give them the grants of their tenant's all-members group.

    Example:

        shared-contacts user add bob@example.com --tenant 1 --name Bob
    """
    logger = get_logger(__name__)
    db, _module, hooks = open_module(ctx)

    try:
        with db.transaction():
            user_id = db.add_user(public_id, tenant, name, super_admin)
            granted = hooks.run("user_created", user_id).value or 0
    except sqlite3.IntegrityError:
        fail(f"User {public_id} already exists")
        return

    logger.info(f"Added user {public_id} (id {user_id})")
    click.echo(f"Added user {public_id} with id {user_id}")
    if granted:
        click.echo(f"Inherited {granted} grant(s) from the tenant's all-members group")


@user_group.command("delete")
@click.argument("user_id", type=int)
@click.pass_context
def user_delete_command(ctx: click.Context, user_id: int) -> None:
    """Delete a user and every grant they hold."""
    db, _module, hooks = open_module(ctx)

    if db.get_user(user_id) is None:
        fail(f"User {user_id} not found")

    context = hooks.run("before_user_deleted", user_id).value
    with db.transaction():
        db.delete_user(user_id)
        removed = hooks.run("after_user_deleted", context).value or 0

    click.echo(f"Deleted user {user_id}; removed {removed} grant(s)")


@user_group.command("set-groups")
@click.argument("user_id", type=int)
@click.argument("group_ids", type=int, nargs=-1)
@click.pass_context
def user_set_groups_command(
    ctx: click.Context, user_id: int, group_ids: tuple[int, ...]
) -> None:
    """Replace the groups a user belongs to."""
    db, _module, hooks = open_module(ctx)

    if db.get_user(user_id) is None:
        fail(f"User {user_id} not found")

    with db.transaction():
        db.set_user_groups(user_id, list(group_ids))
        created, deleted = hooks.run("user_groups_replaced", user_id, list(group_ids)).value

    click.echo(
        f"User {user_id} now in {len(group_ids)} group(s); "
        f"{created} grant(s) added, {deleted} removed"
    )


# =============================================================================
# Group Commands
# =============================================================================


@cli.group("group")
def group_group() -> None:
    """Manage groups of the local directory."""


@group_group.command("add")
@click.argument("name")
@click.option("--tenant", "-t", type=int, default=0, show_default=True, help="Tenant id.")
@click.option(
    "--all-members", is_flag=True, help="Mark as the tenant's all-members group."
)
@click.pass_context
def group_add_command(ctx: click.Context, name: str, tenant: int, all_members: bool) -> None:
    """Add a group."""
    db, _module, _hooks = open_module(ctx)
    group_id = db.add_group(name, tenant, all_members)
    click.echo(f"Added group {name} with id {group_id}")


@group_group.command("add-member")
@click.argument("group_id", type=int)
@click.argument("user_ids", type=int, nargs=-1, required=True)
@click.pass_context
def group_add_member_command(
    ctx: click.Context, group_id: int, user_ids: tuple[int, ...]
) -> None:
    """Add users to a group; they receive the group's grants."""
    db, _module, hooks = open_module(ctx)

    if db.get_group(group_id) is None:
        fail(f"Group {group_id} not found")

    with db.transaction():
        added = [user_id for user_id in user_ids if db.add_group_member(group_id, user_id)]
        granted = hooks.run("group_members_added", group_id, added).value or 0

    click.echo(f"Added {len(added)} member(s) to group {group_id}; {granted} grant(s) created")


@group_group.command("remove-member")
@click.argument("group_id", type=int)
@click.argument("user_ids", type=int, nargs=-1, required=True)
@click.pass_context
def group_remove_member_command(
    ctx: click.Context, group_id: int, user_ids: tuple[int, ...]
) -> None:
    """Remove users from a group along with the grants it gave them."""
    db, _module, hooks = open_module(ctx)

    with db.transaction():
        removed = [
            user_id for user_id in user_ids if db.remove_group_member(group_id, user_id)
        ]
        revoked = hooks.run("group_members_removed", group_id, removed).value or 0

    click.echo(
        f"Removed {len(removed)} member(s) from group {group_id}; "
        f"{revoked} grant(s) deleted"
    )


@group_group.command("delete")
@click.argument("group_id", type=int)
@click.pass_context
def group_delete_command(ctx: click.Context, group_id: int) -> None:
    """Delete a group and every grant that exists through it."""
    db, _module, hooks = open_module(ctx)

    if db.get_group(group_id) is None:
        fail(f"Group {group_id} not found")

    with db.transaction():
        db.delete_group(group_id)
        revoked = hooks.run("group_deleted", group_id).value or 0

    click.echo(f"Deleted group {group_id}; {revoked} grant(s) deleted")


# =============================================================================
# Book Commands
# =============================================================================


@cli.group("book")
def book_group() -> None:
    """Manage address books of the local directory."""


@book_group.command("add")
@click.argument("owner_id", type=int)
@click.argument("name")
@click.option("--uri", default=None, help="Stable book uri (default: addressbook-N).")
@click.pass_context
def book_add_command(
    ctx: click.Context, owner_id: int, name: str, uri: Optional[str]
) -> None:
    """Add an address book owned by a user."""
    db, _module, _hooks = open_module(ctx)

    if db.get_user(owner_id) is None:
        fail(f"User {owner_id} not found")

    try:
        book_id = db.add_address_book(owner_id, name, uri)
    except sqlite3.IntegrityError:
        fail(f"User {owner_id} already has a book with uri {uri}")
        return

    click.echo(f"Added book {name} with id {book_id} ({encode_address(owner_id, book_id)})")


@book_group.command("delete")
@click.argument("book_id", type=int)
@click.pass_context
def book_delete_command(ctx: click.Context, book_id: int) -> None:
    """
    Delete an address book.

    Grants on the book stay in the grant table but no longer give access.
    """
    db, _module, _hooks = open_module(ctx)

    if not db.delete_address_book(book_id):
        fail(f"Book {book_id} not found")

    click.echo(f"Deleted book {book_id}")


# =============================================================================
# Share Commands
# =============================================================================


@cli.group("share")
def share_group() -> None:
    """Administer address book shares."""


@share_group.command("set")
@click.argument("book")
@click.option("--owner", "-o", type=int, required=True, help="Owner user id.")
@click.option(
    "--user",
    "-u",
    "users",
    multiple=True,
    callback=parse_share_option,
    help="Share with a user: PUBLIC_ID:LEVEL (repeatable).",
)
@click.option(
    "--group",
    "-g",
    "groups",
    multiple=True,
    callback=parse_share_option,
    help="Share with a group: GROUP_ID:LEVEL (repeatable).",
)
@click.option(
    "--dry-run", "-n", is_flag=True, help="Show what would change without applying."
)
@click.pass_context
def share_set_command(
    ctx: click.Context,
    book: str,
    owner: int,
    users: list[tuple[str, AccessLevel]],
    groups: list[tuple[str, AccessLevel]],
    dry_run: bool,
) -> None:
    """
    Replace the share list of a book.

    BOOK is 'personal' or the id of a book the owner has. Shares not given
    are removed; giving none unshares the book.

    Examples:

        shared-contacts share set personal -o 1 -u bob@example.com:write

        shared-contacts share set 3 -o 1 -g 2:read --dry-run
    """
    logger = get_logger(__name__)
    db, module, _hooks = open_module(ctx)
    book_id = parse_book(book)

    shares = [ShareEntry(access, public_id=public_id) for public_id, access in users]
    shares += [ShareEntry(access, group_id=int(group_id)) for group_id, access in groups]

    try:
        if dry_run:
            click.echo(click.style("DRY RUN MODE - No changes will be made\n", fg="yellow"))
            diff = module.reconciler.compute_share_diff(owner, book_id, shares)
            show_share_diff(diff)
            if not diff.has_structural_changes:
                click.echo("No grants would be created or deleted.")
            return

        ok = module.reconciler.set_shares(owner, book_id, shares)
    except SharingError as e:
        logger.debug(f"share set rejected: {e}")
        fail(str(e))
        return

    if not ok:
        fail("Failed to update shares; nothing was changed")

    click.echo(click.style("Shares updated.", fg="green"))
    show_shares(
        module.reconciler.get_book_shares(owner, book_id),
        encode_address(owner, book_id),
    )


@share_group.command("list")
@click.argument("book")
@click.option("--owner", "-o", type=int, required=True, help="Owner user id.")
@click.pass_context
def share_list_command(ctx: click.Context, book: str, owner: int) -> None:
    """Show the share list of a book."""
    _db, module, _hooks = open_module(ctx)
    book_id = parse_book(book)
    show_shares(
        module.reconciler.get_book_shares(owner, book_id),
        encode_address(owner, book_id),
    )


@share_group.command("leave")
@click.argument("address")
@click.option("--user", "-u", "user_id", type=int, required=True, help="Grantee user id.")
@click.pass_context
def share_leave_command(ctx: click.Context, address: str, user_id: int) -> None:
    """
    Stop seeing a book shared with you.

    Example:

        shared-contacts share leave Shared-1-personal --user 2
    """
    _db, module, _hooks = open_module(ctx)

    try:
        target = decode_address(address, current_user_id=user_id)
    except SharingError as e:
        fail(str(e))
        return

    if not module.reconciler.leave_share(
        user_id, target.owner_user_id, target.address_book_id
    ):
        fail(f"User {user_id} has no share of {target} to leave")

    click.echo(f"User {user_id} left {target}")


# =============================================================================
# Books Command
# =============================================================================


@cli.command("books")
@click.option("--user", "-u", "user_id", type=int, required=True, help="Viewer user id.")
@click.option("--json", "as_json", is_flag=True, help="Print the listing as JSON.")
@click.pass_context
def books_command(ctx: click.Context, user_id: int, as_json: bool) -> None:
    """
    List a user's own books with their shares and the books shared with them.

    Example:

        shared-contacts books --user 2
    """
    _db, module, hooks = open_module(ctx)

    if as_json:
        books = hooks.run(
            "get_address_books", user_id, module.list_owned_books(user_id)
        ).value
        click.echo(json.dumps(books, indent=2))
        return

    show_shared_books(module.resolver.list_shared_books(user_id))


# =============================================================================
# Check Command
# =============================================================================


@cli.command("check")
@click.option("--user", "-u", "user_id", type=int, required=True, help="Viewer user id.")
@click.option("--storage", "-s", required=True, help="Storage, e.g. Shared-1-personal.")
@click.option(
    "--access",
    "-a",
    type=click.Choice(ACCESS_CHOICES, case_sensitive=False),
    default=None,
    help="Access level required.",
)
@click.pass_context
def check_command(
    ctx: click.Context, user_id: int, storage: str, access: Optional[str]
) -> None:
    """
    Check whether a user may reach a book.

    Exits with status 1 when access is denied.
    """
    _db, _module, hooks = open_module(ctx)
    required = AccessLevel.parse(access) if access else None

    try:
        result = hooks.run("check_access_to_book", user_id, storage, required)
    except SharingError as e:
        fail(str(e))
        return

    if not result.definitive:
        click.echo(f"No share decides access of user {user_id} to {storage}")
        return

    if result.value:
        click.echo(click.style(f"Allowed: user {user_id} -> {storage}", fg="green"))
    else:
        click.echo(click.style(f"Denied: user {user_id} -> {storage}", fg="red"))
        sys.exit(1)


# =============================================================================
# Contact Commands
# =============================================================================


@cli.group("contact")
def contact_group() -> None:
    """Work with contacts through shared storages."""


@contact_group.command("add")
@click.argument("uuid")
@click.option("--user", "-u", "user_id", type=int, required=True, help="Acting user id.")
@click.option(
    "--storage",
    "-s",
    default=STORAGE_PERSONAL,
    show_default=True,
    help="personal, shared, or a shared book address.",
)
@click.option("--name", "-n", "full_name", default="", help="Full name.")
@click.option("--email", "-e", default="", help="Email address.")
@click.pass_context
def contact_add_command(
    ctx: click.Context,
    uuid: str,
    user_id: int,
    storage: str,
    full_name: str,
    email: str,
) -> None:
    """
    Create a contact, possibly in a book shared with the user.

    Example:

        shared-contacts contact add c-1 --user 2 --storage Shared-1-personal
    """
    db, module, hooks = open_module(ctx)

    tenant_id = module.directory.get_tenant_id(user_id)
    if tenant_id is None:
        fail(f"User {user_id} not found")
        return

    contact = Contact(
        uuid=uuid,
        id_user=user_id,
        id_tenant=tenant_id,
        storage=storage,
        full_name=full_name,
        email=email,
    )

    try:
        location = module.router.resolve_storage(storage, user_id)
        if is_shared_address(storage):
            result = hooks.run("check_access_to_book", user_id, storage, AccessLevel.WRITE)
            if not (result.definitive and result.value):
                fail(f"User {user_id} cannot write to {storage}")
        contact = module.router.prepare_contact_for_create(contact, user_id)
    except SharingError as e:
        fail(str(e))
        return

    try:
        db.add_contact(
            contact.uuid,
            contact.id_user,
            contact.id_tenant,
            contact.storage,
            contact.address_book_id,
            contact.full_name,
            contact.email,
        )
    except sqlite3.IntegrityError:
        fail(f"Contact {uuid} already exists")
        return

    module.books.update_ctag(location.owner_user_id, location.ctag_storage)
    click.echo(f"Added contact {uuid} to {contact.storage} of user {contact.id_user}")


@contact_group.command("show")
@click.argument("uuid")
@click.option("--user", "-u", "user_id", type=int, required=True, help="Viewer user id.")
@click.pass_context
def contact_show_command(ctx: click.Context, uuid: str, user_id: int) -> None:
    """Show a contact as a user sees it."""
    _db, module, hooks = open_module(ctx)

    contact = module.contacts.get_contact(uuid, user_id)
    if contact is None:
        fail(f"Contact {uuid} not found")
        return

    result = hooks.run("check_access_to_object", user_id, contact)
    if not (result.definitive and result.value):
        fail(f"User {user_id} cannot see contact {uuid}")

    show_contact(hooks.run("populate_contact", user_id, contact).value)


@contact_group.command("list")
@click.option("--user", "-u", "user_id", type=int, required=True, help="Viewer user id.")
@click.option(
    "--storage",
    "-s",
    default="Shared",
    show_default=True,
    help="shared, all, Shared, or a shared book address.",
)
@click.pass_context
def contact_list_command(ctx: click.Context, user_id: int, storage: str) -> None:
    """List the contacts a user reaches through a storage."""
    _db, module, hooks = open_module(ctx)

    try:
        filters = hooks.run("filter_contacts_by_storage", user_id, storage).value or []
    except SharingError as e:
        fail(str(e))
        return

    contacts = module.contacts.query_contacts(filters)
    if not contacts:
        click.echo(f"No contacts in {storage} for user {user_id}.")
        return

    for contact in contacts:
        contact = module.router.populate_contact(contact, user_id)
        click.echo(f"{contact.uuid:<20} {contact.full_name:<30} {contact.storage}")
    click.echo(f"\nTotal: {len(contacts)} contact(s)")


@contact_group.command("toggle")
@click.argument("uuids", nargs=-1, required=True)
@click.option("--user", "-u", "user_id", type=int, required=True, help="Acting user id.")
@click.pass_context
def contact_toggle_command(ctx: click.Context, uuids: tuple[str, ...], user_id: int) -> None:
    """Move contacts between the user's personal book and the shared pool."""
    db, _module, hooks = open_module(ctx)

    with db.transaction():
        ok = hooks.run("update_shared_contacts", user_id, list(uuids)).value

    if not ok:
        fail("Some contacts could not be toggled")
    click.echo(f"Toggled {len(uuids)} contact(s)")
