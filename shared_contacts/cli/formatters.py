"""CLI output formatting functions.

This module contains functions for displaying share lists, share diffs,
shared address books and contacts on the command line.
"""

from typing import TYPE_CHECKING

import click

from shared_contacts.sharing.models import AccessLevel

if TYPE_CHECKING:
    from shared_contacts.sharing.models import Contact, EffectiveAccessEntry, ShareEntry
    from shared_contacts.sharing.reconciler import ShareDiff

# Colors used for access levels
ACCESS_COLORS = {
    AccessLevel.NONE: "red",
    AccessLevel.READ: "cyan",
    AccessLevel.WRITE: "green",
}


def style_access(access: AccessLevel) -> str:
    """Render an access level with its color."""
    return click.style(access.label, fg=ACCESS_COLORS[access])


def describe_share(share: "ShareEntry") -> str:
    """One-line description of a share entry."""
    if share.public_id is not None:
        grantee = f"user {share.public_id}"
        if share.group_id:
            grantee += f" (via group {share.group_id})"
    else:
        grantee = f"group {share.group_id}"
    return f"{grantee}: {style_access(share.access)}"


def show_shares(shares: list["ShareEntry"], book_label: str) -> None:
    """
    Display the share list of a book.

    Args:
        shares: Entries returned by ShareReconciler.get_book_shares()
        book_label: Book name or address shown in the header
    """
    if not shares:
        click.echo(f"{book_label} is not shared.")
        return

    click.echo(f"Shares of {book_label}:")
    for share in shares:
        click.echo(f"  {describe_share(share)}")
    click.echo()
    click.echo(f"Total: {len(shares)} share(s)")


def show_share_diff(diff: "ShareDiff", limit: int = 10) -> None:
    """
    Display the operations a share update would perform.

    Args:
        diff: The ShareDiff to display
        limit: Maximum entries shown per section
    """
    click.echo("\n=== Share Changes ===")

    if diff.to_create:
        click.echo("\nGrants to create:")
        for entry in diff.to_create[:limit]:
            click.echo(f"  + {describe_share(entry)}")
        if len(diff.to_create) > limit:
            click.echo(f"  ... and {len(diff.to_create) - limit} more")

    if diff.to_update:
        click.echo("\nGrants to rewrite:")
        for grant, entry in diff.to_update[:limit]:
            change = style_access(entry.access)
            if grant.access != entry.access:
                change = f"{style_access(grant.access)} -> {change}"
            click.echo(f"  ~ {grant.principal_id} (group {grant.group_id}): {change}")
        if len(diff.to_update) > limit:
            click.echo(f"  ... and {len(diff.to_update) - limit} more")

    if diff.to_delete:
        click.echo("\nGrants to delete:")
        for grant in diff.to_delete[:limit]:
            click.echo(f"  - {grant.principal_id} (group {grant.group_id})")
        if len(diff.to_delete) > limit:
            click.echo(f"  ... and {len(diff.to_delete) - limit} more")

    click.echo(f"\nSummary: {diff.summary()}")


def show_shared_books(entries: list["EffectiveAccessEntry"]) -> None:
    """Display the books shared with a user as a table."""
    if not entries:
        click.echo("No address books are shared with this user.")
        return

    click.echo(f"{'Storage':<28} {'Name':<30} {'Owner':<28} {'Access':<8} {'CTag':<6}")
    click.echo("-" * 104)
    for entry in entries:
        # Pad before styling so escape codes don't break the alignment
        access = entry.access_level.label.ljust(8)
        click.echo(
            f"{entry.storage_address:<28} {entry.display_name:<30} "
            f"{entry.owner_public_id:<28} "
            f"{click.style(access, fg=ACCESS_COLORS[entry.access_level])} "
            f"{entry.ctag:<6}"
        )
    click.echo()
    click.echo(f"Total: {len(entries)} shared book(s)")


def show_contact(contact: "Contact") -> None:
    """Display one contact's fields."""
    click.echo(f"UUID:     {contact.uuid}")
    click.echo(f"Name:     {contact.full_name or '(none)'}")
    click.echo(f"Email:    {contact.email or '(none)'}")
    click.echo(f"Owner:    {contact.id_user}")
    click.echo(f"Tenant:   {contact.id_tenant}")
    click.echo(f"Storage:  {contact.storage}")
    if contact.address_book_id:
        click.echo(f"Book:     {contact.address_book_id}")
