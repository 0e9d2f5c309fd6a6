"""
Entry management commands.
"""

from pathlib import Path

import click
import requests
from tabulate import tabulate

from db import EntriesError
from extractors.page_title import build_link_entry
from processors.directory_sync import sync_directory
from processors.pocket_import import load_pocket_export, import_pocket_export
from settings import get_setting
from .common import get_service, fail, first_line, format_score


@click.group()
def entry():
    """Manage tracked entries."""
    pass


@entry.command(name='list')
@click.option('--limit', '-l', type=int, default=20, help='Number of entries to show (default: 20, 0 = all)')
@click.option('--offset', '-o', type=int, default=0, help='Skip the first N ranked entries')
@click.option('--include-deleted', is_flag=True, help='Rank deleted entries too')
@click.option('--no-pager', is_flag=True, help='Disable pagination')
def list_entries(limit, offset, include_deleted, no_pager):
    """
    List entries in ranked order.

    Examples:
        entries entry list
        entries entry list --limit 50 --offset 50
        entries entry list --include-deleted
    """
    service = get_service()

    try:
        ranked = service.list_ordered(limit=limit or None, offset=offset, include_deleted=include_deleted)
    except (EntriesError, ValueError) as e:
        fail(str(e))

    if not ranked:
        click.echo(click.style("No entries found", fg="yellow"))
        return

    output_lines = []
    for item in ranked:
        record = service.current_content(item.path)
        title = first_line(record.content if record else None)
        label = f"{title} ({item.path})" if title else item.path
        if item.deleted:
            label += click.style(" (deleted)", fg="red")

        score = click.style(format_score(item.rank_score), fg='cyan')
        output_lines.append(f"{item.position:4d}. {label}  [score: {score}, votes: {item.comparisons}]")

    output_text = "\n".join(output_lines)

    if len(ranked) > 20 and not no_pager:
        click.echo_via_pager(output_text)
    else:
        click.echo(output_text)


@entry.command()
@click.argument('number', type=int)
def show(number):
    """
    Show the entry at a ranked position, with its current content.

    Example:
        entries entry show 3
    """
    service = get_service()

    try:
        item = service.entry_at_position(number)
        record = service.current_content(item.path)
    except EntriesError as e:
        fail(str(e))

    click.echo(click.style(f"\n{item.position}. {item.path}\n", fg="cyan", bold=True))
    click.echo(f"Score: {format_score(item.rank_score)}")
    click.echo(f"Votes: {item.comparisons}")
    click.echo(f"Added: {item.added_at}")
    click.echo(f"Updated: {item.updated_at}")

    if record is not None and record.content is not None:
        click.echo(f"\n@ {record.at}\n{record.content.strip()}")
    elif record is not None:
        click.echo(f"\n@ {record.at}\nsha256:{record.content_hash}")


@entry.command()
@click.argument('path')
@click.option('--content', '-c', help='Entry content')
@click.option('--file', '-f', 'file_path', type=click.Path(exists=True, dir_okay=False), help='Read content from file')
@click.option('--hash', 'content_hash', help='Record only a content hash')
def add(path, content, file_path, content_hash):
    """
    Add an entry, or record new content for an existing one.

    Examples:
        entries entry add reading/article.md --content "Title"
        entries entry add reading/article.md --file ~/entries/reading/article.md
        entries entry add reading/article.md --hash 9f86d0...
    """
    if sum(option is not None for option in (content, file_path, content_hash)) > 1:
        fail("Use only one of --content, --file and --hash")

    if file_path:
        content = Path(file_path).read_bytes().decode('utf-8', errors='replace')

    service = get_service()

    try:
        entry_row = service.submit_entry(path, content=content, content_hash=content_hash)
    except (EntriesError, ValueError) as e:
        fail(str(e))

    click.echo(click.style(f"✓ Saved entry: {entry_row.path}", fg="green"))


@entry.command(name='add-url')
@click.argument('url')
@click.argument('path')
def add_url(url, path):
    """
    Add a link entry titled after the page it points to.

    Example:
        entries entry add-url https://example.com/post links/example-post
    """
    try:
        content = build_link_entry(url)
    except requests.RequestException as e:
        fail(f"Could not fetch {url}: {e}")

    service = get_service()

    try:
        entry_row = service.submit_entry(path, content=content)
    except EntriesError as e:
        fail(str(e))

    click.echo(click.style(f"✓ Saved entry: {entry_row.path}", fg="green"))
    click.echo(f"  {first_line(content)}")


@entry.command()
@click.argument('number', type=int)
def remove(number):
    """
    Delete the entry at a ranked position (soft delete).

    Example:
        entries entry remove 3
    """
    service = get_service()

    try:
        item = service.entry_at_position(number)
        service.mark_deleted(item.path)
    except EntriesError as e:
        fail(str(e))

    click.echo(click.style(f"✓ Entry {number} ({item.path}) removed", fg="green"))


@entry.command()
@click.argument('path')
def delete(path):
    """
    Delete an entry by path (soft delete; votes are kept).

    Example:
        entries entry delete reading/article.md
    """
    service = get_service()

    try:
        service.mark_deleted(path)
    except EntriesError as e:
        fail(str(e))

    click.echo(click.style(f"✓ Entry {path} deleted", fg="green"))


@entry.command()
@click.argument('path')
def history(path):
    """
    Show the content history of an entry.

    Example:
        entries entry history reading/article.md
    """
    service = get_service()

    try:
        records = service.content_history(path)
    except EntriesError as e:
        fail(str(e))

    if not records:
        click.echo(click.style("No content recorded", fg="yellow"))
        return

    rows = []
    for record in records:
        if record.is_tombstone:
            summary = '(deleted)'
        else:
            summary = first_line(record.content) or f"sha256:{record.content_hash[:12]}"
        rows.append([record.at, (record.content_hash or '')[:12], summary[:60]])

    click.echo(tabulate(rows, headers=['At', 'Hash', 'Content'], tablefmt='simple'))


@entry.command()
@click.option('--root', '-r', type=click.Path(file_okay=False), help='Entries directory (default: ENTRIES_ROOT)')
@click.option('--delete-already-deleted', '-d', is_flag=True, help='Remove files whose entry was deleted before')
def sync(root, delete_already_deleted):
    """
    Sync the database with the files in the entries directory.

    Examples:
        entries entry sync
        entries entry sync --root ~/entries -d
    """
    root = root or get_setting('ENTRIES_ROOT', str(Path.home() / 'entries'))
    service = get_service()

    try:
        report = sync_directory(service, root, delete_already_deleted=delete_already_deleted)
    except (EntriesError, OSError) as e:
        fail(str(e))

    summary = report.summary()
    click.echo(click.style(f"✓ Synced {root}", fg="green"))
    for key in ('added', 'updated', 'unchanged', 'deleted', 'removed'):
        click.echo(f"   • {key.capitalize()}: {summary[key]}")

    for path in report.conflicts:
        click.echo(click.style(f"⚠ {path} exists on disk but its entry was deleted (use -d to remove it)", fg="yellow"))


@entry.command(name='import-pocket')
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--prefix', '-p', default='pocket', help='Path prefix for imported entries (default: pocket)')
def import_pocket(file_path, prefix):
    """
    Import unread items from a Pocket JSON export.

    Example:
        entries entry import-pocket output.json
    """
    service = get_service()

    try:
        items = load_pocket_export(file_path)
        count = import_pocket_export(service, items, prefix=prefix)
    except (EntriesError, ValueError, KeyError) as e:
        fail(f"Import failed: {e}")

    click.echo(click.style(f"✓ Imported {count} unread items", fg="green"))
