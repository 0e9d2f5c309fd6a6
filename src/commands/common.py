"""
Helpers shared by the CLI command groups.
"""

import sys

import click

from db import Database
from domain.entry_service import EntryService
from settings import get_setting


def get_service() -> EntryService:
    """EntryService on the configured databases."""
    db = Database(get_setting('ENTRIES_DB_PATH', 'data/entries.db'))
    return EntryService(db, log_db_path=get_setting('ENTRIES_LOG_DB_PATH', 'data/entries_logs.db'))


def fail(message: str):
    """Print an error and exit with status 1."""
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    if get_setting('DEBUG', 'False').lower() in ('true', '1', 'yes') and sys.exc_info()[0] is not None:
        import traceback
        traceback.print_exc()
    raise click.exceptions.Exit(1)


def first_line(content) -> str:
    """Title line of an entry's content."""
    if not content:
        return ''
    return content.strip().split('\n', 1)[0].strip()


def format_score(score: int) -> str:
    return f"{score:+d}" if score else "0"
