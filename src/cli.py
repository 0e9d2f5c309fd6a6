#!/usr/bin/env python3
"""
CLI for the entries tracker.
"""

import click
from importlib.metadata import version
from commands import entry, vote


@click.group()
@click.version_option(version=version("entries"))
def cli():
    """Entries - track files and links, rank them by pairwise votes."""
    pass


# Register command groups
cli.add_command(entry.entry)
cli.add_command(vote.vote)


if __name__ == "__main__":
    cli()
