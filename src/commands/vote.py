"""
Voting and ranking commands.
"""

import click
import numpy as np
from tabulate import tabulate

from db import EntriesError, VoteDirection
from domain.pair_sampler import choose_pair
from .common import get_service, fail, first_line, format_score


@click.group()
def vote():
    """Compare entries and inspect the ranking."""
    pass


@vote.command()
@click.argument('left')
@click.argument('right')
@click.option('--prefer', '-p', type=click.Choice(['left', 'right', 'skip'], case_sensitive=False), default='left', help='Which entry comes first (default: left)')
def cast(left, right, prefer):
    """
    Record one vote between two entries.

    Examples:
        entries vote cast reading/a.md reading/b.md
        entries vote cast reading/a.md reading/b.md --prefer right
        entries vote cast reading/a.md reading/b.md --prefer skip
    """
    service = get_service()

    try:
        service.submit_vote(left, right, VoteDirection.parse(prefer))
        net = service.net_preference(left, right)
    except EntriesError as e:
        fail(str(e))

    click.echo(click.style(f"✓ Vote recorded ({prefer})", fg="green"))
    click.echo(f"   Net preference {left} over {right}: {format_score(net)}")


@vote.command()
@click.option('--rounds', '-n', type=int, default=0, help='Stop after N votes (default: until quit)')
@click.option('--seed', type=int, help='Random seed for pair selection')
def interactive(rounds, seed):
    """
    Vote on pairs until you quit.

    Rarely compared entries are offered more often.
    Answer 1 or 2 to pick the entry that should come first, s to skip, q to quit.

    Examples:
        entries vote interactive
        entries vote interactive --rounds 10
    """
    service = get_service()
    rng = np.random.default_rng(seed)
    recorded = 0

    while not rounds or recorded < rounds:
        ranked = service.ranking()
        try:
            left, right = choose_pair(ranked, rng)
        except ValueError as e:
            fail(str(e))

        click.echo()
        for number, item in ((1, left), (2, right)):
            record = service.current_content(item.path)
            title = first_line(record.content if record else None) or item.path
            click.echo(f"  {number}. {click.style(title, fg='cyan')} ({item.path})")

        answer = click.prompt('Which first?', type=click.Choice(['1', '2', 's', 'q']), show_choices=True)
        if answer == 'q':
            break

        direction = {'1': VoteDirection.LEFT, '2': VoteDirection.RIGHT, 's': VoteDirection.SKIP}[answer]
        try:
            service.submit_vote(left.path, right.path, direction)
        except EntriesError as e:
            fail(str(e))
        recorded += 1

    click.echo(click.style(f"\n✓ Recorded {recorded} votes", fg="green"))


@vote.command()
@click.argument('a')
@click.argument('b')
def pair(a, b):
    """
    Show every vote between two entries, seen from A's side.

    Example:
        entries vote pair reading/a.md reading/b.md
    """
    service = get_service()

    try:
        votes = service.votes_for_pair(a, b)
        net = service.net_preference(a, b)
    except EntriesError as e:
        fail(str(e))

    if not votes:
        click.echo(click.style("No votes between these entries", fg="yellow"))
        return

    labels = {1: f"{a} first", -1: f"{b} first", 0: "skip"}
    rows = [
        [v.id, v.at, f"{v.left_path} vs {v.right_path}", labels[v.preference], 'yes' if v.reversed else '']
        for v in votes
    ]
    click.echo(tabulate(rows, headers=['ID', 'At', 'Stored as', 'Outcome', 'Reversed'], tablefmt='simple'))
    click.echo(f"\nNet preference {a} over {b}: {format_score(net)}")


@vote.command()
def rerank():
    """
    Rebuild the ranking from the full vote log.

    Example:
        entries vote rerank
    """
    service = get_service()

    click.echo(click.style("🔄 Rebuilding ranking from the vote log...\n", fg="cyan", bold=True))

    try:
        stats = service.rerank()
    except EntriesError as e:
        fail(str(e))

    overview = [
        ['Entries', stats['total_entries']],
        ['Deleted entries', stats['deleted_entries']],
        ['Votes', stats['total_votes']],
        ['Skip votes', stats['skip_votes']],
        ['Voted pairs', stats['voted_pairs']],
        ['Resolved pairs', stats['resolved_pairs']],
        ['Ranked entries', stats['entries_ranked']],
        ['Never compared', stats['uncompared_entries']],
        ['Duration', f"{stats['duration_seconds']:.3f}s"],
    ]
    click.echo(tabulate(overview, tablefmt='plain'))

    if stats['top_entries']:
        click.echo(click.style("\n🏆 Top entries:\n", bold=True))
        for i, item in enumerate(stats['top_entries'], 1):
            click.echo(f"   {i:2d}. {click.style(item['path'], fg='cyan')} ({format_score(item['score'])})")
