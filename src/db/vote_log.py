"""
Append-only log of pairwise votes.

Rows are never updated or deleted; a change of mind is a new vote. Readers
reinterpret a stored row relative to the pair order they asked about instead
of rewriting it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Tuple

from sqlalchemy import func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import Database
from .exceptions import ForeignKeyError, InvalidVoteError
from .models import Vote, VoteDirection


@dataclass(frozen=True)
class PairVote:
    """A stored vote as seen from a queried (a, b) order."""
    id: int
    left_path: str
    right_path: str
    vote: int
    at: datetime
    reversed: bool  # True when the stored row is (b, a)

    @property
    def preference(self) -> int:
        """+1 if the first queried path was preferred, -1 if the second, 0 for a skip."""
        return -self.vote if self.reversed else self.vote


def canonical_pair(a: str, b: str) -> Tuple[str, str]:
    """Order-independent key for an unordered pair."""
    return (a, b) if a <= b else (b, a)


def record_vote(
    db: Database,
    session: Session,
    left_path: str,
    right_path: str,
    vote,
    at: datetime
) -> Vote:
    """
    Append a vote and bump updated_at on both entries.

    Args:
        db: Database instance (entry lookups)
        session: Database session, inside the caller's transaction
        left_path: First entry of the pair
        right_path: Second entry of the pair
        vote: VoteDirection, +1/-1/0 or 'left'/'right'/'skip'
        at: Timestamp of the vote

    Returns:
        The new Vote row

    Raises:
        InvalidVoteError: Self-referential pair or unknown vote value
        ForeignKeyError: Either path is unknown
    """
    if left_path == right_path:
        raise InvalidVoteError(f"Cannot compare '{left_path}' with itself")

    try:
        direction = VoteDirection.parse(vote)
    except ValueError as e:
        raise InvalidVoteError(str(e)) from e

    left = db.require_entry(session, left_path)
    right = db.require_entry(session, right_path)

    row = Vote(left_path=left_path, right_path=right_path, vote=int(direction), at=at)
    session.add(row)

    left.touch(at)
    right.touch(at)

    try:
        session.flush()
    except IntegrityError as e:
        raise ForeignKeyError(left_path, f"Vote ({left_path}, {right_path}) rejected: {e.orig}") from e

    return row


def votes_for_pair(session: Session, a: str, b: str) -> List[PairVote]:
    """
    All votes between a and b, oldest first, whichever side each was stored on.
    """
    rows = (session.query(Vote)
            .filter(or_(
                and_(Vote.left_path == a, Vote.right_path == b),
                and_(Vote.left_path == b, Vote.right_path == a),
            ))
            .order_by(Vote.at, Vote.id)
            .all())

    return [
        PairVote(
            id=row.id,
            left_path=row.left_path,
            right_path=row.right_path,
            vote=row.vote,
            at=row.at,
            reversed=(row.left_path != a)
        )
        for row in rows
    ]


def iter_votes(session: Session, after_id: int = 0, batch_size: int = 500) -> Iterator[Vote]:
    """
    Lazily yield votes in append order.

    Each call starts a new query, so the sequence can be replayed from the
    beginning (or from `after_id`) any number of times.
    """
    query = (session.query(Vote)
             .filter(Vote.id > after_id)
             .order_by(Vote.id)
             .yield_per(batch_size))
    for row in query:
        yield row


def vote_log_state(session: Session) -> Tuple[int, int]:
    """(number of votes, highest vote id), (0, 0) for an empty log."""
    count, max_id = session.query(func.count(Vote.id), func.max(Vote.id)).one()
    return count or 0, max_id or 0
