"""
Entry ranking from pairwise votes.

Every vote is folded into a net preference for its unordered pair:

- net = (votes for a over b) - (votes for b over a)
- net > 0 means a wins the pair, net < 0 means b wins, 0 means no edge

The resolved pairs form a directed preference graph that may contain cycles
(A > B > C > A). Instead of a topological sort, entries are ranked by their
tournament standing: pairs won minus pairs lost. Ordering:

1. Entries with at least one recorded vote, by score descending
2. Then by added_at ascending (older first), then path ascending
3. Entries that were never compared come last, by added_at then path

The calculator is incremental: a new vote touches one pair and, when the
pair's winner changes, the scores of its two entries. A full recomputation is
just a replay of the log into an empty calculator.
"""

import numpy as np
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from db.vote_log import canonical_pair


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


@dataclass
class RankedEntry:
    """One row of the ranked projection."""
    position: int          # 1-based
    path: str
    rank_score: int
    comparisons: int       # recorded votes involving this entry
    added_at: datetime
    updated_at: Optional[datetime] = None
    deleted: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


class EntryRankCalculator:
    """Score table built from the vote log."""

    def __init__(self):
        self.pair_net: Dict[Tuple[str, str], int] = {}
        self.scores: Dict[str, int] = defaultdict(int)
        self.comparisons: Dict[str, int] = defaultdict(int)
        self.total_votes = 0
        self.skip_votes = 0
        self.last_vote_id = 0

    def add_vote(self, left_path: str, right_path: str, vote: int, vote_id: Optional[int] = None):
        """
        Fold one vote into the table.

        Args:
            left_path: Left entry of the stored vote
            right_path: Right entry of the stored vote
            vote: Positive = left preferred, negative = right preferred, 0 = skip
            vote_id: Log id of the vote, tracked so later calls can resume
        """
        if vote_id is not None and vote_id > self.last_vote_id:
            self.last_vote_id = vote_id
        self.total_votes += 1

        # Rejected at write time; ignored here so replay never fails
        if left_path == right_path:
            return

        vote = _sign(int(vote))
        a, b = canonical_pair(left_path, right_path)
        delta = vote if left_path == a else -vote

        old_net = self.pair_net.get((a, b), 0)
        new_net = old_net + delta
        self.pair_net[(a, b)] = new_net

        change = _sign(new_net) - _sign(old_net)
        if change:
            self.scores[a] += change
            self.scores[b] -= change

        self.comparisons[left_path] += 1
        self.comparisons[right_path] += 1
        if vote == 0:
            self.skip_votes += 1

    def replay(self, votes: Iterable) -> "EntryRankCalculator":
        """Fold a sequence of vote rows (objects with left_path, right_path, vote, id)."""
        for row in votes:
            self.add_vote(row.left_path, row.right_path, row.vote, getattr(row, 'id', None))
        return self

    def net_preference(self, a: str, b: str) -> int:
        """Net votes for a over b (negative when b is preferred)."""
        if a == b:
            return 0
        first, second = canonical_pair(a, b)
        net = self.pair_net.get((first, second), 0)
        return net if a == first else -net

    def standing(self, path: str) -> Tuple[int, int]:
        """(score, comparisons) for a path; (0, 0) if it never appeared in a vote."""
        return self.scores.get(path, 0), self.comparisons.get(path, 0)

    def standings(self) -> Dict[str, int]:
        """Snapshot of all non-default scores."""
        return {path: score for path, score in self.scores.items() if score}

    @property
    def voted_pairs(self) -> int:
        return len(self.pair_net)

    @property
    def resolved_pairs(self) -> int:
        return sum(1 for net in self.pair_net.values() if net != 0)

    def sort_key(self, path: str, added_at: Optional[datetime]):
        score, comparisons = self.standing(path)
        return (
            0 if comparisons > 0 else 1,
            -score,
            added_at or datetime.min,
            path
        )

    def rank(self, entries: Iterable, include_deleted: bool = False) -> List[RankedEntry]:
        """
        Order entries by standing.

        Args:
            entries: Objects with path, added_at and optionally updated_at
                and is_deleted (e.g. Entry rows)
            include_deleted: Keep soft-deleted entries in the output

        Returns:
            List of RankedEntry, positions starting at 1
        """
        candidates = [
            e for e in entries
            if include_deleted or not getattr(e, 'is_deleted', False)
        ]
        candidates.sort(key=lambda e: self.sort_key(e.path, e.added_at))

        ranked = []
        for position, entry in enumerate(candidates, 1):
            score, comparisons = self.standing(entry.path)
            ranked.append(RankedEntry(
                position=position,
                path=entry.path,
                rank_score=score,
                comparisons=comparisons,
                added_at=entry.added_at,
                updated_at=getattr(entry, 'updated_at', None),
                deleted=bool(getattr(entry, 'is_deleted', False))
            ))
        return ranked

    def score_statistics(self, ranked: List[RankedEntry]) -> Dict[str, Optional[float]]:
        """Distribution of rank scores over a ranked list."""
        if not ranked:
            return {
                'min_score': None,
                'max_score': None,
                'mean_score': None,
                'median_score': None,
                'std_dev_score': None
            }

        scores = np.array([r.rank_score for r in ranked], dtype=float)
        return {
            'min_score': float(np.min(scores)),
            'max_score': float(np.max(scores)),
            'mean_score': float(np.mean(scores)),
            'median_score': float(np.median(scores)),
            'std_dev_score': float(np.std(scores))
        }
