"""
Pick the next pair of entries to vote on.

Entries that have been compared less often are the ones whose position is
least certain, so they are offered more often: each entry is drawn with
weight 1 / (1 + comparisons), two entries without replacement.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from domain.entry_rank import RankedEntry


def selection_weights(ranked: Sequence[RankedEntry]) -> np.ndarray:
    """Normalized draw probabilities for each ranked entry."""
    weights = np.array([1.0 / (1 + r.comparisons) for r in ranked], dtype=float)
    return weights / weights.sum()


def choose_pair(
    ranked: Sequence[RankedEntry],
    rng: Optional[np.random.Generator] = None
) -> Tuple[RankedEntry, RankedEntry]:
    """
    Draw two distinct entries, favouring rarely compared ones.

    Args:
        ranked: Candidate entries (typically EntryService.ranking())
        rng: numpy Generator; pass a seeded one for reproducible draws

    Returns:
        (left, right) in draw order

    Raises:
        ValueError: If fewer than two entries are available
    """
    if len(ranked) < 2:
        raise ValueError("At least two entries are required to vote")

    rng = rng or np.random.default_rng()
    first, second = rng.choice(len(ranked), size=2, replace=False, p=selection_weights(ranked))
    return ranked[int(first)], ranked[int(second)]
