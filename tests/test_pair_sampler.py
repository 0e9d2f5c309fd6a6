import numpy as np
import pytest

from domain.entry_rank import RankedEntry
from domain.pair_sampler import selection_weights, choose_pair
from conftest import at


def ranked(*comparisons):
    return [
        RankedEntry(position=i, path=f"e{i}", rank_score=0, comparisons=c, added_at=at(i))
        for i, c in enumerate(comparisons, 1)
    ]


def test_weights_favour_rarely_compared_entries():
    weights = selection_weights(ranked(0, 1, 3))

    assert weights.sum() == pytest.approx(1.0)
    assert weights[0] > weights[1] > weights[2]
    assert weights[0] == pytest.approx(4 * weights[2])


def test_choose_pair_returns_two_distinct_entries():
    candidates = ranked(0, 0, 5, 9)
    rng = np.random.default_rng(3)

    for _ in range(50):
        left, right = choose_pair(candidates, rng)
        assert left.path != right.path


def test_choose_pair_is_reproducible_with_seed():
    candidates = ranked(0, 2, 4, 6, 8)

    first = [tuple(r.path for r in choose_pair(candidates, np.random.default_rng(7))) for _ in range(3)]
    second = [tuple(r.path for r in choose_pair(candidates, np.random.default_rng(7))) for _ in range(3)]

    assert first == second


def test_choose_pair_needs_two_entries():
    with pytest.raises(ValueError):
        choose_pair(ranked(0))
