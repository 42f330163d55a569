"""自动阈值测试。"""

import math

import numpy as np
import pytest

from framepick.selection import auto_threshold, count_at_or_above

SCORES = [10.0, 20.0, 30.0, 40.0, 50.0]


def test_empty_scores() -> None:
    assert auto_threshold([]) == 0.0
    assert auto_threshold([], target_count=3) == 0.0


def test_statistical_threshold() -> None:
    # mean=30，总体标准差=sqrt(200)
    expected = 30.0 + 0.5 * math.sqrt(200.0)

    assert auto_threshold(SCORES) == pytest.approx(expected)
    assert auto_threshold(SCORES) == pytest.approx(37.071, abs=1e-3)


def test_population_not_sample_stddev() -> None:
    scores = [1.0, 3.0]

    assert auto_threshold(scores) == pytest.approx(2.0 + 0.5 * 1.0)


@pytest.mark.parametrize(
    "target_count, expected",
    [(0, 50.0), (1, 40.0), (2, 30.0), (4, 10.0), (5, 10.0), (100, 10.0)],
)
def test_target_count_threshold(target_count: int, expected: float) -> None:
    assert auto_threshold(SCORES, target_count) == expected


def test_target_count_ignores_input_order() -> None:
    shuffled = [30.0, 10.0, 50.0, 20.0, 40.0]

    assert auto_threshold(shuffled, 2) == 30.0


def test_target_count_ties_may_admit_more_frames() -> None:
    scores = [5.0, 9.0, 9.0, 9.0, 1.0]
    threshold = auto_threshold(scores, 1)

    assert threshold == 9.0
    assert count_at_or_above(scores, threshold) == 3


def test_negative_target_count() -> None:
    with pytest.raises(ValueError):
        auto_threshold(SCORES, -1)


def test_count_at_or_above() -> None:
    assert count_at_or_above(SCORES, 30.0) == 3
    assert count_at_or_above(SCORES, 51.0) == 0


def test_numpy_score_vector() -> None:
    scores = np.array(SCORES)

    assert auto_threshold(scores) == pytest.approx(auto_threshold(SCORES))
    assert auto_threshold(scores, 2) == 30.0
    assert auto_threshold(np.array([])) == 0.0
