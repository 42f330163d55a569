"""帧筛选测试，覆盖间隔约束、截断与导出计划。"""

import random

import pytest

from framepick.core import AnalysisResult, ExportOptions, FrameSample, VideoInfo
from framepick.selection import auto_threshold, plan_export, select_frames

SCORES = [10.0, 20.0, 30.0, 40.0, 50.0]


def test_scenario_statistical_threshold() -> None:
    threshold = auto_threshold(SCORES)

    assert select_frames(SCORES, threshold, 1) == [3, 4]


def test_scenario_target_count() -> None:
    threshold = auto_threshold(SCORES, target_count=2)

    assert threshold == 30.0
    assert select_frames(SCORES, threshold, 0) == [2, 3, 4]


def test_min_distance_is_greedy() -> None:
    scores = [5.0, 9.0, 9.0, 1.0, 9.0, 9.0, 9.0]

    # 下标 2 因距离不足被跳过后不会再被考虑
    assert select_frames(scores, 5.0, 2) == [0, 2, 4, 6]
    assert select_frames(scores, 9.0, 3) == [1, 4]


def test_max_frames_ranks_by_score() -> None:
    scores = [50.0, 10.0, 90.0, 10.0, 70.0, 10.0, 60.0]

    assert select_frames(scores, 40.0, 2, max_frames=2) == [2, 4]
    assert select_frames(scores, 40.0, 2, max_frames=0) == []
    assert select_frames(scores, 40.0, 2, max_frames=10) == [2, 4, 6, 0]


def test_negative_min_distance() -> None:
    with pytest.raises(ValueError):
        select_frames(SCORES, 0.0, -1)


@pytest.mark.parametrize("seed", range(5))
def test_selection_properties(seed: int) -> None:
    rng = random.Random(seed)
    scores = [rng.uniform(0, 100) for _ in range(200)]
    threshold = auto_threshold(scores)
    min_distance = rng.randint(0, 6)

    selected = select_frames(scores, threshold, min_distance)

    assert all(scores[idx] >= threshold for idx in selected)
    assert all(b > a for a, b in zip(selected, selected[1:]))
    assert all(b - a >= min_distance for a, b in zip(selected, selected[1:]))


def test_plan_export_maps_indices_to_frame_numbers() -> None:
    result = AnalysisResult(
        video_info=VideoInfo(duration=5.0, fps=30.0, width=64, height=48, total_frames=150),
        frames=[FrameSample.at(n * 30, 30.0, score) for n, score in enumerate(SCORES)],
        suggested_threshold=35.0,
        suggested_frame_count=2,
    )

    assert plan_export(result, ExportOptions()) == [90, 120]
    assert plan_export(result, ExportOptions(threshold=20.0, min_frame_distance=2)) == [30, 90]
    assert plan_export(result, ExportOptions(threshold=0.0, max_frames=2)) == [120, 90]
