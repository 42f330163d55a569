"""采样计划测试。"""

import pytest

from framepick.core import VideoInfo
from framepick.video import plan_samples
from framepick.video.base import frame_timestamp

INFO = VideoInfo(duration=10.0, fps=30.0, width=640, height=360, total_frames=300)


def test_full_video_stride() -> None:
    frames = plan_samples(INFO, 30)

    assert frames == list(range(0, 300, 30))
    assert len(plan_samples(INFO, 1)) == 300


def test_stride_larger_than_video() -> None:
    assert plan_samples(INFO, 1000) == [0]


def test_time_range_rounds_outward() -> None:
    # start 向下取整，end 向上取整
    frames = plan_samples(INFO, 1, (1.01, 1.99))

    assert frames[0] == 30
    assert frames[-1] == 59


def test_time_range_clamped_to_total_frames() -> None:
    frames = plan_samples(INFO, 25, (9.0, 20.0))

    assert frames == [270, 295]


@pytest.mark.parametrize("time_range", [(-1.0, 2.0), (5.0, 4.0)])
def test_invalid_time_range(time_range) -> None:
    with pytest.raises(ValueError):
        plan_samples(INFO, 10, time_range)


def test_invalid_stride() -> None:
    with pytest.raises(ValueError):
        plan_samples(INFO, 0)


def test_empty_video() -> None:
    empty = VideoInfo(duration=0.0, fps=0.0, width=0, height=0, total_frames=0)

    assert plan_samples(empty, 5) == []
    assert frame_timestamp(empty, 10) == 0.0
    assert frame_timestamp(INFO, 45) == pytest.approx(1.5)
