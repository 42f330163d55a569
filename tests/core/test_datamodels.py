"""核心数据模型测试，确保序列化/构造器稳定。"""

import dataclasses

import pytest

from framepick.core import AnalysisProgress, AnalysisResult, ExportOptions, FrameSample, VideoInfo


def _info() -> VideoInfo:
    return VideoInfo(duration=10.0, fps=30.0, width=640, height=360, total_frames=300)


def test_frame_sample_timestamp_from_fps() -> None:
    sample = FrameSample.at(45, 30.0, sharpness=12.5)

    assert sample.timestamp == pytest.approx(1.5)
    assert sample.sharpness == 12.5
    assert sample.path is None
    assert FrameSample.at(10, 0.0).timestamp == 0.0


def test_analysis_result_roundtrip() -> None:
    result = AnalysisResult(
        video_info=_info(),
        frames=[FrameSample.at(0, 30.0, 3.0), FrameSample.at(30, 30.0, 7.0)],
        suggested_threshold=6.0,
        suggested_frame_count=1,
    )
    result.frames[1] = result.frames[1].with_path("frames/frame_000030.jpg")

    restored = AnalysisResult.from_dict(result.to_dict())

    assert restored == result
    assert restored.scores() == [3.0, 7.0]
    assert restored.frame_numbers() == [0, 30]


def test_analysis_progress_percentage() -> None:
    assert AnalysisProgress.of(25, 100).percentage == pytest.approx(25.0)
    assert AnalysisProgress.of(0, 0).percentage == 0.0


def test_export_options_validation() -> None:
    assert ExportOptions(format="PNG").format == "png"
    with pytest.raises(ValueError):
        ExportOptions(format="bmp")
    with pytest.raises(ValueError):
        ExportOptions(min_frame_distance=-1)


def test_frame_sample_is_immutable() -> None:
    sample = FrameSample.at(30, 30.0, sharpness=8.0)

    with pytest.raises(dataclasses.FrozenInstanceError):
        sample.sharpness = 99.0  # type: ignore[misc]

    exported = sample.with_path("frames/frame_000030.jpg")
    assert exported.path == "frames/frame_000030.jpg"
    assert exported.sharpness == 8.0
    assert sample.path is None
