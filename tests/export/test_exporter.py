"""导出器测试。"""

from pathlib import Path

import pytest

from framepick.core import AnalysisResult, ExportOptions, FrameSample, VideoInfo
from framepick.export import FrameExporter, frame_filename


class RecordingSource:
    def __init__(self) -> None:
        self.exported = []

    def export_frame(self, video_path, frame_number, output_path: Path) -> Path:
        self.exported.append((video_path, frame_number))
        output_path.write_bytes(b"img")
        return output_path


def _result() -> AnalysisResult:
    scores = [10.0, 20.0, 30.0, 40.0, 50.0]
    return AnalysisResult(
        video_info=VideoInfo(duration=5.0, fps=30.0, width=64, height=48, total_frames=150),
        frames=[FrameSample.at(idx * 30, 30.0, score) for idx, score in enumerate(scores)],
        suggested_threshold=37.07,
        suggested_frame_count=2,
    )


def test_frame_filename() -> None:
    assert frame_filename(42, "jpg") == "frame_000042.jpg"
    assert frame_filename(1234567, "png") == "frame_1234567.png"


def test_export_writes_files_and_paths(tmp_path: Path) -> None:
    video = tmp_path / "demo.mp4"
    video.write_bytes(b"fake")
    output_dir = tmp_path / "frames"
    source = RecordingSource()
    result = _result()

    paths = FrameExporter(source).export(result, ExportOptions(format="PNG"), video_path=video, output_dir=output_dir)

    assert paths == [output_dir / "frame_000090.png", output_dir / "frame_000120.png"]
    assert all(path.exists() for path in paths)
    assert [number for _, number in source.exported] == [90, 120]
    assert result.frames[3].path == str(paths[0])
    assert result.frames[0].path is None


def test_export_respects_options(tmp_path: Path) -> None:
    video = tmp_path / "demo.mp4"
    video.write_bytes(b"fake")
    source = RecordingSource()

    paths = FrameExporter(source).export(
        _result(),
        ExportOptions(threshold=0.0, max_frames=3, min_frame_distance=2),
        video_path=video,
        output_dir=tmp_path / "out",
    )

    # 间隔 2 时保留下标 0/2/4，再按得分截断
    assert [path.name for path in paths] == ["frame_000120.jpg", "frame_000060.jpg", "frame_000000.jpg"]


def test_missing_video(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        FrameExporter(RecordingSource()).export(
            _result(), ExportOptions(), video_path=tmp_path / "missing.mp4", output_dir=tmp_path / "out"
        )
