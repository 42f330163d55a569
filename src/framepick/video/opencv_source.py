"""基于 OpenCV VideoCapture 的解码后端，无需外部 ffmpeg 可执行文件。"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional, Sequence

import cv2
import numpy as np
from numpy.typing import NDArray

from framepick.core import VideoInfo

from .base import ExtractionError, TimeRange, VideoProbeError, VideoSourceError, plan_samples


@contextmanager
def _open_capture(video_path: str | Path, error_cls: type[VideoSourceError]) -> Generator[cv2.VideoCapture, None, None]:
    path = Path(video_path)
    capture = cv2.VideoCapture(str(path))
    try:
        if not capture.isOpened():
            raise error_cls(f"无法打开视频: {path}")
        yield capture
    finally:
        capture.release()


def _read_at(capture: cv2.VideoCapture, frame_number: int) -> NDArray[np.uint8]:
    position = int(capture.get(cv2.CAP_PROP_POS_FRAMES))
    if position != frame_number:
        capture.set(cv2.CAP_PROP_POS_FRAMES, frame_number)
    success, frame = capture.read()
    if not success or frame is None:
        raise ExtractionError(f"读取第 {frame_number} 帧失败")
    return frame


def _gray(frame: NDArray[np.uint8]) -> NDArray[np.uint8]:
    if frame.ndim == 2:
        return frame
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


class OpenCVVideoSource:
    """OpenCV 解码后端；按帧号 seek 读取，批量抽帧复用同一个 VideoCapture。"""

    jpeg_quality = 95

    def probe(self, video_path: str | Path) -> VideoInfo:
        with _open_capture(video_path, VideoProbeError) as capture:
            fps = float(capture.get(cv2.CAP_PROP_FPS) or 0.0)
            total_frames = int(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
            width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        duration = total_frames / fps if fps > 0 else 0.0
        return VideoInfo(duration=duration, fps=fps, width=width, height=height, total_frames=total_frames)

    def sample_frame_numbers(
        self,
        video_path: str | Path,
        stride: int,
        time_range: Optional[TimeRange] = None,
    ) -> List[int]:
        return plan_samples(self.probe(video_path), stride, time_range)

    def extract_frame(self, video_path: str | Path, frame_number: int) -> NDArray[np.uint8]:
        with _open_capture(video_path, ExtractionError) as capture:
            return _gray(_read_at(capture, frame_number))

    def extract_frames_batch(self, video_path: str | Path, frame_numbers: Sequence[int]) -> List[NDArray[np.uint8]]:
        if not frame_numbers:
            return []
        with _open_capture(video_path, ExtractionError) as capture:
            return [_gray(_read_at(capture, int(n))) for n in frame_numbers]

    def export_frame(self, video_path: str | Path, frame_number: int, output_path: Path) -> Path:
        with _open_capture(video_path, ExtractionError) as capture:
            frame = _read_at(capture, frame_number)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        params = [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality] if output_path.suffix.lower() in {".jpg", ".jpeg"} else []
        if not cv2.imwrite(str(output_path), frame, params):
            raise ExtractionError(f"写入图片失败: {output_path}")
        return output_path
