"""视频解码协作方接口与通用采样逻辑。"""

from __future__ import annotations

import math
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from framepick.core import VideoInfo

TimeRange = Tuple[float, float]


class VideoSourceError(RuntimeError):
    """解码相关异常基类。"""


class VideoProbeError(VideoSourceError):
    """无法读取视频元信息。"""


class ExtractionError(VideoSourceError):
    """单次抽帧失败；按帧可恢复，按批次则终止分析。"""


class DecoderUnavailable(VideoSourceError):
    """解码器本身不可用（如找不到 ffmpeg），属于致命错误。"""


class VideoSource(Protocol):
    """解码后端协议：探测、抽帧（单帧/批量）、导出与采样计划。"""

    def probe(self, video_path: str | Path) -> VideoInfo:
        ...

    def extract_frame(self, video_path: str | Path, frame_number: int) -> NDArray[np.uint8]:
        """返回单通道亮度图 (H, W)。"""
        ...

    def extract_frames_batch(self, video_path: str | Path, frame_numbers: Sequence[int]) -> List[NDArray[np.uint8]]:
        """一次调用抽取多帧，返回顺序与请求顺序一致。"""
        ...

    def export_frame(self, video_path: str | Path, frame_number: int, output_path: Path) -> Path:
        """将指定帧以彩色图片写入 output_path。"""
        ...

    def sample_frame_numbers(
        self,
        video_path: str | Path,
        stride: int,
        time_range: Optional[TimeRange] = None,
    ) -> List[int]:
        ...


def plan_samples(info: VideoInfo, stride: int, time_range: Optional[TimeRange] = None) -> List[int]:
    """在 [start_frame, end_frame) 内按固定步长生成帧号。

    time_range 以秒为单位：start_frame = floor(start * fps)，end_frame = min(total, ceil(end * fps))。
    """

    if stride < 1:
        raise ValueError("stride must be >= 1")

    start_frame, end_frame = 0, info.total_frames
    if time_range is not None:
        start_s, end_s = time_range
        if start_s < 0 or end_s < start_s:
            raise ValueError(f"非法的时间范围: {time_range}")
        start_frame = math.floor(start_s * info.fps)
        end_frame = min(info.total_frames, math.ceil(end_s * info.fps))
    return list(range(start_frame, end_frame, stride))


def frame_timestamp(info: VideoInfo, frame_number: int) -> float:
    return frame_number / info.fps if info.fps > 0 else 0.0
