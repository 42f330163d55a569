"""根据配置创建解码后端。"""

from __future__ import annotations

from framepick.core.config import DecoderConfig

from .base import VideoSource
from .ffmpeg_source import FfmpegVideoSource
from .opencv_source import OpenCVVideoSource


def create_video_source(config: DecoderConfig) -> VideoSource:
    """默认使用 ffmpeg；配置中的二进制路径通过构造函数注入。"""

    backend = config.backend.lower()
    if backend == "ffmpeg":
        return FfmpegVideoSource(
            ffmpeg_path=config.ffmpeg_path,
            ffprobe_path=config.ffprobe_path,
            hwaccel=config.hwaccel,
        )
    if backend == "opencv":
        return OpenCVVideoSource()
    raise ValueError(f"未知解码后端: {config.backend}")
