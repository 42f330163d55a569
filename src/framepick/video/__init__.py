"""视频解码协作方：元信息探测、抽帧与采样计划。"""

from .base import (
    DecoderUnavailable,
    ExtractionError,
    VideoProbeError,
    VideoSource,
    VideoSourceError,
    plan_samples,
)
from .factory import create_video_source
from .ffmpeg_source import FfmpegVideoSource
from .opencv_source import OpenCVVideoSource

__all__ = [
    "VideoSource",
    "VideoSourceError",
    "VideoProbeError",
    "ExtractionError",
    "DecoderUnavailable",
    "plan_samples",
    "create_video_source",
    "FfmpegVideoSource",
    "OpenCVVideoSource",
]
