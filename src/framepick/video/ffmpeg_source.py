"""基于 ffmpeg-python 的解码后端。

所有调用都通过子进程完成：ffprobe 读取元信息，ffmpeg 以 rawvideo/gray 输出到 stdout。
二进制路径由构造参数注入，不依赖任何进程级缓存。
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import ffmpeg
import numpy as np
from numpy.typing import NDArray

from framepick.core import VideoInfo, get_logger

from .base import (
    DecoderUnavailable,
    ExtractionError,
    TimeRange,
    VideoProbeError,
    frame_timestamp,
    plan_samples,
)

DEFAULT_FPS = 30.0

logger = get_logger(__name__)


def _stderr_text(exc: ffmpeg.Error) -> str:
    stderr = getattr(exc, "stderr", None)
    if not stderr:
        return str(exc)
    return stderr.decode("utf-8", errors="replace").strip()


def _parse_rate(value: Optional[str]) -> Optional[float]:
    """解析 "30000/1001" 形式的帧率，非法值返回 None。"""

    if not value:
        return None
    parts = value.split("/")
    try:
        if len(parts) == 2:
            num, den = float(parts[0]), float(parts[1])
            return num / den if den else None
        return float(value)
    except ValueError:
        return None


def _parse_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _display_rotation(stream: Dict[str, Any]) -> int:
    """读取显示旋转角度（0/90/180/270）；新版 ffprobe 放在 Display Matrix，旧版在 tags.rotate。"""

    for side_data in stream.get("side_data_list") or []:
        rotation = _parse_float(side_data.get("rotation"))
        if rotation is not None:
            return int(round(rotation)) % 360
    rotation = _parse_float((stream.get("tags") or {}).get("rotate"))
    return int(round(rotation)) % 360 if rotation is not None else 0


def parse_probe(payload: Dict[str, Any]) -> VideoInfo:
    """将 ffprobe JSON 转为 VideoInfo。

    ffmpeg 输出 rawvideo 时会按显示矩阵自动旋转，宽高取旋转后的显示尺寸，否则按编码尺寸切帧会错位。
    """

    streams = [s for s in payload.get("streams", []) if s.get("codec_type", "video") == "video"]
    if not streams:
        raise VideoProbeError("视频中没有可用的视频流")
    stream = streams[0]

    try:
        width = int(stream["width"])
        height = int(stream["height"])
    except (KeyError, TypeError, ValueError) as exc:
        raise VideoProbeError("ffprobe 输出缺少分辨率信息") from exc
    if _display_rotation(stream) in (90, 270):
        width, height = height, width

    fps = _parse_rate(stream.get("r_frame_rate")) or _parse_rate(stream.get("avg_frame_rate")) or DEFAULT_FPS

    duration = _parse_float(stream.get("duration"))
    if duration is None:
        duration = _parse_float(payload.get("format", {}).get("duration")) or 0.0

    nb_frames = _parse_float(stream.get("nb_frames"))
    total_frames = int(nb_frames) if nb_frames is not None else int(duration * fps)

    return VideoInfo(duration=duration, fps=fps, width=width, height=height, total_frames=total_frames)


class FfmpegVideoSource:
    """ffmpeg/ffprobe 子进程解码后端。"""

    def __init__(
        self,
        ffmpeg_path: Optional[str] = None,
        ffprobe_path: Optional[str] = None,
        *,
        hwaccel: Optional[str] = None,
    ) -> None:
        self.ffmpeg_cmd = ffmpeg_path or "ffmpeg"
        self.ffprobe_cmd = ffprobe_path or "ffprobe"
        self.hwaccel = hwaccel
        self._info_cache: Dict[Path, VideoInfo] = {}
        self._cache_lock = threading.Lock()

    def probe(self, video_path: str | Path) -> VideoInfo:
        path = Path(video_path)
        with self._cache_lock:
            cached = self._info_cache.get(path)
        if cached is not None:
            return cached

        try:
            payload = ffmpeg.probe(str(path), cmd=self.ffprobe_cmd, select_streams="v:0")
        except FileNotFoundError as exc:
            raise DecoderUnavailable(f"找不到 ffprobe: {self.ffprobe_cmd}") from exc
        except ffmpeg.Error as exc:
            raise VideoProbeError(f"ffprobe 失败 ({path}): {_stderr_text(exc)}") from exc

        info = parse_probe(payload)
        with self._cache_lock:
            self._info_cache[path] = info
        return info

    def sample_frame_numbers(
        self,
        video_path: str | Path,
        stride: int,
        time_range: Optional[TimeRange] = None,
    ) -> List[int]:
        return plan_samples(self.probe(video_path), stride, time_range)

    def extract_frame(self, video_path: str | Path, frame_number: int) -> NDArray[np.uint8]:
        info = self.probe(video_path)
        stream = (
            ffmpeg.input(str(video_path), ss=frame_timestamp(info, frame_number), **self._input_kwargs())
            .output("pipe:", vframes=1, format="rawvideo", pix_fmt="gray")
        )
        raw = self._run(stream, what=f"frame {frame_number}")
        return self._split_frames(raw, info, 1)[0]

    def extract_frames_batch(self, video_path: str | Path, frame_numbers: Sequence[int]) -> List[NDArray[np.uint8]]:
        """单次 ffmpeg 调用，通过 select 滤镜按帧号挑选，避免逐帧启动进程与 seek。"""

        if not frame_numbers:
            return []
        info = self.probe(video_path)
        wanted = sorted(set(int(n) for n in frame_numbers))
        # 先 seek 到首帧之前半帧，select 中的 n 从 seek 点重新计数
        first = wanted[0]
        seek_kwargs: Dict[str, Any] = {}
        if first > 0 and info.fps > 0:
            seek_kwargs["ss"] = (first - 0.5) / info.fps
        else:
            first = 0
        expr = "+".join(f"eq(n,{n - first})" for n in wanted)
        stream = (
            ffmpeg.input(str(video_path), **seek_kwargs, **self._input_kwargs())
            .filter("select", expr)
            .output("pipe:", vframes=len(wanted), vsync="passthrough", format="rawvideo", pix_fmt="gray")
        )
        raw = self._run(stream, what=f"{len(wanted)} frames")
        by_number = dict(zip(wanted, self._split_frames(raw, info, len(wanted))))
        return [by_number[int(n)] for n in frame_numbers]

    def export_frame(self, video_path: str | Path, frame_number: int, output_path: Path) -> Path:
        info = self.probe(video_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        stream = (
            ffmpeg.input(str(video_path), ss=frame_timestamp(info, frame_number), **self._input_kwargs())
            .output(str(output_path), vframes=1, **{"q:v": 2})
            .overwrite_output()
        )
        self._run(stream, what=f"export frame {frame_number}")
        return output_path

    def _input_kwargs(self) -> Dict[str, Any]:
        return {"hwaccel": self.hwaccel} if self.hwaccel else {}

    def _run(self, stream: Any, *, what: str) -> bytes:
        try:
            out, _ = stream.run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True, quiet=True)
        except FileNotFoundError as exc:
            raise DecoderUnavailable(f"找不到 ffmpeg: {self.ffmpeg_cmd}") from exc
        except ffmpeg.Error as exc:
            raise ExtractionError(f"ffmpeg 抽取 {what} 失败: {_stderr_text(exc)}") from exc
        return out or b""

    @staticmethod
    def _split_frames(raw: bytes, info: VideoInfo, expected: int) -> List[NDArray[np.uint8]]:
        frame_size = info.width * info.height
        if frame_size <= 0 or len(raw) < frame_size * expected:
            got = len(raw) // frame_size if frame_size > 0 else 0
            raise ExtractionError(f"期望 {expected} 帧，实际解码 {got} 帧")
        buffer = np.frombuffer(raw, dtype=np.uint8)
        return [
            buffer[idx * frame_size : (idx + 1) * frame_size].reshape(info.height, info.width).copy()
            for idx in range(expected)
        ]
