"""核心数据结构定义：视频元信息、采样帧、分析结果与导出选项。"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional


@dataclass(slots=True, frozen=True)
class VideoInfo:
    """探测得到的视频元信息快照，分析期间只读。"""

    duration: float
    fps: float
    width: int
    height: int
    total_frames: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoInfo":
        return cls(
            duration=float(data["duration"]),
            fps=float(data["fps"]),
            width=int(data["width"]),
            height=int(data["height"]),
            total_frames=int(data["total_frames"]),
        )


@dataclass(slots=True, frozen=True)
class FrameSample:
    """单个采样帧：帧号、时间戳、清晰度得分以及可选的导出路径。

    评分后不可变；导出时用 ``with_path`` 生成带路径的新样本。
    """

    frame_number: int
    timestamp: float
    sharpness: float = 0.0
    path: Optional[str] = None

    @classmethod
    def at(cls, frame_number: int, fps: float, sharpness: float = 0.0) -> "FrameSample":
        """按 frame_number / fps 计算时间戳；fps 非法时回退为 0。"""

        timestamp = frame_number / fps if fps > 0 else 0.0
        return cls(frame_number=frame_number, timestamp=timestamp, sharpness=float(sharpness))

    def with_path(self, path: str) -> "FrameSample":
        return replace(self, path=path)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FrameSample":
        path = data.get("path")
        return cls(
            frame_number=int(data["frame_number"]),
            timestamp=float(data["timestamp"]),
            sharpness=float(data.get("sharpness", 0.0)),
            path=str(path) if path is not None else None,
        )


@dataclass(slots=True)
class AnalysisResult:
    """一次视频分析的完整输出，frames 与采样顺序一一对应。"""

    video_info: VideoInfo
    frames: List[FrameSample] = field(default_factory=list)
    suggested_threshold: float = 0.0
    suggested_frame_count: int = 0

    def scores(self) -> List[float]:
        return [frame.sharpness for frame in self.frames]

    def frame_numbers(self) -> List[int]:
        return [frame.frame_number for frame in self.frames]

    def to_dict(self) -> Dict[str, Any]:
        """辅助序列化：写入 JSON 后可在不重新打分的情况下再次筛选/导出。"""

        return {
            "video_info": self.video_info.to_dict(),
            "frames": [frame.to_dict() for frame in self.frames],
            "suggested_threshold": self.suggested_threshold,
            "suggested_frame_count": self.suggested_frame_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            video_info=VideoInfo.from_dict(data["video_info"]),
            frames=[FrameSample.from_dict(entry) for entry in data.get("frames", [])],
            suggested_threshold=float(data.get("suggested_threshold", 0.0)),
            suggested_frame_count=int(data.get("suggested_frame_count", 0)),
        )


@dataclass(slots=True, frozen=True)
class AnalysisProgress:
    """进度通知载荷，percentage 取值 0-100。"""

    current: int
    total: int
    percentage: float

    @classmethod
    def of(cls, current: int, total: int) -> "AnalysisProgress":
        percentage = (current / total) * 100.0 if total > 0 else 0.0
        return cls(current=current, total=total, percentage=percentage)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


EXPORT_FORMATS = ("jpg", "png")


@dataclass(slots=True)
class ExportOptions:
    """导出选项：阈值缺省时沿用分析结果给出的建议阈值。"""

    format: str = "jpg"
    threshold: Optional[float] = None
    max_frames: Optional[int] = None
    min_frame_distance: int = 1

    def __post_init__(self) -> None:
        self.format = self.format.lower()
        if self.format not in EXPORT_FORMATS:
            raise ValueError(f"不支持的导出格式: {self.format}")
        if self.min_frame_distance < 0:
            raise ValueError("min_frame_distance 不能为负数")
        if self.max_frames is not None and self.max_frames < 0:
            raise ValueError("max_frames 不能为负数")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
