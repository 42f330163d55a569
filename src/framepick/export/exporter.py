from __future__ import annotations

# 本模块负责把筛选结果落盘：
# 1) 根据导出选项（阈值/最小间隔/最大帧数）从分析结果中挑选帧号；
# 2) 通过解码后端逐帧导出彩色图片，文件名 frame_{帧号:06d}.{jpg|png}；
# 3) 以带路径的新 FrameSample 替换结果中的对应样本。

import os
from pathlib import Path
from typing import Dict, List

from framepick.core import AnalysisResult, ExportOptions, get_logger
from framepick.selection import plan_export
from framepick.video import VideoSource

logger = get_logger(__name__)


def frame_filename(frame_number: int, fmt: str) -> str:
    return f"frame_{frame_number:06d}.{fmt}"


class FrameExporter:
    """导出器：负责将筛选后的帧写成图片。

    依赖解码后端的 ``export_frame``；单帧失败直接抛出，不做重试。
    """

    def __init__(self, source: VideoSource) -> None:
        self.source = source

    def export(
        self,
        result: AnalysisResult,
        options: ExportOptions,
        *,
        video_path: Path,
        output_dir: Path,
    ) -> List[Path]:
        """执行导出，返回按导出顺序排列的图片路径。"""

        if not video_path.exists():
            raise FileNotFoundError(f"源视频文件不存在: {video_path}")

        output_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(str(output_dir), os.W_OK):
            raise PermissionError(f"输出目录不可写: {output_dir}")

        frame_numbers = plan_export(result, options)
        positions: Dict[int, int] = {frame.frame_number: idx for idx, frame in enumerate(result.frames)}
        logger.info("Exporting %d of %d analyzed frames to %s", len(frame_numbers), len(result.frames), output_dir)

        paths: List[Path] = []
        for frame_number in frame_numbers:
            target = output_dir / frame_filename(frame_number, options.format)
            written = self.source.export_frame(video_path, frame_number, target)
            idx = positions[frame_number]
            result.frames[idx] = result.frames[idx].with_path(str(written))
            paths.append(written)
        return paths
