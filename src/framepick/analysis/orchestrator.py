"""批量分析编排：采样帧 -> 抽帧 -> 评分 -> 进度通知 -> 建议阈值。

两种互斥策略：
- CPU：线程池逐帧抽取并评分，map 保持采样顺序；单帧抽取失败记 0 分，分析继续。
- GPU：按固定批次一次性抽帧，批内在同一个 GPU 上下文上顺序评分；
  批次抽取失败直接终止整个分析，单帧 GPU 失败则回退 CPU。
"""

from __future__ import annotations

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from framepick.core import AnalysisProgress, AnalysisResult, FrameSample, VideoInfo, get_logger
from framepick.selection import auto_threshold, count_at_or_above
from framepick.sharpness import BoundaryMode, GpuContext, laplacian_variance, score_frame
from framepick.video import ExtractionError, VideoSource
from framepick.video.base import TimeRange

DEFAULT_GPU_BATCH_SIZE = 50

ProgressCallback = Callable[[AnalysisProgress], None]

logger = get_logger(__name__)


class ProgressTracker:
    """线程安全的进度计数器。

    通知在锁外发送，多线程下可能乱序到达；回调异常只记录日志，不影响分析。
    """

    def __init__(self, total: int, callback: Optional[ProgressCallback] = None) -> None:
        self.total = total
        self._callback = callback
        self._current = 0
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        with self._lock:
            return self._current

    def start(self) -> None:
        self._notify(0)

    def advance(self, step: int = 1) -> int:
        with self._lock:
            self._current += step
            current = self._current
        self._notify(current)
        return current

    def _notify(self, current: int) -> None:
        if self._callback is None:
            return
        try:
            self._callback(AnalysisProgress.of(current, self.total))
        except Exception:
            logger.warning("progress callback raised, notification dropped", exc_info=True)


def build_result(video_info: VideoInfo, frames: List[FrameSample]) -> AnalysisResult:
    """根据全部得分计算建议阈值与建议帧数。"""

    scores = [frame.sharpness for frame in frames]
    threshold = auto_threshold(scores)
    return AnalysisResult(
        video_info=video_info,
        frames=frames,
        suggested_threshold=threshold,
        suggested_frame_count=count_at_or_above(scores, threshold),
    )


def analyze_samples(
    video_path: str | Path,
    frame_numbers: Sequence[int],
    *,
    source: VideoSource,
    video_info: VideoInfo,
    use_gpu: bool = False,
    gpu_context: Optional[GpuContext] = None,
    gpu_device: Optional[str] = None,
    workers: Optional[int] = None,
    batch_size: int = DEFAULT_GPU_BATCH_SIZE,
    boundary: Optional[BoundaryMode | str] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> AnalysisResult:
    """对预先给定的帧号列表打分。

    传入 gpu_context 时复用调用方的上下文（调用方负责关闭）；仅设置 use_gpu 时在此创建并在结束后关闭。
    GPU 初始化失败会直接抛出 GpuInitError，是否回退 CPU 由调用方决定。
    boundary 缺省时沿用传入上下文的约定（无上下文则为 INTERIOR）；与上下文不一致时抛出 ValueError。
    本函数内部会调用 asyncio.run 创建上下文，不能在运行中的事件循环里直接调用。
    """

    numbers = [int(n) for n in frame_numbers]
    boundary = _resolve_boundary(boundary, gpu_context)
    tracker = ProgressTracker(len(numbers), progress_callback)
    started = time.perf_counter()

    if gpu_context is not None or use_gpu:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        owned = gpu_context is None
        context = gpu_context or asyncio.run(GpuContext.create(gpu_device, boundary=boundary))
        try:
            frames = _score_gpu_batches(video_path, numbers, source, video_info, context, batch_size, tracker)
        finally:
            if owned:
                context.close()
        strategy = "gpu"
    else:
        frames = _score_cpu_parallel(video_path, numbers, source, video_info, boundary, workers, tracker)
        strategy = "cpu"

    result = build_result(video_info, frames)
    logger.info(
        "Analyzed %d frames with %s strategy in %.2fs, suggested threshold %.2f (%d frames)",
        len(frames),
        strategy,
        time.perf_counter() - started,
        result.suggested_threshold,
        result.suggested_frame_count,
    )
    return result


def analyze_video(
    video_path: str | Path,
    *,
    source: VideoSource,
    sample_rate: int = 30,
    time_range: Optional[TimeRange] = None,
    **kwargs,
) -> AnalysisResult:
    """主入口：探测视频 -> 生成采样计划 -> analyze_samples。"""

    video_info = source.probe(video_path)
    frame_numbers = source.sample_frame_numbers(video_path, sample_rate, time_range)
    logger.info(
        "Sampling %d of %d frames (stride=%d) from %s",
        len(frame_numbers),
        video_info.total_frames,
        sample_rate,
        video_path,
    )
    return analyze_samples(video_path, frame_numbers, source=source, video_info=video_info, **kwargs)


def _resolve_boundary(boundary: Optional[BoundaryMode | str], gpu_context: Optional[GpuContext]) -> BoundaryMode:
    if boundary is None:
        return gpu_context.boundary if gpu_context is not None else BoundaryMode.INTERIOR
    resolved = BoundaryMode(boundary)
    if gpu_context is not None and gpu_context.boundary is not resolved:
        raise ValueError(
            f"boundary={resolved.value} 与 GPU 上下文的 boundary={gpu_context.boundary.value} 不一致"
        )
    return resolved


def _score_cpu_parallel(
    video_path: str | Path,
    frame_numbers: List[int],
    source: VideoSource,
    video_info: VideoInfo,
    boundary: BoundaryMode,
    workers: Optional[int],
    tracker: ProgressTracker,
) -> List[FrameSample]:
    def score_one(frame_number: int) -> FrameSample:
        try:
            raster = source.extract_frame(video_path, frame_number)
            sharpness = laplacian_variance(raster, boundary)
        except ExtractionError as exc:
            logger.warning("Frame %d extraction failed, scored as 0: %s", frame_number, exc)
            sharpness = 0.0
        tracker.advance()
        return FrameSample.at(frame_number, video_info.fps, sharpness)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="framepick") as pool:
        return list(pool.map(score_one, frame_numbers))


def _chunks(items: Sequence[int], size: int) -> Iterator[Sequence[int]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _score_gpu_batches(
    video_path: str | Path,
    frame_numbers: List[int],
    source: VideoSource,
    video_info: VideoInfo,
    context: GpuContext,
    batch_size: int,
    tracker: ProgressTracker,
) -> List[FrameSample]:
    tracker.start()
    frames: List[FrameSample] = []
    for batch_index, chunk in enumerate(_chunks(frame_numbers, batch_size)):
        rasters = source.extract_frames_batch(video_path, chunk)
        if len(rasters) != len(chunk):
            raise ExtractionError(f"批次 {batch_index} 期望 {len(chunk)} 帧，实际 {len(rasters)} 帧")
        # 同一设备上顺序调度，比多线程争抢更快
        for frame_number, raster in zip(chunk, rasters):
            frames.append(FrameSample.at(frame_number, video_info.fps, score_frame(raster, context)))
        current = tracker.advance(len(chunk))
        logger.debug("Batch %d done: %d/%d frames", batch_index, current, tracker.total)
    return frames
