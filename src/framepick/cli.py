"""framepick Typer CLI：分析视频清晰度、推导阈值、筛选并导出帧。"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from framepick.analysis import ProgressCallback, analyze_video
from framepick.core import AnalysisProgress, AnalysisResult, ExportOptions, FramePickConfig, get_logger, load_config, setup_logging
from framepick.core.config import DecoderConfig
from framepick.export import FrameExporter
from framepick.selection import auto_threshold, count_at_or_above, select_frames
from framepick.sharpness import GpuInitError
from framepick.video import VideoSourceError, create_video_source

app = typer.Typer(help="framepick：为 3D 重建挑选清晰且分布均匀的视频帧")
logger = get_logger(__name__)


@app.callback()
def main() -> None:
    """framepick 顶层 CLI。"""

    return None


def _resolve_config(config_path: Optional[Path]) -> FramePickConfig:
    return load_config(config_path) if config_path else load_config()


def _apply_decoder_overrides(
    cfg: FramePickConfig,
    *,
    backend: Optional[str],
    ffmpeg_path: Optional[str],
    ffprobe_path: Optional[str],
) -> FramePickConfig:
    if not any([backend, ffmpeg_path, ffprobe_path]):
        return cfg
    updates: Dict[str, Any] = {}
    if backend:
        updates["backend"] = backend
    if ffmpeg_path:
        updates["ffmpeg_path"] = ffmpeg_path
    if ffprobe_path:
        updates["ffprobe_path"] = ffprobe_path
    try:
        decoder = DecoderConfig.model_validate({**cfg.decoder.model_dump(), **updates})
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_name="backend") from exc
    return cfg.model_copy(update={"decoder": decoder})


def _load_analysis(path: Path) -> AnalysisResult:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise typer.BadParameter("分析结果 JSON 需为对象格式", param_name="analysis")
    return AnalysisResult.from_dict(payload)


def _dump_analysis(result: AnalysisResult, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")


def _progress_printer() -> ProgressCallback:
    """每跨过 10% 输出一次进度；多线程下通知可能乱序，只按最大值推进。"""

    lock = threading.Lock()
    last_decile = -1

    def report(progress: AnalysisProgress) -> None:
        nonlocal last_decile
        decile = int(progress.percentage // 10)
        with lock:
            if decile <= last_decile:
                return
            last_decile = decile
        typer.echo(f"进度 {progress.current}/{progress.total} ({progress.percentage:.0f}%)", err=True)

    return report


@app.command("probe")
def probe_cmd(
    video: Path = typer.Argument(..., exists=True, resolve_path=True, help="视频路径"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="自定义配置文件"),
    backend: Optional[str] = typer.Option(None, "--backend", help="解码后端：ffmpeg/opencv"),
    ffmpeg_path: Optional[str] = typer.Option(None, "--ffmpeg", help="ffmpeg 可执行文件路径"),
    ffprobe_path: Optional[str] = typer.Option(None, "--ffprobe", help="ffprobe 可执行文件路径"),
    log_level: str = typer.Option("INFO", "--log-level", help="日志级别"),
) -> None:
    """输出视频元信息。"""

    setup_logging(log_level)
    cfg = _apply_decoder_overrides(_resolve_config(config_path), backend=backend, ffmpeg_path=ffmpeg_path, ffprobe_path=ffprobe_path)
    source = create_video_source(cfg.decoder)
    try:
        info = source.probe(video)
    except VideoSourceError as exc:
        typer.echo(f"无法读取视频信息：{exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(info.to_dict(), ensure_ascii=False, indent=2))


@app.command("analyze")
def analyze_cmd(
    video: Path = typer.Argument(..., exists=True, resolve_path=True, help="待分析视频路径"),
    output: Path = typer.Option(Path("analysis.json"), "--output", "-o", help="分析结果 JSON 输出路径"),
    sample_rate: Optional[int] = typer.Option(None, "--sample-rate", min=1, help="采样步长（帧）"),
    use_gpu: Optional[bool] = typer.Option(None, "--gpu/--no-gpu", help="是否使用 GPU 评分"),
    device: Optional[str] = typer.Option(None, "--device", help="GPU 设备，如 cuda:0/mps"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", min=1, help="GPU 批量抽帧大小"),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="CPU 并行线程数"),
    start: Optional[float] = typer.Option(None, "--start", min=0.0, help="分析起始时间（秒）"),
    end: Optional[float] = typer.Option(None, "--end", min=0.0, help="分析结束时间（秒）"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="自定义配置文件"),
    backend: Optional[str] = typer.Option(None, "--backend", help="解码后端：ffmpeg/opencv"),
    ffmpeg_path: Optional[str] = typer.Option(None, "--ffmpeg", help="ffmpeg 可执行文件路径"),
    ffprobe_path: Optional[str] = typer.Option(None, "--ffprobe", help="ffprobe 可执行文件路径"),
    log_level: str = typer.Option("INFO", "--log-level", help="日志级别"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="额外写入的日志文件"),
) -> None:
    """对视频采样帧打分，输出建议阈值与全部得分。"""

    setup_logging(log_level, log_file)
    cfg = _apply_decoder_overrides(_resolve_config(config_path), backend=backend, ffmpeg_path=ffmpeg_path, ffprobe_path=ffprobe_path)
    analysis_cfg = cfg.analysis
    source = create_video_source(cfg.decoder)

    time_range = None
    if start is not None or end is not None:
        try:
            info = source.probe(video)
        except VideoSourceError as exc:
            typer.echo(f"无法读取视频信息：{exc}", err=True)
            raise typer.Exit(code=1) from exc
        video_end = info.total_frames / info.fps if info.fps > 0 else info.duration
        time_range = (start or 0.0, end if end is not None else video_end)
        if time_range[1] < time_range[0]:
            raise typer.BadParameter("--end 不能早于 --start", param_name="end")

    options: Dict[str, Any] = dict(
        source=source,
        sample_rate=sample_rate or analysis_cfg.sample_rate,
        time_range=time_range,
        gpu_device=device or analysis_cfg.gpu_device,
        workers=workers or analysis_cfg.workers,
        batch_size=batch_size or analysis_cfg.gpu_batch_size,
        boundary=analysis_cfg.boundary,
        progress_callback=_progress_printer(),
    )
    want_gpu = analysis_cfg.use_gpu if use_gpu is None else use_gpu

    try:
        try:
            result = analyze_video(video, use_gpu=want_gpu, **options)
        except GpuInitError as exc:
            # GPU 不可用时由 CLI 决定回退 CPU
            logger.warning("GPU unavailable (%s), falling back to CPU", exc)
            result = analyze_video(video, use_gpu=False, **options)
    except VideoSourceError as exc:
        typer.echo(f"分析失败：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    _dump_analysis(result, output)
    typer.echo(
        f"分析 {len(result.frames)} 帧，建议阈值 {result.suggested_threshold:.2f}，"
        f"达到阈值 {result.suggested_frame_count} 帧，输出到 {output}"
    )


@app.command("threshold")
def threshold_cmd(
    analysis: Path = typer.Argument(..., exists=True, resolve_path=True, help="analyze 产出的 JSON 路径"),
    target_count: Optional[int] = typer.Option(None, "--target-count", "-n", min=0, help="目标帧数；缺省使用均值+0.5σ"),
) -> None:
    """根据得分分布或目标帧数计算阈值。"""

    result = _load_analysis(analysis)
    scores = result.scores()
    threshold = auto_threshold(scores, target_count)
    typer.echo(f"阈值 {threshold:.4f}，达到阈值 {count_at_or_above(scores, threshold)} / {len(scores)} 帧")


@app.command("select")
def select_cmd(
    analysis: Path = typer.Argument(..., exists=True, resolve_path=True, help="analyze 产出的 JSON 路径"),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="清晰度阈值；缺省使用建议阈值"),
    target_count: Optional[int] = typer.Option(None, "--target-count", "-n", min=0, help="按目标帧数推导阈值"),
    min_distance: Optional[int] = typer.Option(None, "--min-distance", min=0, help="相邻选中帧的最小间隔（采样下标）"),
    max_frames: Optional[int] = typer.Option(None, "--max-frames", min=0, help="最多保留帧数（按得分截断）"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="自定义配置文件（读取默认筛选参数）"),
) -> None:
    """输出被选中的帧号（JSON 数组）。"""

    cfg = _resolve_config(config_path)
    result = _load_analysis(analysis)
    scores = result.scores()
    count = target_count if target_count is not None else cfg.selection.target_count
    if threshold is None:
        threshold = auto_threshold(scores, count) if count is not None else result.suggested_threshold

    indices = select_frames(
        scores,
        threshold,
        min_distance if min_distance is not None else cfg.selection.min_frame_distance,
        max_frames=max_frames if max_frames is not None else cfg.selection.max_frames,
    )
    frame_numbers: List[int] = [result.frames[idx].frame_number for idx in indices]
    typer.echo(json.dumps(frame_numbers))


@app.command("export")
def export_cmd(
    analysis: Path = typer.Argument(..., exists=True, resolve_path=True, help="analyze 产出的 JSON 路径"),
    video: Path = typer.Argument(..., exists=True, resolve_path=True, help="源视频路径"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="图片输出目录"),
    fmt: Optional[str] = typer.Option(None, "--format", help="图片格式：jpg 或 png", case_sensitive=False),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="清晰度阈值；缺省使用建议阈值"),
    min_distance: Optional[int] = typer.Option(None, "--min-distance", min=0, help="相邻选中帧的最小间隔（采样下标）"),
    max_frames: Optional[int] = typer.Option(None, "--max-frames", min=0, help="最多导出帧数"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="自定义配置文件"),
    backend: Optional[str] = typer.Option(None, "--backend", help="解码后端：ffmpeg/opencv"),
    ffmpeg_path: Optional[str] = typer.Option(None, "--ffmpeg", help="ffmpeg 可执行文件路径"),
    ffprobe_path: Optional[str] = typer.Option(None, "--ffprobe", help="ffprobe 可执行文件路径"),
    log_level: str = typer.Option("INFO", "--log-level", help="日志级别"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="额外写入的日志文件"),
) -> None:
    """按筛选条件导出图片，并把导出路径写回分析结果 JSON。"""

    setup_logging(log_level, log_file)
    cfg = _apply_decoder_overrides(_resolve_config(config_path), backend=backend, ffmpeg_path=ffmpeg_path, ffprobe_path=ffprobe_path)
    result = _load_analysis(analysis)

    try:
        options = ExportOptions(
            format=fmt or cfg.export.format,
            threshold=threshold,
            max_frames=max_frames if max_frames is not None else cfg.selection.max_frames,
            min_frame_distance=min_distance if min_distance is not None else cfg.selection.min_frame_distance,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_name="format") from exc

    exporter = FrameExporter(create_video_source(cfg.decoder))
    try:
        paths = exporter.export(result, options, video_path=video, output_dir=output_dir or cfg.export.output_dir)
    except (VideoSourceError, OSError) as exc:
        typer.echo(f"导出失败：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    _dump_analysis(result, analysis)
    typer.echo(f"导出 {len(paths)} 帧到 {output_dir or cfg.export.output_dir}")


if __name__ == "__main__":  # pragma: no cover
    app()
