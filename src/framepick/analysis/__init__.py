"""批量分析编排入口。"""

from .orchestrator import (
    DEFAULT_GPU_BATCH_SIZE,
    ProgressCallback,
    ProgressTracker,
    analyze_samples,
    analyze_video,
    build_result,
)

__all__ = [
    "DEFAULT_GPU_BATCH_SIZE",
    "ProgressCallback",
    "ProgressTracker",
    "analyze_samples",
    "analyze_video",
    "build_result",
]
