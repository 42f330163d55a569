"""清晰度评分模块：CPU Laplacian 方差、GPU 计算上下文与回退逻辑。"""

from .cpu import BoundaryMode, laplacian_variance, to_luma
from .gpu import (
    AdapterUnavailable,
    BufferMapFailure,
    DeviceCreationError,
    DeviceLost,
    GpuContext,
    GpuInitError,
    GpuScoringError,
    score_once_gpu,
)
from .scorer import score_frame

__all__ = [
    "BoundaryMode",
    "laplacian_variance",
    "to_luma",
    "GpuContext",
    "GpuInitError",
    "AdapterUnavailable",
    "DeviceCreationError",
    "GpuScoringError",
    "BufferMapFailure",
    "DeviceLost",
    "score_once_gpu",
    "score_frame",
]
