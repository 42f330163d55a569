"""统一评分入口：优先 GPU，单帧失败时透明回退到 CPU。"""

from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from framepick.core import get_logger

from .cpu import BoundaryMode, laplacian_variance
from .gpu import GpuContext, GpuScoringError

logger = get_logger(__name__)


def score_frame(
    frame: NDArray[np.uint8],
    gpu: Optional[GpuContext] = None,
    *,
    boundary: BoundaryMode | str = BoundaryMode.INTERIOR,
) -> float:
    """计算单帧清晰度。

    传入 GPU 上下文时使用 GPU；遇到 GpuScoringError 只对当前帧回退 CPU，记录告警但不向上抛出。
    回退时使用上下文自身的边界约定，保证结果与 GPU 路径可比。
    """

    if gpu is None:
        return laplacian_variance(frame, boundary)
    try:
        return gpu.score(frame)
    except GpuScoringError as exc:
        logger.warning("GPU scoring failed, falling back to CPU for this frame: %s", exc)
        return laplacian_variance(frame, gpu.boundary)
