"""CPU 清晰度评分：Laplacian 方差。

对每个像素计算 4 邻域 Laplacian 响应 ``top + bottom + left + right - 4 * center``，
得分为全部响应的总体方差（除以 n）。值越大，高频边缘越多，画面越清晰。

统计范围由 :class:`BoundaryMode` 决定，GPU 实现遵循同一约定，
保证同一帧在 CPU/GPU（含回退）下得分一致。
"""

from __future__ import annotations

from enum import Enum

import cv2
import numpy as np
from numpy.typing import NDArray

MIN_DIMENSION = 3


class BoundaryMode(str, Enum):
    """Laplacian 统计范围。

    - INTERIOR: 仅统计严格内部像素（去掉最外一圈）。
    - REDUCED: 统计全部像素，边界处缺失的邻居按 0 处理。
    """

    INTERIOR = "interior"
    REDUCED = "reduced"


def to_luma(frame: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """将 BGR/BGRA 帧转换为单通道亮度图；单通道输入原样返回。"""

    if frame.ndim == 2:
        return frame
    if frame.ndim == 3 and frame.shape[2] == 1:
        return frame[..., 0]
    if frame.ndim == 3 and frame.shape[2] == 3:
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    if frame.ndim == 3 and frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"无法识别的帧形状: {frame.shape}")


def laplacian_response(luma: NDArray[np.uint8], boundary: BoundaryMode = BoundaryMode.INTERIOR) -> NDArray[np.int32]:
    """返回 Laplacian 响应矩阵；INTERIOR 为 (H-2, W-2)，REDUCED 为 (H, W)。"""

    img = luma.astype(np.int32, copy=False)
    if boundary is BoundaryMode.REDUCED:
        img = np.pad(img, 1, mode="constant", constant_values=0)
    center = img[1:-1, 1:-1]
    top = img[:-2, 1:-1]
    bottom = img[2:, 1:-1]
    left = img[1:-1, :-2]
    right = img[1:-1, 2:]
    return top + bottom + left + right - 4 * center


def laplacian_variance(frame: NDArray[np.uint8], boundary: BoundaryMode | str = BoundaryMode.INTERIOR) -> float:
    """计算单帧清晰度；宽或高小于 3 时定义为 0。"""

    luma = to_luma(np.asarray(frame))
    height, width = luma.shape
    if width < MIN_DIMENSION or height < MIN_DIMENSION:
        return 0.0

    response = laplacian_response(luma, BoundaryMode(boundary))
    if response.size == 0:
        return 0.0
    # float64 累加，同一输入结果逐位一致
    return float(np.var(response, dtype=np.float64))
