"""自动阈值：由得分分布或目标帧数推导清晰度下限。"""

from __future__ import annotations

import math
from typing import Optional, Sequence


def auto_threshold(scores: Sequence[float], target_count: Optional[int] = None) -> float:
    """计算建议阈值。

    - 空输入返回 0。
    - 指定 target_count=k：降序排序后取下标 min(k, len-1) 的得分；
      边界处得分相同时可能选中多于 k 帧。
    - 否则返回 mean + 0.5 * 总体标准差（除以 n）。
    """

    if len(scores) == 0:
        return 0.0

    if target_count is not None:
        if target_count < 0:
            raise ValueError("target_count 不能为负数")
        ranked = sorted((float(score) for score in scores), reverse=True)
        return ranked[min(target_count, len(ranked) - 1)]

    n = len(scores)
    mean = sum(float(score) for score in scores) / n
    variance = sum((float(score) - mean) ** 2 for score in scores) / n
    return mean + 0.5 * math.sqrt(variance)


def count_at_or_above(scores: Sequence[float], threshold: float) -> int:
    """统计得分不低于阈值的帧数。"""

    return sum(1 for score in scores if score >= threshold)
