"""帧筛选：阈值过滤 + 最小间隔约束，可选按得分截断。"""

from __future__ import annotations

from typing import List, Optional, Sequence

from framepick.core import AnalysisResult, ExportOptions


def select_frames(
    scores: Sequence[float],
    threshold: float,
    min_distance: int,
    max_frames: Optional[int] = None,
) -> List[int]:
    """返回被选中的下标。

    单次升序遍历：得分 >= 阈值，且与上一个选中下标的距离 >= min_distance 时选中；
    贪心策略，跳过的候选不会再被考虑。

    指定 max_frames 时先选、再按得分降序排序、最后截断，因此结果为得分降序，
    时间分布更好但得分较低的帧可能被丢弃。
    """

    if min_distance < 0:
        raise ValueError("min_distance 不能为负数")

    selected: List[int] = []
    last_selected: Optional[int] = None
    for idx, score in enumerate(scores):
        if score < threshold:
            continue
        if last_selected is not None and idx - last_selected < min_distance:
            continue
        selected.append(idx)
        last_selected = idx

    if max_frames is None:
        return selected
    ranked = sorted(selected, key=lambda idx: scores[idx], reverse=True)
    return ranked[:max_frames]


def plan_export(result: AnalysisResult, options: ExportOptions) -> List[int]:
    """根据导出选项计算需要导出的帧号（而非下标）。"""

    threshold = options.threshold if options.threshold is not None else result.suggested_threshold
    indices = select_frames(
        result.scores(),
        threshold,
        options.min_frame_distance,
        max_frames=options.max_frames,
    )
    return [result.frames[idx].frame_number for idx in indices]
