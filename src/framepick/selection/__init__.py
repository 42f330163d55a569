"""阈值推导与帧筛选。"""

from .frames import plan_export, select_frames
from .threshold import auto_threshold, count_at_or_above

__all__ = [
    "auto_threshold",
    "count_at_or_above",
    "select_frames",
    "plan_export",
]
