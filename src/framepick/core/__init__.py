"""核心模块入口，聚合数据模型与配置加载工具供各步骤复用。"""

from .datamodels import AnalysisProgress, AnalysisResult, ExportOptions, FrameSample, VideoInfo
from .config import FramePickConfig, load_config
from .logging_utils import get_logger, setup_logging

__all__ = [
    "AnalysisProgress",
    "AnalysisResult",
    "ExportOptions",
    "FrameSample",
    "VideoInfo",
    "FramePickConfig",
    "load_config",
    "get_logger",
    "setup_logging",
]
