"""framepick：从视频中挑选清晰、时间分布均匀的帧，供摄影测量 / NeRF / 3DGS 使用。"""

__version__ = "0.1.0"
