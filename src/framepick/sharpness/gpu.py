"""GPU 清晰度评分：基于 PyTorch 的可复用计算上下文。

上下文（设备 + 固定 Laplacian 卷积核）只创建一次，可被任意多次 ``score`` 复用；
每次调用只分配本帧的输入/输出/暂存张量，并在读回完成后释放。
设备端仅计算逐像素响应，方差归约在主机端以 float64 完成。
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional, Tuple

import numpy as np
import torch
import torch.nn.functional as F
from numpy.typing import NDArray

from framepick.core import get_logger

from .cpu import MIN_DIMENSION, BoundaryMode, to_luma

WORKGROUP_SIZE = 16
_LAPLACIAN_KERNEL = ((0.0, 1.0, 0.0), (1.0, -4.0, 1.0), (0.0, 1.0, 0.0))
_DEVICE_LOST_MARKERS = ("device lost", "device-side assert", "no cuda gpus", "device unavailable", "context is destroyed")

logger = get_logger(__name__)


class GpuInitError(RuntimeError):
    """GPU 上下文初始化失败的基类，由调用方决定是否回退 CPU。"""


class AdapterUnavailable(GpuInitError):
    """没有可用的计算设备。"""


class DeviceCreationError(GpuInitError):
    """设备存在但无法创建/编译计算程序。"""


class GpuScoringError(RuntimeError):
    """单帧 GPU 评分失败，调用方可针对该帧回退到 CPU。"""


class BufferMapFailure(GpuScoringError):
    """上传、调度或读回阶段失败。"""


class DeviceLost(GpuScoringError):
    """设备丢失或上下文已关闭。"""


def dispatch_grid(width: int, height: int) -> Tuple[int, int]:
    """16x16 工作组下覆盖整帧所需的网格尺寸。"""

    return (width + WORKGROUP_SIZE - 1) // WORKGROUP_SIZE, (height + WORKGROUP_SIZE - 1) // WORKGROUP_SIZE


def _mps_available() -> bool:
    backend = getattr(torch.backends, "mps", None)
    return bool(backend is not None and backend.is_available())


def _negotiate_device(device: Optional[str]) -> torch.device:
    if device is None:
        if torch.cuda.is_available():
            return torch.device("cuda")
        if _mps_available():
            return torch.device("mps")
        raise AdapterUnavailable("未找到可用的 GPU 计算设备（CUDA/MPS）")

    try:
        target = torch.device(device)
    except (RuntimeError, ValueError) as exc:
        raise DeviceCreationError(f"无效的设备标识: {device!r}") from exc
    if target.type == "cuda" and not torch.cuda.is_available():
        raise AdapterUnavailable(f"请求的设备 {device} 不可用：未检测到 CUDA")
    if target.type == "mps" and not _mps_available():
        raise AdapterUnavailable(f"请求的设备 {device} 不可用：未检测到 MPS")
    return target


def _synchronize(device: torch.device) -> None:
    """阻塞等待设备端队列执行完毕。"""

    if device.type == "cuda":
        torch.cuda.synchronize(device)
    elif device.type == "mps":
        torch.mps.synchronize()


def _is_device_lost(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _DEVICE_LOST_MARKERS)


class GpuContext:
    """长生命周期的 GPU 计算上下文。

    通过 ``await GpuContext.create()`` 创建，由调用方显式 ``close()``（或使用 with 语句）。
    同一上下文不支持并发调度：内部锁保证任意时刻只有一个 上传→调度→读回 周期在进行。
    """

    def __init__(self, device: torch.device, kernel: torch.Tensor, boundary: BoundaryMode = BoundaryMode.INTERIOR) -> None:
        self.device = device
        self.boundary = boundary
        self._kernel: Optional[torch.Tensor] = kernel
        self._lock = threading.Lock()

    @classmethod
    async def create(cls, device: Optional[str] = None, *, boundary: BoundaryMode | str = BoundaryMode.INTERIOR) -> "GpuContext":
        """协商设备并编译计算程序；失败时抛出 GpuInitError 子类。"""

        return await asyncio.to_thread(cls._create_blocking, device, BoundaryMode(boundary))

    @classmethod
    def _create_blocking(cls, device: Optional[str], boundary: BoundaryMode) -> "GpuContext":
        target = _negotiate_device(device)
        try:
            kernel = torch.tensor(_LAPLACIAN_KERNEL, dtype=torch.float32, device=target).view(1, 1, 3, 3)
            # 预热一次调度，让后端完成内核选择/编译
            warmup = torch.zeros((1, 1, MIN_DIMENSION, MIN_DIMENSION), dtype=torch.float32, device=target)
            F.conv2d(warmup, kernel, padding=1)
            _synchronize(target)
        except RuntimeError as exc:
            raise DeviceCreationError(f"无法在 {target} 上创建计算程序: {exc}") from exc
        logger.info("GPU context ready on %s (boundary=%s)", target, boundary.value)
        return cls(target, kernel, boundary)

    @property
    def closed(self) -> bool:
        return self._kernel is None

    def score(self, frame: NDArray[np.uint8]) -> float:
        """对单帧评分，阻塞直到读回完成。"""

        luma = to_luma(np.asarray(frame))
        height, width = luma.shape
        if width < MIN_DIMENSION or height < MIN_DIMENSION:
            return 0.0

        with self._lock:
            kernel = self._kernel
            if kernel is None:
                raise DeviceLost("GPU 上下文已关闭")

            texture = output = staging = None
            try:
                normalized = luma.astype(np.float32) / np.float32(255.0)
                texture = torch.from_numpy(normalized).to(self.device).view(1, 1, height, width)
                if logger.isEnabledFor(logging.DEBUG):
                    grid_x, grid_y = dispatch_grid(width, height)
                    logger.debug("dispatch %dx%d workgroups for %dx%d frame", grid_x, grid_y, width, height)
                # 零填充卷积：边界像素自然退化为仅含存在邻居的模板，输出按 y*width+x 排布
                # 输出带符号响应而非绝对值，方差与 CPU 得分一致
                output = F.conv2d(texture, kernel, padding=1).reshape(-1)
                staging = output.to("cpu", non_blocking=True)
                _synchronize(self.device)
                values = staging.numpy().astype(np.float64).reshape(height, width)
            except RuntimeError as exc:
                if _is_device_lost(exc):
                    raise DeviceLost(f"GPU 设备丢失: {exc}") from exc
                raise BufferMapFailure(f"GPU 调度或读回失败: {exc}") from exc
            finally:
                del texture, output, staging

        # 还原到 8-bit 亮度量纲，与 CPU 得分可直接比较
        values *= 255.0
        if self.boundary is BoundaryMode.INTERIOR:
            values = values[1:-1, 1:-1]
        return float(np.var(values))

    async def score_async(self, frame: NDArray[np.uint8]) -> float:
        """协程版本：把阻塞的读回等待放到工作线程，避免阻塞事件循环。"""

        return await asyncio.to_thread(self.score, frame)

    def close(self) -> None:
        with self._lock:
            if self._kernel is None:
                return
            self._kernel = None
            if self.device.type == "cuda":
                torch.cuda.empty_cache()
        logger.debug("GPU context on %s closed", self.device)

    def __enter__(self) -> "GpuContext":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def score_once_gpu(
    frame: NDArray[np.uint8],
    *,
    device: Optional[str] = None,
    boundary: BoundaryMode | str = BoundaryMode.INTERIOR,
) -> float:
    """一次性便捷封装：创建上下文、评分、关闭。批量场景请复用 GpuContext。"""

    context = asyncio.run(GpuContext.create(device, boundary=boundary))
    with context:
        return context.score(frame)
