"""统一评分入口测试：GPU 单帧失败时回退 CPU。"""

import asyncio

import numpy as np
import pytest

from framepick.sharpness import BoundaryMode, BufferMapFailure, DeviceLost, GpuContext, laplacian_variance, score_frame


def _frame() -> np.ndarray:
    return np.random.default_rng(42).integers(0, 256, size=(30, 40), dtype=np.uint8)


def test_score_frame_without_gpu_uses_cpu() -> None:
    frame = _frame()

    assert score_frame(frame) == laplacian_variance(frame)
    assert score_frame(frame, boundary="reduced") == laplacian_variance(frame, BoundaryMode.REDUCED)


@pytest.mark.parametrize("error", [BufferMapFailure("map failed"), DeviceLost("gone")])
def test_gpu_failure_falls_back_to_cpu(monkeypatch: pytest.MonkeyPatch, error: Exception) -> None:
    frame = _frame()
    ctx = asyncio.run(GpuContext.create("cpu", boundary=BoundaryMode.REDUCED))

    def failing_score(_frame):
        raise error

    monkeypatch.setattr(ctx, "score", failing_score)
    with ctx:
        value = score_frame(frame, ctx)

    assert value == pytest.approx(laplacian_variance(frame, BoundaryMode.REDUCED))


def test_gpu_success_matches_cpu_within_tolerance() -> None:
    frame = _frame()
    ctx = asyncio.run(GpuContext.create("cpu"))
    with ctx:
        value = score_frame(frame, ctx)

    assert value == pytest.approx(laplacian_variance(frame), rel=1e-4)
