"""GPU 上下文测试：显式使用 torch 的 cpu 设备运行同一计算程序。"""

import asyncio

import numpy as np
import pytest

from framepick.sharpness import (
    AdapterUnavailable,
    BoundaryMode,
    DeviceCreationError,
    DeviceLost,
    GpuContext,
    laplacian_variance,
    score_once_gpu,
)
from framepick.sharpness import gpu as gpu_module
from framepick.sharpness.gpu import dispatch_grid


def _random_frame(seed: int, shape=(48, 64)) -> np.ndarray:
    return np.random.default_rng(seed).integers(0, 256, size=shape, dtype=np.uint8)


@pytest.fixture()
def context():
    ctx = asyncio.run(GpuContext.create("cpu"))
    yield ctx
    ctx.close()


def test_uniform_frame_scores_zero(context: GpuContext) -> None:
    frame = np.full((20, 30), 200, dtype=np.uint8)

    assert context.score(frame) == pytest.approx(0.0, abs=1e-6)


def test_small_frame_scores_zero(context: GpuContext) -> None:
    assert context.score(_random_frame(1, shape=(2, 40))) == 0.0
    assert context.score(_random_frame(1, shape=(40, 1))) == 0.0


@pytest.mark.parametrize("boundary", [BoundaryMode.INTERIOR, BoundaryMode.REDUCED])
def test_matches_cpu_realization(boundary: BoundaryMode) -> None:
    frame = _random_frame(11)
    ctx = asyncio.run(GpuContext.create("cpu", boundary=boundary))
    with ctx:
        gpu_score = ctx.score(frame)

    assert gpu_score == pytest.approx(laplacian_variance(frame, boundary), rel=1e-4)


def test_context_is_reusable_and_deterministic(context: GpuContext) -> None:
    frames = [_random_frame(seed, shape=(17 + seed, 33)) for seed in range(5)]

    first = [context.score(frame) for frame in frames]
    second = [context.score(frame) for frame in frames]

    assert first == pytest.approx(second, rel=1e-9)
    for frame, value in zip(frames, first):
        assert value == pytest.approx(laplacian_variance(frame), rel=1e-4)


def test_score_async(context: GpuContext) -> None:
    frame = _random_frame(5)

    value = asyncio.run(context.score_async(frame))

    assert value == pytest.approx(context.score(frame))


def test_closed_context_raises_device_lost() -> None:
    ctx = asyncio.run(GpuContext.create("cpu"))
    ctx.close()

    assert ctx.closed
    with pytest.raises(DeviceLost):
        ctx.score(_random_frame(2))


def test_runtime_error_maps_to_buffer_map_failure(context: GpuContext, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_conv(*_args, **_kwargs):
        raise RuntimeError("CUDA out of memory")

    monkeypatch.setattr(gpu_module.F, "conv2d", broken_conv)

    with pytest.raises(gpu_module.BufferMapFailure):
        context.score(_random_frame(3))


def test_adapter_unavailable_without_device(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(gpu_module.torch.cuda, "is_available", lambda: False)
    monkeypatch.setattr(gpu_module, "_mps_available", lambda: False)

    with pytest.raises(AdapterUnavailable):
        asyncio.run(GpuContext.create())
    with pytest.raises(AdapterUnavailable):
        asyncio.run(GpuContext.create("cuda:0"))


def test_invalid_device_string() -> None:
    with pytest.raises(DeviceCreationError):
        asyncio.run(GpuContext.create("not-a-device"))


def test_score_once_helper() -> None:
    frame = _random_frame(9)

    assert score_once_gpu(frame, device="cpu") == pytest.approx(laplacian_variance(frame), rel=1e-4)


def test_dispatch_grid_covers_frame() -> None:
    assert dispatch_grid(16, 16) == (1, 1)
    assert dispatch_grid(33, 17) == (3, 2)
    assert dispatch_grid(1920, 1080) == (120, 68)
