"""配置加载工具，集中管理解码器路径与分析/筛选/导出参数。"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Mapping, MutableMapping, Optional, Tuple

import yaml
from pydantic import BaseModel, Field

CONFIG_ENV_KEY = "FRAMEPICK_CONFIG_PATH"


class DecoderConfig(BaseModel):
    """解码器配置；路径为空时交给系统 PATH 查找。"""

    backend: Literal["ffmpeg", "opencv"] = "ffmpeg"
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    hwaccel: Optional[str] = None


class AnalysisConfig(BaseModel):
    """分析阶段参数，默认值与桌面版保持一致。"""

    sample_rate: int = Field(default=30, ge=1)
    use_gpu: bool = False
    gpu_device: Optional[str] = None
    gpu_batch_size: int = Field(default=50, ge=1)
    workers: Optional[int] = Field(default=None, ge=1)
    boundary: Literal["interior", "reduced"] = "interior"


class SelectionConfig(BaseModel):
    """帧筛选参数。"""

    min_frame_distance: int = Field(default=1, ge=0)
    max_frames: Optional[int] = Field(default=None, ge=0)
    target_count: Optional[int] = Field(default=None, ge=0)


class ExportConfig(BaseModel):
    """导出阶段参数。"""

    format: Literal["jpg", "png"] = "jpg"
    output_dir: Path = Path("frames")


class FramePickConfig(BaseModel):
    """聚合各阶段配置。"""

    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    raw: Dict[str, Any] = Field(default_factory=dict, description="原始配置字典，便于调试。")

    def model_post_init(self, __context: Any) -> None:  # type: ignore[override]
        if not self.raw:
            self.raw = self.to_raw_dict()

    def to_raw_dict(self) -> Dict[str, Any]:
        """导出基础 dict，供日志输出使用。"""

        return {
            "decoder": self.decoder.model_dump(),
            "analysis": self.analysis.model_dump(),
            "selection": self.selection.model_dump(),
            "export": {**self.export.model_dump(), "output_dir": str(self.export.output_dir)},
        }


def _default_config_path() -> Path:
    return Path(__file__).resolve().parents[3] / "configs" / "baseline.yaml"


def _read_mapping(path: Path, *, required: bool) -> Dict[str, Any]:
    """读取 YAML 顶层字典；显式指定的文件必须存在，默认 baseline 缺失时视为空配置。"""

    if not path.is_file():
        if required:
            raise FileNotFoundError(f"配置文件不存在: {path}")
        return {}
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"配置文件 {path} 顶层需为字典，实际为 {type(loaded).__name__}")
    return loaded


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"无法解析布尔值: {value!r}")


# 环境变量 -> (配置段, 字段, 类型转换)
ENV_OVERRIDE_MAP: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "FRAMEPICK_FFMPEG_PATH": ("decoder", "ffmpeg_path", str),
    "FRAMEPICK_FFPROBE_PATH": ("decoder", "ffprobe_path", str),
    "FRAMEPICK_SAMPLE_RATE": ("analysis", "sample_rate", int),
    "FRAMEPICK_USE_GPU": ("analysis", "use_gpu", _parse_bool),
}


def _merge_env(data: MutableMapping[str, Any], env: Mapping[str, str]) -> None:
    for env_key, (section, key, caster) in ENV_OVERRIDE_MAP.items():
        raw_value = env.get(env_key)
        if raw_value is None:
            continue
        block = data.get(section)
        if not isinstance(block, MutableMapping):
            block = data[section] = {}
        block[key] = caster(raw_value)


def load_config(path: str | Path | None = None, *, env: Mapping[str, str] | None = None) -> FramePickConfig:
    """加载配置：显式路径 > FRAMEPICK_CONFIG_PATH > 仓库内 baseline，随后叠加环境变量覆盖。"""

    env_map = os.environ if env is None else env
    explicit = path or env_map.get(CONFIG_ENV_KEY)
    target = Path(explicit).expanduser() if explicit else _default_config_path()
    data = _read_mapping(target, required=bool(explicit))
    _merge_env(data, env_map)
    return FramePickConfig.model_validate({**data, "raw": data})
