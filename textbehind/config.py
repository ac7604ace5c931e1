from __future__ import annotations

import copy
import os
import platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from textbehind.constants import (
    DEFAULT_ALPHA_THRESHOLD,
    DEFAULT_DILATE_ITERATIONS,
    DEFAULT_EDGE_THRESHOLD,
    DEFAULT_FAST_DILATE_ITERATIONS,
    DEFAULT_FAST_EDGE_THRESHOLD,
    DEFAULT_MAX_DIMENSION,
    MODE_FAST,
    MODE_STANDARD,
    VALID_MODES,
)

DEFAULT_CONFIG: dict[str, Any] = {
    "mode": MODE_STANDARD,
    "max_dimension": DEFAULT_MAX_DIMENSION,
    "edge_threshold": DEFAULT_EDGE_THRESHOLD,
    "fast_edge_threshold": DEFAULT_FAST_EDGE_THRESHOLD,
    "dilate_iterations": DEFAULT_DILATE_ITERATIONS,
    "fast_dilate_iterations": DEFAULT_FAST_DILATE_ITERATIONS,
    "alpha_threshold": DEFAULT_ALPHA_THRESHOLD,
    "drag_delay_ms": 50,
    "frame_interval_ms": 16,
    "phase_delay_ms": 50,
    "mask_overlay_color": "#ff0000",
    "mask_overlay_opacity": 0.5,
    "output_format": "png",
    "quality": 92,
    "name_template": "{stem}__overlay.{ext}",
    "skip_existing": True,
    "text": {
        "content": "Your custom text here",
        "font": "Arial",
        "size": 24,
        "color": "#ffffff",
        "x": 50,
        "y": 50,
    },
}


def get_app_dir() -> Path:
    """Return the application root directory.

    - Frozen (PyInstaller): directory containing the executable.
    - Development: project root (two levels up from this file).
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    # textbehind/config.py → textbehind/ → project_root/
    return Path(__file__).resolve().parent.parent


def get_user_data_dir() -> Path:
    """返回用户可写的数据目录，打包后避免写入 app bundle 内部。"""
    if not getattr(sys, "frozen", False):
        return get_app_dir()

    system_name = platform.system().lower()
    if system_name == "windows":
        base = (
            os.environ.get("APPDATA")
            or os.environ.get("LOCALAPPDATA")
            or str(Path.home() / "AppData" / "Roaming")
        )
        return Path(base) / "TextBehind"
    if system_name == "darwin":
        return Path.home() / "Library" / "Application Support" / "TextBehind"

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "TextBehind"
    return Path.home() / ".config" / "TextBehind"


def get_config_path() -> Path:
    return get_user_data_dir() / "Config" / "config.yaml"


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    if not cfg_path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)

    text = cfg_path.read_text(encoding="utf-8")
    loaded = yaml.safe_load(text) or {}
    if not isinstance(loaded, dict):
        loaded = {}
    return _deep_merge(DEFAULT_CONFIG, loaded)


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = path or get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg_path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return cfg_path


@dataclass(frozen=True, slots=True)
class PipelineSettings:
    mode: str = MODE_STANDARD
    max_dimension: int = DEFAULT_MAX_DIMENSION
    edge_threshold: float = DEFAULT_EDGE_THRESHOLD
    fast_edge_threshold: float = DEFAULT_FAST_EDGE_THRESHOLD
    dilate_iterations: int = DEFAULT_DILATE_ITERATIONS
    fast_dilate_iterations: int = DEFAULT_FAST_DILATE_ITERATIONS
    alpha_threshold: int = DEFAULT_ALPHA_THRESHOLD
    drag_delay: float = 0.05
    frame_interval: float = 0.016
    phase_delay: float = 0.05
    mask_overlay_color: str = "#ff0000"
    mask_overlay_opacity: float = 0.5

    def __post_init__(self) -> None:
        if self.mode not in VALID_MODES:
            raise ValueError(f"mode must be one of {sorted(VALID_MODES)}, got: {self.mode!r}")
        if self.max_dimension <= 0:
            raise ValueError(f"max_dimension must be positive, got: {self.max_dimension}")
        if self.dilate_iterations < 0 or self.fast_dilate_iterations < 0:
            raise ValueError("dilation iterations must be >= 0")

    @classmethod
    def from_config(cls, cfg: dict[str, Any], **overrides: Any) -> PipelineSettings:
        values: dict[str, Any] = {
            "mode": str(cfg.get("mode", MODE_STANDARD)).lower(),
            "max_dimension": int(cfg.get("max_dimension", DEFAULT_MAX_DIMENSION)),
            "edge_threshold": float(cfg.get("edge_threshold", DEFAULT_EDGE_THRESHOLD)),
            "fast_edge_threshold": float(cfg.get("fast_edge_threshold", DEFAULT_FAST_EDGE_THRESHOLD)),
            "dilate_iterations": int(cfg.get("dilate_iterations", DEFAULT_DILATE_ITERATIONS)),
            "fast_dilate_iterations": int(cfg.get("fast_dilate_iterations", DEFAULT_FAST_DILATE_ITERATIONS)),
            "alpha_threshold": int(cfg.get("alpha_threshold", DEFAULT_ALPHA_THRESHOLD)),
            "drag_delay": max(0.0, float(cfg.get("drag_delay_ms", 50)) / 1000.0),
            "frame_interval": max(0.0, float(cfg.get("frame_interval_ms", 16)) / 1000.0),
            "phase_delay": max(0.0, float(cfg.get("phase_delay_ms", 50)) / 1000.0),
            "mask_overlay_color": str(cfg.get("mask_overlay_color") or "#ff0000"),
            "mask_overlay_opacity": min(1.0, max(0.0, float(cfg.get("mask_overlay_opacity", 0.5)))),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def threshold_for(self, mode: str) -> float:
        return self.fast_edge_threshold if mode == MODE_FAST else self.edge_threshold

    def iterations_for(self, mode: str) -> int:
        return self.fast_dilate_iterations if mode == MODE_FAST else self.dilate_iterations
