from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from textbehind.models import TextSpec, clamp_percent, parse_color

LOGGER = logging.getLogger(__name__)

_PRESET_PACKAGE = "textbehind.presets_data"
_PRESET_SUFFIXES = (".yaml", ".yml", ".json")

DEFAULT_TEXT: dict[str, Any] = {
    "content": "Your custom text here",
    "font": "Arial",
    "size": 24,
    "color": "#ffffff",
    "x": 50,
    "y": 50,
}


def list_builtin_presets() -> list[str]:
    files = resources.files(_PRESET_PACKAGE)
    names = []
    for item in files.iterdir():
        if item.name.endswith(_PRESET_SUFFIXES):
            names.append(Path(item.name).stem)
    return sorted(set(names))


def _parse_text(text: str, suffix: str) -> Any:
    if suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def _load_file(path: Path) -> dict[str, Any]:
    data = _parse_text(path.read_text(encoding="utf-8"), path.suffix.lower())
    if not isinstance(data, dict):
        raise ValueError(f"preset file is not a dict: {path}")
    return data


def _load_builtin(name: str) -> dict[str, Any]:
    pkg = resources.files(_PRESET_PACKAGE)
    for suffix in _PRESET_SUFFIXES:
        candidate = pkg / f"{name}{suffix}"
        if candidate.is_file():
            data = _parse_text(candidate.read_text(encoding="utf-8"), suffix)
            if isinstance(data, dict):
                return data
    raise FileNotFoundError(f"built-in preset not found: {name}")


def _safe_color(value: Any, fallback: str) -> Any:
    if value is None or value == "":
        return fallback
    if isinstance(value, list):
        value = tuple(value)
    try:
        parse_color(value)
    except (ValueError, TypeError):
        LOGGER.warning("invalid preset color %r, using %s", value, fallback)
        return fallback
    return value


def normalize_preset_dict(data: dict[str, Any], base: TextSpec | None = None) -> TextSpec:
    """Turn a loosely-typed preset mapping into a TextSpec, clamping out-of-range values."""
    defaults = base.to_dict() if base is not None else dict(DEFAULT_TEXT)
    merged = dict(defaults)
    merged.update({key: value for key, value in data.items() if value is not None})

    content = str(merged.get("content") or "").replace("\\n", "\n")
    font = str(merged.get("font") or defaults["font"])
    try:
        size = float(merged.get("size"))
    except (TypeError, ValueError):
        size = float(defaults["size"])
    try:
        x = float(merged.get("x"))
        y = float(merged.get("y"))
    except (TypeError, ValueError):
        x, y = float(defaults["x"]), float(defaults["y"])

    return TextSpec(
        content=content,
        font=font,
        size=max(1.0, size),
        color=_safe_color(merged.get("color"), str(DEFAULT_TEXT["color"])),
        x=clamp_percent(x),
        y=clamp_percent(y),
    )


def load_preset(name_or_path: str, base: TextSpec | None = None) -> TextSpec:
    path = Path(name_or_path)
    if path.exists():
        raw = _load_file(path)
    else:
        raw = _load_builtin(name_or_path)
    return normalize_preset_dict(raw, base=base)
