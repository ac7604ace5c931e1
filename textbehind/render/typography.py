from __future__ import annotations

import logging
import os
import platform
import re
from functools import lru_cache
from pathlib import Path

from PIL import ImageFont

LOGGER = logging.getLogger(__name__)

_FONT_FILE_SUFFIXES = {".ttf", ".ttc", ".otf", ".otc"}
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# 常见字体族名 → 文件名（不含扩展名），用于文件名与族名不一致的情况
_FAMILY_ALIASES: dict[str, tuple[str, ...]] = {
    "arial": ("arial", "arialmt", "liberationsans-regular", "liberationsans", "dejavusans"),
    "helvetica": ("helvetica", "arial", "liberationsans-regular", "dejavusans"),
    "verdana": ("verdana", "dejavusans"),
    "timesnewroman": ("times", "timesnewroman", "liberationserif-regular", "dejavuserif"),
    "georgia": ("georgia", "dejavuserif"),
    "couriernew": ("cour", "couriernew", "liberationmono-regular", "dejavusansmono"),
    "impact": ("impact",),
    "comicsansms": ("comic", "comicsansms"),
    "palatino": ("pala", "palatino", "palatinolinotype"),
    "garamond": ("gara", "garamond", "ebgaramond-regular"),
}


def _system_font_candidates() -> list[Path]:
    system = platform.system().lower()
    if "windows" in system:
        return [
            Path(r"C:\Windows\Fonts\arial.ttf"),
            Path(r"C:\Windows\Fonts\msyh.ttc"),
            Path(r"C:\Windows\Fonts\segoeui.ttf"),
        ]
    if "darwin" in system:
        return [
            Path("/System/Library/Fonts/Helvetica.ttc"),
            Path("/Library/Fonts/Arial Unicode.ttf"),
            Path("/System/Library/Fonts/PingFang.ttc"),
        ]
    return [
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
        Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
        Path("/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc"),
    ]


def _system_font_directories() -> list[Path]:
    system = platform.system().lower()
    roots: list[Path] = []
    if "windows" in system:
        windows_dir = Path(os.environ.get("WINDIR", r"C:\Windows"))
        roots.append(windows_dir / "Fonts")
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            roots.append(Path(local_app_data) / "Microsoft" / "Windows" / "Fonts")
    elif "darwin" in system:
        roots.extend(
            [
                Path("/System/Library/Fonts"),
                Path("/Library/Fonts"),
                Path.home() / "Library" / "Fonts",
            ]
        )
    else:
        roots.extend(
            [
                Path("/usr/share/fonts"),
                Path("/usr/local/share/fonts"),
                Path.home() / ".fonts",
                Path.home() / ".local" / "share" / "fonts",
            ]
        )

    deduped: list[Path] = []
    seen: set[str] = set()
    for root in roots:
        key = str(root).strip()
        if not key:
            continue
        normalized = key.lower() if "windows" in system else key
        if normalized in seen:
            continue
        seen.add(normalized)
        deduped.append(root)
    return deduped


@lru_cache(maxsize=1)
def list_available_font_paths() -> list[Path]:
    system = platform.system().lower()
    available: list[Path] = []
    seen: set[str] = set()

    for root in _system_font_directories():
        try:
            if not root.exists() or not root.is_dir():
                continue
        except OSError:
            continue

        for dir_path, _dir_names, file_names in os.walk(root, onerror=lambda _err: None):
            for file_name in file_names:
                suffix = Path(file_name).suffix.lower()
                if suffix not in _FONT_FILE_SUFFIXES:
                    continue
                candidate = Path(dir_path) / file_name
                key = str(candidate).strip()
                if not key:
                    continue
                dedupe_key = key.lower() if "windows" in system else key
                if dedupe_key in seen:
                    continue
                seen.add(dedupe_key)
                available.append(candidate)

    available.sort(key=lambda path: (path.stem.lower(), path.name.lower(), str(path).lower()))
    return available


def _family_key(name: str) -> str:
    return _NON_ALNUM.sub("", name.lower())


def find_font_file(family: str, available: list[Path] | None = None) -> Path | None:
    """Match a family name such as ``"Times New Roman"`` to an installed font file."""
    text = (family or "").strip()
    if not text:
        return None
    direct = Path(text).expanduser()
    if direct.suffix.lower() in _FONT_FILE_SUFFIXES and direct.exists():
        return direct

    key = _family_key(text)
    wanted = _FAMILY_ALIASES.get(key, (key,))
    fonts = list_available_font_paths() if available is None else available
    by_stem: dict[str, Path] = {}
    for path in fonts:
        by_stem.setdefault(_family_key(path.stem), path)
    for name in wanted:
        hit = by_stem.get(_family_key(name))
        if hit is not None:
            return hit
    return None


@lru_cache(maxsize=64)
def load_font(family: str, size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    size = max(1, int(size))
    candidates: list[Path] = []
    match = find_font_file(family)
    if match is not None:
        candidates.append(match)
    candidates.extend(_system_font_candidates())
    for candidate in candidates:
        if candidate.exists():
            try:
                return ImageFont.truetype(str(candidate), size=size)
            except OSError:
                continue
    LOGGER.warning("no TrueType font found for %r, using Pillow default", family)
    return ImageFont.load_default(size=size)
