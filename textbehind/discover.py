from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from textbehind.constants import SUPPORTED_EXTENSIONS


def extension_set(extensions: Iterable[str] | None = None) -> frozenset[str]:
    """Lower-case, dot-prefixed suffixes; ``None`` or empty means every supported format."""
    cleaned = {f".{ext.lower().lstrip('.')}" for ext in extensions or () if ext}
    return frozenset(cleaned or SUPPORTED_EXTENSIONS)


def _is_inside(path: Path, directory: Path) -> bool:
    return path.resolve(strict=False).is_relative_to(directory)


def iter_images(
    root: Path,
    recursive: bool = False,
    extensions: Iterable[str] | None = None,
    exclude: Path | None = None,
) -> Iterator[Path]:
    """Yield image files under ``root`` in directory order.

    ``exclude`` skips a subtree, typically an output directory that lives
    inside the input directory.
    """
    wanted = extension_set(extensions)
    skipped = exclude.resolve(strict=False) if exclude is not None else None
    entries = root.rglob("*") if recursive else root.iterdir()
    for entry in entries:
        if entry.suffix.lower() not in wanted or not entry.is_file():
            continue
        if skipped is not None and _is_inside(entry, skipped):
            continue
        yield entry


def discover_inputs(
    input_path: Path,
    recursive: bool = False,
    extensions: Iterable[str] | None = None,
    exclude: Path | None = None,
) -> list[Path]:
    if input_path.is_file():
        return [input_path] if input_path.suffix.lower() in extension_set(extensions) else []
    if not input_path.is_dir():
        return []
    return sorted(iter_images(input_path, recursive, extensions, exclude))
