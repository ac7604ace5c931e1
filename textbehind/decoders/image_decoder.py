from __future__ import annotations

import io
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from textbehind.constants import HEIF_EXTENSIONS, SUPPORTED_EXTENSIONS
from textbehind.errors import DecodeFailed, InvalidDimensions
from textbehind.models import ImageBuffer

_HEIF_REGISTERED = False


def _register_heif_opener() -> bool:
    global _HEIF_REGISTERED
    if _HEIF_REGISTERED:
        return True
    try:
        from pillow_heif import register_heif_opener
    except ImportError:
        return False
    register_heif_opener()
    _HEIF_REGISTERED = True
    return True


def _open_rgba(handle: Image.Image) -> Image.Image:
    return ImageOps.exif_transpose(handle).convert("RGBA").copy()


def _to_buffer(image: Image.Image, label: str) -> ImageBuffer:
    width, height = image.size
    if width <= 0 or height <= 0:
        raise InvalidDimensions(width, height, f"decode {label}")
    return ImageBuffer.from_image(image)


def decode_bytes(data: bytes, label: str = "<bytes>") -> ImageBuffer:
    if not data:
        raise DecodeFailed(f"no image data: {label}")
    _register_heif_opener()
    try:
        with Image.open(io.BytesIO(data)) as image:
            rgba = _open_rgba(image)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeFailed(f"cannot decode {label}: {exc}") from exc
    return _to_buffer(rgba, label)


def decode_image(path: Path) -> ImageBuffer:
    ext = path.suffix.lower()
    if ext in HEIF_EXTENSIONS and not _register_heif_opener():
        raise DecodeFailed("pillow-heif is required to decode HEIF/HEIC/HIF")
    if ext and ext not in SUPPORTED_EXTENSIONS:
        raise DecodeFailed(f"unsupported image format: {path.suffix}")
    try:
        with Image.open(path) as image:
            rgba = _open_rgba(image)
    except FileNotFoundError as exc:
        raise DecodeFailed(f"image not found: {path}") from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeFailed(f"cannot decode {path.name}: {exc}") from exc
    return _to_buffer(rgba, path.name)


def decode_source(source: Path | str | bytes | Image.Image | ImageBuffer) -> ImageBuffer:
    if isinstance(source, ImageBuffer):
        if source.is_empty:
            raise InvalidDimensions(source.width, source.height, "decode")
        return source
    if isinstance(source, Image.Image):
        return _to_buffer(source.convert("RGBA"), "<image>")
    if isinstance(source, (bytes, bytearray)):
        return decode_bytes(bytes(source))
    return decode_image(Path(source))
