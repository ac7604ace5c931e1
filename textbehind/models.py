from __future__ import annotations

import io
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image, ImageColor

from textbehind.constants import LINE_HEIGHT_FACTOR
from textbehind.errors import InvalidDimensions


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, slots=True)
class ImageBuffer:
    """RGBA pixels, shape ``(height, width, 4)``, read-only once built."""

    width: int
    height: int
    pixels: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise InvalidDimensions(self.width, self.height, "buffer")
        pixels = np.array(self.pixels, dtype=np.uint8)
        if pixels.size != self.width * self.height * 4:
            raise InvalidDimensions(self.width, self.height, f"buffer of {pixels.size} bytes")
        pixels = pixels.reshape(self.height, self.width, 4)
        object.__setattr__(self, "pixels", _readonly(pixels))

    @classmethod
    def empty(cls) -> ImageBuffer:
        return cls(0, 0, np.zeros((0, 0, 4), dtype=np.uint8))

    @classmethod
    def blank(cls, width: int, height: int) -> ImageBuffer:
        if width <= 0 or height <= 0:
            raise InvalidDimensions(width, height, "blank buffer")
        return cls(width, height, np.zeros((height, width, 4), dtype=np.uint8))

    @classmethod
    def from_image(cls, image: Image.Image) -> ImageBuffer:
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        width, height = rgba.size
        return cls(width, height, np.asarray(rgba, dtype=np.uint8))

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def is_empty(self) -> bool:
        return self.width * self.height == 0

    @property
    def data(self) -> np.ndarray:
        """Flat view: R,G,B,A per pixel, length ``width*height*4``."""
        return self.pixels.reshape(-1)

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.array(self.pixels))


class MaskOrigin(str, Enum):
    GRADIENT_EDGE = "gradient_edge"
    ALPHA_THRESHOLD = "alpha_threshold"


@dataclass(frozen=True, slots=True)
class Mask:
    """Binary foreground classification: 255 foreground, 0 background."""

    width: int
    height: int
    values: np.ndarray = field(repr=False)
    origin: MaskOrigin = MaskOrigin.GRADIENT_EDGE

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise InvalidDimensions(self.width, self.height, "mask")
        values = np.array(self.values, dtype=np.uint8)
        if values.size != self.width * self.height:
            raise InvalidDimensions(self.width, self.height, f"mask of {values.size} entries")
        if values.size and not np.all((values == 0) | (values == 255)):
            raise ValueError("mask entries must be 0 or 255")
        values = values.reshape(self.height, self.width)
        object.__setattr__(self, "values", _readonly(values))

    @classmethod
    def empty(cls, origin: MaskOrigin = MaskOrigin.GRADIENT_EDGE) -> Mask:
        return cls(0, 0, np.zeros((0, 0), dtype=np.uint8), origin)

    @classmethod
    def from_bool(cls, foreground: np.ndarray, origin: MaskOrigin) -> Mask:
        height, width = foreground.shape
        return cls(width, height, np.where(foreground, 255, 0).astype(np.uint8), origin)

    @property
    def is_empty(self) -> bool:
        return self.width * self.height == 0

    @property
    def data(self) -> np.ndarray:
        return self.values.reshape(-1)

    @property
    def foreground(self) -> np.ndarray:
        return self.values == 255

    def foreground_count(self) -> int:
        return int(np.count_nonzero(self.foreground))

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.array(self.values))


# ForegroundResult: the segmentation cutout is an ordinary RGBA buffer.
ForegroundResult = ImageBuffer


ColorValue = str | tuple[int, ...]


def parse_color(value: ColorValue) -> tuple[int, int, int, int]:
    if isinstance(value, str):
        return ImageColor.getcolor(value.strip(), "RGBA")  # type: ignore[return-value]
    parts = tuple(int(part) for part in value)
    if len(parts) == 3:
        parts = (*parts, 255)
    if len(parts) != 4:
        raise ValueError(f"color must have 3 or 4 components, got: {value!r}")
    return tuple(max(0, min(255, part)) for part in parts)  # type: ignore[return-value]


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


@dataclass(frozen=True, slots=True)
class TextSpec:
    content: str = "Your custom text here"
    font: str = "Arial"
    size: float = 24
    color: ColorValue = "#ffffff"
    x: float = 50.0
    y: float = 50.0

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"font size must be positive, got: {self.size!r}")
        parse_color(self.color)
        object.__setattr__(self, "x", clamp_percent(self.x))
        object.__setattr__(self, "y", clamp_percent(self.y))

    @property
    def rgba(self) -> tuple[int, int, int, int]:
        return parse_color(self.color)

    @property
    def line_height(self) -> float:
        return self.size * LINE_HEIGHT_FACTOR

    @property
    def lines(self) -> list[str]:
        return self.content.split("\n")

    def with_position(self, x: float, y: float) -> TextSpec:
        return replace(self, x=x, y=y)

    def with_changes(self, **changes: Any) -> TextSpec:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "font": self.font,
            "size": self.size,
            "color": self.color if isinstance(self.color, str) else list(self.color),
            "x": self.x,
            "y": self.y,
        }


@dataclass(frozen=True, slots=True)
class CompositeResult:
    image: ImageBuffer
    mask: Mask

    @classmethod
    def empty(cls, mask: Mask | None = None) -> CompositeResult:
        return cls(ImageBuffer.empty(), mask if mask is not None else Mask.empty())

    @property
    def is_empty(self) -> bool:
        return self.image.is_empty

    def encode(self, fmt: str = "PNG", quality: int = 92) -> bytes:
        if self.is_empty:
            raise ValueError("nothing to encode: composite result is empty")
        fmt = fmt.upper()
        buffer = io.BytesIO()
        image = self.image.to_image()
        if fmt in {"JPEG", "JPG"}:
            image.convert("RGB").save(buffer, format="JPEG", quality=max(1, min(100, quality)), optimize=True)
        else:
            image.save(buffer, format=fmt, optimize=True)
        return buffer.getvalue()

    def save(self, path: Path, fmt: str = "PNG", quality: int = 92) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.encode(fmt, quality=quality))
        return path


@dataclass(frozen=True, slots=True)
class SessionState:
    """Everything one uploaded image owns. Replaced wholesale on a new upload."""

    generation: int
    source_name: str
    original: ImageBuffer
    mask: Mask
    cutout: ImageBuffer | None = None

    @property
    def canvas_size(self) -> tuple[int, int]:
        return self.original.size
