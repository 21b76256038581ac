from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, Union

from image_ops.config import (
    FORMATS, LOSSLESS_FORMATS, DEFAULT_COMPRESS_FORMAT, LOSSLESS_QUALITY, LOSSY_QUALITY,
    POSITIONS, DEFAULT_POSITION,
)

# A path (caller-owned) or an in-memory buffer
ImageSource = Union[str, bytes]


def _check_quality(quality: Optional[int]) -> None:
    if quality is not None and not 0 <= quality <= 100:
        raise ValueError(f"quality must be between 0 and 100, got {quality}")


def normalize_format(fmt: str) -> str:
    f = fmt.lower().lstrip(".")
    if f == "jpg":
        f = "jpeg"
    if f not in FORMATS:
        raise ValueError(f"Unsupported format {fmt!r}; expected one of {', '.join(FORMATS)}")
    return f


@dataclass
class ResizeOptions:
    width: Optional[int] = None
    height: Optional[int] = None
    fit: str = "fill"  # contain | cover | anything else forces the exact size
    quality: Optional[int] = None

    def __post_init__(self):
        if self.width is None and self.height is None:
            raise ValueError("resize needs a width, a height, or both")
        for name in ("width", "height"):
            v = getattr(self, name)
            if v is not None and v <= 0:
                raise ValueError(f"{name} must be positive, got {v}")
        _check_quality(self.quality)


@dataclass
class CropOptions:
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.x < 0 or self.y < 0:
            raise ValueError(f"crop offset must not be negative, got +{self.x}+{self.y}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"crop size must be positive, got {self.width}x{self.height}")


@dataclass
class ConvertOptions:
    format: str
    quality: Optional[int] = None

    def __post_init__(self):
        self.format = normalize_format(self.format)
        _check_quality(self.quality)

    @property
    def extension(self) -> str:
        return "jpg" if self.format == "jpeg" else self.format


@dataclass
class CompressOptions:
    format: Optional[str] = None
    quality: Optional[int] = None

    def __post_init__(self):
        if self.format is not None:
            self.format = normalize_format(self.format)
        _check_quality(self.quality)

    def resolved(self) -> ConvertOptions:
        fmt = self.format or DEFAULT_COMPRESS_FORMAT
        quality = self.quality
        if quality is None:
            quality = LOSSLESS_QUALITY if fmt in LOSSLESS_FORMATS else LOSSY_QUALITY
        return ConvertOptions(format=fmt, quality=quality)


@dataclass
class WatermarkOptions:
    """Text or image watermark anchored at one of the five positions.

    `opacity` is honoured for image watermarks only. Text drawn by the tool
    has no global alpha at this layer, so a text opacity below 1 is logged as
    unsupported and the text is drawn opaque.
    """
    type: str
    text: Optional[str] = None
    image: Optional[ImageSource] = None
    position: str = DEFAULT_POSITION
    font_size: Optional[int] = None
    color: Optional[str] = None
    opacity: float = 1.0
    font: Optional[str] = None

    def __post_init__(self):
        if self.type not in ("text", "image"):
            raise ValueError(f"watermark type must be 'text' or 'image', got {self.type!r}")
        if self.type == "text" and not self.text:
            raise ValueError("text watermark needs non-empty text")
        if self.type == "image" and not self.image:
            raise ValueError("image watermark needs an image path or bytes")
        if self.position not in POSITIONS:
            raise ValueError(f"position must be one of {', '.join(POSITIONS)}, got {self.position!r}")
        if not 0 <= self.opacity <= 1:
            raise ValueError(f"opacity must be between 0 and 1, got {self.opacity}")
        if self.font_size is not None and self.font_size <= 0:
            raise ValueError(f"font_size must be positive, got {self.font_size}")


@dataclass(frozen=True)
class ImageInfo:
    width: int
    height: int
    format: str
    mime_type: str
    size: int

    def as_dict(self) -> dict:
        return asdict(self)
