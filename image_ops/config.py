from __future__ import annotations
import os

SERVICE_NAME = "image-ops"

# Tool discovery
TOOL_CANDIDATES = ("magick", "convert")
VERSION_FLAG = "-version"
TOOL_PATH = os.getenv("IMAGE_OPS_TOOL_PATH") or None

# Staging
TEMP_DIR = os.getenv("IMAGE_OPS_TEMP_DIR") or None
TEMP_PREFIX = "imgop_"
# only the process runner reads this; unset means wait for the tool to exit
TIMEOUT_ENV = "IMAGE_OPS_TIMEOUT"


def timeout_secs(raw: str | None = None) -> float | None:
    raw = os.getenv(TIMEOUT_ENV) if raw is None else raw
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{TIMEOUT_ENV} must be a number of seconds, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{TIMEOUT_ENV} must be positive, got {raw!r}")
    return value


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Formats / quality
DEFAULT_FORMAT = "png"  # used when the magic-number sniff recognises nothing
FORMATS = ("jpeg", "png", "webp", "gif", "bmp", "tiff", "avif")
LOSSLESS_FORMATS = {"png", "gif"}
DEFAULT_COMPRESS_FORMAT = "jpeg"
LOSSLESS_QUALITY = 100
LOSSY_QUALITY = 80
PNG_MAX_COMPRESSION = "png:compression-level=9"

MIME_TYPES = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "avif": "image/avif",
}
DEFAULT_MIME = "image/png"

# Watermark
POSITIONS = {
    "top-left": "NorthWest",
    "top-right": "NorthEast",
    "bottom-left": "SouthWest",
    "bottom-right": "SouthEast",
    "center": "Center",
}
DEFAULT_POSITION = "bottom-right"
WATERMARK_INSET = 10
WATERMARK_FONT_SIZE = 24
WATERMARK_COLOR = "#FFFFFF"
