"""Argument vectors for the external tool, one builder per operation.

Every builder is pure: it maps (input path, output path, options) to the
argv passed after the tool name. Input always comes first and output last;
the tool infers the output encoding from the output file's extension.
"""
from __future__ import annotations
from typing import List, Optional

from image_ops.config import (
    POSITIONS, WATERMARK_INSET, WATERMARK_FONT_SIZE, WATERMARK_COLOR, PNG_MAX_COMPRESSION,
    LOSSLESS_QUALITY,
)
from image_ops.options import (
    ResizeOptions, CropOptions, ConvertOptions, CompressOptions, WatermarkOptions,
)

INFO_FORMAT = "%w|%h|%m|%b\n"


def _box(width: Optional[int], height: Optional[int]) -> str:
    return f"{width or ''}x{height or ''}"


def _inset() -> str:
    return f"+{WATERMARK_INSET}+{WATERMARK_INSET}"


def resize_args(src: str, dst: str, opts: ResizeOptions) -> List[str]:
    box = _box(opts.width, opts.height)
    argv = [src]
    if opts.fit == "cover":
        # fill the box, then trim the overflow around the centre
        argv += ["-resize", f"{box}^", "-gravity", "center", "-extent", box]
    elif opts.fit == "contain":
        argv += ["-resize", box]
    else:
        argv += ["-resize", f"{box}!"]
    if opts.quality is not None:
        argv += ["-quality", str(opts.quality)]
    argv.append(dst)
    return argv


def crop_args(src: str, dst: str, opts: CropOptions) -> List[str]:
    # +repage drops the virtual canvas offset left behind by -crop
    return [src, "-crop", f"{opts.width}x{opts.height}+{opts.x}+{opts.y}", "+repage", dst]


def convert_args(src: str, dst: str, opts: ConvertOptions) -> List[str]:
    argv = [src]
    if opts.quality is not None:
        argv += ["-quality", str(opts.quality)]
        if opts.format == "png" and opts.quality == LOSSLESS_QUALITY:
            argv += ["-define", PNG_MAX_COMPRESSION]
    argv.append(dst)
    return argv


def compress_args(src: str, dst: str, opts: CompressOptions) -> List[str]:
    return convert_args(src, dst, opts.resolved())


def escape_text(text: str) -> str:
    """Make the tool draw `text` literally.

    A leading "@" would make it read the text from a file, and "%" starts a
    property escape such as %w or %[exif:...]. Backslashes start escapes of
    their own.
    """
    text = text.replace("\\", "\\\\").replace("%", "%%")
    if text.startswith("@"):
        text = "\\" + text
    return text


def text_watermark_args(src: str, dst: str, opts: WatermarkOptions) -> List[str]:
    argv = [src]
    if opts.font:
        argv += ["-font", opts.font]
    argv += [
        "-pointsize", str(opts.font_size or WATERMARK_FONT_SIZE),
        "-fill", opts.color or WATERMARK_COLOR,
        "-gravity", POSITIONS[opts.position],
        "-annotate", _inset(), escape_text(opts.text or ""),
        dst,
    ]
    return argv


def image_watermark_args(src: str, dst: str, mark: str, opts: WatermarkOptions) -> List[str]:
    argv = [src]
    if opts.opacity < 1:
        argv += ["(", mark, "-alpha", "set", "-channel", "A",
                 "-evaluate", "multiply", str(opts.opacity), "+channel", ")"]
    else:
        argv.append(mark)
    argv += ["-gravity", POSITIONS[opts.position], "-geometry", _inset(), "-composite", dst]
    return argv


def info_args(src: str) -> List[str]:
    return [src, "-format", INFO_FORMAT, "info:"]


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_info(stdout: str) -> tuple[int, int, str]:
    """Parse the first frame of an INFO_FORMAT response into (width, height, format).

    Numbers that do not parse come back as 0.
    """
    lines = stdout.strip().splitlines()
    fields = (lines[0] if lines else "").split("|")
    fields += [""] * (3 - len(fields))
    return _to_int(fields[0].strip()), _to_int(fields[1].strip()), fields[2].strip().lower()
