from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path

from image_ops.config import LOG_LEVEL, TOOL_PATH, TEMP_DIR, FORMATS, POSITIONS, DEFAULT_POSITION
from image_ops.errors import ImageOpsError
from image_ops.logging_setup import configure_logging
from image_ops.options import (
    ResizeOptions, CropOptions, ConvertOptions, CompressOptions, WatermarkOptions,
)
from image_ops.processor import create_processor


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Resize, crop, convert, compress, watermark or inspect an image.")
    ap.add_argument("--tool-path", default=TOOL_PATH, help="ImageMagick executable (default: magick, then convert)")
    ap.add_argument("--temp-dir", default=TEMP_DIR, help="Directory for staged files (default: system temp)")
    ap.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"],
        help="Logging verbosity (default: %(default)s)",
    )
    sub = ap.add_subparsers(dest="operation", required=True)

    def op(name: str, help_text: str, output: bool = True):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("input", type=Path)
        if output:
            p.add_argument("-o", "--output", type=Path, required=True)
        return p

    p = op("resize", "scale to a target box")
    p.add_argument("--width", type=int)
    p.add_argument("--height", type=int)
    p.add_argument("--fit", default="fill", choices=["fill", "contain", "cover"])
    p.add_argument("--quality", type=int)

    p = op("crop", "extract a rectangle")
    for name in ("x", "y", "width", "height"):
        p.add_argument(f"--{name}", type=int, required=True)

    p = op("convert", "change encoding")
    p.add_argument("--format", required=True, choices=FORMATS + ("jpg",))
    p.add_argument("--quality", type=int)

    p = op("compress", "re-encode with a quality setting")
    p.add_argument("--format", choices=FORMATS + ("jpg",))
    p.add_argument("--quality", type=int)

    p = op("watermark", "draw text or composite an image")
    g = p.add_mutually_exclusive_group(required=True)
    g.add_argument("--text")
    g.add_argument("--image", type=Path, help="watermark image")
    p.add_argument("--position", default=DEFAULT_POSITION, choices=list(POSITIONS))
    p.add_argument("--font-size", type=int)
    p.add_argument("--font")
    p.add_argument("--color")
    p.add_argument("--opacity", type=float, default=1.0)

    op("info", "print width, height, format, MIME type and size as JSON", output=False)
    return ap.parse_args(argv)


def run(args, processor) -> bytes | dict:
    src = str(args.input)
    if args.operation == "resize":
        return processor.resize(src, ResizeOptions(args.width, args.height, args.fit, args.quality))
    if args.operation == "crop":
        return processor.crop(src, CropOptions(args.x, args.y, args.width, args.height))
    if args.operation == "convert":
        return processor.convert(src, ConvertOptions(args.format, args.quality))
    if args.operation == "compress":
        return processor.compress(src, CompressOptions(args.format, args.quality))
    if args.operation == "watermark":
        opts = WatermarkOptions(
            type="text" if args.text else "image",
            text=args.text,
            image=str(args.image) if args.image else None,
            position=args.position, font_size=args.font_size, color=args.color,
            opacity=args.opacity, font=args.font,
        )
        return processor.add_watermark(src, opts)
    return processor.extract_info(src).as_dict()


def main(argv=None) -> int:
    args = parse_args(argv)
    make_logger = configure_logging(level=args.log_level, to_stderr=True, to_journal=False)
    log = make_logger("cli", {"operation": args.operation})

    try:
        processor = create_processor(tool_path=args.tool_path, temp_dir=args.temp_dir,
                                     logger=make_logger("processor", {"operation": args.operation}))
        result = run(args, processor)
    except (ImageOpsError, ValueError) as e:
        log.error("%s failed: %s", args.operation, e)
        return 1

    if isinstance(result, dict):
        print(json.dumps(result))
        return 0
    args.output.write_bytes(result)
    log.info("wrote %d bytes to %s", len(result), args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
