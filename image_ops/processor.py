from __future__ import annotations
import logging
from contextlib import ExitStack
from typing import Callable, List, Optional

from image_ops import commands
from image_ops.config import MIME_TYPES, DEFAULT_MIME, TEMP_DIR, TOOL_PATH, timeout_secs
from image_ops.executor import InvocationExecutor
from image_ops.locator import ToolHandle, ToolLocator
from image_ops.options import (
    ImageSource, ResizeOptions, CropOptions, ConvertOptions, CompressOptions,
    WatermarkOptions, ImageInfo,
)
from image_ops.runner import LocalFileSystem, SubprocessRunner
from image_ops.staging import TempStager

log = logging.getLogger("image-ops.processor")

ArgvBuilder = Callable[[str, str], List[str]]


def mime_type(fmt: str) -> str:
    return MIME_TYPES.get(fmt.lower(), DEFAULT_MIME)


class ImageProcessor:
    """The six image operations, each run as one external tool invocation.

    Every call stages its own temp files, so one processor can serve
    concurrent callers. Nothing staged by a call outlives it.
    """

    def __init__(self, tool: ToolHandle, runner: SubprocessRunner, fs: LocalFileSystem,
                 temp_dir: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.tool = tool
        self.fs = fs
        self.log = logger or log
        self.stager = TempStager(fs, temp_dir)
        self.executor = InvocationExecutor(runner, self.stager, self.log)

    def _transform(self, image: ImageSource, ext: str, build: ArgvBuilder) -> bytes:
        with ExitStack() as stack:
            src = stack.enter_context(self.stager.staged(image))
            out = stack.enter_context(self.stager.output(ext))
            argv = build(src.path, out.path)
            return self.executor.execute(self.tool, argv, out.path).unwrap()

    def resize(self, image: ImageSource, options: ResizeOptions) -> bytes:
        return self._transform(image, "png",
                               lambda src, dst: commands.resize_args(src, dst, options))

    def crop(self, image: ImageSource, options: CropOptions) -> bytes:
        return self._transform(image, "png",
                               lambda src, dst: commands.crop_args(src, dst, options))

    def convert(self, image: ImageSource, options: ConvertOptions) -> bytes:
        return self._transform(image, options.extension,
                               lambda src, dst: commands.convert_args(src, dst, options))

    def compress(self, image: ImageSource, options: CompressOptions) -> bytes:
        return self.convert(image, options.resolved())

    def add_watermark(self, image: ImageSource, options: WatermarkOptions) -> bytes:
        if options.type == "text":
            if options.opacity < 1:
                self.log.warning("text watermark opacity %.2f is not supported; drawing opaque text",
                            options.opacity)
            return self._transform(image, "png",
                                   lambda src, dst: commands.text_watermark_args(src, dst, options))

        # the mark is staged apart from the input/output pair and released
        # even when compositing fails
        with self.stager.staged(options.image) as mark:
            return self._transform(
                image, "png",
                lambda src, dst: commands.image_watermark_args(src, dst, mark.path, options))

    def extract_info(self, image: ImageSource) -> ImageInfo:
        with self.stager.staged(image) as src:
            stdout = self.executor.query(self.tool, commands.info_args(src.path)).unwrap()
            width, height, fmt = commands.parse_info(stdout)
            size = len(image) if src.owned else self.fs.stat(src.path).size
        return ImageInfo(width=width, height=height, format=fmt, mime_type=mime_type(fmt), size=size)


def create_processor(tool_path: Optional[str] = TOOL_PATH, temp_dir: Optional[str] = TEMP_DIR,
                     runner: Optional[SubprocessRunner] = None,
                     fs: Optional[LocalFileSystem] = None,
                     logger: Optional[logging.Logger] = None) -> ImageProcessor:
    """Resolve the image tool once and return a processor bound to it.

    Raises ToolNotFound when neither `tool_path` nor any default candidate
    answers the version probe. Callers that want one shared processor create
    it at startup and pass it around. `logger` (for example one built by
    make_logger with call context) receives the processor's records.
    """
    runner = runner or SubprocessRunner(timeout=timeout_secs())
    fs = fs or LocalFileSystem()
    tool = ToolLocator(runner).resolve(tool_path)
    return ImageProcessor(tool, runner, fs, temp_dir, logger)
