"""Temp-file staging for the external tool.

The tool only reads and writes files, so in-memory buffers are written to a
uniquely named file before an invocation and outputs are read back after it.
A StagedFile the stager created is removed on every exit path of the call
that created it; removal failures are logged and never raised.
"""
from __future__ import annotations
import logging
import os
import secrets
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from image_ops.config import TEMP_PREFIX, DEFAULT_FORMAT
from image_ops.errors import StagingFailed
from image_ops.options import ImageSource
from image_ops.runner import LocalFileSystem

log = logging.getLogger("image-ops.staging")

# (magic prefix, extension); checked in order against the first bytes
_SIGNATURES = (
    (b"\xff\xd8", "jpg"),
    (b"\x89P", "png"),
    (b"GI", "gif"),
    (b"RI", "webp"),  # RIFF container
    (b"BM", "bmp"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
)


def detect_format(data: bytes) -> str:
    """Guess a file extension from the first four bytes.

    Unrecognised data falls back to DEFAULT_FORMAT; the tool sniffs content
    itself, so the extension is only a hint.
    """
    header = bytes(data[:4])
    for magic, ext in _SIGNATURES:
        if header.startswith(magic):
            return ext
    return DEFAULT_FORMAT


@dataclass(frozen=True)
class StagedFile:
    path: str
    owned: bool


class TempStager:
    def __init__(self, fs: LocalFileSystem, temp_dir: Optional[str] = None):
        self.fs = fs
        self.temp_dir = temp_dir or fs.temp_dir()

    def unique_path(self, ext: str) -> str:
        # timestamp + random suffix: concurrent calls never share a path
        name = f"{TEMP_PREFIX}{time.time_ns()}_{secrets.token_hex(4)}.{ext}"
        return os.path.join(self.temp_dir, name)

    def stage_input(self, source: ImageSource) -> StagedFile:
        if isinstance(source, (str, os.PathLike)):
            return StagedFile(path=os.fspath(source), owned=False)
        path = self.unique_path(detect_format(source))
        try:
            self.fs.write_file(path, bytes(source))
        except OSError as e:
            self._remove_quietly(path, missing_ok=True)
            raise StagingFailed(path, str(e)) from e
        return StagedFile(path=path, owned=True)

    def unstage_output(self, path: str) -> bytes:
        # FileNotFoundError propagates; the executor decides what it means
        data = self.fs.read_file(path)
        self._remove_quietly(path)
        return data

    def release(self, staged: StagedFile) -> None:
        if staged.owned:
            self._remove_quietly(staged.path, missing_ok=True)

    @contextmanager
    def staged(self, source: ImageSource) -> Iterator[StagedFile]:
        staged = self.stage_input(source)
        try:
            yield staged
        finally:
            self.release(staged)

    @contextmanager
    def output(self, ext: str) -> Iterator[StagedFile]:
        """Reserve an output path inside a private directory for this call.

        The tool may write siblings of the declared path (one file per frame
        when a multi-frame input meets a single-image format), so the whole
        directory is removed on exit, not just the declared file.
        """
        try:
            workdir = self.fs.make_temp_dir(prefix=TEMP_PREFIX, dir=self.temp_dir)
        except OSError as e:
            raise StagingFailed(self.temp_dir, str(e)) from e
        staged = StagedFile(path=os.path.join(workdir, f"out.{ext}"), owned=True)
        try:
            yield staged
        finally:
            try:
                self.fs.remove_tree(workdir)
            except OSError as e:
                log.warning("could not remove temp directory %s: %s", workdir, e)

    def _remove_quietly(self, path: str, missing_ok: bool = False) -> None:
        try:
            self.fs.remove(path)
        except FileNotFoundError:
            if not missing_ok:
                log.warning("temp file %s was already gone", path)
        except OSError as e:
            log.warning("could not remove temp file %s: %s", path, e)
