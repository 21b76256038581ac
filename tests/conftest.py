"""
Pytest fixtures: a scripted stand-in for the ImageMagick process and a
processor whose temp directory is the test's tmp_path.
"""
import logging
from pathlib import Path

import pytest

from image_ops.config import SERVICE_NAME
from image_ops.locator import ToolHandle
from image_ops.processor import ImageProcessor
from image_ops.runner import InvocationResult, LocalFileSystem

# 1x1 transparent PNG
PNG_1X1 = bytes.fromhex(
    "89504e470d0a1a0a0000000d49484452000000010000000108060000001f15c489"
    "0000000a49444154789c63000100000500010d0a2db40000000049454e44ae426082"
)


class FakeRunner:
    """Records every spawn and plays the tool's part.

    On success the last argv element is treated as the output file and gets
    `output` written to it (or the input's bytes when `echo_input` is set).
    """

    def __init__(self, exit_code=0, stdout=b"", stderr=b"", output=b"OUTPUT",
                 write_output=True, echo_input=False, missing=()):
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.output = output
        self.write_output = write_output
        self.echo_input = echo_input
        self.missing = set(missing)
        self.calls = []
        self.existing_at_spawn = []

    def spawn(self, command, args):
        args = list(args)
        self.calls.append((command, args))
        if command in self.missing:
            raise FileNotFoundError(2, "No such file or directory", command)
        self.existing_at_spawn.append([a for a in args if Path(a).is_file()])
        ok = self.exit_code == 0
        if ok and self.write_output and args and args[-1] not in ("info:", "-version"):
            data = Path(args[0]).read_bytes() if self.echo_input else self.output
            Path(args[-1]).write_bytes(data)
        return InvocationResult(success=ok, exit_code=self.exit_code,
                                stdout=self.stdout, stderr=self.stderr)

    @property
    def last_args(self):
        return self.calls[-1][1]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def make_processor(tmp_path):
    def factory(runner, fs=None, logger=None):
        return ImageProcessor(ToolHandle("magick", "Version: ImageMagick 7.1.1"), runner,
                              fs or LocalFileSystem(), str(tmp_path), logger)
    return factory


@pytest.fixture
def processor(make_processor, runner):
    return make_processor(runner)


@pytest.fixture
def png_bytes():
    return PNG_1X1


@pytest.fixture(autouse=True)
def propagate_service_logs(monkeypatch):
    # configure_logging stops propagation at the service logger; caplog listens on root
    monkeypatch.setattr(logging.getLogger(SERVICE_NAME), "propagate", True)
