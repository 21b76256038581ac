from __future__ import annotations
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence


@dataclass(frozen=True)
class InvocationResult:
    success: bool
    exit_code: int
    stdout: bytes
    stderr: bytes

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", "replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", "replace")


class SubprocessRunner:
    """Spawns the external tool with stdout/stderr captured and stdin closed.

    `timeout` is the only place a time limit can be put on an invocation;
    subprocess.TimeoutExpired propagates to the caller when it fires.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    def spawn(self, command: str, args: Sequence[str]) -> InvocationResult:
        # OSError (missing executable, permissions) propagates
        cp = subprocess.run([command, *args], stdin=subprocess.DEVNULL,
                            stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                            check=False, timeout=self.timeout)
        return InvocationResult(success=cp.returncode == 0, exit_code=cp.returncode,
                                stdout=cp.stdout or b"", stderr=cp.stderr or b"")


@dataclass(frozen=True)
class FileStat:
    size: int
    is_file: bool


class LocalFileSystem:
    def read_file(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_file(self, path: str, data: bytes) -> None:
        Path(path).write_bytes(data)

    def remove(self, path: str) -> None:
        os.remove(path)

    def make_temp_dir(self, prefix: str = "", dir: str | None = None) -> str:
        return tempfile.mkdtemp(prefix=prefix, dir=dir)

    def remove_tree(self, path: str) -> None:
        shutil.rmtree(path)

    def stat(self, path: str) -> FileStat:
        p = Path(path)
        return FileStat(size=p.stat().st_size, is_file=p.is_file())

    @staticmethod
    def temp_dir() -> str:
        return tempfile.gettempdir()
