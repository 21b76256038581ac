from __future__ import annotations
import logging
import sys
from dataclasses import dataclass
from typing import Optional

from image_ops.config import TOOL_CANDIDATES, VERSION_FLAG
from image_ops.errors import ToolNotFound
from image_ops.runner import SubprocessRunner

log = logging.getLogger("image-ops.locator")


@dataclass(frozen=True)
class ToolHandle:
    command: str
    version: str = ""


def install_hint(platform: str = sys.platform) -> str:
    if platform == "darwin":
        return "Install ImageMagick with: brew install imagemagick"
    if platform.startswith("linux"):
        return ("Install ImageMagick with your package manager, e.g. "
                "sudo apt-get install -y imagemagick")
    if platform in ("win32", "cygwin"):
        return ("Download ImageMagick from https://imagemagick.org/script/download.php "
                "and make sure 'magick' is on PATH")
    return "Install ImageMagick and make sure 'magick' or 'convert' is on PATH"


class ToolLocator:
    def __init__(self, runner: SubprocessRunner, candidates: tuple[str, ...] = TOOL_CANDIDATES):
        self.runner = runner
        self.candidates = candidates

    def _probe(self, cmd: str) -> Optional[ToolHandle]:
        try:
            res = self.runner.spawn(cmd, [VERSION_FLAG])
        except OSError as e:
            log.debug("candidate %s could not be spawned: %s", cmd, e)
            return None
        if not res.success:
            log.debug("candidate %s exited with %s on version probe", cmd, res.exit_code)
            return None
        lines = res.stdout_text.strip().splitlines()
        return ToolHandle(command=cmd, version=lines[0] if lines else "")

    def resolve(self, preferred: Optional[str] = None) -> ToolHandle:
        candidates = (preferred,) if preferred else self.candidates
        for cmd in candidates:
            handle = self._probe(cmd)
            if handle:
                log.info("using image tool %s (%s)", handle.command, handle.version or "unknown version")
                return handle
        raise ToolNotFound(candidates, install_hint())
