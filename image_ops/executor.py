from __future__ import annotations
import logging
from typing import Optional, Sequence

from image_ops.errors import Ok, Err, Result, ProcessingFailed
from image_ops.locator import ToolHandle
from image_ops.runner import InvocationResult, SubprocessRunner
from image_ops.staging import TempStager

log = logging.getLogger("image-ops.executor")


class InvocationExecutor:
    def __init__(self, runner: SubprocessRunner, stager: TempStager,
                 logger: Optional[logging.Logger] = None):
        self.runner = runner
        self.stager = stager
        self.log = logger or log

    def run(self, tool: ToolHandle, argv: Sequence[str]) -> InvocationResult:
        self.log.debug("running %s %s", tool.command, " ".join(argv))
        return self.runner.spawn(tool.command, list(argv))

    def execute(self, tool: ToolHandle, argv: Sequence[str], output: str) -> Result[bytes]:
        """Run a transform and read back its declared output file."""
        res = self.run(tool, argv)
        if not res.success:
            return Err(ProcessingFailed(res.stderr_text, res.exit_code, argv))
        try:
            return Ok(self.stager.unstage_output(output))
        except OSError as e:
            # missing, unreadable, or a directory: the tool produced nothing usable
            return Err(ProcessingFailed(
                res.stderr_text or f"tool exited 0 but wrote no readable output to {output} ({e})",
                res.exit_code, argv))

    def query(self, tool: ToolHandle, argv: Sequence[str]) -> Result[str]:
        """Run an invocation whose answer is on stdout."""
        res = self.run(tool, argv)
        if not res.success:
            return Err(ProcessingFailed(res.stderr_text, res.exit_code, argv))
        return Ok(res.stdout_text)
