from __future__ import annotations
from dataclasses import dataclass
from typing import Generic, NoReturn, Sequence, TypeVar, Union

T = TypeVar("T")


class ImageOpsError(Exception):
    """Base class for every failure raised by an image operation."""


class ToolNotFound(ImageOpsError):
    def __init__(self, candidates: Sequence[str], hint: str = ""):
        self.candidates = tuple(candidates)
        self.hint = hint
        msg = f"No usable image tool found (tried: {', '.join(self.candidates)})"
        super().__init__(f"{msg}\n{hint}" if hint else msg)


class ProcessingFailed(ImageOpsError):
    """The tool exited nonzero, or exited zero without writing its output file."""

    def __init__(self, stderr: str, exit_code: int | None = None, argv: Sequence[str] = ()):
        self.stderr = stderr
        self.exit_code = exit_code
        self.argv = list(argv)
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"Image processing failed: {detail}")


class StagingFailed(ImageOpsError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Could not stage input at {path}: {reason}")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: ImageOpsError
    ok = False

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Union[Ok[T], Err]
