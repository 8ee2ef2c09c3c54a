"""Exceptions raised while looking for the base commit of a fixup."""

from typing import Optional, Sequence


class FixupBaseError(Exception):
    """Base class for all fixupbase errors."""


class CommandFailure(FixupBaseError):
    """A git invocation failed at the process boundary."""

    def __init__(self, message: str, command: Optional[Sequence[str]] = None, stderr: str = ""):
        self.command = list(command) if command else []
        self.stderr = stderr.strip()
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super().__init__(message)


class DiffError(CommandFailure):
    """Reading the staged or unstaged diff failed."""


class BlameError(CommandFailure):
    """Blaming a line range failed."""


class StageError(CommandFailure):
    """Staging the working tree failed."""


class DiffFormatError(FixupBaseError, ValueError):
    """A hunk header could not be parsed."""

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"Malformed hunk header: {line!r}")


class InvariantViolation(FixupBaseError):
    """Internal consistency check failed; indicates a bug rather than bad input."""
