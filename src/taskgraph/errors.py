"""Error taxonomy for registry parsing, composition and execution."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class TaskGraphError(Exception):
    """Base class for every engine error; all of them are fatal to an invocation."""


class ParseError(TaskGraphError):
    """Malformed runfile definition."""

    def __init__(self, message: str, *, path: Path | None = None, line: int | None = None) -> None:
        location = _format_location(path, line)
        super().__init__(f"{location}: {message}" if location else message)
        self.path = path
        self.line = line


class RunfileNotFoundError(TaskGraphError):
    """No runfile exists in the requested directory."""

    def __init__(self, directory: Path, names: Sequence[str]) -> None:
        super().__init__(f"No runfile found in {directory} (looked for: {', '.join(names)}).")
        self.directory = directory
        self.names = tuple(names)


class UnknownTargetError(TaskGraphError):
    """Requested target is absent from the registry."""

    def __init__(self, name: str, *, path: Path | None = None) -> None:
        where = f" in {path}" if path is not None else ""
        super().__init__(f"No rule to make target {name!r}{where}.")
        self.name = name
        self.path = path


class CyclicDependencyError(TaskGraphError):
    """Delegation chain revisits a (runfile, target) pair."""

    def __init__(self, chain: Sequence[str]) -> None:
        super().__init__(f"Circular delegation: {' -> '.join(chain)}.")
        self.chain = tuple(chain)


class UnboundParameterError(TaskGraphError):
    """Placeholder has no binding while strict parameter mode is enabled."""

    def __init__(self, name: str, *, target: str) -> None:
        super().__init__(f"Parameter {name!r} referenced by target {target!r} is unbound.")
        self.name = name
        self.target = target


class ChildProcessExitError(TaskGraphError):
    """A step's invocation exited with a non-zero status."""

    def __init__(
        self,
        exit_code: int,
        *,
        target: str,
        path: Path | None = None,
        line: int | None = None,
    ) -> None:
        location = _format_location(path, line)
        prefix = f"{location}: " if location else ""
        super().__init__(f"[{prefix}{target}] Error {exit_code}")
        self.exit_code = exit_code
        self.target = target
        self.path = path
        self.line = line


class ProcessRunError(TaskGraphError):
    """The shell for a step could not be started at all."""

    def __init__(self, message: str, *, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def _format_location(path: Path | None, line: int | None) -> str:
    if path is None:
        return ""
    if line is None:
        return path.name
    return f"{path.name}:{line}"
