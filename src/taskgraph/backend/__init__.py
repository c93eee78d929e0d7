"""Process backends for step execution."""

from taskgraph.backend.base import ProcessRunner, StepRunRequest, StepRunResult
from taskgraph.backend.shell_backend import ShellProcessRunner

__all__ = [
    "ProcessRunner",
    "ShellProcessRunner",
    "StepRunRequest",
    "StepRunResult",
]
