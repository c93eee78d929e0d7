"""Process backend interface for step execution."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass(slots=True)
class StepRunRequest:
    """Inputs required to run one shell invocation."""

    command: str
    cwd: Path
    environment: Mapping[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class StepRunResult:
    """Exit status of one shell invocation."""

    exit_code: int


class ProcessRunner(Protocol):
    """Protocol implemented by step runners."""

    def run(self, request: StepRunRequest) -> StepRunResult:
        """Run the command to completion and report its exit status."""
