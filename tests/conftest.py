"""Shared test fixtures."""

from __future__ import annotations

import logging
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from taskgraph.backend import StepRunRequest, StepRunResult
from taskgraph.logs import LOGGER_NAME


class SpyRunner:
    """ProcessRunner stand-in recording invocations; exit codes keyed by exact command."""

    def __init__(self, exit_codes: dict[str, int] | None = None) -> None:
        self.exit_codes = exit_codes or {}
        self.requests: list[StepRunRequest] = []

    @property
    def commands(self) -> list[str]:
        return [request.command for request in self.requests]

    def run(self, request: StepRunRequest) -> StepRunResult:
        self.requests.append(request)
        return StepRunResult(exit_code=self.exit_codes.get(request.command, 0))


@pytest.fixture()
def spy_runner() -> SpyRunner:
    return SpyRunner()


@pytest.fixture()
def write_runfile(tmp_path: Path) -> Callable[..., Path]:
    """Write dedented runfile text; recipe lines are indented with a tab."""

    def _write(text: str, directory: Path | None = None, name: str = "Runfile") -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        content = textwrap.dedent(text).lstrip("\n").replace("    ", "\t")
        path = target_dir / name
        path.write_text(content, "utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture()
def spy_runner_type() -> type[SpyRunner]:
    return SpyRunner
