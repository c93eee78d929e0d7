"""Subprocess-based runner executing steps through a shell."""

from __future__ import annotations

import logging
import os
import subprocess

from taskgraph.backend.base import StepRunRequest, StepRunResult
from taskgraph.errors import ProcessRunError

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/sh"
COMMAND_NOT_FOUND_EXIT_CODE = 127
COMMAND_NOT_EXECUTABLE_EXIT_CODE = 126
SIGNAL_EXIT_CODE_BASE = 128


class ShellProcessRunner:
    """Run each invocation as a synchronous child process with inherited stdio."""

    def __init__(
        self,
        shell: str = DEFAULT_SHELL,
        *,
        os_name: str | None = None,
        terminate_timeout_seconds: float = 2.0,
    ) -> None:
        self.shell = shell
        self.os_name = os_name or os.name
        self.terminate_timeout_seconds = terminate_timeout_seconds

    def run(self, request: StepRunRequest) -> StepRunResult:
        env = os.environ.copy()
        env.update(request.environment)
        try:
            process = self._spawn(request, env)
        except FileNotFoundError as error:
            raise ProcessRunError(
                f"Shell not found: {self.shell}",
                exit_code=COMMAND_NOT_FOUND_EXIT_CODE,
            ) from error
        except OSError as error:
            raise ProcessRunError(
                f"Failed to start shell {self.shell}: {error}",
                exit_code=COMMAND_NOT_EXECUTABLE_EXIT_CODE,
            ) from error

        try:
            returncode = process.wait()
        except KeyboardInterrupt:
            logger.debug("Interrupted; terminating pid %s", process.pid)
            _terminate_process(process, timeout=self.terminate_timeout_seconds)
            raise
        return StepRunResult(exit_code=_normalize_returncode(returncode))

    def _spawn(self, request: StepRunRequest, env: dict[str, str]) -> subprocess.Popen[bytes]:
        if self.os_name == "nt":
            return subprocess.Popen(  # noqa: S602
                request.command,
                cwd=request.cwd,
                env=env,
                shell=True,
            )
        return subprocess.Popen(  # noqa: S603
            [self.shell, "-c", request.command],
            cwd=request.cwd,
            env=env,
        )


def _normalize_returncode(returncode: int) -> int:
    if returncode < 0:
        return SIGNAL_EXIT_CODE_BASE - returncode
    return returncode


def _terminate_process(process: subprocess.Popen[bytes], *, timeout: float) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=timeout)
