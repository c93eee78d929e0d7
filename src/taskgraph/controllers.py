"""Controller for one engine invocation, from CLI input to exit code."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import rich_click as click

from taskgraph.backend import ProcessRunner, ShellProcessRunner
from taskgraph.composer import Composer
from taskgraph.config import Settings
from taskgraph.errors import ChildProcessExitError
from taskgraph.executor import Executor
from taskgraph.help import format_help
from taskgraph.models import HELP_TARGET
from taskgraph.parser import RegistryLoader
from taskgraph.params import split_invocation_args

logger = logging.getLogger(__name__)

PROGRAM_NAME = "run"


@dataclass(slots=True)
class RunCommand:
    """CLI input for one invocation."""

    args: tuple[str, ...] = ()
    directory: Path | None = None
    runfile: Path | None = None
    strict: bool | None = None
    dry_run: bool = False


@dataclass(slots=True)
class InvocationResult:
    """Invocation outcome: exit code plus lines for stdout and stderr."""

    exit_code: int
    lines: list[str] = field(default_factory=list)
    error_lines: list[str] = field(default_factory=list)


class InvocationController:
    """Parse, compose and execute a single invocation.

    Engine errors (parse, unknown target, cycle, strict unbound parameter)
    propagate to the caller before anything runs. A failing step is reported
    through the result's exit code.
    """

    def __init__(
        self,
        *,
        runner: ProcessRunner | None = None,
        echo: Callable[[str], None] | None = None,
        settings_factory: Callable[[], Settings] = Settings.from_env,
    ) -> None:
        self._runner = runner
        self._echo = echo
        self._settings_factory = settings_factory

    def run(self, command: RunCommand) -> InvocationResult:
        settings = self._settings_factory()
        goals, bindings = split_invocation_args(command.args)
        directory = command.directory or Path.cwd()
        loader = RegistryLoader(names=settings.runfile_names)
        registry = loader.load(directory, command.runfile)

        if not goals or goals == (HELP_TARGET,):
            return InvocationResult(
                exit_code=0,
                lines=format_help(
                    registry,
                    width=settings.help.column_width,
                    color=settings.help.color,
                ),
            )

        strict = settings.execution.strict_parameters if command.strict is None else command.strict
        composer = Composer(load=loader.load, environ=dict(os.environ), strict=strict)
        plan = composer.compose(registry, goals, bindings)

        executor = Executor(
            self._runner or ShellProcessRunner(shell=settings.execution.shell),
            echo=self._echo,
            dry_run=command.dry_run,
            help_width=settings.help.column_width,
            help_color=settings.help.color,
        )
        try:
            executor.execute(plan)
        except ChildProcessExitError as error:
            logger.debug("Plan for %s stopped with exit code %d", goals, error.exit_code)
            return InvocationResult(exit_code=error.exit_code, error_lines=_failure_lines(error))
        return InvocationResult(exit_code=0)


def _failure_lines(error: ChildProcessExitError) -> list[str]:
    chain: list[ChildProcessExitError] = []
    current: BaseException | None = error
    while isinstance(current, ChildProcessExitError):
        chain.append(current)
        current = current.__cause__

    depth = len(chain) - 1
    lines: list[str] = []
    for level, failure in enumerate(reversed(chain)):
        nesting = depth - level
        program = f"{PROGRAM_NAME}[{nesting}]" if nesting else PROGRAM_NAME
        lines.append(click.style(f"{program}: *** {failure}", fg="red"))
    return lines
