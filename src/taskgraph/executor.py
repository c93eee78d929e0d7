"""Sequential, fail-fast execution of a composed plan."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import rich_click as click

from taskgraph.backend import ProcessRunner, StepRunRequest
from taskgraph.errors import ChildProcessExitError, ProcessRunError
from taskgraph.help import DEFAULT_COLUMN_WIDTH, format_help
from taskgraph.models import ExecutionPlan, HelpListing, NestedInvocation, PlanItem, ResolvedStep

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ShellInvocation:
    """One continuation group joined into a single shell command."""

    target: str
    command: str
    directory: Path
    suppress_echo: bool = False
    environment: Mapping[str, str] = field(default_factory=dict)
    path: Path | None = None
    line: int | None = None


Invocation = ShellInvocation | HelpListing | NestedInvocation


def group_invocations(items: Iterable[PlanItem]) -> list[Invocation]:
    """Join consecutive steps sharing a continuation group; keep everything else as is."""

    invocations: list[Invocation] = []
    current_group: tuple[int, int] | None = None
    for item in items:
        if not isinstance(item, ResolvedStep):
            invocations.append(item)
            current_group = None
            continue
        previous = invocations[-1] if invocations else None
        if item.group == current_group and isinstance(previous, ShellInvocation):
            previous.command = f"{previous.command} {item.command}"
            continue
        invocations.append(
            ShellInvocation(
                target=item.target,
                command=item.command,
                directory=item.directory,
                suppress_echo=item.suppress_echo,
                environment=item.environment,
                path=item.path,
                line=item.line,
            ),
        )
        current_group = item.group
    return invocations


class Executor:
    """Run plan invocations one at a time, stopping at the first failure.

    A failing invocation raises ChildProcessExitError carrying its exit code
    unchanged. A nested invocation fails as a whole, with the exit code of the
    step that failed inside it.
    """

    def __init__(  # noqa: PLR0913
        self,
        runner: ProcessRunner,
        *,
        echo: Callable[[str], None] | None = None,
        dry_run: bool = False,
        help_width: int = DEFAULT_COLUMN_WIDTH,
        help_color: bool = False,
    ) -> None:
        self.runner = runner
        self.echo = echo or click.echo
        self.dry_run = dry_run
        self.help_width = help_width
        self.help_color = help_color

    def execute(self, plan: ExecutionPlan) -> None:
        for invocation in group_invocations(plan.items):
            if isinstance(invocation, HelpListing):
                for line in format_help(
                    invocation.registry,
                    width=self.help_width,
                    color=self.help_color,
                ):
                    self.echo(line)
            elif isinstance(invocation, NestedInvocation):
                self._execute_nested(invocation)
            else:
                self._execute_shell(invocation)

    def _execute_nested(self, invocation: NestedInvocation) -> None:
        directory = invocation.plan.directory
        logger.info("Entering directory %s", directory)
        try:
            self.execute(invocation.plan)
        except ChildProcessExitError as error:
            raise ChildProcessExitError(
                error.exit_code,
                target=invocation.target,
                path=invocation.path,
                line=invocation.line,
            ) from error
        finally:
            logger.info("Leaving directory %s", directory)

    def _execute_shell(self, invocation: ShellInvocation) -> None:
        if self.dry_run or not invocation.suppress_echo:
            self.echo(invocation.command)
        if self.dry_run:
            return

        logger.debug("Running %r in %s", invocation.command, invocation.directory)
        try:
            result = self.runner.run(
                StepRunRequest(
                    command=invocation.command,
                    cwd=invocation.directory,
                    environment=invocation.environment,
                ),
            )
        except ProcessRunError as error:
            logger.error("%s", error)
            raise ChildProcessExitError(
                error.exit_code,
                target=invocation.target,
                path=invocation.path,
                line=invocation.line,
            ) from error

        if result.exit_code != 0:
            raise ChildProcessExitError(
                result.exit_code,
                target=invocation.target,
                path=invocation.path,
                line=invocation.line,
            )
