"""CLI entrypoint for taskgraph."""

from __future__ import annotations

import logging
from pathlib import Path

import rich_click as click

from taskgraph import __version__
from taskgraph.config import Settings
from taskgraph.controllers import InvocationController, InvocationResult, RunCommand
from taskgraph.errors import TaskGraphError
from taskgraph.logs import configure_logging

click.rich_click.USE_MARKDOWN = True
INTERRUPTED_EXIT_CODE = 130
CONTROLLER = InvocationController()


class EngineError(click.ClickException):
    """Engine failure reported before or instead of running steps."""

    exit_code = 2


@click.command(context_settings={"ignore_unknown_options": True})
@click.version_option(version=__version__, prog_name="taskgraph")
@click.option(
    "-C",
    "--directory",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    default=None,
    help="Change to this directory before reading the runfile.",
)
@click.option(
    "-f",
    "--file",
    "runfile",
    type=click.Path(path_type=Path),
    default=None,
    help="Runfile to read instead of searching for `Runfile`/`Makefile`.",
)
@click.option(
    "--strict/--no-strict",
    default=None,
    help="Fail on unbound parameters instead of substituting an empty string.",
)
@click.option(
    "-n",
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print the commands that would run without running them.",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def run(  # noqa: PLR0913
    directory: Path | None,
    runfile: Path | None,
    strict: bool | None,
    dry_run: bool,
    verbose: int,
    args: tuple[str, ...],
) -> None:
    """Run targets from a runfile.

    `ARGS` are target names and `KEY=VALUE` parameter bindings, e.g.
    `run wasm for=transfer`. Without a target, or with `help`, prints the
    documented targets.
    """

    _setup_logging(verbose)
    try:
        result = CONTROLLER.run(
            RunCommand(
                args=args,
                directory=directory,
                runfile=runfile,
                strict=strict,
                dry_run=dry_run,
            ),
        )
    except KeyboardInterrupt:
        click.echo(f"{click.get_current_context().info_name}: *** Interrupted", err=True)
        raise SystemExit(INTERRUPTED_EXIT_CODE) from None
    except (TaskGraphError, ValueError) as error:
        raise EngineError(str(error)) from error

    _emit(result)
    if result.exit_code:
        raise SystemExit(result.exit_code)


def _setup_logging(verbose: int) -> None:
    if verbose >= 2:
        level: int | str = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        try:
            level = Settings.from_env().log_level
        except ValueError:
            level = logging.WARNING
    configure_logging(level)


def _emit(result: InvocationResult) -> None:
    for line in result.lines:
        click.echo(line)
    for line in result.error_lines:
        click.echo(line, err=True)


if __name__ == "__main__":  # pragma: no cover
    run()
