"""Runtime configuration for registry loading, execution and help output."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from taskgraph.backend.shell_backend import DEFAULT_SHELL
from taskgraph.help import DEFAULT_COLUMN_WIDTH
from taskgraph.parser import DEFAULT_RUNFILE_NAMES


@dataclass(slots=True)
class ExecutionSettings:
    """Child process settings."""

    shell: str = DEFAULT_SHELL
    strict_parameters: bool = False


@dataclass(slots=True)
class HelpSettings:
    """Help listing settings."""

    column_width: int = DEFAULT_COLUMN_WIDTH
    color: bool = True


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    runfile_names: tuple[str, ...] = DEFAULT_RUNFILE_NAMES
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    help: HelpSettings = field(default_factory=HelpSettings)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching plain make usage."""

        settings = cls(
            runfile_names=_collect_runfile_names(),
            execution=ExecutionSettings(
                shell=os.getenv("TASKGRAPH_SHELL", DEFAULT_SHELL).strip(),
                strict_parameters=_env_bool("TASKGRAPH_STRICT", default=False),
            ),
            help=HelpSettings(
                column_width=_env_int("TASKGRAPH_HELP_WIDTH", DEFAULT_COLUMN_WIDTH),
                color=_env_bool("TASKGRAPH_HELP_COLOR", default=True),
            ),
            log_level=os.getenv("TASKGRAPH_LOG_LEVEL", "WARNING").strip().upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise configuration error for unusable values."""

        if not self.runfile_names:
            raise ValueError("TASKGRAPH_RUNFILE_NAMES must name at least one file.")
        if not self.execution.shell:
            raise ValueError("TASKGRAPH_SHELL must not be empty.")
        if self.help.column_width <= 0:
            raise ValueError("TASKGRAPH_HELP_WIDTH must be > 0.")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Invalid TASKGRAPH_LOG_LEVEL: {self.log_level!r}")


def _collect_runfile_names() -> tuple[str, ...]:
    raw = os.getenv("TASKGRAPH_RUNFILE_NAMES", "").strip()
    if not raw:
        return DEFAULT_RUNFILE_NAMES

    names: list[str] = []
    for part in raw.split(","):
        name = part.strip()
        if name and name not in names:
            names.append(name)
    return tuple(names)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
