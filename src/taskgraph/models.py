"""Domain models for target registries and execution plans."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from taskgraph.errors import ParseError, UnknownTargetError

HELP_TARGET = "help"


@dataclass(frozen=True, slots=True)
class Delegation:
    """Reference from a step to other targets, optionally in another directory scope.

    Fields hold raw template text; placeholders are resolved during composition.
    """

    targets: tuple[str, ...] = ()
    directory: str | None = None
    runfile: str | None = None
    bindings: tuple[tuple[str, str], ...] = ()

    @property
    def is_scoped(self) -> bool:
        return self.directory is not None or self.runfile is not None


@dataclass(frozen=True, slots=True)
class Step:
    """One physical recipe line."""

    command_template: str
    continuation_group_id: int
    suppress_echo: bool = False
    delegates_to: Delegation | None = None
    line: int | None = None


@dataclass(frozen=True, slots=True)
class Target:
    """Named, invokable unit of work."""

    name: str
    steps: tuple[Step, ...] = ()
    doc: str | None = None
    prerequisites: tuple[str, ...] = ()
    parameters: Mapping[str, str | None] = field(default_factory=dict)
    always_stale: bool = True
    line: int | None = None

    @property
    def documented(self) -> bool:
        return bool(self.doc)


class Registry:
    """Declaration-ordered, read-only mapping from target name to Target."""

    def __init__(
        self,
        targets: list[Target] | tuple[Target, ...],
        *,
        directory: Path,
        path: Path | None = None,
        defaults: Mapping[str, str] | None = None,
        phony: frozenset[str] = frozenset(),
    ) -> None:
        table: dict[str, Target] = {}
        for target in targets:
            if target.name in table:
                raise ParseError(f"Duplicate target {target.name!r}.", path=path, line=target.line)
            table[target.name] = target
        self._targets = MappingProxyType(table)
        self.directory = directory
        self.path = path
        self.defaults = MappingProxyType(dict(defaults or {}))
        self.phony = phony

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def __iter__(self) -> Iterator[Target]:
        return iter(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)

    def __repr__(self) -> str:
        return f"Registry({self.path or self.directory}, targets={list(self._targets)})"

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._targets)

    @property
    def default_goal(self) -> str:
        """First declared target, as with make."""

        if not self._targets:
            raise UnknownTargetError("<default>", path=self.path)
        return next(iter(self._targets))

    @property
    def scope_key(self) -> str:
        """Absolute location identifying this registry in delegation chains."""

        return str((self.path or self.directory).resolve())

    def get(self, name: str) -> Target:
        try:
            return self._targets[name]
        except KeyError:
            raise UnknownTargetError(name, path=self.path) from None

    def documented(self) -> list[Target]:
        return [target for target in self._targets.values() if target.documented]


@dataclass(frozen=True, slots=True)
class ResolvedStep:
    """Step whose placeholders have been substituted for one target instance."""

    target: str
    command: str
    group: tuple[int, int]
    directory: Path
    suppress_echo: bool = False
    environment: Mapping[str, str] = field(default_factory=dict)
    path: Path | None = None
    line: int | None = None


@dataclass(frozen=True, slots=True)
class HelpListing:
    """Plan item printing a registry's help listing."""

    registry: Registry


@dataclass(frozen=True, slots=True)
class NestedInvocation:
    """Subdirectory-scoped delegation treated as one opaque step."""

    target: str
    plan: ExecutionPlan
    path: Path | None = None
    line: int | None = None


PlanItem = ResolvedStep | HelpListing | NestedInvocation


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    """Flat, ordered result of composition for one registry scope."""

    directory: Path
    goals: tuple[str, ...]
    items: tuple[PlanItem, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    @property
    def step_count(self) -> int:
        """Number of resolved steps, counting every nested invocation as one."""

        return sum(1 for item in self.items if not isinstance(item, HelpListing))
