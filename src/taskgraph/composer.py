"""Expand goals and their delegations into one flat execution plan."""

from __future__ import annotations

import itertools
import logging
import os
import shlex
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from taskgraph.errors import CyclicDependencyError
from taskgraph.models import (
    HELP_TARGET,
    Delegation,
    ExecutionPlan,
    HelpListing,
    NestedInvocation,
    PlanItem,
    Registry,
    ResolvedStep,
    Step,
    Target,
)
from taskgraph.params import (
    CURDIR_VARIABLE,
    MAKE_VARIABLE,
    TARGET_VARIABLE,
    ParameterResolver,
    substitute,
)

logger = logging.getLogger(__name__)

RegistryLoad = Callable[[Path, str | None], Registry]


def engine_command() -> str:
    """Shell text that re-invokes this engine, used for `$(MAKE)` in plain commands."""

    return f"{shlex.quote(sys.executable)} -m taskgraph"


@dataclass(slots=True)
class _Frame:
    key: tuple[str, str]
    label: str


@dataclass(slots=True)
class Composer:
    """Resolve delegation edges eagerly, before anything runs.

    Same-registry delegations are inlined at their position. Delegations with
    a directory scope load that scope's own registry and become a single
    NestedInvocation item. Revisiting a (runfile, target) pair anywhere in the
    chain, across scopes included, raises CyclicDependencyError.
    """

    load: RegistryLoad
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    strict: bool = False
    make_command: str = field(default_factory=engine_command)
    _instances: itertools.count = field(default_factory=lambda: itertools.count(1), init=False)

    def compose(
        self,
        registry: Registry,
        goals: Sequence[str],
        bindings: Mapping[str, str] | None = None,
    ) -> ExecutionPlan:
        plan = self._compose_scope(registry, tuple(goals), dict(bindings or {}), [])
        logger.info("Composed %d plan items for %s", len(plan), ", ".join(plan.goals))
        return plan

    def _compose_scope(
        self,
        registry: Registry,
        goals: tuple[str, ...],
        bindings: dict[str, str],
        stack: list[_Frame],
    ) -> ExecutionPlan:
        effective_goals = goals or (registry.default_goal,)
        items: list[PlanItem] = []
        for goal in effective_goals:
            items.extend(self._expand(registry, goal, bindings, stack))
        return ExecutionPlan(directory=registry.directory, goals=effective_goals, items=tuple(items))

    def _expand(
        self,
        registry: Registry,
        name: str,
        bindings: dict[str, str],
        stack: list[_Frame],
    ) -> list[PlanItem]:
        if name == HELP_TARGET:
            return [HelpListing(registry)]

        target = registry.get(name)
        frame = _Frame(key=(registry.scope_key, name), label=_label(registry, name))
        for index, seen in enumerate(stack):
            if seen.key == frame.key:
                chain = [entry.label for entry in stack[index:]] + [frame.label]
                raise CyclicDependencyError(chain)

        stack.append(frame)
        try:
            return self._expand_target(registry, target, bindings, stack)
        finally:
            stack.pop()

    def _expand_target(
        self,
        registry: Registry,
        target: Target,
        bindings: dict[str, str],
        stack: list[_Frame],
    ) -> list[PlanItem]:
        resolver = ParameterResolver(bindings=bindings, environ=self.environ, strict=self.strict)
        values = resolver.resolve(target)
        values.update(
            {
                MAKE_VARIABLE: self.make_command,
                CURDIR_VARIABLE: str(registry.directory),
                TARGET_VARIABLE: target.name,
            },
        )
        instance = next(self._instances)

        items: list[PlanItem] = []
        for prerequisite in target.prerequisites:
            items.extend(self._expand(registry, prerequisite, bindings, stack))
        for step in target.steps:
            if step.delegates_to is not None:
                items.extend(
                    self._delegate(
                        registry,
                        target,
                        step,
                        step.delegates_to,
                        values,
                        bindings,
                        stack,
                    ),
                )
                continue
            items.append(
                ResolvedStep(
                    target=target.name,
                    command=substitute(step.command_template, values),
                    group=(instance, step.continuation_group_id),
                    directory=registry.directory,
                    suppress_echo=step.suppress_echo,
                    environment=dict(bindings),
                    path=registry.path,
                    line=step.line,
                ),
            )
        return items

    def _delegate(  # noqa: PLR0913
        self,
        registry: Registry,
        target: Target,
        step: Step,
        delegation: Delegation,
        values: Mapping[str, str],
        bindings: dict[str, str],
        stack: list[_Frame],
    ) -> list[PlanItem]:
        goals = tuple(substitute(goal, values) for goal in delegation.targets)
        scoped_bindings = dict(bindings)
        scoped_bindings.update(
            {key: substitute(value, values) for key, value in delegation.bindings},
        )

        if not delegation.is_scoped:
            items: list[PlanItem] = []
            for goal in goals or (registry.default_goal,):
                items.extend(self._expand(registry, goal, scoped_bindings, stack))
            return items

        directory = registry.directory
        if delegation.directory is not None:
            directory = (registry.directory / substitute(delegation.directory, values)).resolve()
        runfile = substitute(delegation.runfile, values) if delegation.runfile is not None else None
        logger.debug("Target %r delegates to %s %s", target.name, directory, goals or "<default>")
        sub_registry = self.load(directory, runfile)
        plan = self._compose_scope(sub_registry, goals, scoped_bindings, stack)
        return [
            NestedInvocation(target=target.name, plan=plan, path=registry.path, line=step.line),
        ]


def _label(registry: Registry, name: str) -> str:
    location = registry.path or registry.directory
    return f"{location}:{name}"
