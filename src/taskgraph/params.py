"""Parameter placeholders: scanning, binding resolution and substitution."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from taskgraph.errors import UnboundParameterError
from taskgraph.models import Target

logger = logging.getLogger(__name__)

MAKE_VARIABLE = "MAKE"
CURDIR_VARIABLE = "CURDIR"
TARGET_VARIABLE = "@"
BUILTIN_VARIABLES = frozenset({MAKE_VARIABLE, CURDIR_VARIABLE, TARGET_VARIABLE})

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_BINDING_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$", re.DOTALL)
_EXPANSION_RE = re.compile(
    r"\$(?:(?P<escape>\$)|\((?P<paren>[^()]*)\)|\{(?P<brace>[^{}]*)\}|(?P<auto>@)|(?P<bad>.?))",
    re.DOTALL,
)


def scan_placeholders(text: str) -> list[str]:
    """Return referenced parameter names in first-use order, builtins excluded.

    Raises ValueError for any `$` usage outside the supported forms.
    """

    names: list[str] = []
    for match in _EXPANSION_RE.finditer(text):
        name = _placeholder_name(match)
        if name is None or name in BUILTIN_VARIABLES:
            continue
        if name not in names:
            names.append(name)
    return names


def substitute(template: str, values: Mapping[str, str]) -> str:
    """Expand placeholders from `values`; names missing from `values` become empty."""

    def _replace(match: re.Match[str]) -> str:
        if match.group("escape"):
            return "$"
        name = _placeholder_name(match)
        if name is None:
            return match.group(0)
        return values.get(name, "")

    return _EXPANSION_RE.sub(_replace, template)


def split_invocation_args(args: Iterable[str]) -> tuple[tuple[str, ...], dict[str, str]]:
    """Split CLI words into goals and `key=value` bindings, preserving order."""

    goals: list[str] = []
    bindings: dict[str, str] = {}
    for arg in args:
        binding = parse_binding(arg)
        if binding is not None:
            key, value = binding
            bindings[key] = value
            continue
        if "=" in arg:
            raise ValueError(f"Invalid parameter binding {arg!r}: expected KEY=VALUE.")
        goals.append(arg)
    return tuple(goals), bindings


def parse_binding(word: str) -> tuple[str, str] | None:
    match = _BINDING_RE.match(word)
    if match is None:
        return None
    return match.group(1), match.group(2)


@dataclass(slots=True)
class ParameterResolver:
    """Bind a target's placeholders for one invocation.

    Lookup order is explicit binding, then environment variable, then the
    runfile default. Anything still unbound becomes an empty string, or raises
    UnboundParameterError in strict mode.
    """

    bindings: Mapping[str, str] = field(default_factory=dict)
    environ: Mapping[str, str] = field(default_factory=dict)
    strict: bool = False

    def resolve(self, target: Target) -> dict[str, str]:
        return {
            name: self.resolve_one(name, default, target=target.name)
            for name, default in target.parameters.items()
        }

    def resolve_one(self, name: str, default: str | None, *, target: str) -> str:
        if name in self.bindings:
            return self.bindings[name]
        if name in self.environ:
            return self.environ[name]
        if default is not None:
            return default
        if self.strict:
            raise UnboundParameterError(name, target=target)
        logger.warning(
            "Parameter %r referenced by target %r is unbound; substituting empty string.",
            name,
            target,
        )
        return ""


def _placeholder_name(match: re.Match[str]) -> str | None:
    if match.group("escape"):
        return None
    if match.group("auto"):
        return TARGET_VARIABLE
    name = match.group("paren")
    if name is None:
        name = match.group("brace")
    if name is None:
        bad = match.group("bad")
        shown = f"${bad}" if bad else "$"
        raise ValueError(f"Unsupported expansion {shown!r}; write '$$' for a literal '$'.")
    if not _NAME_RE.fullmatch(name):
        raise ValueError(f"Unsupported expansion '$({name})'; only plain variable names are allowed.")
    return name
