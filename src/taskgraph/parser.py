"""Runfile discovery and parsing into a target Registry."""

from __future__ import annotations

import itertools
import logging
import re
import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from taskgraph.errors import ParseError, RunfileNotFoundError
from taskgraph.models import Delegation, Registry, Step, Target
from taskgraph.params import parse_binding, scan_placeholders

logger = logging.getLogger(__name__)

DEFAULT_RUNFILE_NAMES = ("Runfile", "Makefile")
DELEGATION_COMMANDS = frozenset({"$(MAKE)", "${MAKE}", "make"})
PHONY_DIRECTIVE = ".PHONY"
DOC_MARKER = "##"

_ASSIGNMENT_RE = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*(?P<op>\?=|:=|=)\s*(?P<value>.*)$")
_RULE_RE = re.compile(r"^(?P<name>[^\s:#=]+)\s*:(?!=)(?P<rest>.*)$")
_TARGET_NAME_RE = re.compile(r"[A-Za-z0-9_][A-Za-z0-9_.-]*")
_SHELL_OPERATOR_RE = re.compile(r"[|&;<>`]")

_BLOCK_OPENERS = frozenset({"if", "case", "for", "while", "until", "{"})
_BLOCK_CLOSERS = frozenset({"fi", "esac", "done", "}"})
# Words after which the next word starts a new command.
_COMMAND_LEADERS = frozenset({"then", "do", "else", "elif", "!", "{", "if", "while", "until"})
_COMMAND_SEPARATORS = frozenset(";&|()\n")
_QUOTES = frozenset({"'", '"', "`"})


@dataclass(slots=True)
class _TargetDraft:
    name: str
    line: int
    doc: str | None
    prerequisites: tuple[str, ...]
    steps: list[Step] = field(default_factory=list)
    next_group: int = 0


@dataclass(slots=True)
class RegistryLoader:
    """Locate and parse the runfile for a directory scope."""

    names: tuple[str, ...] = DEFAULT_RUNFILE_NAMES

    def load(self, directory: Path, runfile: str | Path | None = None) -> Registry:
        path = find_runfile(directory, self.names, runfile=runfile)
        logger.debug("Loading runfile %s", path)
        return parse_runfile(path.read_text(encoding="utf-8"), path=path, directory=directory)


def find_runfile(
    directory: Path,
    names: Sequence[str] = DEFAULT_RUNFILE_NAMES,
    *,
    runfile: str | Path | None = None,
) -> Path:
    """Return the runfile for `directory`; an explicit `runfile` wins over `names`."""

    if runfile is not None:
        candidate = directory / runfile
        if not candidate.is_file():
            raise RunfileNotFoundError(directory, [str(runfile)])
        return candidate
    for name in names:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    raise RunfileNotFoundError(directory, names)


def parse_runfile(
    text: str,
    *,
    path: Path | None = None,
    directory: Path | None = None,
) -> Registry:
    """Parse runfile text into a Registry preserving declaration order."""

    return _RunfileParser(path=path).parse(
        text,
        directory=directory or (path.parent if path is not None else Path.cwd()),
    )


class _RunfileParser:
    def __init__(self, *, path: Path | None) -> None:
        self.path = path
        self.drafts: list[_TargetDraft] = []
        self.defaults: dict[str, str] = {}
        self.phony: set[str] = set()
        self.current: _TargetDraft | None = None
        self.pending_doc: tuple[str, int] | None = None
        # None: no open continuation; "join": same group; "chain": new group after `&&`.
        self.continuation: str | None = None
        self.group_echo_suppressed = False
        self.group_text: list[str] = []

    def parse(self, text: str, *, directory: Path) -> Registry:
        for lineno, raw in enumerate(text.splitlines(), start=1):
            self._parse_line(raw, lineno)
        if self.continuation is not None:
            raise self._error("Line continuation at end of file.", None)
        self._drop_pending_doc()

        targets = [self._build_target(draft) for draft in self.drafts]
        logger.debug("Parsed %d targets from %s", len(targets), self.path or "<text>")
        return Registry(
            targets,
            directory=directory,
            path=self.path,
            defaults=self.defaults,
            phony=frozenset(self.phony),
        )

    def _parse_line(self, raw: str, lineno: int) -> None:
        if self.continuation is not None:
            self._add_recipe_line(raw, lineno)
            return

        stripped = raw.strip()
        if not stripped:
            self._drop_pending_doc()
            return

        if raw[0] in " \t":
            if self.current is None:
                raise self._error("Recipe commences before first target.", lineno)
            self._drop_pending_doc()
            self._add_recipe_line(raw, lineno)
            return

        if stripped.startswith(DOC_MARKER):
            self._drop_pending_doc()
            self.pending_doc = (stripped[len(DOC_MARKER) :].strip(), lineno)
            return

        if stripped.startswith("#"):
            self._drop_pending_doc()
            return

        assignment = _ASSIGNMENT_RE.match(stripped)
        if assignment is not None:
            self._drop_pending_doc()
            self.current = None
            self.defaults[assignment.group("name")] = assignment.group("value").strip()
            return

        rule = _RULE_RE.match(stripped)
        if rule is not None:
            self._add_rule(rule.group("name"), rule.group("rest"), lineno)
            return

        raise self._error(f"Unrecognized line: {stripped!r}.", lineno)

    def _add_rule(self, name: str, rest: str, lineno: int) -> None:
        prerequisites_text, marker, doc_text = rest.partition(DOC_MARKER)
        inline_doc = self._doc_text(marker + doc_text, lineno) if marker else None

        if name.startswith("."):
            if name != PHONY_DIRECTIVE:
                raise self._error(f"Unsupported directive {name!r}.", lineno)
            if inline_doc is not None:
                raise self._error("Directives cannot carry doc annotations.", lineno)
            self._drop_pending_doc()
            self.phony.update(prerequisites_text.split())
            self.current = None
            return

        if not _TARGET_NAME_RE.fullmatch(name):
            raise self._error(f"Invalid target name {name!r}.", lineno)
        prerequisites = tuple(prerequisites_text.split())
        for prerequisite in prerequisites:
            if not _TARGET_NAME_RE.fullmatch(prerequisite):
                raise self._error(f"Invalid prerequisite {prerequisite!r}.", lineno)

        doc = inline_doc
        if self.pending_doc is not None:
            if inline_doc is not None:
                raise self._error(f"Target {name!r} has two doc annotations.", lineno)
            text, doc_line = self.pending_doc
            if not text:
                raise self._error("Empty doc annotation.", doc_line)
            doc = text
            self.pending_doc = None

        self.current = _TargetDraft(name=name, line=lineno, doc=doc, prerequisites=prerequisites)
        self.drafts.append(self.current)

    def _add_recipe_line(self, raw: str, lineno: int) -> None:
        draft = self.current
        if draft is None:
            raise self._error("Recipe commences before first target.", lineno)

        body = raw.strip()
        joined = self.continuation == "join"
        if not joined:
            suppress = False
            while body.startswith("@"):
                suppress = True
                body = body[1:].lstrip()
            self.group_echo_suppressed = suppress
            self.group_text = []
            draft.next_group += 1

        self.continuation = None
        trailing = len(body) - len(body.rstrip("\\"))
        if trailing % 2 == 1:
            body = body[:-1].rstrip()
            self.continuation = "join"
            if body.endswith("&&"):
                head = body[:-2].rstrip()
                # `&&` inside an open quote or compound command stays shell text.
                if not _inside_shell_construct(" ".join([*self.group_text, head])):
                    body = head
                    self.continuation = "chain"

        if not body:
            return
        try:
            scan_placeholders(body)
        except ValueError as error:
            raise self._error(str(error), lineno) from error
        self.group_text.append(body)
        draft.steps.append(
            Step(
                command_template=body,
                continuation_group_id=draft.next_group,
                suppress_echo=self.group_echo_suppressed,
                line=lineno,
            ),
        )

    def _build_target(self, draft: _TargetDraft) -> Target:
        steps: list[Step] = []
        groups = itertools.groupby(draft.steps, key=lambda step: step.continuation_group_id)
        for _, grouped in groups:
            group = list(grouped)
            first = group[0]
            command = " ".join(step.command_template for step in group)
            delegation = self._parse_delegation(command, first.line)
            if delegation is None:
                steps.extend(group)
                continue
            steps.append(
                Step(
                    command_template=command,
                    continuation_group_id=first.continuation_group_id,
                    suppress_echo=first.suppress_echo,
                    delegates_to=delegation,
                    line=first.line,
                ),
            )

        parameters: dict[str, str | None] = {}
        for step in steps:
            for name in scan_placeholders(step.command_template):
                parameters.setdefault(name, self.defaults.get(name))

        return Target(
            name=draft.name,
            steps=tuple(steps),
            doc=draft.doc,
            prerequisites=draft.prerequisites,
            parameters=parameters,
            always_stale=True,
            line=draft.line,
        )

    def _parse_delegation(self, command: str, line: int) -> Delegation | None:
        head = command.split(maxsplit=1)
        if not head or head[0] not in DELEGATION_COMMANDS:
            return None
        try:
            words = shlex.split(command)
        except ValueError as error:
            raise self._error(f"Cannot split delegation command: {error}.", line) from error
        if any(_SHELL_OPERATOR_RE.search(word) for word in words):
            # Piped, redirected or chained; runs as a plain shell command.
            return None

        directories: list[str] = []
        runfile: str | None = None
        targets: list[str] = []
        bindings: list[tuple[str, str]] = []
        index = 1
        while index < len(words):
            word = words[index]
            index += 1
            option, value = _split_option(word)
            if option in {"-C", "--directory", "-f", "--file"}:
                if value is None:
                    if index >= len(words):
                        raise self._error(f"Option {option} requires a value.", line)
                    value = words[index]
                    index += 1
                if option in {"-C", "--directory"}:
                    directories.append(value)
                else:
                    runfile = value
                continue
            if word.startswith("-"):
                raise self._error(f"Unsupported delegation option {word!r}.", line)
            binding = parse_binding(word)
            if binding is not None:
                bindings.append(binding)
            else:
                targets.append(word)

        return Delegation(
            targets=tuple(targets),
            directory="/".join(directories) if directories else None,
            runfile=runfile,
            bindings=tuple(bindings),
        )

    def _doc_text(self, annotation: str, lineno: int) -> str:
        text = annotation[len(DOC_MARKER) :].strip()
        if not text:
            raise self._error("Empty doc annotation.", lineno)
        return text

    def _drop_pending_doc(self) -> None:
        # A `##` line not directly above a target is a section header.
        if self.pending_doc is not None:
            logger.debug("Ignoring unattached doc annotation at line %d", self.pending_doc[1])
            self.pending_doc = None

    def _error(self, message: str, lineno: int | None) -> ParseError:
        return ParseError(message, path=self.path, line=lineno)


def _split_option(word: str) -> tuple[str | None, str | None]:
    if word.startswith("--"):
        name, sep, value = word.partition("=")
        return name, value if sep else None
    if word[:2] in {"-C", "-f"}:
        return word[:2], word[2:] or None
    return None, None


def _inside_shell_construct(text: str) -> bool:
    """Whether `text` ends inside a quote, a parenthesis or an unclosed compound command."""

    blocks = 0
    parens = 0
    quote: str | None = None
    word = ""
    literal = True
    command_position = True

    def end_word() -> None:
        nonlocal blocks, word, literal, command_position
        if not word:
            return
        if command_position and literal:
            if word in _BLOCK_OPENERS:
                blocks += 1
            elif word in _BLOCK_CLOSERS:
                blocks = max(0, blocks - 1)
        command_position = literal and word in _COMMAND_LEADERS
        word = ""
        literal = True

    index = 0
    while index < len(text):
        char = text[index]
        index += 1
        if quote is not None:
            if char == quote:
                quote = None
            elif char == "\\" and quote != "'":
                index += 1
            continue
        if char in _QUOTES:
            quote = char
            word += char
            literal = False
        elif char == "\\":
            word += text[index : index + 1]
            literal = False
            index += 1
        elif char.isspace() and char != "\n":
            end_word()
        elif char in _COMMAND_SEPARATORS:
            end_word()
            if char == "(":
                parens += 1
            elif char == ")":
                parens = max(0, parens - 1)
            command_position = True
        else:
            word += char
    end_word()
    return quote is not None or parens > 0 or blocks > 0
