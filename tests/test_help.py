from __future__ import annotations

from pathlib import Path

import allure
import pytest
import rich_click as click

from taskgraph.help import format_help
from taskgraph.models import Registry, Target
from taskgraph.parser import parse_runfile

pytestmark = [
    allure.epic("Help Formatter"),
    allure.feature("Documented Targets Listing"),
]


def test_lists_exactly_documented_targets_in_declaration_order() -> None:
    registry = parse_runfile(
        "zeta: ## last letter first\n"
        "hidden:\n"
        "alpha: ## first letter second\n"
        "## documented above\n"
        "middle:\n",
        directory=Path("/project"),
    )

    lines = format_help(registry)

    assert lines == [
        f"{'zeta':<15} last letter first",
        f"{'alpha':<15} first letter second",
        f"{'middle':<15} documented above",
    ]


def test_scenario_single_documented_target() -> None:
    registry = parse_runfile("a: ## desc A\n\techo ok\nb:\n\tmake a\n", directory=Path("/p"))

    assert format_help(registry) == [f"{'a':<15} desc A"]


def test_long_names_are_truncated_to_column_width() -> None:
    registry = Registry(
        [Target(name="generate-all-the-things", doc="Everything"), Target(name="x", doc="X")],
        directory=Path("/p"),
    )

    lines = format_help(registry, width=8)

    assert lines == ["generate Everything", f"{'x':<8} X"]


def test_empty_registry_renders_nothing() -> None:
    assert format_help(Registry([], directory=Path("/p"))) == []


def test_color_wraps_only_the_name_cell() -> None:
    registry = Registry([Target(name="wasm", doc="Build WASM")], directory=Path("/p"))

    (line,) = format_help(registry, width=6, color=True)

    assert line == f"{click.style('wasm  ', fg='cyan')} Build WASM"
    assert click.unstyle(line) == f"{'wasm':<6} Build WASM"


def test_non_positive_width_is_rejected() -> None:
    with pytest.raises(ValueError, match="width"):
        format_help(Registry([], directory=Path("/p")), width=0)
