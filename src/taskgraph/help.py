"""Two-column help listing of documented targets."""

from __future__ import annotations

import rich_click as click

from taskgraph.models import Registry

DEFAULT_COLUMN_WIDTH = 15


def format_help(
    registry: Registry,
    *,
    width: int = DEFAULT_COLUMN_WIDTH,
    color: bool = False,
) -> list[str]:
    """Render one line per documented target, in declaration order.

    The name column is padded, or truncated, to exactly `width` characters.
    """

    if width <= 0:
        raise ValueError("Help column width must be > 0.")

    lines: list[str] = []
    for target in registry.documented():
        cell = target.name[:width].ljust(width)
        if color:
            cell = click.style(cell, fg="cyan")
        lines.append(f"{cell} {target.doc}")
    return lines
