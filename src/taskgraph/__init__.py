"""Declarative task-graph runner."""

__version__ = "0.1.0"
