"""Exceptions raised for fatal analysis problems.

Per-file parse failures are not exceptions; see :class:`~depgraph_cli.models.Failed`.
"""

from __future__ import annotations

from pathlib import Path


class DepGraphError(Exception):
    """Base class for errors that abort an analysis run."""


class RootConfigError(DepGraphError):
    """A declared source root is missing or is not a directory."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class ConfigError(DepGraphError):
    """Settings file, tsconfig, or alias option could not be used."""


class GrammarLoadError(DepGraphError):
    """A tree-sitter grammar could not be loaded."""
