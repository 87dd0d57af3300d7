"""Module-level dependency graphs for TypeScript / JavaScript monorepos."""

__version__ = "0.3.0"
