"""Defaults for source discovery, import resolution, and output."""

from __future__ import annotations

import os
from typing import FrozenSet, Tuple

# Resolution preference order; also the set of recognized source files.
SOURCE_EXTENSIONS: Tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
SUPPORTED_EXTENSIONS: FrozenSet[str] = frozenset(SOURCE_EXTENSIONS)

SKIP_DIRS: FrozenSet[str] = frozenset({
    "node_modules", ".git", "dist", "build", "coverage", ".next",
})

TEST_NAME_MARKERS: Tuple[str, ...] = (".test.", ".spec.", "_test.", "_spec.")
TEST_PATH_MARKERS: Tuple[str, ...] = ("/__tests__/", "/test/", "/tests/")

INDEX_BASENAME = "index"
OUTPUT_FILENAME = "dependency-graph.json"
SETTINGS_FILENAME = "depgraph.toml"

# Worker-count override; parsed by config_manager.load_settings.
WORKERS_ENV = "DEPGRAPH_WORKERS"
DEFAULT_WORKERS = min(8, (os.cpu_count() or 1))
