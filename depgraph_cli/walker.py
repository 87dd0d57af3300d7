"""Source file discovery and test/production classification."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from . import config
from .errors import RootConfigError
from .models import SourceFile, SourceRoot

logger = logging.getLogger(__name__)


def validate_roots(roots: Sequence[SourceRoot]) -> None:
    """Raise :class:`RootConfigError` for the first unusable root."""
    for root in roots:
        if not root.path.exists():
            raise RootConfigError(root.path, "Directory does not exist")
        if not root.path.is_dir():
            raise RootConfigError(root.path, "Path is not a directory")


def is_source_file(path: Path) -> bool:
    return path.suffix.lower() in config.SUPPORTED_EXTENSIONS


def is_test_file(path: str) -> bool:
    """Name/path heuristic for test code.

    *path* is compared lower-cased with POSIX separators so the result does
    not depend on the host OS.
    """
    normalized = "/" + path.replace("\\", "/").lower()
    basename = normalized.rsplit("/", 1)[-1]
    if any(marker in basename for marker in config.TEST_NAME_MARKERS):
        return True
    return any(marker in normalized for marker in config.TEST_PATH_MARKERS)


def count_lines(path: Path) -> int:
    """Raw line count, blank lines included. An empty file counts as one line."""
    text = path.read_text(encoding="utf-8", errors="ignore")
    return text.count("\n") + 1


def walk_root(
    root: SourceRoot,
    skip_dirs: Optional[Iterable[str]] = None,
) -> List[SourceFile]:
    """Enumerate every source file under *root*, sorted by relative path."""
    skip = set(config.SKIP_DIRS if skip_dirs is None else skip_dirs)
    files: List[SourceFile] = []

    for dirpath, dirnames, filenames in os.walk(root.path):
        # Pruning in place keeps os.walk out of excluded trees.
        dirnames[:] = sorted(d for d in dirnames if d not in skip)
        for filename in sorted(filenames):
            full = Path(dirpath) / filename
            if not is_source_file(full) or not full.is_file():
                continue
            rel_path = full.relative_to(root.path).as_posix()
            files.append(SourceFile(
                path=full,
                rel_path=rel_path,
                root=root,
                is_test=is_test_file(f"{root.label}/{rel_path}"),
            ))

    files.sort(key=lambda f: f.rel_path)
    logger.debug("Found %d source files under %s", len(files), root.path)
    return files


def walk_roots(
    roots: Sequence[SourceRoot],
    skip_dirs: Optional[Iterable[str]] = None,
) -> List[SourceFile]:
    """Validate all roots up front, then walk them in declaration order."""
    validate_roots(roots)
    skip = list(config.SKIP_DIRS if skip_dirs is None else skip_dirs)
    all_files: List[SourceFile] = []
    seen = set()
    for root in roots:
        for source in walk_root(root, skip):
            # Nested roots: the first root that claims a file owns it.
            if source.path in seen:
                continue
            seen.add(source.path)
            all_files.append(source)
    return all_files
