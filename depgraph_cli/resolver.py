"""Import specifier -> file path resolution.

Resolution never touches the filesystem: candidates are checked against a
:class:`FileIndex` built once from the walker's output, so the result for a
given specifier is a pure function of the discovered file set.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import config
from .errors import ConfigError
from .models import ImportRecord
from .parser import is_relative_specifier

logger = logging.getLogger(__name__)

# ESM-style TypeScript imports name the compiled file: './a.js' -> 'a.ts'
_TS_SIBLINGS = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".ts",),
    ".cjs": (".ts",),
}


class FileIndex:
    """Immutable set of known file paths."""

    def __init__(self, paths: Iterable[Path]) -> None:
        self._paths: FrozenSet[str] = frozenset(os.path.normpath(str(p)) for p in paths)

    def __contains__(self, path: object) -> bool:
        return os.path.normpath(str(path)) in self._paths

    def __len__(self) -> int:
        return len(self._paths)


@dataclass(frozen=True)
class PathAlias:
    """Prefix substitution, ``tsconfig`` style.

    ``@libs/*`` -> ``/repo/libs/*`` rewrites ``@libs/util`` to
    ``/repo/libs/util``.  Without a wildcard the pattern must match the whole
    specifier or a ``/``-separated prefix of it.
    """

    pattern: str
    target: str

    @property
    def prefix(self) -> str:
        return self.pattern[:-1] if self.pattern.endswith("*") else self.pattern

    def apply(self, specifier: str) -> Optional[str]:
        if self.pattern.endswith("*"):
            if not specifier.startswith(self.prefix):
                return None
            rest = specifier[len(self.prefix):]
            return self.target[:-1] + rest if self.target.endswith("*") else self.target
        if specifier == self.pattern:
            return self.target
        if specifier.startswith(self.pattern.rstrip("/") + "/"):
            return self.target.rstrip("/") + specifier[len(self.pattern.rstrip("/")):]
        return None


def parse_alias(option: str, base_dir: Path) -> PathAlias:
    """Parse a ``PREFIX=TARGET`` option; relative targets are taken from *base_dir*."""
    if "=" not in option:
        raise ConfigError(f"Alias must look like PREFIX=TARGET, got '{option}'")
    pattern, target = (part.strip() for part in option.split("=", 1))
    if not pattern or not target:
        raise ConfigError(f"Alias must look like PREFIX=TARGET, got '{option}'")
    return make_alias(pattern, target, base_dir)


def make_alias(pattern: str, target: str, base_dir: Path) -> PathAlias:
    if not os.path.isabs(target):
        target = os.path.join(str(base_dir), target)
    wildcard = target.endswith("*")
    target = os.path.normpath(target.rstrip("*") or ".")
    if wildcard:
        target = target.rstrip(os.sep) + os.sep + "*"
    return PathAlias(pattern=pattern, target=target)


class PathResolver:
    """Resolve specifiers against a fixed file index."""

    def __init__(
        self,
        index: FileIndex,
        project_root: Path,
        aliases: Sequence[PathAlias] = (),
        extensions: Sequence[str] = config.SOURCE_EXTENSIONS,
    ) -> None:
        self.index = index
        self.project_root = project_root
        # Longest prefix first; ties keep declaration order.
        self.aliases: List[PathAlias] = sorted(
            aliases, key=lambda a: len(a.prefix), reverse=True,
        )
        self.extensions: Tuple[str, ...] = tuple(extensions)

    def match_alias(self, specifier: str) -> Optional[str]:
        if is_relative_specifier(specifier):
            return None
        for alias in self.aliases:
            substituted = alias.apply(specifier)
            if substituted is not None:
                return substituted
        return None

    def resolve(self, specifier: str, importing_dir: Path) -> Optional[Path]:
        """Return the file *specifier* refers to, or ``None`` if unresolved."""
        aliased = self.match_alias(specifier)
        if aliased is not None:
            base = aliased
        elif specifier.startswith("/"):
            base = self._project_absolute(specifier)
        elif is_relative_specifier(specifier):
            base = os.path.join(str(importing_dir), specifier)
        else:
            return None

        base = os.path.normpath(base)
        candidate = self._probe(base)
        if candidate is None:
            logger.debug("Unresolved import '%s' from %s", specifier, importing_dir)
        return candidate

    def resolve_record(self, record: ImportRecord) -> Optional[Path]:
        """Resolve *record* in place; bare package names are left external."""
        if record.is_external and self.match_alias(record.specifier) is not None:
            record.is_external = False
        if record.is_external:
            return None
        record.resolved = self.resolve(record.specifier, record.source_file.parent)
        return record.resolved

    # ------------------------------------------------------------------

    def _project_absolute(self, specifier: str) -> str:
        root = str(self.project_root)
        if specifier == root or specifier.startswith(root.rstrip(os.sep) + os.sep):
            return specifier
        return os.path.join(root, specifier.lstrip("/"))

    def _probe(self, base: str) -> Optional[Path]:
        _, ext = os.path.splitext(base)
        if ext in self.extensions:
            if base in self.index:
                return Path(base)
            stem = base[: -len(ext)]
            for sibling in _TS_SIBLINGS.get(ext, ()):
                if stem + sibling in self.index:
                    return Path(stem + sibling)

        for candidate_ext in self.extensions:
            if base + candidate_ext in self.index:
                return Path(base + candidate_ext)

        index_base = os.path.join(base, config.INDEX_BASENAME)
        for candidate_ext in self.extensions:
            if index_base + candidate_ext in self.index:
                return Path(index_base + candidate_ext)
        return None


def aliases_from_mapping(mapping: Mapping[str, str], base_dir: Path) -> List[PathAlias]:
    return [make_alias(pattern, target, base_dir) for pattern, target in mapping.items()]


def merge_aliases(*groups: Iterable[PathAlias]) -> List[PathAlias]:
    """Concatenate alias groups; a later group's pattern replaces an earlier one."""
    merged: Dict[str, PathAlias] = {}
    for group in groups:
        for alias in group:
            merged.pop(alias.pattern, None)
            merged[alias.pattern] = alias
    return list(merged.values())
