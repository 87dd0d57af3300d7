"""Roll files up into modules and file imports up into module edges."""

from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .models import ImportRecord, Module, ModuleEdge, ModuleKind, SourceFile, SourceRoot

logger = logging.getLogger(__name__)


@dataclass
class FileTotals:
    code_files: int = 0
    test_files: int = 0
    code_lines: int = 0
    test_lines: int = 0


def root_labels(roots: Sequence[SourceRoot], project_root: Path) -> Dict[Path, str]:
    """Module-id prefix for each root.

    Normally the root directory name (``apps``, ``libs``).  Roots that share a
    name (``web/src``, ``core/src``) are labelled by their path from
    *project_root* instead, so ids stay unique.
    """
    names = Counter(root.label for root in roots)
    labels: Dict[Path, str] = {}
    for root in roots:
        if names[root.label] == 1:
            labels[root.path] = root.label
            continue
        try:
            labels[root.path] = root.path.relative_to(project_root).as_posix()
        except ValueError:
            labels[root.path] = root.path.as_posix().lstrip("/")
    return labels


def module_id_for(label: str, rel_path: str) -> str:
    """``apps`` + ``dashboard/index.ts`` -> ``apps/dashboard``.

    A file sitting directly in the root becomes its own module named after
    the file: ``libs`` + ``api.ts`` -> ``libs/api``.
    """
    parts = [p for p in rel_path.replace("\\", "/").split("/") if p]
    if len(parts) > 1:
        return f"{label}/{parts[0]}"
    stem, _ = os.path.splitext(parts[0])
    return f"{label}/{stem}"


class ModuleAggregator:
    """Assign files to modules and accumulate per-module size."""

    def __init__(self, roots: Sequence[SourceRoot], project_root: Path) -> None:
        self.roots = list(roots)
        self.project_root = project_root
        self.labels = root_labels(self.roots, project_root)
        self.modules: Dict[str, Module] = {}
        self.totals = FileTotals()
        self._file_modules: Dict[str, str] = {}

    def classify(self, path: Path) -> Tuple[str, ModuleKind]:
        """Module id and kind for any path, inside a declared root or not.

        The pipeline only feeds walked files, which always sit under a root;
        the ``external`` branch serves callers classifying arbitrary paths.
        """
        for root in self.roots:
            try:
                rel = path.relative_to(root.path)
            except ValueError:
                continue
            return module_id_for(self.labels[root.path], rel.as_posix()), root.kind

        try:
            rel = path.relative_to(self.project_root)
            first = rel.parts[0] if len(rel.parts) > 1 else rel.stem
        except ValueError:
            first = path.parent.name or path.stem
        return f"external/{first}", "external"

    def add_file(self, source: SourceFile, lines: int) -> Optional[Module]:
        """Count *source*; test files only feed the run totals."""
        if source.is_test:
            self.totals.test_files += 1
            self.totals.test_lines += lines
            return None

        self.totals.code_files += 1
        self.totals.code_lines += lines

        module_id, kind = self.classify(source.path)
        module = self.modules.get(module_id)
        if module is None:
            module = Module(id=module_id, kind=kind)
            self.modules[module_id] = module
        module.lines_of_code += lines
        module.file_count += 1
        self._file_modules[_key(source.path)] = module_id
        return module

    def module_of(self, path: Path) -> Optional[str]:
        """Module id of a registered production file, else ``None``."""
        return self._file_modules.get(_key(path))


class EdgeAggregator:
    """Collapse resolved imports into one edge per (source, target) module pair."""

    def __init__(self, modules: ModuleAggregator, exclude_type_only: bool = False) -> None:
        self.modules = modules
        self.exclude_type_only = exclude_type_only
        self.edges: Dict[Tuple[str, str], ModuleEdge] = {}

    def add_record(self, record: ImportRecord) -> Optional[ModuleEdge]:
        if record.resolved is None:
            return None
        if self.exclude_type_only and record.is_type_only:
            return None

        source_id = self.modules.module_of(record.source_file)
        target_id = self.modules.module_of(record.resolved)
        if source_id is None or target_id is None:
            # Test files on either end are not part of the graph.
            return None
        if source_id == target_id:
            return None

        key = (source_id, target_id)
        edge = self.edges.get(key)
        if edge is None:
            edge = ModuleEdge(source=source_id, target=target_id)
            self.edges[key] = edge

        source_file = _key(record.source_file)
        edge.files.add(source_file)
        if not record.is_type_only:
            edge.value_files.add(source_file)
        for symbol in record.symbols:
            edge.symbols.add(symbol.name)
            if not symbol.is_type_only:
                edge.value_symbols.add(symbol.name)
        return edge

    def add_records(self, records: Iterable[ImportRecord]) -> None:
        for record in records:
            self.add_record(record)


def _key(path: Path) -> str:
    return os.path.normpath(str(path))
