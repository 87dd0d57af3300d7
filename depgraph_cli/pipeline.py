"""End-to-end graph construction.

walk -> extract (parallel) -> resolve -> aggregate -> statistics.  All
mutable state for a run lives on an :class:`AnalysisContext`, so several
analyses can run in one process.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .aggregation import EdgeAggregator, ModuleAggregator
from .config_manager import AnalysisSettings
from .models import Graph, ImportRecord, ParseWarning, SourceFile, SourceRoot
from .parser import (
    ImportExtractor,
    RegexImportExtractor,
    TreeSitterImportExtractor,
    extract_file_imports,
)
from .resolver import FileIndex, PathResolver
from .stats import compute_degrees, compute_stats
from .walker import count_lines, validate_roots, walk_roots

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]

FileResult = Tuple[List[ImportRecord], Optional[ParseWarning], int]


@dataclass
class AnalysisContext:
    """Per-run state: discovered files, aggregators, and collected warnings."""

    roots: List[SourceRoot]
    project_root: Path
    settings: AnalysisSettings
    files: List[SourceFile] = field(default_factory=list)
    warnings: List[ParseWarning] = field(default_factory=list)
    modules: ModuleAggregator = field(init=False)
    edges: EdgeAggregator = field(init=False)

    def __post_init__(self) -> None:
        self.modules = ModuleAggregator(self.roots, self.project_root)
        self.edges = EdgeAggregator(self.modules, self.settings.exclude_type_only)


def project_root_for(roots: Sequence[SourceRoot]) -> Path:
    """Common parent directory of all roots."""
    if len(roots) == 1:
        return roots[0].path.parent
    return Path(os.path.commonpath([str(r.path) for r in roots]))


class GraphBuilder:
    """Runs the pipeline for one set of roots."""

    def __init__(
        self,
        app_root: Path,
        lib_root: Path,
        settings: Optional[AnalysisSettings] = None,
        extractor: Optional[ImportExtractor] = None,
        fallback: Optional[ImportExtractor] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.roots = [SourceRoot(app_root, "app"), SourceRoot(lib_root, "lib")]
        self.settings = settings or AnalysisSettings()
        self.extractor = extractor
        self.fallback = fallback or RegexImportExtractor()
        self.progress = progress

    def build(self) -> Graph:
        validate_roots(self.roots)
        context = AnalysisContext(
            roots=self.roots,
            project_root=project_root_for(self.roots),
            settings=self.settings,
        )
        extractor = self.extractor or TreeSitterImportExtractor()

        context.files = walk_roots(self.roots, self.settings.skip_dirs)
        logger.info("Discovered %d source files", len(context.files))
        self._report("walk", len(context.files), len(context.files))

        resolver = PathResolver(
            FileIndex(f.path for f in context.files),
            context.project_root,
            self.settings.aliases,
        )

        results = self._extract_all(context.files, extractor)

        # Register every file before any edge so module_of() sees the full set.
        for source, (_, _, lines) in zip(context.files, results):
            context.modules.add_file(source, lines)

        for source, (records, warning, _) in zip(context.files, results):
            if warning is not None:
                context.warnings.append(warning)
            for record in records:
                resolver.resolve_record(record)
            context.edges.add_records(records)

        return self._finish(context)

    # ------------------------------------------------------------------

    def _extract_all(
        self,
        files: List[SourceFile],
        extractor: ImportExtractor,
    ) -> List[FileResult]:
        total = len(files)
        done = 0

        def _one(source: SourceFile) -> FileResult:
            try:
                lines = count_lines(source.path)
            except OSError as exc:
                logger.warning("Could not read %s: %s", source.path, exc)
                return [], ParseWarning(str(source.path), f"unreadable: {exc}"), 0
            if source.is_test:
                return [], None, lines
            records, warning = extract_file_imports(source, extractor, self.fallback)
            return records, warning, lines

        workers = max(1, self.settings.workers)
        results: List[FileResult] = []
        if workers == 1 or total < 2:
            for result in map(_one, files):
                results.append(result)
                done += 1
                self._report("parse", done, total)
            return results

        # map() keeps input order, which keeps aggregation deterministic.
        with ThreadPoolExecutor(max_workers=workers) as executor:
            for result in executor.map(_one, files):
                results.append(result)
                done += 1
                self._report("parse", done, total)
        return results

    def _finish(self, context: AnalysisContext) -> Graph:
        modules = context.modules.modules
        edges = context.edges.edges
        compute_degrees(modules, edges)
        stats = compute_stats(modules, context.modules.totals)
        logger.info(
            "Built graph: %d modules, %d edges, %d degraded files",
            len(modules), len(edges), len(context.warnings),
        )
        return Graph(
            generated_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            project_root=context.project_root,
            roots=list(context.roots),
            stats=stats,
            modules=modules,
            edges=edges,
            warnings=list(context.warnings),
        )

    def _report(self, phase: str, done: int, total: int) -> None:
        if self.progress is not None:
            self.progress(phase, done, total)


def build_graph(
    app_root: Path,
    lib_root: Path,
    settings: Optional[AnalysisSettings] = None,
    progress: Optional[ProgressCallback] = None,
) -> Graph:
    """Analyze *app_root* and *lib_root* and return the module graph."""
    return GraphBuilder(app_root, lib_root, settings=settings, progress=progress).build()
