"""Derived module degrees and run-level totals."""

from __future__ import annotations

from typing import Dict, Mapping, Set, Tuple

from .aggregation import FileTotals
from .models import GraphStats, Module, ModuleEdge


def compute_degrees(
    modules: Mapping[str, Module],
    edges: Mapping[Tuple[str, str], ModuleEdge],
) -> None:
    """Set ``incoming_count`` / ``outgoing_count`` on every module.

    Degrees count distinct neighbouring modules, not edge weights.
    """
    incoming: Dict[str, Set[str]] = {module_id: set() for module_id in modules}
    outgoing: Dict[str, Set[str]] = {module_id: set() for module_id in modules}
    for source, target in edges:
        outgoing.setdefault(source, set()).add(target)
        incoming.setdefault(target, set()).add(source)

    for module_id, module in modules.items():
        module.incoming_count = len(incoming[module_id])
        module.outgoing_count = len(outgoing[module_id])


def compute_stats(modules: Mapping[str, Module], totals: FileTotals) -> GraphStats:
    return GraphStats(
        total_files=totals.code_files + totals.test_files,
        code_files=totals.code_files,
        test_files=totals.test_files,
        total_code_lines=totals.code_lines,
        total_test_lines=totals.test_lines,
        apps=sum(1 for m in modules.values() if m.kind == "app"),
        libs=sum(1 for m in modules.values() if m.kind == "lib"),
        total_modules=len(modules),
    )
