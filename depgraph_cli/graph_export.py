"""Graph export helpers for the JSON document and Graphviz DOT output."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from .models import Graph, Module, ModuleEdge

KIND_COLORS: Dict[str, str] = {
    "app": "#3498db",
    "lib": "#2ecc71",
    "external": "#95a5a6",
}


def node_payload(module: Module) -> Dict[str, Any]:
    return {
        "id": module.id,
        "type": module.kind,
        "linesOfCode": module.lines_of_code,
        "fileCount": module.file_count,
        "incomingCount": module.incoming_count,
        "outgoingCount": module.outgoing_count,
    }


def edge_payload(edge: ModuleEdge) -> Dict[str, Any]:
    return {
        "from": edge.source,
        "to": edge.target,
        "count": edge.count,
        "symbols": sorted(edge.symbols),
    }


def build_document(graph: Graph) -> Dict[str, Any]:
    """Render *graph* as the JSON-ready document consumed by the viewer."""
    stats = graph.stats
    roots = {root.kind: str(root.path) for root in graph.roots}
    return {
        "metadata": {
            "generatedAt": graph.generated_at,
            "projectRoot": str(graph.project_root),
            "appRoot": roots.get("app"),
            "libRoot": roots.get("lib"),
            "stats": {
                "totalFiles": stats.total_files,
                "codeFiles": stats.code_files,
                "testFiles": stats.test_files,
                "totalCodeLines": stats.total_code_lines,
                "totalTestLines": stats.total_test_lines,
                "apps": stats.apps,
                "libs": stats.libs,
                "totalModules": stats.total_modules,
            },
            "warnings": [
                {"file": w.file, "reason": w.reason} for w in graph.warnings
            ],
        },
        "nodes": [node_payload(m) for m in graph.sorted_modules()],
        "edges": [edge_payload(e) for e in graph.sorted_edges()],
    }


def to_json(graph: Graph) -> str:
    return json.dumps(build_document(graph), indent=2)


def to_dot(graph: Graph) -> str:
    lines: List[str] = ["digraph ModuleGraph {"]
    lines.append("  rankdir=LR;")
    lines.append('  node [shape=box, style=filled, fontname="Helvetica"];')

    for module in graph.sorted_modules():
        label = f"{module.id}\\n{module.lines_of_code} lines / {module.file_count} files"
        color = KIND_COLORS.get(module.kind, KIND_COLORS["external"])
        lines.append(f'  "{_esc(module.id)}" [label="{_esc(label)}", fillcolor="{color}"];')

    for edge in graph.sorted_edges():
        attrs = [f'label="{edge.count}"']
        if edge.is_type_only:
            attrs.append("style=dashed")
        lines.append(
            f'  "{_esc(edge.source)}" -> "{_esc(edge.target)}" [{", ".join(attrs)}];'
        )

    lines.append("}")
    return "\n".join(lines) + "\n"


def export_graph(graph: Graph, output_file: Path, fmt: str = "json") -> None:
    """Write *graph* to *output_file* as ``json`` or ``dot``."""
    text = to_dot(graph) if fmt == "dot" else to_json(graph) + "\n"
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(text, encoding="utf-8")


def load_document(path: Path) -> Dict[str, Any]:
    """Read a previously exported JSON document."""
    return json.loads(path.read_text(encoding="utf-8"))


def _esc(text: str) -> str:
    # Keep DOT escapes such as "\n" intact; only quotes need escaping.
    return text.replace('"', '\\"')
