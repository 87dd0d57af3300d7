"""Consistency checks for an exported graph document."""

from __future__ import annotations

from typing import Any, Dict, List, Set

NODE_TYPES = ("app", "lib", "external")
NODE_COUNT_FIELDS = ("linesOfCode", "fileCount", "incomingCount", "outgoingCount")
STAT_FIELDS = (
    "totalFiles", "codeFiles", "testFiles", "totalCodeLines",
    "totalTestLines", "apps", "libs", "totalModules",
)


class DocumentValidator:
    """Checks a document against the node/edge contract and its own invariants."""

    def validate(self, doc: Any) -> List[str]:
        """Return a list of problems; empty means the document is valid.

        Args:
            doc: Parsed JSON document.

        Returns:
            Human-readable problem descriptions, in document order.
        """
        if not isinstance(doc, dict):
            return ["Document must be a JSON object"]

        problems: List[str] = []
        problems.extend(self._check_metadata(doc.get("metadata")))

        nodes = doc.get("nodes")
        edges = doc.get("edges")
        if not isinstance(nodes, list):
            problems.append("'nodes' must be an array")
            nodes = []
        if not isinstance(edges, list):
            problems.append("'edges' must be an array")
            edges = []

        node_ids: Dict[str, Dict[str, Any]] = {}
        for node in nodes:
            problems.extend(self._check_node(node))
            if isinstance(node, dict) and isinstance(node.get("id"), str):
                if node["id"] in node_ids:
                    problems.append(f"Duplicate node id {node['id']}")
                node_ids[node["id"]] = node

        problems.extend(self._check_edges(edges, node_ids))
        return problems

    # ------------------------------------------------------------------

    @staticmethod
    def _check_metadata(metadata: Any) -> List[str]:
        if not isinstance(metadata, dict):
            return ["Missing required field: metadata"]
        stats = metadata.get("stats")
        if not isinstance(stats, dict):
            return ["Invalid metadata structure: stats must be an object"]
        return [
            f"metadata.stats.{name} must be a non-negative integer"
            for name in STAT_FIELDS
            if not _non_negative_int(stats.get(name))
        ]

    @staticmethod
    def _check_node(node: Any) -> List[str]:
        if not isinstance(node, dict):
            return ["Node must be an object"]
        node_id = node.get("id")
        if not isinstance(node_id, str) or not node_id:
            return [f"Node must have a string id, got: {node_id!r}"]

        problems: List[str] = []
        if node.get("type") not in NODE_TYPES:
            problems.append(f"Node {node_id}: type must be 'app', 'lib', or 'external'")
        for name in NODE_COUNT_FIELDS:
            if not _non_negative_int(node.get(name)):
                problems.append(f"Node {node_id}: {name} must be a non-negative integer")
        return problems

    @staticmethod
    def _check_edges(edges: List[Any], node_ids: Dict[str, Dict[str, Any]]) -> List[str]:
        problems: List[str] = []
        seen: Set[tuple] = set()
        incoming: Dict[str, Set[str]] = {}
        outgoing: Dict[str, Set[str]] = {}

        for edge in edges:
            if not isinstance(edge, dict):
                problems.append("Edge must be an object")
                continue
            src, dst = edge.get("from"), edge.get("to")
            label = f"{src} -> {dst}"
            if src not in node_ids:
                problems.append(f"Edge {label}: unknown source module")
            if dst not in node_ids:
                problems.append(f"Edge {label}: unknown target module")
            if src == dst:
                problems.append(f"Edge {label}: self-loop")
            if (src, dst) in seen:
                problems.append(f"Edge {label}: duplicate edge")
            seen.add((src, dst))

            count = edge.get("count")
            if not _non_negative_int(count) or count == 0:
                problems.append(f"Edge {label}: count must be a positive integer")
            elif src in node_ids and _non_negative_int(node_ids[src].get("fileCount")):
                if count > node_ids[src]["fileCount"]:
                    problems.append(f"Edge {label}: count exceeds source fileCount")

            symbols = edge.get("symbols")
            if not isinstance(symbols, list) or not all(isinstance(s, str) for s in symbols):
                problems.append(f"Edge {label}: symbols must be an array of strings")

            if isinstance(src, str) and isinstance(dst, str):
                outgoing.setdefault(src, set()).add(dst)
                incoming.setdefault(dst, set()).add(src)

        for node_id, node in node_ids.items():
            expected_in = len(incoming.get(node_id, ()))
            expected_out = len(outgoing.get(node_id, ()))
            if node.get("incomingCount") != expected_in:
                problems.append(
                    f"Node {node_id}: incomingCount is {node.get('incomingCount')}, edges give {expected_in}"
                )
            if node.get("outgoingCount") != expected_out:
                problems.append(
                    f"Node {node_id}: outgoingCount is {node.get('outgoingCount')}, edges give {expected_out}"
                )
        return problems


def _non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
