"""End-to-end tests for graph construction."""

from pathlib import Path

import pytest

from depgraph_cli.config_manager import AnalysisSettings
from depgraph_cli.errors import RootConfigError
from depgraph_cli.graph_export import build_document
from depgraph_cli.pipeline import GraphBuilder, build_graph, project_root_for
from depgraph_cli.resolver import make_alias
from depgraph_cli.validation import DocumentValidator
from depgraph_cli.walker import count_lines

SAMPLE_EDGES = {
    ("apps/dashboard", "libs/api"): ["api"],
    ("apps/dashboard", "libs/utils"): ["formatNumber"],
    ("apps/dashboard", "libs/logger"): ["Logger"],
    ("apps/user-profile", "libs/api"): ["api"],
    ("apps/user-profile", "libs/validators"): ["isEmail", "sanitizeInput"],
    ("apps/user-profile", "libs/logger"): ["Logger"],
    ("libs/api", "libs/logger"): ["defaultLogger"],
    ("libs/counter", "libs/utils"): ["formatNumber"],
    ("libs/counter", "libs/logger"): ["defaultLogger"],
    ("libs/validators", "libs/utils"): ["clamp"],
}


def _document(root: Path, settings: AnalysisSettings) -> dict:
    return build_document(GraphBuilder(root / "apps", root / "libs", settings=settings).build())


class TestSampleMonorepo:

    @pytest.fixture
    def doc(self, sample_monorepo_path: Path, sequential_settings: AnalysisSettings) -> dict:
        return _document(sample_monorepo_path, sequential_settings)

    def test_nodes(self, doc: dict):
        nodes = {n["id"]: n for n in doc["nodes"]}
        assert list(nodes) == [
            "apps/dashboard",
            "apps/user-profile",
            "libs/api",
            "libs/counter",
            "libs/logger",
            "libs/utils",
            "libs/validators",
        ]
        assert nodes["apps/dashboard"]["type"] == "app"
        assert nodes["libs/api"]["type"] == "lib"
        assert all(n["fileCount"] == 1 for n in nodes.values())

        incoming = {k: n["incomingCount"] for k, n in nodes.items()}
        outgoing = {k: n["outgoingCount"] for k, n in nodes.items()}
        assert incoming == {
            "apps/dashboard": 0,
            "apps/user-profile": 0,
            "libs/api": 2,
            "libs/counter": 0,
            "libs/logger": 4,
            "libs/utils": 3,
            "libs/validators": 1,
        }
        assert outgoing == {
            "apps/dashboard": 3,
            "apps/user-profile": 3,
            "libs/api": 1,
            "libs/counter": 2,
            "libs/logger": 0,
            "libs/utils": 0,
            "libs/validators": 1,
        }

    def test_edges(self, doc: dict):
        edges = {(e["from"], e["to"]): e for e in doc["edges"]}
        assert {k: e["symbols"] for k, e in edges.items()} == SAMPLE_EDGES
        assert all(e["count"] == 1 for e in edges.values())
        assert [(e["from"], e["to"]) for e in doc["edges"]] == sorted(SAMPLE_EDGES)

    def test_stats(self, doc: dict, sample_monorepo_path: Path):
        stats = doc["metadata"]["stats"]
        assert stats["totalFiles"] == 10
        assert stats["codeFiles"] == 7
        assert stats["testFiles"] == 3
        assert (stats["apps"], stats["libs"], stats["totalModules"]) == (2, 5, 7)

        tests = ["apps/dashboard/dashboard.test.js", "libs/utils.test.js", "libs/validators.spec.js"]
        test_lines = sum(count_lines(sample_monorepo_path / t) for t in tests)
        assert stats["totalTestLines"] == test_lines
        assert stats["totalCodeLines"] == sum(n["linesOfCode"] for n in doc["nodes"])

    def test_metadata(self, doc: dict, sample_monorepo_path: Path):
        meta = doc["metadata"]
        assert meta["projectRoot"] == str(sample_monorepo_path)
        assert meta["appRoot"] == str(sample_monorepo_path / "apps")
        assert meta["generatedAt"].endswith("Z")
        assert meta["warnings"] == []

    def test_document_is_valid(self, doc: dict):
        assert DocumentValidator().validate(doc) == []


def test_repeat_runs_are_identical(sample_monorepo_path: Path, sequential_settings):
    first = _document(sample_monorepo_path, sequential_settings)
    second = _document(sample_monorepo_path, sequential_settings)
    for doc in (first, second):
        del doc["metadata"]["generatedAt"]
    assert first == second


def test_parallel_matches_sequential(sample_monorepo_path: Path, sequential_settings):
    sequential = _document(sample_monorepo_path, sequential_settings)
    parallel = _document(sample_monorepo_path, AnalysisSettings(workers=4))
    for doc in (sequential, parallel):
        del doc["metadata"]["generatedAt"]
    assert parallel == sequential


def test_external_imports_add_no_edges(make_tree, sequential_settings):
    root = make_tree({
        "apps/a/x.ts": """
            import _ from 'lodash';
            import React from 'react';
            export const y = _.identity(1);
        """,
        "libs/u/index.ts": "export const u = 1;\n",
    })
    doc = _document(root, sequential_settings)
    assert doc["edges"] == []
    nodes = {n["id"]: n for n in doc["nodes"]}
    assert nodes["libs/u"]["incomingCount"] == 0
    assert nodes["libs/u"]["outgoingCount"] == 0


def test_directory_import_and_multi_file_edge(make_tree, sequential_settings):
    root = make_tree({
        "apps/a/x.ts": "import { foo } from '../../libs/util';\n",
        "apps/a/deep/y.ts": "import { bar } from '../../../libs/util/helpers';\n",
        "apps/a/z.ts": "import { baz } from '../../libs/util';\nimport { foo } from '../../libs/util';\n",
        "libs/util/index.ts": "export * from './helpers';\n",
        "libs/util/helpers.ts": "export const foo = 1, bar = 2, baz = 3;\n",
    })
    doc = _document(root, sequential_settings)
    assert doc["edges"] == [
        {"from": "apps/a", "to": "libs/util", "count": 3, "symbols": ["bar", "baz", "foo"]},
    ]
    nodes = {n["id"]: n for n in doc["nodes"]}
    assert nodes["apps/a"]["fileCount"] == 3


def test_test_files_are_counted_but_not_graphed(make_tree, sequential_settings):
    root = make_tree({
        "apps/a/x.ts": "export const x = 1;\n",
        "apps/a/__tests__/x.ts": "import { u } from '../../../libs/u';\n",
        "apps/a/x.spec.ts": "import { u } from '../../libs/u';\n",
        "libs/u/index.ts": "export const u = 1;\n",
    })
    doc = _document(root, sequential_settings)
    assert doc["edges"] == []
    assert doc["metadata"]["stats"]["testFiles"] == 2
    assert {n["id"]: n["fileCount"] for n in doc["nodes"]} == {"apps/a": 1, "libs/u": 1}


def test_parse_failure_degrades_to_regex(make_tree, sequential_settings):
    root = make_tree({
        "apps/a/broken.ts": "import { u } from '../../libs/u';\nconst = ;\nfunction {{{\n",
        "libs/u/index.ts": "export const u = 1;\n",
    })
    doc = _document(root, sequential_settings)
    assert doc["edges"] == [{"from": "apps/a", "to": "libs/u", "count": 1, "symbols": []}]
    warnings = doc["metadata"]["warnings"]
    assert len(warnings) == 1
    assert warnings[0]["file"] == str(root / "apps/a/broken.ts")


def test_type_only_edges_can_be_excluded(make_tree):
    files = {
        "apps/a/x.ts": "import type { Shape } from '../../libs/shapes';\n",
        "libs/shapes/index.ts": "export interface Shape { w: number }\n",
    }
    root = make_tree(files)
    kept = _document(root, AnalysisSettings(workers=1))
    assert [e["symbols"] for e in kept["edges"]] == [["Shape"]]

    dropped = _document(root, AnalysisSettings(workers=1, exclude_type_only=True))
    assert dropped["edges"] == []


def test_aliases_resolve_to_modules(make_tree):
    root = make_tree({
        "apps/a/x.ts": "import { u } from '@libs/u';\nimport { v } from '@v';\n",
        "libs/u/index.ts": "export const u = 1;\n",
        "libs/v.ts": "export const v = 1;\n",
    })
    settings = AnalysisSettings(
        workers=1,
        aliases=[make_alias("@libs/*", "libs/*", root), make_alias("@v", "libs/v", root)],
    )
    doc = _document(root, settings)
    assert [(e["from"], e["to"]) for e in doc["edges"]] == [("apps/a", "libs/u"), ("apps/a", "libs/v")]


def test_missing_root_raises(temp_dir: Path):
    (temp_dir / "apps").mkdir()
    with pytest.raises(RootConfigError):
        build_graph(temp_dir / "apps", temp_dir / "libs")


def test_progress_callback(sample_monorepo_path: Path, sequential_settings):
    calls = []
    build_graph(
        sample_monorepo_path / "apps",
        sample_monorepo_path / "libs",
        settings=sequential_settings,
        progress=lambda phase, done, total: calls.append((phase, done, total)),
    )
    assert calls[0] == ("walk", 10, 10)
    assert calls[-1] == ("parse", 10, 10)


def test_project_root_is_common_parent(temp_dir: Path):
    from depgraph_cli.models import SourceRoot

    roots = [SourceRoot(temp_dir / "src" / "apps", "app"), SourceRoot(temp_dir / "pkgs" / "libs", "lib")]
    assert project_root_for(roots) == temp_dir
    assert project_root_for(roots[:1]) == temp_dir / "src"


def test_roots_sharing_a_name_get_distinct_ids(make_tree, sequential_settings):
    root = make_tree({
        "web/src/common/x.ts": "import { u } from '../../../core/src/common/u';\n",
        "core/src/common/u.ts": "export const u = 1;\n",
    })
    graph = GraphBuilder(root / "web" / "src", root / "core" / "src", settings=sequential_settings).build()
    doc = build_document(graph)

    assert {n["id"]: n["type"] for n in doc["nodes"]} == {
        "core/src/common": "lib",
        "web/src/common": "app",
    }
    assert doc["edges"] == [
        {"from": "web/src/common", "to": "core/src/common", "count": 1, "symbols": ["u"]},
    ]
    assert doc["metadata"]["stats"]["libs"] == 1
