"""Tests for TOML settings and tsconfig alias loading."""

from pathlib import Path

import pytest

from depgraph_cli import config
from depgraph_cli.config_manager import AnalysisSettings, load_settings, load_toml, load_tsconfig_aliases
from depgraph_cli.errors import ConfigError


def test_defaults_without_settings_file(temp_dir: Path, monkeypatch):
    monkeypatch.delenv("DEPGRAPH_WORKERS", raising=False)
    settings = load_settings(None, temp_dir)
    assert settings == AnalysisSettings()
    assert "node_modules" in settings.skip_dirs
    assert settings.aliases == []


def test_project_settings_file_is_picked_up(make_tree):
    root = make_tree({
        "depgraph.toml": """
            [depgraph]
            exclude_dirs = ["generated"]
            workers = 3
            exclude_type_only = true

            [depgraph.aliases]
            "@libs/*" = "libs/*"
        """,
    })
    settings = load_settings(None, root)
    assert "generated" in settings.skip_dirs
    assert set(config.SKIP_DIRS) <= set(settings.skip_dirs)
    assert settings.workers == 3
    assert settings.exclude_type_only is True
    assert len(settings.aliases) == 1
    assert settings.aliases[0].pattern == "@libs/*"
    assert settings.aliases[0].apply("@libs/util") == str(root / "libs" / "util")


def test_explicit_file_resolves_relative_paths_from_its_directory(make_tree):
    root = make_tree({
        "conf/custom.toml": """
            [depgraph.aliases]
            "@shared" = "../libs/shared"
        """,
    })
    settings = load_settings(root / "conf" / "custom.toml", root / "elsewhere")
    assert settings.aliases[0].target == str(root / "libs" / "shared")


def test_top_level_table_is_accepted(make_tree):
    root = make_tree({"plain.toml": "workers = 2\n"})
    assert load_toml(root / "plain.toml") == {"workers": 2}


@pytest.mark.parametrize("content", [
    "[depgraph\nworkers = 2\n",
    "[depgraph]\nworkers = \"many\"\n",
    "[depgraph]\nexclude_dirs = \"gen\"\n",
])
def test_invalid_settings_raise(make_tree, content: str):
    root = make_tree({"depgraph.toml": content})
    with pytest.raises(ConfigError):
        load_settings(None, root)


def test_missing_explicit_file_raises(temp_dir: Path):
    with pytest.raises(ConfigError):
        load_settings(temp_dir / "nope.toml", temp_dir)


def test_tsconfig_paths_with_comments(make_tree):
    root = make_tree({
        "tsconfig.json": """
            {
              // editor settings
              "compilerOptions": {
                "baseUrl": ".",
                /* path mapping */
                "paths": {
                  "@libs/*": ["libs/*", "fallback/*"],
                  "@app": ["apps/main/index.ts"],
                  "@url": ["http://not-a-comment"],
                },
              },
            }
        """,
    })
    aliases = {a.pattern: a for a in load_tsconfig_aliases(root / "tsconfig.json")}
    assert aliases["@libs/*"].apply("@libs/x") == str(root / "libs" / "x")
    assert aliases["@app"].target == str(root / "apps" / "main" / "index.ts")
    assert "@url" in aliases


def test_tsconfig_from_settings(make_tree):
    root = make_tree({
        "depgraph.toml": '[depgraph]\ntsconfig = "tsconfig.json"\n',
        "tsconfig.json": '{"compilerOptions": {"baseUrl": "src", "paths": {"~/*": ["*"]}}}',
    })
    settings = load_settings(None, root)
    assert settings.aliases[0].apply("~/libs/a") == str(root / "src" / "libs" / "a")


def test_invalid_tsconfig_raises(make_tree):
    root = make_tree({"tsconfig.json": "{ nope"})
    with pytest.raises(ConfigError):
        load_tsconfig_aliases(root / "tsconfig.json")


def test_worker_environment_override(temp_dir: Path, make_tree, monkeypatch):
    monkeypatch.setenv("DEPGRAPH_WORKERS", "3")
    assert load_settings(None, temp_dir).workers == 3

    root = make_tree({"depgraph.toml": "[depgraph]\nworkers = 5\n"})
    assert load_settings(None, root).workers == 5


def test_bad_worker_environment_raises(temp_dir: Path, monkeypatch):
    monkeypatch.setenv("DEPGRAPH_WORKERS", "lots")
    with pytest.raises(ConfigError, match="DEPGRAPH_WORKERS"):
        load_settings(None, temp_dir)


def test_settings_aliases_override_tsconfig(make_tree):
    root = make_tree({
        "depgraph.toml": """
            [depgraph]
            tsconfig = "tsconfig.json"

            [depgraph.aliases]
            "@u" = "libs/u"
        """,
        "tsconfig.json": '{"compilerOptions": {"paths": {"@u": ["libs/w"], "@x": ["libs/x"]}}}',
    })
    aliases = {a.pattern: a.target for a in load_settings(None, root).aliases}
    assert aliases == {"@u": str(root / "libs" / "u"), "@x": str(root / "libs" / "x")}
