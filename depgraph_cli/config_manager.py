"""Analysis settings loaded from TOML files and ``tsconfig.json``."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config
from .errors import ConfigError
from .resolver import PathAlias, aliases_from_mapping, make_alias, merge_aliases

logger = logging.getLogger(__name__)


@dataclass
class AnalysisSettings:
    """Everything a run needs beyond the two source roots."""

    skip_dirs: List[str] = field(default_factory=lambda: sorted(config.SKIP_DIRS))
    aliases: List[PathAlias] = field(default_factory=list)
    workers: int = config.DEFAULT_WORKERS
    exclude_type_only: bool = False


def env_workers(default: int) -> int:
    """Worker count from the environment, or *default* when unset."""
    raw = os.environ.get(config.WORKERS_ENV, "").strip()
    if not raw:
        return default
    try:
        return max(1, int(raw))
    except ValueError as exc:
        raise ConfigError(f"{config.WORKERS_ENV} must be an integer, got {raw!r}") from exc


def load_toml(path: Path) -> Dict[str, Any]:
    """Return the ``[depgraph]`` table of *path* (or its top level if absent)."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc
    except toml.TomlDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    section = data.get("depgraph", data)
    if not isinstance(section, dict):
        raise ConfigError(f"[depgraph] in {path} must be a table")
    return section


def load_settings(
    settings_file: Optional[Path],
    project_root: Path,
) -> AnalysisSettings:
    """Build settings from *settings_file*, or ``depgraph.toml`` in *project_root*.

    Relative paths inside the file (alias targets, ``tsconfig``) are taken
    from the file's own directory.  File values override ``DEPGRAPH_WORKERS``.
    """
    settings = AnalysisSettings(workers=env_workers(config.DEFAULT_WORKERS))
    if settings_file is None:
        candidate = project_root / config.SETTINGS_FILENAME
        if not candidate.is_file():
            return settings
        settings_file = candidate

    section = load_toml(settings_file)
    base_dir = settings_file.parent
    logger.debug("Loaded settings from %s", settings_file)

    extra_dirs = section.get("exclude_dirs", [])
    if not isinstance(extra_dirs, list):
        raise ConfigError("exclude_dirs must be a list of directory names")
    settings.skip_dirs = sorted(set(settings.skip_dirs) | {str(d) for d in extra_dirs})

    if "workers" in section:
        try:
            settings.workers = max(1, int(section["workers"]))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"workers must be an integer, got {section['workers']!r}") from exc
    settings.exclude_type_only = bool(section.get("exclude_type_only", False))

    tsconfig = section.get("tsconfig")
    tsconfig_aliases = load_tsconfig_aliases(base_dir / str(tsconfig)) if tsconfig else []

    aliases = section.get("aliases", {})
    if not isinstance(aliases, dict):
        raise ConfigError("[depgraph.aliases] must map prefixes to paths")
    settings.aliases = merge_aliases(
        tsconfig_aliases,
        aliases_from_mapping({str(k): str(v) for k, v in aliases.items()}, base_dir),
    )
    return settings


# ---------------------------------------------------------------------------
# tsconfig.json
# ---------------------------------------------------------------------------

_JSONC_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')


def _parse_jsonc(text: str) -> Any:
    text = _JSONC_COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    text = _TRAILING_COMMA_RE.sub(lambda m: m.group(1) or m.group(2), text)
    return json.loads(text)


def load_tsconfig_aliases(path: Path) -> List[PathAlias]:
    """Aliases from ``compilerOptions.paths``; only the first target of each
    pattern is used.  ``baseUrl`` defaults to the tsconfig's directory."""
    try:
        data = _parse_jsonc(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read tsconfig {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc

    options = data.get("compilerOptions") or {}
    base_dir = (path.parent / options.get("baseUrl", ".")).resolve()
    aliases: List[PathAlias] = []
    for pattern, targets in (options.get("paths") or {}).items():
        if isinstance(targets, str):
            targets = [targets]
        if not targets:
            continue
        aliases.append(make_alias(pattern, targets[0], base_dir))
    logger.debug("Loaded %d path aliases from %s", len(aliases), path)
    return aliases
