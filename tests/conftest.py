"""Pytest configuration and fixtures for depgraph tests."""

import shutil
import tempfile
import textwrap
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from depgraph_cli.config_manager import AnalysisSettings
from depgraph_cli.parser import RegexImportExtractor, TreeSitterImportExtractor


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp()).resolve()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_monorepo_path() -> Path:
    """Path to the sample project (``src/apps`` + ``src/libs``)."""
    return (Path(__file__).parent / "fixtures" / "sample_monorepo" / "src").resolve()


@pytest.fixture
def make_tree(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative path: source}`` under *temp_dir* and return it."""

    def _make(files: Dict[str, str]) -> Path:
        for rel_path, source in files.items():
            path = temp_dir / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source), encoding="utf-8")
        return temp_dir

    return _make


@pytest.fixture(scope="session")
def ts_extractor() -> TreeSitterImportExtractor:
    """Grammar loading is the slow part; share one extractor."""
    return TreeSitterImportExtractor()


@pytest.fixture
def regex_extractor() -> RegexImportExtractor:
    return RegexImportExtractor()


@pytest.fixture
def sequential_settings() -> AnalysisSettings:
    return AnalysisSettings(workers=1)
