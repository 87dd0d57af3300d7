"""Core data models shared by the graph-construction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Literal, Optional, Set, Tuple, Union

ModuleKind = Literal["app", "lib", "external"]
ImportKind = Literal["import", "export", "require", "dynamic", "regex"]


@dataclass(frozen=True)
class SourceRoot:
    path: Path
    kind: ModuleKind

    @property
    def label(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class SourceFile:
    path: Path
    rel_path: str
    root: SourceRoot
    is_test: bool = False


@dataclass(frozen=True)
class ImportedSymbol:
    name: str
    local: str = ""
    is_type_only: bool = False


@dataclass
class ImportRecord:
    """One import clause found in a file.

    ``resolved`` stays ``None`` until the resolver finds a target file, and
    stays ``None`` for external packages.
    """

    source_file: Path
    specifier: str
    kind: ImportKind = "import"
    symbols: List[ImportedSymbol] = field(default_factory=list)
    is_external: bool = False
    resolved: Optional[Path] = None

    def add_symbol(self, symbol: ImportedSymbol) -> None:
        if symbol not in self.symbols:
            self.symbols.append(symbol)

    @property
    def symbol_names(self) -> List[str]:
        names: List[str] = []
        for sym in self.symbols:
            if sym.name not in names:
                names.append(sym.name)
        return names

    @property
    def is_type_only(self) -> bool:
        return bool(self.symbols) and all(s.is_type_only for s in self.symbols)


@dataclass(frozen=True)
class Parsed:
    records: Tuple[ImportRecord, ...]


@dataclass(frozen=True)
class Failed:
    reason: str


ParseResult = Union[Parsed, Failed]


@dataclass
class Module:
    id: str
    kind: ModuleKind
    lines_of_code: int = 0
    file_count: int = 0
    incoming_count: int = 0
    outgoing_count: int = 0


@dataclass
class ModuleEdge:
    source: str
    target: str
    files: Set[str] = field(default_factory=set)
    symbols: Set[str] = field(default_factory=set)
    value_symbols: Set[str] = field(default_factory=set)
    value_files: Set[str] = field(default_factory=set)

    @property
    def count(self) -> int:
        return len(self.files)

    @property
    def type_only_symbols(self) -> Set[str]:
        """Names that were never imported as values."""
        return self.symbols - self.value_symbols

    @property
    def is_type_only(self) -> bool:
        return bool(self.files) and not self.value_files


@dataclass
class GraphStats:
    total_files: int = 0
    code_files: int = 0
    test_files: int = 0
    total_code_lines: int = 0
    total_test_lines: int = 0
    apps: int = 0
    libs: int = 0
    total_modules: int = 0


@dataclass
class ParseWarning:
    file: str
    reason: str


@dataclass
class Graph:
    generated_at: str
    project_root: Path
    roots: List[SourceRoot]
    stats: GraphStats
    modules: Dict[str, Module]
    edges: Dict[Tuple[str, str], ModuleEdge]
    warnings: List[ParseWarning] = field(default_factory=list)

    def sorted_modules(self) -> List[Module]:
        return [self.modules[key] for key in sorted(self.modules)]

    def sorted_edges(self) -> List[ModuleEdge]:
        return [self.edges[key] for key in sorted(self.edges)]
