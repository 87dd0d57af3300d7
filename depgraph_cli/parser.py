"""Import extraction for TypeScript / JavaScript sources.

Two interchangeable extractors implement :class:`ImportExtractor`:

- :class:`TreeSitterImportExtractor` walks a Tree-sitter syntax tree and
  records every imported symbol, its local alias, and whether it is a
  type-only import.
- :class:`RegexImportExtractor` scans the raw text and recovers only the
  specifiers.  It is the fallback for files Tree-sitter cannot parse.

Neither raises for bad input; both return a :data:`ParseResult`.
:func:`extract_file_imports` applies the fallback step explicitly.
"""

from __future__ import annotations

import importlib
import logging
import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tree_sitter import Language, Parser as TSParser

from .errors import GrammarLoadError
from .models import (
    Failed,
    ImportedSymbol,
    ImportRecord,
    Parsed,
    ParseResult,
    ParseWarning,
    SourceFile,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}


def is_relative_specifier(specifier: str) -> bool:
    return specifier in (".", "..") or specifier.startswith(("./", "../"))


def is_bare_specifier(specifier: str) -> bool:
    """True for package names such as ``lodash`` or ``@scope/pkg/sub``."""
    return not (is_relative_specifier(specifier) or specifier.startswith("/"))


# ===================================================================
# Abstract Extractor Interface
# ===================================================================

class ImportExtractor(ABC):
    """Turns one file's text into import records."""

    @abstractmethod
    def extract_imports(self, source: str, file_path: Path) -> ParseResult:
        ...


# ===================================================================
# Tree-sitter Extractor (Primary)
# ===================================================================

class TreeSitterImportExtractor(ImportExtractor):
    """Structured extractor built on Tree-sitter grammars.

    Grammars are loaded once; ``Parser`` objects are kept per thread so the
    extractor can be shared by a thread pool.
    """

    # language -> (grammar module, factory function)
    _GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
        "javascript": ("tree_sitter_javascript", "language"),
        "typescript": ("tree_sitter_typescript", "language_typescript"),
        "tsx": ("tree_sitter_typescript", "language_tsx"),
    }

    def __init__(self) -> None:
        self._languages: Dict[str, Language] = {}
        self._local = threading.local()
        for lang, (mod_name, factory) in self._GRAMMAR_MODULES.items():
            try:
                mod = importlib.import_module(mod_name)
                self._languages[lang] = Language(getattr(mod, factory)())
            except (ImportError, AttributeError, ValueError) as exc:
                raise GrammarLoadError(
                    f"Could not load tree-sitter grammar for {lang} from {mod_name}: {exc}"
                ) from exc
            logger.debug("Loaded tree-sitter grammar for %s", lang)

    def _parser_for(self, lang: str) -> TSParser:
        parsers: Optional[Dict[str, TSParser]] = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = {}
            self._local.parsers = parsers
        if lang not in parsers:
            parsers[lang] = TSParser(self._languages[lang])
        return parsers[lang]

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def extract_imports(self, source: str, file_path: Path) -> ParseResult:
        lang = LANGUAGE_MAP.get(file_path.suffix.lower())
        if lang is None:
            return Failed(f"unsupported file type '{file_path.suffix}'")

        try:
            tree = self._parser_for(lang).parse(source.encode("utf-8"))
        except (ValueError, RuntimeError) as exc:
            return Failed(f"tree-sitter failed: {exc}")

        root = tree.root_node
        if root.has_error:
            line = _first_error_line(root)
            return Failed(f"syntax error near line {line}")

        records: List[ImportRecord] = []
        stack: List[Any] = [root]
        while stack:
            node = stack.pop()
            if node.type == "import_statement":
                record = self._import_statement(node, file_path)
                if record is not None:
                    records.append(record)
                continue
            if node.type == "export_statement":
                record = self._export_statement(node, file_path)
                if record is not None:
                    records.append(record)
                    continue
            elif node.type == "call_expression":
                record = self._call_expression(node, file_path)
                if record is not None:
                    records.append(record)
            stack.extend(reversed(node.children))

        return Parsed(tuple(records))

    # ------------------------------------------------------------------
    # import ... from '...'
    # ------------------------------------------------------------------

    def _import_statement(self, node: Any, file_path: Path) -> Optional[ImportRecord]:
        source_node = node.child_by_field_name("source")
        require_clause = None
        for child in node.children:
            if child.type == "import_require_clause":
                require_clause = child
                source_node = child.child_by_field_name("source")
        if source_node is None:
            return None

        specifier = _string_value(source_node)
        record = ImportRecord(
            source_file=file_path,
            specifier=specifier,
            kind="import",
            is_external=is_bare_specifier(specifier),
        )
        type_only = _has_type_keyword(node)

        if require_clause is not None:
            # import fs = require('fs')
            local = _first_child_text(require_clause, "identifier")
            record.add_symbol(ImportedSymbol("*", local, type_only))
            return record

        for child in node.children:
            if child.type != "import_clause":
                continue
            for part in child.children:
                if part.type == "identifier":
                    record.add_symbol(ImportedSymbol("default", _text(part), type_only))
                elif part.type == "namespace_import":
                    local = _first_child_text(part, "identifier")
                    record.add_symbol(ImportedSymbol("*", local, type_only))
                elif part.type == "named_imports":
                    for spec in part.children:
                        if spec.type == "import_specifier":
                            record.add_symbol(_specifier_symbol(spec, type_only))
        return record

    # ------------------------------------------------------------------
    # export ... from '...'
    # ------------------------------------------------------------------

    def _export_statement(self, node: Any, file_path: Path) -> Optional[ImportRecord]:
        source_node = node.child_by_field_name("source")
        if source_node is None:
            return None

        specifier = _string_value(source_node)
        record = ImportRecord(
            source_file=file_path,
            specifier=specifier,
            kind="export",
            is_external=is_bare_specifier(specifier),
        )
        type_only = _has_type_keyword(node)

        for child in node.children:
            if child.type == "*" or child.type == "namespace_export":
                record.add_symbol(ImportedSymbol("*", "", type_only))
            elif child.type == "export_clause":
                for spec in child.children:
                    if spec.type == "export_specifier":
                        record.add_symbol(_specifier_symbol(spec, type_only))
        return record

    # ------------------------------------------------------------------
    # require('...') / import('...')
    # ------------------------------------------------------------------

    def _call_expression(self, node: Any, file_path: Path) -> Optional[ImportRecord]:
        func = node.child_by_field_name("function")
        if func is None:
            return None
        if func.type == "import":
            kind = "dynamic"
        elif func.type == "identifier" and _text(func) == "require":
            kind = "require"
        else:
            return None

        args = node.child_by_field_name("arguments")
        if args is None or not args.named_children:
            return None
        first = args.named_children[0]
        if first.type != "string":
            return None

        specifier = _string_value(first)
        record = ImportRecord(
            source_file=file_path,
            specifier=specifier,
            kind=kind,
            is_external=is_bare_specifier(specifier),
        )
        for symbol in _binding_symbols(node):
            record.add_symbol(symbol)
        return record


# ===================================================================
# Regex Extractor (Fallback)
# ===================================================================

_COMMENT_RE = re.compile(
    r"""("(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*'|`(?:\\.|[^`\\])*`)|//[^\n]*|/\*.*?\*/""",
    re.DOTALL,
)

_SPECIFIER_PATTERNS: Tuple[re.Pattern, ...] = (
    # import x from '...', import { a } from '...', import type X from '...'
    re.compile(r"""\bimport\s+(?:type\s+)?[\w$*{}\s,]+?\s+from\s*['"]([^'"\n]+)['"]""", re.DOTALL),
    # import '...'  (side-effect)
    re.compile(r"""^\s*import\s+['"]([^'"\n]+)['"]""", re.MULTILINE),
    # export * from '...', export { a } from '...'
    re.compile(
        r"""\bexport\s+(?:type\s+)?(?:\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s*from\s*['"]([^'"\n]+)['"]""",
        re.DOTALL,
    ),
    # require('...')
    re.compile(r"""\brequire\s*\(\s*['"]([^'"\n]+)['"]\s*\)"""),
    # import('...')
    re.compile(r"""\bimport\s*\(\s*['"]([^'"\n]+)['"]\s*\)"""),
)


def strip_comments(source: str) -> str:
    """Remove ``//`` and ``/* */`` comments, leaving string literals intact."""
    return _COMMENT_RE.sub(lambda m: m.group(1) or "", source)


class RegexImportExtractor(ImportExtractor):
    """Specifier-only extractor; never fails."""

    def extract_imports(self, source: str, file_path: Path) -> ParseResult:
        text = strip_comments(source)
        found: List[Tuple[int, str]] = []
        for pattern in _SPECIFIER_PATTERNS:
            for match in pattern.finditer(text):
                found.append((match.start(1), match.group(1)))

        records: List[ImportRecord] = []
        seen = set()
        for _, specifier in sorted(found):
            if specifier in seen:
                continue
            seen.add(specifier)
            records.append(ImportRecord(
                source_file=file_path,
                specifier=specifier,
                kind="regex",
                is_external=is_bare_specifier(specifier),
            ))
        return Parsed(tuple(records))


# ===================================================================
# Fallback step
# ===================================================================

def extract_file_imports(
    source_file: SourceFile,
    primary: ImportExtractor,
    fallback: ImportExtractor,
) -> Tuple[List[ImportRecord], Optional[ParseWarning]]:
    """Extract imports from one file, degrading to *fallback* on failure.

    Returns the records plus a warning when the file was degraded.  An
    unreadable file yields no records and a warning.
    """
    try:
        source = source_file.path.read_text(encoding="utf-8", errors="ignore")
    except OSError as exc:
        logger.warning("Could not read %s: %s", source_file.path, exc)
        return [], ParseWarning(str(source_file.path), f"unreadable: {exc}")

    result = primary.extract_imports(source, source_file.path)
    if isinstance(result, Parsed):
        return list(result.records), None

    logger.warning(
        "Structured parse failed for %s (%s); using regex fallback",
        source_file.path, result.reason,
    )
    degraded = fallback.extract_imports(source, source_file.path)
    records = list(degraded.records) if isinstance(degraded, Parsed) else []
    return records, ParseWarning(str(source_file.path), result.reason)


# ===================================================================
# Shared Helpers
# ===================================================================

def _text(node: Any) -> str:
    return node.text.decode("utf-8")


def _string_value(node: Any) -> str:
    """Literal value of a ``string`` node without its quotes."""
    raw = _text(node)
    if len(raw) >= 2 and raw[0] in "'\"" and raw[-1] == raw[0]:
        return raw[1:-1]
    return raw


def _first_child_text(node: Any, child_type: str) -> str:
    for child in node.children:
        if child.type == child_type:
            return _text(child)
    return ""


def _has_type_keyword(node: Any) -> bool:
    """True for ``import type`` / ``export type`` / ``{ type X }`` forms."""
    return any(child.type in ("type", "typeof") for child in node.children)


def _specifier_symbol(spec: Any, declaration_type_only: bool) -> ImportedSymbol:
    name_node = spec.child_by_field_name("name")
    alias_node = spec.child_by_field_name("alias")
    name = _module_export_name(name_node) if name_node is not None else _text(spec)
    local = _module_export_name(alias_node) if alias_node is not None else name
    return ImportedSymbol(
        name=name,
        local=local,
        is_type_only=declaration_type_only or _has_type_keyword(spec),
    )


def _module_export_name(node: Any) -> str:
    if node.type == "string":
        return _string_value(node)
    return _text(node)


def _binding_symbols(call: Any) -> List[ImportedSymbol]:
    """Symbols bound by ``const {a, b} = require(...)`` style declarations."""
    parent = call.parent
    while parent is not None and parent.type in ("await_expression", "parenthesized_expression"):
        parent = parent.parent
    if parent is None or parent.type != "variable_declarator":
        return []

    target = parent.child_by_field_name("name")
    if target is None:
        return []
    if target.type == "identifier":
        return [ImportedSymbol("*", _text(target))]
    if target.type != "object_pattern":
        return []

    symbols: List[ImportedSymbol] = []
    for prop in target.named_children:
        if prop.type == "shorthand_property_identifier_pattern":
            symbols.append(ImportedSymbol(_text(prop), _text(prop)))
        elif prop.type == "pair_pattern":
            key = prop.child_by_field_name("key")
            value = prop.child_by_field_name("value")
            if key is not None:
                name = _module_export_name(key)
                local = _text(value) if value is not None and value.type == "identifier" else name
                symbols.append(ImportedSymbol(name, local))
        elif prop.type == "object_assignment_pattern":
            left = prop.child_by_field_name("left")
            if left is not None:
                symbols.append(ImportedSymbol(_text(left), _text(left)))
    return symbols


def _first_error_line(root: Any) -> int:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return root.start_point[0] + 1
