"""
Import Graph Extractor
======================
Extracts import edges from TypeScript/JavaScript component source.

Recognised forms:
    import X from 'm'                 import { a, b as c } from 'm'
    import * as ns from 'm'           import X, { a } from 'm'
    import type { T } from 'm'       import { type T, a } from 'm'
    import 'm'                       export { a } from 'm'
    export * from 'm'                 import('m')          require('m')

Statements may span several lines. Comments are stripped before matching.
Every edge is resolved through ModuleResolver to its canonical module path.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from tiergate.analysis.models import ImportEdge, ResolutionStatus
from tiergate.analysis.resolver import ModuleResolver, strip_js_comments

logger = logging.getLogger(__name__)

_SPEC = r"""['"]([^'"\n]+)['"]"""

_IMPORT_FROM = re.compile(
    r"(?<![\w$.])import\s+(type\s+)?((?:[\w$]+\s*,\s*)?(?:\*\s*as\s+[\w$]+|\{[^}]*\}|[\w$]+))\s*from\s*" + _SPEC,
    re.DOTALL,
)
_IMPORT_BARE = re.compile(r"(?<![\w$.])import\s*" + _SPEC)
_EXPORT_FROM = re.compile(
    r"(?<![\w$.])export\s+(type\s+)?(\*(?:\s*as\s+[\w$]+)?|\{[^}]*\})\s*from\s*" + _SPEC,
    re.DOTALL,
)
_DYNAMIC = re.compile(r"(?<![\w$.])(?:import|require)\s*\(\s*" + _SPEC + r"\s*\)")


@dataclass
class RawImport:
    """An import statement before resolution."""

    specifier: str
    symbol: str
    type_only: bool
    line: int


def parse_import_statements(text: str) -> List[RawImport]:
    """
    Parse import statements from source text.

    Pure function over text: no filesystem access, no resolution.

    Args:
        text: Full source of a .ts/.tsx/.js/.jsx file

    Returns:
        One RawImport per imported symbol, in source order
    """
    code = strip_js_comments(text)
    found: List[Tuple[int, RawImport]] = []
    claimed: List[Tuple[int, int]] = []

    for match in _IMPORT_FROM.finditer(code):
        stmt_type = bool(match.group(1))
        line = _line_of(code, match.start())
        for symbol, type_only in _clause_symbols(match.group(2), stmt_type):
            found.append((match.start(), RawImport(match.group(3), symbol, type_only, line)))
        claimed.append(match.span())

    for match in _EXPORT_FROM.finditer(code):
        stmt_type = bool(match.group(1))
        line = _line_of(code, match.start())
        clause = match.group(2)
        if clause.startswith("*"):
            symbols = [("*", stmt_type)]
        else:
            symbols = _clause_symbols(clause, stmt_type)
        for symbol, type_only in symbols:
            found.append((match.start(), RawImport(match.group(3), symbol, type_only, line)))
        claimed.append(match.span())

    for match in _IMPORT_BARE.finditer(code):
        if _inside(match.start(), claimed):
            continue
        found.append((match.start(), RawImport(match.group(1), "", False, _line_of(code, match.start()))))

    for match in _DYNAMIC.finditer(code):
        found.append((match.start(), RawImport(match.group(1), "*", False, _line_of(code, match.start()))))

    found.sort(key=lambda item: item[0])
    return [raw for _, raw in found]


def _clause_symbols(clause: str, stmt_type: bool) -> List[Tuple[str, bool]]:
    """Split an import clause into (original symbol, type_only) pairs."""
    symbols: List[Tuple[str, bool]] = []
    clause = clause.strip()

    default_match = re.match(r"([\w$]+)\s*(?:,|$)", clause)
    if default_match and not clause.startswith("{"):
        symbols.append(("default", stmt_type))
        clause = clause[default_match.end():].strip()

    if clause.startswith("*"):
        symbols.append(("*", stmt_type))
    elif clause.startswith("{"):
        for entry in clause.strip("{}").split(","):
            entry = entry.strip()
            if not entry:
                continue
            inline_type = False
            if re.match(r"type\s+[\w$]", entry):
                inline_type = True
                entry = entry[4:].strip()
            original = re.split(r"\s+as\s+", entry)[0].strip()
            symbols.append((original, stmt_type or inline_type))
    return symbols


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _inside(offset: int, spans: List[Tuple[int, int]]) -> bool:
    return any(start <= offset < end for start, end in spans)


class ImportExtractor:
    """
    Extracts and resolves the import edges of component source files.

    Args:
        resolver: Module resolver for the repository
    """

    def __init__(self, resolver: ModuleResolver):
        self.resolver = resolver

    def extract(self, text: str, path: Path) -> List[ImportEdge]:
        """
        Extract resolved import edges from source text.

        Args:
            text: Source text
            path: Path of the file the text came from

        Returns:
            List of ImportEdge, unresolved edges included
        """
        source = self._relative(path)
        edges: List[ImportEdge] = []
        for raw in parse_import_statements(text):
            resolution = self.resolver.resolve(raw.specifier, path, raw.symbol)
            edges.append(
                ImportEdge(
                    source=source,
                    specifier=raw.specifier,
                    symbol=raw.symbol,
                    module=resolution.module,
                    status=resolution.status,
                    type_only=raw.type_only,
                    line=raw.line,
                    via=resolution.via,
                )
            )

        unresolved = sum(1 for e in edges if e.status == ResolutionStatus.UNRESOLVED)
        logger.debug("%s: %d import edges (%d unresolved)", source, len(edges), unresolved)
        return edges

    def extract_file(self, path: Path, encoding: Optional[str] = "utf-8") -> List[ImportEdge]:
        """Read `path` and extract its import edges. Read errors propagate."""
        return self.extract(path.read_text(encoding=encoding), path)

    def _relative(self, path: Path) -> str:
        rel = os.path.relpath(path.resolve(), self.resolver.repo_root)
        return Path(rel).as_posix()
