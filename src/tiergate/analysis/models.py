"""
Component Records
=================
Data types shared by the analysis pipeline.

Each checker run builds these fresh from the files on disk:
- ImportEdge: one import statement, resolved to a canonical module path
- SpecRecord: what a component's *.spec.md says it is
- CodeRecord: what the component's source says it is
- ComponentRecord: both of the above plus tier inference and companion files

Nothing here is persisted; records are discarded once the report is emitted.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Set


class Confidence(Enum):
    """How an introspected fact was obtained."""

    CERTAIN = "certain"  # read from a declaration (props interface, typed entry)
    HEURISTIC = "heuristic"  # inferred from naming conventions


class ResolutionStatus(Enum):
    """Outcome of resolving an import specifier."""

    RESOLVED = "resolved"  # project file located on disk
    EXTERNAL = "external"  # bare package specifier, canonical as written
    UNRESOLVED = "unresolved"  # alias or relative path that could not be located


@dataclass(frozen=True)
class ComponentId:
    """
    Identifier of a component: its name and repo-relative directory.

    Ordering follows (directory, name) so reports are stable.
    """

    name: str
    directory: str = ""

    def __str__(self) -> str:
        if self.directory in ("", "."):
            return self.name
        return f"{self.directory}/{self.name}"

    def sort_key(self):
        return (self.directory, self.name)


@dataclass
class ImportEdge:
    """
    A single imported symbol.

    Attributes:
        source: Repo-relative path of the importing file
        specifier: Module specifier exactly as written
        symbol: Imported name, "default", "*" for namespace/star, "" for side effects
        module: Canonical module path (None when unresolved)
        status: Resolution outcome
        type_only: True for `import type` / inline `type` specifiers
        line: 1-based line of the statement
        via: Barrel files followed to reach the canonical module
    """

    source: str
    specifier: str
    symbol: str
    module: Optional[str] = None
    status: ResolutionStatus = ResolutionStatus.EXTERNAL
    type_only: bool = False
    line: int = 0
    via: List[str] = field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        return self.status != ResolutionStatus.UNRESOLVED

    @property
    def location(self) -> str:
        return f"{self.source}:{self.line}" if self.line else self.source

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "specifier": self.specifier,
            "symbol": self.symbol,
            "module": self.module,
            "status": self.status.value,
            "type_only": self.type_only,
            "line": self.line,
            "via": list(self.via),
        }


@dataclass
class PropInfo:
    """A component prop: name, type text, optional flag and default."""

    name: str
    type: str = "unknown"
    optional: bool = False
    default: Optional[str] = None
    confidence: Confidence = Confidence.CERTAIN

    @property
    def is_function(self) -> bool:
        return is_function_type(self.type)


@dataclass
class StateInfo:
    """A visual state (loading, error, empty, ...) and how it is described or detected."""

    name: str
    description: str = ""
    confidence: Confidence = Confidence.CERTAIN


@dataclass
class CallbackInfo:
    """A callback prop and its parameter list."""

    name: str
    params: List[str] = field(default_factory=list)
    confidence: Confidence = Confidence.CERTAIN


@dataclass
class SpecRecord:
    """
    Structured content of a *.spec.md file.

    Attributes:
        name: Component name from the H1 heading or front matter
        path: Spec file path
        tier: Declared tier, None if absent or unparseable
        tier_error: Why the tier could not be read, if it could not
        sections: Normalised keys of every section present
        props: Documented props by name
        states: Documented states by normalised name
        callbacks: Documented callbacks by name
        data_bindings: Entity.field references
        accessibility: Accessibility notes
        review_lines: Prop lines that could not be parsed
        section_text: Raw body text per section
    """

    name: str
    path: Optional[Path] = None
    tier: Optional[int] = None
    tier_error: Optional[str] = None
    sections: Set[str] = field(default_factory=set)
    props: Dict[str, PropInfo] = field(default_factory=dict)
    states: Dict[str, StateInfo] = field(default_factory=dict)
    callbacks: Dict[str, CallbackInfo] = field(default_factory=dict)
    data_bindings: List[str] = field(default_factory=list)
    accessibility: List[str] = field(default_factory=list)
    review_lines: List[str] = field(default_factory=list)
    section_text: Dict[str, str] = field(default_factory=dict)

    def has_section(self, key: str) -> bool:
        return key in self.sections


@dataclass
class CodeRecord:
    """
    Structured facts introspected from component source.

    Attributes:
        name: Exported component name
        path: Source file path
        props: Props from the props type (certain) or destructuring (heuristic)
        states: States from conditional-render branches
        callbacks: Function-typed props
        interactive_elements: Interactive elements rendered (button, input, ...)
        handler_references: Request-handler mocking references found in the source
        imports: Import edges extracted from the source
    """

    name: str
    path: Optional[Path] = None
    props: Dict[str, PropInfo] = field(default_factory=dict)
    states: Dict[str, StateInfo] = field(default_factory=dict)
    callbacks: Dict[str, CallbackInfo] = field(default_factory=dict)
    interactive_elements: List[str] = field(default_factory=list)
    handler_references: List[str] = field(default_factory=list)
    imports: List[ImportEdge] = field(default_factory=list)


@dataclass
class TierInference:
    """
    Result of classifying a component's imports.

    tier is None ("unknown") when any import could not be resolved; the
    unresolved edges are listed for manual review.
    """

    tier: Optional[int]
    deciding: List[ImportEdge] = field(default_factory=list)
    unresolved: List[ImportEdge] = field(default_factory=list)

    @property
    def is_known(self) -> bool:
        return self.tier is not None

    def deciding_imports(self) -> List[str]:
        """The imports that set the tier, as "'@/lib/actions/user' (line 3)"."""
        return [f"'{e.specifier}' (line {e.line})" for e in self.deciding]


@dataclass
class ComponentRecord:
    """
    Everything the Conformance Engine needs about one component.

    Attributes:
        id: Component identifier
        spec: Parsed spec
        code: Introspected source
        inference: Tier inferred from imports
        mock_files: Companion *.mock.* files
        story_files: Companion *.stories.* files
        companion_handlers: Request-handler references found in companion files
        mock_defines_handlers: True if any mock file defines request handlers
    """

    id: ComponentId
    spec: SpecRecord
    code: CodeRecord
    inference: TierInference
    mock_files: List[Path] = field(default_factory=list)
    story_files: List[Path] = field(default_factory=list)
    companion_handlers: List[str] = field(default_factory=list)
    mock_defines_handlers: bool = False

    @property
    def declared_tier(self) -> Optional[int]:
        return self.spec.tier

    @property
    def inferred_tier(self) -> Optional[int]:
        return self.inference.tier


_STATE_PREFIX = re.compile(r"^(?:is|has|show|should)(?=[A-Z])")


def normalize_state_name(name: str) -> str:
    """
    Normalise a state name so spec and code spellings compare equal.

    isLoading -> loading, hasError -> error, "Empty state" -> empty,
    isSubmitting -> submitting.
    """
    name = name.strip().strip("`*_").strip()
    name = _STATE_PREFIX.sub("", name)
    name = re.sub(r"[\s_]+", "-", name)
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "-", name).lower()
    name = re.sub(r"-state$", "", name)
    return name.strip("-")


def is_function_type(type_text: str) -> bool:
    """True if a TypeScript type expression is a function type."""
    text = type_text.strip()
    if text.startswith("(") and text.endswith(")") and "=>" not in _top_level(text[1:-1]):
        text = text[1:-1].strip()
    if text in ("Function", "VoidFunction") or text.startswith(("MouseEventHandler", "ChangeEventHandler")):
        return True
    return "=>" in _top_level(text)


def _top_level(text: str) -> str:
    """Return text with bracketed/nested regions (other than the outermost params) blanked."""
    out = []
    depth = 0
    for i, ch in enumerate(text):
        if ch in "{[<":
            depth += 1
        elif ch in "}]>" and depth > 0 and not (ch == ">" and i > 0 and text[i - 1] == "="):
            depth -= 1
            continue
        if depth == 0:
            out.append(ch)
    return "".join(out)
