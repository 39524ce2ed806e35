"""
Conformance Engine
==================
Diffs a component's spec against its code and its inferred tier.

Stages, run in order for every component:

    SectionsCheck       required sections for the declared tier are present
    TierCheck           inferred tier <= declared tier, no forbidden imports
    PropsCheck          spec props vs code props (both directions, types)
    StatesCheck         code states documented; spec-only states noted
    MockStrategyCheck   fixture mocks for tiers 0-3, request handlers for 4-6
    AccessibilityCheck  interactive elements have accessibility notes

Every stage runs regardless of what earlier stages found.

Severity:
- error: blocks the CI gate (TierMismatch, MissingRequiredSection)
- warning: drift that should be fixed
- info: low-confidence findings and notes
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from tiergate.analysis.classifier import TierClassifier
from tiergate.analysis.models import ComponentRecord, Confidence
from tiergate.analysis.tier_table import TierRuleTable
from tiergate.analysis.typescript import normalize_type

logger = logging.getLogger(__name__)


class Severity(Enum):
    """Severity level for violations."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ViolationKind(Enum):
    """Types of conformance violations."""

    TIER_MISMATCH = "TierMismatch"  # import from a higher tier, or a forbidden import
    MISSING_REQUIRED_SECTION = "MissingRequiredSection"  # spec lacks a section its tier requires
    MISSING_MOCK_FILE = "MissingMockFile"  # tier 4-6 without a companion mock file
    WRONG_MOCK_STRATEGY = "WrongMockStrategy"  # handler mocks in tiers 0-3, or none in 4-6
    PROP_TYPE_DRIFT = "PropTypeDrift"  # spec and code disagree on a prop's type
    UNDOCUMENTED_PROP = "UndocumentedProp"  # prop in code, not in spec
    SPEC_DRIFT = "SpecDrift"  # prop in spec, not in code
    MISSING_STATE = "MissingState"  # state in code, not in spec
    ASPIRATIONAL_STATE = "AspirationalState"  # state in spec, not detected in code
    ACCESSIBILITY_GAP = "AccessibilityGap"  # interactive elements, no accessibility notes
    UNRESOLVED_IMPORT = "UnresolvedImport"  # import that could not be located
    MANUAL_REVIEW = "ManualReview"  # spec content that could not be parsed
    TYPE_ONLY_IMPORT = "TypeOnlyImport"  # value import from a type-only module


# Report ordering: lower sorts first
_RANK = {
    ViolationKind.TIER_MISMATCH: 0,
    ViolationKind.MISSING_MOCK_FILE: 1,
    ViolationKind.PROP_TYPE_DRIFT: 2,
}
OTHER_RANK = 3

# States every component has; never reported as aspirational
PASSIVE_STATES = frozenset({"default", "idle", "normal", "base", "hover", "focus", "focus-visible", "active"})


@dataclass
class Violation:
    """
    A mismatch between declared intent and actual structure.

    Attributes:
        kind: What kind of violation
        severity: error, warning or info
        component: Component identifier
        message: Human-readable detail
        location: File (and line) the violation points at
        confidence: certain, or heuristic when it rests on inferred evidence
        suggestion: Suggested fix
    """

    kind: ViolationKind
    severity: Severity
    component: str
    message: str
    location: Optional[str] = None
    confidence: Confidence = Confidence.CERTAIN
    suggestion: Optional[str] = None

    @property
    def is_hard(self) -> bool:
        return self.severity == Severity.ERROR

    @property
    def rank(self) -> int:
        return _RANK.get(self.kind, OTHER_RANK)

    def sort_key(self):
        return (self.rank, self.kind.value, self.message)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "component": self.component,
            "message": self.message,
            "location": self.location,
            "confidence": self.confidence.value,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        prefix = {
            Severity.ERROR: "ERROR",
            Severity.WARNING: "WARN",
            Severity.INFO: "INFO",
        }[self.severity]
        location_str = f" at {self.location}" if self.location else ""
        return f"[{prefix}] {self.kind.value}: {self.message}{location_str}"


class ConformanceEngine:
    """
    Run the conformance stages over component records.

    Args:
        table: Tier rule table
        classifier: Classifier built on the same table
        repo_root: Locations are reported relative to this directory
    """

    def __init__(self, table: TierRuleTable, classifier: TierClassifier, repo_root: Optional[Path] = None):
        self.table = table
        self.classifier = classifier
        self.repo_root = repo_root
        self.stages: List[Callable[[ComponentRecord], List[Violation]]] = [
            self.check_sections,
            self.check_tier,
            self.check_props,
            self.check_states,
            self.check_mock_strategy,
            self.check_accessibility,
        ]

    def check(self, record: ComponentRecord) -> List[Violation]:
        """Run every stage and collect all violations."""
        violations: List[Violation] = []
        for stage in self.stages:
            try:
                violations.extend(stage(record))
            except Exception as e:
                logger.warning("%s: %s failed: %s", record.id, stage.__name__, e, exc_info=True)
                violations.append(
                    Violation(
                        ViolationKind.MANUAL_REVIEW,
                        Severity.INFO,
                        str(record.id),
                        f"{stage.__name__} could not complete: {e}",
                        location=self._spec_location(record),
                    )
                )
        return violations

    # ------------------------------------------------------------------ stages

    def check_sections(self, record: ComponentRecord) -> List[Violation]:
        spec = record.spec
        component = str(record.id)
        location = self._spec_location(record)

        if spec.tier is None:
            detail = spec.tier_error or "no tier declared"
            suggestion = "Add a '## Tier' section"
            if record.inferred_tier is not None:
                suggestion += f" (imports suggest tier {record.inferred_tier})"
            return [
                Violation(
                    ViolationKind.MISSING_REQUIRED_SECTION,
                    Severity.ERROR,
                    component,
                    f"Missing required section 'tier': {detail}",
                    location=location,
                    suggestion=suggestion,
                )
            ]

        tier = self.table.get(spec.tier)
        return [
            Violation(
                ViolationKind.MISSING_REQUIRED_SECTION,
                Severity.ERROR,
                component,
                f"Tier {tier.level} ({tier.name}) spec is missing required section '{section}'",
                location=location,
                suggestion=f"Add a '## {section.replace('-', ' ').title()}' section",
            )
            for section in tier.required_sections
            if not spec.has_section(section)
        ]

    def check_tier(self, record: ComponentRecord) -> List[Violation]:
        component = str(record.id)
        violations = [
            Violation(
                ViolationKind.UNRESOLVED_IMPORT,
                Severity.WARNING,
                component,
                f"Cannot resolve '{edge.specifier}'; tier inference needs manual review",
                location=edge.location,
                suggestion="Fix the path or add the alias to .tiergate/config.yaml",
            )
            for edge in record.inference.unresolved
        ]

        declared = record.declared_tier
        if declared is None:
            return violations

        resolved = [e for e in record.code.imports if e.is_resolved]
        excess = [c for c in map(self.classifier.classify, resolved) if c.tier > declared]
        if excess:
            top = max(c.tier for c in excess)
            shown = ", ".join(f"'{c.edge.specifier}' (tier {c.tier})" for c in excess[:5])
            if len(excess) > 5:
                shown += f" and {len(excess) - 5} more"
            message = f"Declared tier {declared} but imports require tier {top}: {shown}"
            if record.inferred_tier is None:
                message += "; some imports are unresolved, so the required tier may be higher"
            violations.append(
                Violation(
                    ViolationKind.TIER_MISMATCH,
                    Severity.ERROR,
                    component,
                    message,
                    location=excess[0].edge.location,
                    suggestion=f"Declare tier {top}, or move the tier-{top} dependency into a higher-tier parent",
                )
            )

        counted = {id(c.edge) for c in excess}
        definition = self.table.get(declared)
        for edge in self.classifier.forbidden_matches(declared, resolved):
            if id(edge) in counted:
                continue
            violations.append(
                Violation(
                    ViolationKind.TIER_MISMATCH,
                    Severity.ERROR,
                    component,
                    f"Tier {declared} ({definition.name}) components must not import '{edge.specifier}'",
                    location=edge.location,
                )
            )

        for classification in self.classifier.value_imports_of_types(resolved):
            edge = classification.edge
            violations.append(
                Violation(
                    ViolationKind.TYPE_ONLY_IMPORT,
                    Severity.WARNING,
                    component,
                    f"'{edge.symbol}' from '{edge.specifier}' is imported as a value; "
                    f"modules matching '{classification.rule.pattern}' are type-only",
                    location=edge.location,
                    suggestion=f"import type {{ {edge.symbol} }} from '{edge.specifier}'",
                )
            )
        return violations

    def check_props(self, record: ComponentRecord) -> List[Violation]:
        spec, code = record.spec, record.code
        component = str(record.id)
        spec_location = self._spec_location(record)
        code_location = self._path(code.path)

        violations = [
            Violation(
                ViolationKind.MANUAL_REVIEW,
                Severity.INFO,
                component,
                f"Could not parse spec line, review by hand: {line}",
                location=spec_location,
            )
            for line in spec.review_lines
        ]
        if not spec.has_section("props"):
            return violations

        documented = set(spec.props) | set(spec.callbacks)
        for name in sorted(code.props):
            if name in documented:
                continue
            prop = code.props[name]
            heuristic = prop.confidence == Confidence.HEURISTIC
            violations.append(
                Violation(
                    ViolationKind.UNDOCUMENTED_PROP,
                    Severity.INFO if heuristic else Severity.WARNING,
                    component,
                    f"Prop '{name}' ({prop.type}) is not documented in the spec",
                    location=code_location,
                    confidence=prop.confidence,
                    suggestion=f"Document '{name}' under ## Props"
                    + (" or ## Callbacks" if prop.is_function else ""),
                )
            )

        for name in sorted(documented):
            if name in code.props:
                continue
            violations.append(
                Violation(
                    ViolationKind.SPEC_DRIFT,
                    Severity.WARNING,
                    component,
                    f"Spec documents '{name}' but the component has no such prop",
                    location=spec_location,
                    suggestion=f"Remove '{name}' from the spec or add it to the props type",
                )
            )

        for name in sorted(set(spec.props) & set(code.props)):
            documented_prop, actual = spec.props[name], code.props[name]
            if actual.confidence == Confidence.HEURISTIC or documented_prop.type == "unknown":
                continue
            problems = []
            spec_type, code_type = normalize_type(documented_prop.type), normalize_type(actual.type)
            if spec_type != code_type:
                problems.append(f"spec says `{documented_prop.type}`, code says `{actual.type}`")
            if documented_prop.optional != actual.optional:
                problems.append(
                    f"{'optional' if documented_prop.optional else 'required'} in spec, "
                    f"{'optional' if actual.optional else 'required'} in code"
                )
            if problems:
                violations.append(
                    Violation(
                        ViolationKind.PROP_TYPE_DRIFT,
                        Severity.WARNING,
                        component,
                        f"Prop '{name}': " + "; ".join(problems),
                        location=spec_location,
                    )
                )
        return violations

    def check_states(self, record: ComponentRecord) -> List[Violation]:
        spec, code = record.spec, record.code
        if not spec.has_section("states"):
            return []
        component = str(record.id)

        violations = []
        for name in sorted(set(code.states) - set(spec.states)):
            state = code.states[name]
            heuristic = state.confidence == Confidence.HEURISTIC
            violations.append(
                Violation(
                    ViolationKind.MISSING_STATE,
                    Severity.INFO if heuristic else Severity.WARNING,
                    component,
                    f"State '{name}' ({state.description}) is not documented in the spec",
                    location=self._path(code.path),
                    confidence=state.confidence,
                    suggestion=f"Add '- {name}: ...' under ## States",
                )
            )
        for name in sorted(set(spec.states) - set(code.states) - PASSIVE_STATES):
            violations.append(
                Violation(
                    ViolationKind.ASPIRATIONAL_STATE,
                    Severity.INFO,
                    component,
                    f"Spec describes state '{name}' but no branch for it was found in code",
                    location=self._spec_location(record),
                    confidence=Confidence.HEURISTIC,
                )
            )
        return violations

    def check_mock_strategy(self, record: ComponentRecord) -> List[Violation]:
        """At most one violation per component."""
        declared = record.declared_tier
        if declared is None:
            return []
        tier = self.table.get(declared)
        component = str(record.id)

        if not tier.requires_handlers:
            references = record.code.handler_references + record.companion_handlers
            if not references:
                return []
            shown = ", ".join(references[:3]) + (" ..." if len(references) > 3 else "")
            return [
                Violation(
                    ViolationKind.WRONG_MOCK_STRATEGY,
                    Severity.WARNING,
                    component,
                    f"Tier {declared} ({tier.name}) uses static fixtures, "
                    f"but request handlers are referenced: {shown}",
                    location=self._path(record.code.path),
                    suggestion="Pass fixture data through props instead of mocking requests",
                )
            ]

        if not record.mock_files:
            patterns = ", ".join(self.table.mock_file_patterns) or "*.mock.*"
            return [
                Violation(
                    ViolationKind.MISSING_MOCK_FILE,
                    Severity.WARNING,
                    component,
                    f"Tier {declared} ({tier.name}) requires a companion mock-data file ({patterns})",
                    location=self._path(record.spec.path.parent) if record.spec.path else None,
                    suggestion=f"Create {record.id.name}.mock.ts with request handlers",
                )
            ]

        if not record.mock_defines_handlers:
            return [
                Violation(
                    ViolationKind.WRONG_MOCK_STRATEGY,
                    Severity.INFO,
                    component,
                    f"Tier {declared} ({tier.name}) mocks should simulate requests, "
                    f"but no request handlers were found in the companion files",
                    location=self._path(record.mock_files[0]),
                    confidence=Confidence.HEURISTIC,
                )
            ]
        return []

    def check_accessibility(self, record: ComponentRecord) -> List[Violation]:
        elements = record.code.interactive_elements
        if not elements or record.spec.accessibility:
            return []
        return [
            Violation(
                ViolationKind.ACCESSIBILITY_GAP,
                Severity.WARNING,
                str(record.id),
                f"Renders interactive elements ({', '.join(elements)}) "
                f"but the spec has no accessibility notes",
                location=self._spec_location(record),
                suggestion="Add a '## Accessibility' section (labels, keyboard, focus)",
            )
        ]

    # ----------------------------------------------------------------- helpers

    def _spec_location(self, record: ComponentRecord) -> Optional[str]:
        return self._path(record.spec.path)

    def _path(self, path: Optional[Path]) -> Optional[str]:
        if path is None:
            return None
        if self.repo_root is None:
            return Path(path).as_posix()
        return Path(os.path.relpath(Path(path).resolve(), self.repo_root.resolve())).as_posix()
