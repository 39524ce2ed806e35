"""
Report Builder
==============
Aggregates violations per component into a pass/fail report.

Ordering:
- violations: TierMismatch, MissingMockFile, PropTypeDrift, then the rest
- components: by their worst violation, then by identifier; components
  that could not be analysed come first, clean components last

Exit codes:
    0  no blocking violations
    1  hard violations (--severity hard), or any violation (--severity all)
    2  nothing could be analysed
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tiergate.analysis.models import ComponentId
from tiergate.engine.conformance import OTHER_RANK, Severity, Violation

SEVERITY_MODES = ("hard", "all")

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_NOTHING_ANALYSED = 2

_ERROR_RANK = -1
_CLEAN_RANK = OTHER_RANK + 1


@dataclass
class ComponentResult:
    """
    Outcome of checking one component.

    Attributes:
        id: Component identifier
        declared_tier: Tier from the spec (None if missing)
        inferred_tier: Tier from imports (None if unknown)
        violations: Violations found
        error: Why the component could not be analysed, if it could not
        deciding_imports: Imports that set the inferred tier
    """

    id: ComponentId
    declared_tier: Optional[int] = None
    inferred_tier: Optional[int] = None
    violations: List[Violation] = field(default_factory=list)
    error: Optional[str] = None
    deciding_imports: List[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.error:
            return "error"
        return "violations" if self.violations else "clean"

    @property
    def has_hard_violations(self) -> bool:
        return any(v.is_hard for v in self.violations)

    @property
    def worst_rank(self) -> int:
        if self.error:
            return _ERROR_RANK
        return min((v.rank for v in self.violations), default=_CLEAN_RANK)

    def sort_key(self):
        return (self.worst_rank, str(self.id))

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "component": str(self.id),
            "name": self.id.name,
            "directory": self.id.directory,
            "status": self.status,
            "declared_tier": self.declared_tier,
            "inferred_tier": self.inferred_tier,
            "deciding_imports": list(self.deciding_imports),
            "error": self.error,
            "violations": [v.to_dict() for v in sorted(self.violations, key=Violation.sort_key)],
        }


@dataclass
class CheckReport:
    """
    Results for every analysed component.

    Attributes:
        results: One entry per component
        interrupted: True if the run was cancelled; unanalysed components are absent
        table_version: Version of the tier convention used
        pending: Components discovered but not analysed (interrupted runs)
    """

    results: List[ComponentResult] = field(default_factory=list)
    interrupted: bool = False
    table_version: Optional[str] = None
    pending: int = 0

    def sorted_results(self) -> List[ComponentResult]:
        return sorted(self.results, key=ComponentResult.sort_key)

    @property
    def violations(self) -> List[Violation]:
        return [v for r in self.results for v in r.violations]

    def count(self, severity: Severity) -> int:
        return sum(1 for v in self.violations if v.severity == severity)

    @property
    def analysed(self) -> List[ComponentResult]:
        return [r for r in self.results if r.status != "error"]

    def exit_code(self, severity: str = "hard") -> int:
        """
        Exit status for a CI gate.

        Args:
            severity: "hard" fails on error-level violations only;
                "all" fails on any violation, info included
        """
        if severity not in SEVERITY_MODES:
            raise ValueError(f"Unknown severity mode: {severity}")
        analysed = self.analysed
        if not analysed:
            return EXIT_NOTHING_ANALYSED
        if severity == "all":
            failing = any(r.violations for r in analysed)
        else:
            failing = any(r.has_hard_violations for r in analysed)
        return EXIT_VIOLATIONS if failing else EXIT_OK

    def summary(self) -> Dict:
        statuses = [r.status for r in self.results]
        return {
            "components": len(self.results),
            "clean": statuses.count("clean"),
            "with_violations": statuses.count("violations"),
            "errors": statuses.count("error"),
            "violations": {
                "error": self.count(Severity.ERROR),
                "warning": self.count(Severity.WARNING),
                "info": self.count(Severity.INFO),
            },
        }

    def to_dict(self, severity: str = "hard") -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tier_table_version": self.table_version,
            "severity": severity,
            "exit_code": self.exit_code(severity),
            "interrupted": self.interrupted,
            "pending": self.pending,
            "summary": self.summary(),
            "components": [r.to_dict() for r in self.sorted_results()],
        }

    def render_json(self, severity: str = "hard") -> str:
        return json.dumps(self.to_dict(severity), indent=2)

    def render_table(self, severity: str = "hard") -> str:
        """Plain-text report: one block per component, one row per violation."""
        lines = ["=" * 60, "Tier & Spec Conformance Report", "=" * 60, ""]
        summary = self.summary()
        lines.append(
            f"Components: {summary['components']}  "
            f"(clean {summary['clean']}, with violations {summary['with_violations']}, "
            f"errors {summary['errors']})"
        )
        counts = summary["violations"]
        lines.append(f"Violations: {counts['error']} error, {counts['warning']} warning, {counts['info']} info")
        if self.table_version:
            lines.append(f"Tier convention: v{self.table_version}")
        if self.interrupted:
            lines.append(f"Interrupted: {self.pending} component(s) not analysed")
        lines.append("")

        for result in self.sorted_results():
            lines.extend(_component_block(result))

        code = self.exit_code(severity)
        if code == EXIT_NOTHING_ANALYSED:
            lines.append("Nothing could be analysed")
        elif code == EXIT_VIOLATIONS:
            lines.append("FAILED" if severity == "hard" else "FAILED (--severity all)")
        else:
            lines.append("PASSED" + (" with warnings" if self.violations else ""))
        return "\n".join(lines)


def _component_block(result: ComponentResult) -> List[str]:
    declared = "-" if result.declared_tier is None else str(result.declared_tier)
    inferred = "unknown" if result.inferred_tier is None else str(result.inferred_tier)
    header = f"{result.id}  [{result.status}]"
    if result.status != "error":
        header += f"  declared tier {declared}, inferred tier {inferred}"
    lines = [header, "-" * 60]
    if result.deciding_imports:
        lines.append(f"  tier set by {', '.join(result.deciding_imports)}")

    if result.error:
        lines.append(f"  ERROR  {result.error}")
    elif not result.violations:
        lines.append("  clean")
    else:
        rows = [
            (v.severity.value.upper(), v.kind.value, v.message, v.location or "")
            for v in sorted(result.violations, key=Violation.sort_key)
        ]
        sev_width = max(len(r[0]) for r in rows)
        kind_width = max(len(r[1]) for r in rows)
        for sev, kind, message, location in rows:
            line = f"  {sev:<{sev_width}}  {kind:<{kind_width}}  {message}"
            if location:
                line += f"  ({location})"
            lines.append(line)
    lines.append("")
    return lines
