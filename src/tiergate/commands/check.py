"""
Check command handlers for tiergate CLI.

Commands:
    check       Run the conformance pipeline over components
    tiers       Show the tier convention in use
    classify    Show how each import of a source file is classified
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tiergate.analysis.classifier import TierClassifier
from tiergate.analysis.imports import ImportExtractor
from tiergate.analysis.resolver import ModuleResolver
from tiergate.analysis.tier_table import TierRuleTable, load_tier_table
from tiergate.engine.discovery import ComponentDiscovery
from tiergate.engine.report import EXIT_NOTHING_ANALYSED
from tiergate.engine.runner import CheckRunner
from tiergate.errors import TiergateError
from tiergate.utils.config import load_tiergate_config, resolve_tiers_file
from tiergate.utils.repo import find_repo_root

logger = logging.getLogger(__name__)


def load_environment(repo_root: Path, config_path: Optional[Path] = None) -> Tuple[Dict[str, Any], TierRuleTable]:
    """
    Load config and the tier table once, before any analysis.

    Raises:
        ConfigError, TierTableError
    """
    config = load_tiergate_config(repo_root, config_path)
    table = load_tier_table(resolve_tiers_file(repo_root, config))
    return config, table


class CheckCommand:
    """CLI handlers for checking components and inspecting the tier table."""

    def __init__(self, repo_root: Optional[Path] = None, config_path: Optional[Path] = None):
        self.repo_root = (repo_root or find_repo_root()).resolve()
        self.config_path = config_path

    def check(
        self,
        paths: Optional[List[Path]] = None,
        tier: Optional[int] = None,
        severity: Optional[str] = None,
        format: Optional[str] = None,
        workers: Optional[int] = None,
    ) -> int:
        """
        Run the full pipeline and print the report.

        Args:
            paths: Component directories or spec files (default: whole repo)
            tier: Only report components declaring this tier
            severity: "hard" or "all" (default from config)
            format: "table" or "json" (default from config)
            workers: Worker count (default from config)

        Returns:
            0 no blocking violations, 1 blocking violations, 2 nothing analysable
        """
        try:
            config, table = load_environment(self.repo_root, self.config_path)
            severity = severity or config["severity"]
            format = format or config["format"]

            components = ComponentDiscovery(self.repo_root, table, config).discover(paths)
            if not components:
                where = ", ".join(str(p) for p in paths) if paths else str(self.repo_root)
                print(f"Error: no *.spec.md files found under {where}", file=sys.stderr)
                return EXIT_NOTHING_ANALYSED

            report = CheckRunner(self.repo_root, config, table).run(components, tier=tier, workers=workers)
        except TiergateError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_NOTHING_ANALYSED

        if tier is not None and not report.results and not report.interrupted:
            print(f"Error: no components declare tier {tier}", file=sys.stderr)
            return EXIT_NOTHING_ANALYSED

        if format == "json":
            print(report.render_json(severity))
        else:
            print(report.render_table(severity))
        return report.exit_code(severity)

    def tiers(self, format: str = "table") -> int:
        """Print the tier convention."""
        try:
            _, table = load_environment(self.repo_root, self.config_path)
        except TiergateError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_NOTHING_ANALYSED

        if format == "json":
            print(json.dumps(table.to_dict(), indent=2))
            return 0

        print(f"Tier convention v{table.version} ({table.source})")
        print("=" * 60)
        for tier in table.tiers:
            print(f"\nTier {tier.level}: {tier.name}  [mock strategy: {tier.mock_strategy}]")
            if tier.summary:
                print(f"  {tier.summary}")
            print(f"  Required sections: {', '.join(tier.required_sections)}")
            for rule in tier.rules:
                suffix = "  (type-only)" if rule.type_only else ""
                print(f"    - {rule.pattern}{suffix}")
            if tier.forbidden:
                print(f"  Forbidden: {', '.join(tier.forbidden)}")
        return 0

    def classify(self, file: Path, format: str = "table") -> int:
        """Print each import of `file` with its canonical module and tier."""
        try:
            config, table = load_environment(self.repo_root, self.config_path)
            resolver = ModuleResolver.from_config(self.repo_root, config)
            edges = ImportExtractor(resolver).extract_file(file)
        except TiergateError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_NOTHING_ANALYSED
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error reading {file}: {e}", file=sys.stderr)
            return EXIT_NOTHING_ANALYSED

        classifier = TierClassifier(table)
        inference = classifier.infer(edges)
        rows = []
        for edge in edges:
            row = edge.to_dict()
            if edge.is_resolved:
                classification = classifier.classify(edge)
                row["tier"] = classification.tier
                row["rule"] = classification.rule.pattern if classification.rule else None
            else:
                row["tier"] = None
                row["rule"] = None
            rows.append(row)

        if format == "json":
            print(json.dumps({
                "file": str(file),
                "inferred_tier": inference.tier,
                "deciding_imports": inference.deciding_imports(),
                "imports": rows,
            }, indent=2))
            return 0

        print(f"{file}")
        print("-" * 60)
        if not rows:
            print("  (no imports)")
        for row in rows:
            tier = "?" if row["tier"] is None else str(row["tier"])
            target = row["module"] or "UNRESOLVED"
            rule = f"  [{row['rule']}]" if row["rule"] else ""
            kind = " type" if row["type_only"] else ""
            print(f"  L{row['line']:<4} tier {tier}{kind}  {row['specifier']} -> {target}{rule}")
        inferred = "unknown (unresolved imports)" if inference.tier is None else str(inference.tier)
        print(f"\nInferred tier: {inferred}")
        if inference.deciding:
            print(f"Set by: {', '.join(inference.deciding_imports())}")
        return 0
