"""
Tier Rule Table
===============
The seven-tier lattice and the module patterns that classify imports.

The table is immutable and versioned. It is loaded once at process start
(from the packaged convention or a user override named in config) and
passed explicitly to the classifier and the conformance engine.

Tiers:
    0 primitive    library primitives, class-name utilities
    1 composite    compositions of primitives
    2 domain       domain-aware display, domain types imported as types only
    3 interactive  domain components owning interaction logic
    4 connected    actions, services, contexts, data fetching
    5 form         schema-validated forms with server actions
    6 page         routing and authentication
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import jsonschema
import yaml

from tiergate.errors import TierTableError

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).parent.parent
DEFAULT_CONVENTION = PACKAGE_DIR / "conventions" / "tiers.convention.yaml"
TIERS_SCHEMA = PACKAGE_DIR / "schemas" / "tiers.schema.json"

MIN_TIER = 0
MAX_TIER = 6


def module_matches(module: str, pattern: str) -> bool:
    """
    Match a canonical module path against a tier pattern.

    "*/actions/*" matches both "src/lib/actions/user" and "actions/user".
    """
    return fnmatchcase(module, pattern) or fnmatchcase("/" + module, pattern)


@dataclass(frozen=True)
class TierRule:
    """A module pattern that classifies matching imports into a tier."""

    pattern: str
    tier: int
    type_only: bool = False

    def matches(self, module: str) -> bool:
        return module_matches(module, self.pattern)


@dataclass(frozen=True)
class TierDefinition:
    """
    One level of the lattice.

    Attributes:
        level: 0-6
        name: Short name (primitive, composite, ...)
        summary: One-line description
        mock_strategy: "fixture" (static props) or "handlers" (request-handler simulation)
        required_sections: Spec sections a component of this tier must document
        rules: Patterns that classify an import into this tier
        forbidden: Patterns a component of this tier must never import
    """

    level: int
    name: str
    summary: str
    mock_strategy: str
    required_sections: Tuple[str, ...]
    rules: Tuple[TierRule, ...]
    forbidden: Tuple[str, ...] = ()

    @property
    def requires_handlers(self) -> bool:
        return self.mock_strategy == "handlers"

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "level": self.level,
            "name": self.name,
            "summary": self.summary,
            "mock_strategy": self.mock_strategy,
            "required_sections": list(self.required_sections),
            "modules": [
                {"pattern": r.pattern, "type_only": r.type_only} if r.type_only else r.pattern
                for r in self.rules
            ],
            "forbidden": list(self.forbidden),
        }


@dataclass(frozen=True)
class TierRuleTable:
    """
    Immutable tier lattice plus mock-file conventions.

    Attributes:
        version: Convention version string
        tiers: Definitions indexed by level (tiers[n].level == n)
        mock_file_patterns: Filename globs of companion mock-data files
        handler_modules: Module patterns that indicate request-handler mocking
        source: Where the table was loaded from
    """

    version: str
    tiers: Tuple[TierDefinition, ...]
    mock_file_patterns: Tuple[str, ...] = ()
    handler_modules: Tuple[str, ...] = ()
    source: str = "<builtin>"

    def __post_init__(self):
        levels = [t.level for t in self.tiers]
        if levels != list(range(MIN_TIER, MAX_TIER + 1)):
            raise TierTableError(f"Tier levels must be exactly 0-6 in order, got {levels}")

    def get(self, level: int) -> TierDefinition:
        if not MIN_TIER <= level <= MAX_TIER:
            raise KeyError(level)
        return self.tiers[level]

    @property
    def rules(self) -> Tuple[TierRule, ...]:
        """All classification rules, lowest tier first."""
        return tuple(rule for tier in self.tiers for rule in tier.rules)

    def matching_rules(self, module: str) -> List[TierRule]:
        return [rule for rule in self.rules if rule.matches(module)]

    def is_mock_file(self, filename: str) -> bool:
        return any(fnmatchcase(filename, p) for p in self.mock_file_patterns)

    def is_handler_module(self, module: str) -> bool:
        return any(module_matches(module, p) for p in self.handler_modules)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "source": self.source,
            "mock_file_patterns": list(self.mock_file_patterns),
            "handler_modules": list(self.handler_modules),
            "tiers": [t.to_dict() for t in self.tiers],
        }


def load_tier_table(path: Optional[Path] = None) -> TierRuleTable:
    """
    Load and validate a tier convention file.

    Args:
        path: Convention YAML (default: packaged tiers.convention.yaml)

    Returns:
        Frozen TierRuleTable

    Raises:
        TierTableError: If the file is unreadable or fails schema validation.
    """
    path = path or DEFAULT_CONVENTION
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise TierTableError(f"Cannot read tier convention {path}: {e}") from e

    with open(TIERS_SCHEMA, encoding="utf-8") as f:
        schema = json.load(f)

    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        where = " -> ".join(str(p) for p in e.path) or "<root>"
        raise TierTableError(f"{path}: invalid tier convention at {where}: {e.message}") from e

    table = build_tier_table(data, source=str(path))
    logger.debug("Loaded tier table %s (version %s)", path, table.version)
    return table


def build_tier_table(data: Dict, source: str = "<dict>") -> TierRuleTable:
    """Build a TierRuleTable from an already-validated convention mapping."""
    tiers = sorted(data["tiers"], key=lambda t: t["level"])
    definitions = []
    for entry in tiers:
        level = entry["level"]
        definitions.append(
            TierDefinition(
                level=level,
                name=entry["name"],
                summary=entry.get("summary", ""),
                mock_strategy=entry["mock_strategy"],
                required_sections=tuple(entry["required_sections"]),
                rules=tuple(_build_rules(entry.get("modules", []), level)),
                forbidden=tuple(entry.get("forbidden", [])),
            )
        )

    return TierRuleTable(
        version=str(data["version"]),
        tiers=tuple(definitions),
        mock_file_patterns=tuple(data.get("mock_file_patterns", [])),
        handler_modules=tuple(data.get("handler_modules", [])),
        source=source,
    )


def _build_rules(modules: Iterable, level: int) -> List[TierRule]:
    rules = []
    for item in modules:
        if isinstance(item, str):
            rules.append(TierRule(pattern=item, tier=level))
        else:
            rules.append(
                TierRule(pattern=item["pattern"], tier=level, type_only=item.get("type_only", False))
            )
    return rules
