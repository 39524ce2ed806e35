"""
Tier Classifier
===============
Maps import edges to tiers and infers a component's minimum tier.

    tier(edge)       = max tier over all rules matching the canonical module, else 0
    inferred tier    = max tier(edge) over the component's resolved edges
    zero imports     -> tier 0
    any unresolved   -> unknown (None); the edges are flagged for manual review

Tiers form a join-semilattice under max, so adding a resolved import can
never lower the inferred tier.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from tiergate.analysis.models import ImportEdge, TierInference
from tiergate.analysis.tier_table import TierRule, TierRuleTable, module_matches


@dataclass
class EdgeClassification:
    """Tier of one import edge and the rule that decided it (None for the default)."""

    edge: ImportEdge
    tier: int
    rule: Optional[TierRule] = None


class TierClassifier:
    """
    Classifies imports against an injected TierRuleTable.

    The table is read-only; one classifier may be shared by every worker.
    """

    def __init__(self, table: TierRuleTable):
        self.table = table

    def classify(self, edge: ImportEdge) -> EdgeClassification:
        """
        Classify a single resolved edge.

        Raises:
            ValueError: If the edge is unresolved; unresolved edges have no tier.
        """
        if not edge.is_resolved or edge.module is None:
            raise ValueError(f"Cannot classify unresolved import '{edge.specifier}'")

        best: Optional[TierRule] = None
        for rule in self.table.matching_rules(edge.module):
            if best is None or rule.tier > best.tier:
                best = rule
        if best is None:
            return EdgeClassification(edge=edge, tier=0)
        return EdgeClassification(edge=edge, tier=best.tier, rule=best)

    def tier_of(self, edge: ImportEdge) -> int:
        return self.classify(edge).tier

    def infer(self, edges: Iterable[ImportEdge]) -> TierInference:
        """
        Infer the minimum tier a component must declare.

        Args:
            edges: The component's import edges

        Returns:
            TierInference: tier (None if any edge is unresolved), the edges
            carrying the maximum tier, and the unresolved edges
        """
        edges = list(edges)
        unresolved = [e for e in edges if not e.is_resolved]
        classified = [self.classify(e) for e in edges if e.is_resolved]

        top = max((c.tier for c in classified), default=0)
        deciding = [c.edge for c in classified if c.tier == top and top > 0]

        if unresolved:
            return TierInference(tier=None, deciding=deciding, unresolved=unresolved)
        return TierInference(tier=top, deciding=deciding)

    def forbidden_matches(self, level: int, edges: Iterable[ImportEdge]) -> List[ImportEdge]:
        """Resolved edges matching the forbidden patterns of tier `level`."""
        patterns = self.table.get(level).forbidden
        return [
            e for e in edges
            if e.is_resolved and e.module is not None
            and any(module_matches(e.module, p) for p in patterns)
        ]

    def value_imports_of_types(self, edges: Iterable[ImportEdge]) -> List[EdgeClassification]:
        """
        Edges whose deciding rule is type-only but which import a value.

        Domain interfaces must come in through `import type` so they never
        pull runtime code into a display component.
        """
        flagged = []
        for edge in edges:
            if not edge.is_resolved or edge.type_only or edge.symbol == "":
                continue
            classification = self.classify(edge)
            if classification.rule is not None and classification.rule.type_only:
                flagged.append(classification)
        return flagged
