"""
Test tier classification and inference.

Validates:
- Each import maps to the highest tier whose patterns match it
- Inferred tier is the max over edges, 0 for no imports
- Unresolved imports make the tier unknown
- The tier convention is schema-validated and immutable
"""
import pytest

from tiergate.analysis.models import ImportEdge, ResolutionStatus
from tiergate.analysis.tier_table import build_tier_table, load_tier_table, module_matches
from tiergate.errors import TierTableError


def edge(module, symbol="x", type_only=False, status=ResolutionStatus.RESOLVED):
    return ImportEdge(
        source="src/components/Thing.tsx",
        specifier=module or "@/missing",
        symbol=symbol,
        module=module,
        status=status,
        type_only=type_only,
        line=1,
    )


@pytest.mark.classifier
@pytest.mark.parametrize("module,expected", [
    ("react", 0),
    ("@radix-ui/react-slot", 0),
    ("src/lib/utils", 0),
    ("src/components/ui/Button", 0),
    ("framer-motion", 1),
    ("src/interfaces/user", 2),
    ("date-fns/format", 2),
    ("src/hooks/useToggle", 3),
    ("src/lib/actions/user", 4),
    ("@tanstack/react-query", 4),
    ("zod", 5),
    ("next/navigation", 6),
    ("some-unknown-package", 0),
])
def test_tier_of_known_modules(classifier, module, expected):
    """
    GIVEN: A resolved import of a well-known module
    WHEN: Classifying it against the packaged convention
    THEN: It lands in the expected tier
    """
    assert classifier.tier_of(edge(module)) == expected


@pytest.mark.classifier
def test_no_imports_is_tier_zero(classifier):
    """
    GIVEN: A component with no imports
    WHEN: Inferring its tier
    THEN: The tier is 0 and nothing is deciding
    """
    inference = classifier.infer([])

    assert inference.tier == 0
    assert inference.deciding == []
    assert inference.is_known


@pytest.mark.classifier
def test_inferred_tier_is_max_over_edges(classifier):
    """
    GIVEN: Imports from tiers 0, 2 and 4
    WHEN: Inferring the tier
    THEN: The tier is 4 and the action import is the deciding edge
    """
    edges = [edge("react"), edge("src/interfaces/user", type_only=True), edge("src/lib/actions/user")]

    inference = classifier.infer(edges)

    assert inference.tier == 4
    assert [e.module for e in inference.deciding] == ["src/lib/actions/user"]


@pytest.mark.classifier
def test_adding_imports_never_lowers_tier(classifier):
    """
    GIVEN: A growing list of imports
    WHEN: Inferring the tier after each addition
    THEN: The tier sequence is non-decreasing
    """
    modules = ["next/navigation", "react", "zod", "src/lib/utils", "src/hooks/useX", "framer-motion"]
    tiers = [classifier.infer([edge(m) for m in modules[:n]]).tier for n in range(len(modules) + 1)]

    assert all(b >= a for a, b in zip(tiers, tiers[1:]))


@pytest.mark.classifier
def test_unresolved_import_makes_tier_unknown(classifier):
    """
    GIVEN: One resolved and one unresolved import
    WHEN: Inferring the tier
    THEN: The tier is unknown and the unresolved edge is listed
    """
    missing = edge(None, status=ResolutionStatus.UNRESOLVED)

    inference = classifier.infer([edge("react"), missing])

    assert inference.tier is None
    assert not inference.is_known
    assert inference.unresolved == [missing]


@pytest.mark.classifier
def test_classify_rejects_unresolved_edge(classifier):
    """
    GIVEN: An unresolved edge
    WHEN: Classifying it directly
    THEN: ValueError is raised instead of guessing a tier
    """
    with pytest.raises(ValueError, match="unresolved"):
        classifier.classify(edge(None, status=ResolutionStatus.UNRESOLVED))


@pytest.mark.classifier
def test_forbidden_matches(classifier):
    """
    GIVEN: A tier-0 component importing Prisma and React
    WHEN: Checking forbidden patterns for tier 0
    THEN: Only the Prisma import is reported
    """
    edges = [edge("react"), edge("@prisma/client")]

    assert [e.module for e in classifier.forbidden_matches(0, edges)] == ["@prisma/client"]


@pytest.mark.classifier
def test_value_import_of_domain_type_is_flagged(classifier):
    """
    GIVEN: A domain interface imported once as a value and once with `import type`
    WHEN: Looking for value imports of type-only modules
    THEN: Only the value import is flagged
    """
    value = edge("src/interfaces/user", symbol="User")
    typed = edge("src/interfaces/order", symbol="Order", type_only=True)

    flagged = classifier.value_imports_of_types([value, typed])

    assert [c.edge for c in flagged] == [value]
    assert flagged[0].tier == 2


@pytest.mark.classifier
def test_module_matches_at_repo_root():
    """
    GIVEN: A "*/actions/*" pattern
    WHEN: Matching modules nested or at the repo root
    THEN: Both match, unrelated paths do not
    """
    assert module_matches("src/lib/actions/user", "*/actions/*")
    assert module_matches("actions/user", "*/actions/*")
    assert not module_matches("src/lib/transactions", "*/actions/*")


@pytest.mark.classifier
def test_packaged_convention_shape(table):
    """
    GIVEN: The packaged tier convention
    WHEN: Loading it
    THEN: Seven tiers, fixture mocks below 4, handler mocks from 4 up
    """
    assert table.version == "1.0"
    assert [t.level for t in table.tiers] == list(range(7))
    assert [t.requires_handlers for t in table.tiers] == [False] * 4 + [True] * 3
    assert "form-schema" in table.get(5).required_sections
    assert table.is_mock_file("UserCard.mock.ts")
    assert not table.is_mock_file("UserCard.tsx")
    assert table.is_handler_module("msw")
    assert table.is_handler_module("src/mocks/handlers")


@pytest.mark.classifier
def test_table_is_immutable(table):
    """
    GIVEN: A loaded table
    WHEN: Trying to reassign an attribute
    THEN: The frozen dataclass refuses
    """
    with pytest.raises(AttributeError):
        table.version = "2.0"


@pytest.mark.classifier
def test_get_rejects_out_of_range_level(table):
    with pytest.raises(KeyError):
        table.get(7)


@pytest.mark.classifier
def test_invalid_convention_is_rejected(tmp_path):
    """
    GIVEN: A convention file whose tier has an unknown mock strategy
    WHEN: Loading it
    THEN: TierTableError names the file
    """
    path = tmp_path / "tiers.yaml"
    path.write_text(
        "version: '2'\n"
        "tiers:\n"
        "  - level: 0\n"
        "    name: primitive\n"
        "    mock_strategy: carrier-pigeon\n"
        "    required_sections: [tier]\n",
        encoding="utf-8",
    )

    with pytest.raises(TierTableError, match="tiers.yaml"):
        load_tier_table(path)


@pytest.mark.classifier
def test_custom_table_changes_classification(table):
    """
    GIVEN: A convention derived from the packaged one with "lodash" moved to tier 3
    WHEN: Classifying a lodash import
    THEN: The custom table decides, with no change to the packaged table
    """
    from tiergate.analysis.classifier import TierClassifier

    data = table.to_dict()
    data["tiers"][3]["modules"].append("lodash")
    custom = build_tier_table(data, source="custom")

    assert TierClassifier(custom).tier_of(edge("lodash")) == 3
    assert TierClassifier(table).tier_of(edge("lodash")) == 0
