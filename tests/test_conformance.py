"""
Test the Conformance Engine.

Validates:
- Tier check: one TierMismatch for imports above the declared tier
- Required sections per tier
- Props and states diffs in both directions, with confidence-aware severity
- Mock strategy: fixtures for tiers 0-3, request handlers for tiers 4-6
- Generated specs check clean against the code they came from
"""
import pytest

from tiergate.analysis.models import (
    CodeRecord,
    ComponentId,
    ComponentRecord,
    ImportEdge,
    PropInfo,
    ResolutionStatus,
)
from tiergate.engine.conformance import Severity, ViolationKind
from tiergate.engine.spec_writer import render_spec

from test_introspector import CARD_WITH_ACTION_SOURCE, TAG_SOURCE, USER_CARD_SOURCE


def record_for(classifier, spec, code, mock_files=(), mock_defines_handlers=False):
    return ComponentRecord(
        id=ComponentId(spec.name or code.name, "src/components"),
        spec=spec,
        code=code,
        inference=classifier.infer(code.imports),
        mock_files=list(mock_files),
        mock_defines_handlers=mock_defines_handlers,
    )


def kinds(violations):
    return [v.kind for v in violations]


def resolved(module, specifier=None, symbol="x"):
    return ImportEdge(
        source="src/components/Thing.tsx",
        specifier=specifier or module,
        symbol=symbol,
        module=module,
        status=ResolutionStatus.RESOLVED,
        line=1,
    )


@pytest.mark.engine
def test_tier_mismatch_is_single_hard_violation(engine, classifier, parser):
    """
    GIVEN: A tier-2 spec whose component imports a server action and a query hook
    WHEN: Checking
    THEN: Exactly one error-level TierMismatch names the required tier
    """
    spec = parser.parse("# UserRow\n\n## Tier\n2\n")
    code = CodeRecord(
        name="UserRow",
        imports=[resolved("src/lib/actions/user", "@/lib/actions/user"), resolved("@tanstack/react-query")],
    )

    violations = engine.check_tier(record_for(classifier, spec, code))

    assert kinds(violations) == [ViolationKind.TIER_MISMATCH]
    assert violations[0].severity == Severity.ERROR
    assert violations[0].is_hard
    assert "require tier 4" in violations[0].message
    assert "'@/lib/actions/user'" in violations[0].message


@pytest.mark.engine
def test_declared_higher_than_inferred_is_fine(engine, classifier, parser):
    spec = parser.parse("# Panel\n\n## Tier\n5\n")
    code = CodeRecord(name="Panel", imports=[resolved("react")])

    assert engine.check_tier(record_for(classifier, spec, code)) == []


@pytest.mark.engine
def test_unresolved_import_and_forbidden_import(engine, classifier, parser):
    """
    GIVEN: A tier-0 spec whose code imports Prisma and an unresolvable alias
    WHEN: Checking tiers
    THEN: The unresolved import warns and the Prisma import is a TierMismatch
    """
    spec = parser.parse("# Avatar\n\n## Tier\n0\n")
    missing = ImportEdge(
        source="src/components/Avatar.tsx", specifier="@/gone", symbol="x",
        status=ResolutionStatus.UNRESOLVED, line=2,
    )
    code = CodeRecord(name="Avatar", imports=[resolved("@prisma/client"), missing])

    violations = engine.check_tier(record_for(classifier, spec, code))

    assert kinds(violations) == [ViolationKind.UNRESOLVED_IMPORT, ViolationKind.TIER_MISMATCH]
    assert violations[0].severity == Severity.WARNING
    assert violations[0].location == "src/components/Avatar.tsx:2"
    assert "must not import '@prisma/client'" in violations[1].message


@pytest.mark.engine
def test_value_import_of_domain_type(engine, classifier, parser):
    spec = parser.parse("# UserBadge\n\n## Tier\n2\n")
    code = CodeRecord(name="UserBadge", imports=[resolved("src/interfaces/user", "@/interfaces/user", "User")])

    violations = engine.check_tier(record_for(classifier, spec, code))

    assert kinds(violations) == [ViolationKind.TYPE_ONLY_IMPORT]
    assert "import type { User }" in violations[0].suggestion


@pytest.mark.engine
def test_missing_tier_is_one_error(engine, classifier, parser):
    spec = parser.parse("# Loose\n\n## Props\nNone\n")

    violations = engine.check_sections(record_for(classifier, spec, CodeRecord(name="Loose")))

    assert kinds(violations) == [ViolationKind.MISSING_REQUIRED_SECTION]
    assert "'tier'" in violations[0].message
    assert "imports suggest tier 0" in violations[0].suggestion


@pytest.mark.engine
def test_tier5_missing_form_schema(engine, classifier, parser):
    """
    GIVEN: A tier-5 spec with every required section except the form schema
    WHEN: Checking sections
    THEN: Exactly one MissingRequiredSection names form-schema
    """
    spec = parser.parse("""# SignupForm

## Tier
5

## Props
None

## States
- submitting: button disabled

## Callbacks
- onSuccess()

## Data Sources
Session context.

## Server Actions
- createAccount
""")

    violations = engine.check_sections(record_for(classifier, spec, CodeRecord(name="SignupForm")))

    assert kinds(violations) == [ViolationKind.MISSING_REQUIRED_SECTION]
    assert "form-schema" in violations[0].message
    assert violations[0].is_hard


@pytest.mark.engine
def test_undocumented_prop(engine, classifier, parser):
    """
    GIVEN: A spec documenting name and status, code also declaring onEdit
    WHEN: Checking props
    THEN: One UndocumentedProp warning for onEdit
    """
    spec = parser.parse("""# UserCard

## Props
- `name`: `string`
- `status`: `string`
""")
    code = CodeRecord(name="UserCard", props={
        "name": PropInfo("name", "string"),
        "status": PropInfo("status", "string"),
        "onEdit": PropInfo("onEdit", "(id:string) => void"),
    })

    violations = engine.check_props(record_for(classifier, spec, code))

    assert kinds(violations) == [ViolationKind.UNDOCUMENTED_PROP]
    assert "'onEdit'" in violations[0].message
    assert violations[0].severity == Severity.WARNING


@pytest.mark.engine
def test_spec_drift_and_prop_type_drift(engine, classifier, parser):
    spec = parser.parse("""# UserCard

## Props
- `name`: `string`
- `size`?: `'sm' | 'lg'`
- `legacy`: `boolean`
""")
    code = CodeRecord(name="UserCard", props={
        "name": PropInfo("name", "string"),
        "size": PropInfo("size", "'md'|'sm'", optional=True),
    })

    violations = engine.check_props(record_for(classifier, spec, code))

    assert sorted(v.kind.value for v in violations) == ["PropTypeDrift", "SpecDrift"]
    drift = next(v for v in violations if v.kind == ViolationKind.PROP_TYPE_DRIFT)
    assert "'size'" in drift.message


@pytest.mark.engine
def test_heuristic_props_are_info_only(engine, classifier, parser, introspector):
    spec = parser.parse("# Tag\n\n## Props\n- `label`: `string`\n")
    code = introspector.introspect(TAG_SOURCE, name="Tag")

    violations = engine.check_props(record_for(classifier, spec, code))

    assert {v.severity for v in violations} == {Severity.INFO}
    assert sorted(v.message.split("'")[1] for v in violations) == ["disabled", "onRemove"]


@pytest.mark.engine
def test_review_lines_become_manual_review(engine, classifier, parser):
    spec = parser.parse("# Counter\n\n## Props\n- something weird here\n")

    violations = engine.check_props(record_for(classifier, spec, CodeRecord(name="Counter")))

    assert kinds(violations) == [ViolationKind.MANUAL_REVIEW]
    assert violations[0].severity == Severity.INFO


@pytest.mark.engine
def test_missing_and_aspirational_states(engine, classifier, parser, introspector):
    """
    GIVEN: Code with loading/error/empty branches, a spec listing loading, success and default
    WHEN: Checking states
    THEN: error warns, heuristic empty is info, success is aspirational, default is ignored
    """
    spec = parser.parse("# UserCard\n\n## States\n- loading\n- success\n- default\n")
    code = introspector.introspect(USER_CARD_SOURCE, name="UserCard")

    violations = engine.check_states(record_for(classifier, spec, code))
    by_message = {(v.kind, v.severity) for v in violations}

    assert by_message == {
        (ViolationKind.MISSING_STATE, Severity.WARNING),
        (ViolationKind.MISSING_STATE, Severity.INFO),
        (ViolationKind.ASPIRATIONAL_STATE, Severity.INFO),
    }
    assert len(violations) == 3


@pytest.mark.engine
@pytest.mark.parametrize("tier", [4, 5, 6])
def test_high_tier_without_mock_file(engine, classifier, parser, tier):
    """
    GIVEN: A tier 4-6 component with no companion mock file
    WHEN: Checking the mock strategy
    THEN: Exactly one MissingMockFile and no WrongMockStrategy
    """
    spec = parser.parse(f"# Orders\n\n## Tier\n{tier}\n")

    violations = engine.check_mock_strategy(record_for(classifier, spec, CodeRecord(name="Orders")))

    assert kinds(violations) == [ViolationKind.MISSING_MOCK_FILE]


@pytest.mark.engine
def test_high_tier_mock_without_handlers(engine, classifier, parser, tmp_path):
    spec = parser.parse("# Orders\n\n## Tier\n4\n")
    record = record_for(classifier, spec, CodeRecord(name="Orders"), mock_files=[tmp_path / "Orders.mock.ts"])

    violations = engine.check_mock_strategy(record)

    assert kinds(violations) == [ViolationKind.WRONG_MOCK_STRATEGY]
    assert violations[0].severity == Severity.INFO


@pytest.mark.engine
def test_high_tier_mock_with_handlers_is_clean(engine, classifier, parser, tmp_path):
    spec = parser.parse("# Orders\n\n## Tier\n4\n")
    record = record_for(
        classifier, spec, CodeRecord(name="Orders"),
        mock_files=[tmp_path / "Orders.mock.ts"], mock_defines_handlers=True,
    )

    assert engine.check_mock_strategy(record) == []


@pytest.mark.engine
@pytest.mark.parametrize("tier", [0, 1, 2, 3])
def test_low_tier_referencing_handlers(engine, classifier, parser, tier):
    """
    GIVEN: A tier 0-3 component whose source imports msw
    WHEN: Checking the mock strategy
    THEN: Exactly one WrongMockStrategy warning
    """
    spec = parser.parse(f"# Tile\n\n## Tier\n{tier}\n")
    code = CodeRecord(name="Tile", handler_references=["import 'msw' (line 1)", "http.get() (line 3)"])

    violations = engine.check_mock_strategy(record_for(classifier, spec, code))

    assert kinds(violations) == [ViolationKind.WRONG_MOCK_STRATEGY]
    assert violations[0].severity == Severity.WARNING


@pytest.mark.engine
def test_accessibility_gap(engine, classifier, parser, introspector):
    spec = parser.parse("# UserCard\n\n## Tier\n3\n")
    code = introspector.introspect(USER_CARD_SOURCE, name="UserCard")

    violations = engine.check_accessibility(record_for(classifier, spec, code))

    assert kinds(violations) == [ViolationKind.ACCESSIBILITY_GAP]
    assert "Button" in violations[0].message


@pytest.mark.engine
def test_helper_after_component_does_not_leak_into_it(engine, classifier, parser, introspector):
    """
    GIVEN: A Card rendering only a div, followed by a CardAction rendering a button
    WHEN: Checking Card against a spec without accessibility notes
    THEN: No AccessibilityGap, because the button belongs to CardAction
    """
    spec = parser.parse("# Card\n\n## Tier\n0\n")
    code = introspector.introspect(CARD_WITH_ACTION_SOURCE, name="Card")

    violations = engine.check_accessibility(record_for(classifier, spec, code))

    assert violations == []


@pytest.mark.engine
def test_failing_stage_becomes_manual_review(engine, classifier, parser):
    """
    GIVEN: A stage that raises
    WHEN: Running every stage
    THEN: The failure is an info ManualReview and later stages still run
    """
    spec = parser.parse("# Tile\n\n## Tier\n0\n\n## Props\nNone\n\n## States\nNone\n")

    def explode(record):
        raise RuntimeError("boom")

    engine.stages[2] = explode
    violations = engine.check(record_for(classifier, spec, CodeRecord(name="Tile")))

    assert kinds(violations) == [ViolationKind.MANUAL_REVIEW]
    assert "boom" in violations[0].message


@pytest.mark.engine
@pytest.mark.parametrize("source,name,tier", [
    (USER_CARD_SOURCE, "UserCard", 3),
    (TAG_SOURCE, "Tag", 0),
])
def test_generated_spec_checks_clean(engine, classifier, parser, introspector, table, source, name, tier):
    """
    GIVEN: A spec rendered from a component's own code
    WHEN: Parsing it and checking it against the same code
    THEN: No violations at all
    """
    code = introspector.introspect(source, name=name)
    spec = parser.parse(render_spec(code, tier, table))

    violations = engine.check(record_for(classifier, spec, code))

    assert spec.tier == tier
    assert violations == []
