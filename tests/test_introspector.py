"""
Test code introspection.

Validates:
- Props from the props type are certain; destructuring alone is heuristic
- Defaults come from destructuring
- States come from conditional-render branches keyed on state-like names
- Interactive elements and request-handler references are found
"""
import pytest

from tiergate.analysis.introspector import is_state_signal
from tiergate.analysis.models import Confidence

USER_CARD_SOURCE = """import { Button } from '@/components/ui/Button';
import type { User } from '@/interfaces/user';

export interface UserCardProps {
  user: User;
  isLoading?: boolean;
  size?: 'sm' | 'md';
  onEdit: (id: string) => void;
  onSelect?: SelectHandler;
}

export function UserCard({ user, isLoading, size = 'md', onEdit, onSelect }: UserCardProps) {
  if (isLoading) return <Skeleton />;
  const noTags = !user.tags.length;
  return (
    <div>
      {user.hasError && <ErrorBanner />}
      <Button onClick={() => onEdit(user.id)}>Edit</Button>
    </div>
  );
}
"""

TAG_SOURCE = """export const Tag = ({ label, onRemove, disabled = false }) => (
  <span>
    {label}
    {onRemove && <button disabled={disabled} onClick={onRemove}>x</button>}
  </span>
);
"""

CARD_WITH_ACTION_SOURCE = """export interface CardProps {
  title: string;
}

export function Card({ title }: CardProps): JSX.Element {
  return <div className="card">{title}</div>;
}

export function CardAction({ isPending }: { isPending: boolean }) {
  if (isPending) return null;
  return <button>Go</button>;
}
"""


@pytest.mark.introspector
def test_props_from_interface_are_certain(introspector):
    """
    GIVEN: A component with an exported props interface and destructured defaults
    WHEN: Introspecting it
    THEN: Every member is a certain prop and defaults come from destructuring
    """
    code = introspector.introspect(USER_CARD_SOURCE, name="UserCard")

    assert code.name == "UserCard"
    assert set(code.props) == {"user", "isLoading", "size", "onEdit", "onSelect"}
    assert all(p.confidence == Confidence.CERTAIN for p in code.props.values())
    assert code.props["size"].type == "'md'|'sm'"
    assert code.props["size"].default == "'md'"
    assert code.props["isLoading"].optional
    assert not code.props["user"].optional


@pytest.mark.introspector
def test_callbacks_typed_and_heuristic(introspector):
    """
    GIVEN: One function-typed callback and one whose type is an alias
    WHEN: Introspecting
    THEN: The function type is certain with params, the alias is heuristic
    """
    code = introspector.introspect(USER_CARD_SOURCE, name="UserCard")

    assert code.callbacks["onEdit"].params == ["id"]
    assert code.callbacks["onEdit"].confidence == Confidence.CERTAIN
    assert code.callbacks["onSelect"].confidence == Confidence.HEURISTIC


@pytest.mark.introspector
def test_states_from_conditional_branches(introspector):
    """
    GIVEN: An early return on isLoading, a && render on hasError and a length check
    WHEN: Introspecting
    THEN: loading and error are certain, empty is heuristic
    """
    code = introspector.introspect(USER_CARD_SOURCE, name="UserCard")

    assert set(code.states) == {"loading", "error", "empty"}
    assert code.states["loading"].confidence == Confidence.CERTAIN
    assert code.states["error"].confidence == Confidence.CERTAIN
    assert code.states["empty"].confidence == Confidence.HEURISTIC


@pytest.mark.introspector
def test_interactive_library_component(introspector):
    code = introspector.introspect(USER_CARD_SOURCE, name="UserCard")

    assert code.interactive_elements == ["Button"]
    assert code.handler_references == []


@pytest.mark.introspector
def test_component_body_stops_at_its_closing_brace(introspector):
    """
    GIVEN: A Card followed by a CardAction declared in the same file
    WHEN: Introspecting Card
    THEN: CardAction's button and pending branch are not attributed to Card
    """
    code = introspector.introspect(CARD_WITH_ACTION_SOURCE, name="Card")

    assert code.name == "Card"
    assert set(code.props) == {"title"}
    assert code.interactive_elements == []
    assert code.states == {}


@pytest.mark.introspector
def test_destructured_props_are_heuristic(introspector):
    """
    GIVEN: An arrow component with no props type
    WHEN: Introspecting
    THEN: Props, callbacks and states are all heuristic, the default is kept
    """
    code = introspector.introspect(TAG_SOURCE, name="Tag")

    assert set(code.props) == {"label", "onRemove", "disabled"}
    assert all(p.confidence == Confidence.HEURISTIC for p in code.props.values())
    assert code.props["disabled"].default == "false"
    assert code.props["disabled"].optional
    assert code.props["label"].type == "unknown"
    assert code.callbacks["onRemove"].confidence == Confidence.HEURISTIC
    assert code.states["disabled"].confidence == Confidence.HEURISTIC
    assert code.interactive_elements == ["button"]


@pytest.mark.introspector
def test_props_inherit_from_local_base_type(introspector):
    """
    GIVEN: `type ChipProps = BaseProps & {...}` with BaseProps declared in the file
    WHEN: Introspecting
    THEN: Inherited members are included
    """
    source = """interface BaseProps { id: string; }
type ChipProps = BaseProps & { label: string };
export const Chip = ({ id, label }: ChipProps) => <span id={id}>{label}</span>;
"""
    code = introspector.introspect(source, name="Chip")

    assert list(code.props) == ["id", "label"]
    assert code.props["id"].type == "string"


@pytest.mark.introspector
def test_handler_references_in_mock_file(introspector):
    """
    GIVEN: A mock file importing msw and declaring a GET handler
    WHEN: Looking for request-handler references
    THEN: Both the import and the handler call are reported with line numbers
    """
    source = """import { http, HttpResponse } from 'msw';

export const handlers = [
  http.get('/api/orders', () => HttpResponse.json([])),
];
"""
    assert introspector.handler_references(source) == [
        "import 'msw' (line 1)",
        "http.get() (line 4)",
    ]


@pytest.mark.introspector
def test_handler_references_in_story_parameters(introspector):
    source = "export default { parameters: { msw: { handlers } } };\n"

    assert introspector.handler_references(source) == ["msw story parameters (line 1)"]


@pytest.mark.introspector
@pytest.mark.parametrize("name,expected", [
    ("isLoading", True),
    ("hasError", True),
    ("open", True),
    ("island", False),
    ("label", False),
])
def test_is_state_signal(name, expected):
    assert is_state_signal(name) is expected
