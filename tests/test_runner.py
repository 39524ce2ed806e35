"""
Test discovery and the parallel runner against on-disk component trees.
"""
import pytest

from tiergate.engine import runner as runner_module
from tiergate.engine.discovery import ComponentDiscovery
from tiergate.engine.runner import CheckRunner, default_workers
from tiergate.errors import DiscoveryError

BADGE_FILES = {
    "src/lib/utils.ts": "export function cn(...c: string[]) { return c.join(' '); }\n",
    "src/components/ui/Badge/Badge.tsx": """
        import { Slot } from '@radix-ui/react-slot';
        import { cn } from '@/lib/utils';

        export interface BadgeProps {
          label: string;
          asChild?: boolean;
        }

        export function Badge({ label, asChild = false }: BadgeProps) {
          const Comp = asChild ? Slot : 'span';
          return <Comp className={cn('badge')}>{label}</Comp>;
        }
    """,
    "src/components/ui/Badge/Badge.spec.md": """
        # Badge

        ## Tier
        Tier 0

        ## Props
        ```ts
        interface BadgeProps {
          label: string;
          asChild?: boolean; // default: false
        }
        ```

        ## States
        - default: plain badge
    """,
}

ORDERS_FILES = {
    "src/components/connected/Orders/Orders.tsx": """
        import { useQuery } from '@tanstack/react-query';

        export interface OrdersProps {
          customerId: string;
        }

        export function Orders({ customerId }: OrdersProps) {
          const { data } = useQuery({ queryKey: ['orders', customerId] });
          return <ul>{data?.map((o) => <li key={o.id}>{o.total}</li>)}</ul>;
        }
    """,
    "src/components/connected/Orders/Orders.spec.md": """
        # Orders

        ## Tier
        4

        ## Props
        - `customerId`: `string`

        ## States
        - default

        ## Callbacks
        None

        ## Data Sources
        `useQuery` against the orders endpoint.
    """,
    "src/components/connected/Orders/Orders.mock.ts": """
        import { http, HttpResponse } from 'msw';

        export const handlers = [http.get('/api/orders', () => HttpResponse.json([]))];
    """,
    "src/components/connected/Orders/Orders.stories.tsx": "export default { title: 'Orders' };\n",
}

BROKEN_SPEC = {
    "src/components/composite/Broken/Broken.spec.md": "# Broken\n\n## Tier\n1\n\n## Props\nNone\n\n## States\nNone\n",
}


def discover(repo, table, config, paths=None):
    return ComponentDiscovery(repo, table, config).discover(paths)


@pytest.mark.engine
def test_discovery_pairs_spec_source_and_companions(make_repo, table, config):
    """
    GIVEN: A component directory with source, spec, mock and story files
    WHEN: Discovering components
    THEN: Each companion lands in the right slot
    """
    repo = make_repo({**ORDERS_FILES, "node_modules/pkg/Hidden.spec.md": "# Hidden\n"})

    components = discover(repo, table, config)

    assert len(components) == 1
    orders = components[0]
    assert str(orders.id) == "src/components/connected/Orders/Orders"
    assert orders.source_path.name == "Orders.tsx"
    assert [p.name for p in orders.mock_files] == ["Orders.mock.ts"]
    assert [p.name for p in orders.story_files] == ["Orders.stories.tsx"]
    assert orders.error is None


@pytest.mark.engine
def test_discovery_missing_source(make_repo, table, config):
    repo = make_repo({"src/components/Ghost/Ghost.spec.md": "# Ghost\n\n## Tier\n2\n"})

    [ghost] = discover(repo, table, config)

    assert ghost.source_path is None
    assert ghost.error == "No component source found for Ghost.spec.md"


@pytest.mark.engine
def test_discovery_rejects_missing_path(make_repo, table, config):
    repo = make_repo(BADGE_FILES)

    with pytest.raises(DiscoveryError, match="Path not found"):
        discover(repo, table, config, [repo / "src/nope"])


@pytest.mark.engine
def test_clean_components(make_repo, table, config):
    """
    GIVEN: A tier-0 badge and a tier-4 connected list with handler mocks
    WHEN: Running the full pipeline
    THEN: Both are clean and the run exits 0
    """
    repo = make_repo({**BADGE_FILES, **ORDERS_FILES})

    report = CheckRunner(repo, config, table).run(discover(repo, table, config), workers=2)

    assert {str(r.id): r.status for r in report.results} == {
        "src/components/ui/Badge/Badge": "clean",
        "src/components/connected/Orders/Orders": "clean",
    }
    badge = next(r for r in report.results if r.id.name == "Badge")
    assert (badge.declared_tier, badge.inferred_tier) == (0, 0)
    assert report.exit_code("all") == 0


@pytest.mark.engine
def test_tier_mismatch_through_pipeline(make_repo, table, config):
    """
    GIVEN: A tier-2 component importing a server action through an alias
    WHEN: Running the pipeline
    THEN: One TierMismatch and exit code 1
    """
    repo = make_repo({
        "src/lib/actions/user.ts": "export async function updateUser() {}\n",
        "src/components/domain/UserRow/UserRow.tsx": """
            import { updateUser } from '@/lib/actions/user';

            export interface UserRowProps { name: string; }

            export function UserRow({ name }: UserRowProps) {
              return <div onDoubleClick={() => updateUser()}>{name}</div>;
            }
        """,
        "src/components/domain/UserRow/UserRow.spec.md": """
            # UserRow

            ## Tier
            2

            ## Props
            - `name`: `string`

            ## States
            None

            ## Data Bindings
            `User.name`
        """,
    })

    report = CheckRunner(repo, config, table).run(discover(repo, table, config), workers=1)

    [row] = report.results
    assert [v.kind.value for v in row.violations] == ["TierMismatch"]
    assert row.inferred_tier == 4
    assert row.deciding_imports == ["'@/lib/actions/user' (line 1)"]
    assert report.exit_code("hard") == 1


@pytest.mark.engine
def test_unreadable_component_does_not_block_clean_one(make_repo, table, config):
    """
    GIVEN: One component whose source is not valid UTF-8 and one clean component
    WHEN: Running the pipeline
    THEN: The first is reported as an error, the second is analysed, exit code 0
    """
    repo = make_repo({**BADGE_FILES, **BROKEN_SPEC})
    (repo / "src/components/composite/Broken/Broken.tsx").write_bytes(b"\xff\xfe\x00 not text")

    report = CheckRunner(repo, config, table).run(discover(repo, table, config), workers=2)

    statuses = {r.id.name: r for r in report.results}
    assert statuses["Broken"].status == "error"
    assert statuses["Broken"].error.startswith("Cannot read Broken.tsx")
    assert statuses["Badge"].status == "clean"
    assert report.exit_code("hard") == 0
    assert report.sorted_results()[0].id.name == "Broken"


@pytest.mark.engine
def test_tier_filter(make_repo, table, config):
    repo = make_repo({**BADGE_FILES, **ORDERS_FILES})

    report = CheckRunner(repo, config, table).run(discover(repo, table, config), tier=4, workers=1)

    assert [r.id.name for r in report.results] == ["Orders"]


@pytest.mark.engine
def test_internal_failure_becomes_error_result(make_repo, table, config, monkeypatch):
    repo = make_repo(BADGE_FILES)
    runner = CheckRunner(repo, config, table)

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(runner.introspector, "introspect", explode)
    report = runner.run(discover(repo, table, config), workers=1)

    assert report.results[0].error == "Internal error: boom"
    assert report.exit_code("hard") == 2


@pytest.mark.engine
def test_interrupt_returns_partial_report(make_repo, table, config, monkeypatch):
    """
    GIVEN: Ctrl-C arrives while waiting for results
    WHEN: Running the pipeline
    THEN: The report is flagged interrupted with the unfinished components pending
    """
    repo = make_repo({**BADGE_FILES, **ORDERS_FILES})

    def interrupted(futures):
        raise KeyboardInterrupt

    monkeypatch.setattr(runner_module, "as_completed", interrupted)
    report = CheckRunner(repo, config, table).run(discover(repo, table, config), workers=1)

    assert report.interrupted
    assert report.results == []
    assert report.pending == 2


def test_default_workers():
    assert default_workers(3) == 3
    assert default_workers(0) >= 1
