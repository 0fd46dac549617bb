"""Tests for plan assembly and plan rendering."""
import pytest

from mcp_kong_gateway.admin.base import AdminAPIError, ResourceKind
from mcp_kong_gateway.config_engine import (
    Action,
    ConfigParser,
    DependencyError,
    FetchError,
    PlanAssembler,
    PlanRenderer,
    ReconcileOptions,
    RemoteStateResolver,
    ShorthandExpander,
)

U, T, S, R = ResourceKind.UPSTREAM, ResourceKind.TARGET, ResourceKind.SERVICE, ResourceKind.ROUTE


async def assemble(client, raw):
    document = ShorthandExpander().expand(ConfigParser().parse(raw))
    return await PlanAssembler(RemoteStateResolver(client)).assemble(document)


def render(plan, **options):
    options.setdefault("ascii", True)
    options.setdefault("color", False)
    return PlanRenderer(ReconcileOptions(**options)).render_text(plan)


def seed_shorthand(client):
    """Remote state equal to the shorthand_document fixture."""
    client.seed(U, "demo-upstream")
    client.seed(T, "demo-upstream/demo-1:8080", weight=100)
    client.seed(T, "demo-upstream/demo-2:8080", weight=50)
    service = client.seed(S, "demo-service", host="demo-upstream", protocol="http", port=8080)
    client.seed(R, "demo", service={"id": service["id"]}, paths=["/demo"], methods=["GET", "POST"])


class TestPlanAssembler:
    """Ordering, dependency checks and payloads."""

    @pytest.mark.asyncio
    async def test_full_document_order(self, client, full_document):
        """Upstream, its targets, service, route."""
        plan = await assemble(client, full_document)

        assert [(c.kind, c.name) for c in plan.changes] == [
            (U, "users-upstream"),
            (T, "users-upstream/users-1:8080"),
            (S, "users"),
            (R, "users-list"),
        ]
        assert all(c.action == Action.CREATE for c in plan.changes)

    @pytest.mark.asyncio
    async def test_shorthand_order(self, client, shorthand_document):
        """Synthesized resources precede their route."""
        plan = await assemble(client, shorthand_document)

        assert [(c.kind, c.name) for c in plan.changes] == [
            (U, "demo-upstream"),
            (T, "demo-upstream/demo-1:8080"),
            (T, "demo-upstream/demo-2:8080"),
            (S, "demo-service"),
            (R, "demo"),
        ]
        assert [c.auto_for_route for c in plan.changes] == ["demo", "demo", "demo", "demo", None]

    @pytest.mark.asyncio
    async def test_dependencies_precede_dependents(self, client, full_document, shorthand_document):
        """Every dependency appears before whatever needs it."""
        full_document["routes"].extend(shorthand_document)
        plan = await assemble(client, full_document)

        position = {(c.kind, c.name): i for i, c in enumerate(plan.changes)}
        for change in plan.changes:
            if change.kind == T:
                assert position[(U, change.parent)] < position[(T, change.name)]
            if change.kind == S and change.parent:
                assert position[(U, change.parent)] < position[(S, change.name)]
            if change.kind == R:
                assert position[(S, change.parent)] < position[(R, change.name)]

    @pytest.mark.asyncio
    async def test_targets_of_new_upstream_are_not_fetched(self, client, shorthand_document):
        await assemble(client, shorthand_document)

        assert ("get", U, "demo-upstream") in client.calls
        assert not any(kind == T for _, kind, _ in client.calls)

    @pytest.mark.asyncio
    async def test_lookups_are_sequential_in_plan_order(self, client, full_document):
        await assemble(client, full_document)

        assert client.calls == [
            ("get", U, "users-upstream"),
            ("get", S, "users"),
            ("get", R, "users-list"),
        ]

    @pytest.mark.asyncio
    async def test_shared_upstream_planned_once(self, client):
        plan = await assemble(client, {"services": [
            {"name": "a", "upstream": "shared"},
            {"name": "b", "upstream": "shared"},
        ]})

        assert [(c.kind, c.name) for c in plan.changes] == [(U, "shared"), (S, "a"), (S, "b")]

    @pytest.mark.asyncio
    async def test_missing_service(self, client):
        with pytest.raises(DependencyError) as exc_info:
            await assemble(client, [{"name": "r", "service": "missing", "paths": ["/r"]}])

        assert exc_info.value.context == "Route r"
        assert "Service missing" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_existing_service(self, client):
        client.seed(S, "echo", host="echo", protocol="http", port=80)

        plan = await assemble(client, [{"name": "r", "service": "echo", "paths": ["/r"]}])

        assert [(c.kind, c.action) for c in plan.changes] == [(R, Action.CREATE)]

    @pytest.mark.asyncio
    async def test_fetch_failure(self, client, full_document):
        client.fail_on[("get", S, "users")] = AdminAPIError(500, "boom")

        with pytest.raises(FetchError) as exc_info:
            await assemble(client, full_document)

        assert exc_info.value.context == "Service users"
        assert "HTTP 500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_create_payloads(self, client, full_document):
        plan = await assemble(client, full_document)

        assert plan.find(U, "users-upstream").payload == {"name": "users-upstream"}
        assert plan.find(T, "users-upstream/users-1:8080").payload == {
            "upstream": "users-upstream",
            "target": "users-1:8080",
            "weight": 100,
        }
        assert plan.find(S, "users").payload == {
            "name": "users",
            "host": "users-upstream",
            "protocol": "http",
            "port": 8080,
            "path": "/api",
        }
        assert plan.find(R, "users-list").payload == {
            "name": "users-list",
            "paths": ["/v1/users"],
            "methods": ["GET"],
            "strip_path": True,
            "service": {"name": "users"},
        }

    @pytest.mark.asyncio
    async def test_update_payload_has_no_name(self, client, shorthand_document):
        seed_shorthand(client)
        client.store[(R, "demo")]["methods"] = ["GET"]

        plan = await assemble(client, shorthand_document)

        route = plan.find(R, "demo")
        assert route.action == Action.UPDATE
        assert "name" not in route.payload
        assert route.payload["methods"] == ["GET", "POST"]

    @pytest.mark.asyncio
    async def test_converged_state_is_no_change(self, client, shorthand_document):
        seed_shorthand(client)

        plan = await assemble(client, shorthand_document)

        assert not plan.has_changes
        assert plan.counts()[T][Action.NO_CHANGE] == 2


class TestPlanRenderer:
    """Hierarchical text rendering."""

    @pytest.mark.asyncio
    async def test_shorthand_nesting(self, client, shorthand_document):
        plan = await assemble(client, shorthand_document)

        lines = render(plan).splitlines()

        assert lines[0] == "Plan:"
        assert "  Routes:" in lines
        assert "    [R] demo (create)" in lines
        assert "      [S] Service: demo-service (create)" in lines
        assert "      [U] Upstream: demo-upstream (create)" in lines
        assert "        Targets:" in lines
        assert "          [T] demo-1:8080 (create)" in lines
        # Synthesized resources are not repeated at top level
        assert "  Upstreams:" not in lines
        assert "  Services:" not in lines

    @pytest.mark.asyncio
    async def test_shared_upstream_listed_once(self, client):
        """An upstream a declared service also uses stays in the Upstreams section."""
        plan = await assemble(client, {
            "services": [{"name": "other", "upstream": "demo-upstream"}],
            "routes": [{"name": "demo", "paths": ["/demo"], "backend": {"targets": [{"target": "a:80"}]}}],
        })

        text = render(plan)
        lines = text.splitlines()

        assert text.count("a:80") == 1
        assert "    [U] demo-upstream (create)" in lines
        assert "        [T] a:80 (create)" in lines
        assert "      [S] Service: demo-service (create)" in lines
        assert not any("Upstream: demo-upstream" in line for line in lines)

    @pytest.mark.asyncio
    async def test_full_document_sections(self, client, full_document):
        plan = await assemble(client, full_document)

        lines = render(plan).splitlines()

        assert "  Upstreams:" in lines
        assert "    [U] users-upstream (create)" in lines
        assert "        [T] users-1:8080 (create)" in lines
        assert "  Services:" in lines
        assert "    [S] users (create) -> upstream users-upstream" in lines
        assert "    [R] users-list (create)" in lines

    @pytest.mark.asyncio
    async def test_summary_counts(self, client, shorthand_document):
        plan = await assemble(client, shorthand_document)

        text = render(plan)

        assert "  Upstreams: create 1, update 0, no change 0" in text
        assert "  Services:  create 1, update 0, no change 0" in text
        assert "  Routes:    create 1, update 0, no change 0" in text
        assert "  Targets:   create 2, update 0, no change 0" in text

    @pytest.mark.asyncio
    async def test_override_hint(self, client, shorthand_document):
        plan = await assemble(client, shorthand_document)

        assert "Override is disabled" in render(plan)
        assert "Override is disabled" not in render(plan, override=True)

    @pytest.mark.asyncio
    async def test_dry_run_footer(self, client, shorthand_document):
        plan = await assemble(client, shorthand_document)

        assert render(plan, dry_run=True).endswith(
            "[dry-run] planned changes only, nothing was modified"
        )
        assert render(plan, dry_run=True, ascii=False).endswith("✅")

    @pytest.mark.asyncio
    async def test_glyphs(self, client, shorthand_document):
        plan = await assemble(client, shorthand_document)

        text = render(plan, ascii=False)

        assert "create ✨" in text
        assert "[R]" not in text
        assert "━" not in text  # single route, no separator

    @pytest.mark.asyncio
    async def test_route_separator(self, client, shorthand_document):
        shorthand_document.append({"name": "other", "paths": ["/other"]})
        plan = await assemble(client, shorthand_document)

        assert "    " + "=" * 40 in render(plan).splitlines()

    @pytest.mark.asyncio
    async def test_diff_lines_only_with_show_diff(self, client, shorthand_document):
        seed_shorthand(client)
        client.store[(R, "demo")]["methods"] = ["GET"]
        plan = await assemble(client, shorthand_document)

        plain = render(plan)
        detailed = render(plan, show_diff=True).splitlines()

        assert "    [R] demo (update)" in plain.splitlines()
        assert "+ POST" not in plain
        assert "      methods:" in detailed
        assert "      + POST" in detailed

    @pytest.mark.asyncio
    async def test_compact_hides_unchanged(self, client, shorthand_document):
        seed_shorthand(client)
        shorthand_document.append({"name": "fresh", "paths": ["/fresh"]})
        plan = await assemble(client, shorthand_document)

        full = render(plan)
        compact = render(plan, compact=True)

        assert "[R] demo (no change)" in full
        assert "[R] demo (no change)" not in compact
        assert "[R] fresh (create)" in compact
        # Summary still counts everything
        assert "Routes:    create 1, update 0, no change 1" in compact

    @pytest.mark.asyncio
    async def test_compact_keeps_route_with_changed_target(self, client, shorthand_document):
        seed_shorthand(client)
        client.store[(T, "demo-upstream/demo-2:8080")]["weight"] = 10
        plan = await assemble(client, shorthand_document)

        lines = render(plan, compact=True).splitlines()

        assert "    [R] demo (no change)" in lines
        assert "          [T] demo-2:8080 (update)" in lines
        assert "          [T] demo-1:8080 (no change)" not in lines

    @pytest.mark.asyncio
    async def test_styled_lines(self, client, shorthand_document):
        plan = await assemble(client, shorthand_document)

        lines = PlanRenderer(ReconcileOptions(ascii=True)).render(plan)
        route_line = next(line for line in lines if "[R] demo" in line.plain)

        assert any(span.style == "green" for span in route_line.spans)
