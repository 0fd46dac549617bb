"""Tests for the Kong Admin API client (httpx.MockTransport, no network)."""
import json

import httpx
import pytest

from mcp_kong_gateway.admin import (
    AdminAPIError,
    KongAdminClient,
    ResourceKind,
    TransportError,
    split_target_key,
    target_key,
)
from mcp_kong_gateway.config.settings import GatewaySettings


def make_client(handler, **settings):
    settings.setdefault("admin_url", "http://kong.test:8001")
    return KongAdminClient(GatewaySettings(**settings), transport=httpx.MockTransport(handler))


class Recorder:
    """Handler that answers from a (method, path) table and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404, json={"message": "Not found"})
        if callable(answer):
            return answer(request)
        return answer


class TestLookups:
    """get_by_name semantics: 404 is absent, everything else is an error."""

    @pytest.mark.asyncio
    async def test_found(self):
        handler = Recorder({
            ("GET", "/services/users"): httpx.Response(200, json={"id": "s1", "name": "users"}),
        })
        async with make_client(handler) as client:
            service = await client.get_by_name(ResourceKind.SERVICE, "users")

        assert service == {"id": "s1", "name": "users"}

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with make_client(Recorder({})) as client:
            assert await client.get_by_name(ResourceKind.ROUTE, "missing") is None

    @pytest.mark.asyncio
    async def test_server_error(self):
        handler = Recorder({("GET", "/routes/r"): httpx.Response(500, text="internal error")})
        async with make_client(handler) as client:
            with pytest.raises(AdminAPIError) as exc_info:
                await client.get_by_name(ResourceKind.ROUTE, "r")

        assert exc_info.value.status_code == 500
        assert "internal error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_html_response(self):
        """A proxy port answering with HTML is not a valid Admin API response."""
        handler = Recorder({
            ("GET", "/services/users"): httpx.Response(
                200, text="<html>welcome</html>", headers={"content-type": "text/html"}
            ),
        })
        async with make_client(handler) as client:
            with pytest.raises(AdminAPIError, match="non-JSON response"):
                await client.get_by_name(ResourceKind.SERVICE, "users")

    @pytest.mark.asyncio
    async def test_long_error_body_truncated(self):
        handler = Recorder({("GET", "/routes/r"): httpx.Response(502, text="x" * 1000)})
        async with make_client(handler) as client:
            with pytest.raises(AdminAPIError) as exc_info:
                await client.get_by_name(ResourceKind.ROUTE, "r")

        assert exc_info.value.message.endswith("...")
        assert len(exc_info.value.message) < 300

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with make_client(handler, timeout=2) as client:
            with pytest.raises(TransportError, match="timed out after 2"):
                await client.get_by_name(ResourceKind.UPSTREAM, "u")

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(TransportError, match="refused"):
                await client.get_by_name(ResourceKind.UPSTREAM, "u")

    @pytest.mark.asyncio
    async def test_no_retry(self):
        handler = Recorder({("GET", "/upstreams/u"): httpx.Response(503, text="busy")})
        async with make_client(handler) as client:
            with pytest.raises(AdminAPIError):
                await client.get_by_name(ResourceKind.UPSTREAM, "u")

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_target_lookup(self):
        handler = Recorder({
            ("GET", "/upstreams/u/targets"): httpx.Response(200, json={"data": [
                {"target": "a:80", "weight": 100},
                {"target": "b:80", "weight": 20},
            ]}),
        })
        async with make_client(handler) as client:
            found = await client.get_by_name(ResourceKind.TARGET, "u/b:80")
            missing = await client.get_by_name(ResourceKind.TARGET, "u/c:80")

        assert found == {"target": "b:80", "weight": 20}
        assert missing is None

    @pytest.mark.asyncio
    async def test_target_on_second_page(self):
        def page(request):
            if request.url.params.get("offset") == "p2":
                return httpx.Response(200, json={"data": [{"target": "t-150:80"}], "offset": None})
            data = [{"target": f"t-{i}:80"} for i in range(100)]
            return httpx.Response(200, json={"data": data, "offset": "p2"})

        handler = Recorder({("GET", "/upstreams/up/targets"): page})
        async with make_client(handler) as client:
            found = await client.get_by_name(ResourceKind.TARGET, "up/t-150:80")

        assert found == {"target": "t-150:80"}
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_target_of_missing_upstream(self):
        async with make_client(Recorder({})) as client:
            assert await client.get_by_name(ResourceKind.TARGET, "gone/a:80") is None


class TestRequestShape:
    """Headers, workspace prefix, paths and bodies."""

    @pytest.mark.asyncio
    async def test_admin_token_header(self):
        handler = Recorder({})
        async with make_client(handler, token="s3cret") as client:
            await client.get_by_name(ResourceKind.SERVICE, "users")

        assert handler.requests[0].headers["Kong-Admin-Token"] == "s3cret"
        assert handler.requests[0].headers["Authorization"] == "Bearer s3cret"

    @pytest.mark.asyncio
    async def test_no_token_header_by_default(self):
        handler = Recorder({})
        async with make_client(handler) as client:
            await client.get_by_name(ResourceKind.SERVICE, "users")

        assert "Kong-Admin-Token" not in handler.requests[0].headers
        assert "Authorization" not in handler.requests[0].headers

    @pytest.mark.asyncio
    async def test_workspace_prefix(self):
        handler = Recorder({})
        async with make_client(handler, workspace="team-a") as client:
            await client.get_by_name(ResourceKind.ROUTE, "r")

        assert handler.requests[0].url.path == "/team-a/routes/r"

    @pytest.mark.asyncio
    async def test_create_route_under_service(self):
        handler = Recorder({
            ("POST", "/services/users/routes"): lambda request: httpx.Response(
                201, json={"id": "r1", **json.loads(request.content)}
            ),
        })
        async with make_client(handler) as client:
            created = await client.create(ResourceKind.ROUTE, {
                "name": "users-list",
                "paths": ["/users"],
                "service": {"name": "users"},
            })

        body = json.loads(handler.requests[0].content)
        assert body == {"name": "users-list", "paths": ["/users"]}
        assert created["id"] == "r1"

    @pytest.mark.asyncio
    async def test_create_target_under_upstream(self):
        handler = Recorder({
            ("POST", "/upstreams/u/targets"): httpx.Response(201, json={"id": "t1"}),
        })
        async with make_client(handler) as client:
            await client.create(ResourceKind.TARGET, {"upstream": "u", "target": "a:80", "weight": 10})

        assert json.loads(handler.requests[0].content) == {"target": "a:80", "weight": 10}

    @pytest.mark.asyncio
    async def test_create_service(self):
        handler = Recorder({("POST", "/services"): httpx.Response(201, json={"id": "s1"})})
        async with make_client(handler) as client:
            await client.create(ResourceKind.SERVICE, {"name": "echo", "url": "http://echo"})

        assert json.loads(handler.requests[0].content) == {"name": "echo", "url": "http://echo"}

    @pytest.mark.asyncio
    async def test_create_conflict(self):
        handler = Recorder({
            ("POST", "/upstreams"): httpx.Response(409, json={"message": "UNIQUE violation"}),
        })
        async with make_client(handler) as client:
            with pytest.raises(AdminAPIError) as exc_info:
                await client.create(ResourceKind.UPSTREAM, {"name": "u"})

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_patch_route_translates_service(self):
        handler = Recorder({
            ("GET", "/services/users"): httpx.Response(200, json={"id": "s1", "name": "users"}),
            ("PATCH", "/routes/users-list"): httpx.Response(200, json={"id": "r1"}),
        })
        async with make_client(handler) as client:
            await client.patch(ResourceKind.ROUTE, "users-list", {
                "paths": ["/v2"],
                "service": {"name": "users"},
            })

        patch = handler.requests[-1]
        assert patch.method == "PATCH"
        assert json.loads(patch.content) == {"paths": ["/v2"], "service": {"id": "s1"}}

    @pytest.mark.asyncio
    async def test_patch_target(self):
        handler = Recorder({
            ("PATCH", "/upstreams/u/targets/a:80"): httpx.Response(200, json={"weight": 5}),
        })
        async with make_client(handler) as client:
            result = await client.patch(ResourceKind.TARGET, "u/a:80", {"weight": 5})

        assert result == {"weight": 5}

    @pytest.mark.asyncio
    async def test_empty_body(self):
        handler = Recorder({("PATCH", "/upstreams/u"): httpx.Response(204)})
        async with make_client(handler) as client:
            assert await client.patch(ResourceKind.UPSTREAM, "u", {"slots": 100}) == {}


class TestListAll:
    """Paginated listing."""

    @pytest.mark.asyncio
    async def test_follows_offset(self):
        def page(request):
            if request.url.params.get("offset") == "next":
                return httpx.Response(200, json={"data": [{"name": "b"}], "offset": None})
            return httpx.Response(200, json={"data": [{"name": "a"}], "offset": "next"})

        handler = Recorder({("GET", "/services"): page})
        async with make_client(handler) as client:
            items = await client.list_all(ResourceKind.SERVICE)

        assert [i["name"] for i in items] == ["a", "b"]
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_targets_need_parent(self):
        async with make_client(Recorder({})) as client:
            with pytest.raises(ValueError):
                await client.list_all(ResourceKind.TARGET)

    @pytest.mark.asyncio
    async def test_targets_of_upstream(self):
        handler = Recorder({
            ("GET", "/upstreams/u/targets"): httpx.Response(200, json={"data": [{"target": "a:80"}]}),
        })
        async with make_client(handler) as client:
            items = await client.list_all(ResourceKind.TARGET, parent="u")

        assert items == [{"target": "a:80"}]


class TestTargetKeys:
    """<upstream>/<host:port> addressing."""

    def test_round_trip(self):
        assert split_target_key(target_key("u", "a:80")) == ("u", "a:80")

    def test_invalid(self):
        with pytest.raises(ValueError):
            split_target_key("no-slash")
