"""Shared fixtures: an in-memory gateway behind the GatewayAdminClient contract."""
import copy
import itertools
from typing import Any, Optional
from urllib.parse import urlparse

import pytest

from mcp_kong_gateway.admin.base import (
    AdminAPIError,
    GatewayAdminClient,
    ResourceKind,
    split_target_key,
    target_key,
)
from mcp_kong_gateway.config.settings import GatewaySettings


class FakeAdminClient(GatewayAdminClient):
    """Stores resources by (kind, name) and records every call.

    Behaves like the Admin API where the engine can observe it: ids are
    assigned on create, routes reference services by id, url services are
    decomposed into protocol / host / port / path.
    """

    def __init__(self):
        self.store: dict[tuple[ResourceKind, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, ResourceKind, str]] = []
        self.fail_on: dict[tuple[str, ResourceKind, str], Exception] = {}
        self._ids = itertools.count(1)

    # --- test helpers ---

    def seed(self, kind: ResourceKind, name: str, **fields: Any) -> dict[str, Any]:
        item = {"id": f"{kind.value.lower()}-{next(self._ids)}", **fields}
        if kind == ResourceKind.TARGET:
            item["target"] = split_target_key(name)[1]
            item.setdefault("weight", 100)
        else:
            item["name"] = name
        self.store[(kind, name)] = item
        return item

    def get(self, kind: ResourceKind, name: str) -> Optional[dict[str, Any]]:
        return self.store.get((kind, name))

    @property
    def mutations(self) -> list[tuple[str, ResourceKind, str]]:
        return [call for call in self.calls if call[0] != "get"]

    def _check(self, method: str, kind: ResourceKind, name: str) -> None:
        self.calls.append((method, kind, name))
        error = self.fail_on.get((method, kind, name))
        if error:
            raise error

    def _service_id(self, ref: dict[str, Any]) -> dict[str, str]:
        service = self.store.get((ResourceKind.SERVICE, ref["name"]))
        if service is None:
            raise AdminAPIError(400, f"service '{ref['name']}' not found")
        return {"id": service["id"]}

    # --- GatewayAdminClient ---

    async def get_by_name(self, kind: ResourceKind, name: str) -> Optional[dict[str, Any]]:
        self._check("get", kind, name)
        item = self.store.get((kind, name))
        return copy.deepcopy(item) if item else None

    async def create(self, kind: ResourceKind, payload: dict[str, Any]) -> dict[str, Any]:
        body = copy.deepcopy(payload)
        if kind == ResourceKind.TARGET:
            upstream = body.pop("upstream")
            name = target_key(upstream, body["target"])
            self._check("create", kind, name)
            if (ResourceKind.UPSTREAM, upstream) not in self.store:
                raise AdminAPIError(404, f"upstream '{upstream}' not found")
        else:
            name = body["name"]
            self._check("create", kind, name)

        if (kind, name) in self.store:
            raise AdminAPIError(409, f"{kind.value} '{name}' already exists")
        if kind == ResourceKind.ROUTE and "service" in body:
            body["service"] = self._service_id(body["service"])
        if kind == ResourceKind.SERVICE and "url" in body:
            body.update(_split_url(body.pop("url")))

        item = {"id": f"{kind.value.lower()}-{next(self._ids)}", **body}
        self.store[(kind, name)] = item
        return copy.deepcopy(item)

    async def patch(
        self,
        kind: ResourceKind,
        name: str,
        payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._check("patch", kind, name)
        item = self.store.get((kind, name))
        if item is None:
            raise AdminAPIError(404, f"{kind.value} '{name}' not found")
        body = copy.deepcopy(payload)
        if kind == ResourceKind.ROUTE and "service" in body:
            body["service"] = self._service_id(body["service"])
        if kind == ResourceKind.SERVICE and "url" in body:
            body.update(_split_url(body.pop("url")))
        item.update(body)
        return copy.deepcopy(item)

    async def list_all(
        self,
        kind: ResourceKind,
        parent: Optional[str] = None
    ) -> list[dict[str, Any]]:
        self.calls.append(("list", kind, parent or ""))
        items = []
        for (item_kind, name), item in self.store.items():
            if item_kind != kind:
                continue
            if kind == ResourceKind.TARGET and split_target_key(name)[0] != parent:
                continue
            items.append(copy.deepcopy(item))
        return items


def _split_url(url: str) -> dict[str, Any]:
    parsed = urlparse(url)
    return {
        "protocol": parsed.scheme,
        "host": parsed.hostname,
        "port": parsed.port or (443 if parsed.scheme == "https" else 80),
        "path": parsed.path or None,
    }


@pytest.fixture
def client():
    """Empty in-memory gateway."""
    return FakeAdminClient()


@pytest.fixture
def settings():
    return GatewaySettings(admin_url="http://kong.test:8001")


@pytest.fixture
def full_document():
    """Upstream + target, upstream-bound service, route."""
    return {
        "upstreams": [
            {"name": "users-upstream", "targets": [{"target": "users-1:8080", "weight": 100}]},
        ],
        "services": [
            {"name": "users", "upstream": "users-upstream", "port": 8080, "path": "/api"},
        ],
        "routes": [
            {
                "name": "users-list",
                "service": "users",
                "paths": ["/v1/users"],
                "methods": ["GET"],
                "strip_path": True,
            },
        ],
    }


@pytest.fixture
def shorthand_document():
    """Single shorthand route with two backend targets."""
    return [
        {
            "name": "demo",
            "paths": ["/demo"],
            "methods": ["GET", "POST"],
            "backend": {
                "port": 8080,
                "targets": [{"target": "demo-1:8080"}, {"target": "demo-2:8080", "weight": 50}],
            },
        }
    ]
