"""Export remote gateway configuration as a desired-state document.

The exported document is accepted by the parser, so
``export -> apply`` against the same gateway plans nothing but NoChange.
"""
import logging
from typing import Any, Optional, Union

import yaml

from ..admin.base import GatewayAdminClient, ResourceKind
from .diff import reconstruct_url
from .schema import ROUTE_FIELDS, CompareMode

logger = logging.getLogger(__name__)

SERVICE_EXTRAS = ("retries", "connect_timeout", "read_timeout", "write_timeout")


class ConfigExporter:
    """Build apply-compatible documents from remote state."""

    def __init__(self, client: GatewayAdminClient):
        self.client = client

    async def export(
        self,
        shorthand: bool = False,
        include_orphans: bool = False,
    ) -> Union[dict[str, Any], list[dict[str, Any]]]:
        """
        Export upstreams (with targets), services and routes.

        Args:
            shorthand: Fold service/upstream into each route's backend
            include_orphans: With shorthand, also list upstreams no route uses

        Returns:
            A full document mapping, or (shorthand without orphans) a route list
        """
        upstreams = await self._export_upstreams()
        upstream_targets = {up["name"]: up["targets"] for up in upstreams}

        remote_services = await self.client.list_all(ResourceKind.SERVICE)
        services_by_id = {s["id"]: s for s in remote_services if s.get("id")}
        services = sorted(
            (self._export_service(s, upstream_targets) for s in remote_services if s.get("name")),
            key=lambda s: s["name"],
        )

        remote_routes = await self.client.list_all(ResourceKind.ROUTE)
        routes = []
        for remote in remote_routes:
            if not remote.get("name"):
                logger.warning(f"Skipping unnamed route {remote.get('id')}")
                continue
            service = services_by_id.get((remote.get("service") or {}).get("id"))
            routes.append((self._export_route(remote, service), service))
        routes.sort(key=lambda pair: pair[0]["name"])

        logger.info(
            f"Exported {len(upstreams)} upstreams, {len(services)} services, {len(routes)} routes"
        )

        if not shorthand:
            return {
                "upstreams": upstreams,
                "services": services,
                "routes": [route for route, _ in routes],
            }

        used_upstreams: set[str] = set()
        folded = []
        for route, service in routes:
            folded.append(self._fold_route(route, service, upstream_targets, used_upstreams))

        if not include_orphans:
            return folded
        orphans = [up for up in upstreams if up["name"] not in used_upstreams]
        return {"routes": folded, "upstreams": orphans}

    async def _export_upstreams(self) -> list[dict[str, Any]]:
        upstreams = []
        for remote in await self.client.list_all(ResourceKind.UPSTREAM):
            name = (remote.get("name") or "").strip()
            if not name:
                continue
            targets = [
                {"target": t["target"], "weight": t.get("weight", 100)}
                for t in await self.client.list_all(ResourceKind.TARGET, parent=name)
                if (t.get("target") or "").strip()
            ]
            targets.sort(key=lambda t: t["target"])
            upstreams.append({"name": name, "targets": targets})
        upstreams.sort(key=lambda u: u["name"])
        return upstreams

    def _export_service(
        self,
        remote: dict[str, Any],
        upstream_targets: dict[str, list],
    ) -> dict[str, Any]:
        service: dict[str, Any] = {"name": remote["name"]}
        host = remote.get("host")
        if host and host in upstream_targets:
            service["upstream"] = host
            for key in ("protocol", "port", "path"):
                if remote.get(key):
                    service[key] = remote[key]
        else:
            url = reconstruct_url(remote)
            if url:
                service["url"] = url
        for key in SERVICE_EXTRAS:
            if remote.get(key) is not None:
                service[key] = remote[key]
        return service

    def _export_route(
        self,
        remote: dict[str, Any],
        service: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        route: dict[str, Any] = {"name": remote["name"]}
        if service:
            route["service"] = service["name"]
        for spec in ROUTE_FIELDS:
            value = remote.get(spec.name)
            if not spec.is_declared(value):
                continue
            if spec.compare == CompareMode.LOWER_SCALAR:
                value = str(value).strip().lower()
            route[spec.name] = value
        return route

    def _fold_route(
        self,
        route: dict[str, Any],
        service: Optional[dict[str, Any]],
        upstream_targets: dict[str, list],
        used_upstreams: set[str],
    ) -> dict[str, Any]:
        """Replace the service reference with a backend when the service is upstream-bound.

        Only the first route (by name) of an upstream is folded. Later routes
        keep ``service: <name>``, which resolves because the folded route
        plans that service first; folding them too would synthesize the same
        service and upstream twice.
        """
        if not service or service.get("host") not in upstream_targets:
            return route

        upstream = service["host"]
        if upstream in used_upstreams:
            return route
        used_upstreams.add(upstream)
        folded = {k: v for k, v in route.items() if k != "service"}
        if service["name"] != f"{route['name']}-service":
            folded["service_name"] = service["name"]
        if upstream != f"{route['name']}-upstream":
            folded["upstream_name"] = upstream

        backend: dict[str, Any] = {}
        for key in ("protocol", "port", "path"):
            if service.get(key):
                backend[key] = service[key]
        backend["targets"] = upstream_targets[upstream]
        folded["backend"] = backend
        return folded


def dump_yaml(document: Any) -> str:
    """Serialize an exported document as YAML, keys in insertion order."""
    return yaml.safe_dump(
        document,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
