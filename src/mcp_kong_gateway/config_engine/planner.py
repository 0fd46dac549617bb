"""Plan assembly.

Walks an expanded document in dependency order and classifies every
resource against remote state:

1. declared upstreams, each followed by its targets
2. services; the upstream a service is bound to (and the service's inline
   targets) is ensured right before the service
3. routes; a shorthand route is preceded by its synthesized upstream,
   targets and service

Each (kind, name) is planned once. Create and patch payloads carry the
declared fields only.
"""
import logging
from typing import Any, Optional

from ..admin.base import ResourceKind, target_key
from .diff import DiffEngine, route_values, service_values
from .resolver import RemoteStateResolver
from .schema import (
    Action,
    Change,
    DesiredDocument,
    Plan,
    RouteSpec,
    ServiceSpec,
    TargetSpec,
)

logger = logging.getLogger(__name__)


def service_payload(spec: ServiceSpec, include_name: bool = True) -> dict[str, Any]:
    payload = service_values(spec)
    if include_name:
        payload = {"name": spec.name, **payload}
    return payload


def route_payload(spec: RouteSpec, include_name: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if include_name:
        payload["name"] = spec.name
    payload.update(route_values(spec))
    payload["service"] = {"name": spec.service}
    return payload


class PlanAssembler:
    """Build an ordered Plan for one document."""

    def __init__(self, resolver: RemoteStateResolver, diff_engine: Optional[DiffEngine] = None):
        self.resolver = resolver
        self.diff_engine = diff_engine or DiffEngine()
        self._planned: set[tuple[ResourceKind, str]] = set()

    async def assemble(self, document: DesiredDocument) -> Plan:
        """
        Classify every resource of an expanded document.

        Raises:
            FetchError: A remote lookup failed
            DependencyError: A route references a service that is neither
                present nor created earlier in the run
        """
        plan = Plan(shorthand=dict(document.shorthand))

        for upstream in document.upstreams:
            await self._plan_upstream(plan, upstream.name)
            for target in upstream.targets:
                await self._plan_target(plan, upstream.name, target)

        for service in document.services:
            if service.upstream_mode:
                await self._plan_upstream(plan, service.upstream)
                for target in service.targets:
                    await self._plan_target(plan, service.upstream, target)
            await self._plan_service(plan, service)

        for route in document.routes:
            if route.name in document.shorthand:
                upstream = document.auto_upstreams[route.name]
                await self._plan_upstream(plan, upstream.name, auto_for_route=route.name)
                for target in upstream.targets:
                    await self._plan_target(plan, upstream.name, target, auto_for_route=route.name)
                await self._plan_service(
                    plan, document.auto_services[route.name], auto_for_route=route.name
                )
            await self._plan_route(plan, route)

        logger.info(
            f"Planned {len(plan.changes)} resources, "
            f"{sum(1 for c in plan.changes if c.action != Action.NO_CHANGE)} with changes"
        )
        return plan

    def _claim(self, kind: ResourceKind, name: str) -> bool:
        """True the first time a (kind, name) is seen in this plan."""
        key = (kind, name)
        if key in self._planned:
            return False
        self._planned.add(key)
        return True

    def _add(self, plan: Plan, change: Change) -> None:
        if change.action == Action.CREATE:
            self.resolver.mark_pending(change.kind, change.name)
        plan.changes.append(change)
        logger.debug(f"{change.kind.value} {change.name}: {change.action.value}")

    async def _plan_upstream(
        self,
        plan: Plan,
        name: str,
        auto_for_route: Optional[str] = None
    ) -> None:
        if not self._claim(ResourceKind.UPSTREAM, name):
            return
        remote = await self.resolver.fetch(ResourceKind.UPSTREAM, name)
        action, diffs = self.diff_engine.diff_upstream(remote)
        self._add(plan, Change(
            kind=ResourceKind.UPSTREAM,
            name=name,
            action=action,
            diffs=diffs,
            payload={"name": name},
            auto_for_route=auto_for_route,
        ))

    async def _plan_target(
        self,
        plan: Plan,
        upstream: str,
        target: TargetSpec,
        auto_for_route: Optional[str] = None
    ) -> None:
        name = target_key(upstream, target.target)
        if not self._claim(ResourceKind.TARGET, name):
            return
        remote = await self.resolver.fetch(ResourceKind.TARGET, name)
        action, diffs = self.diff_engine.diff_target(target, remote)
        if action == Action.CREATE:
            payload = {
                "upstream": upstream,
                "target": target.target,
                "weight": target.effective_weight,
            }
        else:
            payload = {"weight": target.effective_weight}
        self._add(plan, Change(
            kind=ResourceKind.TARGET,
            name=name,
            action=action,
            diffs=diffs,
            payload=payload,
            parent=upstream,
            auto_for_route=auto_for_route,
        ))

    async def _plan_service(
        self,
        plan: Plan,
        service: ServiceSpec,
        auto_for_route: Optional[str] = None
    ) -> None:
        if not self._claim(ResourceKind.SERVICE, service.name):
            return
        remote = await self.resolver.fetch(ResourceKind.SERVICE, service.name)
        action, diffs = self.diff_engine.diff_service(service, remote)
        self._add(plan, Change(
            kind=ResourceKind.SERVICE,
            name=service.name,
            action=action,
            diffs=diffs,
            payload=service_payload(service, include_name=action == Action.CREATE),
            parent=service.upstream if service.upstream_mode else None,
            auto_for_route=auto_for_route,
        ))

    async def _plan_route(self, plan: Plan, route: RouteSpec) -> None:
        if not self._claim(ResourceKind.ROUTE, route.name):
            return
        service = await self.resolver.require_service(route.name, route.service)
        service_id = service.get("id") if service else None
        remote = await self.resolver.fetch(ResourceKind.ROUTE, route.name)
        action, diffs = self.diff_engine.diff_route(route, remote, service_id)
        self._add(plan, Change(
            kind=ResourceKind.ROUTE,
            name=route.name,
            action=action,
            diffs=diffs,
            payload=route_payload(route, include_name=action == Action.CREATE),
            parent=route.service,
        ))
