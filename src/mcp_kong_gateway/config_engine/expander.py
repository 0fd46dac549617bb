"""Shorthand expansion.

A route without a service reference describes its backend inline; the
expander synthesizes the upstream, targets and service it needs and points
the route at the synthesized service:

    - name: demo
      paths: ["/demo"]
      backend:
        targets: [{target: "a:80"}]

becomes upstream ``demo-upstream`` (target a:80, weight 100), service
``demo-service`` (http, port 80, host demo-upstream) and route ``demo``
bound to ``demo-service``.
"""
import logging
import re

from .errors import ValidationError
from .schema import (
    BackendSpec,
    DesiredDocument,
    RouteSpec,
    ServiceSpec,
    ShorthandLink,
    TargetSpec,
    UpstreamSpec,
    default_port,
)

logger = logging.getLogger(__name__)

NON_WORD = re.compile(r"[^A-Za-z0-9]+")


def default_route_name(service: str, paths: list[str], methods: list[str]) -> str:
    """Name for an unnamed route bound to an existing service.

    ``users`` + ``["/v1/users"]`` + ``["post", "get"]`` -> ``users-v1-users-GET+POST``
    """
    path_part = NON_WORD.sub("-", "-".join(paths)).strip("-")
    method_part = "+".join(sorted(m.upper() for m in methods)) or "ANY"
    return f"{service}-{path_part}-{method_part}"


def synthesized_names(route: RouteSpec) -> tuple[str, str]:
    """(service, upstream) names for a shorthand route."""
    service = route.service_name or f"{route.name}-service"
    upstream = route.upstream_name or f"{route.name}-upstream"
    return service, upstream


class ShorthandExpander:
    """Derive implicit dependent resources for minimally specified routes."""

    def expand(self, document: DesiredDocument) -> DesiredDocument:
        """
        Expand shorthand routes in place.

        Raises:
            ValidationError: A shorthand route has no name to derive from
        """
        for index, route in enumerate(document.routes):
            if route.name in document.shorthand:
                continue  # already expanded

            if route.service:
                if not route.name:
                    route.name = default_route_name(route.service, route.paths, route.methods)
                    logger.debug(f"Derived route name {route.name}")
                continue

            if not route.name:
                raise ValidationError(
                    f"routes[{index}] has neither a name nor a service: a shorthand "
                    f"route needs a name to derive its service and upstream from"
                )
            self._expand_route(document, route)

        return document

    def _expand_route(self, document: DesiredDocument, route: RouteSpec) -> None:
        backend = route.backend or BackendSpec()
        service_name, upstream_name = synthesized_names(route)

        targets = [TargetSpec(target=t.target, weight=t.weight) for t in backend.targets]
        protocol = (backend.protocol or "http").lower()

        document.auto_upstreams[route.name] = UpstreamSpec(name=upstream_name, targets=targets)
        document.auto_services[route.name] = ServiceSpec(
            name=service_name,
            upstream=upstream_name,
            protocol=protocol,
            port=backend.port or default_port(protocol),
            path=backend.path,
        )
        document.shorthand[route.name] = ShorthandLink(
            route_name=route.name,
            service=service_name,
            upstream=upstream_name,
            targets=[t.target for t in targets],
        )
        route.service = service_name

        logger.debug(
            f"Expanded shorthand route {route.name}: service={service_name} "
            f"upstream={upstream_name} targets={len(targets)}"
        )
