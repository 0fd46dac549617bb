"""Remote state resolution.

One get-by-name lookup per desired resource, strictly sequential. "Not
found" means Absent; anything else aborts the run with FetchError.
"""
import logging
from typing import Any, Optional

from ..admin.base import (
    AdminAPIError,
    GatewayAdminClient,
    ResourceKind,
    TransportError,
    split_target_key,
)
from .errors import DependencyError, FetchError

logger = logging.getLogger(__name__)


class RemoteStateResolver:
    """Fetch and cache remote resources for a single run."""

    def __init__(self, client: GatewayAdminClient):
        self.client = client
        self._cache: dict[tuple[ResourceKind, str], Optional[dict[str, Any]]] = {}
        self._pending: set[tuple[ResourceKind, str]] = set()

    async def fetch(self, kind: ResourceKind, name: str) -> Optional[dict[str, Any]]:
        """
        Current remote state of a resource, None when Absent.

        Raises:
            FetchError: The lookup failed for any reason other than "not found"
        """
        key = (kind, name)
        if key in self._pending:
            return None
        if key in self._cache:
            return self._cache[key]

        if kind == ResourceKind.TARGET:
            upstream, _ = split_target_key(name)
            if self.is_pending(ResourceKind.UPSTREAM, upstream):
                # The upstream is created in this run, so it has no targets yet
                self._cache[key] = None
                return None

        try:
            remote = await self.client.get_by_name(kind, name)
        except (AdminAPIError, TransportError) as e:
            raise FetchError(kind.value, name, e) from e

        logger.debug(f"Resolved {kind.value} {name}: {'present' if remote else 'absent'}")
        self._cache[key] = remote
        return remote

    def mark_pending(self, kind: ResourceKind, name: str) -> None:
        """Record that a resource is created earlier in this run."""
        self._pending.add((kind, name))

    def is_pending(self, kind: ResourceKind, name: str) -> bool:
        return (kind, name) in self._pending

    async def require_service(self, route: str, service: str) -> Optional[dict[str, Any]]:
        """
        Resolve the service a route references.

        Returns the remote service, or None when it is created earlier in
        this run (its id is not known yet).

        Raises:
            DependencyError: The service neither exists nor is planned
        """
        if self.is_pending(ResourceKind.SERVICE, service):
            return None
        remote = await self.fetch(ResourceKind.SERVICE, service)
        if remote is None:
            raise DependencyError(ResourceKind.ROUTE.value, route, f"Service {service}")
        return remote
