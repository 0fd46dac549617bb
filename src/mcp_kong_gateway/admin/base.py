"""Base abstraction for gateway Admin API clients."""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    """Gateway resource kinds managed by the reconciler."""
    UPSTREAM = "Upstream"
    SERVICE = "Service"
    ROUTE = "Route"
    TARGET = "Target"

    @property
    def collection(self) -> str:
        """Admin API collection path segment."""
        return {
            ResourceKind.UPSTREAM: "upstreams",
            ResourceKind.SERVICE: "services",
            ResourceKind.ROUTE: "routes",
            ResourceKind.TARGET: "targets",
        }[self]


class AdminAPIError(Exception):
    """Non-success response from the Admin API (anything but 2xx / 404 on lookups)."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")


class TransportError(Exception):
    """The request never produced a response (timeout, refused connection, TLS)."""
    pass


def target_key(upstream: str, address: str) -> str:
    """Name under which a target is addressed: ``<upstream>/<host:port>``."""
    return f"{upstream}/{address}"


def split_target_key(name: str) -> tuple[str, str]:
    """Inverse of target_key."""
    upstream, sep, address = name.partition("/")
    if not sep or not upstream or not address:
        raise ValueError(f"Invalid target name '{name}', expected <upstream>/<host:port>")
    return upstream, address


class GatewayAdminClient(ABC):
    """Contract the reconciliation engine relies on.

    Lookups return None when the resource does not exist and raise
    AdminAPIError / TransportError for everything else, so "absent" is
    never confused with "failed".
    """

    @abstractmethod
    async def get_by_name(self, kind: ResourceKind, name: str) -> Optional[dict[str, Any]]:
        """Fetch one resource by name, None if absent."""
        pass

    @abstractmethod
    async def create(self, kind: ResourceKind, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a resource from a full payload."""
        pass

    @abstractmethod
    async def patch(
        self,
        kind: ResourceKind,
        name: str,
        payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Partially update an existing resource."""
        pass

    @abstractmethod
    async def list_all(
        self,
        kind: ResourceKind,
        parent: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """List every resource of a kind (targets need their upstream as parent)."""
        pass

    async def close(self) -> None:
        """Release underlying connections."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
