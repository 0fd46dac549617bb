"""Gateway Admin API clients."""
from .base import (
    AdminAPIError,
    GatewayAdminClient,
    ResourceKind,
    TransportError,
    split_target_key,
    target_key,
)
from .kong import KongAdminClient

__all__ = [
    "AdminAPIError",
    "GatewayAdminClient",
    "KongAdminClient",
    "ResourceKind",
    "TransportError",
    "split_target_key",
    "target_key",
]
