"""Runtime configuration."""
from .settings import ConfigError, GatewaySettings, load_settings

__all__ = ["ConfigError", "GatewaySettings", "load_settings"]
