"""Runtime settings for reaching the gateway Admin API.

Resolution order (first wins):
1. explicit overrides (CLI flags, MCP tool arguments)
2. environment: GATEWAYCRAFT_ADMIN_URL, GATEWAYCRAFT_TOKEN,
   GATEWAYCRAFT_WORKSPACE, GATEWAYCRAFT_TLS_SKIP_VERIFY, GATEWAYCRAFT_TIMEOUT
3. YAML file: GATEWAYCRAFT_CONFIG, ./gatewaycraft.yaml,
   ~/.gatewaycraft/config.yaml

```yaml
admin_url: http://localhost:8001
token: my-admin-token
workspace: default
tls_skip_verify: false
timeout: 15
```
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0

ENV_KEYS = {
    "admin_url": "GATEWAYCRAFT_ADMIN_URL",
    "token": "GATEWAYCRAFT_TOKEN",
    "workspace": "GATEWAYCRAFT_WORKSPACE",
    "tls_skip_verify": "GATEWAYCRAFT_TLS_SKIP_VERIFY",
    "timeout": "GATEWAYCRAFT_TIMEOUT",
}


class ConfigError(Exception):
    """Settings are missing or malformed."""
    pass


@dataclass(frozen=True)
class GatewaySettings:
    """Connection settings for the Admin API."""
    admin_url: str
    token: Optional[str] = None
    workspace: Optional[str] = None
    tls_skip_verify: bool = False
    timeout: float = DEFAULT_TIMEOUT


def find_config_file() -> Optional[Path]:
    """Locate the settings file, if any."""
    env_path = os.environ.get("GATEWAYCRAFT_CONFIG")
    if env_path:
        return Path(env_path).expanduser()

    search_paths = [
        Path.cwd() / "gatewaycraft.yaml",
        Path.home() / ".gatewaycraft" / "config.yaml",
    ]
    for path in search_paths:
        if path.exists():
            return path
    return None


def _read_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Settings file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in settings file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return data


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def normalize_admin_url(url: str) -> str:
    """Default to http:// when no scheme is given."""
    url = url.strip()
    if url and not url.startswith(("http://", "https://")):
        url = "http://" + url
    return url


def load_settings(config_path: Optional[str] = None, **overrides: Any) -> GatewaySettings:
    """Build GatewaySettings from overrides, environment and the YAML file."""
    path = Path(config_path).expanduser() if config_path else find_config_file()
    values: dict[str, Any] = _read_file(path) if path else {}
    if path:
        logger.debug(f"Loaded settings from {path}")

    for key, env_name in ENV_KEYS.items():
        env_value = os.environ.get(env_name)
        if env_value:
            values[key] = env_value

    for key, value in overrides.items():
        if value is not None:
            values[key] = value

    admin_url = normalize_admin_url(str(values.get("admin_url") or ""))
    if not admin_url:
        raise ConfigError(
            "Admin API URL is not configured: pass --admin-url, set "
            "GATEWAYCRAFT_ADMIN_URL or add admin_url to the settings file"
        )

    try:
        timeout = float(values.get("timeout") or DEFAULT_TIMEOUT)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid timeout: {values.get('timeout')!r}")
    if timeout <= 0:
        raise ConfigError(f"Timeout must be positive, got {timeout}")

    return GatewaySettings(
        admin_url=admin_url,
        token=values.get("token") or None,
        workspace=values.get("workspace") or None,
        tls_skip_verify=_parse_bool(values.get("tls_skip_verify", False)),
        timeout=timeout,
    )
