"""Kong Admin API client.

Thin httpx wrapper implementing GatewayAdminClient:
- GET by name (404 means absent)
- POST to create, PATCH to update
- Paginated listing for export

No request is ever retried: a timeout or connection failure surfaces as
TransportError and the caller aborts the run.
"""
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config.settings import GatewaySettings
from ..utils.logging_config import timed_section
from .base import (
    AdminAPIError,
    GatewayAdminClient,
    ResourceKind,
    TransportError,
    split_target_key,
)

logger = logging.getLogger(__name__)

SNIPPET_LIMIT = 256
PAGE_SIZE = 1000


def _snippet(text: str) -> str:
    text = text.strip()
    if len(text) > SNIPPET_LIMIT:
        return text[:SNIPPET_LIMIT] + "..."
    return text


class KongAdminClient(GatewayAdminClient):
    """Kong Admin API client over httpx.AsyncClient."""

    def __init__(
        self,
        settings: GatewaySettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        url = self.settings.admin_url.rstrip("/")
        if self.settings.workspace:
            url = f"{url}/{quote(self.settings.workspace, safe='')}"
        return url

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            headers = {"Accept": "application/json"}
            if self.settings.token:
                headers["Kong-Admin-Token"] = self.settings.token
                headers["Authorization"] = f"Bearer {self.settings.token}"
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.settings.timeout),
                verify=not self.settings.tls_skip_verify,
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        allow_missing: bool = False,
    ) -> Optional[dict[str, Any]]:
        """Send one request and decode the JSON body.

        Returns None for 404 when allow_missing is set.
        """
        try:
            resp = await self._client().request(method, path, json=json_body, params=params)
        except httpx.TimeoutException as e:
            raise TransportError(
                f"{method} {path} timed out after {self.settings.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if resp.status_code == 404 and allow_missing:
            return None
        if not resp.is_success:
            raise AdminAPIError(resp.status_code, _snippet(resp.text))

        body = resp.text
        if not body.strip():
            return {}
        content_type = resp.headers.get("content-type", "").lower()
        if (content_type and "json" not in content_type) or body.lstrip().startswith("<"):
            raise AdminAPIError(
                resp.status_code,
                f"non-JSON response (Content-Type={content_type or 'unset'}), "
                f"check that the admin URL points at the Admin API: {_snippet(body)}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise AdminAPIError(resp.status_code, f"invalid JSON: {e}: {_snippet(body)}") from e

    # --- lookups ---

    async def get_by_name(self, kind: ResourceKind, name: str) -> Optional[dict[str, Any]]:
        async with timed_section("get_by_name", resource=f"{kind.value}:{name}"):
            if kind == ResourceKind.TARGET:
                return await self._get_target(name)
            return await self._request(
                "GET", f"/{kind.collection}/{quote(name, safe='')}", allow_missing=True
            )

    async def _get_target(self, name: str) -> Optional[dict[str, Any]]:
        upstream, address = split_target_key(name)
        targets = await self._pages(
            f"/upstreams/{quote(upstream, safe='')}/targets", allow_missing=True
        )
        if targets is None:
            return None
        for target in targets:
            if target.get("target") == address:
                return target
        return None

    async def _pages(
        self,
        path: str,
        allow_missing: bool = False
    ) -> Optional[list[dict[str, Any]]]:
        """Collect every page of a collection, following Kong's offset cursor.

        Returns None when the collection itself is missing and allow_missing is set.
        """
        items: list[dict[str, Any]] = []
        offset: Optional[str] = None
        while True:
            params: dict[str, Any] = {"size": PAGE_SIZE}
            if offset:
                params["offset"] = offset
            page = await self._request("GET", path, params=params, allow_missing=allow_missing)
            if page is None:
                return None
            items.extend(page.get("data", []))
            offset = page.get("offset")
            if not offset:
                return items

    async def list_all(
        self,
        kind: ResourceKind,
        parent: Optional[str] = None
    ) -> list[dict[str, Any]]:
        if kind == ResourceKind.TARGET:
            if not parent:
                raise ValueError("Listing targets requires the upstream name")
            path = f"/upstreams/{quote(parent, safe='')}/targets"
        else:
            path = f"/{kind.collection}"

        async with timed_section("list_all", resource=kind.value):
            return await self._pages(path) or []

    # --- mutations ---

    async def create(self, kind: ResourceKind, payload: dict[str, Any]) -> dict[str, Any]:
        body = dict(payload)
        label = f"{kind.value}:{body.get('name') or body.get('target')}"
        async with timed_section("create", resource=label):
            if kind == ResourceKind.TARGET:
                upstream = body.pop("upstream")
                path = f"/upstreams/{quote(upstream, safe='')}/targets"
            elif kind == ResourceKind.ROUTE and "service" in body:
                # Routes are created under their service so the name never
                # needs translating to an id.
                service = body.pop("service")
                path = f"/services/{quote(service['name'], safe='')}/routes"
            else:
                path = f"/{kind.collection}"
            result = await self._request("POST", path, json_body=body)
        logger.info(f"Created {label}")
        return result or {}

    async def patch(
        self,
        kind: ResourceKind,
        name: str,
        payload: dict[str, Any]
    ) -> dict[str, Any]:
        body = dict(payload)
        async with timed_section("patch", resource=f"{kind.value}:{name}"):
            if kind == ResourceKind.TARGET:
                upstream, address = split_target_key(name)
                path = (
                    f"/upstreams/{quote(upstream, safe='')}"
                    f"/targets/{quote(address, safe='')}"
                )
            else:
                path = f"/{kind.collection}/{quote(name, safe='')}"
                if kind == ResourceKind.ROUTE and "name" in body.get("service", {}):
                    body["service"] = await self._service_ref(body["service"]["name"])
            result = await self._request("PATCH", path, json_body=body)
        logger.info(f"Patched {kind.value}:{name} fields={sorted(body)}")
        return result or {}

    async def _service_ref(self, service_name: str) -> dict[str, str]:
        """Translate a service name into the {"id": ...} foreign key Kong expects."""
        service = await self.get_by_name(ResourceKind.SERVICE, service_name)
        if service is None:
            raise AdminAPIError(404, f"referenced service '{service_name}' does not exist")
        return {"id": service["id"]}
