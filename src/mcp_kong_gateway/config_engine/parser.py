"""Parser for desired-state documents.

Accepts three top-level shapes, checked in order:
1. a mapping with any non-empty upstreams / services / routes list
2. a bare list, every element a route (shorthand)
3. a single route mapping (name / paths / hosts / methods / service / backend)

YAML and JSON are both accepted; JSON is parsed as YAML.
"""
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ParseError
from .schema import (
    BackendSpec,
    DesiredDocument,
    RouteSpec,
    ServiceSpec,
    TargetSpec,
    UpstreamSpec,
)

logger = logging.getLogger(__name__)

COLLECTION_KEYS = ("upstreams", "services", "routes")
ROUTE_SHAPE_KEYS = ("name", "paths", "hosts", "methods", "service", "backend")


class ConfigParser:
    """Parse desired state from dict/list/YAML/JSON input."""

    def parse(self, raw: Any) -> DesiredDocument:
        """
        Normalize a raw document into a DesiredDocument.

        Args:
            raw: Decoded YAML/JSON (mapping or list)

        Returns:
            DesiredDocument with three (possibly empty) resource lists

        Raises:
            ParseError: If the shape is not recognized or it carries no resources
        """
        if isinstance(raw, dict) and any(raw.get(key) for key in COLLECTION_KEYS):
            document = DesiredDocument(
                upstreams=[
                    self._parse_upstream(item, f"upstreams[{i}]")
                    for i, item in enumerate(self._list(raw.get("upstreams"), "upstreams"))
                ],
                services=[
                    self._parse_service(item, f"services[{i}]")
                    for i, item in enumerate(self._list(raw.get("services"), "services"))
                ],
                routes=[
                    self._parse_route(item, f"routes[{i}]")
                    for i, item in enumerate(self._list(raw.get("routes"), "routes"))
                ],
            )
            shape = "full"
        elif isinstance(raw, list):
            if not raw:
                raise ParseError("Document is an empty list: no routes to apply")
            document = DesiredDocument(
                routes=[self._parse_route(item, f"[{i}]") for i, item in enumerate(raw)]
            )
            shape = "route list"
        elif isinstance(raw, dict) and any(raw.get(key) for key in ROUTE_SHAPE_KEYS):
            document = DesiredDocument(routes=[self._parse_route(raw, "route")])
            shape = "single route"
        elif raw is None or isinstance(raw, dict):
            raise ParseError(
                "Document is empty or has no recognizable resources: provide "
                "upstreams / services / routes, a list of routes, or a single route"
            )
        else:
            raise ParseError(
                f"Unsupported document type {type(raw).__name__}: expected a mapping or a list"
            )

        logger.debug(
            f"Parsed {shape} document: {len(document.upstreams)} upstreams, "
            f"{len(document.services)} services, {len(document.routes)} routes"
        )
        return document

    def parse_text(self, text: str) -> DesiredDocument:
        """Parse YAML or JSON text."""
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ParseError(f"Failed to parse document (YAML/JSON expected): {e}") from e
        return self.parse(raw)

    # --- resources ---

    def _parse_upstream(self, item: Any, where: str) -> UpstreamSpec:
        data = self._mapping(item, where)
        return UpstreamSpec(
            name=self._str(data.get("name"), f"{where}.name") or "",
            targets=self._parse_targets(data.get("targets"), f"{where}.targets"),
        )

    def _parse_service(self, item: Any, where: str) -> ServiceSpec:
        data = self._mapping(item, where)
        protocol = self._str(data.get("protocol"), f"{where}.protocol")
        return ServiceSpec(
            name=self._str(data.get("name"), f"{where}.name") or "",
            url=self._str(data.get("url"), f"{where}.url"),
            upstream=self._str(data.get("upstream"), f"{where}.upstream"),
            protocol=protocol.lower() if protocol else None,
            port=self._int(data.get("port"), f"{where}.port"),
            path=self._str(data.get("path"), f"{where}.path"),
            retries=self._int(data.get("retries"), f"{where}.retries"),
            connect_timeout=self._int(data.get("connect_timeout"), f"{where}.connect_timeout"),
            read_timeout=self._int(data.get("read_timeout"), f"{where}.read_timeout"),
            write_timeout=self._int(data.get("write_timeout"), f"{where}.write_timeout"),
            targets=self._parse_targets(data.get("targets"), f"{where}.targets"),
        )

    def _parse_route(self, item: Any, where: str) -> RouteSpec:
        data = self._mapping(item, where)
        path_handling = self._str(data.get("path_handling"), f"{where}.path_handling")
        return RouteSpec(
            name=self._str(data.get("name"), f"{where}.name"),
            service=self._str(data.get("service"), f"{where}.service"),
            hosts=self._str_list(data.get("hosts"), f"{where}.hosts"),
            paths=self._str_list(data.get("paths"), f"{where}.paths"),
            methods=[m.upper() for m in self._str_list(data.get("methods"), f"{where}.methods")],
            protocols=self._str_list(data.get("protocols"), f"{where}.protocols"),
            headers=self._headers(data.get("headers"), f"{where}.headers"),
            snis=self._str_list(data.get("snis"), f"{where}.snis"),
            tags=self._str_list(data.get("tags"), f"{where}.tags"),
            strip_path=self._bool(data.get("strip_path"), f"{where}.strip_path"),
            preserve_host=self._bool(data.get("preserve_host"), f"{where}.preserve_host"),
            request_buffering=self._bool(
                data.get("request_buffering"), f"{where}.request_buffering"
            ),
            response_buffering=self._bool(
                data.get("response_buffering"), f"{where}.response_buffering"
            ),
            path_handling=path_handling.strip().lower() if path_handling else None,
            regex_priority=self._int(data.get("regex_priority"), f"{where}.regex_priority"),
            https_redirect_status_code=self._int(
                data.get("https_redirect_status_code"), f"{where}.https_redirect_status_code"
            ),
            service_name=self._str(data.get("service_name"), f"{where}.service_name"),
            upstream_name=self._str(data.get("upstream_name"), f"{where}.upstream_name"),
            backend=self._parse_backend(data.get("backend"), f"{where}.backend"),
        )

    def _parse_backend(self, item: Any, where: str) -> Optional[BackendSpec]:
        if item is None:
            return None
        data = self._mapping(item, where)
        protocol = self._str(data.get("protocol"), f"{where}.protocol")
        return BackendSpec(
            protocol=protocol.lower() if protocol else None,
            port=self._int(data.get("port"), f"{where}.port"),
            path=self._str(data.get("path"), f"{where}.path"),
            targets=self._parse_targets(data.get("targets"), f"{where}.targets"),
        )

    def _parse_targets(self, value: Any, where: str) -> list[TargetSpec]:
        targets = []
        for i, item in enumerate(self._list(value, where)):
            data = self._mapping(item, f"{where}[{i}]")
            address = self._str(data.get("target"), f"{where}[{i}].target")
            if not address:
                raise ParseError(f"Missing required field: {where}[{i}].target")
            weight = self._int(data.get("weight"), f"{where}[{i}].weight")
            targets.append(TargetSpec(target=address.strip(), weight=weight))
        return targets

    # --- field helpers ---

    def _mapping(self, value: Any, where: str) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise ParseError(f"{where} must be a mapping, got {type(value).__name__}")
        return value

    def _list(self, value: Any, where: str) -> list[Any]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ParseError(f"{where} must be a list, got {type(value).__name__}")
        return value

    def _str(self, value: Any, where: str) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ParseError(f"{where} must be a string, got {type(value).__name__}")
        return str(value)

    def _str_list(self, value: Any, where: str) -> list[str]:
        return [
            self._str(item, f"{where}[{i}]") or ""
            for i, item in enumerate(self._list(value, where))
        ]

    def _int(self, value: Any, where: str) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, bool):
            raise ParseError(f"{where} must be an integer, got a boolean")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ParseError(f"{where} must be an integer, got {value!r}")

    def _bool(self, value: Any, where: str) -> Optional[bool]:
        if value is None:
            return None
        if not isinstance(value, bool):
            raise ParseError(f"{where} must be true or false, got {value!r}")
        return value

    def _headers(self, value: Any, where: str) -> dict[str, list[str]]:
        if value is None:
            return {}
        data = self._mapping(value, where)
        return {
            str(key): self._str_list(values, f"{where}.{key}")
            for key, values in data.items()
        }


def load_document(path: str | Path) -> DesiredDocument:
    """Read and parse a YAML/JSON document from disk."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(f"Failed to read {path}: {e}") from e
    return ConfigParser().parse_text(text)
