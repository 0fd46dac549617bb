"""Pre-flight validation for desired-state documents.

Catches logical errors before any Admin API communication. Runs on an
expanded document so synthesized names take part in uniqueness checks.
"""
import re
from urllib.parse import urlparse

from .schema import (
    DesiredDocument,
    RouteSpec,
    ServiceSpec,
    TargetSpec,
    ValidationResult,
)

SERVICE_PROTOCOLS = {"http", "https", "grpc", "grpcs", "tcp", "tls", "udp"}

PATH_HANDLING_VERSIONS = {"v0", "v1"}

HTTPS_REDIRECT_CODES = {426, 301, 302, 307, 308}

METHOD_PATTERN = re.compile(r"^[A-Z]+$")

TARGET_PATTERN = re.compile(r"^(?P<host>\[[0-9A-Fa-f:.]+\]|[^:\s/]+):(?P<port>\d+)$")

MAX_WEIGHT = 1000

# Warn when a single run touches more than this many resources
LARGE_CHANGE_THRESHOLD = 50


class ConfigValidator:
    """Validate a desired-state document for logical errors before execution."""

    def validate(self, document: DesiredDocument) -> ValidationResult:
        """
        Validate an expanded desired-state document.

        Performs pre-flight checks:
        - Names present and unique per kind
        - Service url / upstream binding
        - Enumerated values (protocols, path_handling, redirect codes)
        - Target addresses and weights

        Args:
            document: The expanded document to validate

        Returns:
            ValidationResult with valid flag, errors, and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []

        self._validate_upstreams(document, errors, warnings)
        self._validate_services(document, errors, warnings)
        self._validate_routes(document, errors, warnings)
        self._check_change_size(document, warnings)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _validate_upstreams(
        self,
        document: DesiredDocument,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        """Validate declared and synthesized upstreams."""
        seen: set[str] = set()
        for index, upstream in enumerate(document.upstreams):
            where = f"upstreams[{index}]"
            if not upstream.name:
                errors.append(f"{where}.name is required")
                continue
            if upstream.name in seen:
                errors.append(f"Duplicate upstream name '{upstream.name}'")
            seen.add(upstream.name)
            if not upstream.targets:
                warnings.append(f"Upstream {upstream.name} has no targets")
            self._validate_targets(upstream.targets, f"Upstream {upstream.name}", errors)

        for route_name, upstream in document.auto_upstreams.items():
            if upstream.name in seen:
                errors.append(
                    f"Upstream '{upstream.name}' synthesized for route {route_name} "
                    f"collides with another upstream of the same name"
                )
            seen.add(upstream.name)
            if not upstream.targets:
                warnings.append(
                    f"Route {route_name} has no backend targets: "
                    f"upstream {upstream.name} will be empty"
                )
            self._validate_targets(upstream.targets, f"Route {route_name} backend", errors)

    def _validate_services(
        self,
        document: DesiredDocument,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        """Validate declared and synthesized services."""
        seen: set[str] = set()
        for index, service in enumerate(document.services):
            where = f"services[{index}]"
            if not service.name:
                errors.append(f"{where}.name is required")
                continue
            if service.name in seen:
                errors.append(f"Duplicate service name '{service.name}'")
            seen.add(service.name)
            self._validate_service(service, errors, warnings)

        for route_name, service in document.auto_services.items():
            if service.name in seen:
                errors.append(
                    f"Service '{service.name}' synthesized for route {route_name} "
                    f"collides with another service of the same name"
                )
            seen.add(service.name)
            self._validate_service(service, errors, warnings)

    def _validate_service(
        self,
        service: ServiceSpec,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        label = f"Service {service.name}"
        if not service.url and not service.upstream:
            errors.append(f"{label} needs either url or upstream")
            return
        if service.url and service.upstream:
            warnings.append(f"{label} sets both url and upstream: upstream is used")

        if service.upstream_mode:
            if service.protocol and service.protocol not in SERVICE_PROTOCOLS:
                errors.append(
                    f"{label} has invalid protocol '{service.protocol}': "
                    f"must be one of {', '.join(sorted(SERVICE_PROTOCOLS))}"
                )
            if service.port is not None and not 1 <= service.port <= 65535:
                errors.append(f"{label} has invalid port {service.port}: must be 1-65535")
            self._validate_targets(service.targets, label, errors)
        else:
            parsed = urlparse(service.url)
            if not parsed.scheme or not parsed.hostname:
                errors.append(f"{label} has invalid url '{service.url}'")
            elif parsed.scheme.lower() not in SERVICE_PROTOCOLS:
                errors.append(f"{label} url has unsupported scheme '{parsed.scheme}'")
            if service.targets:
                warnings.append(f"{label} targets are ignored: the service is not bound to an upstream")

        for extra in ("retries", "connect_timeout", "read_timeout", "write_timeout"):
            value = getattr(service, extra)
            if value is not None and value < 0:
                errors.append(f"{label} {extra} must not be negative, got {value}")

    def _validate_routes(
        self,
        document: DesiredDocument,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        """Validate routes after expansion (every route has a name and a service)."""
        seen: set[str] = set()
        for route in document.routes:
            if route.name in seen:
                errors.append(f"Duplicate route name '{route.name}'")
            seen.add(route.name)
            self._validate_route(route, errors, warnings)

    def _validate_route(
        self,
        route: RouteSpec,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        label = f"Route {route.name}"
        if route.path_handling and route.path_handling not in PATH_HANDLING_VERSIONS:
            errors.append(
                f"{label} has invalid path_handling '{route.path_handling}': must be v0 or v1"
            )
        code = route.https_redirect_status_code
        if code and code not in HTTPS_REDIRECT_CODES:
            errors.append(
                f"{label} has invalid https_redirect_status_code {code}: must be one of "
                f"{', '.join(str(c) for c in sorted(HTTPS_REDIRECT_CODES))}"
            )
        for method in route.methods:
            if not METHOD_PATTERN.match(method):
                errors.append(f"{label} has invalid method '{method}'")
        if not route.paths and not route.hosts:
            warnings.append(f"{label} has no paths or hosts and matches every request")

    def _validate_targets(
        self,
        targets: list[TargetSpec],
        owner: str,
        errors: list[str]
    ) -> None:
        seen: set[str] = set()
        for target in targets:
            match = TARGET_PATTERN.match(target.target)
            if not match:
                errors.append(
                    f"{owner} has invalid target '{target.target}': expected host:port"
                )
            elif not 1 <= int(match.group("port")) <= 65535:
                errors.append(
                    f"{owner} target '{target.target}' has invalid port: must be 1-65535"
                )
            if target.weight is not None and not 0 <= target.weight <= MAX_WEIGHT:
                errors.append(
                    f"{owner} target '{target.target}' has invalid weight "
                    f"{target.weight}: must be 0-{MAX_WEIGHT}"
                )
            if target.target in seen:
                errors.append(f"{owner} lists target '{target.target}' twice")
            seen.add(target.target)

    def _check_change_size(self, document: DesiredDocument, warnings: list[str]) -> None:
        """Warn about large documents."""
        count = document.resource_count
        if count > LARGE_CHANGE_THRESHOLD:
            warnings.append(
                f"Large document: {count} resources. Consider running with --dry-run first"
            )
