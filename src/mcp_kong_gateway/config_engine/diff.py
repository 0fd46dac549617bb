"""Diff engine for classifying resources against remote state.

Only fields the document explicitly declares are compared; an undeclared
optional field never produces a diff. Which fields exist and how they
compare is described by the FieldSpec tables in schema.py.
"""
from typing import Any, Optional

from .schema import (
    ROUTE_FIELDS,
    SERVICE_FIELDS,
    TARGET_FIELDS,
    Action,
    Change,
    CompareMode,
    FieldDiff,
    FieldSpec,
    RouteSpec,
    ServiceSpec,
    TargetSpec,
    declared_values,
)

SERVICE_EXTRAS = ("retries", "connect_timeout", "read_timeout", "write_timeout")


def reconstruct_url(remote: dict[str, Any]) -> str:
    """URL equivalent of a remote service's protocol/host/port/path.

    Default ports (80 for http, 443 for https) are omitted.
    """
    protocol = remote.get("protocol") or ""
    host = remote.get("host") or ""
    if not protocol or not host:
        return ""
    port = remote.get("port") or 0
    url = f"{protocol}://{host}"
    default = (protocol == "http" and port == 80) or (protocol == "https" and port == 443)
    if port and not default:
        url += f":{port}"
    path = remote.get("path") or ""
    if path:
        if not path.startswith("/"):
            path = "/" + path
        url += path
    return url


def service_values(spec: ServiceSpec) -> dict[str, Any]:
    """Declared service fields (url mode carries 'url' instead of host/port)."""
    values: dict[str, Any] = {extra: getattr(spec, extra) for extra in SERVICE_EXTRAS}
    if spec.upstream_mode:
        values.update(
            host=spec.upstream,
            protocol=spec.effective_protocol,
            port=spec.effective_port,
            path=spec.path,
        )
        return declared_values(SERVICE_FIELDS, values)
    result = declared_values(SERVICE_FIELDS, values)
    if spec.url:
        result["url"] = spec.url
    return result


def route_values(spec: RouteSpec) -> dict[str, Any]:
    """Declared route match fields and behavior flags."""
    return declared_values(
        ROUTE_FIELDS,
        {field_spec.name: getattr(spec, field_spec.name) for field_spec in ROUTE_FIELDS},
    )


def _sorted(values: Any) -> list[str]:
    return sorted(values or [])


def diff_fields(
    fields: tuple[FieldSpec, ...],
    desired: dict[str, Any],
    remote: dict[str, Any]
) -> list[FieldDiff]:
    """Compare declared desired values with remote ones, in descriptor order."""
    diffs: list[FieldDiff] = []
    for spec in fields:
        want = desired.get(spec.name)
        if not spec.is_declared(want):
            continue
        have = remote.get(spec.name)

        if spec.compare == CompareMode.HEADER_MAP:
            diffs.extend(_diff_headers(spec, want, have))
            continue

        if spec.normalize(want) == spec.normalize(have):
            continue

        if spec.compare in (CompareMode.SET, CompareMode.UPPER_SET):
            diffs.append(FieldDiff(
                spec.name,
                _sorted(spec.normalize(have)),
                _sorted(spec.normalize(want)),
            ))
        else:
            diffs.append(FieldDiff(spec.name, have, want))
    return diffs


def _diff_headers(spec: FieldSpec, want: Any, have: Any) -> list[FieldDiff]:
    """Key-by-key comparison; header names are case-insensitive."""
    want_map = {k.lower(): v for k, v in spec.normalize(want).items()}
    have_map = {k.lower(): v for k, v in spec.normalize(have).items()}
    diffs = []
    for key in sorted(set(want_map) | set(have_map)):
        old = have_map.get(key)
        new = want_map.get(key)
        if old != new:
            diffs.append(FieldDiff(
                f"{spec.name}.{key}",
                _sorted(old) if old is not None else None,
                _sorted(new) if new is not None else None,
            ))
    return diffs


class DiffEngine:
    """Classify desired resources into Create / Update / NoChange."""

    @staticmethod
    def classify(remote: Optional[dict[str, Any]], diffs: list[FieldDiff]) -> Action:
        if remote is None:
            return Action.CREATE
        return Action.UPDATE if diffs else Action.NO_CHANGE

    def diff_upstream(self, remote: Optional[dict[str, Any]]) -> tuple[Action, list[FieldDiff]]:
        """Upstreams carry no mutable fields: present means no change."""
        return self.classify(remote, []), []

    def diff_target(
        self,
        spec: TargetSpec,
        remote: Optional[dict[str, Any]]
    ) -> tuple[Action, list[FieldDiff]]:
        if remote is None:
            return Action.CREATE, []
        diffs = diff_fields(TARGET_FIELDS, {"weight": spec.weight}, remote)
        return self.classify(remote, diffs), diffs

    def diff_service(
        self,
        spec: ServiceSpec,
        remote: Optional[dict[str, Any]]
    ) -> tuple[Action, list[FieldDiff]]:
        if remote is None:
            return Action.CREATE, []

        desired = service_values(spec)
        diffs = []
        if "url" in desired:
            current = reconstruct_url(remote)
            if current != desired["url"]:
                diffs.append(FieldDiff("url", current, desired["url"]))
        diffs.extend(diff_fields(SERVICE_FIELDS, desired, remote))
        return self.classify(remote, diffs), diffs

    def diff_route(
        self,
        spec: RouteSpec,
        remote: Optional[dict[str, Any]],
        service_id: Optional[str]
    ) -> tuple[Action, list[FieldDiff]]:
        """
        Compare a route; its service reference is compared by resolved id.

        Args:
            spec: Desired route (expanded, so spec.service is set)
            remote: Remote route or None
            service_id: Id of the referenced service, None if it is created in this run
        """
        if remote is None:
            return Action.CREATE, []

        diffs = diff_fields(ROUTE_FIELDS, route_values(spec), remote)
        remote_service_id = (remote.get("service") or {}).get("id")
        if service_id is None or remote_service_id != service_id:
            diffs.append(FieldDiff("service", remote_service_id, spec.service))
        return self.classify(remote, diffs), diffs


def diff_lines(diff: FieldDiff) -> list[str]:
    """Text form of one field diff: '+'/'-' lines for sets, 'old -> new' otherwise."""
    if diff.is_collection:
        lines = [f"{diff.field}:"]
        if diff.old is not None and diff.new is None:
            lines.append(f"- {', '.join(diff.old)}")
        elif diff.old is None and diff.new is not None:
            lines.append(f"+ {', '.join(diff.new)}")
        else:
            lines.extend(f"- {value}" for value in diff.removed)
            lines.extend(f"+ {value}" for value in diff.added)
        return lines
    old = "(unset)" if diff.old in (None, "") else diff.old
    return [f"{diff.field}: {old} -> {diff.new}"]


def summarize_changes(changes: list[Change]) -> str:
    """
    Create a human-readable summary of planned changes.

    Useful for logging and non-interactive output.
    """
    pending = [c for c in changes if c.action != Action.NO_CHANGE]
    if not pending:
        return "No changes needed - remote state matches the document"

    lines = [f"Changes to apply ({len(pending)} total):", ""]
    for change in pending:
        marker = "[+]" if change.action == Action.CREATE else "[~]"
        verb = "Create" if change.action == Action.CREATE else "Update"
        lines.append(f"  {marker} {verb} {change.kind.value} {change.name}")
        for diff in change.diffs:
            lines.extend(f"      {line}" for line in diff_lines(diff))
    return "\n".join(lines)
