"""Schema definitions for the Config Engine.

Defines the desired-state document, the per-kind field descriptors used by
the diff engine, and the plan / execution result types.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..admin.base import ResourceKind, split_target_key

DEFAULT_TARGET_WEIGHT = 100

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}


def default_port(protocol: Optional[str]) -> int:
    """Port Kong assumes for a protocol when none is given."""
    return DEFAULT_PORTS.get((protocol or "http").lower(), 80)


class Action(str, Enum):
    """Classification of one resource against remote state."""
    CREATE = "create"
    UPDATE = "update"
    NO_CHANGE = "no_change"


class ChangeStatus(str, Enum):
    """Terminal state of a change after the executor ran."""
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    NO_CHANGE = "no_change"


# --- Desired state ---

@dataclass
class TargetSpec:
    """Backend instance registered under an upstream."""
    target: str  # host:port
    weight: Optional[int] = None  # None: not declared

    def __post_init__(self):
        # 0 is "unset" too; an unset weight is never compared against remote
        if not self.weight:
            self.weight = None

    @property
    def effective_weight(self) -> int:
        """Weight sent on create: the declared one, else the default."""
        return self.weight or DEFAULT_TARGET_WEIGHT


@dataclass
class UpstreamSpec:
    """Load-balancing upstream and its targets."""
    name: str
    targets: list[TargetSpec] = field(default_factory=list)


@dataclass
class ServiceSpec:
    """Backend service, either URL-based or bound to an upstream."""
    name: str
    url: Optional[str] = None
    upstream: Optional[str] = None
    protocol: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None
    retries: Optional[int] = None
    connect_timeout: Optional[int] = None
    read_timeout: Optional[int] = None
    write_timeout: Optional[int] = None
    targets: list[TargetSpec] = field(default_factory=list)

    @property
    def upstream_mode(self) -> bool:
        """Upstream binding wins when both url and upstream are given."""
        return bool(self.upstream)

    @property
    def effective_protocol(self) -> str:
        return (self.protocol or "http").lower()

    @property
    def effective_port(self) -> int:
        return self.port or default_port(self.effective_protocol)


@dataclass
class BackendSpec:
    """Backend description of a shorthand route."""
    protocol: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None
    targets: list[TargetSpec] = field(default_factory=list)


@dataclass
class RouteSpec:
    """Routing rule bound to a service (or to a synthesized one)."""
    name: Optional[str] = None
    service: Optional[str] = None
    hosts: list[str] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    methods: list[str] = field(default_factory=list)
    protocols: list[str] = field(default_factory=list)
    headers: dict[str, list[str]] = field(default_factory=dict)
    snis: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    strip_path: Optional[bool] = None
    preserve_host: Optional[bool] = None
    request_buffering: Optional[bool] = None
    response_buffering: Optional[bool] = None
    path_handling: Optional[str] = None
    regex_priority: Optional[int] = None
    https_redirect_status_code: Optional[int] = None
    # Shorthand support
    service_name: Optional[str] = None
    upstream_name: Optional[str] = None
    backend: Optional[BackendSpec] = None


@dataclass
class ShorthandLink:
    """Resources synthesized for a shorthand route."""
    route_name: str
    service: str
    upstream: str
    targets: list[str] = field(default_factory=list)


@dataclass
class DesiredDocument:
    """Canonical desired-state document."""
    upstreams: list[UpstreamSpec] = field(default_factory=list)
    services: list[ServiceSpec] = field(default_factory=list)
    routes: list[RouteSpec] = field(default_factory=list)
    # Filled by the expander, keyed by route name
    shorthand: dict[str, ShorthandLink] = field(default_factory=dict)
    auto_upstreams: dict[str, UpstreamSpec] = field(default_factory=dict)
    auto_services: dict[str, ServiceSpec] = field(default_factory=dict)

    @property
    def resource_count(self) -> int:
        count = len(self.upstreams) + len(self.services) + len(self.routes)
        count += sum(len(up.targets) for up in self.upstreams)
        count += sum(len(svc.targets) for svc in self.services)
        for up in self.auto_upstreams.values():
            count += 2 + len(up.targets)  # upstream + service + targets
        return count


# --- Field descriptors ---

class CompareMode(str, Enum):
    """How a declared field is compared against remote state."""
    SCALAR = "scalar"              # declared when not None / 0 / ""
    FLAG = "flag"                  # declared when not None; False is a value
    LOWER_SCALAR = "lower_scalar"  # case-insensitive scalar
    SET = "set"                    # order and duplicates irrelevant
    UPPER_SET = "upper_set"        # set, compared upper-cased
    HEADER_MAP = "header_map"      # key -> value set


@dataclass(frozen=True)
class FieldSpec:
    """Descriptor for one optional field of a resource kind."""
    name: str
    compare: CompareMode = CompareMode.SCALAR

    def is_declared(self, value: Any) -> bool:
        if value is None:
            return False
        if self.compare == CompareMode.FLAG:
            return True
        if self.compare in (CompareMode.SET, CompareMode.UPPER_SET, CompareMode.HEADER_MAP):
            return len(value) > 0
        if isinstance(value, str):
            return value.strip() != ""
        return value != 0

    def normalize(self, value: Any) -> Any:
        """Comparable form of a desired or remote value."""
        if self.compare == CompareMode.SET:
            return frozenset(str(v) for v in value or [])
        if self.compare == CompareMode.UPPER_SET:
            return frozenset(str(v).upper() for v in value or [])
        if self.compare == CompareMode.HEADER_MAP:
            return {k: frozenset(v or []) for k, v in (value or {}).items()}
        if self.compare == CompareMode.LOWER_SCALAR:
            return str(value or "").strip().lower()
        if self.compare == CompareMode.FLAG:
            return bool(value)
        return value


SERVICE_FIELDS = (
    FieldSpec("host"),
    FieldSpec("protocol", CompareMode.LOWER_SCALAR),
    FieldSpec("port"),
    FieldSpec("path"),
    FieldSpec("retries"),
    FieldSpec("connect_timeout"),
    FieldSpec("read_timeout"),
    FieldSpec("write_timeout"),
)

ROUTE_FIELDS = (
    FieldSpec("hosts", CompareMode.SET),
    FieldSpec("paths", CompareMode.SET),
    FieldSpec("methods", CompareMode.UPPER_SET),
    FieldSpec("protocols", CompareMode.SET),
    FieldSpec("headers", CompareMode.HEADER_MAP),
    FieldSpec("snis", CompareMode.SET),
    FieldSpec("tags", CompareMode.SET),
    FieldSpec("strip_path", CompareMode.FLAG),
    FieldSpec("preserve_host", CompareMode.FLAG),
    FieldSpec("request_buffering", CompareMode.FLAG),
    FieldSpec("response_buffering", CompareMode.FLAG),
    FieldSpec("path_handling", CompareMode.LOWER_SCALAR),
    FieldSpec("regex_priority"),
    FieldSpec("https_redirect_status_code"),
)

TARGET_FIELDS = (
    FieldSpec("weight"),
)


def declared_values(fields: tuple[FieldSpec, ...], values: dict[str, Any]) -> dict[str, Any]:
    """Keep only the fields the document explicitly sets."""
    return {
        spec.name: values[spec.name]
        for spec in fields
        if spec.name in values and spec.is_declared(values[spec.name])
    }


# --- Validation Results ---

@dataclass
class ValidationResult:
    """Result of config validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# --- Plan ---

@dataclass
class FieldDiff:
    """One differing field: remote value -> desired value."""
    field: str
    old: Any = None
    new: Any = None

    @property
    def is_collection(self) -> bool:
        return isinstance(self.old, (list, tuple, set, frozenset)) or \
            isinstance(self.new, (list, tuple, set, frozenset))

    @property
    def added(self) -> list[str]:
        if not self.is_collection:
            return []
        return sorted(set(self.new or []) - set(self.old or []))

    @property
    def removed(self) -> list[str]:
        if not self.is_collection:
            return []
        return sorted(set(self.old or []) - set(self.new or []))

    def to_dict(self) -> dict:
        return {"field": self.field, "old": self.old, "new": self.new}


@dataclass
class Change:
    """Computed action for one resource."""
    kind: ResourceKind
    name: str
    action: Action
    diffs: list[FieldDiff] = field(default_factory=list)
    payload: dict[str, Any] = field(default_factory=dict)
    parent: Optional[str] = None          # owning upstream (targets) / bound service (routes)
    auto_for_route: Optional[str] = None  # set for shorthand-synthesized resources

    @property
    def label(self) -> str:
        """Display name; targets show their address only."""
        if self.kind == ResourceKind.TARGET:
            return split_target_key(self.name)[1]
        return self.name

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "action": self.action.value,
            "diffs": [d.to_dict() for d in self.diffs],
            "auto_for_route": self.auto_for_route,
        }


KIND_ORDER = (
    ResourceKind.UPSTREAM,
    ResourceKind.SERVICE,
    ResourceKind.ROUTE,
    ResourceKind.TARGET,
)


@dataclass
class Plan:
    """Ordered changes plus the shorthand linkage used for rendering."""
    changes: list[Change] = field(default_factory=list)
    shorthand: dict[str, ShorthandLink] = field(default_factory=dict)

    def find(self, kind: ResourceKind, name: str) -> Optional[Change]:
        for change in self.changes:
            if change.kind == kind and change.name == name:
                return change
        return None

    def targets_of(self, upstream: str) -> list[Change]:
        return [
            c for c in self.changes
            if c.kind == ResourceKind.TARGET and c.parent == upstream
        ]

    def counts(self) -> dict[ResourceKind, dict[Action, int]]:
        """Per-kind Create/Update/NoChange counts."""
        result = {kind: {action: 0 for action in Action} for kind in KIND_ORDER}
        for change in self.changes:
            result[change.kind][change.action] += 1
        return result

    @property
    def has_changes(self) -> bool:
        return any(c.action != Action.NO_CHANGE for c in self.changes)


# --- Execution ---

@dataclass(frozen=True)
class ReconcileOptions:
    """Options threaded through every pipeline stage."""
    dry_run: bool = False
    show_diff: bool = False
    override: bool = False
    compact: bool = False
    ascii: bool = False
    color: bool = True
    audit_context: str = ""
    user: Optional[str] = None


@dataclass
class ChangeOutcome:
    """What the executor did with one change."""
    kind: ResourceKind
    name: str
    action: Action
    status: ChangeStatus
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "action": self.action.value,
            "status": self.status.value,
            "message": self.message,
        }


@dataclass
class ExecuteResult:
    """Result of config execution."""
    success: bool = False
    dry_run: bool = False
    outcomes: list[ChangeOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    plan: Optional[Plan] = None
    plan_text: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_context: Optional[str] = None

    def _with_status(self, status: ChangeStatus) -> list[ChangeOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def applied(self) -> list[ChangeOutcome]:
        return self._with_status(ChangeStatus.APPLIED)

    @property
    def skipped(self) -> list[ChangeOutcome]:
        return self._with_status(ChangeStatus.SKIPPED)

    @property
    def failed(self) -> list[ChangeOutcome]:
        return self._with_status(ChangeStatus.FAILED)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "applied": len(self.applied),
            "skipped": [f"{o.kind.value} {o.name}" for o in self.skipped],
            "warnings": self.warnings,
            "changes": [c.to_dict() for c in self.plan.changes] if self.plan else [],
            "plan_text": self.plan_text,
            "error": self.error,
            "error_type": self.error_type,
            "error_context": self.error_context,
        }
