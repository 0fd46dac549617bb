"""Config Engine - Declarative gateway configuration management.

The Config Engine converges a gateway's upstreams, targets, services and
routes toward a desired-state document:
- Send desired state, not individual Admin API calls
- Shorthand routes expand into their own service and upstream
- Field-level diffs, hierarchical dry-run plans
- Creates always, updates only with override, never deletes

Usage:
    from mcp_kong_gateway.config_engine import ConfigEngine, ReconcileOptions

    engine = ConfigEngine(client)
    result = await engine.apply_config({
        "routes": [
            {
                "name": "demo",
                "paths": ["/demo"],
                "backend": {"targets": [{"target": "demo-svc:8080"}]},
            }
        ]
    }, ReconcileOptions(dry_run=True))
"""

from .engine import ConfigEngine
from .errors import (
    DependencyError,
    FetchError,
    GatewayConfigError,
    ParseError,
    ValidationError,
)
from .schema import (
    Action,
    BackendSpec,
    Change,
    ChangeOutcome,
    ChangeStatus,
    DesiredDocument,
    ExecuteResult,
    FieldDiff,
    FieldSpec,
    Plan,
    ReconcileOptions,
    RouteSpec,
    ServiceSpec,
    ShorthandLink,
    TargetSpec,
    UpstreamSpec,
    ValidationResult,
)
from .parser import ConfigParser, load_document
from .validator import ConfigValidator
from .expander import ShorthandExpander, default_route_name
from .resolver import RemoteStateResolver
from .diff import DiffEngine, reconstruct_url, summarize_changes
from .planner import PlanAssembler
from .renderer import PlanRenderer
from .executor import ConfigExecutor
from .exporter import ConfigExporter, dump_yaml
from .examples import example_document

__all__ = [
    # Main engine
    "ConfigEngine",
    # Errors
    "GatewayConfigError",
    "ParseError",
    "ValidationError",
    "DependencyError",
    "FetchError",
    # Schema classes
    "Action",
    "BackendSpec",
    "Change",
    "ChangeOutcome",
    "ChangeStatus",
    "DesiredDocument",
    "ExecuteResult",
    "FieldDiff",
    "FieldSpec",
    "Plan",
    "ReconcileOptions",
    "RouteSpec",
    "ServiceSpec",
    "ShorthandLink",
    "TargetSpec",
    "UpstreamSpec",
    "ValidationResult",
    # Components (for advanced use)
    "ConfigParser",
    "load_document",
    "ConfigValidator",
    "ShorthandExpander",
    "default_route_name",
    "RemoteStateResolver",
    "DiffEngine",
    "reconstruct_url",
    "summarize_changes",
    "PlanAssembler",
    "PlanRenderer",
    "ConfigExecutor",
    "ConfigExporter",
    "dump_yaml",
    "example_document",
]
