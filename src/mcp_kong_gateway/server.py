"""MCP Server for declarative gateway configuration.

Exposes the reconciliation pipeline to MCP clients. Connection settings
come from the environment / settings file (see config.settings).

Tools exposed:
- plan_gateway_config: Dry-run a desired-state document, return the rendered plan
- apply_gateway_config: Create missing resources (update existing ones with overwrite)
- export_gateway_config: Export remote state as an apply-compatible document
- gateway_config_example: Annotated example documents
- get_audit_log: Recent changes recorded by apply_gateway_config

Resources:
- gateway://export: Current remote configuration as YAML
"""
import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    TextContent,
    Tool,
    Resource,
)
from pydantic import AnyUrl

from .admin.base import GatewayAdminClient
from .admin.kong import KongAdminClient
from .config.settings import GatewaySettings, load_settings
from .config_engine import (
    ConfigEngine,
    ConfigExporter,
    ReconcileOptions,
    dump_yaml,
    example_document,
)
from .utils.audit_log import get_recent_changes, setup_audit_logging
from .utils.logging_config import setup_logging, timed_section

logger = logging.getLogger(__name__)

# Global settings (loaded on first tool call)
settings: Optional[GatewaySettings] = None


def get_settings() -> GatewaySettings:
    """Get or load the gateway settings."""
    global settings
    if settings is None:
        settings = load_settings()
    return settings


def make_client() -> GatewayAdminClient:
    """Admin client for one tool call."""
    return KongAdminClient(get_settings())


# Create MCP server
server = Server("mcp-kong-gateway")

DOCUMENT_DESCRIPTION = (
    "Desired-state document: a mapping with upstreams/services/routes, "
    "a list of shorthand routes, or a single route. YAML/JSON text is accepted too."
)


# === TOOLS ===

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return [
        Tool(
            name="plan_gateway_config",
            description="""Preview what applying a desired-state document would do.

Resolves every upstream, target, service and route against the gateway and
returns a hierarchical plan (create / update / no change) with field-level
diffs. Nothing is modified.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "config": {
                        "type": ["object", "array", "string"],
                        "description": DOCUMENT_DESCRIPTION
                    },
                    "overwrite": {
                        "type": "boolean",
                        "description": "Plan as if existing resources may be updated",
                        "default": False
                    },
                    "compact": {
                        "type": "boolean",
                        "description": "Hide entries without changes",
                        "default": False
                    }
                },
                "required": ["config"]
            }
        ),
        Tool(
            name="apply_gateway_config",
            description="""Apply a desired-state document to the gateway.

Missing resources are always created. Existing resources that differ are
only updated when overwrite=true; otherwise they are reported as skipped.
Nothing is ever deleted. Execution stops at the first failing call;
re-running the same document is safe.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "config": {
                        "type": ["object", "array", "string"],
                        "description": DOCUMENT_DESCRIPTION
                    },
                    "overwrite": {
                        "type": "boolean",
                        "description": "Allow updating existing resources",
                        "default": False
                    },
                    "dry_run": {
                        "type": "boolean",
                        "description": "Plan only, do not apply",
                        "default": False
                    },
                    "audit_context": {
                        "type": "string",
                        "description": "Why this change is made (recorded in the audit log)"
                    }
                },
                "required": ["config"]
            }
        ),
        Tool(
            name="export_gateway_config",
            description="Export the gateway's upstreams, services and routes as a document apply accepts.",
            inputSchema={
                "type": "object",
                "properties": {
                    "shorthand": {
                        "type": "boolean",
                        "description": "Fold services/upstreams into route backends",
                        "default": False
                    },
                    "include_orphans": {
                        "type": "boolean",
                        "description": "With shorthand, also export upstreams no route uses",
                        "default": False
                    },
                    "format": {
                        "type": "string",
                        "enum": ["yaml", "json"],
                        "default": "yaml"
                    }
                },
                "required": []
            }
        ),
        Tool(
            name="gateway_config_example",
            description="Annotated example documents: full, routes-simple, route-basic.",
            inputSchema={
                "type": "object",
                "properties": {
                    "type": {
                        "type": "string",
                        "enum": ["full", "routes-simple", "route-basic"],
                        "default": "full"
                    },
                    "comments": {
                        "type": "boolean",
                        "default": True
                    }
                },
                "required": []
            }
        ),
        Tool(
            name="get_audit_log",
            description="Recent gateway changes recorded by apply_gateway_config.",
            inputSchema={
                "type": "object",
                "properties": {
                    "kind": {
                        "type": "string",
                        "enum": ["Upstream", "Target", "Service", "Route"],
                        "description": "Only changes of this resource kind"
                    },
                    "limit": {
                        "type": "integer",
                        "default": 20
                    }
                },
                "required": []
            }
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    async with timed_section(f"tool:{name}"):
        try:
            if name == "plan_gateway_config":
                return await handle_plan(
                    arguments["config"],
                    arguments.get("overwrite", False),
                    arguments.get("compact", False),
                )

            elif name == "apply_gateway_config":
                return await handle_apply(
                    arguments["config"],
                    arguments.get("overwrite", False),
                    arguments.get("dry_run", False),
                    arguments.get("audit_context", ""),
                )

            elif name == "export_gateway_config":
                return await handle_export(
                    arguments.get("shorthand", False),
                    arguments.get("include_orphans", False),
                    arguments.get("format", "yaml"),
                )

            elif name == "gateway_config_example":
                return [TextContent(
                    type="text",
                    text=example_document(
                        arguments.get("type", "full"),
                        comments=arguments.get("comments", True),
                    )
                )]

            elif name == "get_audit_log":
                return await handle_get_audit_log(
                    arguments.get("kind"),
                    arguments.get("limit", 20),
                )

            else:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

        except Exception as e:
            logger.exception(f"Tool {name} failed")
            return [TextContent(type="text", text=f"Error: {str(e)}")]


# === TOOL HANDLERS ===

async def handle_plan(config: Any, overwrite: bool, compact: bool) -> list[TextContent]:
    """Render the plan for a document without applying it."""
    options = ReconcileOptions(
        dry_run=True,
        show_diff=True,
        override=overwrite,
        compact=compact,
        ascii=True,
        color=False,
    )
    async with make_client() as client:
        engine = ConfigEngine(client)
        text = await engine.preview(config, options)
    return [TextContent(type="text", text=text)]


async def handle_apply(
    config: Any,
    overwrite: bool,
    dry_run: bool,
    audit_context: str
) -> list[TextContent]:
    """
    Apply a desired-state document.

    Use dry_run=True to preview changes without applying.
    """
    options = ReconcileOptions(
        dry_run=dry_run,
        show_diff=True,
        override=overwrite,
        ascii=True,
        color=False,
        audit_context=audit_context,
        user="mcp",
    )
    async with make_client() as client:
        engine = ConfigEngine(client, admin_url=get_settings().admin_url)
        result = await engine.apply_config(config, options)

    response = result.to_dict()
    if result.skipped:
        response["message"] = (
            f"{len(result.skipped)} existing resource(s) differ and were left untouched. "
            "Re-run with overwrite=true to update them."
        )
    return [TextContent(type="text", text=json.dumps(response, indent=2, default=str))]


async def handle_export(
    shorthand: bool,
    include_orphans: bool,
    output_format: str
) -> list[TextContent]:
    """Export remote state."""
    async with make_client() as client:
        document = await ConfigExporter(client).export(shorthand, include_orphans)
    if output_format == "json":
        return [TextContent(type="text", text=json.dumps(document, indent=2))]
    return [TextContent(type="text", text=dump_yaml(document))]


async def handle_get_audit_log(kind: Optional[str], limit: int) -> list[TextContent]:
    """Get recent changes from the audit log."""
    records = get_recent_changes(kind=kind, limit=limit)
    return [TextContent(
        type="text",
        text=json.dumps({
            "total_records": len(records),
            "filters": {"kind": kind, "limit": limit},
            "records": [
                {
                    "timestamp": r.timestamp,
                    "kind": r.kind,
                    "name": r.name,
                    "action": r.action,
                    "status": r.status,
                    "context": r.context,
                    "error": r.error,
                }
                for r in records
            ],
        }, indent=2)
    )]


# === RESOURCES ===

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri=AnyUrl("gateway://export"),
            name="Gateway configuration",
            description="Current upstreams, services and routes as an apply-compatible document",
            mimeType="application/yaml",
        )
    ]


@server.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource."""
    if str(uri).rstrip("/") == "gateway://export":
        result = await handle_export(False, False, "yaml")
        return result[0].text
    return json.dumps({"error": f"Unknown resource: {uri}"})


def main():
    """Run the MCP server."""
    setup_logging()
    setup_audit_logging()

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options()
            )

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
