#!/usr/bin/env python3
"""gatewaycraft command line.

Usage:
    gatewaycraft apply -f FILE [--dry-run] [--diff] [--overwrite] [--compact] [--ascii] [--no-color]
    gatewaycraft export [-o FILE] [--shorthand] [--include-orphans] [--format yaml|json]
    gatewaycraft example [--type TYPE] [-o FILE] [--no-comments] [--force]

Environment variables:
    GATEWAYCRAFT_ADMIN_URL     Admin API address (e.g. http://localhost:8001)
    GATEWAYCRAFT_TOKEN         Kong-Admin-Token header value
    GATEWAYCRAFT_CONFIG        Settings file (default: ./gatewaycraft.yaml)
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.text import Text

from .admin.base import AdminAPIError, GatewayAdminClient, TransportError
from .admin.kong import KongAdminClient
from .config.settings import ConfigError, GatewaySettings, load_settings
from .config_engine import (
    ChangeStatus,
    ConfigEngine,
    ConfigExporter,
    ExecuteResult,
    GatewayConfigError,
    PlanRenderer,
    ReconcileOptions,
    dump_yaml,
    example_document,
)
from .utils.audit_log import setup_audit_logging
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def make_client(settings: GatewaySettings) -> GatewayAdminClient:
    """Admin client for one command."""
    return KongAdminClient(settings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatewaycraft",
        description="Declarative Kong gateway configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Preview a full document with field-level diffs
    gatewaycraft apply -f gateway.yaml --dry-run --diff

    # Shorthand routes, compact ASCII plan
    gatewaycraft apply -f routes.yaml --dry-run --ascii --compact

    # Create missing resources and update existing ones
    gatewaycraft apply -f gateway.yaml --overwrite

    # Export as shorthand routes
    gatewaycraft export --shorthand -o routes.yaml
""",
    )
    parser.add_argument("--config", help="Settings file (default: ./gatewaycraft.yaml)")
    parser.add_argument("--admin-url", help="Admin API address, e.g. http://localhost:8001")
    parser.add_argument("--token", help="Kong-Admin-Token header value")
    parser.add_argument("--workspace", help="Workspace path prefix")
    parser.add_argument(
        "--tls-skip-verify",
        action="store_true",
        default=None,
        help="Do not verify the Admin API TLS certificate",
    )
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (default: 15)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    apply_cmd = sub.add_parser("apply", help="Create / update resources from a YAML or JSON file")
    apply_cmd.add_argument("-f", "--file", required=True, help="Desired-state document")
    apply_cmd.add_argument("--dry-run", action="store_true", help="Show the plan, change nothing")
    apply_cmd.add_argument("--diff", action="store_true", help="Show field-level differences")
    apply_cmd.add_argument(
        "--overwrite",
        action="store_true",
        help="Allow updating existing resources (default: create only)",
    )
    apply_cmd.add_argument("--compact", action="store_true", help="Hide entries without changes")
    apply_cmd.add_argument("--ascii", action="store_true", help="ASCII output, no glyphs")
    apply_cmd.add_argument("--no-color", action="store_true", help="Disable colored output")

    export_cmd = sub.add_parser("export", help="Export remote configuration as an apply document")
    export_cmd.add_argument("-o", "--output", help="Output file (default: stdout)")
    export_cmd.add_argument(
        "--shorthand",
        action="store_true",
        help="Fold services and upstreams into route backends",
    )
    export_cmd.add_argument(
        "--include-orphans",
        action="store_true",
        help="With --shorthand, also export upstreams no route uses",
    )
    export_cmd.add_argument("--format", choices=["yaml", "json"], default="yaml")

    example_cmd = sub.add_parser("example", help="Print an annotated example document")
    example_cmd.add_argument(
        "--type",
        default="full",
        help="full, routes-simple or route-basic (default: full)",
    )
    example_cmd.add_argument("-o", "--output", help="Output file (default: stdout)")
    example_cmd.add_argument("--no-comments", action="store_true", help="Strip comment lines")
    example_cmd.add_argument("--force", action="store_true", help="Overwrite an existing file")

    return parser


def _settings(args: argparse.Namespace) -> GatewaySettings:
    return load_settings(
        args.config,
        admin_url=args.admin_url,
        token=args.token,
        workspace=args.workspace,
        tls_skip_verify=args.tls_skip_verify,
        timeout=args.timeout,
    )


# --- apply ---

def print_result(result: ExecuteResult, console: Console) -> None:
    """Per-resource execution status, then a one-line summary."""
    for warning in result.warnings:
        console.print(Text(f"warning: {warning}", style="yellow"))

    for outcome in result.outcomes:
        label = f"{outcome.kind.value} {outcome.name}"
        if outcome.status == ChangeStatus.APPLIED:
            verb = "created" if outcome.action.value == "create" else "updated"
            console.print(Text(f"{verb}: {label}", style="green"))
        elif outcome.status == ChangeStatus.SKIPPED:
            console.print(Text(f"skipped: {label} (differs, use --overwrite to update)", style="yellow"))
        elif outcome.status == ChangeStatus.FAILED:
            console.print(Text(f"failed: {label}: {outcome.message}", style="bold red"))

    if result.error:
        context = f" [{result.error_context}]" if result.error_context else ""
        console.print(Text(f"error ({result.error_type}){context}: {result.error}", style="bold red"))
        return

    unchanged = sum(1 for o in result.outcomes if o.status == ChangeStatus.NO_CHANGE)
    console.print(
        f"{len(result.applied)} applied, {len(result.skipped)} skipped, {unchanged} unchanged"
    )


async def run_apply(
    settings: GatewaySettings,
    text: str,
    options: ReconcileOptions,
    console: Console,
) -> int:
    async with make_client(settings) as client:
        engine = ConfigEngine(client, admin_url=settings.admin_url)

        if options.dry_run:
            try:
                plan = await engine.plan(text, options)
            except GatewayConfigError as e:
                console.print(Text(f"error ({type(e).__name__}): {e}", style="bold red"))
                return 1
            PlanRenderer(options).print(plan, console)
            return 0

        result = await engine.apply_config(text, options)

    print_result(result, console)
    return 0 if result.success else 1


def cmd_apply(args: argparse.Namespace, console: Console) -> int:
    try:
        text = Path(args.file).read_text(encoding="utf-8")
    except OSError as e:
        console.print(Text(f"error: cannot read {args.file}: {e}", style="bold red"))
        return 1

    options = ReconcileOptions(
        dry_run=args.dry_run,
        show_diff=args.diff,
        override=args.overwrite,
        compact=args.compact,
        ascii=args.ascii,
        color=not args.no_color,
        audit_context=f"apply -f {args.file}",
    )
    return asyncio.run(run_apply(_settings(args), text, options, console))


# --- export ---

async def run_export(settings: GatewaySettings, shorthand: bool, include_orphans: bool):
    async with make_client(settings) as client:
        return await ConfigExporter(client).export(shorthand, include_orphans)


def cmd_export(args: argparse.Namespace, console: Console) -> int:
    document = asyncio.run(run_export(_settings(args), args.shorthand, args.include_orphans))
    if args.format == "json":
        content = json.dumps(document, indent=2) + "\n"
    else:
        content = dump_yaml(document)

    if not args.output or args.output == "-":
        sys.stdout.write(content)
        return 0
    Path(args.output).write_text(content, encoding="utf-8")
    console.print(Text(f"Exported to {args.output}", style="green"))
    return 0


# --- example ---

def cmd_example(args: argparse.Namespace, console: Console) -> int:
    try:
        content = example_document(args.type, comments=not args.no_comments)
    except ValueError as e:
        console.print(Text(f"error: {e}", style="bold red"))
        return 1

    if not args.output or args.output == "-":
        sys.stdout.write(content)
        return 0

    output = Path(args.output)
    if output.exists() and not args.force:
        console.print(Text(f"error: {output} already exists (use --force to overwrite)", style="bold red"))
        return 1
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    console.print(Text(f"Example written to {output} (type={args.type})", style="green"))
    return 0


COMMANDS = {
    "apply": cmd_apply,
    "export": cmd_export,
    "example": cmd_example,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the gatewaycraft CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(console_level=logging.DEBUG if args.verbose else logging.WARNING)
    if args.command == "apply":
        setup_audit_logging()
    console = Console(no_color=getattr(args, "no_color", False), highlight=False)

    try:
        return COMMANDS[args.command](args, console)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except ConfigError as e:
        console.print(Text(f"error: {e}", style="bold red"))
        return 1
    except (GatewayConfigError, AdminAPIError, TransportError) as e:
        console.print(Text(f"error ({type(e).__name__}): {e}", style="bold red"))
        return 1
    except Exception as e:
        logger.exception(f"Command {args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
