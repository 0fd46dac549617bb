"""Hierarchical plan rendering for dry runs.

Upstreams are listed with their targets, services on their own, and every
route with the service / upstream / targets synthesized for it nested
underneath instead of repeated at top level. Rendering is presentation
only: compact mode hides lines, never changes.
"""
from typing import Optional

from rich.console import Console
from rich.text import Text

from ..admin.base import ResourceKind
from .diff import diff_lines
from .schema import KIND_ORDER, Action, Change, Plan, ReconcileOptions

ACTION_STYLES = {
    Action.CREATE: "green",
    Action.UPDATE: "yellow",
    Action.NO_CHANGE: "bright_black",
}

ACTION_LABELS = {
    Action.CREATE: "create ✨",
    Action.UPDATE: "update ♻️",
    Action.NO_CHANGE: "no change",
}

ASCII_ACTION_LABELS = {
    Action.CREATE: "create",
    Action.UPDATE: "update",
    Action.NO_CHANGE: "no change",
}

KIND_ICONS = {
    ResourceKind.UPSTREAM: "🌐",
    ResourceKind.TARGET: "🎯",
    ResourceKind.SERVICE: "🧩",
    ResourceKind.ROUTE: "🛣️",
}

ASCII_KIND_ICONS = {
    ResourceKind.UPSTREAM: "[U]",
    ResourceKind.TARGET: "[T]",
    ResourceKind.SERVICE: "[S]",
    ResourceKind.ROUTE: "[R]",
}

SECTION_TITLES = {
    ResourceKind.UPSTREAM: "Upstreams",
    ResourceKind.SERVICE: "Services",
    ResourceKind.ROUTE: "Routes",
    ResourceKind.TARGET: "Targets",
}

HEADER_STYLE = "bold cyan"
ACCENT_STYLE = "bold magenta"
SUBTLE_STYLE = "bright_black"
SEPARATOR_WIDTH = 40


class PlanRenderer:
    """Render a Plan as rich Text lines."""

    def __init__(self, options: Optional[ReconcileOptions] = None):
        self.options = options or ReconcileOptions()

    # --- public API ---

    def render(self, plan: Plan) -> list[Text]:
        """All lines of the rendering, styled unless color is off."""
        lines: list[Text] = []
        lines.append(self._line(0, ("Plan:", HEADER_STYLE)))
        lines.append(self._separator())
        self._render_upstreams(plan, lines)
        self._render_services(plan, lines)
        self._render_routes(plan, lines)
        self._render_summary(plan, lines)
        return lines

    def render_text(self, plan: Plan) -> str:
        """Plain-text rendering (no ANSI styling)."""
        return "\n".join(line.plain for line in self.render(plan))

    def print(self, plan: Plan, console: Optional[Console] = None) -> None:
        console = console or Console(no_color=not self.options.color, highlight=False)
        for line in self.render(plan):
            console.print(line)

    # --- sections ---

    def _render_upstreams(self, plan: Plan, lines: list[Text]) -> None:
        upstreams = [
            c for c in plan.changes
            if c.kind == ResourceKind.UPSTREAM and c.auto_for_route is None
        ]
        if not upstreams:
            return
        lines.append(self._line(1, (f"{SECTION_TITLES[ResourceKind.UPSTREAM]}:", HEADER_STYLE)))
        for upstream in upstreams:
            targets = plan.targets_of(upstream.name)
            if self._hidden(upstream, targets):
                continue
            lines.append(self._entry(2, upstream))
            self._render_diffs(upstream, 3, lines)
            self._render_targets(targets, 3, lines)
        lines.append(self._separator())

    def _render_services(self, plan: Plan, lines: list[Text]) -> None:
        services = [
            c for c in plan.changes
            if c.kind == ResourceKind.SERVICE and c.auto_for_route is None
        ]
        if not services:
            return
        lines.append(self._line(1, (f"{SECTION_TITLES[ResourceKind.SERVICE]}:", HEADER_STYLE)))
        for service in services:
            if self._hidden(service):
                continue
            line = self._entry(2, service)
            if service.parent:
                line.append(f" -> upstream {service.parent}", style=self._style(SUBTLE_STYLE))
            lines.append(line)
            self._render_diffs(service, 3, lines)
        lines.append(self._separator())

    def _render_routes(self, plan: Plan, lines: list[Text]) -> None:
        routes = [c for c in plan.changes if c.kind == ResourceKind.ROUTE]
        if not routes:
            return
        lines.append(self._line(1, (f"{SECTION_TITLES[ResourceKind.ROUTE]}:", HEADER_STYLE)))
        printed = False
        for route in routes:
            link = plan.shorthand.get(route.name)
            nested: list[Change] = []
            service = upstream = None
            targets: list[Change] = []
            if link:
                service = plan.find(ResourceKind.SERVICE, link.service)
                upstream = plan.find(ResourceKind.UPSTREAM, link.upstream)
                if upstream and upstream.auto_for_route != route.name:
                    # Also declared elsewhere; listed with its targets under Upstreams
                    upstream = None
                targets = plan.targets_of(link.upstream) if upstream else []
                nested = [c for c in (service, upstream) if c] + targets
            if self._hidden(route, nested):
                continue

            if printed:
                char = "=" if self.options.ascii else "━"
                lines.append(self._line(2, (char * SEPARATOR_WIDTH, ACCENT_STYLE)))
            lines.append(self._entry(2, route))
            self._render_diffs(route, 3, lines)

            if link:
                if service:
                    lines.append(self._entry(3, service, prefix="Service: "))
                    self._render_diffs(service, 4, lines)
                if upstream:
                    lines.append(self._entry(3, upstream, prefix="Upstream: "))
                self._render_targets(targets, 4, lines)
            printed = True
        lines.append(self._separator())

    def _render_targets(self, targets: list[Change], indent: int, lines: list[Text]) -> None:
        visible = [t for t in targets if not self._hidden(t)]
        if not visible:
            return
        lines.append(self._line(indent, ("Targets:", SUBTLE_STYLE)))
        for target in visible:
            lines.append(self._entry(indent + 1, target))
            self._render_diffs(target, indent + 2, lines)

    def _render_diffs(self, change: Change, indent: int, lines: list[Text]) -> None:
        if not self.options.show_diff:
            return
        for diff in change.diffs:
            for text in diff_lines(diff):
                style = ""
                if text.startswith("+"):
                    style = "green"
                elif text.startswith("-"):
                    style = "red"
                lines.append(self._line(indent, (text, style)))

    def _render_summary(self, plan: Plan, lines: list[Text]) -> None:
        counts = plan.counts()
        width = max(len(SECTION_TITLES[kind]) for kind in KIND_ORDER) + 1
        lines.append(self._line(0, ("Summary:", HEADER_STYLE)))
        for kind in KIND_ORDER:
            kind_counts = counts[kind]
            lines.append(self._line(
                1,
                (f"{SECTION_TITLES[kind] + ':':<{width}} create ", ""),
                (str(kind_counts[Action.CREATE]), "bold green"),
                (", update ", ""),
                (str(kind_counts[Action.UPDATE]), "bold yellow"),
                (", no change ", ""),
                (str(kind_counts[Action.NO_CHANGE]), "bright_black"),
            ))
        if not self.options.override:
            lines.append(self._line(0, (
                "Override is disabled (--overwrite): only missing resources are created, "
                "existing remote configuration is left untouched.",
                SUBTLE_STYLE,
            )))
        if self.options.dry_run:
            suffix = "" if self.options.ascii else " ✅"
            lines.append(self._line(0, (
                f"[dry-run] planned changes only, nothing was modified{suffix}", ""
            )))

    # --- helpers ---

    def _hidden(self, change: Change, nested: Optional[list[Change]] = None) -> bool:
        """Compact mode hides no-change entries whose nested entries are unchanged too."""
        if not self.options.compact or change.action != Action.NO_CHANGE:
            return False
        return all(c.action == Action.NO_CHANGE for c in nested or [])

    def _style(self, style: str) -> str:
        return style if self.options.color else ""

    def _line(self, indent: int, *segments: tuple[str, str]) -> Text:
        text = Text("  " * indent)
        for content, style in segments:
            text.append(content, style=self._style(style))
        return text

    def _entry(self, indent: int, change: Change, prefix: str = "") -> Text:
        icons = ASCII_KIND_ICONS if self.options.ascii else KIND_ICONS
        labels = ASCII_ACTION_LABELS if self.options.ascii else ACTION_LABELS
        return self._line(
            indent,
            (f"{icons[change.kind]} {prefix}{change.label} (", ""),
            (labels[change.action], ACTION_STYLES[change.action]),
            (")", ""),
        )

    def _separator(self) -> Text:
        char = "=" if self.options.ascii else "─"
        return self._line(0, (char * SEPARATOR_WIDTH, ""))
