"""Main Config Engine - orchestrates the full apply_config workflow.

Provides a single entry point for:
1. Parsing the desired-state document (and expanding shorthand routes)
2. Validating configuration
3. Resolving remote state and classifying every resource
4. Assembling an ordered plan
5. Rendering it (dry run) or executing it
"""
import logging
from typing import Any, Optional

from ..admin.base import GatewayAdminClient
from ..utils.logging_config import timed
from .diff import DiffEngine, summarize_changes
from .errors import GatewayConfigError, ParseError, ValidationError
from .executor import ConfigExecutor
from .expander import ShorthandExpander
from .parser import ConfigParser
from .planner import PlanAssembler
from .renderer import PlanRenderer
from .resolver import RemoteStateResolver
from .schema import (
    DesiredDocument,
    ExecuteResult,
    Plan,
    ReconcileOptions,
    ValidationResult,
)
from .validator import ConfigValidator

logger = logging.getLogger(__name__)


class ConfigEngine:
    """
    Main Config Engine for reconciling gateway configuration.

    Usage:
        async with KongAdminClient(settings) as client:
            engine = ConfigEngine(client)
            result = await engine.apply_config(document, ReconcileOptions(dry_run=True))
    """

    def __init__(
        self,
        client: GatewayAdminClient,
        audit_log_path: Optional[str] = None,
        admin_url: str = "",
    ):
        """
        Initialize the Config Engine.

        Args:
            client: Admin API client
            audit_log_path: Path to audit log file (optional)
            admin_url: Admin API address recorded in the audit trail
        """
        self.client = client
        self.parser = ConfigParser()
        self.expander = ShorthandExpander()
        self.validator = ConfigValidator()
        self.diff_engine = DiffEngine()
        self.executor = ConfigExecutor(client, audit_log_path, admin_url=admin_url)

    def parse(self, raw: Any) -> DesiredDocument:
        """Normalize a raw document (mapping, list or YAML/JSON text) and expand shorthand."""
        if isinstance(raw, str):
            document = self.parser.parse_text(raw)
        else:
            document = self.parser.parse(raw)
        return self.expander.expand(document)

    def validate(self, document: DesiredDocument) -> ValidationResult:
        """Validate an expanded document."""
        return self.validator.validate(document)

    async def _build_plan(self, raw: Any) -> tuple[Plan, ValidationResult]:
        logger.info("Parsing desired-state document")
        document = self.parse(raw)

        logger.info("Validating document")
        validation = self.validate(document)
        if not validation.valid:
            raise ValidationError(validation.errors)
        for warning in validation.warnings:
            logger.warning(warning)

        logger.info("Resolving remote state")
        assembler = PlanAssembler(RemoteStateResolver(self.client), self.diff_engine)
        plan = await assembler.assemble(document)
        return plan, validation

    @timed("plan")
    async def plan(self, raw: Any, options: Optional[ReconcileOptions] = None) -> Plan:
        """
        Compute the plan for a document without executing anything.

        Raises:
            ParseError, ValidationError: Before any remote call
            FetchError, DependencyError: While resolving remote state
        """
        plan, _ = await self._build_plan(raw)
        return plan

    async def apply_config(
        self,
        raw: Any,
        options: Optional[ReconcileOptions] = None,
    ) -> ExecuteResult:
        """
        Reconcile the gateway toward a desired-state document.

        This is the main entry point. It:
        1. Parses and expands the document
        2. Validates it
        3. Resolves remote state and assembles the plan
        4. Renders the plan (dry run) or executes it

        Pipeline errors are reported in the result, never raised.

        Args:
            raw: Desired-state document (mapping, list or YAML/JSON text)
            options: Dry-run / override / rendering options

        Returns:
            ExecuteResult with per-resource outcomes or the rendered plan
        """
        options = options or ReconcileOptions()
        result = ExecuteResult(dry_run=options.dry_run)

        try:
            plan, validation = await self._build_plan(raw)
        except ParseError as e:
            result.error = f"Parse error: {e}"
            result.error_type = type(e).__name__
            return result
        except ValidationError as e:
            result.error = f"Validation failed: {e}"
            result.error_type = type(e).__name__
            result.error_context = "\n".join(e.errors)
            return result
        except GatewayConfigError as e:
            logger.error(f"Planning failed: {e}")
            result.error = str(e)
            result.error_type = type(e).__name__
            result.error_context = e.context
            return result

        if options.dry_run:
            result.plan = plan
            result.plan_text = PlanRenderer(options).render_text(plan)
            result.warnings = validation.warnings
            result.success = True
            return result

        logger.info(summarize_changes(plan.changes))
        result = await self.executor.execute(plan, options)
        result.warnings = validation.warnings
        return result

    async def preview(self, raw: Any, options: Optional[ReconcileOptions] = None) -> str:
        """
        Preview changes without applying.

        Returns the rendered plan, or the error that stopped planning.
        """
        options = options or ReconcileOptions(dry_run=True)
        try:
            plan, validation = await self._build_plan(raw)
        except ValidationError as e:
            return "Validation failed:\n" + "\n".join(f"  - {err}" for err in e.errors)
        except GatewayConfigError as e:
            return f"{type(e).__name__}: {e}"

        text = PlanRenderer(options).render_text(plan)
        if validation.warnings:
            text += "\n\nWarnings:\n" + "\n".join(f"  - {w}" for w in validation.warnings)
        return text
