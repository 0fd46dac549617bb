"""Executor for applying plans to the gateway.

Create always runs. Update runs only with override enabled; otherwise it
is recorded as a skip. The first failing call stops the run: there is no
retry and no rollback, re-running the same document is the recovery path.
"""
import logging
from typing import Optional

from ..admin.base import AdminAPIError, GatewayAdminClient, TransportError
from ..utils.audit_log import ChangeTracker, setup_audit_logging
from ..utils.logging_config import timed
from .schema import (
    Action,
    Change,
    ChangeOutcome,
    ChangeStatus,
    ExecuteResult,
    Plan,
    ReconcileOptions,
)

logger = logging.getLogger(__name__)


class ConfigExecutor:
    """Apply a Plan through the Admin API, strictly in plan order."""

    def __init__(
        self,
        client: GatewayAdminClient,
        audit_log_path: Optional[str] = None,
        admin_url: str = "",
    ):
        """
        Initialize executor.

        Args:
            client: Admin API client used for create / patch calls
            audit_log_path: Path to audit log file (optional)
            admin_url: Recorded with every audit entry
        """
        self.client = client
        self.admin_url = admin_url
        self.audit_log_path = audit_log_path
        if audit_log_path:
            setup_audit_logging(audit_log_path)

    @timed("execute")
    async def execute(self, plan: Plan, options: ReconcileOptions) -> ExecuteResult:
        """
        Execute a plan.

        Args:
            plan: Ordered changes from the plan assembler
            options: Override / audit options

        Returns:
            ExecuteResult with one outcome per processed change
        """
        result = ExecuteResult(dry_run=options.dry_run, plan=plan)
        tracker = ChangeTracker(
            admin_url=self.admin_url,
            user=options.user or "system",
            context=options.audit_context,
        )

        for change in plan.changes:
            if change.action == Action.NO_CHANGE:
                result.outcomes.append(self._outcome(change, ChangeStatus.NO_CHANGE))
                continue

            if change.action == Action.UPDATE and not options.override:
                message = (
                    f"{change.kind.value} {change.name} differs from the document; "
                    f"skipped (enable override to update existing resources)"
                )
                logger.warning(message)
                result.outcomes.append(self._outcome(change, ChangeStatus.SKIPPED, message))
                tracker.log_change(
                    change.kind.value, change.name, change.action.value,
                    ChangeStatus.SKIPPED.value, payload=change.payload,
                )
                continue

            try:
                response = await self._apply(change)
            except (AdminAPIError, TransportError) as e:
                logger.error(f"{change.action.value} {change.kind.value} {change.name} failed: {e}")
                result.outcomes.append(self._outcome(change, ChangeStatus.FAILED, str(e)))
                result.error = str(e)
                result.error_type = type(e).__name__
                result.error_context = f"{change.kind.value} {change.name}"
                tracker.log_change(
                    change.kind.value, change.name, change.action.value,
                    ChangeStatus.FAILED.value, payload=change.payload, error=str(e),
                )
                return result

            verb = "Created" if change.action == Action.CREATE else "Updated"
            result.outcomes.append(
                self._outcome(change, ChangeStatus.APPLIED, f"{verb} {change.kind.value} {change.name}")
            )
            tracker.log_change(
                change.kind.value, change.name, change.action.value,
                ChangeStatus.APPLIED.value, payload=change.payload, result=response,
            )

        if result.skipped:
            logger.info(
                f"{len(result.skipped)} update(s) skipped: "
                + ", ".join(f"{o.kind.value} {o.name}" for o in result.skipped)
            )
        result.success = True
        return result

    async def _apply(self, change: Change) -> dict:
        if change.action == Action.CREATE:
            return await self.client.create(change.kind, change.payload)
        return await self.client.patch(change.kind, change.name, change.payload)

    @staticmethod
    def _outcome(change: Change, status: ChangeStatus, message: str = "") -> ChangeOutcome:
        return ChangeOutcome(
            kind=change.kind,
            name=change.name,
            action=change.action,
            status=status,
            message=message,
        )
