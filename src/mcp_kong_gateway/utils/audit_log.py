"""Audit logging for gateway changes.

Every mutating Admin API call made by the executor is recorded as one
JSON line:
- Timestamped entries
- Desired payload and resulting resource
- Outcome (applied / failed / skipped)
- Separate audit log file, not propagated to the main logger
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

audit_logger = logging.getLogger("gatewaycraft.audit")


def setup_audit_logging(log_path: Optional[str] = None) -> Path:
    """Configure audit logging to file.

    Args:
        log_path: Audit log file. Defaults to ~/.gatewaycraft/audit.log

    Returns:
        The path being written to
    """
    if log_path is None:
        log_path = os.path.expanduser("~/.gatewaycraft/audit.log")

    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # JSON lines, one record per message
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False

    return path


@dataclass
class ChangeRecord:
    """Record of one gateway change attempt."""
    timestamp: str
    admin_url: str
    kind: str
    name: str
    action: str
    status: str
    user: str = "system"
    context: str = ""
    payload: dict = field(default_factory=dict)
    result: Optional[dict] = None
    error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        return cls(**json.loads(json_str))


class ChangeTracker:
    """Write ChangeRecords for one reconciliation run."""

    def __init__(self, admin_url: str, user: str = "system", context: str = ""):
        self.admin_url = admin_url
        self.user = user
        self.context = context
        self.records: list[ChangeRecord] = []

    def log_change(
        self,
        kind: str,
        name: str,
        action: str,
        status: str,
        payload: Optional[dict[str, Any]] = None,
        result: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> ChangeRecord:
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            admin_url=self.admin_url,
            kind=kind,
            name=name,
            action=action,
            status=status,
            user=self.user,
            context=self.context,
            payload=payload or {},
            result=result,
            error=error,
        )
        self.records.append(record)
        audit_logger.info(record.to_json())
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    kind: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log, most recent first."""
    if log_file is None:
        log_file = os.path.expanduser("~/.gatewaycraft/audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines
            if kind and record.kind != kind:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
