"""
functions/aggregator/audit.py

Best-effort audit rows (`github_actions`, `notifications`).

An audit write never fails the action it records: every outcome, including
"store not configured" and "table does not exist", comes back as an
AuditResult and is logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from functions.clients.supabase_store import StoreError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuditResult:
    logged: bool
    warning: Optional[str] = None


async def write_audit_row(store: Any, table: str, row: Dict[str, Any]) -> AuditResult:
    if not store.configured:
        logger.info("audit_write_skipped", table=table, reason="store_not_configured")
        return AuditResult(logged=False, warning="store not configured")

    try:
        await store.insert(table, row)
    except StoreError as exc:
        logger.warning(
            "audit_write_skipped",
            table=table,
            reason="missing_table" if exc.missing_table else "store_error",
            status_code=exc.status_code,
            error=str(exc),
        )
        return AuditResult(logged=False, warning=str(exc))

    logger.info("audit_row_written", table=table)
    return AuditResult(logged=True)
