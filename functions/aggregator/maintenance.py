"""
functions/aggregator/maintenance.py

Per-project maintenance flag stored in `project_maintenance`, one row per
project id (upsert, no history).

Reads are public and never fail:
- no row / store unavailable        -> {enabled: false, message: ""}
- row with null enabled / message   -> false / "Service is under maintenance."

Writes (auth checked in api.py) store a default message when none is given
and answer 500 when the store rejects the upsert.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog

from functions.aggregator.errors import ActionError
from functions.clients.supabase_store import StoreError
from functions.utils.time_utils import utc_now_iso
from schemas.input_schema import MaintenanceUpdateRequest
from schemas.output_schema import MaintenanceState, MaintenanceUpdateResult

logger = structlog.get_logger(__name__)

MAINTENANCE_TABLE = "project_maintenance"
DEFAULT_READ_MESSAGE = "Service is under maintenance."
DEFAULT_WRITE_MESSAGE = "Service is under maintenance. Please try again shortly."


def state_from_row(row: Dict[str, Any]) -> MaintenanceState:
    message: Optional[str] = row.get("message")
    return MaintenanceState(
        enabled=bool(row.get("enabled") or False),
        message=message if message is not None else DEFAULT_READ_MESSAGE,
    )


async def get_maintenance(store: Any, project_id: str) -> MaintenanceState:
    if not store.configured:
        return MaintenanceState()

    try:
        rows = await store.select(
            MAINTENANCE_TABLE,
            columns="enabled,message",
            filters={"project_id": f"eq.{project_id}"},
            limit=1,
        )
    except StoreError as exc:
        logger.warning("maintenance_read_failed", project_id=project_id, error=str(exc))
        return MaintenanceState()

    if not rows:
        return MaintenanceState()
    return state_from_row(rows[0])


async def list_maintenance(store: Any) -> Dict[str, MaintenanceState]:
    if not store.configured:
        return {}

    try:
        rows = await store.select(MAINTENANCE_TABLE)
    except StoreError as exc:
        logger.warning("maintenance_list_failed", error=str(exc))
        return {}

    return {str(row["project_id"]): state_from_row(row) for row in rows if row.get("project_id") is not None}


async def set_maintenance(store: Any, request: MaintenanceUpdateRequest) -> MaintenanceUpdateResult:
    enabled = bool(request.enabled)
    row = {
        "project_id": request.project_id,
        "project_name": request.project_name,
        "enabled": enabled,
        "message": request.message if request.message is not None else DEFAULT_WRITE_MESSAGE,
        "updated_at": utc_now_iso(),
    }

    try:
        await store.upsert(MAINTENANCE_TABLE, row, on_conflict="project_id")
    except StoreError as exc:
        logger.error("maintenance_write_failed", project_id=request.project_id, error=str(exc))
        raise ActionError(500, "Failed to update", code="STORE_ERROR") from exc

    logger.info("maintenance_updated", project_id=request.project_id, enabled=enabled)
    return MaintenanceUpdateResult(enabled=enabled)
