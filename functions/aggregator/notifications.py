"""
functions/aggregator/notifications.py

Push broadcast, device registration and the action history feed.

send      : push gateway required (500 otherwise); the `notifications`
            audit row afterwards is best-effort.
register  : subscribes one device token to the dashboard topic.
history   : `github_actions` and `notifications` rows read concurrently,
            each read best-effort, tagged with `type`, then either filtered
            (?type=push | github_action) or merged newest first.

History rows are relayed as stored, plus the `type` tag.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import structlog
from fastapi.concurrency import run_in_threadpool

from functions.aggregator.audit import write_audit_row
from functions.aggregator.errors import ActionError, configuration_missing
from functions.clients.push_gateway import PushError
from functions.clients.supabase_store import StoreError
from functions.utils.time_utils import parse_iso_timestamp, utc_now_iso
from schemas.input_schema import PushSendRequest
from schemas.output_schema import NotificationHistory, PushRegisterResult, PushSendResult

logger = structlog.get_logger(__name__)

NOTIFICATIONS_TABLE = "notifications"
ACTIONS_TABLE = "github_actions"

TYPE_PUSH = "push"
TYPE_GITHUB_ACTION = "github_action"

DEFAULT_HISTORY_LIMIT = 20


async def send_notification(push: Any, store: Any, request: PushSendRequest) -> PushSendResult:
    if not push.configured:
        raise configuration_missing("Firebase Admin")

    try:
        message_id = await run_in_threadpool(
            push.send_to_topic,
            title=request.title,
            body=request.body,
            url=request.url,
            type_=request.notification_type,
            project_id=request.project_id,
        )
    except PushError as exc:
        raise ActionError(500, "Failed to send push notification", code="PUSH_FAILED") from exc

    await write_audit_row(
        store,
        NOTIFICATIONS_TABLE,
        {
            "title": request.title,
            "body": request.body,
            "url": request.url,
            "type": request.notification_type,
            "project_id": request.project_id,
            "message_id": message_id,
            "sent_at": utc_now_iso(),
        },
    )
    return PushSendResult(message_id=message_id)


async def register_token(push: Any, token: str) -> PushRegisterResult:
    if not push.configured:
        raise configuration_missing("Firebase Admin")

    try:
        topic = await run_in_threadpool(push.subscribe, token)
    except PushError as exc:
        raise ActionError(500, "Failed to register push token", code="PUSH_FAILED") from exc
    return PushRegisterResult(topic=topic)


async def _read_history(store: Any, table: str, order_column: str, limit: int, tag: str) -> List[Dict[str, Any]]:
    try:
        rows = await store.select(table, order=f"{order_column}.desc", limit=limit)
    except StoreError as exc:
        logger.warning(
            "history_read_skipped",
            table=table,
            reason="missing_table" if exc.missing_table else "store_error",
            error=str(exc),
        )
        return []
    return [{**row, "type": tag} for row in rows]


def _row_time(row: Dict[str, Any]) -> float:
    ts = parse_iso_timestamp(row.get("triggered_at") or row.get("sent_at"))
    return ts.timestamp() if ts else 0.0


async def notification_history(
    store: Any,
    *,
    limit: int = DEFAULT_HISTORY_LIMIT,
    notification_type: Optional[str] = None,
) -> NotificationHistory:
    if not store.configured:
        return NotificationHistory(message="Supabase not configured")

    actions, pushes = await asyncio.gather(
        _read_history(store, ACTIONS_TABLE, "triggered_at", limit, TYPE_GITHUB_ACTION),
        _read_history(store, NOTIFICATIONS_TABLE, "sent_at", limit, TYPE_PUSH),
    )

    if notification_type == TYPE_PUSH:
        rows = pushes
    elif notification_type == TYPE_GITHUB_ACTION:
        rows = actions
    else:
        rows = sorted(actions + pushes, key=_row_time, reverse=True)

    return NotificationHistory(data=rows[:limit], total=len(rows))
