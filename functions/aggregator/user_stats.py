"""
functions/aggregator/user_stats.py

User counters and the recent sign-up list, read from the store.

Stats come from the `get_user_stats` RPC when the database defines it.
Otherwise they are counted on `profiles`:

    total_users   : all rows
    today_signups : created_at >= today 00:00 UTC
    active_users  : updated_at >= now - 24h

Each fallback count is independent; one that fails stays 0. Nothing here
raises: an unconfigured or failing store yields zeros / an empty list.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import structlog

from functions.clients.supabase_store import StoreError
from functions.utils.time_utils import to_iso
from schemas.output_schema import UserStats

logger = structlog.get_logger(__name__)

PROFILES_TABLE = "profiles"
STATS_RPC = "get_user_stats"
RECENT_USERS_LIMIT = 20
ANONYMOUS_EMAIL = "anonymous@example.com"


async def _count(store: Any, filters: Dict[str, str] | None = None) -> int:
    try:
        return await store.count(PROFILES_TABLE, filters=filters)
    except StoreError as exc:
        logger.warning("profile_count_failed", filters=filters, error=str(exc))
        return 0


async def _stats_from_rpc(store: Any) -> UserStats | None:
    try:
        data = await store.rpc(STATS_RPC)
    except StoreError as exc:
        logger.info("user_stats_rpc_unavailable", error=str(exc))
        return None

    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return None

    return UserStats(
        total_users=data.get("total_users") or 0,
        today_signups=data.get("today_signups") or 0,
        active_users=data.get("active_users") or 0,
    )


async def get_user_stats(store: Any) -> UserStats:
    if not store.configured:
        return UserStats()

    stats = await _stats_from_rpc(store)
    if stats is not None:
        return stats

    now = datetime.now(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_ago = now - timedelta(hours=24)

    total, today, active = await asyncio.gather(
        _count(store),
        _count(store, {"created_at": f"gte.{to_iso(midnight)}"}),
        _count(store, {"updated_at": f"gte.{to_iso(day_ago)}"}),
    )
    return UserStats(total_users=total, today_signups=today, active_users=active)


async def recent_users(store: Any) -> List[Dict[str, Any]]:
    if not store.configured:
        return []

    try:
        rows = await store.select(
            PROFILES_TABLE,
            columns="id,email,created_at",
            order="created_at.desc",
            limit=RECENT_USERS_LIMIT,
        )
    except StoreError as exc:
        logger.warning("recent_users_failed", error=str(exc))
        return []

    return [
        {"id": row.get("id"), "email": row.get("email") or ANONYMOUS_EMAIL, "created_at": row.get("created_at")}
        for row in rows
    ]
