"""
functions/clients/supabase_store.py

WHAT THIS FILE IS FOR
---------------------
Async access to the managed relational store (Supabase) through its
PostgREST HTTP interface. Only the handful of verbs the dashboard needs:

- select  : GET  /rest/v1/{table}?select=...&col=op.value&order=...&limit=...
- insert  : POST /rest/v1/{table}                        (append-only audit rows)
- upsert  : POST /rest/v1/{table}?on_conflict=col         (maintenance flags)
- rpc     : POST /rest/v1/rpc/{function}
- count   : HEAD /rest/v1/{table} with Prefer: count=exact
- ping    : GET  /rest/v1/                                (liveness for the
                                                          database status)

ERROR POLICY
------------
Unlike the hosting/CI clients, the data verbs raise `StoreError` on any
failure (including a missing table, which PostgREST reports as 404 with
code PGRST205 / 42P01). The handlers decide what "best-effort" means for
their endpoint: reads degrade to defaults, audit writes are skipped and
logged, the maintenance write answers 500.

`ping()` never raises.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import structlog

from functions.clients.upstream import UpstreamClient, UpstreamResult
from functions.utils.settings import Settings

logger = structlog.get_logger(__name__)

MISSING_TABLE_CODES = {"PGRST205", "42P01"}


class StoreError(RuntimeError):
    def __init__(self, message: str, *, status_code: int = 0, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def missing_table(self) -> bool:
        return self.code in MISSING_TABLE_CODES


class StoreNotConfigured(StoreError):
    pass


class SupabaseStore(UpstreamClient):
    config_section = "supabase"
    service = "supabase"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(
            base_url=settings.supabase_url or "",
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        self._configured = bool(settings.supabase_url and settings.supabase_key)
        self._key = settings.supabase_key

    @property
    def configured(self) -> bool:
        return self._configured

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._key or "",
            "Authorization": f"Bearer {self._key}",
        }

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        `filters` map a column to a PostgREST operator expression,
        e.g. {"project_id": "eq.web"}; `order` is e.g. "sent_at.desc".
        """
        params: Dict[str, Any] = {"select": columns, **(filters or {})}
        params["order"] = order
        params["limit"] = limit
        result = await self._call("GET", table, params=params)
        return [row for row in (result.body or []) if isinstance(row, dict)]

    async def insert(self, table: str, row: Dict[str, Any]) -> None:
        await self._call("POST", table, json_body=row, headers={"Prefer": "return=minimal"})

    async def upsert(self, table: str, row: Dict[str, Any], *, on_conflict: str) -> None:
        await self._call(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json_body=row,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def rpc(self, function: str, args: Optional[Dict[str, Any]] = None) -> Any:
        if not self._configured:
            raise StoreNotConfigured("Supabase not configured")
        result = await self._request(
            "POST",
            "rpc",
            path_params={"function": function},
            json_body=args or {},
            context={"function": function},
        )
        _raise_for_result(result, what=f"rpc {function}")
        return result.body

    async def count(self, table: str, *, filters: Optional[Dict[str, str]] = None) -> int:
        result = await self._call(
            "HEAD",
            table,
            params={"select": "*", **(filters or {})},
            headers={"Prefer": "count=exact"},
        )
        # Content-Range: "0-24/3573" or "*/0"
        content_range = result.headers.get("content-range", "")
        total = content_range.rsplit("/", 1)[-1] if "/" in content_range else ""
        if not total.isdigit():
            raise StoreError(f"count on {table} returned no total", status_code=result.status_code)
        return int(total)

    async def ping(self) -> bool:
        if not self._configured:
            return False
        result = await self._request("GET", "root")
        return result.ok

    async def _call(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> UpstreamResult:
        if not self._configured:
            raise StoreNotConfigured("Supabase not configured")

        result = await self._request(
            method,
            "table",
            path_params={"table": table},
            params=params,
            json_body=json_body,
            headers=headers,
            context={"table": table},
        )
        _raise_for_result(result, what=f"{method} {table}")
        return result


def _raise_for_result(result: UpstreamResult, *, what: str) -> None:
    if result.ok:
        return
    if not result.reached:
        raise StoreError(f"{what} failed: {result.error}")

    code = result.body.get("code") if isinstance(result.body, dict) else None
    raise StoreError(
        f"{what} failed: {result.error_message(f'HTTP {result.status_code}')}",
        status_code=result.status_code,
        code=code,
    )
