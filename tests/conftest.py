# tests/conftest.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from functions.clients.push_gateway import PushError
from functions.clients.supabase_store import StoreError, StoreNotConfigured
from functions.utils.settings import Settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_settings(**overrides: Any) -> Settings:
    """Settings with every integration off unless a test turns it on."""
    base: Dict[str, Any] = {
        "vercel_token": None,
        "vercel_team_id": None,
        "github_token": None,
        "supabase_url": None,
        "supabase_service_role_key": None,
        "supabase_anon_key": None,
        "firebase_project_id": None,
        "firebase_client_email": None,
        "firebase_private_key": None,
        "admin_password": None,
        "excluded_projects": [],
        "health_check_targets": [],
    }
    base.update(overrides)
    return Settings(**base)


class FakeStore:
    """
    In-memory stand-in for SupabaseStore.

    Tables listed in `failing_tables` behave like a missing PostgREST table.
    """

    def __init__(self, *, configured: bool = True, reachable: bool = True) -> None:
        self.configured = configured
        self.reachable = reachable
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failing_tables: set[str] = set()
        self.rpc_results: Dict[str, Any] = {}
        self.calls: List[tuple[str, str]] = []

    def _check(self, verb: str, table: str) -> None:
        self.calls.append((verb, table))
        if not self.configured:
            raise StoreNotConfigured("Supabase not configured")
        if table in self.failing_tables:
            raise StoreError(f"{verb} {table} failed", status_code=404, code="PGRST205")

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        self._check("select", table)
        rows = [dict(r) for r in self.tables.get(table, [])]

        for column, expr in (filters or {}).items():
            op, _, value = expr.partition(".")
            assert op == "eq", f"unsupported filter {expr}"
            rows = [r for r in rows if str(r.get(column)) == value]

        if order:
            column, _, direction = order.partition(".")
            rows.sort(key=lambda r: r.get(column) or "", reverse=direction == "desc")

        if limit is not None:
            rows = rows[:limit]

        if columns != "*":
            wanted = columns.split(",")
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return rows

    async def insert(self, table: str, row: Dict[str, Any]) -> None:
        self._check("insert", table)
        self.tables.setdefault(table, []).append(dict(row))

    async def upsert(self, table: str, row: Dict[str, Any], *, on_conflict: str) -> None:
        self._check("upsert", table)
        rows = [r for r in self.tables.get(table, []) if r.get(on_conflict) != row.get(on_conflict)]
        rows.append(dict(row))
        self.tables[table] = rows

    async def rpc(self, function: str, args: Optional[Dict[str, Any]] = None) -> Any:
        self.calls.append(("rpc", function))
        if not self.configured:
            raise StoreNotConfigured("Supabase not configured")
        if function not in self.rpc_results:
            raise StoreError(f"rpc {function} failed", status_code=404, code="PGRST202")
        return self.rpc_results[function]

    async def count(self, table: str, *, filters: Optional[Dict[str, str]] = None) -> int:
        self._check("count", table)
        rows = self.tables.get(table, [])
        for column, expr in (filters or {}).items():
            op, _, value = expr.partition(".")
            assert op == "gte", f"unsupported filter {expr}"
            rows = [r for r in rows if (r.get(column) or "") >= value]
        return len(rows)

    async def ping(self) -> bool:
        return self.configured and self.reachable


class FakePush:
    topic = "devops-dashboard-users"

    def __init__(self, *, configured: bool = True, fail: bool = False) -> None:
        self.configured = configured
        self.fail = fail
        self.sent: List[Dict[str, Any]] = []
        self.tokens: List[str] = []

    def send_to_topic(self, **kwargs: Any) -> str:
        if self.fail:
            raise PushError("Failed to send push notification: unavailable")
        self.sent.append(kwargs)
        return f"projects/demo/messages/{len(self.sent)}"

    def subscribe(self, token: str) -> str:
        if self.fail:
            raise PushError("Failed to register push token: invalid-argument")
        self.tokens.append(token)
        return self.topic


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fake_push() -> FakePush:
    return FakePush()
