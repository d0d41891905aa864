# tests/test_dashboard_poller.py
from __future__ import annotations

import threading
import time
from typing import Any, Dict, List

import pytest
import requests

from functions.poller.dashboard_poller import ENDPOINTS, DashboardPoller, render
from functions.utils.http_client import HttpClient

PAYLOADS: Dict[str, Any] = {
    "/api/projects": {"projects": [{"id": "prj_web", "name": "web"}], "total": 1, "excluded": 0},
    "/api/stats": {"totalUsers": 3, "todaySignups": 1, "activeUsers": 2},
    "/api/projects/status": {"prj_web": {"hosting": "live", "ci": "error", "database": "unknown"}},
    "/api/logs": [{"id": "1", "message": "boom"}],
    "/api/users/recent": [],
    "/api/health": [{"url": "https://web.acme.dev", "status": "healthy", "responseTime": 42}],
    "/api/projects/maintenance": {"prj_web": {"enabled": True, "message": "soon"}},
}


class FakeClient:
    def __init__(self, *, failing: tuple[str, ...] = (), delay: float = 0.0) -> None:
        self.failing = failing
        self.delay = delay
        self.paths: List[str] = []
        self._lock = threading.Lock()

    def get_json(self, path: str) -> Any:
        with self._lock:
            self.paths.append(path)
        if self.delay:
            time.sleep(self.delay)
        if path in self.failing:
            raise requests.ConnectionError("connection refused")
        return PAYLOADS[path]


def test_poll_once_fills_every_slice() -> None:
    client = FakeClient()
    snapshot = DashboardPoller(client).poll_once()

    assert sorted(client.paths) == sorted(path for path, _ in ENDPOINTS.values())
    assert snapshot["projects"] == [{"id": "prj_web", "name": "web"}]
    assert snapshot["stats"]["totalUsers"] == 3
    assert snapshot["maintenance"]["prj_web"]["enabled"] is True


def test_failed_endpoint_empties_only_its_slice() -> None:
    poller = DashboardPoller(FakeClient())
    poller.poll_once()

    poller._client = FakeClient(failing=("/api/logs", "/api/projects/status"))
    snapshot = poller.poll_once()

    assert snapshot["logs"] == []
    assert snapshot["statuses"] == {}
    assert snapshot["stats"]["totalUsers"] == 3


def test_on_update_receives_snapshot() -> None:
    seen: List[Dict[str, Any]] = []
    DashboardPoller(FakeClient(), on_update=seen.append).poll_once()

    assert len(seen) == 1
    assert "prj_web" in seen[0]["statuses"]


def test_slow_polls_do_not_delay_the_schedule() -> None:
    # one poll takes ~7 * 0.05s, far longer than the interval
    client = FakeClient(delay=0.05)
    poller = DashboardPoller(client, interval=0.05)
    stop = threading.Event()

    runner = threading.Thread(target=poller.run, args=(stop,), daemon=True)
    runner.start()
    time.sleep(0.3)
    stop.set()
    runner.join(timeout=2)

    assert not runner.is_alive()
    # every tick starts with /api/projects
    assert client.paths.count("/api/projects") >= 4


def test_render_marks_maintenance_and_statuses() -> None:
    snapshot = DashboardPoller(FakeClient()).poll_once()

    text = render(snapshot)

    assert "hosting=live" in text
    assert "[maintenance]" in text
    assert "42 ms" in text
    assert "errors=1" in text


class _Response:
    def __init__(self, status_code: int, body: Any) -> None:
        self.status_code = status_code
        self._body = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        return self._body


class _Session:
    def __init__(self, response: _Response) -> None:
        self.response = response
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, headers: Dict[str, str], timeout: Any) -> _Response:
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        return self.response

    def close(self) -> None:
        pass


def test_http_client_joins_base_url_and_applies_timeout() -> None:
    session = _Session(_Response(200, {"ok": True}))
    client = HttpClient("http://localhost:8000/", timeout_seconds=5.0, session=session)

    assert client.get_json("/api/stats") == {"ok": True}
    assert session.calls == [{"url": "http://localhost:8000/api/stats", "headers": {}, "timeout": 5.0}]


def test_http_client_raises_on_error_status() -> None:
    client = HttpClient("http://localhost:8000", session=_Session(_Response(503, {})))

    with pytest.raises(requests.HTTPError):
        client.get_json("/api/stats")
