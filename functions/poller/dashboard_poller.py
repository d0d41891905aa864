"""
functions/poller/dashboard_poller.py

Terminal client for the Status Board API implementing the dashboard's
polling protocol:

- every `interval` seconds (30 by default) pull every aggregate endpoint
- each endpoint replaces its own slice of the in-memory view
- an endpoint that fails leaves its slice empty for that cycle
- ticks fire on a fixed schedule; each tick runs on its own worker thread,
  so a slow poll neither delays nor suppresses the next one
- no backoff, no jitter, no overlap prevention

Usage:
    python -m functions.poller.dashboard_poller --base-url http://localhost:8000
"""

from __future__ import annotations

import argparse
import copy
import itertools
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import structlog

from functions.utils.http_client import HttpClient
from functions.utils.settings import get_settings

logger = structlog.get_logger(__name__)

# slice name -> (path, empty value)
ENDPOINTS: Dict[str, tuple[str, Any]] = {
    "projects": ("/api/projects", []),
    "stats": ("/api/stats", {}),
    "statuses": ("/api/projects/status", {}),
    "logs": ("/api/logs", []),
    "users": ("/api/users/recent", []),
    "health": ("/api/health", []),
    "maintenance": ("/api/projects/maintenance", {}),
}


def _unwrap(name: str, body: Any) -> Any:
    # /api/projects answers {projects, total, excluded}
    if name == "projects" and isinstance(body, dict):
        return body.get("projects") or []
    return body


class DashboardView:
    """Latest value of every slice, guarded by one lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slices: Dict[str, Any] = {name: copy.deepcopy(empty) for name, (_, empty) in ENDPOINTS.items()}
        self.last_updated: Optional[float] = None

    def replace(self, name: str, value: Any) -> None:
        with self._lock:
            self._slices[name] = value
            self.last_updated = time.time()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._slices)


class DashboardPoller:
    def __init__(
        self,
        client: HttpClient,
        *,
        interval: float = 30.0,
        view: Optional[DashboardView] = None,
        on_update: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> None:
        self._client = client
        self.interval = interval
        self.view = view or DashboardView()
        self._on_update = on_update
        self._poll_ids = itertools.count(1)
        self._ticks: List[threading.Thread] = []

    def poll_once(self, poll_id: Optional[str] = None) -> Dict[str, Any]:
        poll_id = poll_id or f"poll-{next(self._poll_ids)}"
        failed = []

        for name, (path, empty) in ENDPOINTS.items():
            try:
                value = _unwrap(name, self._client.get_json(path))
            except Exception as exc:  # noqa: BLE001
                logger.warning("poll_endpoint_failed", poll_id=poll_id, endpoint=path, error=str(exc))
                failed.append(name)
                value = copy.deepcopy(empty)
            self.view.replace(name, value)

        logger.info("poll_completed", poll_id=poll_id, failed=failed)
        snapshot = self.view.snapshot()
        if self._on_update is not None:
            self._on_update(snapshot)
        return snapshot

    def _tick(self, poll_id: str) -> None:
        try:
            self.poll_once(poll_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("poll_tick_failed", poll_id=poll_id, error=str(exc))

    def run(self, stop_event: threading.Event) -> None:
        """Fire one tick immediately, then one every `interval` seconds until stopped."""
        logger.info("poller_started", interval_seconds=self.interval)
        next_at = time.monotonic()

        while not stop_event.is_set():
            poll_id = f"poll-{next(self._poll_ids)}"
            tick = threading.Thread(target=self._tick, args=(poll_id,), name=poll_id, daemon=True)
            tick.start()
            self._ticks = [t for t in self._ticks if t.is_alive()] + [tick]

            next_at += self.interval
            if stop_event.wait(timeout=max(0.0, next_at - time.monotonic())):
                break

        logger.info("poller_stopped", in_flight=sum(1 for t in self._ticks if t.is_alive()))


def render(snapshot: Dict[str, Any]) -> str:
    lines = []
    statuses = snapshot.get("statuses") or {}
    maintenance = snapshot.get("maintenance") or {}

    for project in snapshot.get("projects") or []:
        pid = project.get("id")
        status = statuses.get(pid) or {}
        flag = " [maintenance]" if (maintenance.get(pid) or {}).get("enabled") else ""
        lines.append(
            f"{project.get('name', pid):<30} hosting={status.get('hosting', 'unknown'):<15}"
            f" ci={status.get('ci', 'unknown'):<15} database={status.get('database', 'unknown')}{flag}"
        )

    for check in snapshot.get("health") or []:
        lines.append(f"  {check.get('status', 'unhealthy'):<10} {check.get('responseTime', 0):>6} ms  {check.get('url')}")

    stats = snapshot.get("stats") or {}
    lines.append(
        f"users total={stats.get('totalUsers', 0)} today={stats.get('todaySignups', 0)}"
        f" active={stats.get('activeUsers', 0)}  errors={len(snapshot.get('logs') or [])}"
    )
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Poll the Status Board API and print the dashboard.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--interval", type=float, default=settings.poll_interval_seconds)
    parser.add_argument("--once", action="store_true", help="poll a single time and exit")
    args = parser.parse_args(argv)

    client = HttpClient(args.base_url)
    poller = DashboardPoller(client, interval=args.interval, on_update=lambda snap: print(render(snap), flush=True))

    if args.once:
        poller.poll_once()
        return

    stop_event = threading.Event()
    try:
        poller.run(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
    finally:
        client.close()


if __name__ == "__main__":
    main()
