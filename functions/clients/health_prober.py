"""
functions/clients/health_prober.py

Raw HTTP liveness probes for public project URLs.

One HEAD request per target, bounded by settings.health_probe_timeout_seconds
(10 s by default) for the WHOLE exchange, redirects not followed. The
result always carries the measured response time, also when the probe
timed out or never connected.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

import httpx
import structlog

from functions.aggregator.status_normalizer import normalize_health_probe
from functions.utils.settings import Settings
from functions.utils.time_utils import utc_now_iso
from schemas.output_schema import HealthCheckResult

logger = structlog.get_logger(__name__)


class HealthProber:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._timeout = settings.health_probe_timeout_seconds
        self._transport = transport

    async def probe(self, url: str, name: Optional[str] = None) -> HealthCheckResult:
        started = time.perf_counter()
        status_code: Optional[int] = None

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=False,
            ) as client:
                resp = await asyncio.wait_for(client.head(url), timeout=self._timeout)
            status_code = resp.status_code
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("probe_timeout", url=url, timeout_seconds=self._timeout)
        except Exception as exc:  # noqa: BLE001
            logger.warning("probe_failed", url=url, error=str(exc), error_type=type(exc).__name__)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        status = normalize_health_probe(status_code)

        if status_code is not None:
            logger.debug("probe_completed", url=url, status_code=status_code, status=status.value)

        return HealthCheckResult(
            url=url,
            name=name,
            status=status,
            response_time=elapsed_ms,
            last_checked=utc_now_iso(),
        )
