"""
functions/aggregator/health_checks.py

GET /api/health: probe every target concurrently.

Targets come from settings.health_check_targets; when none are configured,
every discovered project with a public URL is probed instead. Each target is
probed independently, so one slow or dead URL only affects its own entry.
"""

from __future__ import annotations

import asyncio
from typing import List

import structlog

from functions.aggregator.project_discovery import discover_or_empty
from functions.aggregator.status_normalizer import HealthStatus
from functions.clients.health_prober import HealthProber
from functions.clients.vercel_client import VercelClient
from functions.utils.settings import HealthCheckTarget, Settings
from functions.utils.time_utils import utc_now_iso
from schemas.output_schema import HealthCheckResult

logger = structlog.get_logger(__name__)


async def resolve_targets(settings: Settings, vercel: VercelClient) -> List[HealthCheckTarget]:
    if settings.health_check_targets:
        return list(settings.health_check_targets)

    projects = await discover_or_empty(vercel, settings)
    return [HealthCheckTarget(url=p.url, name=p.name) for p in projects if p.url]


async def run_health_checks(prober: HealthProber, settings: Settings, vercel: VercelClient) -> List[HealthCheckResult]:
    targets = await resolve_targets(settings, vercel)
    results = await asyncio.gather(
        *(prober.probe(t.url, t.name) for t in targets),
        return_exceptions=True,
    )

    checks: List[HealthCheckResult] = []
    for target, result in zip(targets, results):
        if isinstance(result, BaseException):
            logger.warning("probe_task_failed", url=target.url, error=str(result))
            result = HealthCheckResult(
                url=target.url,
                name=target.name,
                status=HealthStatus.UNHEALTHY,
                response_time=0,
                last_checked=utc_now_iso(),
            )
        checks.append(result)

    logger.info(
        "health_checks_completed",
        targets=len(checks),
        unhealthy=sum(1 for c in checks if c.status is HealthStatus.UNHEALTHY),
    )
    return checks
