"""
functions/aggregator/error_feed.py

GET /api/logs: recent failures from the hosting and CI platforms, merged
into one newest-first list capped at ERROR_FEED_LIMIT entries.

Sources:
- hosting: the last 10 deployments in state ERROR
- CI: the last 5 failed runs of every discovered project's linked repository

A source that fails is omitted silently (logged); the feed never errors.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from functions.aggregator.project_discovery import discover_or_empty
from functions.clients.github_client import GitHubClient
from functions.clients.vercel_client import VercelClient
from functions.utils.settings import Settings
from functions.utils.time_utils import epoch_ms_to_iso, parse_iso_timestamp
from schemas.output_schema import ErrorLogEntry

logger = structlog.get_logger(__name__)

ERROR_FEED_LIMIT = 50
FAILED_DEPLOYMENTS_LIMIT = 10
FAILED_RUNS_PER_REPO = 5

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def deployment_entry(deployment: Dict[str, Any]) -> Optional[ErrorLogEntry]:
    uid = deployment.get("uid")
    timestamp = epoch_ms_to_iso(deployment.get("created"))
    if not uid or timestamp is None:
        return None
    return ErrorLogEntry(
        id=str(uid),
        timestamp=timestamp,
        service="vercel",
        message=deployment.get("errorMessage") or f"Deployment failed: {deployment.get('name')}",
    )


def run_entry(run: Dict[str, Any], repo: str) -> Optional[ErrorLogEntry]:
    if run.get("id") is None or not run.get("created_at"):
        return None
    return ErrorLogEntry(
        id=str(run["id"]),
        timestamp=run["created_at"],
        service="github",
        message=f"{run.get('name')} failed in {repo}",
    )


async def _hosting_entries(vercel: VercelClient) -> List[ErrorLogEntry]:
    deployments = await vercel.failed_deployments(limit=FAILED_DEPLOYMENTS_LIMIT)
    return [e for e in map(deployment_entry, deployments) if e is not None]


async def _ci_entries(github: GitHubClient, vercel: VercelClient, settings: Settings) -> List[ErrorLogEntry]:
    if not github.configured:
        return []

    projects = await discover_or_empty(vercel, settings)
    repos = sorted({p.github_repo for p in projects if p.github_repo})
    per_repo = await asyncio.gather(
        *(github.failed_runs(repo, per_page=FAILED_RUNS_PER_REPO) for repo in repos),
        return_exceptions=True,
    )

    entries: List[ErrorLogEntry] = []
    for repo, runs in zip(repos, per_repo):
        if isinstance(runs, BaseException):
            logger.warning("error_feed_repo_failed", repo=repo, error=str(runs))
            continue
        entries.extend(e for e in (run_entry(r, repo) for r in runs) if e is not None)
    return entries


def merge_entries(*sources: List[ErrorLogEntry], limit: int = ERROR_FEED_LIMIT) -> List[ErrorLogEntry]:
    merged = [entry for source in sources for entry in source]
    merged.sort(key=lambda e: parse_iso_timestamp(e.timestamp) or _OLDEST, reverse=True)
    return merged[:limit]


async def collect_error_feed(vercel: VercelClient, github: GitHubClient, settings: Settings) -> List[ErrorLogEntry]:
    hosting, ci = await asyncio.gather(
        _hosting_entries(vercel),
        _ci_entries(github, vercel, settings),
        return_exceptions=True,
    )

    sources: List[List[ErrorLogEntry]] = []
    for name, result in (("vercel", hosting), ("github", ci)):
        if isinstance(result, BaseException):
            logger.warning("error_feed_source_failed", source=name, error=str(result))
            continue
        sources.append(result)

    feed = merge_entries(*sources)
    logger.info("error_feed_collected", entries=len(feed))
    return feed
