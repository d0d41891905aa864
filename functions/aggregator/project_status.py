"""
functions/aggregator/project_status.py

Builds the per-project status map served by GET /api/projects/status:

    {projectId: {hosting, ci, database}}

Fan-out shape for one poll:

    discover projects (hosting project list)
      |
      +-- store.ping()                        once, shared by every project
      +-- per project, concurrently:
            vercel.latest_deployment_state()  -> hosting
            github.latest_run()               -> ci  (only with a linked repo)

Every branch degrades on its own. A client that returns a sentinel, or a
task that raises, yields `unknown` for that one field; the other fields and
the other projects are unaffected. A project without a linked repository
gets ci = `not-applicable` and the CI client is never called for it.

Discovery failure (token missing, upstream down) yields an empty map, never
an error response.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import structlog

from functions.aggregator.project_discovery import discover_or_empty
from functions.aggregator.status_normalizer import (
    CanonicalStatus,
    ServiceKind,
    normalize,
    normalize_store_liveness,
)
from functions.clients.github_client import GitHubClient
from functions.clients.vercel_client import VercelClient
from functions.utils.settings import Settings
from schemas.output_schema import Project, ProjectServiceStatus

logger = structlog.get_logger(__name__)


async def _hosting_status(vercel: VercelClient, project: Project) -> CanonicalStatus:
    state = await vercel.latest_deployment_state(project.vercel_project_id)
    return normalize(ServiceKind.HOSTING, state)


async def _ci_status(github: GitHubClient, project: Project) -> CanonicalStatus:
    if not project.github_repo:
        return CanonicalStatus.NOT_APPLICABLE
    run = await github.latest_run(project.github_repo)
    return normalize(ServiceKind.CI, run)


async def _database_status(store: Any) -> CanonicalStatus:
    if not store.configured:
        return CanonicalStatus.UNKNOWN
    return normalize_store_liveness(True, await store.ping())


def _settled(value: Any, *, field: str, project_id: str) -> CanonicalStatus:
    if isinstance(value, BaseException):
        logger.warning(
            "status_branch_failed",
            project_id=project_id,
            field=field,
            error=str(value),
            error_type=type(value).__name__,
        )
        return CanonicalStatus.UNKNOWN
    return value


async def _project_status(
    project: Project,
    vercel: VercelClient,
    github: GitHubClient,
    database: CanonicalStatus,
) -> ProjectServiceStatus:
    hosting, ci = await asyncio.gather(
        _hosting_status(vercel, project),
        _ci_status(github, project),
        return_exceptions=True,
    )
    return ProjectServiceStatus(
        hosting=_settled(hosting, field="hosting", project_id=project.id),
        ci=_settled(ci, field="ci", project_id=project.id),
        database=database,
    )


async def collect_statuses(
    projects: List[Project],
    vercel: VercelClient,
    github: GitHubClient,
    store: Any,
) -> Dict[str, ProjectServiceStatus]:
    try:
        database = await _database_status(store)
    except Exception as exc:  # noqa: BLE001
        logger.warning("database_status_failed", error=str(exc))
        database = CanonicalStatus.UNKNOWN

    results = await asyncio.gather(
        *(_project_status(p, vercel, github, database) for p in projects),
        return_exceptions=True,
    )

    statuses: Dict[str, ProjectServiceStatus] = {}
    for project, result in zip(projects, results):
        if isinstance(result, BaseException):
            logger.warning("project_status_failed", project_id=project.id, error=str(result))
            result = ProjectServiceStatus(database=database)
        statuses[project.id] = result
    return statuses


async def project_statuses(
    vercel: VercelClient,
    github: GitHubClient,
    store: Any,
    settings: Settings,
) -> Dict[str, ProjectServiceStatus]:
    projects = await discover_or_empty(vercel, settings)
    if not projects:
        return {}

    statuses = await collect_statuses(projects, vercel, github, store)
    logger.info(
        "project_statuses_collected",
        projects=len(statuses),
        live=sum(1 for s in statuses.values() if s.hosting is CanonicalStatus.LIVE),
    )
    return statuses
