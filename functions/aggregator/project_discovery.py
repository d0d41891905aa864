"""
functions/aggregator/project_discovery.py

Dynamic project discovery: the hosting platform's project list is the only
source of truth for which projects the dashboard shows. It is re-read on
every poll; nothing is cached or persisted here.

Raw Vercel project -> Project:

    id, name               -> id, name, vercel_project_id
    link.type == "github"  -> github_repo = "<link.org>/<link.repo>"
    production alias[0]    -> url = "https://<alias>"
      (else latestDeployments[0].url)
    url                    -> health_check_url = "<url>/api/health"

Projects whose name is listed in settings.excluded_projects (case-insensitive)
are dropped.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from functions.aggregator.errors import ActionError, configuration_missing
from functions.clients.vercel_client import VercelClient
from functions.utils.settings import Settings
from schemas.output_schema import Project, ProjectListResponse

logger = structlog.get_logger(__name__)

PROJECT_LIST_LIMIT = 100


def project_from_vercel(raw: Dict[str, Any]) -> Optional[Project]:
    project_id = raw.get("id")
    name = raw.get("name")
    if not isinstance(project_id, str) or not isinstance(name, str):
        return None

    url = _production_url(raw)
    return Project(
        id=project_id,
        name=name,
        vercel_project_id=project_id,
        github_repo=_github_repo(raw.get("link")),
        url=url,
        health_check_url=f"{url}/api/health" if url else None,
    )


def _production_url(raw: Dict[str, Any]) -> Optional[str]:
    production = (raw.get("targets") or {}).get("production") or {}
    aliases = production.get("alias") or []
    if aliases and isinstance(aliases[0], str):
        return f"https://{aliases[0]}"

    latest = raw.get("latestDeployments") or []
    if latest and isinstance(latest[0], dict) and latest[0].get("url"):
        return f"https://{latest[0]['url']}"
    return None


def _github_repo(link: Any) -> Optional[str]:
    if not isinstance(link, dict) or link.get("type") != "github":
        return None
    org, repo = link.get("org"), link.get("repo")
    if org and repo:
        return f"{org}/{repo}"
    return None


async def discover_projects(vercel: VercelClient, settings: Settings) -> ProjectListResponse:
    """
    Raises ActionError(500) when the hosting token is missing or the project
    list cannot be read. Read paths that must not fail catch it and degrade.
    """
    if not vercel.configured:
        raise configuration_missing("VERCEL_TOKEN")

    result = await vercel.list_projects(limit=PROJECT_LIST_LIMIT)
    if not result.ok or not isinstance(result.body, dict):
        logger.error(
            "project_discovery_failed",
            status_code=result.status_code,
            error=result.error or result.error_message(""),
        )
        raise ActionError(500, "Failed to fetch projects", code="UPSTREAM_ERROR")

    excluded = settings.excluded_project_names
    projects: List[Project] = []
    for raw in result.body.get("projects") or []:
        if not isinstance(raw, dict):
            continue
        project = project_from_vercel(raw)
        if project is None or project.name.lower() in excluded:
            continue
        projects.append(project)

    logger.info("projects_discovered", total=len(projects), excluded=len(excluded))
    return ProjectListResponse(projects=projects, total=len(projects), excluded=len(excluded))


async def discover_or_empty(vercel: VercelClient, settings: Settings) -> List[Project]:
    try:
        return (await discover_projects(vercel, settings)).projects
    except ActionError as exc:
        logger.warning("project_discovery_degraded", reason=exc.message)
        return []
