"""
functions/clients/github_client.py

Thin async client for the GitHub Actions REST API (CI platform).

`repo` is always an "owner/name" slug and is placed in the path verbatim.
Workflow identifiers (file names like "deploy.yml" or numeric ids) are
URL-encoded.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import structlog

from functions.clients.upstream import UpstreamClient, UpstreamResult
from functions.utils.settings import Settings

logger = structlog.get_logger(__name__)


class GitHubClient(UpstreamClient):
    config_section = "github"
    service = "github"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(
            base_url=settings.github_api_base_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        self._token = settings.github_token

    @property
    def configured(self) -> bool:
        return bool(self._token)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github.v3+json",
        }

    async def latest_run(self, repo: str) -> Optional[Dict[str, Any]]:
        """Most recent workflow run of `repo`, or None when unavailable."""
        runs = await self._runs(repo, per_page=1)
        return runs[0] if runs else None

    async def failed_runs(self, repo: str, per_page: int = 5) -> List[Dict[str, Any]]:
        return await self._runs(repo, per_page=per_page, status="failure")

    async def list_workflows(self, repo: str) -> UpstreamResult:
        return await self._request("GET", "workflows", path_params={"repo": repo}, context={"repo": repo})

    async def dispatch_workflow(
        self,
        repo: str,
        workflow: str,
        *,
        ref: str,
        inputs: Dict[str, Any],
    ) -> UpstreamResult:
        return await self._request(
            "POST",
            "workflow_dispatch",
            path_params={"repo": repo, "workflow": quote(workflow, safe="")},
            json_body={"ref": ref, "inputs": inputs},
            context={"repo": repo, "workflow": workflow, "ref": ref},
        )

    async def _runs(self, repo: str, **params: Any) -> List[Dict[str, Any]]:
        if not self.configured:
            return []

        result = await self._request(
            "GET",
            "workflow_runs",
            path_params={"repo": repo},
            params=params,
            context={"repo": repo},
        )
        if not result.ok or not isinstance(result.body, dict):
            return []

        runs = result.body.get("workflow_runs") or []
        return [r for r in runs if isinstance(r, dict)]
