"""
functions/clients/vercel_client.py

Thin async client for the Vercel REST API (hosting platform).

Every method issues exactly one request. Read helpers return sentinels
(None / []) on failure; `list_projects`, `latest_deployment` and
`create_deployment` return the raw UpstreamResult because their handlers
must distinguish "not configured", "upstream error" and "empty".
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import structlog

from functions.clients.upstream import UpstreamClient, UpstreamResult
from functions.utils.settings import Settings

logger = structlog.get_logger(__name__)


class VercelClient(UpstreamClient):
    config_section = "vercel"
    service = "vercel"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(
            base_url=settings.vercel_api_base_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        self._token = settings.vercel_token
        self._team_id = settings.vercel_team_id

    @property
    def configured(self) -> bool:
        return bool(self._token)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def _team_params(self, **params: Any) -> Dict[str, Any]:
        return {**params, "teamId": self._team_id or None}

    async def list_projects(self, limit: int = 100) -> UpstreamResult:
        return await self._request("GET", "projects", params=self._team_params(limit=limit))

    async def latest_deployment(self, project_id: str) -> UpstreamResult:
        return await self._request(
            "GET",
            "deployments",
            params=self._team_params(projectId=project_id, limit=1),
            context={"project_id": project_id},
        )

    async def latest_deployment_state(self, project_id: str) -> Optional[str]:
        """Raw state of the most recent deployment, or None when unavailable."""
        if not self.configured:
            return None

        result = await self.latest_deployment(project_id)
        deployment = first_deployment(result)
        if deployment is None:
            return None

        state = deployment.get("state") or deployment.get("readyState")
        return state if isinstance(state, str) else None

    async def failed_deployments(self, limit: int = 10) -> List[Dict[str, Any]]:
        if not self.configured:
            return []

        result = await self._request("GET", "deployments", params=self._team_params(limit=limit, state="ERROR"))
        if not result.ok or not isinstance(result.body, dict):
            return []

        deployments = result.body.get("deployments") or []
        return [d for d in deployments if isinstance(d, dict)]

    async def create_deployment(self, payload: Dict[str, Any]) -> UpstreamResult:
        return await self._request(
            "POST",
            "create_deployment",
            params=self._team_params(),
            json_body=payload,
            context={"project": payload.get("project")},
        )


def first_deployment(result: UpstreamResult) -> Optional[Dict[str, Any]]:
    if not result.ok or not isinstance(result.body, dict):
        return None
    deployments = result.body.get("deployments") or []
    if deployments and isinstance(deployments[0], dict):
        return deployments[0]
    return None
