"""
functions/aggregator/deploy_trigger.py

Redeploy a hosting project from its most recent deployment.

    idle -> fetching-last-deployment -> redeploying -> done
                     |                       |
                     +-------> failed <------+

- no hosting token                    -> 500 before any call
- deployment list answers with error  -> upstream status passed through
- no previous deployment              -> failed, surfaced as 404
- redeploy answers with error         -> upstream status passed through

No idempotency guard: two calls create two deployments.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict

import structlog

from functions.aggregator.errors import ActionError, configuration_missing, upstream_failure
from functions.clients.vercel_client import VercelClient, first_deployment
from schemas.output_schema import DeployResult

logger = structlog.get_logger(__name__)


class DeployPhase(str, Enum):
    IDLE = "idle"
    FETCHING_LAST_DEPLOYMENT = "fetching-last-deployment"
    REDEPLOYING = "redeploying"
    DONE = "done"
    FAILED = "failed"


def redeploy_payload(project_id: str, last: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": last.get("name"),
        "project": project_id,
        "target": last.get("target") or "production",
    }
    if last.get("uid"):
        payload["deploymentId"] = last["uid"]
    if last.get("gitSource"):
        payload["gitSource"] = last["gitSource"]
    return payload


class DeployTrigger:
    """One redeploy attempt. Create a new instance per request."""

    def __init__(self, vercel: VercelClient) -> None:
        self._vercel = vercel
        self.phase = DeployPhase.IDLE

    def _advance(self, phase: DeployPhase, **ctx: Any) -> None:
        logger.info("deploy_phase_changed", previous=self.phase.value, phase=phase.value, **ctx)
        self.phase = phase

    def _fail(self, error: ActionError, project_id: str) -> ActionError:
        self._advance(DeployPhase.FAILED, project_id=project_id, status_code=error.status_code, reason=error.message)
        return error

    async def run(self, project_id: str) -> DeployResult:
        if not self._vercel.configured:
            raise self._fail(configuration_missing("Vercel token"), project_id)

        self._advance(DeployPhase.FETCHING_LAST_DEPLOYMENT, project_id=project_id)
        listing = await self._vercel.latest_deployment(project_id)
        if not listing.ok:
            raise self._fail(upstream_failure(listing, "Failed to fetch deployments"), project_id)

        last = first_deployment(listing)
        if last is None:
            raise self._fail(ActionError(404, "No previous deployments found", code="NOT_FOUND"), project_id)

        self._advance(DeployPhase.REDEPLOYING, project_id=project_id, source_deployment=last.get("uid"))
        created = await self._vercel.create_deployment(redeploy_payload(project_id, last))
        if not created.ok:
            raise self._fail(upstream_failure(created, "Failed to trigger deployment"), project_id)

        body = created.body if isinstance(created.body, dict) else {}
        result = DeployResult(deployment_id=body.get("id"), url=body.get("url"))
        self._advance(DeployPhase.DONE, project_id=project_id, deployment_id=result.deployment_id)
        return result
