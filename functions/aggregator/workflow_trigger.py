"""
functions/aggregator/workflow_trigger.py

Dispatch a CI workflow (workflow_dispatch) and list dispatchable workflows.

Trigger phases:

    idle -> [resolving-workflow] -> dispatching -> dispatched -> notifying

`resolving-workflow` only happens when the request names no workflow: the
first workflow with state "active" is used, by the file name of its path
(".github/workflows/deploy.yml" -> "deploy.yml"). No active workflow is a
404 and nothing is dispatched.

Success is recognised strictly by HTTP 204 from the dispatch call. After
success two side effects run concurrently and independently:

- audit row in `github_actions` (status "triggered")
- push broadcast (when sendPush is true)

Neither can turn the result into a failure. `pushSent` reports whether the
broadcast was actually delivered to the push gateway.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Optional

import structlog
from fastapi.concurrency import run_in_threadpool

from functions.aggregator.audit import AuditResult, write_audit_row
from functions.aggregator.errors import ActionError, configuration_missing, upstream_failure
from functions.clients.github_client import GitHubClient
from functions.clients.push_gateway import PushError
from functions.utils.time_utils import utc_now_iso
from schemas.input_schema import WorkflowTriggerRequest
from schemas.output_schema import WorkflowInfo, WorkflowListResponse, WorkflowTriggerResult

logger = structlog.get_logger(__name__)

AUDIT_TABLE = "github_actions"
DISPATCH_SUCCESS_STATUS = 204


class WorkflowTriggerPhase(str, Enum):
    IDLE = "idle"
    RESOLVING_WORKFLOW = "resolving-workflow"
    DISPATCHING = "dispatching"
    DISPATCHED = "dispatched"
    NOTIFYING = "notifying"


def _active_workflows(body: Any) -> list[dict[str, Any]]:
    if not isinstance(body, dict):
        return []
    return [w for w in body.get("workflows") or [] if isinstance(w, dict) and w.get("state") == "active"]


async def resolve_workflow(github: GitHubClient, repo: str) -> Optional[str]:
    """File name of the first active workflow in `repo`, or None."""
    result = await github.list_workflows(repo)
    if not result.ok:
        return None

    for workflow in _active_workflows(result.body):
        path = workflow.get("path")
        if isinstance(path, str) and path:
            return path.rsplit("/", 1)[-1]
    return None


async def list_active_workflows(github: GitHubClient, repo: str) -> WorkflowListResponse:
    if not github.configured:
        raise configuration_missing("GitHub token")
    if not repo:
        raise ActionError(400, "Repository is required", code="VALIDATION_FAILED")

    result = await github.list_workflows(repo)
    if result.status_code == 404:
        return WorkflowListResponse()
    if not result.ok:
        raise upstream_failure(result, "Failed to fetch workflows")

    workflows = []
    for w in _active_workflows(result.body):
        try:
            workflows.append(WorkflowInfo(id=w.get("id"), name=w.get("name"), path=w.get("path"), state=w["state"]))
        except ValueError as exc:
            logger.warning("workflow_entry_skipped", repo=repo, error=str(exc))
    return WorkflowListResponse(workflows=workflows)


class WorkflowTrigger:
    """One dispatch attempt. Create a new instance per request."""

    def __init__(self, github: GitHubClient, store: Any, push: Any) -> None:
        self._github = github
        self._store = store
        self._push = push
        self.phase = WorkflowTriggerPhase.IDLE
        self.audit: Optional[AuditResult] = None

    def _advance(self, phase: WorkflowTriggerPhase, **ctx: Any) -> None:
        logger.info("workflow_trigger_phase_changed", previous=self.phase.value, phase=phase.value, **ctx)
        self.phase = phase

    async def run(self, request: WorkflowTriggerRequest) -> WorkflowTriggerResult:
        if not self._github.configured:
            raise configuration_missing("GitHub token")

        repo = request.repo
        workflow = request.workflow or None

        if workflow is None:
            self._advance(WorkflowTriggerPhase.RESOLVING_WORKFLOW, repo=repo)
            workflow = await resolve_workflow(self._github, repo)
            if workflow is None:
                raise ActionError(404, "No active workflows found in repository", code="NOT_FOUND")

        self._advance(WorkflowTriggerPhase.DISPATCHING, repo=repo, workflow=workflow, ref=request.ref)
        result = await self._github.dispatch_workflow(repo, workflow, ref=request.ref, inputs=request.inputs)

        if result.status_code != DISPATCH_SUCCESS_STATUS:
            logger.warning("workflow_dispatch_rejected", repo=repo, workflow=workflow, status_code=result.status_code)
            if result.status_code == 404:
                raise ActionError(404, "Workflow not found or not configured for workflow_dispatch", code="NOT_FOUND")
            raise upstream_failure(result, "Failed to trigger workflow")

        self._advance(WorkflowTriggerPhase.DISPATCHED, repo=repo, workflow=workflow)

        self._advance(WorkflowTriggerPhase.NOTIFYING, repo=repo, send_push=request.send_push)
        audit_row = {
            "repo": repo,
            "workflow": workflow,
            "ref": request.ref,
            "status": "triggered",
            "triggered_at": utc_now_iso(),
        }
        self.audit, push_sent = await asyncio.gather(
            write_audit_row(self._store, AUDIT_TABLE, audit_row),
            self._notify(repo, workflow, request.send_push),
        )

        return WorkflowTriggerResult(
            message=f"Workflow {workflow} triggered on {repo}",
            push_sent=push_sent,
        )

    async def _notify(self, repo: str, workflow: str, send_push: bool) -> bool:
        if not send_push:
            return False
        if not self._push.configured:
            logger.info("workflow_push_skipped", repo=repo, reason="push_not_configured")
            return False

        parts = repo.split("/")
        project_name = parts[1] if len(parts) > 1 and parts[1] else repo
        try:
            await run_in_threadpool(
                self._push.send_to_topic,
                title=f"\U0001F680 {project_name}",
                body=f'Workflow "{workflow}" triggered',
                url=f"https://github.com/{repo}/actions",
                type_="github_action",
                project_id=repo,
            )
        except PushError as exc:
            logger.warning("workflow_push_failed", repo=repo, error=str(exc))
            return False
        return True
