# tests/test_workflow_trigger.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from conftest import FakePush, FakeStore
from functions.aggregator.errors import ActionError
from functions.aggregator.workflow_trigger import (
    WorkflowTrigger,
    WorkflowTriggerPhase,
    list_active_workflows,
    resolve_workflow,
)
from functions.clients.upstream import UpstreamResult
from schemas.input_schema import WorkflowTriggerRequest

WORKFLOWS = {
    "workflows": [
        {"id": 1, "name": "Old", "path": ".github/workflows/old.yml", "state": "disabled_manually"},
        {"id": 2, "name": "Deploy", "path": ".github/workflows/deploy.yml", "state": "active"},
        {"id": 3, "name": "Lint", "path": ".github/workflows/lint.yml", "state": "active"},
    ]
}


class FakeGitHub:
    def __init__(
        self,
        *,
        workflows: Optional[UpstreamResult] = None,
        dispatch: Optional[UpstreamResult] = None,
        configured: bool = True,
    ) -> None:
        self.configured = configured
        self._workflows = workflows or UpstreamResult(200, WORKFLOWS)
        self._dispatch = dispatch or UpstreamResult(204)
        self.list_calls: List[str] = []
        self.dispatches: List[Dict[str, Any]] = []

    async def list_workflows(self, repo: str) -> UpstreamResult:
        self.list_calls.append(repo)
        return self._workflows

    async def dispatch_workflow(self, repo: str, workflow: str, *, ref: str, inputs: Dict[str, Any]) -> UpstreamResult:
        self.dispatches.append({"repo": repo, "workflow": workflow, "ref": ref, "inputs": inputs})
        return self._dispatch


def _request(**kwargs: Any) -> WorkflowTriggerRequest:
    return WorkflowTriggerRequest(**{"repo": "acme/web", **kwargs})


@pytest.mark.anyio
async def test_explicit_workflow_skips_resolution() -> None:
    github = FakeGitHub()
    trigger = WorkflowTrigger(github, FakeStore(), FakePush())

    result = await trigger.run(_request(workflow="release.yml", ref="prod", inputs={"x": "1"}))

    assert github.list_calls == []
    assert github.dispatches == [{"repo": "acme/web", "workflow": "release.yml", "ref": "prod", "inputs": {"x": "1"}}]
    assert result.success is True
    assert result.message == "Workflow release.yml triggered on acme/web"


@pytest.mark.anyio
async def test_first_active_workflow_file_name_is_used() -> None:
    github = FakeGitHub()

    assert await resolve_workflow(github, "acme/web") == "deploy.yml"

    await WorkflowTrigger(github, FakeStore(), FakePush()).run(_request())
    assert github.dispatches[0]["workflow"] == "deploy.yml"
    assert github.dispatches[0]["ref"] == "main"


@pytest.mark.anyio
async def test_no_active_workflow_is_404_without_dispatch() -> None:
    github = FakeGitHub(workflows=UpstreamResult(200, {"workflows": [WORKFLOWS["workflows"][0]]}))
    trigger = WorkflowTrigger(github, FakeStore(), FakePush())

    with pytest.raises(ActionError) as excinfo:
        await trigger.run(_request())

    assert excinfo.value.status_code == 404
    assert github.dispatches == []
    assert trigger.phase is WorkflowTriggerPhase.RESOLVING_WORKFLOW


@pytest.mark.anyio
async def test_success_writes_audit_row_and_sends_push() -> None:
    store, push = FakeStore(), FakePush()
    trigger = WorkflowTrigger(FakeGitHub(), store, push)

    result = await trigger.run(_request(workflow="deploy.yml"))

    assert result.push_sent is True
    assert trigger.phase is WorkflowTriggerPhase.NOTIFYING
    assert trigger.audit.logged is True

    row = store.tables["github_actions"][0]
    assert {k: row[k] for k in ("repo", "workflow", "ref", "status")} == {
        "repo": "acme/web",
        "workflow": "deploy.yml",
        "ref": "main",
        "status": "triggered",
    }
    assert row["triggered_at"].endswith("Z")

    sent = push.sent[0]
    assert sent["title"].endswith(" web")
    assert sent["body"] == 'Workflow "deploy.yml" triggered'
    assert sent["url"] == "https://github.com/acme/web/actions"
    assert sent["type_"] == "github_action"
    assert sent["project_id"] == "acme/web"


@pytest.mark.anyio
async def test_side_effect_failures_never_fail_the_trigger() -> None:
    store = FakeStore()
    store.failing_tables.add("github_actions")
    trigger = WorkflowTrigger(FakeGitHub(), store, FakePush(fail=True))

    result = await trigger.run(_request(workflow="deploy.yml"))

    assert result.success is True
    assert result.push_sent is False
    assert trigger.audit.logged is False
    assert trigger.audit.warning


@pytest.mark.anyio
async def test_push_not_requested_or_not_configured_reports_not_sent() -> None:
    push = FakePush()
    not_requested = await WorkflowTrigger(FakeGitHub(), FakeStore(), push).run(_request(workflow="d.yml", sendPush=False))
    unconfigured = await WorkflowTrigger(FakeGitHub(), FakeStore(), FakePush(configured=False)).run(
        _request(workflow="d.yml")
    )

    assert not_requested.push_sent is False
    assert unconfigured.push_sent is False
    assert push.sent == []


@pytest.mark.anyio
async def test_only_204_counts_as_success() -> None:
    github = FakeGitHub(dispatch=UpstreamResult(200, {}))

    with pytest.raises(ActionError) as excinfo:
        await WorkflowTrigger(github, FakeStore(), FakePush()).run(_request(workflow="deploy.yml"))

    assert excinfo.value.status_code == 500


@pytest.mark.anyio
async def test_dispatch_errors_map_to_404_or_pass_through() -> None:
    not_found = FakeGitHub(dispatch=UpstreamResult(404, {"message": "Not Found"}))
    with pytest.raises(ActionError) as nf:
        await WorkflowTrigger(not_found, FakeStore(), FakePush()).run(_request(workflow="deploy.yml"))
    assert nf.value.status_code == 404
    assert nf.value.message == "Workflow not found or not configured for workflow_dispatch"

    unprocessable = FakeGitHub(dispatch=UpstreamResult(422, {"message": "Unexpected inputs provided"}))
    with pytest.raises(ActionError) as bad:
        await WorkflowTrigger(unprocessable, FakeStore(), FakePush()).run(_request(workflow="deploy.yml"))
    assert bad.value.status_code == 422
    assert bad.value.message == "Unexpected inputs provided"


@pytest.mark.anyio
async def test_missing_token_is_500() -> None:
    with pytest.raises(ActionError) as excinfo:
        await WorkflowTrigger(FakeGitHub(configured=False), FakeStore(), FakePush()).run(_request())
    assert excinfo.value.status_code == 500


@pytest.mark.anyio
async def test_list_active_workflows_filters_and_treats_404_as_empty() -> None:
    listed = await list_active_workflows(FakeGitHub(), "acme/web")
    assert [w.path for w in listed.workflows] == [".github/workflows/deploy.yml", ".github/workflows/lint.yml"]

    missing = await list_active_workflows(FakeGitHub(workflows=UpstreamResult(404, {})), "acme/gone")
    assert missing.workflows == []

    with pytest.raises(ActionError) as excinfo:
        await list_active_workflows(FakeGitHub(), "")
    assert excinfo.value.status_code == 400
