# -------------------------------------------------------------------
# schemas/input_schema.py
#
# WHAT THIS FILE IS FOR
# --------------------
# This module defines the **public request schemas** for the write
# endpoints of the Status Board API.
#
# KEY DESIGN DECISION
# -------------------
# Every schema accepts **both camelCase and snake_case** field names
# (alias=camelCase + populate_by_name=True), so the dashboard front-end
# can keep sending {projectId, sendPush, ...} while Python code reads
# snake_case attributes.
#
# Validation here is the ONLY input validation: a request that fails it
# is answered with 400 VALIDATION_FAILED before any upstream call is made
# (see the RequestValidationError handler in api.py).
# -------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(_Request):
    password: str


class DeployRequest(_Request):
    project_id: str = Field(..., alias="projectId", min_length=1, description="Hosting project id to redeploy")


class WorkflowTriggerRequest(_Request):
    """
    Trigger a workflow_dispatch run.

    When `workflow` is omitted (or empty) the first active workflow of the
    repository is used.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {"repo": "acme/web", "workflow": "deploy.yml", "ref": "main", "sendPush": True}
        },
    )

    repo: str = Field(..., min_length=1, description="owner/name slug")
    workflow: Optional[str] = Field(None, description="Workflow file name or id")
    ref: str = "main"
    inputs: Dict[str, Any] = Field(default_factory=dict)
    send_push: bool = Field(True, alias="sendPush")


class MaintenanceUpdateRequest(_Request):
    project_id: str = Field(..., alias="projectId", min_length=1)
    project_name: str = Field(..., alias="projectName", min_length=1)
    enabled: Optional[bool] = None
    message: Optional[str] = None


class PushSendRequest(_Request):
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    url: Optional[str] = None
    notification_type: str = Field("general", alias="type")
    project_id: Optional[str] = Field(None, alias="projectId")


class PushRegisterRequest(_Request):
    token: str = Field(..., min_length=1, description="FCM device registration token")
