# -------------------------------------------------------------------
# schemas/output_schema.py
#
# WHAT THIS FILE IS FOR
# --------------------
# This module defines the **internal response schemas** of the
# Status Board API.
#
# These schemas are the canonical Python-side structure of every
# aggregated / action response BEFORE serialization.
#
# NAMING CONVENTION (IMPORTANT)
# -----------------------------
# All fields in this file use **snake_case**.
#
# At the API boundary (api.py) models are dumped with mode="json" and
# converted to **camelCase JSON** by:
#     convert_keys_snake_to_camel()
#
# Two payloads are NOT modelled here and are relayed
# verbatim from the store instead: notification history rows and
# recent-user rows.
#
# Status fields use the closed enums from status_normalizer, so a value
# outside the vocabulary cannot be constructed.
# -------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from functions.aggregator.status_normalizer import CanonicalStatus, HealthStatus


class Project(BaseModel):
    """A hosting project as discovered from the hosting platform's project list."""

    id: str
    name: str
    vercel_project_id: str
    github_repo: Optional[str] = None
    url: Optional[str] = None
    health_check_url: Optional[str] = None


class ProjectListResponse(BaseModel):
    projects: List[Project] = Field(default_factory=list)
    total: int = 0
    excluded: int = 0


class ProjectServiceStatus(BaseModel):
    hosting: CanonicalStatus = CanonicalStatus.UNKNOWN
    ci: CanonicalStatus = CanonicalStatus.UNKNOWN
    database: CanonicalStatus = CanonicalStatus.UNKNOWN


class HealthCheckResult(BaseModel):
    url: str
    name: Optional[str] = None
    status: HealthStatus
    # milliseconds
    response_time: int
    last_checked: str


class ErrorLogEntry(BaseModel):
    id: str
    timestamp: str
    level: Literal["error", "warn", "info"] = "error"
    service: Literal["vercel", "supabase", "github"]
    message: str


class DeployResult(BaseModel):
    success: bool = True
    deployment_id: Optional[str] = None
    url: Optional[str] = None


class WorkflowInfo(BaseModel):
    id: int
    name: str
    path: str
    state: str


class WorkflowListResponse(BaseModel):
    workflows: List[WorkflowInfo] = Field(default_factory=list)


class WorkflowTriggerResult(BaseModel):
    success: bool = True
    message: str
    push_sent: bool = False


class MaintenanceState(BaseModel):
    enabled: bool = False
    message: str = ""


class MaintenanceUpdateResult(BaseModel):
    success: bool = True
    enabled: bool


class PushSendResult(BaseModel):
    success: bool = True
    message_id: str


class PushRegisterResult(BaseModel):
    success: bool = True
    topic: str


class LoginResult(BaseModel):
    success: bool = True


class UserStats(BaseModel):
    total_users: int = 0
    today_signups: int = 0
    active_users: int = 0


class NotificationHistory(BaseModel):
    success: bool = True
    data: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    message: Optional[str] = None
