"""
api.py

WHAT THIS FILE IS FOR
---------------------
This module defines the FastAPI application entrypoint for the
Status Board API.

It is responsible for:
- Creating the FastAPI app instance and configuring structlog
- Building the upstream clients ONCE from the cached Settings object
- Registering middleware for:
    - CORS (dashboard front-end)
    - Correlation ID propagation (X-Correlation-Id)
    - API version validation (X-API-Version)
- Defining standard error responses using a consistent schema:
    {code, message, subErrors, timestamp, correlationId}
- Registering exception handlers for:
    - RequestValidationError (400 VALIDATION_FAILED)
    - HTTPException (standardized envelope)
- Exposing HTTP endpoints (see the route list below)

READ vs WRITE ENDPOINTS
-----------------------
- Read endpoints (statuses, health, logs, stats, users, maintenance reads,
  notification history) NEVER fail because of an upstream or store problem.
  They degrade to `unknown` / empty data. `/api/projects` is the exception:
  it answers 500 when the project list cannot be read.
- Write endpoints (deploy, workflow trigger, maintenance write, push send /
  register, login) answer with an error envelope. Upstream status codes are
  passed through where the upstream answered with an error.

RESPONSE NAMING
---------------
Responses built from schemas/output_schema.py are converted to camelCase
(convert_keys_snake_to_camel). Maps keyed by project id are converted per
value, and rows relayed from the store keep their column names.

DESIGN INTENT
-------------
This file contains ONLY the HTTP layer. Orchestration lives in
functions/aggregator/*, upstream access in functions/clients/*.

Module-level collaborators (`vercel`, `github`, `store`, `push`, `prober`,
`authorizer`) are looked up at request time, so tests replace them with
monkeypatch.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Awaitable, Iterable, Optional, TypeVar

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from functions.aggregator.deploy_trigger import DeployTrigger
from functions.aggregator.error_feed import collect_error_feed
from functions.aggregator.errors import ActionError
from functions.aggregator.health_checks import run_health_checks
from functions.aggregator.maintenance import get_maintenance, list_maintenance, set_maintenance
from functions.aggregator.notifications import (
    DEFAULT_HISTORY_LIMIT,
    notification_history,
    register_token,
    send_notification,
)
from functions.aggregator.project_discovery import discover_projects
from functions.aggregator.project_status import project_statuses
from functions.aggregator.user_stats import get_user_stats, recent_users
from functions.aggregator.workflow_trigger import WorkflowTrigger, list_active_workflows
from functions.clients.github_client import GitHubClient
from functions.clients.health_prober import HealthProber
from functions.clients.push_gateway import PushGateway
from functions.clients.supabase_store import SupabaseStore
from functions.clients.vercel_client import VercelClient
from functions.utils.auth import AdminSecretMissing, Authorizer, CookieAuthorizer
from functions.utils.json_naming_converter import convert_keys_snake_to_camel
from functions.utils.settings import get_settings
from schemas.input_schema import (
    DeployRequest,
    LoginRequest,
    MaintenanceUpdateRequest,
    PushRegisterRequest,
    PushSendRequest,
    WorkflowTriggerRequest,
)
from schemas.output_schema import LoginResult, MaintenanceState, NotificationHistory, UserStats

settings = get_settings()

structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level.upper(), logging.INFO)
    ),
)
logger = structlog.get_logger(__name__)

vercel = VercelClient(settings)
github = GitHubClient(settings)
store = SupabaseStore(settings)
push = PushGateway(settings)
prober = HealthProber(settings)
authorizer: Authorizer = CookieAuthorizer(settings)

app = FastAPI(
    title="Status Board API",
    version="1.0.0",
    description="Aggregated hosting / CI / database / push status for the DevOps dashboard.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

CORRELATION_HEADER = "X-Correlation-Id"
API_VERSION_HEADER = "X-API-Version"
SUPPORTED_API_VERSIONS = {"1"}

ERROR_CODES_BY_STATUS = {
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    500: "INTERNAL_ERROR",
    502: "UPSTREAM_ERROR",
    503: "UPSTREAM_ERROR",
    504: "UPSTREAM_ERROR",
}

T = TypeVar("T")


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
def _get_or_create_correlation_id(request: Request) -> str:
    existing = getattr(request.state, "correlation_id", None)
    if existing:
        return existing
    incoming = request.headers.get(CORRELATION_HEADER)
    return incoming.strip() if incoming and incoming.strip() else f"corr_{uuid.uuid4().hex}"


def _get_api_version(request: Request) -> str:
    v = getattr(request.state, "api_version", None)
    return str(v) if v else request.headers.get(API_VERSION_HEADER, "1").strip() or "1"


def _std_error(
    *,
    code: str,
    message: str,
    correlation_id: str,
    http_status: int,
    api_version: str = "1",
    sub_errors: Optional[list[dict[str, Any]]] = None,
) -> JSONResponse:
    payload = {
        "code": code,
        "message": message,
        "subErrors": sub_errors or [],
        "timestamp": int(time.time()),
        "correlationId": correlation_id,
    }
    headers = {
        CORRELATION_HEADER: correlation_id,
        API_VERSION_HEADER: api_version,
    }
    return JSONResponse(status_code=http_status, content=payload, headers=headers)


def _camel(model: BaseModel, *, preserve: Optional[Iterable[str]] = None, exclude_none: bool = False) -> Any:
    return convert_keys_snake_to_camel(
        model.model_dump(mode="json", exclude_none=exclude_none),
        preserve_container_keys=preserve,
    )


def _http_error(exc: ActionError) -> HTTPException:
    detail = {"message": exc.message}
    if exc.code:
        detail["code"] = exc.code
    return HTTPException(status_code=exc.status_code, detail=detail)


async def _read_or_default(endpoint: str, work: Awaitable[T], default: T) -> T:
    try:
        return await work
    except Exception as exc:  # noqa: BLE001
        logger.error("read_endpoint_degraded", endpoint=endpoint, error=str(exc), error_type=type(exc).__name__)
        return default


async def _run_action(action: str, work: Awaitable[T]) -> T:
    try:
        return await work
    except ActionError as exc:
        logger.info("action_failed", action=action, status_code=exc.status_code, reason=exc.message)
        raise _http_error(exc) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("action_crashed", action=action, error=str(exc), error_type=type(exc).__name__)
        raise HTTPException(
            status_code=500,
            detail={"code": "INTERNAL_ERROR", "message": "Internal server error"},
        ) from exc


def require_operator(request: Request) -> None:
    if not authorizer.is_authorized(request):
        raise HTTPException(status_code=401, detail={"code": "UNAUTHORIZED", "message": "Unauthorized"})


# -------------------------------------------------------------------
# Middleware
# -------------------------------------------------------------------
@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = _get_or_create_correlation_id(request)
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


@app.middleware("http")
async def api_version_middleware(request: Request, call_next):
    correlation_id = _get_or_create_correlation_id(request)
    request.state.correlation_id = correlation_id
    version = request.headers.get(API_VERSION_HEADER, "1").strip() or "1"

    if version not in SUPPORTED_API_VERSIONS:
        return _std_error(
            code="INVALID_FIELD_VALUE",
            message="Invalid API version",
            correlation_id=correlation_id,
            http_status=400,
            sub_errors=[
                {
                    "field": API_VERSION_HEADER,
                    "errors": [{"code": "isIn", "message": "Supported versions: 1"}],
                }
            ],
        )

    request.state.api_version = version
    response = await call_next(request)
    response.headers[API_VERSION_HEADER] = version
    return response


# -------------------------------------------------------------------
# Exception handlers
# -------------------------------------------------------------------
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    correlation_id = _get_or_create_correlation_id(request)
    api_version = _get_api_version(request)

    sub_errors: list[dict[str, Any]] = []
    for err in exc.errors():
        field = ".".join(str(x) for x in err.get("loc", []) if x not in ("body", "query", "path")) or "body"
        sub_errors.append(
            {
                "field": field,
                "errors": [{"code": err.get("type"), "message": err.get("msg")}],
            }
        )

    logger.info(
        "request_validation_failed",
        correlation_id=correlation_id,
        path=request.url.path,
        error_count=len(sub_errors),
    )

    return _std_error(
        code="VALIDATION_FAILED",
        message="Validation failed",
        correlation_id=correlation_id,
        http_status=400,
        api_version=api_version,
        sub_errors=sub_errors,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    correlation_id = _get_or_create_correlation_id(request)
    api_version = _get_api_version(request)

    logger.warning(
        "http_exception",
        correlation_id=correlation_id,
        path=request.url.path,
        status_code=exc.status_code,
        detail=str(exc.detail),
    )

    detail = exc.detail if isinstance(exc.detail, dict) else {}
    message = str(detail.get("message")) if detail else str(exc.detail)
    code = detail.get("code") or ERROR_CODES_BY_STATUS.get(exc.status_code, "HTTP_ERROR")

    return _std_error(
        code=code,
        message=message,
        correlation_id=correlation_id,
        http_status=exc.status_code,
        api_version=api_version,
    )


# -------------------------------------------------------------------
# Service health
# -------------------------------------------------------------------
@app.get("/healthz")
@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": settings.service_name,
        "environment": settings.environment,
    }


# -------------------------------------------------------------------
# Auth
# -------------------------------------------------------------------
@app.post("/api/auth/login")
async def login(payload: LoginRequest) -> JSONResponse:
    try:
        matched = authorizer.verify_password(payload.password)
    except AdminSecretMissing:
        raise HTTPException(
            status_code=500,
            detail={"code": "CONFIGURATION_MISSING", "message": "ADMIN_PASSWORD not configured"},
        )

    if not matched:
        raise HTTPException(status_code=401, detail={"code": "UNAUTHORIZED", "message": "Invalid password"})

    response = JSONResponse(status_code=200, content=_camel(LoginResult()))
    authorizer.grant(response)
    return response


# -------------------------------------------------------------------
# Aggregated reads
# -------------------------------------------------------------------
@app.get("/api/projects")
async def list_projects() -> JSONResponse:
    result = await _run_action("list_projects", discover_projects(vercel, settings))
    return JSONResponse(status_code=200, content=_camel(result))


@app.get("/api/projects/status")
async def get_project_statuses() -> JSONResponse:
    statuses = await _read_or_default("project_statuses", project_statuses(vercel, github, store, settings), {})
    return JSONResponse(
        status_code=200,
        content={pid: status.model_dump(mode="json") for pid, status in statuses.items()},
    )


@app.get("/api/health")
async def get_health_checks() -> JSONResponse:
    checks = await _read_or_default("health_checks", run_health_checks(prober, settings, vercel), [])
    return JSONResponse(status_code=200, content=[_camel(c, exclude_none=True) for c in checks])


@app.get("/api/logs")
async def get_error_feed() -> JSONResponse:
    entries = await _read_or_default("error_feed", collect_error_feed(vercel, github, settings), [])
    return JSONResponse(status_code=200, content=[_camel(e) for e in entries])


@app.get("/api/stats")
async def get_stats() -> JSONResponse:
    stats = await _read_or_default("stats", get_user_stats(store), UserStats())
    return JSONResponse(status_code=200, content=_camel(stats))


@app.get("/api/users/recent")
async def get_recent_users() -> JSONResponse:
    users = await _read_or_default("recent_users", recent_users(store), [])
    return JSONResponse(status_code=200, content=users)


@app.get("/api/notifications")
async def get_notifications(
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1),
    notification_type: Optional[str] = Query(None, alias="type"),
) -> JSONResponse:
    history = await _read_or_default(
        "notifications",
        notification_history(store, limit=limit, notification_type=notification_type),
        NotificationHistory(),
    )
    return JSONResponse(status_code=200, content=_camel(history, preserve={"data"}, exclude_none=True))


# -------------------------------------------------------------------
# Maintenance
# -------------------------------------------------------------------
@app.get("/api/maintenance/{project_id}")
async def get_project_maintenance(project_id: str) -> JSONResponse:
    state = await _read_or_default("maintenance", get_maintenance(store, project_id), MaintenanceState())
    return JSONResponse(status_code=200, content=_camel(state))


@app.get("/api/projects/maintenance")
async def get_all_maintenance() -> JSONResponse:
    states = await _read_or_default("maintenance_list", list_maintenance(store), {})
    return JSONResponse(status_code=200, content={pid: _camel(s) for pid, s in states.items()})


@app.post("/api/projects/maintenance", dependencies=[Depends(require_operator)])
async def update_maintenance(payload: MaintenanceUpdateRequest) -> JSONResponse:
    result = await _run_action("set_maintenance", set_maintenance(store, payload))
    return JSONResponse(status_code=200, content=_camel(result))


# -------------------------------------------------------------------
# Write actions
# -------------------------------------------------------------------
@app.post("/api/vercel/deploy")
async def trigger_deploy(payload: DeployRequest) -> JSONResponse:
    result = await _run_action("deploy", DeployTrigger(vercel).run(payload.project_id))
    return JSONResponse(status_code=200, content=_camel(result))


@app.post("/api/github/trigger")
async def trigger_workflow(payload: WorkflowTriggerRequest) -> JSONResponse:
    result = await _run_action("workflow_trigger", WorkflowTrigger(github, store, push).run(payload))
    return JSONResponse(status_code=200, content=_camel(result))


@app.get("/api/github/workflows")
async def get_workflows(repo: Optional[str] = Query(None)) -> JSONResponse:
    result = await _run_action("list_workflows", list_active_workflows(github, repo or ""))
    return JSONResponse(status_code=200, content=_camel(result))


@app.post("/api/fcm/send")
async def send_push(payload: PushSendRequest) -> JSONResponse:
    result = await _run_action("push_send", send_notification(push, store, payload))
    return JSONResponse(status_code=200, content=_camel(result))


@app.post("/api/fcm/register")
async def register_push_token(payload: PushRegisterRequest) -> JSONResponse:
    result = await _run_action("push_register", register_token(push, payload.token))
    return JSONResponse(status_code=200, content=_camel(result))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api:app", host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
