"""
functions/aggregator/status_normalizer.py

WHAT THIS FILE IS FOR
---------------------
This module defines the *single canonical rule set* for mapping upstream
platform states into the dashboard's closed status vocabulary.

It is responsible for:
- Translating hosting deployment states into a CanonicalStatus
- Translating CI workflow runs (status + conclusion) into a CanonicalStatus
- Translating health-probe HTTP outcomes into a HealthStatus
- Translating store liveness into a CanonicalStatus for the database column

PUBLIC CONTRACT RULE
--------------------
Every per-service status exposed by the API is one of:

    live | building | error | unknown | not-applicable

`not-applicable` is never produced from upstream data; it is used only when
a project has no linked capability (e.g. no CI repository), in which case no
client is called at all.

Mapping tables are case-sensitive on each upstream's own vocabulary. Any
value outside a table maps to `unknown`.

Hosting (Vercel deployment state):
    READY                           -> live
    BUILDING | QUEUED | INITIALIZING -> building
    ERROR | CANCELED                -> error

CI (GitHub workflow run):
    status in {in_progress, queued} -> building   (conclusion ignored)
    conclusion == success           -> live
    conclusion in {failure, cancelled} -> error

Health probe (HEAD request):
    200..399                        -> healthy
    anything else / no response     -> unhealthy

WHAT THIS FILE IS NOT FOR
-------------------------
This module MUST NOT perform I/O, log, or raise. It performs pure,
deterministic mapping only.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional


class CanonicalStatus(str, Enum):
    LIVE = "live"
    BUILDING = "building"
    ERROR = "error"
    UNKNOWN = "unknown"
    NOT_APPLICABLE = "not-applicable"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ServiceKind(str, Enum):
    HOSTING = "hosting"
    CI = "ci"
    DATABASE = "database"


HOSTING_STATES: Dict[str, CanonicalStatus] = {
    "READY": CanonicalStatus.LIVE,
    "BUILDING": CanonicalStatus.BUILDING,
    "QUEUED": CanonicalStatus.BUILDING,
    "INITIALIZING": CanonicalStatus.BUILDING,
    "ERROR": CanonicalStatus.ERROR,
    "CANCELED": CanonicalStatus.ERROR,
}

CI_RUNNING_STATUSES = frozenset({"in_progress", "queued"})

CI_CONCLUSIONS: Dict[str, CanonicalStatus] = {
    "success": CanonicalStatus.LIVE,
    "failure": CanonicalStatus.ERROR,
    "cancelled": CanonicalStatus.ERROR,
}


def normalize_hosting_state(state: Optional[str]) -> CanonicalStatus:
    if not isinstance(state, str):
        return CanonicalStatus.UNKNOWN
    return HOSTING_STATES.get(state, CanonicalStatus.UNKNOWN)


def normalize_ci_run(status: Optional[str], conclusion: Optional[str]) -> CanonicalStatus:
    if status in CI_RUNNING_STATUSES:
        return CanonicalStatus.BUILDING
    if not isinstance(conclusion, str):
        return CanonicalStatus.UNKNOWN
    return CI_CONCLUSIONS.get(conclusion, CanonicalStatus.UNKNOWN)


def normalize_health_probe(status_code: Optional[int]) -> HealthStatus:
    """`status_code` is None when the probe got no response (timeout, DNS, reset)."""
    if status_code is not None and 200 <= status_code < 400:
        return HealthStatus.HEALTHY
    return HealthStatus.UNHEALTHY


def normalize_store_liveness(configured: bool, reachable: bool) -> CanonicalStatus:
    if not configured:
        return CanonicalStatus.UNKNOWN
    return CanonicalStatus.LIVE if reachable else CanonicalStatus.ERROR


def normalize(service_kind: ServiceKind | str, raw_state: Any) -> CanonicalStatus:
    """
    Dispatch on the service kind.

    raw_state shapes:
        hosting  -> deployment state string (or None)
        ci       -> workflow run mapping with "status"/"conclusion" (or None)
        database -> bool reachability (or None when not configured)
    """
    kind = ServiceKind(service_kind)

    if kind is ServiceKind.HOSTING:
        return normalize_hosting_state(raw_state)

    if kind is ServiceKind.CI:
        if not isinstance(raw_state, Mapping):
            return CanonicalStatus.UNKNOWN
        return normalize_ci_run(raw_state.get("status"), raw_state.get("conclusion"))

    if raw_state is None:
        return CanonicalStatus.UNKNOWN
    return normalize_store_liveness(True, bool(raw_state))
