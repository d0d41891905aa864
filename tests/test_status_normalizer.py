# tests/test_status_normalizer.py
from __future__ import annotations

import pytest

from functions.aggregator.status_normalizer import (
    CanonicalStatus,
    HealthStatus,
    ServiceKind,
    normalize,
    normalize_ci_run,
    normalize_health_probe,
    normalize_hosting_state,
    normalize_store_liveness,
)


@pytest.mark.parametrize(
    "state, expected",
    [
        ("READY", CanonicalStatus.LIVE),
        ("BUILDING", CanonicalStatus.BUILDING),
        ("QUEUED", CanonicalStatus.BUILDING),
        ("INITIALIZING", CanonicalStatus.BUILDING),
        ("ERROR", CanonicalStatus.ERROR),
        ("CANCELED", CanonicalStatus.ERROR),
        ("WEIRD_STATE", CanonicalStatus.UNKNOWN),
        ("ready", CanonicalStatus.UNKNOWN),  # case-sensitive
        (None, CanonicalStatus.UNKNOWN),
    ],
)
def test_hosting_states(state, expected) -> None:
    assert normalize_hosting_state(state) is expected


def test_ci_running_status_wins_over_conclusion() -> None:
    assert normalize_ci_run("in_progress", "failure") is CanonicalStatus.BUILDING
    assert normalize_ci_run("queued", None) is CanonicalStatus.BUILDING


@pytest.mark.parametrize(
    "conclusion, expected",
    [
        ("success", CanonicalStatus.LIVE),
        ("failure", CanonicalStatus.ERROR),
        ("cancelled", CanonicalStatus.ERROR),
        ("skipped", CanonicalStatus.UNKNOWN),
        (None, CanonicalStatus.UNKNOWN),
    ],
)
def test_ci_completed_conclusions(conclusion, expected) -> None:
    assert normalize_ci_run("completed", conclusion) is expected


@pytest.mark.parametrize(
    "status_code, expected",
    [
        (200, HealthStatus.HEALTHY),
        (204, HealthStatus.HEALTHY),
        (301, HealthStatus.HEALTHY),
        (399, HealthStatus.HEALTHY),
        (400, HealthStatus.UNHEALTHY),
        (503, HealthStatus.UNHEALTHY),
        (None, HealthStatus.UNHEALTHY),
    ],
)
def test_health_probe_codes(status_code, expected) -> None:
    assert normalize_health_probe(status_code) is expected


def test_store_liveness() -> None:
    assert normalize_store_liveness(False, False) is CanonicalStatus.UNKNOWN
    assert normalize_store_liveness(True, True) is CanonicalStatus.LIVE
    assert normalize_store_liveness(True, False) is CanonicalStatus.ERROR


def test_dispatch_by_service_kind() -> None:
    assert normalize(ServiceKind.HOSTING, "READY") is CanonicalStatus.LIVE
    assert normalize("ci", {"status": "completed", "conclusion": "success"}) is CanonicalStatus.LIVE
    assert normalize(ServiceKind.CI, None) is CanonicalStatus.UNKNOWN
    assert normalize(ServiceKind.DATABASE, True) is CanonicalStatus.LIVE
    assert normalize(ServiceKind.DATABASE, False) is CanonicalStatus.ERROR
    assert normalize(ServiceKind.DATABASE, None) is CanonicalStatus.UNKNOWN


def test_canonical_values_are_the_public_vocabulary() -> None:
    assert {s.value for s in CanonicalStatus} == {"live", "building", "error", "unknown", "not-applicable"}
