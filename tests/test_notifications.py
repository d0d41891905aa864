# tests/test_notifications.py
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import api
from conftest import FakePush, FakeStore


@pytest.fixture()
def wired(monkeypatch: pytest.MonkeyPatch):
    store, push = FakeStore(), FakePush()
    monkeypatch.setattr(api, "store", store)
    monkeypatch.setattr(api, "push", push)
    return TestClient(api.app), store, push


def test_send_broadcasts_and_records_history(wired) -> None:
    client, store, push = wired

    r = client.post(
        "/api/fcm/send",
        json={"title": "Deploy done", "body": "web is live", "url": "https://web.acme.dev", "projectId": "web"},
    )

    assert r.status_code == 200
    assert r.json() == {"success": True, "messageId": "projects/demo/messages/1"}
    assert push.sent[0]["type_"] == "general"
    assert push.sent[0]["project_id"] == "web"

    row = store.tables["notifications"][0]
    assert row["message_id"] == "projects/demo/messages/1"
    assert row["project_id"] == "web"
    assert row["type"] == "general"
    assert row["sent_at"].endswith("Z")


def test_send_succeeds_when_history_table_is_missing(wired) -> None:
    client, store, _ = wired
    store.failing_tables.add("notifications")

    r = client.post("/api/fcm/send", json={"title": "t", "body": "b"})

    assert r.status_code == 200
    assert "notifications" not in store.tables


@pytest.mark.parametrize("payload", [{"title": "", "body": "b"}, {"body": "b"}, {"title": "t"}])
def test_send_requires_title_and_body(wired, payload) -> None:
    client, _, push = wired

    r = client.post("/api/fcm/send", json=payload)

    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_FAILED"
    assert push.sent == []


def test_send_without_push_gateway_is_500(monkeypatch: pytest.MonkeyPatch, wired) -> None:
    client, _, _ = wired
    monkeypatch.setattr(api, "push", FakePush(configured=False))

    r = client.post("/api/fcm/send", json={"title": "t", "body": "b"})

    assert r.status_code == 500
    assert r.json()["message"] == "Firebase Admin not configured"


def test_push_failure_is_500(monkeypatch: pytest.MonkeyPatch, wired) -> None:
    client, store, _ = wired
    monkeypatch.setattr(api, "push", FakePush(fail=True))

    r = client.post("/api/fcm/send", json={"title": "t", "body": "b"})

    assert r.status_code == 500
    assert "notifications" not in store.tables


def test_register_subscribes_token(wired) -> None:
    client, _, push = wired

    r = client.post("/api/fcm/register", json={"token": "device-token-1"})

    assert r.status_code == 200
    assert r.json() == {"success": True, "topic": "devops-dashboard-users"}
    assert push.tokens == ["device-token-1"]

    assert client.post("/api/fcm/register", json={"token": ""}).status_code == 400


def _seed_history(store: FakeStore) -> None:
    store.tables["github_actions"] = [
        {"id": 1, "repo": "acme/web", "workflow": "deploy.yml", "triggered_at": "2024-05-01T10:00:00+00:00"},
        {"id": 2, "repo": "acme/api", "workflow": "ci.yml", "triggered_at": "2024-05-01T08:00:00+00:00"},
    ]
    store.tables["notifications"] = [
        {"id": 9, "title": "hello", "sent_at": "2024-05-01T09:00:00+00:00"},
    ]


def test_history_merges_newest_first_with_raw_column_names(wired) -> None:
    client, store, _ = wired
    _seed_history(store)

    body = client.get("/api/notifications").json()

    assert body["success"] is True
    assert body["total"] == 3
    assert [(row["type"], row["id"]) for row in body["data"]] == [
        ("github_action", 1),
        ("push", 9),
        ("github_action", 2),
    ]
    assert "triggered_at" in body["data"][0]
    assert "message" not in body


def test_history_type_filter_and_limit(wired) -> None:
    client, store, _ = wired
    _seed_history(store)

    pushes = client.get("/api/notifications", params={"type": "push"}).json()
    assert [row["id"] for row in pushes["data"]] == [9]

    limited = client.get("/api/notifications", params={"type": "github_action", "limit": 1}).json()
    assert [row["id"] for row in limited["data"]] == [1]


def test_history_partial_failure_still_returns_other_table(wired) -> None:
    client, store, _ = wired
    _seed_history(store)
    store.failing_tables.add("github_actions")

    r = client.get("/api/notifications")

    assert r.status_code == 200
    assert [row["type"] for row in r.json()["data"]] == ["push"]


def test_history_without_store(monkeypatch: pytest.MonkeyPatch, wired) -> None:
    client, _, _ = wired
    monkeypatch.setattr(api, "store", FakeStore(configured=False))

    assert client.get("/api/notifications").json() == {
        "success": True,
        "data": [],
        "total": 0,
        "message": "Supabase not configured",
    }
