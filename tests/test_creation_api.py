from __future__ import annotations

from fastapi.testclient import TestClient

from charwizard.config import settings
from charwizard.main import app
from charwizard.modules.creation.service import build_creation_controller
from charwizard.modules.fields.registry import build_default_registry
from tests.support.fakes import BrokenCompletion

HEADERS = {"X-User-Id": "user-1"}


def test_full_wizard_over_http_with_fake_completion() -> None:
    client = TestClient(app)

    start = client.post("/api/v1/chat/start-character-creation", headers=HEADERS)
    assert start.status_code == 200
    body = start.json()
    assert body["success"] is True
    assert body["current_field"]["key"] == "name"
    assert body["usage"]["limit"] == 200

    draft: dict[str, str] = {}
    last: dict = {}
    for key in build_default_registry().keys():
        choices = client.post(
            "/api/v1/chat/get-choices",
            json={"current_field": key, "character_data": draft},
            headers=HEADERS,
        )
        assert choices.status_code == 200, choices.text
        options = choices.json()["choices"]
        assert len(options) == 4

        selected = client.post(
            "/api/v1/chat/select-choice",
            json={"current_field": key, "selected_choice": options[0], "character_data": draft},
            headers=HEADERS,
        )
        assert selected.status_code == 200, selected.text
        last = selected.json()
        draft = last["character_data"]

    assert last["completed"] is True
    assert last["next_field"] is None
    assert last["character_id"] is not None

    listing = client.get("/api/v1/characters", headers=HEADERS)
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    character_id = listing.json()["characters"][0]["id"]
    detail = client.get(f"/api/v1/characters/{character_id}", headers=HEADERS)
    assert detail.status_code == 200
    assert detail.json()["character_data"] == draft

    other = client.get(f"/api/v1/characters/{character_id}", headers={"X-User-Id": "someone-else"})
    assert other.status_code == 404
    assert other.json()["detail"]["code"] == "NOT_FOUND"

    usage = client.get("/api/v1/chat/usage", headers=HEADERS)
    assert usage.json()["usage"]["used"] == 40


def test_select_choice_missing_values_is_400() -> None:
    client = TestClient(app)
    resp = client.post("/api/v1/chat/select-choice", json={"current_field": "name"}, headers=HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "MISSING_FIELD"


def test_unknown_field_is_422() -> None:
    client = TestClient(app)
    resp = client.post("/api/v1/chat/get-choices", json={"current_field": "weapon"}, headers=HEADERS)
    assert resp.status_code == 422
    assert resp.json()["detail"] == {"code": "UNKNOWN_FIELD", "message": "Unknown field: weapon", "field": "weapon"}


def test_quota_exceeded_is_429_with_usage() -> None:
    settings.daily_completion_limit = 0
    client = TestClient(app)
    resp = client.post("/api/v1/chat/start-character-creation", headers=HEADERS)
    assert resp.status_code == 429
    detail = resp.json()["detail"]
    assert detail["code"] == "QUOTA_EXCEEDED"
    assert detail["usage"] == {"allowed": False, "used": 0, "limit": 0, "remaining": 0}


def test_completion_outage_maps_to_503_and_upstream_429(monkeypatch) -> None:
    client = TestClient(app)
    payload = {"current_field": "name", "character_data": {}}

    broken = build_creation_controller(BrokenCompletion())
    monkeypatch.setattr("charwizard.modules.creation.router.get_creation_controller", lambda: broken)
    resp = client.post("/api/v1/chat/get-choices", json=payload, headers=HEADERS)
    assert resp.status_code == 503
    assert resp.json()["detail"]["code"] == "COMPLETION_UNAVAILABLE"

    limited = build_creation_controller(BrokenCompletion(upstream_status=429))
    monkeypatch.setattr("charwizard.modules.creation.router.get_creation_controller", lambda: limited)
    resp = client.post("/api/v1/chat/get-choices", json=payload, headers=HEADERS)
    assert resp.status_code == 429
    assert resp.json()["detail"]["code"] == "UPSTREAM_RATE_LIMITED"

    accepted = client.post(
        "/api/v1/chat/select-choice",
        json={"current_field": "name", "selected_choice": "Aria", "character_data": {}},
        headers=HEADERS,
    )
    assert accepted.status_code == 200
    assert accepted.json()["message_source"] == "fallback"
    assert accepted.json()["next_field"] == "age"


def test_session_get_and_reset() -> None:
    client = TestClient(app)
    empty = client.get("/api/v1/chat/session", headers=HEADERS)
    assert empty.status_code == 200
    assert empty.json()["has_session"] is False

    client.post("/api/v1/chat/start-character-creation", headers=HEADERS)
    client.post(
        "/api/v1/chat/select-choice",
        json={"current_field": "name", "selected_choice": "Aria", "character_data": {}},
        headers=HEADERS,
    )
    current = client.get("/api/v1/chat/session", headers=HEADERS).json()
    assert current["has_session"] is True
    assert current["session"]["current_field"] == "age"
    assert current["session"]["current_step"] == 1
    assert current["progress"]["completed_count"] == 1

    for _ in range(2):
        reset = client.delete("/api/v1/chat/session", headers=HEADERS)
        assert reset.status_code == 200
        assert reset.json()["success"] is True
    assert client.get("/api/v1/chat/session", headers=HEADERS).json()["has_session"] is False


def test_sessions_are_isolated_per_user() -> None:
    client = TestClient(app)
    client.post("/api/v1/chat/start-character-creation", headers=HEADERS)
    other = client.get("/api/v1/chat/session", headers={"X-User-Id": "user-2"})
    assert other.json()["has_session"] is False


def test_field_catalog() -> None:
    client = TestClient(app)
    resp = client.get("/api/v1/chat/fields")
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 20
    assert [group["category"] for group in body["categories"]] == ["basic", "appearance", "personality", "background"]
    gender = body["categories"][0]["fields"][2]
    assert gender["key"] == "gender"
    assert gender["type"] == "select"
