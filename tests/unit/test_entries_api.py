"""FastAPI tests for the entry CRUD endpoints."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.app.api.dependencies import get_entry_store, get_settings
from backend.app.api import errors
from backend.app.api.errors import install_error_handlers
from backend.app.api.routers import entries, init
from backend.app.config import AuthConfig, Settings
from backend.app.domain.entrystore import EntryStoreError, InMemoryEntryStore
from backend.app.infra.metrics import get_metrics_client
from tests.helpers.logging import (
    RecordingLogger,
    assert_extra_contains,
    assert_extra_has_keys,
    find_log,
)

pytestmark = [pytest.mark.api]

API_KEY = "test-key"
AUTH = {"Authorization": f"Bearer {API_KEY}"}


def _build_client(
    store: InMemoryEntryStore,
    *,
    api_key: str | None = API_KEY,
    raise_server_exceptions: bool = True,
) -> TestClient:
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(entries.router)
    app.include_router(init.router)
    app.dependency_overrides[get_entry_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: Settings(
        auth=AuthConfig(api_key=api_key)
    )
    return TestClient(app, raise_server_exceptions=raise_server_exceptions)


def _payload(**overrides):
    body = {
        "project": "my-project",
        "document_type": "dev_log",
        "date": "2026-01-17",
        "title": "Example entry",
    }
    body.update(overrides)
    return body


@pytest.fixture
def store() -> InMemoryEntryStore:
    return InMemoryEntryStore()


@pytest.fixture
def client(store: InMemoryEntryStore) -> TestClient:
    return _build_client(store)


def test_requests_without_token_are_rejected(client: TestClient) -> None:
    response = client.get("/api/entries")

    assert response.status_code == 401
    assert response.json() == {
        "error": "Missing authentication. Provide Authorization header or token parameter."
    }


def test_wrong_token_is_rejected(client: TestClient) -> None:
    response = client.get("/api/entries", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid API key"}


def test_token_query_parameter_is_accepted(client: TestClient) -> None:
    response = client.get(f"/api/entries?token={API_KEY}")

    assert response.status_code == 200


def test_missing_server_key_fails_closed(store: InMemoryEntryStore) -> None:
    client = _build_client(store, api_key=None)

    response = client.get("/api/entries", headers=AUTH)

    assert response.status_code == 500
    assert response.json() == {"error": "Server configuration error"}


def test_create_entry_returns_stored_row(client: TestClient, monkeypatch) -> None:
    recorder = RecordingLogger()
    monkeypatch.setattr(entries, "logger", recorder)
    counters = get_metrics_client().counters
    before = counters["entries_create_total"]

    response = client.post(
        "/api/entries",
        headers=AUTH,
        json=_payload(type="Feature", status="✅ Done", summary="Brief", details=""),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["id"] == 1
    assert body["entry_number"] == 1
    assert body["entry_date"] == "2026-01-17"
    assert body["entry_type"] == "Feature"
    assert body["status"] == "complete"
    assert body["summary"] == "Brief"
    assert body["details"] is None
    assert body["next_steps"] is None
    assert body["is_deleted"] is False
    assert body["created_at"]
    assert counters["entries_create_total"] == before + 1
    record = find_log(recorder.records, level="info", message="entry_created")
    assert_extra_contains(record, entry_id=1, project="my-project", entry_number=1)


def test_create_numbers_within_group(client: TestClient) -> None:
    first = client.post("/api/entries", headers=AUTH, json=_payload())
    second = client.post("/api/entries", headers=AUTH, json=_payload())
    other = client.post(
        "/api/entries", headers=AUTH, json=_payload(document_type="addendum")
    )

    assert first.json()["entry_number"] == 1
    assert second.json()["entry_number"] == 2
    assert other.json()["entry_number"] == 1


@pytest.mark.parametrize(
    ("body", "message"),
    [
        (
            {"project": "my-project", "date": "2026-01-17", "title": "x"},
            "Missing required fields: project, document_type, date, title",
        ),
        (
            _payload(title=""),
            "Missing required fields: project, document_type, date, title",
        ),
        (_payload(document_type="memo"), 'document_type must be "addendum" or "dev_log"'),
        (_payload(date="17/01/2026"), "date must be in YYYY-MM-DD format"),
    ],
)
def test_create_validation_errors(client: TestClient, body, message) -> None:
    response = client.post("/api/entries", headers=AUTH, json=body)

    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_get_entry_and_not_found(client: TestClient) -> None:
    created = client.post("/api/entries", headers=AUTH, json=_payload()).json()

    found = client.get(f"/api/entries/{created['id']}", headers=AUTH)
    missing = client.get("/api/entries/999", headers=AUTH)
    invalid = client.get("/api/entries/abc", headers=AUTH)

    assert found.status_code == 200
    assert found.json() == created
    assert missing.status_code == 404
    assert missing.json() == {"error": "Entry not found"}
    assert invalid.status_code == 400
    assert invalid.json() == {"error": "Invalid entry ID"}


@pytest.mark.parametrize("raw_id", ["1_000", "٣", "12abc", "1.0", " "])
def test_entry_id_must_be_ascii_integer(client: TestClient, raw_id: str) -> None:
    client.post("/api/entries", headers=AUTH, json=_payload())

    response = client.get(f"/api/entries/{raw_id}", headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid entry ID"}


def test_update_entry_applies_partial_changes(client: TestClient) -> None:
    created = client.post(
        "/api/entries",
        headers=AUTH,
        json=_payload(summary="original", status="logged"),
    ).json()

    response = client.put(
        f"/api/entries/{created['id']}",
        headers=AUTH,
        json={"title": "Renamed", "type": "Fix", "status": ""},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Renamed"
    assert body["entry_type"] == "Fix"
    assert body["summary"] == "original"
    assert body["status"] == "logged"


def test_update_date_renumbers(client: TestClient) -> None:
    client.post("/api/entries", headers=AUTH, json=_payload(date="2026-01-18"))
    moving = client.post("/api/entries", headers=AUTH, json=_payload()).json()

    response = client.put(
        f"/api/entries/{moving['id']}", headers=AUTH, json={"date": "2026-01-18"}
    )

    assert response.json()["entry_date"] == "2026-01-18"
    assert response.json()["entry_number"] == 2


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({"title": "   "}, "Title cannot be empty"),
        ({"date": "2026-1-18"}, "date must be in YYYY-MM-DD format"),
    ],
)
def test_update_validation_errors(client: TestClient, body, message) -> None:
    created = client.post("/api/entries", headers=AUTH, json=_payload()).json()

    response = client.put(f"/api/entries/{created['id']}", headers=AUTH, json=body)

    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_update_unknown_entry(client: TestClient) -> None:
    response = client.put("/api/entries/42", headers=AUTH, json={"title": "x"})

    assert response.status_code == 404
    assert response.json() == {"error": "Entry not found"}


def test_delete_is_soft(client: TestClient, store: InMemoryEntryStore) -> None:
    created = client.post("/api/entries", headers=AUTH, json=_payload()).json()

    response = client.delete(f"/api/entries/{created['id']}", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get("/api/entries", headers=AUTH).json()["total"] == 0
    fetched = client.get(f"/api/entries/{created['id']}", headers=AUTH).json()
    assert fetched["is_deleted"] is True
    assert store.get_entry(created["id"]) is not None


def test_delete_unknown_entry(client: TestClient) -> None:
    response = client.delete("/api/entries/42", headers=AUTH)

    assert response.status_code == 404
    assert response.json() == {"error": "Entry not found"}


def test_list_pagination(client: TestClient) -> None:
    for index in range(5):
        client.post("/api/entries", headers=AUTH, json=_payload(title=f"Entry {index}"))

    page_two = client.get("/api/entries?limit=2&page=2", headers=AUTH).json()
    by_offset = client.get("/api/entries?limit=2&page=2&offset=4", headers=AUTH).json()

    assert [entry["entry_number"] for entry in page_two["entries"]] == [3, 2]
    assert page_two["total"] == 5
    assert page_two["page"] == 2
    assert page_two["totalPages"] == 3
    assert page_two["limit"] == 2
    assert [entry["entry_number"] for entry in by_offset["entries"]] == [1]


def test_list_limit_is_clamped(client: TestClient) -> None:
    client.post("/api/entries", headers=AUTH, json=_payload())

    capped = client.get("/api/entries?limit=500", headers=AUTH).json()
    floored = client.get("/api/entries?limit=0", headers=AUTH).json()
    default = client.get("/api/entries", headers=AUTH).json()

    assert capped["limit"] == 200
    assert floored["limit"] == 1
    assert default["limit"] == 20
    assert default["page"] == 1
    assert default["totalPages"] == 1


def test_list_empty_result_is_not_an_error(client: TestClient) -> None:
    response = client.get("/api/entries?project=nobody", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {
        "entries": [],
        "total": 0,
        "page": 1,
        "totalPages": 0,
        "limit": 20,
    }


def test_list_filters_and_search(client: TestClient) -> None:
    client.post(
        "/api/entries",
        headers=AUTH,
        json=_payload(title="Auth redirect", next_steps="ship the fix"),
    )
    client.post("/api/entries", headers=AUTH, json=_payload(title="Auth cleanup"))
    client.post(
        "/api/entries",
        headers=AUTH,
        json=_payload(project="another-project", title="Auth fix elsewhere"),
    )

    response = client.get(
        "/api/entries",
        headers=AUTH,
        params={"project": "my-project", "q": "auth fix", "document_type": ""},
    )

    titles = [entry["title"] for entry in response.json()["entries"]]
    assert titles == ["Auth redirect"]


def test_invalid_limit_is_a_bad_request(client: TestClient) -> None:
    response = client.get("/api/entries?limit=many", headers=AUTH)

    assert response.status_code == 400
    assert "limit" in response.json()["error"]


class _FailingStore(InMemoryEntryStore):
    def create_entry(self, **fields):
        raise EntryStoreError("database unavailable")

    def list_entries(self, filters):
        raise RuntimeError("unexpected")


def test_store_errors_map_to_generic_500(monkeypatch) -> None:
    recorder = RecordingLogger()
    monkeypatch.setattr(entries, "logger", recorder)
    client = _build_client(_FailingStore())

    response = client.post("/api/entries", headers=AUTH, json=_payload())

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create entry"}
    record = find_log(recorder.records, level="exception", message="entry_create_failed")
    assert_extra_has_keys(record, ["error", "project"])


def test_unexpected_errors_use_envelope(monkeypatch) -> None:
    recorder = RecordingLogger()
    monkeypatch.setattr(errors, "logger", recorder)
    client = _build_client(_FailingStore(), raise_server_exceptions=False)

    response = client.get("/api/entries", headers=AUTH)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    record = find_log(recorder.records, level="error", message="request_failed")
    assert isinstance(record["exc_info"], RuntimeError)
    assert_extra_contains(record, path="/api/entries")


def test_init_schema_endpoint(client: TestClient) -> None:
    unauthenticated = client.post("/api/init")
    response = client.post("/api/init", headers=AUTH)

    assert unauthenticated.status_code == 401
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Schema initialized"}
