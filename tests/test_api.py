"""Tests for the HTTP API with services swapped for in-memory fakes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from kbsync.config import Settings
from kbsync.core.dependencies import get_current_user, get_file_service, get_upload_queue
from kbsync.core.exceptions import PreviewNotSupportedError, WebhookError
from kbsync.database import get_db
from kbsync.main import app
from kbsync.models.file import FileRecord
from tests.fakes import ScriptedNotifier, outcome


@pytest.fixture
def file_service():
    return AsyncMock()


@pytest.fixture
def overrides(user, make_queue, file_service, mock_db_session):
    state = {"queue": make_queue(ScriptedNotifier())}

    async def _db():
        yield mock_db_session

    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_upload_queue] = lambda: state["queue"]
    app.dependency_overrides[get_file_service] = lambda: file_service
    app.dependency_overrides[get_db] = _db
    yield state
    app.dependency_overrides.clear()


@pytest.fixture
async def client(overrides):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def _record(user, file_name="notes.txt"):
    file_id = uuid.uuid4()
    return FileRecord(
        id=file_id,
        file_name=file_name,
        size=5,
        mime_type="text/plain",
        storage_path=f"{user.id}/{file_id}-{file_name}",
        user_id=user.id,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
    )


# ---------------------------------------------------------------------------
# General
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_root(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "operational"


@pytest.mark.asyncio
async def test_info_lists_endpoints(client):
    resp = await client.get("/api/v1/info")
    assert resp.status_code == 200
    assert resp.json()["endpoints"]["uploads"] == "/api/v1/uploads"


@pytest.mark.asyncio
async def test_requires_bearer_token(client):
    del app.dependency_overrides[get_current_user]

    resp = await client.get("/api/v1/history/uploads")

    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Upload queue
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_enqueue_reports_accepted_and_rejected(client):
    resp = await client.post(
        "/api/v1/uploads/queue",
        files=[
            ("files", ("notes.txt", b"hello", "text/plain")),
            ("files", ("photo.png", b"\x89PNG", "image/png")),
            ("files", ("notes.txt", b"again", "text/plain")),
        ]
    )

    assert resp.status_code == 201
    data = resp.json()
    assert [task["file_name"] for task in data["accepted"]] == ["notes.txt"]
    assert data["accepted"][0]["status"] == "pending"
    assert [(r["file_name"], r["code"]) for r in data["rejected"]] == [
        ("photo.png", "schema"),
        ("notes.txt", "queued_duplicate"),
    ]


@pytest.mark.asyncio
async def test_several_files_may_exceed_one_file_limit_together(client, monkeypatch):
    monkeypatch.setattr(
        "kbsync.core.middleware.settings",
        Settings(max_file_size_mb=1, max_files_per_request=2)
    )
    part = b"x" * (768 * 1024)

    resp = await client.post(
        "/api/v1/uploads/queue",
        files=[
            ("files", ("a.txt", part, "text/plain")),
            ("files", ("b.txt", part, "text/plain")),
            ("files", ("c.txt", part, "text/plain")),
        ]
    )

    assert resp.status_code == 201
    assert len(resp.json()["accepted"]) == 3


@pytest.mark.asyncio
async def test_body_beyond_any_acceptable_request_is_refused(client, monkeypatch):
    monkeypatch.setattr(
        "kbsync.core.middleware.settings",
        Settings(max_file_size_mb=1, max_files_per_request=2)
    )

    resp = await client.post(
        "/api/v1/uploads/queue",
        files=[("files", ("big.txt", b"x" * (4 * 1024 * 1024), "text/plain"))]
    )

    assert resp.status_code == 413
    assert "2 files of up to 1MB" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_too_many_files_in_one_request(client, monkeypatch):
    monkeypatch.setattr("kbsync.api.uploads.get_settings", lambda: Settings(max_files_per_request=2))

    resp = await client.post(
        "/api/v1/uploads/queue",
        files=[("files", (f"{name}.txt", b"hello", "text/plain")) for name in "abc"]
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "At most 2 files can be added per request"


@pytest.mark.asyncio
async def test_upload_and_wait(client, overrides):
    task = overrides["queue"].enqueue("notes.txt", b"hello", "text/plain")

    resp = await client.post(f"/api/v1/uploads/queue/{task.id}/upload", params={"wait": "true"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "success"
    assert data["progress"] == 100
    assert data["id"] == str(task.id)


@pytest.mark.asyncio
async def test_failed_upload_then_retry(client, overrides, make_queue):
    overrides["queue"] = make_queue(ScriptedNotifier([outcome(500, text="Internal error")]))
    task = overrides["queue"].enqueue("notes.txt", b"hello", "text/plain")

    failed = await client.post(f"/api/v1/uploads/queue/{task.id}/upload", params={"wait": "true"})
    retried = await client.post(f"/api/v1/uploads/queue/{task.id}/retry", params={"wait": "true"})

    assert failed.json()["status"] == "error"
    assert failed.json()["error_details"]["message"] == "Upload failed: 500 - Internal error"
    assert retried.json()["status"] == "success"
    assert retried.json()["id"] == str(task.id)
    assert retried.json()["attempt"] == 2


@pytest.mark.asyncio
async def test_retry_of_pending_task_conflicts(client, overrides):
    task = overrides["queue"].enqueue("notes.txt", b"hello", "text/plain")

    resp = await client.post(f"/api/v1/uploads/queue/{task.id}/retry")

    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_unknown_task(client):
    resp = await client.get(f"/api/v1/uploads/queue/{uuid.uuid4()}")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Upload task not found"


@pytest.mark.asyncio
async def test_remove_task(client, overrides):
    task = overrides["queue"].enqueue("notes.txt", b"hello", "text/plain")

    resp = await client.delete(f"/api/v1/uploads/queue/{task.id}")
    listing = await client.get("/api/v1/uploads/queue")

    assert resp.status_code == 204
    assert listing.json() == {"tasks": [], "total": 0}


# ---------------------------------------------------------------------------
# Stored files
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_files(client, file_service, user):
    file_service.list_files.return_value = [_record(user)]

    resp = await client.get("/api/v1/files")

    assert resp.status_code == 200
    assert resp.json()["total_count"] == 1
    assert resp.json()["files"][0]["file_name"] == "notes.txt"


@pytest.mark.asyncio
async def test_rename_strips_name(client, file_service, user):
    record = _record(user, file_name="renamed.txt")
    file_service.rename.return_value = record

    resp = await client.patch(f"/api/v1/files/{record.id}", json={"file_name": "  renamed.txt  "})

    assert resp.status_code == 200
    assert file_service.rename.await_args.args[2] == "renamed.txt"


@pytest.mark.asyncio
async def test_delete_file(client, file_service):
    resp = await client.delete(f"/api/v1/files/{uuid.uuid4()}")

    assert resp.status_code == 204
    file_service.delete.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_refused_by_webhook(client, file_service):
    file_service.delete.side_effect = WebhookError("Delete failed: 500 - Internal error", status_code=500)

    resp = await client.delete(f"/api/v1/files/{uuid.uuid4()}")

    assert resp.status_code == 502
    assert resp.json()["detail"] == "Delete failed: 500 - Internal error"
    assert resp.json()["upstream_status"] == 500


@pytest.mark.asyncio
async def test_preview_unsupported(client, file_service):
    file_service.preview.side_effect = PreviewNotSupportedError("Preview is only available for text, JSON, and CSV files")

    resp = await client.get(f"/api/v1/files/{uuid.uuid4()}/preview")

    assert resp.status_code == 415


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upload_history_empty(client):
    resp = await client.get("/api/v1/history/uploads")

    assert resp.status_code == 200
    assert resp.json() == {"entries": [], "total": 0}
