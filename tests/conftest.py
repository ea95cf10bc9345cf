"""Shared test fixtures.

Provides the caller, in-memory workflow collaborators, pipeline and queue
factories, and mock database sessions.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from kbsync.schemas.auth import CurrentUser
from kbsync.schemas.upload import UploadTask
from kbsync.services.upload_pipeline import UploadPipeline
from kbsync.services.upload_queue import UploadQueue
from tests.fakes import InMemoryRecords, InMemoryStorage, ScriptedNotifier


@pytest.fixture
def user():
    return CurrentUser(id=uuid.uuid4(), email="analyst@example.com", role="admin")


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def records():
    return InMemoryRecords()


@pytest.fixture
def notifier():
    return ScriptedNotifier()


@pytest.fixture
def make_pipeline(storage, records):
    """Pipeline over the in-memory collaborators; no retries, no backoff."""

    def _make(notifier, **kwargs):
        kwargs.setdefault("webhook_timeout", 5)
        kwargs.setdefault("webhook_max_retries", 0)
        kwargs.setdefault("retry_backoff_seconds", 0)
        return UploadPipeline(storage, records, notifier, **kwargs)

    return _make


@pytest.fixture
def make_queue(user, records, make_pipeline):
    def _make(notifier, max_attempts=5, removal_delay=60, **pipeline_kwargs):
        pipeline = make_pipeline(notifier, **pipeline_kwargs)
        return UploadQueue(user, pipeline, records, max_attempts=max_attempts, removal_delay=removal_delay)

    return _make


@pytest.fixture
def make_task():
    def _make(file_name="customers.csv", content=b"id,name\n1,Ada\n", mime_type="text/csv", attempt=1):
        return UploadTask(
            id=uuid.uuid4(),
            file_name=file_name,
            size=len(content),
            mime_type=mime_type,
            content=content,
            attempt=attempt
        )

    return _make


# ---------------------------------------------------------------------------
# Database mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db_session():
    """Mock async SQLAlchemy session.

    Supports the patterns used by repositories:
        session.execute(stmt) -> result
        session.add(obj)
        session.commit()
        session.refresh(obj)
    """
    session = AsyncMock()
    session.add = MagicMock()
    default_result = MagicMock()
    default_result.scalar_one_or_none.return_value = None
    default_result.scalars.return_value.all.return_value = []
    default_result.rowcount = 0
    session.execute = AsyncMock(return_value=default_result)
    return session


@pytest.fixture
def mock_session_factory(mock_db_session):
    """Mock session factory usable as ``async with factory() as session:``."""

    @asynccontextmanager
    async def _session_ctx():
        yield mock_db_session

    factory = MagicMock(side_effect=lambda: _session_ctx())
    return factory
