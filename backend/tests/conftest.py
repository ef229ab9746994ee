"""
AuthGate — Test Configuration (conftest.py)
============================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (recording audit sink, mocked DB
       session, API client) so no test needs a real database or log file.

Fixture Hierarchy (all function-scoped):
    ├── recording_sink:  in-memory audit sink capturing LogEntry objects
    ├── mock_db_session: AsyncMock standing in for an AsyncSession
    ├── app:             fresh FastAPI app wired to both of the above
    └── test_client:     HTTPX AsyncClient talking to `app` over ASGI
"""

import os
import tempfile

# Override settings for testing BEFORE any authgate imports
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["BCRYPT_ROUNDS"] = "4"  # keep hashing fast in tests
os.environ["AUDIT_CONSOLE"] = "false"
os.environ["AUDIT_LOG_FILE"] = os.path.join(tempfile.mkdtemp(prefix="authgate_test_"), "app.log")

from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from authgate.audit import AuditTag, LogEntry


class RecordingSink:
    """Audit sink double: keeps every entry in memory, in emit order."""

    def __init__(self):
        self.entries: List[LogEntry] = []

    def emit(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def tags(self, path: str = None) -> List[AuditTag]:
        return [e.tag for e in self.entries if path is None or e.path == path]

    def of(self, tag: AuditTag) -> List[LogEntry]:
        return [e for e in self.entries if e.tag == tag]


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = user
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    # Default query result: nothing found
    session.execute.return_value = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.get = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def app(recording_sink, mock_db_session):
    """A fresh application per test: new rate-limit state, recording audit sink."""
    from authgate.database import get_db_session
    from authgate.main import create_app

    application = create_app(audit_sink=recording_sink)

    async def override_db_session():
        yield mock_db_session

    application.dependency_overrides[get_db_session] = override_db_session
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient routed straight into the app (no server, no lifespan).

    The transport reports the client as 127.0.0.1; unexpected exceptions are
    turned into 500 responses instead of being re-raised into the test.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
