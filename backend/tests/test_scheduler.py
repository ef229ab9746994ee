"""
AuthGate — Scheduler Tests
===========================

What:  Tests for the expired password-reset purge job and its registration.
How:   The scheduler is built but never started; the job function runs
       against a patched session factory.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from authgate.config import settings
from authgate.services.scheduler import (
    PURGE_JOB_ID,
    create_scheduler,
    purge_expired_password_resets,
)


@pytest.fixture
def session_factory(mock_db_session):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = mock_db_session
    factory.return_value.__aexit__.return_value = False
    with patch("authgate.services.scheduler.async_session_factory", factory):
        yield factory


class TestCreateScheduler:

    def test_purge_job_registered(self):
        scheduler = create_scheduler()

        job = scheduler.get_job(PURGE_JOB_ID)

        assert job is not None
        assert job.func is purge_expired_password_resets
        assert job.trigger.interval == timedelta(minutes=settings.reset_purge_interval_minutes)
        assert job.coalesce is True
        assert job.max_instances == 1
        assert not scheduler.running


class TestPurgeJob:

    @pytest.mark.asyncio
    async def test_commits_and_returns_count(self, session_factory, mock_db_session):
        with patch(
            "authgate.services.scheduler.auth_service.purge_expired_resets",
            new=AsyncMock(return_value=4),
        ) as purge:
            removed = await purge_expired_password_resets()

        assert removed == 4
        purge.assert_awaited_once_with(mock_db_session)
        mock_db_session.commit.assert_awaited_once()
        mock_db_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, session_factory, mock_db_session):
        with patch(
            "authgate.services.scheduler.auth_service.purge_expired_resets",
            new=AsyncMock(side_effect=RuntimeError("db down")),
        ):
            with pytest.raises(RuntimeError, match="db down"):
                await purge_expired_password_resets()

        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()
