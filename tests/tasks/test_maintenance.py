"""Tests for maintenance background tasks."""

from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dropnow.models import ConnectionToken
from dropnow.tasks import maintenance
from dropnow.tasks.maintenance import prune_connection_tokens
from dropnow.tasks.queue import get_queue_settings

NOW = datetime(2026, 3, 10, 3, 17, tzinfo=UTC)


@pytest.fixture(autouse=True)
def use_test_database(session_factory, monkeypatch):
    """Point the task's session context at the per-test database."""

    @asynccontextmanager
    async def _context():
        async with session_factory() as task_session:
            yield task_session

    monkeypatch.setattr(maintenance, "get_session_context", _context)


def _token(name: str, *, created: datetime, expires: datetime, used: bool = False) -> ConnectionToken:
    return ConnectionToken(
        token=name,
        created_at=created,
        updated_at=created,
        expires_at=expires,
        is_used=used,
        used_at=created if used else None,
    )


@pytest.fixture
async def tokens(session: AsyncSession) -> None:
    old = NOW - timedelta(days=30)
    session.add_all([
        _token("old-used", created=old, expires=old + timedelta(hours=1), used=True),
        _token("old-expired", created=old, expires=old + timedelta(hours=1)),
        _token("recent-used", created=NOW - timedelta(days=1), expires=NOW + timedelta(hours=1), used=True),
        _token("recent-expired", created=NOW - timedelta(days=1), expires=NOW - timedelta(hours=23)),
        # Old but still redeemable: never pruned
        _token("old-live", created=old, expires=NOW + timedelta(days=1)),
        _token("fresh", created=NOW, expires=NOW + timedelta(hours=1)),
    ])
    await session.commit()


async def _remaining(session_factory) -> set[str]:
    async with session_factory() as fresh:
        result = await fresh.execute(select(ConnectionToken.token))
        return set(result.scalars().all())


@pytest.mark.usefixtures("tokens")
class TestPruneConnectionTokens:
    async def test_prunes_spent_tokens_past_retention(self, session_factory):
        result = await prune_connection_tokens({}, retention_days=7, now=NOW)

        assert result["success"] is True
        assert result["tokens_deleted"] == 2
        assert await _remaining(session_factory) == {
            "recent-used",
            "recent-expired",
            "old-live",
            "fresh",
        }

    async def test_dry_run(self, session_factory):
        result = await prune_connection_tokens({}, retention_days=7, dry_run=True, now=NOW)

        assert result["tokens_would_delete"] == 2
        assert result["tokens_deleted"] == 0
        assert len(await _remaining(session_factory)) == 6

    async def test_zero_retention(self, session_factory):
        result = await prune_connection_tokens({}, retention_days=0, now=NOW)

        assert result["tokens_deleted"] == 4
        assert await _remaining(session_factory) == {"old-live", "fresh"}


def test_prune_is_scheduled():
    queue_settings = get_queue_settings()
    assert prune_connection_tokens in queue_settings["functions"]
    assert [job.function for job in queue_settings["cron_jobs"]] == [prune_connection_tokens]
