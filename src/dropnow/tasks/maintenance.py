"""Maintenance background tasks for cleanup operations."""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, or_
from sqlmodel import delete, select

from dropnow.config import settings
from dropnow.database import get_session_context
from dropnow.models import ConnectionToken
from dropnow.models.base import utcnow

logger = logging.getLogger(__name__)

# Timeout for maintenance tasks (10 minutes)
MAINTENANCE_TIMEOUT_SECONDS = 10 * 60


def _prunable(now: datetime, cutoff: datetime):
    """Tokens that can never be redeemed again and are past retention."""
    return (
        or_(
            ConnectionToken.is_used == True,  # noqa: E712
            ConnectionToken.expires_at <= now,  # type: ignore[operator]
        ),
        ConnectionToken.created_at < cutoff,  # type: ignore[operator]
    )


async def prune_connection_tokens(
    ctx: dict[str, Any],
    retention_days: int | None = None,
    dry_run: bool = False,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Delete used or expired connection tokens older than the retention window.

    Redeemable tokens are never touched, however old.

    Args:
        ctx: SAQ context
        retention_days: Keep tokens created within this many days
            (defaults to ``settings.token_retention_days``)
        dry_run: If True, only report what would be deleted
        now: Reference time, defaults to the current time

    Returns:
        Dict with pruning results
    """
    if retention_days is None:
        retention_days = settings.token_retention_days
    now = now or utcnow()
    cutoff = now - timedelta(days=retention_days)

    async with get_session_context() as session:
        try:
            count_stmt = (
                select(func.count())
                .select_from(ConnectionToken)
                .where(*_prunable(now, cutoff))
            )
            delete_count = (await session.execute(count_stmt)).scalar_one()

            logger.info(
                f"Found {delete_count} spent connection tokens older than {retention_days} days"
            )

            if not dry_run and delete_count > 0:
                await session.execute(delete(ConnectionToken).where(*_prunable(now, cutoff)))
                await session.commit()

            logger.info(
                f"Connection token prune complete: {delete_count} tokens "
                f"{'would be ' if dry_run else ''}deleted"
            )

            return {
                "success": True,
                "dry_run": dry_run,
                "retention_days": retention_days,
                "cutoff_date": cutoff.isoformat(),
                "tokens_deleted": delete_count if not dry_run else 0,
                "tokens_would_delete": delete_count,
            }

        except Exception as e:
            error = f"Connection token prune failed: {e}"
            logger.exception(error)
            await session.rollback()
            return {"success": False, "error": error}


# Set SAQ job timeouts
prune_connection_tokens.timeout = MAINTENANCE_TIMEOUT_SECONDS  # type: ignore[attr-defined]
