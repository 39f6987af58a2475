"""SAQ queue configuration for background tasks."""

from saq import CronJob, Queue

from dropnow.config import settings

# Main task queue
queue = Queue.from_url(settings.redis_url)

# Nightly, off-peak
PRUNE_TOKENS_CRON = "17 3 * * *"


def get_queue_settings() -> dict:
    """Get SAQ queue settings for the worker."""
    # Import here to avoid circular imports
    from dropnow.tasks.maintenance import prune_connection_tokens

    return {
        "queue": queue,
        "functions": [prune_connection_tokens],
        "cron_jobs": [CronJob(prune_connection_tokens, cron=PRUNE_TOKENS_CRON)],
        "concurrency": 2,
        "startup": startup,
        "shutdown": shutdown,
    }


async def startup(_ctx: dict) -> None:
    """Called when worker starts."""
    pass


async def shutdown(_ctx: dict) -> None:
    """Called when worker shuts down."""
    from dropnow.database import close_db

    await close_db()
