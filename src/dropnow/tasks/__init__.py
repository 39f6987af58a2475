"""Background task processing."""

from dropnow.tasks.maintenance import prune_connection_tokens
from dropnow.tasks.queue import get_queue_settings, queue

__all__ = ["get_queue_settings", "prune_connection_tokens", "queue"]
