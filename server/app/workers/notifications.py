"""Redis pub/sub notifications for worker task completion."""

import json
import logging
import os
from typing import Any

import redis
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def get_redis_client() -> redis.Redis:
    """Get a synchronous Redis client for worker processes."""
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    return redis.from_url(redis_url)


def _publish(channel: str, payload: dict[str, Any]) -> None:
    client = get_redis_client()
    try:
        client.publish(channel, json.dumps(payload))
    except redis.RedisError as exc:
        logger.warning("[Notifications] Could not publish to %s: %s", channel, exc)
    finally:
        client.close()


def publish_task_complete(
    channel: str,
    task_type: str,
    entity_id: str,
    result: dict[str, Any] | None = None,
) -> None:
    """
    Publish task completion to Redis pub/sub.

    Args:
        channel: The Redis channel to publish to (e.g., "terminations")
        task_type: The type of task that completed (e.g., "overdue_terminations")
        entity_id: The ID of the entity that was processed
        result: Optional result data to include in the notification
    """
    _publish(channel, {
        "type": "task_complete",
        "task_type": task_type,
        "entity_id": entity_id,
        "result": result or {},
    })


def publish_task_error(
    channel: str,
    task_type: str,
    entity_id: str,
    error: str,
) -> None:
    """Publish task error to Redis pub/sub."""
    _publish(channel, {
        "type": "task_error",
        "task_type": task_type,
        "entity_id": entity_id,
        "error": error,
    })
