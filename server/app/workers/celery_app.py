"""Celery application configuration."""

import os
from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_ready
from dotenv import load_dotenv

# Load environment variables for worker process
load_dotenv()

redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
celery_broker_url = os.getenv("CELERY_BROKER_URL", redis_url)
celery_result_backend = os.getenv("CELERY_RESULT_BACKEND", redis_url)

celery_app = Celery(
    "offboarding",
    broker=celery_broker_url,
    backend=celery_result_backend,
    include=[
        "app.workers.tasks.overdue_terminations",
    ],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task execution
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per task
    task_soft_time_limit=540,

    # Worker settings
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    # Result settings
    result_expires=3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=1,

    # Daily sweep for `celery beat`; worker_ready also dispatches it on startup.
    beat_schedule={
        "check-overdue-terminations": {
            "task": "app.workers.tasks.overdue_terminations.check_overdue_terminations",
            "schedule": crontab(hour=9, minute=0),
        },
    },
)


def _is_scheduler_enabled(task_key: str) -> bool:
    """Check if a scheduler task is enabled in the database.

    Returns False if no row exists or the table is missing.
    """
    import asyncio

    import asyncpg
    from app.workers.utils import get_db_connection

    async def _check():
        conn = await get_db_connection()
        try:
            row = await conn.fetchrow(
                "SELECT enabled FROM scheduler_settings WHERE task_key = $1",
                task_key,
            )
            return row["enabled"] if row else False
        except asyncpg.PostgresError:
            return False
        finally:
            await conn.close()

    return asyncio.run(_check())


@worker_ready.connect
def on_worker_ready(**kwargs):
    """Dispatch the overdue sweep on every worker startup when it is enabled."""
    from app.workers.tasks.overdue_terminations import TASK_KEY, check_overdue_terminations

    if _is_scheduler_enabled(TASK_KEY):
        check_overdue_terminations.delay()
    else:
        print("[Worker] Overdue terminations scheduler is disabled, skipping.")
