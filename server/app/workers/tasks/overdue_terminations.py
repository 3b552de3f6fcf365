"""
Celery task for the daily termination overdue sweep.

check_overdue_terminations: promotes pending terminations whose equipment
return window has elapsed and emails the employee (HR on CC) and HR.
Enabled/disabled via scheduler_settings (task_key = 'overdue_terminations').
"""

import asyncio

from ..celery_app import celery_app
from ..notifications import publish_task_complete, publish_task_error
from ..utils import get_db_connection

TASK_KEY = "overdue_terminations"


async def _run_sweep() -> dict:
    from ...config import load_settings
    from ...core.services.email import EmailService
    from ...offboarding.services.overdue_sweep import run_overdue_sweep

    settings = load_settings()
    email_service = EmailService()

    conn = await get_db_connection()
    try:
        result = await run_overdue_sweep(
            conn,
            email_service,
            window_days=settings.overdue_threshold_days,
            hr_emails=settings.hr_notification_emails,
        )
        return result.to_dict()
    finally:
        await conn.close()


@celery_app.task(bind=True, max_retries=1)
def check_overdue_terminations(self) -> dict:
    """Run the overdue sweep.

    Triggered on worker startup via the worker_ready signal and daily by celery beat.
    """
    print("[Overdue Terminations] Checking for overdue equipment returns...")

    try:
        result = asyncio.run(_run_sweep())
        print(
            f"[Overdue Terminations] Checked {result['checked']} terminations: "
            f"{result['promoted']} marked overdue, {result['notified']} emails sent, "
            f"{result['failed']} with notification failures"
        )

        publish_task_complete(
            channel="terminations",
            task_type=TASK_KEY,
            entity_id="sweep",
            result=result,
        )
        return {"status": "success", **result}

    except Exception as e:
        print(f"[Overdue Terminations] Failed: {e}")

        publish_task_error(
            channel="terminations",
            task_type=TASK_KEY,
            entity_id="sweep",
            error=str(e),
        )

        raise self.retry(exc=e, countdown=60)
