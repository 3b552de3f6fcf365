"""Daily overdue sweep.

Promotes ``pending`` terminations whose return window has elapsed to
``overdue`` and sends the two reminder emails for each newly promoted record.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from ..models.termination import Termination
from . import termination_store as store
from .errors import NotificationFailure
from .termination_state_machine import (
    DEFAULT_RETURN_WINDOW_DAYS,
    days_since,
    should_promote_to_overdue,
)

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    checked: int = 0
    promoted: int = 0
    notified: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


async def _notify(
    email_service,
    termination: Termination,
    days_passed: int,
    hr_emails: Sequence[str],
) -> int:
    """Send the employee reminder and the HR alert. Returns the number of emails accepted."""
    sent = 0

    try:
        if await email_service.send_equipment_return_reminder(
            to_email=termination.employee_email,
            to_name=termination.employee_name,
            termination_date=termination.termination_date,
            days_since_termination=days_passed,
            cc=list(hr_emails),
        ):
            sent += 1
        else:
            raise NotificationFailure(f"Reminder to {termination.employee_email} was not accepted")
    except Exception as exc:
        logger.warning(
            "[Overdue Sweep] Reminder for termination %s failed: %s",
            termination.id,
            exc,
        )

    if not hr_emails:
        logger.warning(
            "[Overdue Sweep] No HR notification addresses configured, skipping alert for termination %s",
            termination.id,
        )
        return sent

    try:
        if await email_service.send_equipment_overdue_alert(
            to_emails=list(hr_emails),
            employee_name=termination.employee_name,
            employee_email=termination.employee_email,
            termination_date=termination.termination_date,
            overdue_days=days_passed,
        ):
            sent += 1
        else:
            raise NotificationFailure(f"HR alert for termination {termination.id} was not accepted")
    except Exception as exc:
        logger.warning(
            "[Overdue Sweep] HR alert for termination %s failed: %s",
            termination.id,
            exc,
        )

    return sent


async def run_overdue_sweep(
    conn,
    email_service,
    *,
    today: Optional[date] = None,
    window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
    hr_emails: Sequence[str] = (),
) -> SweepResult:
    """Promote every pending termination past its window and notify once per promotion.

    Each promotion is a conditional update on ``status = 'pending'``, so a
    record already promoted by a concurrent or earlier run is skipped and no
    duplicate emails go out. Notification failures never undo a promotion.
    """
    today = today or datetime.now(timezone.utc).date()
    result = SweepResult()

    open_terminations = await store.fetch_open_terminations(conn)
    result.checked = len(open_terminations)

    for termination in open_terminations:
        if not should_promote_to_overdue(
            termination.termination_date,
            termination.status,
            today,
            window_days,
        ):
            continue

        claimed = await store.claim_overdue(conn, termination.id)
        if claimed is None:
            logger.info("[Overdue Sweep] Termination %s already promoted, skipping", termination.id)
            continue

        result.promoted += 1
        days_passed = days_since(claimed.termination_date, today)
        logger.info(
            "[Overdue Sweep] Termination %s (%s) marked overdue after %d days",
            claimed.id,
            claimed.employee_name,
            days_passed,
        )

        sent = await _notify(email_service, claimed, days_passed, hr_emails)
        result.notified += sent
        expected = 2 if hr_emails else 1
        if sent < expected:
            result.failed += 1

    logger.info(
        "[Overdue Sweep] Checked %d, promoted %d, sent %d emails, %d with failures",
        result.checked,
        result.promoted,
        result.notified,
        result.failed,
    )
    return result
