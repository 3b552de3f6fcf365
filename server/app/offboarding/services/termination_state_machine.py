"""Termination status lifecycle, return/archive gates and overdue arithmetic."""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from typing import Optional, Sequence

from .errors import TerminationPreconditionError

DEFAULT_RETURN_WINDOW_DAYS = 30


class TerminationStatus(str, Enum):
    PENDING = "pending"
    OVERDUE = "overdue"
    EQUIPMENT_RETURNED = "equipment_returned"
    ARCHIVED = "archived"


class EquipmentDisposition(str, Enum):
    RETURN_TO_POOL = "return_to_pool"
    RETIRE = "retire"
    PENDING_ASSESSMENT = "pending_assessment"


class TerminationTransitionError(TerminationPreconditionError):
    """Raised when an invalid status transition is requested."""


OPEN_STATUSES: tuple[TerminationStatus, ...] = (
    TerminationStatus.PENDING,
    TerminationStatus.OVERDUE,
)

_ALLOWED_TRANSITIONS: dict[TerminationStatus, tuple[TerminationStatus, ...]] = {
    TerminationStatus.PENDING: (
        TerminationStatus.OVERDUE,
        TerminationStatus.EQUIPMENT_RETURNED,
    ),
    TerminationStatus.OVERDUE: (
        TerminationStatus.PENDING,
        TerminationStatus.EQUIPMENT_RETURNED,
    ),
    TerminationStatus.EQUIPMENT_RETURNED: (
        TerminationStatus.ARCHIVED,
    ),
    TerminationStatus.ARCHIVED: (),
}

# Messages shown to operators when a gate is not satisfied.
REASON_NOT_RETURNED = "Equipment must be marked as returned before archiving"
REASON_TRACKING_NUMBER = "Tracking number is required"
REASON_COMPLETED_BY = "IT staff must be assigned"
REASON_DISPOSITION = "Equipment disposition must be decided (return to pool or retire)"
REASON_CHECKLIST = "IT checklist must be 100% completed"

RETURN_REQUIREMENTS: tuple[str, ...] = (
    REASON_TRACKING_NUMBER,
    REASON_COMPLETED_BY,
    REASON_DISPOSITION,
)
ARCHIVE_REQUIREMENTS: tuple[str, ...] = (
    REASON_NOT_RETURNED,
    *RETURN_REQUIREMENTS,
    REASON_CHECKLIST,
)


def _coerce_status(value: str | TerminationStatus) -> TerminationStatus:
    if isinstance(value, TerminationStatus):
        return value
    try:
        return TerminationStatus(value)
    except ValueError as exc:
        raise TerminationTransitionError(f"Unknown termination status '{value}'") from exc


def _coerce_disposition(value: str | EquipmentDisposition | None) -> Optional[EquipmentDisposition]:
    if value is None or isinstance(value, EquipmentDisposition):
        return value
    try:
        return EquipmentDisposition(value)
    except ValueError:
        return None


def all_statuses() -> list[str]:
    return [status.value for status in TerminationStatus]


def state_machine_map() -> dict[str, list[str]]:
    return {
        source.value: [target.value for target in targets]
        for source, targets in _ALLOWED_TRANSITIONS.items()
    }


def is_open(status: str | TerminationStatus) -> bool:
    return _coerce_status(status) in OPEN_STATUSES


def can_transition(
    state_from: str | TerminationStatus,
    state_to: str | TerminationStatus,
) -> bool:
    source = _coerce_status(state_from)
    target = _coerce_status(state_to)
    return target in _ALLOWED_TRANSITIONS[source]


def validate_transition(
    state_from: str | TerminationStatus,
    state_to: str | TerminationStatus,
) -> None:
    source = _coerce_status(state_from)
    target = _coerce_status(state_to)

    if not can_transition(source, target):
        allowed_targets = _ALLOWED_TRANSITIONS[source]
        allowed_str = ", ".join(t.value for t in allowed_targets) or "none"
        raise TerminationTransitionError(
            f"Invalid termination transition '{source.value}' -> '{target.value}'. "
            f"Allowed targets: {allowed_str}.",
            [f"Status '{source.value}' cannot move to '{target.value}'"],
        )


def return_blockers(
    tracking_number: Optional[str],
    equipment_disposition: str | EquipmentDisposition | None,
    completed_by_user_id: Optional[int],
) -> list[str]:
    """List the unmet preconditions for recording an equipment return."""
    reasons: list[str] = []
    if not (tracking_number or "").strip():
        reasons.append(REASON_TRACKING_NUMBER)
    if completed_by_user_id is None:
        reasons.append(REASON_COMPLETED_BY)
    disposition = _coerce_disposition(equipment_disposition)
    if disposition is None or disposition == EquipmentDisposition.PENDING_ASSESSMENT:
        reasons.append(REASON_DISPOSITION)
    return reasons


def archive_blockers(
    status: str | TerminationStatus,
    tracking_number: Optional[str],
    equipment_disposition: str | EquipmentDisposition | None,
    completed_by_user_id: Optional[int],
    checklist_complete: bool,
) -> list[str]:
    """List every unmet archival condition, in display order."""
    reasons: list[str] = []
    if _coerce_status(status) != TerminationStatus.EQUIPMENT_RETURNED:
        reasons.append(REASON_NOT_RETURNED)
    reasons.extend(return_blockers(tracking_number, equipment_disposition, completed_by_user_id))
    if not checklist_complete:
        reasons.append(REASON_CHECKLIST)
    return reasons


def days_since(termination_date: date, today: date) -> int:
    return (today - termination_date).days


def overdue_fields(
    termination_date: date,
    status: str | TerminationStatus,
    today: date,
    window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
) -> tuple[int, bool, int]:
    """Return ``(days_passed, is_overdue, days_remaining)`` computed from the termination date.

    ``is_overdue`` is only ever true while the termination is still open.
    ``days_remaining`` is clamped at zero.
    """
    days_passed = days_since(termination_date, today)
    is_overdue = is_open(status) and days_passed >= window_days
    days_remaining = max(window_days - days_passed, 0)
    return days_passed, is_overdue, days_remaining


def should_promote_to_overdue(
    termination_date: date,
    status: str | TerminationStatus,
    today: date,
    window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
) -> bool:
    """Only ``pending`` records are promoted; already-overdue ones are left alone."""
    return (
        _coerce_status(status) == TerminationStatus.PENDING
        and days_since(termination_date, today) >= window_days
    )


def overdue_cutoff(today: date, window_days: int = DEFAULT_RETURN_WINDOW_DAYS) -> date:
    """Latest termination date that counts as overdue on ``today``."""
    return today - timedelta(days=window_days)


def ensure_no_blockers(message: str, reasons: Sequence[str]) -> None:
    if reasons:
        raise TerminationPreconditionError(message, reasons)
