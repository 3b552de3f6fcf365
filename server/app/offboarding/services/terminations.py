"""Termination lifecycle operations.

Each mutating operation locks the row (``SELECT ... FOR UPDATE``), applies its
change in Python, and writes the whole record back inside one transaction.
Side effects that must agree with the status (the laptop pool counter) run in
the same transaction.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Sequence

from ..models.termination import (
    ChecklistItem,
    DirectoryUser,
    EquipmentReturnRequest,
    Termination,
    TerminationCreate,
    TerminationResponse,
    TerminationUpdate,
)
from . import checklist as checklist_engine
from . import termination_store as store
from .directory import IT_STAFF_ROLES, lookup_user
from .errors import (
    ArchiveNotEligibleError,
    TerminationConflictError,
    TerminationPreconditionError,
    TerminationValidationError,
)
from .inventory import adjust_available
from .termination_state_machine import (
    DEFAULT_RETURN_WINDOW_DAYS,
    EquipmentDisposition,
    TerminationStatus,
    TerminationTransitionError,
    archive_blockers,
    ensure_no_blockers,
    overdue_cutoff,
    overdue_fields,
    return_blockers,
    validate_transition,
)

logger = logging.getLogger(__name__)

_REQUIRED_TEXT_FIELDS = ("employee_name", "employee_email")
_OPTIONAL_TEXT_FIELDS = ("job_title", "department", "termination_reason", "tracking_number")
# pending <-> overdue belongs to the sweep, which also sends the notifications.
_SWEEP_OWNED_STATUSES = (TerminationStatus.PENDING.value, TerminationStatus.OVERDUE.value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _require_text(field_name: str, value: Optional[str]) -> str:
    normalized = (value or "").strip()
    if not normalized:
        raise TerminationValidationError(f"{field_name} is required")
    return normalized


def to_response(
    termination: Termination,
    today: Optional[date] = None,
    window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
    completed_by_user: Optional[DirectoryUser] = None,
) -> TerminationResponse:
    """Build the API view with overdue fields recomputed for ``today``."""
    days_passed, is_overdue, days_remaining = overdue_fields(
        termination.termination_date,
        termination.status,
        today or _today(),
        window_days,
    )
    return TerminationResponse(
        id=termination.id,
        employee_name=termination.employee_name,
        employee_email=termination.employee_email,
        job_title=termination.job_title,
        department=termination.department,
        termination_date=termination.termination_date,
        termination_reason=termination.termination_reason,
        initiated_by=termination.initiated_by,
        status=termination.status,
        tracking_number=termination.tracking_number,
        equipment_disposition=termination.equipment_disposition,
        completed_by_user_id=termination.completed_by_user_id,
        completed_by_user=completed_by_user,
        checklist=termination.checklist,
        checklist_completion=checklist_engine.completion_percent(termination.checklist),
        days_passed=days_passed,
        is_overdue=is_overdue,
        days_remaining=days_remaining,
        version=termination.version,
        archived_at=termination.archived_at,
        created_at=termination.created_at,
        updated_at=termination.updated_at,
    )


def _ensure_not_archived(termination: Termination) -> None:
    if termination.status == TerminationStatus.ARCHIVED.value:
        raise TerminationTransitionError(
            "Archived terminations cannot be modified",
            ["Termination is archived"],
        )


# ================================
# Record store operations
# ================================

async def create_termination(
    conn,
    data: TerminationCreate,
    actor: Optional[str] = None,
    today: Optional[date] = None,
    window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
) -> Termination:
    data = data.model_copy(update={
        "employee_name": _require_text("employeeName", data.employee_name),
        "job_title": _clean_optional(data.job_title),
        "department": _clean_optional(data.department),
        "termination_reason": _clean_optional(data.termination_reason),
        "initiated_by": _clean_optional(data.initiated_by) or _clean_optional(actor),
    })
    checklist = checklist_engine.resolve_initial_checklist(data.checklist, actor)
    _, _, days_remaining = overdue_fields(
        data.termination_date,
        TerminationStatus.PENDING,
        today or _today(),
        window_days,
    )

    termination = await store.insert_termination(conn, data, checklist, days_remaining)
    logger.info(
        "[Terminations] Created termination %s for %s with %d checklist items",
        termination.id,
        termination.employee_name,
        len(termination.checklist),
    )
    return termination


async def get_termination(conn, termination_id: int) -> tuple[Termination, Optional[DirectoryUser]]:
    termination = await store.fetch_termination(conn, termination_id)
    completed_by_user = None
    if termination.completed_by_user_id is not None:
        completed_by_user = await lookup_user(conn, termination.completed_by_user_id)
    return termination, completed_by_user


async def list_terminations(
    conn,
    list_filter: Optional[str] = None,
    today: Optional[date] = None,
    window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
) -> list[TerminationResponse]:
    today = today or _today()
    terminations = await store.list_terminations(
        conn,
        list_filter,
        overdue_cutoff(today, window_days),
    )
    return [to_response(termination, today, window_days) for termination in terminations]


async def delete_termination(conn, termination_id: int) -> None:
    await store.delete_termination(conn, termination_id)
    logger.info("[Terminations] Deleted termination %s", termination_id)


async def update_termination(
    conn,
    termination_id: int,
    changes: TerminationUpdate,
    actor: Optional[str] = None,
    today: Optional[date] = None,
    window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
) -> Termination:
    """Apply a partial update. Only fields present in ``changes`` are touched.

    A status change is routed through the same guards as the dedicated
    return/archive operations. ``pending`` and ``overdue`` are only set by the
    sweep. On a returned record, a new staff member or disposition is checked
    and the laptop pool adjusted to match.
    """
    payload = changes.model_dump(exclude_unset=True)
    expected_version = payload.pop("version", None)
    if not payload:
        raise TerminationValidationError("No fields to update")

    async with conn.transaction():
        current = await store.fetch_termination(conn, termination_id, for_update=True)
        if expected_version is not None and expected_version != current.version:
            raise TerminationConflictError(termination_id, expected_version, current.version)
        _ensure_not_archived(current)

        updates: dict[str, Any] = {}
        for field_name in _REQUIRED_TEXT_FIELDS:
            if field_name in payload:
                updates[field_name] = _require_text(field_name, payload[field_name])
        for field_name in _OPTIONAL_TEXT_FIELDS:
            if field_name in payload:
                updates[field_name] = _clean_optional(payload[field_name])
        if "termination_date" in payload:
            if payload["termination_date"] is None:
                raise TerminationValidationError("termination_date is required")
            updates["termination_date"] = payload["termination_date"]
        if "equipment_disposition" in payload:
            if payload["equipment_disposition"] is None:
                raise TerminationValidationError("equipment_disposition cannot be null")
            updates["equipment_disposition"] = payload["equipment_disposition"]
        if "completed_by_user_id" in payload:
            updates["completed_by_user_id"] = payload["completed_by_user_id"]
        if "checklist" in payload:
            if not changes.checklist:
                raise TerminationValidationError("checklist cannot be empty")
            updates["checklist"] = checklist_engine.normalize_checklist(changes.checklist, actor)

        updated = current.model_copy(update=updates)

        target_status = payload.get("status")
        if target_status is not None and target_status != current.status:
            if target_status in _SWEEP_OWNED_STATUSES:
                raise TerminationPreconditionError(
                    f"Status '{target_status}' is set by the overdue check",
                    [f"Status '{current.status}' cannot be changed to '{target_status}' manually"],
                )
            if target_status == TerminationStatus.EQUIPMENT_RETURNED.value:
                updated = await _record_equipment_return(
                    conn,
                    updated,
                    updated.tracking_number,
                    updated.equipment_disposition,
                    updated.completed_by_user_id,
                )
            else:
                updated = _archive(updated)
        elif updated.status == TerminationStatus.EQUIPMENT_RETURNED.value:
            ensure_no_blockers(
                "Returned equipment must keep its tracking details",
                return_blockers(
                    updated.tracking_number,
                    updated.equipment_disposition,
                    updated.completed_by_user_id,
                ),
            )
            await _reassign_equipment_return(conn, current, updated)
        elif "termination_date" in updates:
            _, _, days_remaining = overdue_fields(
                updated.termination_date,
                updated.status,
                today or _today(),
                window_days,
            )
            updated = updated.model_copy(update={"days_remaining": days_remaining})

        saved = await store.save_termination(conn, updated, current.version)

    logger.info("[Terminations] Updated termination %s (%s)", termination_id, ", ".join(sorted(payload)))
    return saved


# ================================
# State transition guard
# ================================

async def _require_it_staff(conn, user_id: int) -> DirectoryUser:
    staff = await lookup_user(conn, user_id)
    if staff is None:
        raise TerminationValidationError(f"User {user_id} not found")
    if staff.role not in IT_STAFF_ROLES:
        raise TerminationValidationError(f"{staff.name} is not a member of IT staff")
    return staff


async def _reassign_equipment_return(conn, current: Termination, updated: Termination) -> None:
    """Move the pooled laptop when a recorded return changes staff member or disposition."""
    if (
        updated.completed_by_user_id == current.completed_by_user_id
        and updated.equipment_disposition == current.equipment_disposition
    ):
        return

    staff = await _require_it_staff(conn, updated.completed_by_user_id)
    pool = EquipmentDisposition.RETURN_TO_POOL.value
    if current.equipment_disposition == pool:
        await adjust_available(conn, current.completed_by_user_id, -1)
    if updated.equipment_disposition == pool:
        await adjust_available(conn, staff.id, 1)
    logger.info(
        "[Terminations] Return for termination %s reassigned to %s (%s)",
        current.id,
        staff.name,
        updated.equipment_disposition,
    )

async def _record_equipment_return(
    conn,
    termination: Termination,
    tracking_number: Optional[str],
    equipment_disposition: Optional[str],
    completed_by_user_id: Optional[int],
) -> Termination:
    validate_transition(termination.status, TerminationStatus.EQUIPMENT_RETURNED)
    ensure_no_blockers(
        "Cannot mark equipment as returned",
        return_blockers(tracking_number, equipment_disposition, completed_by_user_id),
    )

    staff = await _require_it_staff(conn, completed_by_user_id)

    if equipment_disposition == EquipmentDisposition.RETURN_TO_POOL.value:
        available = await adjust_available(conn, staff.id, 1)
        logger.info(
            "[Terminations] Returned laptop for termination %s added to %s's pool (now %s)",
            termination.id,
            staff.name,
            available,
        )

    return termination.model_copy(update={
        "status": TerminationStatus.EQUIPMENT_RETURNED.value,
        "tracking_number": tracking_number.strip(),
        "equipment_disposition": equipment_disposition,
        "completed_by_user_id": completed_by_user_id,
        "is_overdue": False,
        "days_remaining": None,
    })


async def mark_equipment_returned(
    conn,
    termination_id: int,
    request: EquipmentReturnRequest,
) -> Termination:
    async with conn.transaction():
        current = await store.fetch_termination(conn, termination_id, for_update=True)
        updated = await _record_equipment_return(
            conn,
            current,
            request.tracking_number,
            request.equipment_disposition,
            request.completed_by_user_id,
        )
        saved = await store.save_termination(conn, updated, current.version)

    logger.info(
        "[Terminations] Equipment returned for termination %s (%s)",
        termination_id,
        saved.equipment_disposition,
    )
    return saved


def _archive(termination: Termination) -> Termination:
    if termination.status == TerminationStatus.ARCHIVED.value:
        raise TerminationTransitionError(
            "Termination is already archived",
            ["Termination is already archived"],
        )
    reasons = archive_blockers(
        termination.status,
        termination.tracking_number,
        termination.equipment_disposition,
        termination.completed_by_user_id,
        checklist_engine.is_complete(termination.checklist),
    )
    if reasons:
        raise ArchiveNotEligibleError(reasons, checklist_engine.completion_percent(termination.checklist))
    return termination.model_copy(update={
        "status": TerminationStatus.ARCHIVED.value,
        "is_overdue": False,
        "archived_at": _utcnow(),
    })


async def archive_termination(conn, termination_id: int) -> Termination:
    async with conn.transaction():
        current = await store.fetch_termination(conn, termination_id, for_update=True)
        saved = await store.save_termination(conn, _archive(current), current.version)

    logger.info("[Terminations] Archived termination %s for %s", termination_id, saved.employee_name)
    return saved


# ================================
# Checklist operations
# ================================

async def _mutate_checklist(
    conn,
    termination_id: int,
    mutate: Callable[[Sequence[ChecklistItem]], list[ChecklistItem]],
) -> Termination:
    async with conn.transaction():
        current = await store.fetch_termination(conn, termination_id, for_update=True)
        _ensure_not_archived(current)
        checklist = mutate(current.checklist)
        if not checklist:
            raise TerminationPreconditionError(
                "Checklist cannot be empty",
                ["A termination must keep at least one checklist item"],
            )
        updated = current.model_copy(update={"checklist": checklist})
        return await store.save_termination(conn, updated, current.version)


async def set_checklist_item(
    conn,
    termination_id: int,
    item_id: str,
    completed: bool,
    actor: Optional[str],
) -> Termination:
    return await _mutate_checklist(
        conn,
        termination_id,
        lambda items: checklist_engine.set_item_completion(items, item_id, completed, actor),
    )


async def set_checklist_category(
    conn,
    termination_id: int,
    category: str,
    completed: bool,
    actor: Optional[str],
) -> Termination:
    return await _mutate_checklist(
        conn,
        termination_id,
        lambda items: checklist_engine.bulk_set_category(items, category, completed, actor),
    )


async def set_checklist_all(
    conn,
    termination_id: int,
    completed: bool,
    actor: Optional[str],
) -> Termination:
    return await _mutate_checklist(
        conn,
        termination_id,
        lambda items: checklist_engine.bulk_set_all(items, completed, actor),
    )


async def add_checklist_item(
    conn,
    termination_id: int,
    category: str,
    description: str,
) -> Termination:
    # Validate before taking the row lock.
    checklist_engine.add_item([], category, description)
    return await _mutate_checklist(
        conn,
        termination_id,
        lambda items: checklist_engine.add_item(items, category, description)[0],
    )


async def remove_checklist_item(conn, termination_id: int, item_id: str) -> Termination:
    return await _mutate_checklist(
        conn,
        termination_id,
        lambda items: checklist_engine.remove_item(items, item_id),
    )
