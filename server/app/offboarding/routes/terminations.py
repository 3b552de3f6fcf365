"""Termination lifecycle routes: records, checklist, equipment return, archive and overdue sweep."""

from __future__ import annotations

import logging
from typing import List, NoReturn, Optional

import asyncpg
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...config import get_settings
from ...core.models.auth import CurrentUser
from ...core.services.email import get_email_service
from ...database import get_connection
from ..dependencies import require_admin_or_it, require_termination_viewer
from ..models.termination import (
    ChecklistBulkCompletionUpdate,
    ChecklistCategoryCompletionUpdate,
    ChecklistItemCompletionUpdate,
    ChecklistItemCreate,
    EquipmentReturnRequest,
    ITStaffMember,
    OverdueSweepResponse,
    Termination,
    TerminationCreate,
    TerminationDeleteResponse,
    TerminationListFilter,
    TerminationMutationResponse,
    TerminationResponse,
    TerminationStateMachineResponse,
    TerminationUpdate,
)
from ..services import terminations as termination_service
from ..services.directory import list_it_staff
from ..services.errors import (
    ArchiveNotEligibleError,
    ChecklistItemNotFoundError,
    TerminationConflictError,
    TerminationError,
    TerminationNotFoundError,
    TerminationPreconditionError,
)
from ..services.overdue_sweep import run_overdue_sweep
from ..services.termination_state_machine import (
    ARCHIVE_REQUIREMENTS,
    RETURN_REQUIREMENTS,
    all_statuses,
    state_machine_map,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _window_days() -> int:
    return get_settings().overdue_threshold_days


def _raise_http(exc: Exception) -> NoReturn:
    """Translate a service-layer error into the matching HTTP error."""
    if isinstance(exc, (TerminationNotFoundError, ChecklistItemNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, TerminationConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ArchiveNotEligibleError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": exc.message,
                "details": exc.reasons,
                "checklist_completion": exc.checklist_completion,
            },
        ) from exc
    if isinstance(exc, TerminationPreconditionError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": exc.message, "details": exc.reasons},
        ) from exc
    if isinstance(exc, TerminationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, asyncpg.PostgresError):
        logger.error("[Terminations] Storage error: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Storage error",
        ) from exc
    raise exc


def _mutation_response(termination: Termination, message: str) -> TerminationMutationResponse:
    return TerminationMutationResponse(
        message=message,
        termination=termination_service.to_response(termination, window_days=_window_days()),
    )


# ================================
# Collection routes
# ================================

@router.post("", response_model=TerminationResponse)
async def create_termination(
    request: TerminationCreate,
    current_user: CurrentUser = Depends(require_termination_viewer),
):
    """Open a termination. Starts in ``pending`` with the default IT checklist unless one is supplied."""
    try:
        async with get_connection() as conn:
            termination = await termination_service.create_termination(
                conn,
                request,
                actor=current_user.name,
                window_days=_window_days(),
            )
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return termination_service.to_response(termination, window_days=_window_days())


@router.get("", response_model=List[TerminationResponse])
async def list_terminations(
    list_filter: Optional[TerminationListFilter] = Query(None, alias="filter"),
    current_user: CurrentUser = Depends(require_termination_viewer),
):
    """List terminations. Archived records only appear with ``filter=archived``."""
    try:
        async with get_connection() as conn:
            return await termination_service.list_terminations(
                conn,
                list_filter,
                window_days=_window_days(),
            )
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)


@router.get("/it-staff", response_model=List[ITStaffMember])
async def get_it_staff(
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    """IT staff who can be recorded as having processed a return, with their laptop pool counts."""
    try:
        async with get_connection() as conn:
            return await list_it_staff(conn)
    except asyncpg.PostgresError as exc:
        _raise_http(exc)


@router.get("/state-machine", response_model=TerminationStateMachineResponse)
async def get_termination_state_machine(
    current_user: CurrentUser = Depends(require_termination_viewer),
):
    """Termination statuses, allowed transitions and the return/archive requirements."""
    return TerminationStateMachineResponse(
        statuses=all_statuses(),
        transitions=state_machine_map(),
        return_requirements=list(RETURN_REQUIREMENTS),
        archive_requirements=list(ARCHIVE_REQUIREMENTS),
    )


@router.post("/check-overdue", response_model=OverdueSweepResponse)
async def check_overdue_terminations(
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    """Run the overdue sweep now instead of waiting for the scheduled run."""
    settings = get_settings()
    logger.info("[Terminations] Overdue sweep triggered by %s", current_user.email)
    try:
        async with get_connection() as conn:
            result = await run_overdue_sweep(
                conn,
                get_email_service(),
                window_days=settings.overdue_threshold_days,
                hr_emails=settings.hr_notification_emails,
            )
    except asyncpg.PostgresError as exc:
        _raise_http(exc)

    return OverdueSweepResponse(
        message=f"Checked {result.checked} terminations, {result.promoted} marked overdue",
        **result.to_dict(),
    )


# ================================
# Single record routes
# ================================

@router.get("/{termination_id}", response_model=TerminationResponse)
async def get_termination(
    termination_id: int,
    current_user: CurrentUser = Depends(require_termination_viewer),
):
    try:
        async with get_connection() as conn:
            termination, completed_by_user = await termination_service.get_termination(conn, termination_id)
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return termination_service.to_response(
        termination,
        window_days=_window_days(),
        completed_by_user=completed_by_user,
    )


@router.put("/{termination_id}", response_model=TerminationMutationResponse)
async def update_termination(
    termination_id: int,
    request: TerminationUpdate,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    """Partially update a termination. Send ``version`` to reject the write if the record changed."""
    try:
        async with get_connection() as conn:
            termination = await termination_service.update_termination(
                conn,
                termination_id,
                request,
                actor=current_user.name,
                window_days=_window_days(),
            )
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return _mutation_response(termination, "Termination updated successfully")


@router.delete("/{termination_id}", response_model=TerminationDeleteResponse)
async def delete_termination(
    termination_id: int,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    try:
        async with get_connection() as conn:
            await termination_service.delete_termination(conn, termination_id)
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return TerminationDeleteResponse(message="Termination deleted successfully")


@router.post("/{termination_id}/return", response_model=TerminationMutationResponse)
async def mark_equipment_returned(
    termination_id: int,
    request: EquipmentReturnRequest,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    """Record the equipment return. ``return_to_pool`` adds the laptop to the staff member's pool."""
    try:
        async with get_connection() as conn:
            termination = await termination_service.mark_equipment_returned(conn, termination_id, request)
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return _mutation_response(termination, "Equipment marked as returned")


@router.post("/{termination_id}/archive", response_model=TerminationMutationResponse)
async def archive_termination(
    termination_id: int,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    try:
        async with get_connection() as conn:
            termination = await termination_service.archive_termination(conn, termination_id)
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return _mutation_response(termination, "Termination archived successfully")


# ================================
# Checklist routes
# ================================

@router.post("/{termination_id}/checklist/categories/complete", response_model=TerminationMutationResponse)
async def set_checklist_category(
    termination_id: int,
    request: ChecklistCategoryCompletionUpdate,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    try:
        async with get_connection() as conn:
            termination = await termination_service.set_checklist_category(
                conn,
                termination_id,
                request.category,
                request.completed,
                current_user.name,
            )
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return _mutation_response(termination, f"Checklist category '{request.category}' updated")


@router.post("/{termination_id}/checklist/complete-all", response_model=TerminationMutationResponse)
async def set_checklist_all(
    termination_id: int,
    request: ChecklistBulkCompletionUpdate,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    try:
        async with get_connection() as conn:
            termination = await termination_service.set_checklist_all(
                conn,
                termination_id,
                request.completed,
                current_user.name,
            )
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return _mutation_response(termination, "Checklist updated")


@router.post("/{termination_id}/checklist/items", response_model=TerminationMutationResponse)
async def add_checklist_item(
    termination_id: int,
    request: ChecklistItemCreate,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    try:
        async with get_connection() as conn:
            termination = await termination_service.add_checklist_item(
                conn,
                termination_id,
                request.category,
                request.description,
            )
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return _mutation_response(termination, "Checklist item added")


@router.patch("/{termination_id}/checklist/{item_id}", response_model=TerminationMutationResponse)
async def set_checklist_item(
    termination_id: int,
    item_id: str,
    request: ChecklistItemCompletionUpdate,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    try:
        async with get_connection() as conn:
            termination = await termination_service.set_checklist_item(
                conn,
                termination_id,
                item_id,
                request.completed,
                current_user.name,
            )
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return _mutation_response(termination, "Checklist item updated")


@router.delete("/{termination_id}/checklist/{item_id}", response_model=TerminationMutationResponse)
async def remove_checklist_item(
    termination_id: int,
    item_id: str,
    current_user: CurrentUser = Depends(require_admin_or_it),
):
    try:
        async with get_connection() as conn:
            termination = await termination_service.remove_checklist_item(conn, termination_id, item_id)
    except (TerminationError, asyncpg.PostgresError) as exc:
        _raise_http(exc)

    return _mutation_response(termination, "Checklist item removed")
