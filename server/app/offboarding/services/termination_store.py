"""asyncpg persistence for termination records.

The checklist lives in a JSONB column and is converted to ``ChecklistItem``
models here, so nothing above this module sees raw JSON. Every write bumps
``version``; ``save_termination`` only succeeds against the version it read.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Optional, Sequence

from ..models.termination import ChecklistItem, Termination, TerminationCreate
from .errors import TerminationConflictError, TerminationNotFoundError

TERMINATION_COLUMNS = """
    id, employee_name, employee_email, job_title, department, termination_date,
    termination_reason, initiated_by, status, tracking_number, equipment_disposition,
    completed_by_user_id, checklist, is_overdue, days_remaining, overdue_notified_at,
    archived_at, version, created_at, updated_at
"""


def parse_checklist(value: Any) -> list[ChecklistItem]:
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if not isinstance(value, list):
        return []
    return [ChecklistItem.model_validate(item) for item in value if isinstance(item, dict)]


def dump_checklist(checklist: Sequence[ChecklistItem]) -> str:
    return json.dumps([item.model_dump(mode="json") for item in checklist])


def row_to_termination(row: Any) -> Termination:
    return Termination(
        id=row["id"],
        employee_name=row["employee_name"],
        employee_email=row["employee_email"],
        job_title=row["job_title"],
        department=row["department"],
        termination_date=row["termination_date"],
        termination_reason=row["termination_reason"],
        initiated_by=row["initiated_by"],
        status=row["status"],
        tracking_number=row["tracking_number"],
        equipment_disposition=row["equipment_disposition"],
        completed_by_user_id=row["completed_by_user_id"],
        checklist=parse_checklist(row["checklist"]),
        is_overdue=bool(row["is_overdue"]),
        days_remaining=row["days_remaining"],
        overdue_notified_at=row["overdue_notified_at"],
        archived_at=row["archived_at"],
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def insert_termination(
    conn,
    data: TerminationCreate,
    checklist: Sequence[ChecklistItem],
    days_remaining: int,
) -> Termination:
    row = await conn.fetchrow(
        f"""
        INSERT INTO terminations (
            employee_name, employee_email, job_title, department, termination_date,
            termination_reason, initiated_by, equipment_disposition, checklist, days_remaining
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, $10)
        RETURNING {TERMINATION_COLUMNS}
        """,
        data.employee_name,
        str(data.employee_email),
        data.job_title,
        data.department,
        data.termination_date,
        data.termination_reason,
        data.initiated_by,
        data.equipment_disposition,
        dump_checklist(checklist),
        days_remaining,
    )
    return row_to_termination(row)


async def fetch_termination(conn, termination_id: int, *, for_update: bool = False) -> Termination:
    query = f"SELECT {TERMINATION_COLUMNS} FROM terminations WHERE id = $1"
    if for_update:
        query += " FOR UPDATE"
    row = await conn.fetchrow(query, termination_id)
    if not row:
        raise TerminationNotFoundError(termination_id)
    return row_to_termination(row)


async def save_termination(conn, termination: Termination, expected_version: int) -> Termination:
    """Write every mutable column of ``termination`` if the stored version still matches."""
    row = await conn.fetchrow(
        f"""
        UPDATE terminations
        SET employee_name = $2,
            employee_email = $3,
            job_title = $4,
            department = $5,
            termination_date = $6,
            termination_reason = $7,
            initiated_by = $8,
            status = $9,
            tracking_number = $10,
            equipment_disposition = $11,
            completed_by_user_id = $12,
            checklist = $13::jsonb,
            is_overdue = $14,
            days_remaining = $15,
            archived_at = $16,
            version = version + 1,
            updated_at = NOW()
        WHERE id = $1 AND version = $17
        RETURNING {TERMINATION_COLUMNS}
        """,
        termination.id,
        termination.employee_name,
        termination.employee_email,
        termination.job_title,
        termination.department,
        termination.termination_date,
        termination.termination_reason,
        termination.initiated_by,
        termination.status,
        termination.tracking_number,
        termination.equipment_disposition,
        termination.completed_by_user_id,
        dump_checklist(termination.checklist),
        termination.is_overdue,
        termination.days_remaining,
        termination.archived_at,
        expected_version,
    )
    if row:
        return row_to_termination(row)

    current_version = await conn.fetchval(
        "SELECT version FROM terminations WHERE id = $1",
        termination.id,
    )
    if current_version is None:
        raise TerminationNotFoundError(termination.id)
    raise TerminationConflictError(termination.id, expected_version, current_version)


async def delete_termination(conn, termination_id: int) -> None:
    deleted = await conn.fetchval(
        "DELETE FROM terminations WHERE id = $1 RETURNING id",
        termination_id,
    )
    if deleted is None:
        raise TerminationNotFoundError(termination_id)


async def list_terminations(
    conn,
    list_filter: Optional[str] = None,
    overdue_cutoff: Optional[date] = None,
) -> list[Termination]:
    """Fetch terminations for the list view.

    ``overdue`` returns open records (``pending`` or ``overdue``) dated on or
    before ``overdue_cutoff``. Records the sweep has already promoted stay in
    the view, and the boundary day counts, matching the sweep's own rule.
    """
    query = f"SELECT {TERMINATION_COLUMNS} FROM terminations"
    params: list[Any] = []
    if list_filter == "archived":
        query += " WHERE status = 'archived'"
    elif list_filter == "overdue":
        query += " WHERE status IN ('pending', 'overdue') AND termination_date <= $1"
        params.append(overdue_cutoff)
    else:
        query += " WHERE status <> 'archived'"
    query += " ORDER BY termination_date DESC, id DESC"

    rows = await conn.fetch(query, *params)
    return [row_to_termination(row) for row in rows]


async def fetch_open_terminations(conn) -> list[Termination]:
    rows = await conn.fetch(
        f"""
        SELECT {TERMINATION_COLUMNS}
        FROM terminations
        WHERE status IN ('pending', 'overdue')
        ORDER BY termination_date ASC, id ASC
        """
    )
    return [row_to_termination(row) for row in rows]


async def claim_overdue(conn, termination_id: int) -> Optional[Termination]:
    """Promote a still-pending termination to overdue. Returns None if another run got there first."""
    row = await conn.fetchrow(
        f"""
        UPDATE terminations
        SET status = 'overdue',
            is_overdue = true,
            days_remaining = 0,
            overdue_notified_at = NOW(),
            version = version + 1,
            updated_at = NOW()
        WHERE id = $1 AND status = 'pending'
        RETURNING {TERMINATION_COLUMNS}
        """,
        termination_id,
    )
    return row_to_termination(row) if row else None
