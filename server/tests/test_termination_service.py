import asyncio
from datetime import date, timedelta

import pytest

from app.offboarding.models.termination import (
    ChecklistItem,
    EquipmentReturnRequest,
    TerminationCreate,
    TerminationUpdate,
)
from app.offboarding.services import checklist as checklist_engine
from app.offboarding.services import terminations as termination_service
from app.offboarding.services.errors import (
    ArchiveNotEligibleError,
    TerminationConflictError,
    TerminationNotFoundError,
    TerminationPreconditionError,
    TerminationValidationError,
)
from app.offboarding.services.termination_state_machine import (
    REASON_CHECKLIST,
    REASON_COMPLETED_BY,
    REASON_DISPOSITION,
    REASON_NOT_RETURNED,
    REASON_TRACKING_NUMBER,
    TerminationTransitionError,
)
from termination_fakes import FakeTerminationConn

TODAY = date(2026, 3, 31)
IT_STAFF_ID = 4
HR_USER_ID = 9


def _conn() -> FakeTerminationConn:
    conn = FakeTerminationConn()
    conn.add_user(IT_STAFF_ID, "Riley Ortiz", "riley@acmecorp.com", "I.T.", laptops=2)
    conn.add_user(HR_USER_ID, "Hana Brooks", "hana@acmecorp.com", "HR")
    return conn


def _complete_checklist():
    return [
        {
            "id": "1",
            "category": "Active Directory",
            "description": "Disable account",
            "completed": True,
            "completed_by": "Riley Ortiz",
            "completed_date": "2026-03-01T10:00:00+00:00",
        }
    ]


def _returned_row(conn, **overrides):
    fields = dict(
        status="equipment_returned",
        tracking_number="1Z999AA10123456784",
        equipment_disposition="retire",
        completed_by_user_id=IT_STAFF_ID,
        checklist=_complete_checklist(),
    )
    fields.update(overrides)
    return conn.add_termination(**fields)


def _return_request(disposition="return_to_pool", staff_id=IT_STAFF_ID, tracking="1Z999AA10123456784"):
    return EquipmentReturnRequest(
        tracking_number=tracking,
        equipment_disposition=disposition,
        completed_by_user_id=staff_id,
    )


# ================================
# Create / read
# ================================

def test_create_starts_pending_with_default_checklist():
    conn = _conn()
    request = TerminationCreate(
        employee_name="  Jordan Lee ",
        employee_email="jordan.lee@acmecorp.com",
        termination_date=TODAY - timedelta(days=10),
        department="Finance",
    )

    termination = asyncio.run(
        termination_service.create_termination(conn, request, actor="Hana Brooks", today=TODAY)
    )

    assert termination.status == "pending"
    assert termination.employee_name == "Jordan Lee"
    assert termination.initiated_by == "Hana Brooks"
    assert termination.equipment_disposition == "pending_assessment"
    assert termination.days_remaining == 20
    assert termination.checklist == checklist_engine.default_checklist()
    assert conn.checklist_of(termination.id)[0]["id"] == "1"
    assert termination.version == 1


def test_create_rejects_blank_employee_name():
    conn = _conn()
    request = TerminationCreate(
        employee_name="   ",
        employee_email="jordan.lee@acmecorp.com",
        termination_date=TODAY,
    )

    with pytest.raises(TerminationValidationError, match="employeeName"):
        asyncio.run(termination_service.create_termination(conn, request, today=TODAY))
    assert conn.terminations == {}


def test_create_keeps_supplied_checklist():
    conn = _conn()
    request = TerminationCreate(
        employee_name="Jordan Lee",
        employee_email="jordan.lee@acmecorp.com",
        termination_date=TODAY,
        checklist=[ChecklistItem(id="x", category="Hardware", description="Collect laptop")],
    )

    termination = asyncio.run(termination_service.create_termination(conn, request, actor="Hana Brooks"))

    assert [item.id for item in termination.checklist] == ["x"]


def test_get_termination_resolves_completed_by_user():
    conn = _conn()
    row = _returned_row(conn)

    termination, completed_by_user = asyncio.run(termination_service.get_termination(conn, row["id"]))

    assert termination.id == row["id"]
    assert completed_by_user.name == "Riley Ortiz"
    assert completed_by_user.role == "I.T."


def test_get_missing_termination_raises_not_found():
    with pytest.raises(TerminationNotFoundError):
        asyncio.run(termination_service.get_termination(_conn(), 404))


def test_response_recomputes_overdue_fields_from_date():
    conn = _conn()
    row = conn.add_termination(termination_date=TODAY - timedelta(days=45), is_overdue=False, days_remaining=30)
    termination, _ = asyncio.run(termination_service.get_termination(conn, row["id"]))

    response = termination_service.to_response(termination, today=TODAY)

    assert response.days_passed == 45
    assert response.is_overdue is True
    assert response.days_remaining == 0
    assert response.checklist_completion == 0


def test_list_filters():
    conn = _conn()
    recent = conn.add_termination(termination_date=TODAY - timedelta(days=5))
    stale = conn.add_termination(termination_date=TODAY - timedelta(days=31))
    flagged = conn.add_termination(termination_date=TODAY - timedelta(days=60), status="overdue")
    archived = _returned_row(conn, status="archived", termination_date=TODAY - timedelta(days=90))

    default_ids = [t.id for t in asyncio.run(termination_service.list_terminations(conn, today=TODAY))]
    overdue_ids = [t.id for t in asyncio.run(termination_service.list_terminations(conn, "overdue", today=TODAY))]
    archived_ids = [t.id for t in asyncio.run(termination_service.list_terminations(conn, "archived", today=TODAY))]

    assert default_ids == [recent["id"], stale["id"], flagged["id"]]
    assert overdue_ids == [stale["id"], flagged["id"]]
    assert archived_ids == [archived["id"]]


# ================================
# Update
# ================================

def test_update_changes_only_supplied_fields():
    conn = _conn()
    row = conn.add_termination(department="Finance", job_title="Analyst")

    updated = asyncio.run(
        termination_service.update_termination(
            conn,
            row["id"],
            TerminationUpdate(department="  Operations "),
            actor="Riley Ortiz",
        )
    )

    assert updated.department == "Operations"
    assert updated.job_title == "Analyst"
    assert updated.version == 2
    assert conn.locked_reads == 1


def test_update_of_termination_date_refreshes_days_remaining():
    conn = _conn()
    row = conn.add_termination(termination_date=TODAY, days_remaining=30)

    updated = asyncio.run(
        termination_service.update_termination(
            conn,
            row["id"],
            TerminationUpdate(termination_date=TODAY - timedelta(days=12)),
            today=TODAY,
        )
    )

    assert updated.status == "pending"
    assert conn.terminations[row["id"]]["days_remaining"] == 18


def test_update_requires_at_least_one_field():
    conn = _conn()
    row = conn.add_termination()

    with pytest.raises(TerminationValidationError, match="No fields to update"):
        asyncio.run(termination_service.update_termination(conn, row["id"], TerminationUpdate(version=1)))


def test_update_rejects_stale_version():
    conn = _conn()
    row = conn.add_termination(version=3)

    with pytest.raises(TerminationConflictError) as exc_info:
        asyncio.run(
            termination_service.update_termination(
                conn,
                row["id"],
                TerminationUpdate(department="Sales", version=2),
            )
        )

    assert exc_info.value.current_version == 3
    assert conn.terminations[row["id"]]["department"] is None


def test_update_rejects_empty_checklist():
    conn = _conn()
    row = conn.add_termination(checklist=_complete_checklist())

    with pytest.raises(TerminationValidationError, match="checklist cannot be empty"):
        asyncio.run(termination_service.update_termination(conn, row["id"], TerminationUpdate(checklist=[])))


def test_update_to_returned_goes_through_the_return_guard():
    conn = _conn()
    row = conn.add_termination()

    with pytest.raises(TerminationPreconditionError) as exc_info:
        asyncio.run(
            termination_service.update_termination(
                conn,
                row["id"],
                TerminationUpdate(status="equipment_returned", tracking_number="1Z999"),
            )
        )

    assert exc_info.value.reasons == [REASON_COMPLETED_BY, REASON_DISPOSITION]
    assert conn.terminations[row["id"]]["status"] == "pending"
    assert conn.rollbacks == 1


def test_update_to_returned_with_all_fields_adds_laptop_to_pool():
    conn = _conn()
    row = conn.add_termination(status="overdue", is_overdue=True)

    updated = asyncio.run(
        termination_service.update_termination(
            conn,
            row["id"],
            TerminationUpdate(
                status="equipment_returned",
                tracking_number="1Z999",
                equipment_disposition="return_to_pool",
                completed_by_user_id=IT_STAFF_ID,
            ),
        )
    )

    assert updated.status == "equipment_returned"
    assert updated.is_overdue is False
    assert conn.inventory[IT_STAFF_ID] == 3


def test_update_cannot_clear_tracking_number_after_return():
    conn = _conn()
    row = _returned_row(conn)

    with pytest.raises(TerminationPreconditionError) as exc_info:
        asyncio.run(
            termination_service.update_termination(conn, row["id"], TerminationUpdate(tracking_number=" "))
        )

    assert exc_info.value.reasons == [REASON_TRACKING_NUMBER]


def test_changing_disposition_to_pool_after_return_adds_the_laptop():
    conn = _conn()
    row = _returned_row(conn, equipment_disposition="retire")

    updated = asyncio.run(
        termination_service.update_termination(
            conn,
            row["id"],
            TerminationUpdate(equipment_disposition="return_to_pool"),
        )
    )

    assert updated.equipment_disposition == "return_to_pool"
    assert conn.inventory[IT_STAFF_ID] == 3


def test_changing_disposition_to_retire_after_return_takes_the_laptop_back():
    conn = _conn()
    row = _returned_row(conn, equipment_disposition="return_to_pool")

    asyncio.run(
        termination_service.update_termination(conn, row["id"], TerminationUpdate(equipment_disposition="retire"))
    )

    assert conn.inventory[IT_STAFF_ID] == 1


def test_reassigning_a_pooled_return_moves_the_laptop_between_staff():
    conn = _conn()
    conn.add_user(5, "Casey Moore", "casey@acmecorp.com", "Admin", laptops=0)
    row = _returned_row(conn, equipment_disposition="return_to_pool")

    updated = asyncio.run(
        termination_service.update_termination(conn, row["id"], TerminationUpdate(completed_by_user_id=5))
    )

    assert updated.completed_by_user_id == 5
    assert conn.inventory[IT_STAFF_ID] == 1
    assert conn.inventory[5] == 1


def test_returned_record_cannot_be_reassigned_to_non_it_staff():
    conn = _conn()
    row = _returned_row(conn, equipment_disposition="return_to_pool")

    with pytest.raises(TerminationValidationError, match="not a member of IT staff"):
        asyncio.run(
            termination_service.update_termination(
                conn,
                row["id"],
                TerminationUpdate(completed_by_user_id=HR_USER_ID),
            )
        )

    assert conn.terminations[row["id"]]["completed_by_user_id"] == IT_STAFF_ID
    assert conn.inventory[IT_STAFF_ID] == 2
    assert conn.rollbacks == 1


def test_unrelated_edit_on_returned_record_leaves_inventory_alone():
    conn = _conn()
    row = _returned_row(conn, equipment_disposition="return_to_pool")

    asyncio.run(termination_service.update_termination(conn, row["id"], TerminationUpdate(department="Sales")))

    assert conn.inventory[IT_STAFF_ID] == 2


@pytest.mark.parametrize(
    "current_status, target_status",
    [("pending", "overdue"), ("overdue", "pending")],
)
def test_update_cannot_move_between_pending_and_overdue(current_status, target_status):
    conn = _conn()
    row = conn.add_termination(status=current_status, termination_date=TODAY - timedelta(days=58))

    with pytest.raises(TerminationPreconditionError, match="set by the overdue check") as exc_info:
        asyncio.run(
            termination_service.update_termination(conn, row["id"], TerminationUpdate(status=target_status))
        )

    assert exc_info.value.reasons == [
        f"Status '{current_status}' cannot be changed to '{target_status}' manually"
    ]
    assert conn.terminations[row["id"]]["status"] == current_status
    assert conn.terminations[row["id"]]["version"] == 1


def test_update_cannot_reopen_a_returned_record():
    conn = _conn()
    row = _returned_row(conn)

    with pytest.raises(TerminationPreconditionError):
        asyncio.run(termination_service.update_termination(conn, row["id"], TerminationUpdate(status="pending")))

    assert conn.terminations[row["id"]]["status"] == "equipment_returned"


def test_update_to_archived_goes_through_the_archive_gate():
    conn = _conn()
    row = _returned_row(conn, checklist=[{"id": "1", "category": "AD", "description": "Disable"}])

    with pytest.raises(ArchiveNotEligibleError) as exc_info:
        asyncio.run(termination_service.update_termination(conn, row["id"], TerminationUpdate(status="archived")))

    assert exc_info.value.reasons == [REASON_CHECKLIST]


def test_archived_terminations_are_read_only():
    conn = _conn()
    row = _returned_row(conn, status="archived")

    with pytest.raises(TerminationTransitionError, match="Archived terminations cannot be modified"):
        asyncio.run(termination_service.update_termination(conn, row["id"], TerminationUpdate(department="Sales")))
    with pytest.raises(TerminationTransitionError):
        asyncio.run(termination_service.set_checklist_all(conn, row["id"], False, "Riley Ortiz"))

    asyncio.run(termination_service.delete_termination(conn, row["id"]))
    assert row["id"] not in conn.terminations


# ================================
# Equipment return
# ================================

def test_return_to_pool_increments_staff_inventory():
    conn = _conn()
    conn.add_user(5, "Morgan Chen", "morgan@acmecorp.com", "I.T.", laptops=6)
    row = conn.add_termination(status="overdue", is_overdue=True)

    updated = asyncio.run(termination_service.mark_equipment_returned(conn, row["id"], _return_request()))

    assert updated.status == "equipment_returned"
    assert updated.is_overdue is False
    assert updated.tracking_number == "1Z999AA10123456784"
    assert updated.completed_by_user_id == IT_STAFF_ID
    assert conn.inventory[IT_STAFF_ID] == 3
    assert conn.inventory[5] == 6


def test_retire_leaves_inventory_unchanged():
    conn = _conn()
    row = conn.add_termination()

    updated = asyncio.run(
        termination_service.mark_equipment_returned(conn, row["id"], _return_request(disposition="retire"))
    )

    assert updated.equipment_disposition == "retire"
    assert conn.inventory[IT_STAFF_ID] == 2


def test_return_requires_a_decided_disposition():
    conn = _conn()
    row = conn.add_termination()

    with pytest.raises(TerminationPreconditionError) as exc_info:
        asyncio.run(
            termination_service.mark_equipment_returned(
                conn,
                row["id"],
                _return_request(disposition="pending_assessment", tracking=""),
            )
        )

    assert exc_info.value.reasons == [REASON_TRACKING_NUMBER, REASON_DISPOSITION]
    assert conn.terminations[row["id"]]["status"] == "pending"


def test_return_must_be_processed_by_it_staff():
    conn = _conn()
    row = conn.add_termination()

    with pytest.raises(TerminationValidationError, match="not a member of IT staff"):
        asyncio.run(termination_service.mark_equipment_returned(conn, row["id"], _return_request(staff_id=HR_USER_ID)))
    with pytest.raises(TerminationValidationError, match="not found"):
        asyncio.run(termination_service.mark_equipment_returned(conn, row["id"], _return_request(staff_id=77)))


def test_failed_inventory_update_rolls_back_the_return():
    conn = _conn()
    row = conn.add_termination()
    conn.fail_inventory = True

    with pytest.raises(RuntimeError):
        asyncio.run(termination_service.mark_equipment_returned(conn, row["id"], _return_request()))

    assert conn.terminations[row["id"]]["status"] == "pending"
    assert conn.terminations[row["id"]]["version"] == 1
    assert conn.rollbacks == 1


def test_return_is_rejected_once_archived():
    conn = _conn()
    row = _returned_row(conn, status="archived")

    with pytest.raises(TerminationTransitionError):
        asyncio.run(termination_service.mark_equipment_returned(conn, row["id"], _return_request()))
    assert conn.inventory[IT_STAFF_ID] == 2


# ================================
# Archive
# ================================

def test_archive_succeeds_when_every_condition_holds():
    conn = _conn()
    row = _returned_row(conn)

    archived = asyncio.run(termination_service.archive_termination(conn, row["id"]))

    assert archived.status == "archived"
    assert archived.archived_at is not None
    assert archived.is_overdue is False


def test_archive_reports_every_unmet_condition():
    conn = _conn()
    row = conn.add_termination(
        checklist=[
            {"id": "1", "category": "AD", "description": "Disable", "completed": True,
             "completed_by": "Riley Ortiz", "completed_date": "2026-03-01T10:00:00+00:00"},
            {"id": "2", "category": "AD", "description": "Reset"},
        ]
    )

    with pytest.raises(ArchiveNotEligibleError) as exc_info:
        asyncio.run(termination_service.archive_termination(conn, row["id"]))

    assert exc_info.value.reasons == [
        REASON_NOT_RETURNED,
        REASON_TRACKING_NUMBER,
        REASON_COMPLETED_BY,
        REASON_DISPOSITION,
        REASON_CHECKLIST,
    ]
    assert exc_info.value.checklist_completion == 50
    assert conn.terminations[row["id"]]["status"] == "pending"


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"status": "overdue"}, REASON_NOT_RETURNED),
        ({"tracking_number": None}, REASON_TRACKING_NUMBER),
        ({"completed_by_user_id": None}, REASON_COMPLETED_BY),
        ({"equipment_disposition": "pending_assessment"}, REASON_DISPOSITION),
        ({"checklist": []}, REASON_CHECKLIST),
    ],
)
def test_archive_fails_for_each_missing_condition(overrides, reason):
    conn = _conn()
    row = _returned_row(conn, **overrides)

    with pytest.raises(ArchiveNotEligibleError) as exc_info:
        asyncio.run(termination_service.archive_termination(conn, row["id"]))

    assert exc_info.value.reasons == [reason]


def test_archive_twice_is_rejected():
    conn = _conn()
    row = _returned_row(conn, status="archived")

    with pytest.raises(TerminationTransitionError, match="already archived"):
        asyncio.run(termination_service.archive_termination(conn, row["id"]))


# ================================
# Checklist operations
# ================================

def test_checklist_item_completion_is_persisted():
    conn = _conn()
    row = conn.add_termination(checklist=[{"id": "1", "category": "AD", "description": "Disable"}])

    updated = asyncio.run(termination_service.set_checklist_item(conn, row["id"], "1", True, "Riley Ortiz"))

    assert updated.checklist[0].completed is True
    stored = conn.checklist_of(row["id"])[0]
    assert stored["completed_by"] == "Riley Ortiz"
    assert stored["completed_date"] is not None


def test_removing_the_last_checklist_item_is_rejected():
    conn = _conn()
    row = conn.add_termination(checklist=[{"id": "1", "category": "AD", "description": "Disable"}])

    with pytest.raises(TerminationPreconditionError, match="Checklist cannot be empty"):
        asyncio.run(termination_service.remove_checklist_item(conn, row["id"], "1"))
    assert len(conn.checklist_of(row["id"])) == 1


def test_add_checklist_item_validates_before_locking():
    conn = _conn()
    row = conn.add_termination(checklist=[{"id": "1", "category": "AD", "description": "Disable"}])

    with pytest.raises(TerminationValidationError):
        asyncio.run(termination_service.add_checklist_item(conn, row["id"], "Hardware", ""))
    assert conn.locked_reads == 0

    updated = asyncio.run(termination_service.add_checklist_item(conn, row["id"], "Hardware", "Collect badge"))
    assert updated.checklist[-1].id.startswith("custom-")
