from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

TerminationStatusValue = Literal["pending", "overdue", "equipment_returned", "archived"]
EquipmentDispositionValue = Literal["return_to_pool", "retire", "pending_assessment"]
TerminationListFilter = Literal["overdue", "archived"]


# ================================
# Checklist Models
# ================================

class ChecklistItem(BaseModel):
    id: str
    category: str
    description: str
    completed: bool = False
    completed_by: Optional[str] = None
    completed_date: Optional[datetime] = None


class ChecklistItemCreate(BaseModel):
    category: str
    description: str


class ChecklistItemCompletionUpdate(BaseModel):
    completed: bool


class ChecklistCategoryCompletionUpdate(BaseModel):
    category: str
    completed: bool


class ChecklistBulkCompletionUpdate(BaseModel):
    completed: bool


# ================================
# Termination Models
# ================================

class Termination(BaseModel):
    """A termination record as persisted."""
    id: int
    employee_name: str
    employee_email: str
    job_title: Optional[str] = None
    department: Optional[str] = None
    termination_date: date
    termination_reason: Optional[str] = None
    initiated_by: Optional[str] = None
    status: TerminationStatusValue = "pending"
    tracking_number: Optional[str] = None
    equipment_disposition: EquipmentDispositionValue = "pending_assessment"
    completed_by_user_id: Optional[int] = None
    checklist: list[ChecklistItem] = Field(default_factory=list)
    is_overdue: bool = False
    days_remaining: Optional[int] = None
    overdue_notified_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TerminationCreate(BaseModel):
    employee_name: str
    employee_email: EmailStr
    termination_date: date
    job_title: Optional[str] = None
    department: Optional[str] = None
    termination_reason: Optional[str] = None
    initiated_by: Optional[str] = None
    equipment_disposition: EquipmentDispositionValue = "pending_assessment"
    checklist: Optional[list[ChecklistItem]] = None


class TerminationUpdate(BaseModel):
    employee_name: Optional[str] = None
    employee_email: Optional[EmailStr] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    termination_date: Optional[date] = None
    termination_reason: Optional[str] = None
    status: Optional[TerminationStatusValue] = None
    tracking_number: Optional[str] = None
    equipment_disposition: Optional[EquipmentDispositionValue] = None
    completed_by_user_id: Optional[int] = None
    checklist: Optional[list[ChecklistItem]] = None
    version: Optional[int] = None  # expected current version; stale writes are rejected


class EquipmentReturnRequest(BaseModel):
    tracking_number: str
    equipment_disposition: EquipmentDispositionValue
    completed_by_user_id: int


class DirectoryUser(BaseModel):
    id: int
    name: str
    email: str
    role: str


class ITStaffMember(BaseModel):
    user_id: int
    name: str
    email: str
    role: str
    available_laptops: int


class TerminationResponse(BaseModel):
    id: int
    employee_name: str
    employee_email: str
    job_title: Optional[str]
    department: Optional[str]
    termination_date: date
    termination_reason: Optional[str]
    initiated_by: Optional[str]
    status: TerminationStatusValue
    tracking_number: Optional[str]
    equipment_disposition: EquipmentDispositionValue
    completed_by_user_id: Optional[int]
    completed_by_user: Optional[DirectoryUser] = None
    checklist: list[ChecklistItem]
    checklist_completion: int
    days_passed: int
    is_overdue: bool
    days_remaining: int
    version: int
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TerminationMutationResponse(BaseModel):
    success: bool = True
    message: str
    termination: TerminationResponse


class TerminationDeleteResponse(BaseModel):
    success: bool = True
    message: str


class OverdueSweepResponse(BaseModel):
    success: bool = True
    message: str
    checked: int
    promoted: int
    notified: int
    failed: int


class TerminationStateMachineResponse(BaseModel):
    statuses: list[str]
    transitions: dict[str, list[str]]
    return_requirements: list[str]
    archive_requirements: list[str]
