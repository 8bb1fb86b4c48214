from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from datetime import date, datetime
from typing import List, Optional, Tuple

from college_leave.models.leave_request import LeaveStatus, leave_duration


class AttachmentIn(BaseModel):
    name: str
    location: str
    media_type: Optional[str] = None


class Attachment(AttachmentIn):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class LeaveRequestCreate(BaseModel):
    employee_id: str
    employee_name: str
    department: str
    position: Optional[str] = None
    leave_type: str
    start_date: date
    end_date: date
    reason: str
    contact_info: Optional[str] = None
    substitute_employee: Optional[str] = None
    attachments: List[AttachmentIn] = []


class LeaveRequestRecord(BaseModel):
    """Immutable snapshot of a stored leave request."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    employee_id: str
    employee_name: str
    department: str
    position: Optional[str] = None
    leave_type: str
    start_date: date
    end_date: date
    reason: str
    contact_info: Optional[str] = None
    substitute_employee: Optional[str] = None
    status: LeaveStatus
    comments: Optional[str] = None
    info_response: Optional[str] = None
    request_date: datetime
    updated_at: Optional[datetime] = None
    attachments: Tuple[Attachment, ...] = ()

    @computed_field
    @property
    def duration(self) -> int:
        return leave_duration(self.start_date, self.end_date)


class LeaveRequestPatch(BaseModel):
    status: Optional[LeaveStatus] = None
    comments: Optional[str] = None
    info_response: Optional[str] = None


class StatusChangeRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    from_status: Optional[LeaveStatus] = None
    to_status: LeaveStatus
    actor_id: str
    actor_role: str
    note: Optional[str] = None
    changed_at: datetime


# --- Review / employee actions ---

class ApproveAction(BaseModel):
    comments: Optional[str] = None


class RejectAction(BaseModel):
    reason: str


class InfoRequestAction(BaseModel):
    questions: str


class ResubmitAction(BaseModel):
    response: str


# --- Balances ---

class LeaveBalanceRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    employee_id: str
    leave_type: str
    total_days: float
    used_days: float
    remaining_days: float


class LeaveQuotaUpdate(BaseModel):
    total_days: float = Field(..., ge=0)


# --- Filters ---

class DateRange(BaseModel):
    """Closed calendar interval; either bound may be left open."""
    model_config = ConfigDict(frozen=True)

    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode="after")
    def check_order(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError("date range start must not be after its end")
        return self


class LeaveFilter(BaseModel):
    """Request-scoped filter; omitted fields match everything."""
    model_config = ConfigDict(frozen=True)

    department: Optional[str] = None
    leave_type: Optional[str] = None
    status: Optional[LeaveStatus] = None
    date_range: Optional[DateRange] = None
    search_text: Optional[str] = None
