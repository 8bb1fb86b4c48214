from pydantic import BaseModel, ConfigDict
from datetime import date
from typing import Dict, List, Optional

from college_leave.schemas.leave import DateRange, LeaveBalanceRecord, LeaveRequestRecord


class StatusSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    counts: Dict[str, int]
    percentages: Dict[str, int]


class LeaveReport(BaseModel):
    summary: StatusSummary
    requests: List[LeaveRequestRecord]


class DepartmentStatistics(BaseModel):
    """Derived on read, never persisted."""
    model_config = ConfigDict(frozen=True)

    department: str
    date_range: Optional[DateRange] = None
    summary: StatusSummary
    employees_with_requests: int
    on_leave_today: int
    upcoming_leaves: int
    average_leave_duration: float
    leave_utilization: int


class CalendarLeave(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_id: int
    employee_id: str
    employee_name: str
    department: str
    leave_type: str
    start_date: date
    end_date: date
    status: str


class EmployeeOverview(BaseModel):
    employee_id: str
    balances: List[LeaveBalanceRecord]
    recent_requests: List[LeaveRequestRecord]
    upcoming_leaves: List[LeaveRequestRecord]
    pending_count: int
