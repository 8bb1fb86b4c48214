from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from college_leave.core.exceptions import ValidationError
from college_leave.database import get_db
from college_leave.models.leave_request import LeaveStatus
from college_leave.routers.auth_deps import get_caller, require_admin
from college_leave.schemas.auth import Caller
from college_leave.schemas.leave import (
    ApproveAction,
    DateRange,
    InfoRequestAction,
    LeaveBalanceRecord,
    LeaveFilter,
    LeaveQuotaUpdate,
    LeaveRequestCreate,
    LeaveRequestRecord,
    RejectAction,
    ResubmitAction,
    StatusChangeRecord,
)
from college_leave.schemas.report import EmployeeOverview
from college_leave.services.leave_query import SORT_KEYS, month_range, year_range
from college_leave.services.leave_reports import LeaveReportService
from college_leave.services.lifecycle import LeaveLifecycleService

router = APIRouter(prefix="/leave", tags=["leave"])


def leave_filter(
    department: Optional[str] = None,
    leave_type: Optional[str] = None,
    status: Optional[LeaveStatus] = None,
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    search: Optional[str] = None,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
) -> LeaveFilter:
    """
    Query-string filter shared by listing and report endpoints.
    Dates come either as an explicit from/to range or as a year (and month).
    """
    if start and end and start > end:
        raise ValidationError("'from' must not be after 'to'", field="from")
    if month is not None and year is None:
        raise ValidationError("'month' requires 'year'", field="month")
    if year is not None and (start or end):
        raise ValidationError("Use either year/month or from/to, not both", field="year")

    if year is not None:
        date_range = month_range(year, month) if month else year_range(year)
    else:
        date_range = DateRange(start=start, end=end) if (start or end) else None
    return LeaveFilter(
        department=department,
        leave_type=leave_type,
        status=status,
        date_range=date_range,
        search_text=search or None,
    )


@router.post("/requests", response_model=LeaveRequestRecord, status_code=status.HTTP_201_CREATED)
def submit_leave_request(
    request: LeaveRequestCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return LeaveLifecycleService(db).submit(request, caller)


@router.get("/requests", response_model=List[LeaveRequestRecord])
def list_leave_requests(
    filters: LeaveFilter = Depends(leave_filter),
    sort_by: Optional[str] = Query(None, pattern=f"^({'|'.join(SORT_KEYS)})$"),
    descending: bool = True,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return LeaveReportService(db).list_requests(caller, filters, sort_by=sort_by, descending=descending)


@router.get("/requests/{request_id}", response_model=LeaveRequestRecord)
def get_leave_request(request_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return LeaveReportService(db).get(request_id, caller)


@router.get("/requests/{request_id}/history", response_model=List[StatusChangeRecord])
def get_leave_history(request_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return LeaveReportService(db).history(request_id, caller)


# --- Review actions ---

@router.post("/requests/{request_id}/approve", response_model=LeaveRequestRecord)
def approve_leave_request(
    request_id: int,
    action: ApproveAction,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return LeaveLifecycleService(db).approve(request_id, caller, action.comments)


@router.post("/requests/{request_id}/reject", response_model=LeaveRequestRecord)
def reject_leave_request(
    request_id: int,
    action: RejectAction,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return LeaveLifecycleService(db).reject(request_id, caller, action.reason)


@router.post("/requests/{request_id}/request-info", response_model=LeaveRequestRecord)
def request_more_information(
    request_id: int,
    action: InfoRequestAction,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return LeaveLifecycleService(db).request_info(request_id, caller, action.questions)


# --- Employee actions ---

@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestRecord)
def cancel_leave_request(request_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return LeaveLifecycleService(db).cancel(request_id, caller)


@router.post("/requests/{request_id}/resubmit", response_model=LeaveRequestRecord)
def resubmit_leave_request(
    request_id: int,
    action: ResubmitAction,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    return LeaveLifecycleService(db).resubmit(request_id, caller, action.response)


# --- Employee views ---

@router.get("/employees/{employee_id}/requests", response_model=List[LeaveRequestRecord])
def employee_leave_requests(employee_id: str, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return LeaveReportService(db).employee_requests(employee_id, caller)


@router.get("/employees/{employee_id}/overview", response_model=EmployeeOverview)
def employee_overview(employee_id: str, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return LeaveReportService(db).overview(employee_id, caller)


@router.get("/balances/{employee_id}", response_model=List[LeaveBalanceRecord])
def get_leave_balances(employee_id: str, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return LeaveReportService(db).balances(employee_id, caller)


@router.put("/balances/{employee_id}/{leave_type}", response_model=LeaveBalanceRecord)
def set_leave_quota(
    employee_id: str,
    leave_type: str,
    update: LeaveQuotaUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin()),
):
    return LeaveReportService(db).set_quota(employee_id, leave_type, update.total_days, caller)
