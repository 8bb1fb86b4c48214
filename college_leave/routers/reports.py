from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from college_leave.core.exceptions import ValidationError
from college_leave.database import get_db
from college_leave.routers.auth_deps import get_caller, require_reviewer
from college_leave.routers.leave import leave_filter
from college_leave.schemas.auth import Caller
from college_leave.schemas.leave import DateRange, LeaveFilter
from college_leave.schemas.report import CalendarLeave, DepartmentStatistics, LeaveReport
from college_leave.services.leave_reports import LeaveReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", response_model=LeaveReport)
def leave_summary(
    filters: LeaveFilter = Depends(leave_filter),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_reviewer()),
):
    """Status counts and percentages over the filtered requests."""
    return LeaveReportService(db).report(caller, filters)


@router.get("/export")
def export_leave_report(
    filters: LeaveFilter = Depends(leave_filter),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_reviewer()),
):
    content = LeaveReportService(db).export(caller, filters)
    filename = f"leave_report_{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/departments/{department}/stats", response_model=DepartmentStatistics)
def department_statistics(
    department: str,
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_reviewer()),
):
    if start and end and start > end:
        raise ValidationError("'from' must not be after 'to'", field="from")
    date_range = DateRange(start=start, end=end) if (start or end) else None
    return LeaveReportService(db).department_statistics(department, caller, date_range=date_range)


@router.get("/calendar", response_model=List[CalendarLeave])
def leave_calendar(
    day: Optional[date] = Query(None, alias="date"),
    department: Optional[str] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Who is away on a given day (today by default)."""
    return LeaveReportService(db).calendar(caller, day or date.today(), department)
