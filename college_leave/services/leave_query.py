"""
Leave Query/Filter Engine

Pure functions over snapshots of stored leave requests. Nothing here touches
the database: callers load a snapshot from the store and pass it in together
with a request-scoped LeaveFilter.

- filter_requests / sort_requests: derived views for dashboards and reports
- count_by_status / status_percentages / summarize: report aggregates
- requests_on_date: calendar view
- department_statistics: department dashboard card
"""
import calendar
import csv
import io
import math
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from college_leave.models.leave_request import LeaveStatus
from college_leave.schemas.leave import (
    DateRange,
    LeaveBalanceRecord,
    LeaveFilter,
    LeaveRequestRecord,
)
from college_leave.schemas.report import DepartmentStatistics, StatusSummary

SORT_KEYS = {
    "request_date": lambda r: (r.request_date, r.id),
    "start_date": lambda r: (r.start_date, r.id),
    "employee_name": lambda r: (r.employee_name.lower(), r.id),
    "duration": lambda r: (r.duration, r.id),
}

EXPORT_COLUMNS = [
    "id", "employee_id", "employee_name", "department", "leave_type",
    "start_date", "end_date", "duration", "status", "request_date", "reason",
]


def year_range(year: int) -> DateRange:
    return DateRange(start=date(year, 1, 1), end=date(year, 12, 31))


def month_range(year: int, month: int) -> DateRange:
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(start=date(year, month, 1), end=date(year, month, last_day))


def overlaps(request: LeaveRequestRecord, date_range: DateRange) -> bool:
    """True when [start_date, end_date] intersects the (possibly open) range."""
    if date_range.end is not None and request.start_date > date_range.end:
        return False
    if date_range.start is not None and request.end_date < date_range.start:
        return False
    return True


def matches(request: LeaveRequestRecord, criteria: LeaveFilter) -> bool:
    if criteria.department and request.department != criteria.department:
        return False
    if criteria.leave_type and request.leave_type != criteria.leave_type:
        return False
    if criteria.status and request.status != criteria.status:
        return False
    if criteria.date_range and not overlaps(request, criteria.date_range):
        return False
    if criteria.search_text:
        needle = criteria.search_text.lower()
        if needle not in request.employee_name.lower() and needle not in request.employee_id.lower():
            return False
    return True


def filter_requests(
    requests: Iterable[LeaveRequestRecord],
    criteria: Optional[LeaveFilter] = None,
) -> List[LeaveRequestRecord]:
    """Keep the requests matching every set field of ``criteria``, in input order."""
    if criteria is None:
        return list(requests)
    return [r for r in requests if matches(r, criteria)]


def sort_requests(
    requests: Iterable[LeaveRequestRecord],
    key: str = "request_date",
    descending: bool = True,
) -> List[LeaveRequestRecord]:
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{key}'. Use one of: {', '.join(SORT_KEYS)}")
    return sorted(requests, key=SORT_KEYS[key], reverse=descending)


def count_by_status(requests: Iterable[LeaveRequestRecord]) -> Dict[LeaveStatus, int]:
    counts: Dict[LeaveStatus, int] = {}
    for request in requests:
        counts[request.status] = counts.get(request.status, 0) + 1
    return counts


def percentage(count: float, total: float) -> int:
    # Half-up rounding; an empty population is 0%, never a division error
    if total <= 0:
        return 0
    return int(math.floor(100 * count / total + 0.5))


def status_percentages(counts: Dict[LeaveStatus, int]) -> Dict[LeaveStatus, int]:
    total = sum(counts.values())
    return {status: percentage(counts.get(status, 0), total) for status in LeaveStatus}


def summarize(requests: Sequence[LeaveRequestRecord]) -> StatusSummary:
    counts = count_by_status(requests)
    return StatusSummary(
        total=len(requests),
        counts={status.value: count for status, count in counts.items()},
        percentages={status.value: pct for status, pct in status_percentages(counts).items()},
    )


def requests_on_date(
    requests: Iterable[LeaveRequestRecord],
    day: date,
    department: Optional[str] = None,
) -> List[LeaveRequestRecord]:
    """Requests whose inclusive date range covers ``day``."""
    criteria = LeaveFilter(department=department, date_range=DateRange(start=day, end=day))
    return filter_requests(requests, criteria)


def upcoming(requests: Iterable[LeaveRequestRecord], today: date, horizon_days: int = 30) -> List[LeaveRequestRecord]:
    """Approved or pending requests starting after today, within the horizon."""
    last_day = today + timedelta(days=horizon_days)
    return [
        r for r in requests
        if r.status in (LeaveStatus.APPROVED, LeaveStatus.PENDING) and today < r.start_date <= last_day
    ]


def leave_utilization(balances: Iterable[LeaveBalanceRecord]) -> int:
    balances = list(balances)
    return percentage(sum(b.used_days for b in balances), sum(b.total_days for b in balances))


def department_statistics(
    requests: Iterable[LeaveRequestRecord],
    department: str,
    today: date,
    date_range: Optional[DateRange] = None,
    balances: Iterable[LeaveBalanceRecord] = (),
) -> DepartmentStatistics:
    scoped = filter_requests(requests, LeaveFilter(department=department, date_range=date_range))
    approved = [r for r in scoped if r.status == LeaveStatus.APPROVED]
    on_leave = requests_on_date(approved, today)
    average = round(sum(r.duration for r in approved) / len(approved), 1) if approved else 0.0
    return DepartmentStatistics(
        department=department,
        date_range=date_range,
        summary=summarize(scoped),
        employees_with_requests=len({r.employee_id for r in scoped}),
        on_leave_today=len(on_leave),
        upcoming_leaves=len(upcoming(scoped, today)),
        average_leave_duration=average,
        leave_utilization=leave_utilization(balances),
    )


def export_csv(requests: Iterable[LeaveRequestRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    for request in requests:
        row = request.model_dump(mode="json", include=set(EXPORT_COLUMNS))
        writer.writerow(row)
    return buffer.getvalue()
