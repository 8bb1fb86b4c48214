"""
Read side of the leave service: role-scoped listings, dashboards and reports.

Snapshots are loaded from the store and handed to the pure query engine;
nothing computed here is persisted.
"""
from datetime import date
from typing import List, Optional

from college_leave.core.config import settings
from college_leave.core.exceptions import ForbiddenError
from college_leave.models.leave_request import LeaveStatus
from college_leave.schemas.auth import Caller
from college_leave.schemas.leave import (
    DateRange,
    LeaveBalanceRecord,
    LeaveFilter,
    LeaveRequestRecord,
    StatusChangeRecord,
)
from college_leave.schemas.report import (
    CalendarLeave,
    DepartmentStatistics,
    EmployeeOverview,
    LeaveReport,
)
from college_leave.services import leave_query
from college_leave.services.balance import BalanceLedger
from college_leave.services.base import BaseService, storage_retry
from college_leave.services.leave_store import LeaveRequestStore


class LeaveReportService(BaseService):

    def __init__(self, db):
        super().__init__(db)
        self.store = LeaveRequestStore(db)
        self.ledger = BalanceLedger(db)

    def _ensure_can_view(self, caller: Caller, request: LeaveRequestRecord) -> None:
        if caller.employee_id == request.employee_id or caller.reviews_department(request.department):
            return
        raise ForbiddenError("You can only view your own leave requests or those of your department")

    def _ensure_can_view_employee(self, caller: Caller, employee_id: str) -> None:
        if caller.employee_id == employee_id or caller.can_review:
            return
        raise ForbiddenError("You can only view your own leave records")

    def _employee_records(self, caller: Caller, employee_id: str) -> List[LeaveRequestRecord]:
        """
        Requests of ``employee_id`` the caller may read. Reviewers need at least
        one request in a department they review, otherwise the employee's
        records (balances included) are off limits.
        """
        self._ensure_can_view_employee(caller, employee_id)
        requests = self.store.list_by_employee(employee_id)
        if caller.employee_id == employee_id or caller.is_admin:
            return requests
        visible = [r for r in requests if caller.reviews_department(r.department)]
        if not visible:
            raise ForbiddenError(f"Employee {employee_id} is outside the departments you review")
        return visible

    def _visible(self, caller: Caller, filters: Optional[LeaveFilter] = None) -> List[LeaveRequestRecord]:
        """Requests the caller may see, narrowed by ``filters``."""
        filters = filters or LeaveFilter()
        if caller.is_admin:
            return self.store.list_all(filters)
        if caller.can_review:
            department = filters.department or caller.department
            if not department or not caller.reviews_department(department):
                raise ForbiddenError("Reviewers can only query their own department")
            return self.store.list_by_department(department, filters)
        return leave_query.filter_requests(self.store.list_by_employee(caller.employee_id), filters)

    @storage_retry
    def get(self, request_id: int, caller: Caller) -> LeaveRequestRecord:
        with self.reading():
            record = self.store.get(request_id)
        self._ensure_can_view(caller, record)
        return record

    @storage_retry
    def history(self, request_id: int, caller: Caller) -> List[StatusChangeRecord]:
        with self.reading():
            self._ensure_can_view(caller, self.store.get(request_id))
            return self.store.history(request_id)

    @storage_retry
    def list_requests(
        self,
        caller: Caller,
        filters: Optional[LeaveFilter] = None,
        sort_by: Optional[str] = None,
        descending: bool = True,
    ) -> List[LeaveRequestRecord]:
        with self.reading():
            requests = self._visible(caller, filters)
        if sort_by:
            requests = leave_query.sort_requests(requests, sort_by, descending)
        return requests

    @storage_retry
    def employee_requests(self, employee_id: str, caller: Caller) -> List[LeaveRequestRecord]:
        self._ensure_can_view_employee(caller, employee_id)
        with self.reading():
            requests = self.store.list_by_employee(employee_id)
        return [r for r in requests if caller.employee_id == employee_id or caller.reviews_department(r.department)]

    @storage_retry
    def balances(self, employee_id: str, caller: Caller) -> List[LeaveBalanceRecord]:
        with self.reading():
            self._employee_records(caller, employee_id)
            return self.ledger.balances_for([employee_id])

    @storage_retry
    def set_quota(self, employee_id: str, leave_type: str, total_days: float, caller: Caller) -> LeaveBalanceRecord:
        if not caller.is_admin:
            raise ForbiddenError("Only administrators can change leave quotas")
        with self.unit_of_work():
            balance = self.ledger.set_quota(employee_id, leave_type, total_days)
        self.log_info(f"Quota for {employee_id}/{leave_type} set to {total_days} days by {caller.employee_id}")
        return balance

    @storage_retry
    def overview(self, employee_id: str, caller: Caller, today: Optional[date] = None) -> EmployeeOverview:
        today = today or date.today()
        with self.reading():
            requests = self._employee_records(caller, employee_id)
            balances = self.ledger.balances_for([employee_id])
        return EmployeeOverview(
            employee_id=employee_id,
            balances=balances,
            recent_requests=requests[:settings.leave.recent_requests_limit],
            upcoming_leaves=leave_query.sort_requests(
                leave_query.upcoming(requests, today), "start_date", descending=False
            ),
            pending_count=sum(1 for r in requests if not r.status.is_terminal),
        )

    @storage_retry
    def report(self, caller: Caller, filters: Optional[LeaveFilter] = None) -> LeaveReport:
        if not caller.can_review:
            raise ForbiddenError("Reports are available to reviewers only")
        with self.reading():
            requests = self._visible(caller, filters)
        return LeaveReport(summary=leave_query.summarize(requests), requests=requests)

    def export(self, caller: Caller, filters: Optional[LeaveFilter] = None) -> str:
        return leave_query.export_csv(self.report(caller, filters).requests)

    @storage_retry
    def department_statistics(
        self,
        department: str,
        caller: Caller,
        date_range: Optional[DateRange] = None,
        today: Optional[date] = None,
    ) -> DepartmentStatistics:
        if not caller.reviews_department(department):
            raise ForbiddenError(f"Not allowed to view statistics of the {department} department")
        with self.reading():
            requests = self.store.list_by_department(department)
            balances = self.ledger.balances_for({r.employee_id for r in requests})
        return leave_query.department_statistics(
            requests, department, today or date.today(), date_range=date_range, balances=balances
        )

    @storage_retry
    def calendar(self, caller: Caller, day: date, department: Optional[str] = None) -> List[CalendarLeave]:
        """Approved and pending leaves covering ``day``."""
        with self.reading():
            if caller.can_review:
                visible = self._visible(caller, LeaveFilter(department=department))
            else:
                # Employees see their own leaves plus approved leaves of their department
                visible = self.store.list_by_employee(caller.employee_id)
                if caller.department:
                    visible += [
                        r for r in self.store.list_by_department(caller.department)
                        if r.status == LeaveStatus.APPROVED and r.employee_id != caller.employee_id
                    ]
        covering = leave_query.requests_on_date(visible, day, department)
        return [
            CalendarLeave(
                request_id=r.id,
                employee_id=r.employee_id,
                employee_name=r.employee_name,
                department=r.department,
                leave_type=r.leave_type,
                start_date=r.start_date,
                end_date=r.end_date,
                status=r.status.value,
            )
            for r in covering
            if r.status in (LeaveStatus.APPROVED, LeaveStatus.PENDING)
        ]
