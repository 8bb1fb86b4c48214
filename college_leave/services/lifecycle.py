"""
Leave Request Lifecycle Engine

Each operation is one atomic unit of work: the status compare-and-set, the
balance update and the history row commit together or roll back together.

    pending     -> approved     reviewer, comments optional, balance charged
    pending     -> rejected     reviewer, reason required
    pending     -> info-needed  reviewer, questions required
    pending     -> cancelled    owning employee
    info-needed -> pending      owning employee, response required
"""
from typing import Optional

from college_leave.core.exceptions import ForbiddenError, ValidationError
from college_leave.models.leave_request import LeaveStatus
from college_leave.schemas.auth import Caller
from college_leave.schemas.leave import LeaveRequestCreate, LeaveRequestPatch, LeaveRequestRecord
from college_leave.services.balance import BalanceLedger, balance_lock
from college_leave.services.base import BaseService, storage_retry
from college_leave.services.leave_store import LeaveRequestStore


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return text.strip() or None


def _required(text: Optional[str], field: str, message: str) -> str:
    cleaned = _clean(text)
    if not cleaned:
        raise ValidationError(message, field=field)
    return cleaned


class LeaveLifecycleService(BaseService):

    def __init__(self, db):
        super().__init__(db)
        self.store = LeaveRequestStore(db)
        self.ledger = BalanceLedger(db)

    # --- authorization helpers ---

    @staticmethod
    def _require_reviewer_role(caller: Caller) -> None:
        if not caller.can_review:
            raise ForbiddenError("Only reviewers can review leave requests")

    @staticmethod
    def _require_department(caller: Caller, request: LeaveRequestRecord) -> None:
        if not caller.reviews_department(request.department):
            raise ForbiddenError(f"Reviewer is not assigned to the {request.department} department")

    @staticmethod
    def _require_owner(caller: Caller, request: LeaveRequestRecord) -> None:
        if caller.employee_id != request.employee_id:
            raise ForbiddenError("Only the requesting employee can change their own leave request")

    def _current(self, request_id: int) -> LeaveRequestRecord:
        with self.reading():
            return self.store.get(request_id)

    def _transition(
        self,
        request_id: int,
        caller: Caller,
        patch: LeaveRequestPatch,
        note: Optional[str] = None,
    ) -> LeaveRequestRecord:
        with self.unit_of_work():
            record = self.store.update(request_id, patch, caller, note=note)
        self.log_info(
            f"Leave request {request_id} moved to '{record.status.value}' by {caller.employee_id}",
            leave_request_id=request_id,
            actor_role=caller.role.value,
        )
        return record

    # --- operations ---

    @storage_retry
    def submit(self, data: LeaveRequestCreate, caller: Caller) -> LeaveRequestRecord:
        if not caller.is_admin and caller.employee_id != data.employee_id:
            raise ForbiddenError("Employees can only file leave requests for themselves")
        with self.unit_of_work():
            request_id = self.store.create(data, actor=caller)
            record = self.store.get(request_id)
        self.log_info(
            f"Leave request {request_id} submitted by {data.employee_id} "
            f"({record.leave_type}, {record.duration} days)",
            leave_request_id=request_id,
        )
        return record

    @storage_retry
    def approve(self, request_id: int, caller: Caller, comments: Optional[str] = None) -> LeaveRequestRecord:
        self._require_reviewer_role(caller)
        current = self._current(request_id)
        self._require_department(caller, current)

        comments = _clean(comments)
        with balance_lock(current.employee_id, current.leave_type):
            with self.unit_of_work():
                record = self.store.update(
                    request_id,
                    LeaveRequestPatch(status=LeaveStatus.APPROVED, comments=comments),
                    caller,
                    note=comments,
                )
                balance = self.ledger.on_approve(record)
        self.log_info(
            f"Leave request {request_id} approved by {caller.employee_id}; "
            f"{balance.leave_type} used {balance.used_days}/{balance.total_days}",
            leave_request_id=request_id,
        )
        return record

    @storage_retry
    def reject(self, request_id: int, caller: Caller, reason: Optional[str]) -> LeaveRequestRecord:
        self._require_reviewer_role(caller)
        reason = _required(reason, "reason", "A rejection reason is required")
        current = self._current(request_id)
        self._require_department(caller, current)
        return self._transition(
            request_id, caller,
            LeaveRequestPatch(status=LeaveStatus.REJECTED, comments=reason),
            note=reason,
        )

    @storage_retry
    def request_info(self, request_id: int, caller: Caller, questions: Optional[str]) -> LeaveRequestRecord:
        self._require_reviewer_role(caller)
        questions = _required(questions, "questions", "Questions for the employee are required")
        current = self._current(request_id)
        self._require_department(caller, current)
        return self._transition(
            request_id, caller,
            LeaveRequestPatch(status=LeaveStatus.INFO_NEEDED, comments=questions),
            note=questions,
        )

    @storage_retry
    def cancel(self, request_id: int, caller: Caller) -> LeaveRequestRecord:
        current = self._current(request_id)
        self._require_owner(caller, current)
        return self._transition(request_id, caller, LeaveRequestPatch(status=LeaveStatus.CANCELLED))

    @storage_retry
    def resubmit(self, request_id: int, caller: Caller, response: Optional[str]) -> LeaveRequestRecord:
        response = _required(response, "response", "The requested information must not be empty")
        current = self._current(request_id)
        self._require_owner(caller, current)
        return self._transition(
            request_id, caller,
            LeaveRequestPatch(status=LeaveStatus.PENDING, info_response=response),
            note=response,
        )
