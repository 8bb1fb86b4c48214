"""
Leave Request Store

Durable record of leave requests, their attachments and status history.
The store flushes but never commits: the caller owns the transaction
(see BaseService.unit_of_work), so a lifecycle step and its balance update
land together or not at all.

Reads return frozen LeaveRequestRecord snapshots, never ORM rows.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from college_leave.core.config import settings
from college_leave.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from college_leave.models.leave_attachment import LeaveAttachment
from college_leave.models.leave_request import LeaveRequest, LeaveStatus, can_transition
from college_leave.models.leave_status_change import LeaveStatusChange
from college_leave.schemas.auth import Caller, CallerRole
from college_leave.schemas.leave import (
    LeaveFilter,
    LeaveRequestCreate,
    LeaveRequestPatch,
    LeaveRequestRecord,
    StatusChangeRecord,
)
from college_leave.services.base import BaseService
from college_leave.services.leave_query import filter_requests


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"'{field}' is required", field=field)
    return value.strip()


def validate_new_request(data: LeaveRequestCreate) -> None:
    """Domain validation for a new request; raises ValidationError."""
    policy = settings.leave
    _require_text(data.employee_id, "employee_id")
    _require_text(data.employee_name, "employee_name")
    _require_text(data.department, "department")
    leave_type = _require_text(data.leave_type, "leave_type")
    if policy.leave_types and leave_type not in policy.leave_types:
        raise ValidationError(
            f"Unknown leave type '{leave_type}'. Allowed: {', '.join(policy.leave_types)}",
            field="leave_type",
        )
    if data.start_date > data.end_date:
        raise ValidationError("start_date must not be after end_date", field="start_date")

    reason = (data.reason or "").strip()
    if len(reason) < policy.reason_min_length:
        raise ValidationError(
            f"Reason must be at least {policy.reason_min_length} characters", field="reason"
        )
    if len(reason) > policy.reason_max_length:
        raise ValidationError(
            f"Reason must not exceed {policy.reason_max_length} characters", field="reason"
        )
    for attachment in data.attachments:
        _require_text(attachment.name, "attachments.name")
        _require_text(attachment.location, "attachments.location")


class LeaveRequestStore(BaseService):

    def _base_query(self):
        return (
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.attachments))
            .order_by(LeaveRequest.request_date.desc(), LeaveRequest.id.desc())
        )

    def _load(self, request_id: int, for_update: bool = False) -> LeaveRequest:
        leave = self.db.get(
            LeaveRequest,
            request_id,
            populate_existing=True,
            with_for_update=for_update or None,
        )
        if leave is None:
            raise NotFoundError("Leave request", request_id)
        return leave

    @staticmethod
    def _snapshot(leave: LeaveRequest) -> LeaveRequestRecord:
        return LeaveRequestRecord.model_validate(leave)

    def _record_change(
        self,
        request_id: int,
        from_status: Optional[LeaveStatus],
        to_status: LeaveStatus,
        actor: Caller,
        note: Optional[str] = None,
    ) -> None:
        self.db.add(LeaveStatusChange(
            leave_request_id=request_id,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value,
            actor_id=actor.employee_id,
            actor_role=actor.role.value,
            note=note,
            changed_at=datetime.now(timezone.utc),
        ))

    def create(self, data: LeaveRequestCreate, actor: Optional[Caller] = None) -> int:
        validate_new_request(data)
        actor = actor or Caller(employee_id=data.employee_id, role=CallerRole.EMPLOYEE)

        leave = LeaveRequest(
            employee_id=data.employee_id.strip(),
            employee_name=data.employee_name.strip(),
            department=data.department.strip(),
            position=data.position,
            leave_type=data.leave_type.strip(),
            start_date=data.start_date,
            end_date=data.end_date,
            reason=data.reason.strip(),
            contact_info=data.contact_info,
            substitute_employee=data.substitute_employee,
            status=LeaveStatus.PENDING.value,
            request_date=datetime.now(timezone.utc),
        )
        leave.attachments = [
            LeaveAttachment(
                position=index,
                name=item.name.strip(),
                location=item.location.strip(),
                media_type=item.media_type,
            )
            for index, item in enumerate(data.attachments)
        ]
        self.db.add(leave)
        self.db.flush()
        self._record_change(leave.id, None, LeaveStatus.PENDING, actor)
        return leave.id

    def get(self, request_id: int) -> LeaveRequestRecord:
        return self._snapshot(self._load(request_id))

    def list_all(self, filters: Optional[LeaveFilter] = None) -> List[LeaveRequestRecord]:
        rows = self.db.execute(self._base_query()).scalars().all()
        return filter_requests([self._snapshot(row) for row in rows], filters)

    def list_by_employee(self, employee_id: str) -> List[LeaveRequestRecord]:
        stmt = self._base_query().where(LeaveRequest.employee_id == employee_id)
        return [self._snapshot(row) for row in self.db.execute(stmt).scalars().all()]

    def list_by_department(self, department: str, filters: Optional[LeaveFilter] = None) -> List[LeaveRequestRecord]:
        stmt = self._base_query().where(LeaveRequest.department == department)
        rows = self.db.execute(stmt).scalars().all()
        return filter_requests([self._snapshot(row) for row in rows], filters)

    def update(
        self,
        request_id: int,
        patch: LeaveRequestPatch,
        actor: Caller,
        note: Optional[str] = None,
    ) -> LeaveRequestRecord:
        """
        Apply a patch. A status change is a compare-and-set on the status read
        here: if another writer moved the request first, zero rows match and
        the caller gets InvalidTransitionError instead of overwriting.
        """
        current = self._load(request_id)
        observed = LeaveStatus(current.status)

        values = patch.model_dump(exclude_unset=True, exclude={"status"})
        stmt = update(LeaveRequest).where(LeaveRequest.id == request_id)
        if patch.status is not None:
            if not can_transition(observed, patch.status):
                raise InvalidTransitionError(request_id, observed.value, patch.status.value)
            values["status"] = patch.status.value
            stmt = stmt.where(LeaveRequest.status == observed.value)

        if not values:
            return self._snapshot(current)

        values["updated_at"] = datetime.now(timezone.utc)
        result = self.db.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            latest = self.db.get(LeaveRequest, request_id, populate_existing=True, with_for_update=True)
            if latest is None:
                raise NotFoundError("Leave request", request_id)
            raise InvalidTransitionError(request_id, latest.status, patch.status.value if patch.status else observed.value)

        if patch.status is not None:
            self._record_change(request_id, observed, patch.status, actor, note)
        return self._snapshot(self._load(request_id))

    def history(self, request_id: int) -> List[StatusChangeRecord]:
        self._load(request_id)
        stmt = (
            select(LeaveStatusChange)
            .where(LeaveStatusChange.leave_request_id == request_id)
            .order_by(LeaveStatusChange.id)
        )
        return [StatusChangeRecord.model_validate(row) for row in self.db.execute(stmt).scalars().all()]
